"""Market marks for open option contracts.

The reconciler never prices positions itself; unrealized P&L needs a mark
from an external source behind this interface.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional

from .models import ContractKey


class IMarkProvider(ABC):
    """Interface for option mark providers."""

    @abstractmethod
    def get_mark(self, key: ContractKey) -> Optional[Decimal]:
        """Get the current per-share mark for a contract.

        Args:
            key: Contract identity

        Returns:
            Mark as Decimal, or None if unavailable
        """
        ...


class StaticMarkProvider(IMarkProvider):
    """In-memory mark cache, fed by whatever market data the host app has."""

    def __init__(self, marks: Optional[Dict[ContractKey, Decimal]] = None) -> None:
        self._marks: Dict[ContractKey, Decimal] = dict(marks or {})

    def update_mark(self, key: ContractKey, mark: Decimal) -> None:
        """Update cached mark for a contract."""
        self._marks[key] = Decimal(str(mark))

    def get_mark(self, key: ContractKey) -> Optional[Decimal]:
        return self._marks.get(key)

    def get_marks_snapshot(self) -> Dict[ContractKey, Decimal]:
        """Get a shallow copy of the current mark cache."""
        return dict(self._marks)
