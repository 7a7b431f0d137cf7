"""Identifier allocation for trades and positions."""

from abc import ABC, abstractmethod

from .models import ContractKey


class IIdAllocator(ABC):
    """Interface for handing out trade and position identifiers."""

    @abstractmethod
    def next_trade_id(self) -> int:
        """Allocate a fresh trade identifier."""
        ...

    @abstractmethod
    def observe_trade_id(self, trade_id: int) -> None:
        """Record an identifier that already exists (e.g. loaded from storage)."""
        ...

    @abstractmethod
    def next_position_id(self, key: ContractKey) -> str:
        """Allocate an identifier for a newly seen contract identity."""
        ...


class SequentialIdAllocator(IIdAllocator):
    """Monotonic counters for trades (1, 2, ...) and positions (pos-1, pos-2, ...).

    Trade ids are never reused, even after the highest trade is deleted.
    """

    def __init__(self, prefix: str = "pos") -> None:
        self._prefix = prefix
        self._last_trade_id = 0
        self._last_position_seq = 0

    def next_trade_id(self) -> int:
        self._last_trade_id += 1
        return self._last_trade_id

    def observe_trade_id(self, trade_id: int) -> None:
        if trade_id > self._last_trade_id:
            self._last_trade_id = trade_id

    def next_position_id(self, key: ContractKey) -> str:
        self._last_position_seq += 1
        return f"{self._prefix}-{self._last_position_seq}"
