"""Position reconciliation for options trades.

The reconciler owns one user's trade set and rebuilds every position from it
after each mutation. Positions are grouped by contract identity (symbol,
expiration, strike, call/put); a contract that is closed and later reopened
stays in the same position.
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .analytics import PerformanceAnalytics, PerformanceMetrics
from .identifiers import IIdAllocator, SequentialIdAllocator
from .models import (
    ContractKey,
    Position,
    PositionStatus,
    Strategy,
    Trade,
    TradeStatus,
    TradeType,
)
from .validation import FieldError, TradeValidationError, TradeValidator

logger = logging.getLogger(__name__)

_TERMINAL_STATUS = {
    TradeType.ASSIGNMENT: PositionStatus.ASSIGNED,
    TradeType.EXPIRATION: PositionStatus.EXPIRED,
}

# Fields owned by the reconciler; callers cannot patch them
_DERIVED_TRADE_FIELDS = frozenset({"id", "position_id"})
_TRADE_FIELDS = frozenset(f.name for f in fields(Trade))


@dataclass
class ReconcilerSnapshot:
    """Point-in-time copy of a reconciler's trade set."""
    trades: List[Trade]
    position_ids: Dict[ContractKey, str] = field(default_factory=dict)
    strategies: Dict[ContractKey, Strategy] = field(default_factory=dict)


class IPositionReconciler(ABC):
    """Interface for trade-set ownership and position derivation."""

    @abstractmethod
    def add_trade(self, trade: Trade) -> Trade:
        """Store a trade and recompute positions."""
        ...

    @abstractmethod
    def add_trades(self, trades: Iterable[Trade]) -> List[Trade]:
        """Store several trades in the given order and recompute positions."""
        ...

    @abstractmethod
    def delete_trade(self, trade_id: int) -> bool:
        """Remove a trade; False if the id is unknown."""
        ...

    @abstractmethod
    def update_trade(self, trade_id: int, updates: Mapping[str, Any]) -> Optional[Trade]:
        """Patch fields of a trade; None if the id is unknown."""
        ...

    @abstractmethod
    def get_trades(self) -> List[Trade]:
        """Get all trades in insertion order."""
        ...

    @abstractmethod
    def get_positions(self) -> List[Position]:
        """Get all derived positions."""
        ...

    @abstractmethod
    def get_position_by_id(self, position_id: str) -> Optional[Position]:
        """Get a single position by id."""
        ...

    @abstractmethod
    def get_open_positions(self) -> List[Position]:
        """Get positions with contracts still held."""
        ...

    @abstractmethod
    def get_closed_positions(self) -> List[Position]:
        """Get closed, expired and assigned positions."""
        ...

    @abstractmethod
    def calculate_performance_metrics(self) -> PerformanceMetrics:
        """Aggregate realized results over closed positions."""
        ...


class PositionReconciler(IPositionReconciler):
    """Full-recompute implementation of the position reconciler.

    Every mutation re-sorts the whole trade set by transaction date (stable,
    so same-day trades keep insertion order) and walks it once, accumulating
    quantity, premium, commission and fees per contract identity.

    Sign convention: sells are credits (+1) and buys debits (-1).
    ``net_quantity -= sign * quantity``, so net_quantity is positive when net
    long and negative when net short. ``total_premium += book_cost``, the
    trade's signed cash effect with fees already deducted.
    """

    def __init__(
        self,
        initial_trades: Iterable[Trade] = (),
        executed_only: bool = True,
        id_allocator: Optional[IIdAllocator] = None,
        analytics: Optional[PerformanceAnalytics] = None,
    ) -> None:
        """Initialize with an optional pre-existing trade set.

        Args:
            initial_trades: Trades loaded from storage; existing ids are kept
            executed_only: If True, CANCELLED/PENDING trades are grouped but
                do not affect position math
            id_allocator: Source of trade and position identifiers
            analytics: Performance analytics used for metrics
        """
        self._executed_only = executed_only
        self._ids = id_allocator or SequentialIdAllocator()
        self._analytics = analytics or PerformanceAnalytics()
        self._validator = TradeValidator()
        self._trades: List[Trade] = []
        self._positions: List[Position] = []
        self._position_ids: Dict[ContractKey, str] = {}
        self._strategies: Dict[ContractKey, Strategy] = {}

        initial = [copy.copy(t) for t in initial_trades]
        for trade in initial:
            if trade.id is not None:
                self._ids.observe_trade_id(trade.id)
        for trade in initial:
            if trade.id is None:
                trade.id = self._ids.next_trade_id()
            trade.position_id = None
            self._trades.append(trade)
        if self._trades:
            self._sync_positions()

    def add_trade(self, trade: Trade) -> Trade:
        """Add a new trade and rebuild positions.

        Args:
            trade: Trade to store; any id/position_id on it is replaced

        Returns:
            Copy of the stored trade with id and position_id filled in
        """
        stored = self._store(trade)
        self._sync_positions()
        return copy.copy(stored)

    def add_trades(self, trades: Iterable[Trade]) -> List[Trade]:
        """Add multiple trades at once (e.g., for bulk import).

        Identifiers are assigned in input order; the result is the same as
        calling add_trade for each element in turn.

        Args:
            trades: Trades to store

        Returns:
            Copies of the stored trades, in input order
        """
        stored = [self._store(trade) for trade in trades]
        if stored:
            self._sync_positions()
        return [copy.copy(t) for t in stored]

    def delete_trade(self, trade_id: int) -> bool:
        """Delete a trade and rebuild positions.

        Args:
            trade_id: Identifier of the trade to remove

        Returns:
            True if removed, False if no trade has that id
        """
        index = self._index_of(trade_id)
        if index is None:
            logger.debug(f"delete_trade: no trade with id {trade_id}")
            return False
        del self._trades[index]
        self._sync_positions()
        return True

    def update_trade(self, trade_id: int, updates: Mapping[str, Any]) -> Optional[Trade]:
        """Merge fields into an existing trade and rebuild positions.

        Args:
            trade_id: Identifier of the trade to patch
            updates: Field name to new value; unspecified fields keep their values

        Returns:
            Copy of the updated trade, or None if no trade has that id

        Raises:
            TradeValidationError: If updates name a field Trade does not have,
                or the patched trade is malformed (the stored trade is left as is)
        """
        unknown = [name for name in updates if name not in _TRADE_FIELDS]
        if unknown:
            raise TradeValidationError([FieldError(name, "unknown trade field") for name in unknown])

        index = self._index_of(trade_id)
        if index is None:
            logger.debug(f"update_trade: no trade with id {trade_id}")
            return None

        current = self._trades[index]
        record = {f.name: getattr(current, f.name) for f in fields(Trade)}
        record.update((k, v) for k, v in updates.items() if k not in _DERIVED_TRADE_FIELDS)
        # Typed values pass through unchanged; anything malformed raises before state changes
        patched = self._validator.parse(record)
        self._trades[index] = replace(patched, id=current.id, position_id=current.position_id)
        self._sync_positions()
        return copy.copy(self._trades[index])

    def get_trade(self, trade_id: int) -> Optional[Trade]:
        """Get a single trade by id."""
        index = self._index_of(trade_id)
        if index is None:
            return None
        return copy.copy(self._trades[index])

    def get_trades(self) -> List[Trade]:
        """Get all trades in insertion order."""
        return [copy.copy(t) for t in self._trades]

    def get_positions(self) -> List[Position]:
        """Get all positions in order of first appearance in the trade history."""
        return copy.deepcopy(self._positions)

    def get_position_by_id(self, position_id: str) -> Optional[Position]:
        """Find a position by ID."""
        for position in self._positions:
            if position.id == position_id:
                return copy.deepcopy(position)
        return None

    def get_trades_for_position(self, position_id: str) -> List[Trade]:
        """Get trades for a specific position in chronological order."""
        for position in self._positions:
            if position.id == position_id:
                return [copy.copy(t) for t in position.trades]
        return []

    def get_positions_by_symbol(self, symbol: str) -> List[Position]:
        """Get all positions on one underlying."""
        symbol = symbol.strip().upper()
        return copy.deepcopy([p for p in self._positions if p.symbol == symbol])

    def get_multi_trade_positions(self) -> List[Position]:
        """Get positions built from more than one trade."""
        return copy.deepcopy([p for p in self._positions if p.trade_count > 1])

    def get_open_positions(self) -> List[Position]:
        """Get positions with contracts still held.

        Positions whose trades were all skipped (CANCELLED/PENDING with
        executed_only) are OPEN with nothing held and are left out.
        """
        return copy.deepcopy([p for p in self._positions if p.holds_contracts])

    def get_closed_positions(self) -> List[Position]:
        """Get closed positions (CLOSED, EXPIRED or ASSIGNED)."""
        return copy.deepcopy([p for p in self._positions if not p.is_open])

    def set_position_strategy(self, position_id: str, strategy: Strategy) -> bool:
        """Tag a position with a strategy classification.

        The tag follows the contract identity, so it survives recomputation.

        Returns:
            True if the position exists, False otherwise
        """
        for position in self._positions:
            if position.id == position_id:
                self._strategies[position.key] = strategy
                position.strategy = strategy
                return True
        return False

    def calculate_performance_metrics(self) -> PerformanceMetrics:
        """Calculate performance metrics for all closed positions."""
        return self._analytics.calculate_metrics(self._positions)

    def snapshot(self) -> ReconcilerSnapshot:
        """Capture the trade set and identity bookkeeping for a later restore()."""
        return ReconcilerSnapshot(
            trades=[copy.copy(t) for t in self._trades],
            position_ids=dict(self._position_ids),
            strategies=dict(self._strategies),
        )

    def restore(self, snapshot: ReconcilerSnapshot) -> None:
        """Return to a captured state and rebuild positions.

        Trade id allocation is not rolled back, so ids handed out after the
        snapshot are never reused.
        """
        self._trades = [copy.copy(t) for t in snapshot.trades]
        self._position_ids = dict(snapshot.position_ids)
        self._strategies = dict(snapshot.strategies)
        self._sync_positions()

    def _store(self, trade: Trade) -> Trade:
        stored = replace(trade, id=self._ids.next_trade_id(), position_id=None)
        self._trades.append(stored)
        return stored

    def _index_of(self, trade_id: int) -> Optional[int]:
        for index, trade in enumerate(self._trades):
            if trade.id == trade_id:
                return index
        return None

    def _sync_positions(self) -> None:
        """Rebuild all positions from the current trade set."""
        # sorted() is stable: same-day trades keep insertion order
        ordered = sorted(self._trades, key=lambda t: t.transaction_date)

        positions: Dict[ContractKey, Position] = {}
        for trade in ordered:
            key = trade.contract_key
            position = positions.get(key)
            if position is None:
                position = self._new_position(key, trade)
                positions[key] = position

            trade.position_id = position.id
            position.trades.append(trade)

            if self._executed_only and trade.status != TradeStatus.EXECUTED:
                continue
            self._apply_trade(position, trade)

        # Forget identities that no longer have trades
        self._position_ids = {key: self._position_ids[key] for key in positions}
        self._strategies = {k: v for k, v in self._strategies.items() if k in positions}
        self._positions = list(positions.values())
        logger.debug(f"Reconciled {len(self._trades)} trades into {len(self._positions)} positions")

    def _new_position(self, key: ContractKey, trade: Trade) -> Position:
        position_id = self._position_ids.get(key)
        if position_id is None:
            position_id = self._ids.next_position_id(key)
            self._position_ids[key] = position_id
        return Position(
            id=position_id,
            symbol=key.symbol,
            strike_price=key.strike_price,
            expiration_date=key.expiration_date,
            contract_type=key.contract_type,
            open_date=trade.transaction_date,
            strategy=self._strategies.get(key, Strategy.SINGLE_LEG),
        )

    @staticmethod
    def _apply_trade(position: Position, trade: Trade) -> None:
        """Fold one trade into a position's accumulators and status."""
        # book_cost is the signed cash effect, fees included
        position.total_premium += trade.book_cost
        if trade.trade_type.is_terminal:
            # Assignment/expiration flattens whatever is left
            position.net_quantity = 0
            closed_status = _TERMINAL_STATUS[trade.trade_type]
        else:
            position.net_quantity -= trade.trade_type.sign * trade.quantity
            closed_status = PositionStatus.CLOSED

        position.total_commission += trade.commission or Decimal("0")
        position.total_fees += trade.fees or Decimal("0")

        if position.net_quantity == 0:
            position.status = closed_status
            position.close_date = trade.transaction_date
            position.realized_pl = position.total_premium
        else:
            position.status = PositionStatus.OPEN
            position.close_date = None
            position.realized_pl = None


class TradeSerializer:
    """Serializer for trade sets to/from JSON-compatible dictionaries.

    Only trades are persisted; positions are always recomputed.
    """

    @staticmethod
    def serialize_trade(trade: Trade) -> dict:
        """Serialize one trade to a JSON-compatible dictionary."""
        return {
            "id": trade.id,
            "transaction_date": trade.transaction_date.isoformat(),
            "trade_type": trade.trade_type.value,
            "symbol": trade.symbol,
            "contract_type": trade.contract_type.value,
            "quantity": trade.quantity,
            "expiration_date": trade.expiration_date.isoformat(),
            "strike_price": str(trade.strike_price),
            "premium": str(trade.premium),
            "book_cost": str(trade.book_cost),
            "commission": None if trade.commission is None else str(trade.commission),
            "fees": None if trade.fees is None else str(trade.fees),
            "status": trade.status.value,
            "notes": trade.notes,
        }

    @staticmethod
    def serialize(trades: Iterable[Trade]) -> dict:
        """Serialize a trade set.

        Args:
            trades: Trades in insertion order

        Returns:
            Dictionary containing the serialized trade set
        """
        return {
            "trades": [TradeSerializer.serialize_trade(t) for t in trades],
            "saved_at": datetime.now().isoformat(),
        }

    @staticmethod
    def deserialize(data: dict, validator: Optional[TradeValidator] = None) -> List[Trade]:
        """Deserialize a trade set, validating every record.

        Args:
            data: Dictionary produced by serialize()
            validator: Validator to use (default: TradeValidator())

        Returns:
            Trades in stored order

        Raises:
            TradeValidationError: If a stored record is malformed
        """
        validator = validator or TradeValidator()
        return [validator.parse(record) for record in data.get("trades", [])]
