"""Per-user trade journal session.

A journal loads one user's trade set into a fresh reconciler, forwards reads
to it, and writes the trade set back to storage after every mutation that
changed something. A failed save puts the in-memory trade set back the way
it was before the change.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional

from options_tracker.config import TrackerSettings
from options_tracker.data.marks import HttpMarkProvider
from options_tracker.storage.repository import TradeRepository
from options_tracker.storage.storage import JsonFileStorage
from options_tracker.trading.actions import ActionResult, ActionStatus, PositionActionService
from options_tracker.trading.analytics import PerformanceAnalytics, PerformanceMetrics
from options_tracker.trading.marks import IMarkProvider
from options_tracker.trading.models import Position, Trade
from options_tracker.trading.reconciler import PositionReconciler, ReconcilerSnapshot
from options_tracker.trading.validation import TradeValidator

logger = logging.getLogger(__name__)


class TradeJournal:
    """One user's trades, their derived positions, and their persistence."""

    def __init__(
        self,
        user_id: str,
        repository: TradeRepository,
        settings: Optional[TrackerSettings] = None,
        validator: Optional[TradeValidator] = None,
    ) -> None:
        self._user_id = user_id
        self._repository = repository
        self._settings = settings or TrackerSettings()
        self._validator = validator or TradeValidator()
        self._analytics = PerformanceAnalytics()
        self._reconciler = self._load_reconciler()
        self._actions = PositionActionService(self._reconciler, self._settings.contract_multiplier)

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def reconciler(self) -> PositionReconciler:
        return self._reconciler

    def _load_reconciler(self) -> PositionReconciler:
        trades = self._repository.load_trades(self._user_id)
        reconciler = PositionReconciler(trades, executed_only=self._settings.executed_only)
        logger.info(f"Journal for user '{self._user_id}' opened with {len(trades)} trades")
        return reconciler

    def save(self) -> None:
        """Save the trade set to storage."""
        try:
            self._repository.save_trades(self._user_id, self._reconciler.get_trades())
            logger.info(f"Trades saved for user '{self._user_id}'")
        except (TypeError, ValueError, OSError) as e:
            logger.error(f"Failed to save trades for user '{self._user_id}': {e}")
            raise

    def _commit(self, snapshot: ReconcilerSnapshot) -> None:
        """Save, or put the reconciler back to snapshot and re-raise."""
        try:
            self.save()
        except (TypeError, ValueError, OSError):
            self._reconciler.restore(snapshot)
            logger.warning(f"Rolled back unsaved change for user '{self._user_id}'")
            raise

    def add_trade(self, trade: Trade) -> Trade:
        snapshot = self._reconciler.snapshot()
        stored = self._reconciler.add_trade(trade)
        self._commit(snapshot)
        return stored

    def add_trades(self, trades: Iterable[Trade]) -> List[Trade]:
        snapshot = self._reconciler.snapshot()
        stored = self._reconciler.add_trades(trades)
        if stored:
            self._commit(snapshot)
        return stored

    def import_records(self, records: Iterable[Mapping[str, Any]]) -> List[Trade]:
        """Validate raw records (e.g. extraction output) and add them as one batch.

        Nothing is added if any record is invalid.

        Raises:
            TradeValidationError: For the first malformed record
        """
        trades = [self._validator.parse(record) for record in records]
        return self.add_trades(trades)

    def update_trade(self, trade_id: int, updates: Mapping[str, Any]) -> Optional[Trade]:
        snapshot = self._reconciler.snapshot()
        updated = self._reconciler.update_trade(trade_id, updates)
        if updated is not None:
            self._commit(snapshot)
        return updated

    def delete_trade(self, trade_id: int) -> bool:
        snapshot = self._reconciler.snapshot()
        deleted = self._reconciler.delete_trade(trade_id)
        if deleted:
            self._commit(snapshot)
        return deleted

    def record_expiration(self, position_id: str, transaction_date: date) -> ActionResult:
        snapshot = self._reconciler.snapshot()
        return self._saved(snapshot, self._actions.record_expiration(position_id, transaction_date))

    def record_assignment(
        self, position_id: str, transaction_date: date, fees: Decimal = Decimal("0")
    ) -> ActionResult:
        snapshot = self._reconciler.snapshot()
        return self._saved(snapshot, self._actions.record_assignment(position_id, transaction_date, fees))

    def roll_position(self, position_id: str, transaction_date: date, **roll: Any) -> ActionResult:
        """Roll a position; see PositionActionService.roll_position for arguments."""
        snapshot = self._reconciler.snapshot()
        return self._saved(snapshot, self._actions.roll_position(position_id, transaction_date, **roll))

    def _saved(self, snapshot: ReconcilerSnapshot, result: ActionResult) -> ActionResult:
        if result.status == ActionStatus.EXECUTED:
            self._commit(snapshot)
        return result

    def get_trades(self) -> List[Trade]:
        return self._reconciler.get_trades()

    def get_positions(self) -> List[Position]:
        return self._reconciler.get_positions()

    def get_open_positions(self) -> List[Position]:
        return self._reconciler.get_open_positions()

    def get_closed_positions(self) -> List[Position]:
        return self._reconciler.get_closed_positions()

    def calculate_performance_metrics(self) -> PerformanceMetrics:
        return self._reconciler.calculate_performance_metrics()

    def get_marked_positions(self, provider: Optional[IMarkProvider] = None) -> List[Position]:
        """Positions with unrealized P&L filled in for open ones that have a mark.

        Uses the configured quote endpoint when no provider is given; without
        either, positions are returned unmarked.
        """
        positions = self._reconciler.get_positions()
        if provider is None:
            if not self._settings.mark_source_url:
                return positions
            http_provider = HttpMarkProvider(self._settings.mark_source_url)
            try:
                return self._analytics.mark_positions(
                    positions, http_provider, self._settings.contract_multiplier
                )
            finally:
                http_provider.close()
        return self._analytics.mark_positions(positions, provider, self._settings.contract_multiplier)


def open_journal(user_id: str, settings: Optional[TrackerSettings] = None) -> TradeJournal:
    """Open a journal backed by JSON files in the configured data directory."""
    settings = settings or TrackerSettings()
    storage = JsonFileStorage(settings.data_dir)
    return TradeJournal(user_id, TradeRepository(storage), settings)
