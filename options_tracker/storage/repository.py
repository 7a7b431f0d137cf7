"""Per-user persistence of trade sets.

Only trades are stored. Positions are derived data and are rebuilt by the
reconciler whenever a trade set is loaded.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from options_tracker.storage.storage import IStorageService
from options_tracker.trading.models import Trade
from options_tracker.trading.reconciler import TradeSerializer

logger = logging.getLogger(__name__)

TRADES_KEY_PREFIX = "trades_"


class TradeRepository:
    """Loads and saves one trade set per user id."""

    def __init__(self, storage: IStorageService) -> None:
        self._storage = storage

    @staticmethod
    def key_for(user_id: str) -> str:
        return f"{TRADES_KEY_PREFIX}{user_id}"

    def load_trades(self, user_id: str) -> List[Trade]:
        """Load a user's trades.

        Args:
            user_id: Owner of the trade set

        Returns:
            Stored trades in insertion order, empty if none are stored

        Raises:
            TradeValidationError: If a stored record is malformed
        """
        data = self._storage.load(self.key_for(user_id))
        if data is None:
            return []
        trades = TradeSerializer.deserialize(data)
        logger.info(f"Loaded {len(trades)} trades for user '{user_id}'")
        return trades

    def save_trades(self, user_id: str, trades: Iterable[Trade]) -> None:
        """Replace a user's stored trade set."""
        self._storage.save(self.key_for(user_id), TradeSerializer.serialize(trades))

    def delete_trades(self, user_id: str) -> None:
        self._storage.delete(self.key_for(user_id))
