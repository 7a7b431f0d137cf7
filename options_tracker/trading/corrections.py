"""Detection and repair of misclassified opening trades.

Extraction from statements sometimes labels a closing leg as an opening one
(e.g. a buy-back of a short call reported as BUY_TO_OPEN). Within a single
position, an opening trade that follows an opening trade of the opposite
direction is almost always a close.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List

from .models import Position, TradeType
from .reconciler import PositionReconciler

logger = logging.getLogger(__name__)

# (mislabelled type, opposite opening type that must precede it, corrected type)
_RULES = (
    (TradeType.BUY_TO_OPEN, TradeType.SELL_TO_OPEN, TradeType.BUY_TO_CLOSE),
    (TradeType.SELL_TO_OPEN, TradeType.BUY_TO_OPEN, TradeType.SELL_TO_CLOSE),
)


@dataclass
class TradeTypeCorrection:
    """A proposed trade type change."""
    trade_id: int
    position_id: str
    symbol: str
    transaction_date: date
    current_type: TradeType
    correct_type: TradeType
    reason: str


@dataclass
class CorrectionReport:
    """Outcome of a correction pass."""
    corrections: List[TradeTypeCorrection] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_corrections(self) -> int:
        return len(self.corrections)


def find_trade_type_corrections(positions: Iterable[Position]) -> List[TradeTypeCorrection]:
    """Find opening trades that should be closing trades.

    Args:
        positions: Positions whose trades are in chronological order

    Returns:
        Proposed corrections, in position then trade order
    """
    corrections: List[TradeTypeCorrection] = []
    for position in positions:
        trades = position.trades
        if len(trades) < 2:
            continue
        for i, trade in enumerate(trades[1:], start=1):
            earlier_types = {t.trade_type for t in trades[:i]}
            for mislabelled, opposite_open, corrected in _RULES:
                if trade.trade_type == mislabelled and opposite_open in earlier_types:
                    corrections.append(TradeTypeCorrection(
                        trade_id=trade.id,
                        position_id=position.id,
                        symbol=trade.symbol,
                        transaction_date=trade.transaction_date,
                        current_type=trade.trade_type,
                        correct_type=corrected,
                        reason=f"Trade #{i + 1} in sequence should be {corrected.value}",
                    ))
                    break
    return corrections


def fix_trade_type_classifications(reconciler: PositionReconciler, dry_run: bool = False) -> CorrectionReport:
    """Find and (unless dry_run) apply trade type corrections.

    Args:
        reconciler: Reconciler owning the trades
        dry_run: If True, only report what would change

    Returns:
        CorrectionReport listing every proposed change
    """
    corrections = find_trade_type_corrections(reconciler.get_positions())
    if not dry_run:
        for correction in corrections:
            reconciler.update_trade(correction.trade_id, {"trade_type": correction.correct_type})
        if corrections:
            logger.info(f"Corrected {len(corrections)} trade type classifications")
    return CorrectionReport(corrections=corrections, dry_run=dry_run)
