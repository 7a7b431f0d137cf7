"""Lifecycle actions on open positions.

This module provides helpers that record the trades for common position
events instead of requiring callers to build them by hand:
- Action status and rejection reason enums
- ActionResult dataclass for action outcomes
- PositionActionService for expiration, assignment and rolls
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from .models import Position, Trade, TradeType
from .reconciler import IPositionReconciler
from .analytics import DEFAULT_MULTIPLIER


class ActionStatus(Enum):
    """Status of a lifecycle action after submission."""
    EXECUTED = "executed"
    REJECTED = "rejected"


class ActionRejectionReason(Enum):
    """Reason for action rejection."""
    POSITION_NOT_FOUND = "position_not_found"
    POSITION_NOT_OPEN = "position_not_open"
    INVALID_QUANTITY = "invalid_quantity"


@dataclass
class ActionResult:
    """Result of a lifecycle action.

    Attributes:
        status: EXECUTED or REJECTED
        trades: Trades recorded by the action (empty when rejected)
        position: Resulting position (the new one for rolls)
        rejection_reason: The reason for rejection if the action was rejected
        message: Human-readable message describing the result
    """
    status: ActionStatus
    trades: List[Trade] = field(default_factory=list)
    position: Optional[Position] = None
    rejection_reason: Optional[ActionRejectionReason] = None
    message: str = ""


class PositionActionService:
    """Records expiration, assignment and roll trades against a reconciler.

    Book costs follow the trade convention: negative when cash is paid,
    positive when received, fees included.
    """

    def __init__(self, reconciler: IPositionReconciler, multiplier: int = DEFAULT_MULTIPLIER) -> None:
        """Initialize action service.

        Args:
            reconciler: Reconciler owning the user's trade set
            multiplier: Shares per contract
        """
        self._reconciler = reconciler
        self._multiplier = multiplier

    def record_expiration(self, position_id: str, transaction_date: date) -> ActionResult:
        """Record that an open position expired worthless.

        Args:
            position_id: Position to expire
            transaction_date: Expiration date to record

        Returns:
            ActionResult with the EXPIRATION trade and the expired position
        """
        position, rejection = self._require_open(position_id)
        if rejection is not None:
            return rejection

        trade = self._trade_on(
            position,
            transaction_date,
            TradeType.EXPIRATION,
            quantity=abs(position.net_quantity),
            premium=Decimal("0"),
            book_cost=Decimal("0"),
            notes="Expired worthless",
        )
        stored = self._reconciler.add_trade(trade)
        return ActionResult(
            status=ActionStatus.EXECUTED,
            trades=[stored],
            position=self._reconciler.get_position_by_id(position_id),
            message=f"Expired {position.symbol} {position.strike_price} {position.contract_type.value}",
        )

    def record_assignment(
        self, position_id: str, transaction_date: date, fees: Decimal = Decimal("0")
    ) -> ActionResult:
        """Record assignment or exercise of an open position.

        Args:
            position_id: Position that was assigned/exercised
            transaction_date: Date of assignment
            fees: Assignment fees charged

        Returns:
            ActionResult with the ASSIGNMENT trade and the assigned position
        """
        position, rejection = self._require_open(position_id)
        if rejection is not None:
            return rejection

        trade = self._trade_on(
            position,
            transaction_date,
            TradeType.ASSIGNMENT,
            quantity=abs(position.net_quantity),
            premium=Decimal("0"),
            book_cost=-fees,
            fees=fees or None,
        )
        stored = self._reconciler.add_trade(trade)
        return ActionResult(
            status=ActionStatus.EXECUTED,
            trades=[stored],
            position=self._reconciler.get_position_by_id(position_id),
            message=f"Assigned {position.symbol} {position.strike_price} {position.contract_type.value}",
        )

    def roll_position(
        self,
        position_id: str,
        transaction_date: date,
        new_strike: Decimal,
        new_expiration: date,
        close_premium: Decimal,
        open_premium: Decimal,
        quantity: int,
        fees: Decimal = Decimal("0"),
    ) -> ActionResult:
        """Roll contracts to a new strike and/or expiration.

        Closes ``quantity`` contracts of the existing position and opens the
        same number in the same direction on the new contract. Fees are split
        evenly between the two legs.

        Args:
            position_id: Position to roll from
            transaction_date: Date of the roll
            new_strike: Strike of the new contract
            new_expiration: Expiration of the new contract
            close_premium: Per-share price of the closing leg
            open_premium: Per-share price of the opening leg
            quantity: Contracts to roll
            fees: Total fees for both legs

        Returns:
            ActionResult with both trades and the new position
        """
        position, rejection = self._require_open(position_id)
        if rejection is not None:
            return rejection

        held = abs(position.net_quantity)
        if quantity <= 0 or quantity > held:
            return ActionResult(
                status=ActionStatus.REJECTED,
                rejection_reason=ActionRejectionReason.INVALID_QUANTITY,
                message=f"Cannot roll {quantity} contracts: position holds {held}",
            )

        half_fees = fees / 2
        is_short = position.net_quantity < 0
        close_type = TradeType.BUY_TO_CLOSE if is_short else TradeType.SELL_TO_CLOSE
        open_type = TradeType.SELL_TO_OPEN if is_short else TradeType.BUY_TO_OPEN

        closing = self._trade_on(
            position,
            transaction_date,
            close_type,
            quantity=quantity,
            premium=close_premium,
            book_cost=self._book_cost(close_type, close_premium, quantity, half_fees),
            fees=half_fees or None,
            notes="Roll: closing leg",
        )
        opening = self._trade_on(
            position,
            transaction_date,
            open_type,
            quantity=quantity,
            premium=open_premium,
            book_cost=self._book_cost(open_type, open_premium, quantity, half_fees),
            fees=half_fees or None,
            notes="Roll: opening leg",
            strike_price=new_strike,
            expiration_date=new_expiration,
        )

        stored = self._reconciler.add_trades([closing, opening])
        return ActionResult(
            status=ActionStatus.EXECUTED,
            trades=stored,
            position=self._reconciler.get_position_by_id(stored[1].position_id),
            message=(
                f"Rolled {quantity} {position.symbol} {position.contract_type.value} "
                f"{position.strike_price} -> {new_strike} exp {new_expiration.isoformat()}"
            ),
        )

    def _require_open(self, position_id: str) -> Tuple[Optional[Position], Optional[ActionResult]]:
        position = self._reconciler.get_position_by_id(position_id)
        if position is None:
            return None, ActionResult(
                status=ActionStatus.REJECTED,
                rejection_reason=ActionRejectionReason.POSITION_NOT_FOUND,
                message=f"No position with id {position_id}",
            )
        if not position.is_open or position.net_quantity == 0:
            return None, ActionResult(
                status=ActionStatus.REJECTED,
                rejection_reason=ActionRejectionReason.POSITION_NOT_OPEN,
                message=f"Position {position_id} is {position.status.value}",
            )
        return position, None

    def _book_cost(self, trade_type: TradeType, premium: Decimal, quantity: int, fees: Decimal) -> Decimal:
        gross = premium * quantity * self._multiplier
        if trade_type.sign > 0:
            return gross - fees
        return -(gross + fees)

    @staticmethod
    def _trade_on(
        position: Position,
        transaction_date: date,
        trade_type: TradeType,
        quantity: int,
        premium: Decimal,
        book_cost: Decimal,
        fees: Optional[Decimal] = None,
        notes: str = "",
        strike_price: Optional[Decimal] = None,
        expiration_date: Optional[date] = None,
    ) -> Trade:
        return Trade(
            transaction_date=transaction_date,
            trade_type=trade_type,
            symbol=position.symbol,
            contract_type=position.contract_type,
            quantity=quantity,
            expiration_date=expiration_date or position.expiration_date,
            strike_price=position.strike_price if strike_price is None else strike_price,
            premium=premium,
            book_cost=book_cost,
            fees=fees,
            notes=notes,
        )
