"""Tests for expiration, assignment and roll actions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from options_tracker.trading.actions import (
    ActionRejectionReason,
    ActionStatus,
    PositionActionService,
)
from options_tracker.trading.models import PositionStatus, TradeType
from options_tracker.trading.reconciler import PositionReconciler


@pytest.fixture
def short_call(make_trade):
    reconciler = PositionReconciler()
    reconciler.add_trade(make_trade())
    return reconciler


@pytest.fixture
def long_calls(make_trade):
    reconciler = PositionReconciler()
    reconciler.add_trade(make_trade(trade_type=TradeType.BUY_TO_OPEN, quantity=2, book_cost=Decimal("-300")))
    return reconciler


def test_record_expiration_closes_short_call(short_call):
    service = PositionActionService(short_call)

    result = service.record_expiration("pos-1", date(2018, 5, 18))

    assert result.status == ActionStatus.EXECUTED
    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.trade_type == TradeType.EXPIRATION
    assert trade.quantity == 1
    assert trade.book_cost == 0
    assert trade.notes == "Expired worthless"
    assert trade.position_id == "pos-1"

    position = result.position
    assert position.status == PositionStatus.EXPIRED
    assert position.net_quantity == 0
    assert position.close_date == date(2018, 5, 18)
    assert position.realized_pl == Decimal("122.50")


def test_record_assignment_charges_fees(short_call):
    service = PositionActionService(short_call)

    result = service.record_assignment("pos-1", date(2018, 5, 18), fees=Decimal("5"))

    assert result.status == ActionStatus.EXECUTED
    assert result.trades[0].trade_type == TradeType.ASSIGNMENT
    assert result.trades[0].book_cost == Decimal("-5")
    assert result.trades[0].fees == Decimal("5")
    assert result.position.status == PositionStatus.ASSIGNED
    assert result.position.realized_pl == Decimal("117.50")


def test_record_assignment_without_fees(short_call):
    result = PositionActionService(short_call).record_assignment("pos-1", date(2018, 5, 18))

    assert result.trades[0].fees is None
    assert result.position.realized_pl == Decimal("122.50")


def test_roll_short_call_up_and_out(short_call):
    service = PositionActionService(short_call)

    result = service.roll_position(
        "pos-1",
        date(2018, 5, 10),
        new_strike=Decimal("80"),
        new_expiration=date(2018, 6, 15),
        close_premium=Decimal("0.50"),
        open_premium=Decimal("1.00"),
        quantity=1,
        fees=Decimal("2"),
    )

    assert result.status == ActionStatus.EXECUTED
    closing, opening = result.trades
    assert closing.trade_type == TradeType.BUY_TO_CLOSE
    assert closing.book_cost == Decimal("-51")
    assert closing.fees == Decimal("1")
    assert opening.trade_type == TradeType.SELL_TO_OPEN
    assert opening.book_cost == Decimal("99")
    assert opening.strike_price == Decimal("80")
    assert opening.expiration_date == date(2018, 6, 15)

    old = short_call.get_position_by_id("pos-1")
    assert old.status == PositionStatus.CLOSED
    assert old.realized_pl == Decimal("71.50")

    new = result.position
    assert new.id != "pos-1"
    assert new.strike_price == Decimal("80")
    assert new.status == PositionStatus.OPEN
    assert new.net_quantity == -1
    assert new.total_premium == Decimal("99")


def test_partial_roll_of_long_position(long_calls):
    service = PositionActionService(long_calls)

    result = service.roll_position(
        "pos-1",
        date(2018, 5, 1),
        new_strike=Decimal("75"),
        new_expiration=date(2018, 6, 15),
        close_premium=Decimal("2.00"),
        open_premium=Decimal("1.50"),
        quantity=1,
    )

    closing, opening = result.trades
    assert closing.trade_type == TradeType.SELL_TO_CLOSE
    assert closing.book_cost == Decimal("200")
    assert closing.fees is None
    assert opening.trade_type == TradeType.BUY_TO_OPEN
    assert opening.book_cost == Decimal("-150")

    old = long_calls.get_position_by_id("pos-1")
    assert old.status == PositionStatus.OPEN
    assert old.net_quantity == 1
    assert result.position.net_quantity == 1
    assert result.position.total_premium == Decimal("-150")


def test_unknown_position_is_rejected(short_call):
    result = PositionActionService(short_call).record_expiration("pos-99", date(2018, 5, 18))

    assert result.status == ActionStatus.REJECTED
    assert result.rejection_reason == ActionRejectionReason.POSITION_NOT_FOUND
    assert result.trades == []
    assert len(short_call.get_trades()) == 1


def test_closed_position_is_rejected(short_call, make_trade):
    short_call.add_trade(make_trade(
        transaction_date=date(2018, 5, 1), trade_type=TradeType.BUY_TO_CLOSE, book_cost=Decimal("-50")
    ))
    service = PositionActionService(short_call)

    for result in (
        service.record_expiration("pos-1", date(2018, 5, 18)),
        service.record_assignment("pos-1", date(2018, 5, 18)),
    ):
        assert result.status == ActionStatus.REJECTED
        assert result.rejection_reason == ActionRejectionReason.POSITION_NOT_OPEN
    assert len(short_call.get_trades()) == 2


@pytest.mark.parametrize("quantity", [0, -1, 3])
def test_roll_rejects_invalid_quantity(long_calls, quantity):
    result = PositionActionService(long_calls).roll_position(
        "pos-1",
        date(2018, 5, 1),
        new_strike=Decimal("80"),
        new_expiration=date(2018, 6, 15),
        close_premium=Decimal("2.00"),
        open_premium=Decimal("1.50"),
        quantity=quantity,
    )

    assert result.status == ActionStatus.REJECTED
    assert result.rejection_reason == ActionRejectionReason.INVALID_QUANTITY
    assert len(long_calls.get_trades()) == 1


def test_multiplier_scales_book_cost(short_call):
    result = PositionActionService(short_call, multiplier=10).roll_position(
        "pos-1",
        date(2018, 5, 10),
        new_strike=Decimal("80"),
        new_expiration=date(2018, 6, 15),
        close_premium=Decimal("0.50"),
        open_premium=Decimal("1.00"),
        quantity=1,
    )
    assert [t.book_cost for t in result.trades] == [Decimal("-5.00"), Decimal("10.00")]


def test_rolling_worthless_long_books_fees_as_cost(long_calls):
    result = PositionActionService(long_calls).roll_position(
        "pos-1",
        date(2018, 5, 1),
        new_strike=Decimal("75"),
        new_expiration=date(2018, 6, 15),
        close_premium=Decimal("0"),
        open_premium=Decimal("1.50"),
        quantity=2,
        fees=Decimal("2"),
    )

    closing, opening = result.trades
    assert closing.trade_type == TradeType.SELL_TO_CLOSE
    assert closing.book_cost == Decimal("-1")
    assert opening.book_cost == Decimal("-301")

    old = long_calls.get_position_by_id("pos-1")
    assert old.status == PositionStatus.CLOSED
    assert old.realized_pl == Decimal("-301")
