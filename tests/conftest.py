from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, settings

from options_tracker.trading.models import ContractType, Trade, TradeType

# Hypothesis builds its unicode cache on the first text() draw of a fresh
# checkout, which otherwise trips the too_slow health check.
settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
settings.load_profile("default")


def build_trade(**overrides) -> Trade:
    """A GILD 75C 2018-05-18 short-call opening trade unless overridden."""
    fields = dict(
        transaction_date=date(2018, 4, 15),
        trade_type=TradeType.SELL_TO_OPEN,
        symbol="GILD",
        contract_type=ContractType.CALL,
        quantity=1,
        expiration_date=date(2018, 5, 18),
        strike_price=Decimal("75"),
        premium=Decimal("1.25"),
        book_cost=Decimal("122.50"),
    )
    fields.update(overrides)
    return Trade(**fields)


@pytest.fixture(scope="session")
def make_trade():
    return build_trade
