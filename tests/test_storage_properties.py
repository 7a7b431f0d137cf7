"""Property-based tests for storage module.

Tests the storage and trade repository round-trip properties using Hypothesis.
"""

from __future__ import annotations

import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict

import pytest
from hypothesis import given, settings, strategies as st

from options_tracker.config import (
    DATA_DIR_ENV_VAR,
    SETTINGS_STORAGE_KEY,
    TrackerSettings,
    load_settings,
    save_settings,
)
from options_tracker.storage import JsonFileStorage, TradeRepository
from options_tracker.trading.models import ContractType, Trade, TradeStatus, TradeType
from options_tracker.trading.reconciler import PositionReconciler, TradeSerializer
from options_tracker.trading.validation import TradeValidationError


decimal_strategy = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False
)


@st.composite
def trade_strategy(draw):
    """Generate a fully populated trade, including optional fields."""
    return Trade(
        transaction_date=draw(st.dates(min_value=date(2015, 1, 1), max_value=date(2030, 12, 31))),
        trade_type=draw(st.sampled_from(list(TradeType))),
        symbol=draw(st.sampled_from(["GILD", "AAPL", "SPY", "QQQ"])),
        contract_type=draw(st.sampled_from(list(ContractType))),
        quantity=draw(st.integers(min_value=1, max_value=500)),
        expiration_date=draw(st.dates(min_value=date(2015, 1, 1), max_value=date(2030, 12, 31))),
        strike_price=draw(decimal_strategy),
        premium=draw(decimal_strategy),
        book_cost=draw(st.decimals(min_value=Decimal("-100000"), max_value=Decimal("100000"), places=2)),
        commission=draw(st.one_of(st.none(), decimal_strategy)),
        fees=draw(st.one_of(st.none(), decimal_strategy)),
        status=draw(st.sampled_from(list(TradeStatus))),
        notes=draw(st.text(max_size=40)),
    )


@given(trades=st.lists(trade_strategy(), min_size=0, max_size=15))
@settings(max_examples=100)
def test_trade_set_round_trip(trades):
    """
    For any trade set, saving through the repository and loading it back
    SHALL produce the same trades, ids included.
    """
    reconciler = PositionReconciler()
    reconciler.add_trades(trades)
    stored = reconciler.get_trades()

    with tempfile.TemporaryDirectory() as tmpdir:
        repository = TradeRepository(JsonFileStorage(tmpdir))
        repository.save_trades("alice", stored)
        loaded = repository.load_trades("alice")

    assert len(loaded) == len(stored)
    for original, restored in zip(stored, loaded):
        assert restored.id == original.id
        # position_id is derived and not persisted
        assert restored.position_id is None
        original.position_id = None
        assert restored == original


def test_reloaded_trades_rebuild_same_positions(make_trade):
    reconciler = PositionReconciler()
    reconciler.add_trades([
        make_trade(),
        make_trade(transaction_date=date(2018, 5, 10), trade_type=TradeType.BUY_TO_CLOSE, book_cost=Decimal("-52.50")),
        make_trade(symbol="AAPL"),
    ])

    restored = PositionReconciler(TradeSerializer.deserialize(TradeSerializer.serialize(reconciler.get_trades())))
    assert restored.get_positions() == reconciler.get_positions()


def test_repository_isolates_users(make_trade):
    with tempfile.TemporaryDirectory() as tmpdir:
        repository = TradeRepository(JsonFileStorage(tmpdir))
        repository.save_trades("alice", [make_trade(id=1)])

        assert repository.load_trades("bob") == []
        assert len(repository.load_trades("alice")) == 1

        repository.delete_trades("alice")
        assert repository.load_trades("alice") == []


def test_repository_rejects_malformed_stored_records():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        storage.save(TradeRepository.key_for("alice"), {"trades": [{"symbol": "GILD"}]})

        with pytest.raises(TradeValidationError):
            TradeRepository(storage).load_trades("alice")


@given(key=st.text(min_size=1, max_size=50, alphabet=st.characters(whitelist_categories=('L', 'N'))))
@settings(max_examples=100)
def test_storage_delete_removes_data(key: str):
    """Test that delete properly removes stored data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        test_data = {"test": "value"}

        storage.save(key, test_data)
        assert storage.load(key) == test_data
        assert key in storage.keys()

        storage.delete(key)

        assert storage.load(key) is None
        assert storage.keys() == []


def test_storage_load_nonexistent_returns_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        assert storage.load("nonexistent_key") is None


def test_storage_load_corrupted_returns_none():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        (Path(tmpdir) / "broken.json").write_text("{not json", encoding="utf-8")
        assert storage.load("broken") is None


def test_storage_save_unserializable_leaves_previous_value():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        storage.save("data", {"v": 1})

        with pytest.raises(TypeError):
            storage.save("data", {"v": object()})

        assert storage.load("data") == {"v": 1}
        assert storage.keys() == ["data"]


def test_settings_defaults_when_nothing_stored(monkeypatch):
    monkeypatch.setenv(DATA_DIR_ENV_VAR, "/tmp/options-data")
    with tempfile.TemporaryDirectory() as tmpdir:
        settings_ = load_settings(JsonFileStorage(tmpdir))

    assert settings_.executed_only is True
    assert settings_.contract_multiplier == 100
    assert settings_.data_dir == "/tmp/options-data"
    assert settings_.mark_source_url is None


def test_settings_round_trip():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        original = TrackerSettings(
            executed_only=False,
            contract_multiplier=10,
            data_dir=tmpdir,
            mark_source_url="https://quotes.example",
        )
        save_settings(storage, original)

        assert storage.load(SETTINGS_STORAGE_KEY)["contract_multiplier"] == 10
        assert load_settings(storage) == original


def test_invalid_stored_settings_fall_back_to_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)
        storage.save(SETTINGS_STORAGE_KEY, {"contract_multiplier": "lots"})

        assert load_settings(storage).contract_multiplier == 100


def _as_dict(settings_: TrackerSettings) -> Dict[str, Any]:
    return settings_.to_dict()


def test_settings_to_dict_has_all_fields():
    assert set(_as_dict(TrackerSettings())) == {
        "executed_only", "contract_multiplier", "data_dir", "mark_source_url",
    }


@pytest.mark.parametrize("stored", ["false", "no", 0, None])
def test_executed_only_must_be_a_real_boolean(stored):
    with pytest.raises(ValueError):
        TrackerSettings.from_dict({"executed_only": stored})


def test_stored_false_is_honoured_and_text_is_rejected():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = JsonFileStorage(tmpdir)

        storage.save(SETTINGS_STORAGE_KEY, {"executed_only": False, "contract_multiplier": 10})
        assert load_settings(storage).executed_only is False

        storage.save(SETTINGS_STORAGE_KEY, {"executed_only": "false", "contract_multiplier": 10})
        fallback = load_settings(storage)
        assert fallback.executed_only is True
        assert fallback.contract_multiplier == 100
