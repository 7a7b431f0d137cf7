from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

import httpx

from options_tracker.trading.marks import IMarkProvider
from options_tracker.trading.models import ContractKey


@dataclass
class OptionQuote:
    key: ContractKey
    bid: Optional[Decimal]
    ask: Optional[Decimal]
    last: Optional[Decimal]
    ts: datetime

    @property
    def mark(self) -> Optional[Decimal]:
        """Bid/ask midpoint when both sides are quoted, else last trade."""
        if self.bid is not None and self.ask is not None and self.ask > 0:
            return (self.bid + self.ask) / 2
        return self.last


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


class HttpMarkProvider(IMarkProvider):
    """Option marks from a JSON quote endpoint.

    Expects ``GET {base_url}/quotes?symbol=&expiration=&strike=&type=`` to
    answer with an object carrying ``bid``, ``ask`` and/or ``last``.
    """

    def __init__(self, base_url: str, timeout_s: float = 5.0) -> None:
        self._client = httpx.Client(base_url=base_url, timeout=timeout_s)
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def fetch_quote(self, key: ContractKey) -> OptionQuote:
        params = {
            "symbol": key.symbol,
            "expiration": key.expiration_date.isoformat(),
            "strike": str(key.strike_price),
            "type": key.contract_type.value,
        }
        with self._lock:
            r = self._client.get("/quotes", params=params)
        r.raise_for_status()
        item = r.json() or {}
        return OptionQuote(
            key=key,
            bid=_to_decimal(item.get("bid")),
            ask=_to_decimal(item.get("ask")),
            last=_to_decimal(item.get("last")),
            ts=datetime.now(),
        )

    def fetch(self, keys: Iterable[ContractKey]) -> Dict[ContractKey, OptionQuote]:
        out: Dict[ContractKey, OptionQuote] = {}
        last_err: Exception | None = None
        for key in keys:
            try:
                out[key] = self.fetch_quote(key)
            except (httpx.HTTPError, ValueError) as e:
                last_err = e
                continue
        if not out and last_err:
            raise last_err
        return out

    def get_mark(self, key: ContractKey) -> Optional[Decimal]:
        try:
            return self.fetch_quote(key).mark
        except (httpx.HTTPError, ValueError):
            return None
