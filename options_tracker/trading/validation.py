"""Validation of raw trade records at the ingestion boundary.

Trade records arrive as loosely typed dictionaries from manual entry forms,
AI document extraction, or stored JSON. The validator turns them into typed
``Trade`` values or reports every problem it finds at once.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, List, Mapping, Optional, Type

from .models import ContractType, Trade, TradeStatus, TradeType

logger = logging.getLogger(__name__)

# Plain decimal literal: optional sign, digits, optional fraction. No grouping
# separators, exponents or currency symbols.
_NUMERIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")

REQUIRED_FIELDS = (
    "transaction_date",
    "trade_type",
    "symbol",
    "contract_type",
    "quantity",
    "expiration_date",
    "strike_price",
    "premium",
    "book_cost",
    "status",
)


@dataclass(frozen=True)
class FieldError:
    """A single validation failure."""
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class TradeValidationError(ValueError):
    """Raised when a trade record cannot be converted into a Trade."""

    def __init__(self, errors: List[FieldError]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))


class TradeValidator:
    """Validates and parses raw trade records.

    Field names follow the Trade dataclass (snake_case).
    """

    def validate(self, record: Mapping[str, Any]) -> List[FieldError]:
        """Check a record without building a Trade.

        Args:
            record: Raw trade record

        Returns:
            List of field errors, empty when the record is valid
        """
        errors: List[FieldError] = []
        self._convert(record, errors)
        return errors

    def parse(self, record: Mapping[str, Any]) -> Trade:
        """Convert a raw record into a Trade.

        Args:
            record: Raw trade record

        Returns:
            Typed Trade (without id or position_id unless the record has an id)

        Raises:
            TradeValidationError: If any field is missing or malformed
        """
        errors: List[FieldError] = []
        trade = self._convert(record, errors)
        if errors or trade is None:
            raise TradeValidationError(errors)
        return trade

    def _convert(self, record: Mapping[str, Any], errors: List[FieldError]) -> Optional[Trade]:
        if not isinstance(record, Mapping):
            errors.append(FieldError("record", "must be a mapping"))
            return None

        for name in REQUIRED_FIELDS:
            if record.get(name) is None:
                errors.append(FieldError(name, "is required"))
        if errors:
            return None

        transaction_date = self._parse_date(record, "transaction_date", errors)
        expiration_date = self._parse_date(record, "expiration_date", errors)
        trade_type = self._parse_enum(record, "trade_type", TradeType, errors)
        contract_type = self._parse_enum(record, "contract_type", ContractType, errors)
        status = self._parse_enum(record, "status", TradeStatus, errors)
        symbol = self._parse_symbol(record, errors)
        quantity = self._parse_quantity(record, errors)
        strike_price = self._parse_decimal(record, "strike_price", errors, non_negative=True)
        premium = self._parse_decimal(record, "premium", errors, non_negative=True)
        book_cost = self._parse_decimal(record, "book_cost", errors)
        commission = self._parse_optional_decimal(record, "commission", errors)
        fees = self._parse_optional_decimal(record, "fees", errors)

        # Assignment/expiration markers may carry no contracts
        if quantity == 0 and trade_type is not None and not trade_type.is_terminal:
            errors.append(FieldError("quantity", "must not be zero"))

        notes = record.get("notes") or ""
        if not isinstance(notes, str):
            errors.append(FieldError("notes", "must be text"))

        trade_id = record.get("id")
        if trade_id is not None and (isinstance(trade_id, bool) or not isinstance(trade_id, int) or trade_id <= 0):
            errors.append(FieldError("id", "must be a positive integer"))

        if errors:
            return None

        return Trade(
            transaction_date=transaction_date,
            trade_type=trade_type,
            symbol=symbol,
            contract_type=contract_type,
            quantity=quantity,
            expiration_date=expiration_date,
            strike_price=strike_price,
            premium=premium,
            book_cost=book_cost,
            commission=commission,
            fees=fees,
            status=status,
            notes=notes,
            id=trade_id,
        )

    @staticmethod
    def _parse_date(record: Mapping[str, Any], name: str, errors: List[FieldError]) -> Optional[date]:
        value = record[name]
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip()[:10])
            except ValueError:
                pass
        errors.append(FieldError(name, f"expected an ISO date (YYYY-MM-DD), got {value!r}"))
        return None

    @staticmethod
    def _parse_enum(
        record: Mapping[str, Any], name: str, enum_cls: Type[Enum], errors: List[FieldError]
    ) -> Optional[Any]:
        value = record[name]
        if isinstance(value, enum_cls):
            return value
        if isinstance(value, str):
            try:
                return enum_cls[value.strip().upper()]
            except KeyError:
                pass
        allowed = ", ".join(m.name for m in enum_cls)
        errors.append(FieldError(name, f"must be one of {allowed}, got {value!r}"))
        return None

    @staticmethod
    def _parse_symbol(record: Mapping[str, Any], errors: List[FieldError]) -> Optional[str]:
        value = record["symbol"]
        if not isinstance(value, str) or not value.strip():
            errors.append(FieldError("symbol", "must be a non-empty ticker"))
            return None
        return value.strip().upper()

    def _parse_quantity(self, record: Mapping[str, Any], errors: List[FieldError]) -> Optional[int]:
        value = self._to_decimal(record["quantity"])
        if value is None:
            errors.append(FieldError("quantity", f"must be a number, got {record['quantity']!r}"))
            return None
        if value != value.to_integral_value():
            errors.append(FieldError("quantity", "must be a whole number of contracts"))
            return None
        if value < 0:
            # Legacy records store sales as negative quantities
            logger.debug(f"Normalising negative quantity {value} to its magnitude")
        return abs(int(value))

    def _parse_decimal(
        self,
        record: Mapping[str, Any],
        name: str,
        errors: List[FieldError],
        non_negative: bool = False,
    ) -> Optional[Decimal]:
        raw = record[name]
        value = self._to_decimal(raw)
        if value is None:
            errors.append(FieldError(name, f"must be a number, got {raw!r}"))
            return None
        if non_negative and value < 0:
            errors.append(FieldError(name, "must not be negative"))
            return None
        return value

    def _parse_optional_decimal(
        self, record: Mapping[str, Any], name: str, errors: List[FieldError]
    ) -> Optional[Decimal]:
        if record.get(name) is None:
            return None
        return self._parse_decimal(record, name, errors, non_negative=True)

    @staticmethod
    def _to_decimal(value: Any) -> Optional[Decimal]:
        """Convert int/float/Decimal/plain numeric string, rejecting bools and non-finite values."""
        if isinstance(value, bool):
            return None
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, int):
            result = Decimal(value)
        elif isinstance(value, float):
            result = Decimal(str(value))
        elif isinstance(value, str) and _NUMERIC_RE.match(value.strip()):
            try:
                result = Decimal(value.strip())
            except InvalidOperation:
                return None
        else:
            return None
        if not result.is_finite():
            return None
        return result
