"""Data models for options trade tracking."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, NamedTuple, Optional


class TradeType(str, Enum):
    """Kind of trade leg as reported on a brokerage statement."""
    BUY_TO_OPEN = "BUY_TO_OPEN"
    SELL_TO_OPEN = "SELL_TO_OPEN"
    BUY_TO_CLOSE = "BUY_TO_CLOSE"
    SELL_TO_CLOSE = "SELL_TO_CLOSE"
    ASSIGNMENT = "ASSIGNMENT"
    EXPIRATION = "EXPIRATION"

    @property
    def is_opening(self) -> bool:
        return self.value.endswith("_TO_OPEN")

    @property
    def is_closing(self) -> bool:
        return self.value.endswith("_TO_CLOSE")

    @property
    def is_terminal(self) -> bool:
        """True for assignment and expiration, which flatten a position."""
        return self in (TradeType.ASSIGNMENT, TradeType.EXPIRATION)

    @property
    def sign(self) -> int:
        """Cash direction: +1 for credits (sells), -1 for debits (buys), 0 otherwise."""
        if self.value.startswith("SELL"):
            return 1
        if self.value.startswith("BUY"):
            return -1
        return 0


class ContractType(str, Enum):
    CALL = "CALL"
    PUT = "PUT"


class TradeStatus(str, Enum):
    EXECUTED = "EXECUTED"
    CANCELLED = "CANCELLED"
    PENDING = "PENDING"


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"
    ASSIGNED = "ASSIGNED"


class Strategy(str, Enum):
    SINGLE_LEG = "SINGLE_LEG"
    COVERED_CALL = "COVERED_CALL"
    CASH_SECURED_PUT = "CASH_SECURED_PUT"
    VERTICAL_SPREAD = "VERTICAL_SPREAD"
    IRON_CONDOR = "IRON_CONDOR"


class ContractKey(NamedTuple):
    """Identity of an option contract; one position exists per key."""
    symbol: str
    expiration_date: date
    strike_price: Decimal
    contract_type: ContractType

    def __str__(self) -> str:
        return (
            f"{self.symbol}|{self.expiration_date.isoformat()}|"
            f"{self.strike_price}|{self.contract_type.value}"
        )


@dataclass
class Trade:
    """Represents a single executed (or recorded) option trade leg.

    Attributes:
        transaction_date: Date the trade executed
        trade_type: Opening/closing direction or terminal event
        symbol: Underlying ticker (uppercase)
        contract_type: CALL or PUT
        quantity: Number of contracts (always positive)
        expiration_date: Contract expiration date
        strike_price: Contract strike price
        premium: Price per contract, non-negative
        book_cost: Signed cash effect including fees (negative = paid)
        commission: Optional commission charged
        fees: Optional regulatory/exchange fees
        status: Execution status; only EXECUTED trades count by default
        notes: Free text
        id: Identifier assigned by the reconciler
        position_id: Owning position, recomputed on every reconciliation
    """
    transaction_date: date
    trade_type: TradeType
    symbol: str
    contract_type: ContractType
    quantity: int
    expiration_date: date
    strike_price: Decimal
    premium: Decimal
    book_cost: Decimal
    commission: Optional[Decimal] = None
    fees: Optional[Decimal] = None
    status: TradeStatus = TradeStatus.EXECUTED
    notes: str = ""
    id: Optional[int] = None
    position_id: Optional[str] = None

    @property
    def contract_key(self) -> ContractKey:
        return ContractKey(
            self.symbol, self.expiration_date, self.strike_price, self.contract_type
        )


@dataclass
class Position:
    """Lifecycle of all trades on one contract identity.

    Positions are derived; the reconciler rebuilds them from the trade set
    after every mutation and callers never edit them directly.

    Attributes:
        id: Identifier stable for as long as the contract identity has trades
        symbol, strike_price, expiration_date, contract_type: Contract identity
        open_date: Date of the first trade in execution order
        strategy: Classification tag, SINGLE_LEG unless set upstream
        status: OPEN while net_quantity is nonzero, otherwise a terminal state
        close_date: Date of the trade that flattened the position
        trades: Constituent trades in chronological order
        net_quantity: Signed contracts held (positive = long, negative = short)
        total_premium: Net cash collected (credits minus debits)
        total_commission: Sum of commissions
        total_fees: Sum of fees
        realized_pl: Set only when the position is not OPEN
        unrealized_pl: Set only for OPEN positions marked against market data
    """
    id: str
    symbol: str
    strike_price: Decimal
    expiration_date: date
    contract_type: ContractType
    open_date: date
    strategy: Strategy = Strategy.SINGLE_LEG
    status: PositionStatus = PositionStatus.OPEN
    close_date: Optional[date] = None
    trades: List[Trade] = field(default_factory=list)
    net_quantity: int = 0
    total_premium: Decimal = Decimal("0")
    total_commission: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")
    realized_pl: Optional[Decimal] = None
    unrealized_pl: Optional[Decimal] = None

    @property
    def key(self) -> ContractKey:
        return ContractKey(
            self.symbol, self.expiration_date, self.strike_price, self.contract_type
        )

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    @property
    def holds_contracts(self) -> bool:
        """Open with a non-zero net quantity.

        False for a position whose trades are all CANCELLED/PENDING: it keeps
        OPEN status with nothing held.
        """
        return self.is_open and self.net_quantity != 0

    @property
    def trade_count(self) -> int:
        return len(self.trades)

    def days_to_expiration(self, as_of: Optional[date] = None) -> Optional[int]:
        """Calendar days until expiration while contracts are held, None otherwise."""
        if not self.holds_contracts:
            return None
        as_of = as_of or date.today()
        return (self.expiration_date - as_of).days
