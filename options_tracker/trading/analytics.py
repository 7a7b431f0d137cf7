"""Performance analytics for options positions."""

import copy
import csv
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from .marks import IMarkProvider
from .models import Position, Trade

DEFAULT_MULTIPLIER = 100


@dataclass
class PerformanceMetrics:
    """Performance metrics over closed positions.

    Attributes:
        win_rate: Fraction of closed positions with positive realized P&L (0-1)
        average_profit: Mean realized P&L of winning positions
        average_loss: Mean magnitude of realized P&L of non-winning positions
        profit_factor: Total profit / total loss magnitude (Infinity if no losses)
        total_profit_loss: Total profit minus total loss magnitude
        closed_positions: Number of closed positions considered
        winning_positions: Number of closed positions with positive P&L
    """
    win_rate: Decimal
    average_profit: Decimal
    average_loss: Decimal
    profit_factor: Decimal
    total_profit_loss: Decimal
    closed_positions: int = 0
    winning_positions: int = 0


class IPerformanceAnalytics(ABC):
    """Interface for performance analytics operations."""

    @abstractmethod
    def calculate_metrics(self, positions: Iterable[Position]) -> PerformanceMetrics:
        """Calculate performance metrics from positions.

        Args:
            positions: Positions to analyse; open positions are ignored

        Returns:
            PerformanceMetrics with calculated values
        """
        ...

    @abstractmethod
    def calculate_unrealized_pl(
        self, position: Position, mark: Decimal, multiplier: int = DEFAULT_MULTIPLIER
    ) -> Decimal:
        """Calculate unrealized P&L for an open position at a given mark.

        Args:
            position: Open position
            mark: Current per-share option price
            multiplier: Shares per contract

        Returns:
            Unrealized profit/loss (can be negative)
        """
        ...

    @abstractmethod
    def mark_positions(
        self,
        positions: Iterable[Position],
        provider: IMarkProvider,
        multiplier: int = DEFAULT_MULTIPLIER,
    ) -> List[Position]:
        """Copy positions, filling unrealized P&L on open ones that have a mark.

        Args:
            positions: Positions to mark
            provider: Source of per-share option marks
            multiplier: Shares per contract

        Returns:
            New list of position copies
        """
        ...

    @abstractmethod
    def export_trades_to_csv(self, trades: List[Trade], filepath: str) -> None:
        """Export trade history to CSV file.

        Args:
            trades: List of trades to export
            filepath: Path to output CSV file
        """
        ...

    @abstractmethod
    def export_positions_to_csv(self, positions: List[Position], filepath: str) -> None:
        """Export positions to CSV file.

        Args:
            positions: List of positions to export
            filepath: Path to output CSV file
        """
        ...

    @abstractmethod
    def sort_trades_by_date(self, trades: List[Trade], descending: bool = True) -> List[Trade]:
        """Sort trades by transaction date.

        Args:
            trades: List of trades to sort
            descending: If True, most recent first (default)

        Returns:
            Sorted list of trades
        """
        ...


class PerformanceAnalytics(IPerformanceAnalytics):
    """Concrete implementation of performance analytics.

    Works on realized P&L of closed, expired and assigned positions.
    """

    def calculate_metrics(self, positions: Iterable[Position]) -> PerformanceMetrics:
        """Calculate performance metrics for all closed positions.

        Args:
            positions: Positions to analyse

        Returns:
            PerformanceMetrics; all zero when nothing is closed
        """
        zero = Decimal("0")
        results = [p.realized_pl or zero for p in positions if not p.is_open]

        if not results:
            return PerformanceMetrics(
                win_rate=zero,
                average_profit=zero,
                average_loss=zero,
                profit_factor=zero,
                total_profit_loss=zero,
            )

        winners = [pl for pl in results if pl > zero]
        losers = [pl for pl in results if pl <= zero]

        total_profit = sum(winners, zero)
        total_loss = abs(sum(losers, zero))

        win_rate = Decimal(len(winners)) / Decimal(len(results))
        average_profit = total_profit / len(winners) if winners else zero
        average_loss = total_loss / len(losers) if losers else zero

        if total_loss > zero:
            profit_factor = total_profit / total_loss
        elif total_profit > zero:
            profit_factor = Decimal("Infinity")
        else:
            profit_factor = zero

        return PerformanceMetrics(
            win_rate=win_rate,
            average_profit=average_profit,
            average_loss=average_loss,
            profit_factor=profit_factor,
            total_profit_loss=total_profit - total_loss,
            closed_positions=len(results),
            winning_positions=len(winners),
        )

    def calculate_unrealized_pl(
        self, position: Position, mark: Decimal, multiplier: int = DEFAULT_MULTIPLIER
    ) -> Decimal:
        """Calculate unrealized P&L for an open position at a given mark.

        Net premium already collected plus the market value of the contracts
        still held (negative for short contracts, which must be bought back).
        """
        market_value = Decimal(position.net_quantity) * mark * multiplier
        return position.total_premium + market_value

    def mark_positions(
        self,
        positions: Iterable[Position],
        provider: IMarkProvider,
        multiplier: int = DEFAULT_MULTIPLIER,
    ) -> List[Position]:
        """Fill unrealized_pl on copies of open positions.

        Positions without an available mark keep unrealized_pl unset;
        positions that are not open are returned unchanged.

        Args:
            positions: Positions to mark
            provider: Source of per-share option marks
            multiplier: Shares per contract

        Returns:
            New list of position copies
        """
        marked: List[Position] = []
        for position in positions:
            position = copy.deepcopy(position)
            if position.holds_contracts:
                mark: Optional[Decimal] = provider.get_mark(position.key)
                if mark is not None:
                    position.unrealized_pl = self.calculate_unrealized_pl(position, mark, multiplier)
            marked.append(position)
        return marked

    def sort_trades_by_date(self, trades: List[Trade], descending: bool = True) -> List[Trade]:
        """Sort trades by transaction date, keeping same-day insertion order."""
        return sorted(trades, key=lambda t: t.transaction_date, reverse=descending)

    def export_trades_to_csv(self, trades: List[Trade], filepath: str) -> None:
        """Export trade history to CSV file."""
        fieldnames = [
            "id", "position_id", "transaction_date", "trade_type", "symbol",
            "contract_type", "quantity", "expiration_date", "strike_price",
            "premium", "book_cost", "commission", "fees", "status", "notes",
        ]

        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
            writer.writeheader()

            for trade in trades:
                writer.writerow({
                    "id": trade.id,
                    "position_id": trade.position_id or "",
                    "transaction_date": trade.transaction_date.isoformat(),
                    "trade_type": trade.trade_type.value,
                    "symbol": trade.symbol,
                    "contract_type": trade.contract_type.value,
                    "quantity": trade.quantity,
                    "expiration_date": trade.expiration_date.isoformat(),
                    "strike_price": str(trade.strike_price),
                    "premium": str(trade.premium),
                    "book_cost": str(trade.book_cost),
                    "commission": "" if trade.commission is None else str(trade.commission),
                    "fees": "" if trade.fees is None else str(trade.fees),
                    "status": trade.status.value,
                    "notes": trade.notes,
                })

    def export_positions_to_csv(self, positions: List[Position], filepath: str) -> None:
        """Export positions to CSV file."""
        fieldnames = [
            "id", "symbol", "strike_price", "expiration_date", "contract_type",
            "strategy", "status", "open_date", "close_date", "net_quantity",
            "total_premium", "total_commission", "total_fees", "realized_pl",
            "unrealized_pl", "trade_count",
        ]

        with open(filepath, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
            writer.writeheader()

            for position in positions:
                writer.writerow({
                    "id": position.id,
                    "symbol": position.symbol,
                    "strike_price": str(position.strike_price),
                    "expiration_date": position.expiration_date.isoformat(),
                    "contract_type": position.contract_type.value,
                    "strategy": position.strategy.value,
                    "status": position.status.value,
                    "open_date": position.open_date.isoformat(),
                    "close_date": position.close_date.isoformat() if position.close_date else "",
                    "net_quantity": position.net_quantity,
                    "total_premium": str(position.total_premium),
                    "total_commission": str(position.total_commission),
                    "total_fees": str(position.total_fees),
                    "realized_pl": "" if position.realized_pl is None else str(position.realized_pl),
                    "unrealized_pl": "" if position.unrealized_pl is None else str(position.unrealized_pl),
                    "trade_count": position.trade_count,
                })
