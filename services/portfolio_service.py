"""
Portfolio Aggregator - read-side P&L derivation

Pure functions of position rows plus an optional {symbol: price} map from the
market data client. Nothing here touches the database.

Price precedence per position: live price, then stored current_price, then buy_price.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from config import Config
from models import PositionStatus, PositionType
from utils.decimal_precision import MonetaryDecimal

logger = logging.getLogger(__name__)

UNIFORM = "uniform"
DIRECTIONAL = "directional"
PNL_CONVENTIONS = (UNIFORM, DIRECTIONAL)


@dataclass
class PositionValuation:
    position_id: str
    symbol: str
    coin_name: str
    position_type: str
    amount: Decimal
    buy_price: Decimal
    price: Decimal
    value: Decimal
    pnl: Decimal
    pnl_percent: Decimal

    @property
    def is_profit(self) -> bool:
        return self.pnl >= 0


@dataclass
class PortfolioSummary:
    total_value: Decimal = Decimal("0")
    total_pnl: Decimal = Decimal("0")
    pnl_percent: Decimal = Decimal("0")
    open_positions: int = 0
    valuations: List[PositionValuation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_value": self.total_value,
            "total_pnl": self.total_pnl,
            "pnl_percent": self.pnl_percent,
            "open_positions": self.open_positions,
            "positions": [vars(v) for v in self.valuations],
        }


class PortfolioAggregator:
    """Values open positions and sums them into a portfolio summary"""

    def __init__(self, convention: Optional[str] = None):
        convention = (convention or Config.SHORT_PNL_CONVENTION or UNIFORM).lower()
        if convention not in PNL_CONVENTIONS:
            raise ValueError(f"Unknown P&L convention '{convention}'")
        self.convention = convention

    @staticmethod
    def effective_price(position, live_prices: Optional[Dict[str, Decimal]] = None) -> Decimal:
        if live_prices:
            live = live_prices.get((position.symbol or "").upper())
            if live is not None:
                live_price = MonetaryDecimal.coerce(live, "live price")
                if live_price > 0:
                    return live_price
        if position.current_price is not None:
            return MonetaryDecimal.coerce(position.current_price, "current price")
        return MonetaryDecimal.coerce(position.buy_price, "buy price")

    def position_pnl(self, position, price: Decimal) -> Decimal:
        """Profit/loss for one position at the given price"""
        buy_price = MonetaryDecimal.coerce(position.buy_price, "buy price")
        amount = MonetaryDecimal.coerce(position.amount, "amount")
        move = price - buy_price
        if self.convention == DIRECTIONAL and position.position_type == PositionType.SHORT.value:
            move = -move
        return MonetaryDecimal.multiply_precise(move, amount)

    def value_position(self, position, live_prices: Optional[Dict[str, Decimal]] = None) -> PositionValuation:
        price = self.effective_price(position, live_prices)
        amount = MonetaryDecimal.coerce(position.amount, "amount")
        buy_price = MonetaryDecimal.coerce(position.buy_price, "buy price")
        pnl = self.position_pnl(position, price)
        cost = MonetaryDecimal.multiply_precise(buy_price, amount)

        return PositionValuation(
            position_id=position.id,
            symbol=position.symbol,
            coin_name=position.coin_name,
            position_type=position.position_type,
            amount=amount,
            buy_price=buy_price,
            price=price,
            value=MonetaryDecimal.multiply_precise(price, amount),
            pnl=pnl,
            pnl_percent=MonetaryDecimal.percentage_of(pnl, cost),
        )

    def summarize(self, positions: Iterable, live_prices: Optional[Dict[str, Decimal]] = None) -> PortfolioSummary:
        """
        Aggregate open positions.

        pnl_percent = total_pnl / (total_value - total_pnl) * 100, and 0 when
        total_value does not exceed total_pnl (no cost basis to divide by).
        """
        summary = PortfolioSummary()
        for position in positions:
            if position.status != PositionStatus.OPEN.value:
                continue
            valuation = self.value_position(position, live_prices)
            summary.valuations.append(valuation)
            summary.total_value += valuation.value
            summary.total_pnl += valuation.pnl

        summary.open_positions = len(summary.valuations)
        if summary.total_value > summary.total_pnl:
            summary.pnl_percent = MonetaryDecimal.percentage_of(
                summary.total_pnl, summary.total_value - summary.total_pnl
            )

        logger.debug(
            f"📊 PORTFOLIO_SUMMARY: {summary.open_positions} open, value {summary.total_value}, pnl {summary.total_pnl}"
        )
        return summary
