"""
Returns - Period returns, historical prices and position P&L.

Usage:
    engine = ReturnsEngine(accessor, db=db)
    r = await engine.period_return('AAPL', Period.ONE_MONTH)       # 0.042 == +4.2%
    p = await engine.price_at_date('AAPL', '2024-03-09')           # Saturday -> Friday
    by_stock = await engine.position_returns(portfolio_id)
    overall = await engine.overall_returns(portfolio_id)
    share = await engine.weighted_return(portfolio_id, 'AAPL')     # return x market-value weight

Period returns are fractions. Position and overall returns are money and
percent figures rounded half-up to 2 decimals for display.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from folio.analytics.grouping import GroupingEngine
from folio.database import Database
from folio.errors import (
    DivisionByZeroError,
    EntityNotFoundError,
    InvalidArgumentError,
    NoDataForPeriodError,
    NoPriceFoundError,
)
from folio.market_data import PriceBook, TimeSeriesAccessor
from folio.models import Period, PriceAtDate, PriceMatch, SeriesWindow
from folio.portfolio import PortfolioBook
from folio.settings import Settings
from folio.utils import minus_months, month_prefix, parse_date, round2

logger = logging.getLogger(__name__)


class ReturnsEngine:
    """Computes returns from market data and stored positions."""

    def __init__(
        self,
        accessor: TimeSeriesAccessor,
        db: Database | None = None,
        book: PortfolioBook | None = None,
        settings: Settings | None = None,
        grouping: GroupingEngine | None = None,
    ):
        self._accessor = accessor
        self._db = db or Database()
        self._book = book or PortfolioBook(accessor, self._db)
        self._settings = settings or Settings(self._db)
        self._grouping = grouping or GroupingEngine(accessor, self._db, book=self._book)

    # -------------------------------------------------------------------------
    # Per-symbol returns
    # -------------------------------------------------------------------------

    async def period_return(self, symbol: str, period: Period, as_of: Optional[date] = None) -> float:
        """
        Return of the current price against the period's anchor close.

        Args:
            symbol: Stock symbol
            period: YESTERDAY, ONE_WEEK, ONE_MONTH or ONE_YEAR
            as_of: Date treated as today

        Raises:
            NoDataForPeriodError: No close at or before the anchor date
            DivisionByZeroError: The anchor close is zero
        """
        period = Period.from_string(period)
        as_of = as_of or date.today()

        if period == Period.YESTERDAY:
            quote = await self._accessor.quote(symbol)
            current, anchor = quote["price"], quote["previous_close"]
            if anchor is None:
                raise NoDataForPeriodError(symbol, period.value)
        else:
            current = await self._accessor.current_price(symbol)
            anchor = await self.anchor_price(symbol, period, as_of)

        if anchor == 0:
            raise DivisionByZeroError(f"Anchor price for {symbol} over {period.value} is zero")
        return (current - anchor) / anchor

    async def anchor_price(self, symbol: str, period: Period, as_of: date) -> float:
        """Most recent close at or before the start of the period."""
        if period == Period.ONE_WEEK:
            series = await self._accessor.closing_series(symbol, SeriesWindow.DAILY_COMPACT)
            target = (as_of - timedelta(days=7)).isoformat()
            width = len(target)
        else:
            series = await self._accessor.closing_series(symbol, SeriesWindow.MONTHLY)
            months = 1 if period == Period.ONE_MONTH else 12
            target = month_prefix(minus_months(as_of, months))
            width = len(target)

        # Series are newest first, so the first hit is the most recent one
        for day, close in series.items():
            if day[:width] <= target:
                logger.debug(f"{symbol} {period.value} anchor: {day} @ {close}")
                return close
        raise NoDataForPeriodError(symbol, period.value)

    async def price_at_date(self, symbol: str, day, today: Optional[date] = None) -> PriceAtDate:
        """
        Closing price on a date, or the closest earlier trading day.

        Steps backwards through the full daily series. From a Monday the
        next date tried is the preceding Friday. A fallback match is tagged
        TODAY_UNAVAILABLE only when today, a weekday, was requested; weekend
        and holiday requests get WEEKEND_OR_HOLIDAY even when made that day.

        Raises:
            InvalidArgumentError: Malformed or future date
            NoPriceFoundError: Nothing found within the lookback limit
        """
        requested = parse_date(day)
        today = today or date.today()
        if requested > today:
            raise InvalidArgumentError(f"Date cannot be in the future: {requested}")

        limit = int(await self._settings.get("price_lookback_limit"))
        series = await self._accessor.closing_series(symbol, SeriesWindow.DAILY_FULL)

        candidate = requested
        for _ in range(limit):
            price = series.get(candidate.isoformat())
            if price is not None:
                if candidate == requested:
                    reason = PriceMatch.EXACT_MATCH
                elif requested == today and today.weekday() < 5:
                    reason = PriceMatch.TODAY_UNAVAILABLE
                else:
                    reason = PriceMatch.WEEKEND_OR_HOLIDAY
                return PriceAtDate(requested_date=requested, matched_date=candidate, price=price, reason=reason)
            candidate -= timedelta(days=3 if candidate.weekday() == 0 else 1)

        raise NoPriceFoundError(symbol, requested.isoformat(), limit)

    # -------------------------------------------------------------------------
    # Position returns
    # -------------------------------------------------------------------------

    async def position_returns(self, portfolio_id: int, prices: PriceBook | None = None) -> dict[str, dict]:
        """Unrealised P&L per symbol: {'actual_value', 'percentage'} vs. cost basis."""
        if prices is None:
            prices = PriceBook(self._accessor)
        result = {}
        for position in await self._book.positions(portfolio_id):
            price = await prices.price(position.symbol)
            actual = price * position.quantity - position.cost_basis
            result[position.symbol] = {
                "actual_value": round2(actual),
                "percentage": round2(actual / position.cost_basis * 100),
            }
        return result

    async def overall_returns(self, portfolio_id: int, prices: PriceBook | None = None) -> dict[str, float]:
        """Portfolio-wide P&L: {'overall_return', 'percentage'}. Zeros when empty."""
        positions = await self._book.positions(portfolio_id)
        if not positions:
            return {"overall_return": 0.0, "percentage": 0.0}

        by_stock = await self.position_returns(portfolio_id, prices)
        purchase_value = sum(p.cost_basis for p in positions)
        overall = sum(r["actual_value"] for r in by_stock.values())
        return {
            "overall_return": round2(overall),
            "percentage": round2(overall / purchase_value * 100),
        }

    async def weighted_return(self, portfolio_id: int, symbol: str, prices: PriceBook | None = None) -> float:
        """
        A position's contribution to portfolio return, in percent.

        The position's return against its buy price, scaled by its
        market-value weight in the portfolio.

        Raises:
            EntityNotFoundError: The symbol is not held
            EmptyPortfolioError: The positions have no market value
        """
        if prices is None:
            prices = PriceBook(self._accessor)
        symbol = symbol.upper()
        weights = await self._grouping.weights(portfolio_id, prices)
        if symbol not in weights:
            raise EntityNotFoundError("Position", f"{symbol} in portfolio #{portfolio_id}")

        position = await self._book.position(portfolio_id, symbol)
        individual = (await prices.price(symbol) - position.buy_price) / position.buy_price * 100
        return individual * weights[symbol]

    async def annualised_return(self, portfolio_id: int, symbol: str, today: Optional[date] = None) -> float:
        """Compound annual growth of a position since its buy date, in percent."""
        position = await self._book.position(portfolio_id, symbol)
        days = ((today or date.today()) - position.buy_date).days
        if days <= 0:
            raise DivisionByZeroError(f"{symbol} was bought today, no holding period to annualise")
        current = await self._accessor.current_price(position.symbol)
        return ((current / position.buy_price) ** (365.0 / days) - 1) * 100
