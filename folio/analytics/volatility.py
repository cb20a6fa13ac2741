"""
Volatility - Standard deviation of consecutive returns.

Daily volatility uses roughly one month of daily closes, monthly volatility
roughly one year of monthly closes. Both use the population standard
deviation. Portfolio volatility is the weight-averaged monthly volatility of
its positions, no covariances.

Usage:
    engine = VolatilityEngine(accessor, db=db)
    daily = await engine.daily_volatility('AAPL')
    annual = await engine.annualized_volatility('AAPL')
    portfolio = await engine.portfolio_annualized_volatility(portfolio_id)
"""

import logging
import math
from datetime import date
from typing import Optional

import numpy as np
import pandas as pd

from folio.analytics.grouping import GroupingEngine
from folio.analytics.history import PriceHistory
from folio.cache import AnalyticsCache
from folio.database import Database
from folio.errors import DivisionByZeroError, InsufficientDataError, InvalidArgumentError
from folio.market_data import PriceBook, TimeSeriesAccessor
from folio.models import HistorySpan, VolatilityKind
from folio.settings import Settings

logger = logging.getLogger(__name__)

SQRT_12 = math.sqrt(12)


def return_volatility(symbol: str, closes: list[float]) -> float:
    """
    Population standard deviation of consecutive percentage returns.

    Closes are taken in series order, newest first, so each return is
    (closes[i] - closes[i-1]) / closes[i-1] measured against the later close.

    Args:
        symbol: Used in error messages only
        closes: Closing prices, newest first

    Raises:
        InsufficientDataError: Fewer than 2 closes
        DivisionByZeroError: A zero close precedes another close
    """
    if len(closes) < 2:
        raise InsufficientDataError(symbol, len(closes))
    prices = pd.Series(closes, dtype=float)
    if (prices.iloc[:-1] == 0).any():
        raise DivisionByZeroError(f"Zero closing price in {symbol} series")
    returns = prices.pct_change().iloc[1:].to_numpy()
    return float(np.std(returns, ddof=0))


class VolatilityEngine:
    """Per-symbol and portfolio volatility, cached per as-of date."""

    def __init__(
        self,
        accessor: TimeSeriesAccessor,
        db: Database | None = None,
        grouping: GroupingEngine | None = None,
        settings: Settings | None = None,
        cache: AnalyticsCache | None = None,
    ):
        self._accessor = accessor
        self._db = db or Database()
        self._history = PriceHistory(accessor)
        self._grouping = grouping or GroupingEngine(accessor, self._db)
        self._settings = settings or Settings(self._db)
        self._cache = cache or AnalyticsCache()

    async def _cached(self, subject: str, kind: str, as_of: date, compute) -> float:
        cached = self._cache.get(subject, kind, as_of)
        if cached is not None:
            return cached
        value = await compute()
        ttl = int(await self._settings.get("volatility_cache_ttl_seconds"))
        self._cache.set(subject, kind, as_of, value, ttl_seconds=ttl)
        return value

    # -------------------------------------------------------------------------
    # Per symbol
    # -------------------------------------------------------------------------

    async def daily_volatility(self, symbol: str, as_of: Optional[date] = None) -> float:
        as_of = as_of or date.today()

        async def compute():
            closes = await self._history.closes(symbol, HistorySpan.ONE_MONTH, as_of)
            return return_volatility(symbol, [close for _, close in reversed(closes)])

        return await self._cached(symbol, VolatilityKind.DAILY.value, as_of, compute)

    async def monthly_volatility(self, symbol: str, as_of: Optional[date] = None) -> float:
        as_of = as_of or date.today()

        async def compute():
            closes = await self._history.closes(symbol, HistorySpan.ONE_YEAR, as_of)
            return return_volatility(symbol, [close for _, close in reversed(closes)])

        return await self._cached(symbol, VolatilityKind.MONTHLY.value, as_of, compute)

    async def annualized_volatility(self, symbol: str, as_of: Optional[date] = None) -> float:
        return await self.monthly_volatility(symbol, as_of) * SQRT_12

    async def volatility(self, symbol: str, kind: VolatilityKind, as_of: Optional[date] = None) -> float:
        kind = VolatilityKind.from_string(kind)
        if kind == VolatilityKind.DAILY:
            return await self.daily_volatility(symbol, as_of)
        if kind == VolatilityKind.MONTHLY:
            return await self.monthly_volatility(symbol, as_of)
        return await self.annualized_volatility(symbol, as_of)

    # -------------------------------------------------------------------------
    # Portfolio
    # -------------------------------------------------------------------------

    async def portfolio_monthly_volatility(self, portfolio_id: int, as_of: Optional[date] = None) -> float:
        """Sum of weight x monthly volatility over all positions."""
        as_of = as_of or date.today()

        async def compute():
            weights = await self._grouping.weights(portfolio_id, PriceBook(self._accessor))
            total = 0.0
            for symbol, weight in weights.items():
                total += weight * await self.monthly_volatility(symbol, as_of)
            logger.debug(f"Portfolio #{portfolio_id} monthly volatility {total:.6f} over {len(weights)} positions")
            return total

        return await self._cached(AnalyticsCache.portfolio_key(portfolio_id), VolatilityKind.MONTHLY.value, as_of, compute)

    async def portfolio_annualized_volatility(self, portfolio_id: int, as_of: Optional[date] = None) -> float:
        return await self.portfolio_monthly_volatility(portfolio_id, as_of) * SQRT_12

    async def portfolio_volatility(self, portfolio_id: int, kind: VolatilityKind, as_of: Optional[date] = None) -> float:
        kind = VolatilityKind.from_string(kind)
        if kind == VolatilityKind.ANNUALIZED:
            return await self.portfolio_annualized_volatility(portfolio_id, as_of)
        if kind == VolatilityKind.MONTHLY:
            return await self.portfolio_monthly_volatility(portfolio_id, as_of)
        raise InvalidArgumentError("Portfolio volatility is available as monthly or annualized only")
