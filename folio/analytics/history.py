"""
Price history windows.

Usage:
    history = PriceHistory(accessor)
    points = await history.points('AAPL', HistorySpan.ONE_MONTH)
    closes = await history.closes('AAPL', HistorySpan.ONE_YEAR, as_of=date(2024, 5, 10))
"""

from datetime import date, timedelta
from typing import Optional

from folio.market_data import TimeSeriesAccessor
from folio.models import HistorySpan, SeriesWindow
from folio.utils import minus_months, month_prefix


class PriceHistory:
    """Closing prices from a cutoff date up to the newest entry."""

    def __init__(self, accessor: TimeSeriesAccessor):
        self._accessor = accessor

    @staticmethod
    def window_for(span: HistorySpan, as_of: date) -> tuple[SeriesWindow, str]:
        """Series variant and inclusive lower bound for a span."""
        if span == HistorySpan.ONE_WEEK:
            return SeriesWindow.DAILY_COMPACT, (as_of - timedelta(days=7)).isoformat()
        if span == HistorySpan.ONE_MONTH:
            return SeriesWindow.DAILY_COMPACT, minus_months(as_of, 1).isoformat()
        if span == HistorySpan.ONE_QUARTER:
            return SeriesWindow.DAILY_COMPACT, minus_months(as_of, 3).isoformat()
        # Monthly keys are compared by year-month only
        return SeriesWindow.MONTHLY, month_prefix(minus_months(as_of, 12))

    async def closes(self, symbol: str, span: HistorySpan, as_of: Optional[date] = None) -> list[tuple[str, float]]:
        """(date, close) pairs inside the span, oldest first."""
        span = HistorySpan.from_string(span)
        as_of = as_of or date.today()
        window, cutoff = self.window_for(span, as_of)
        series = await self._accessor.closing_series(symbol, window)
        width = len(cutoff)
        upper = as_of.isoformat()[:width]
        selected = [(day, close) for day, close in series.items() if cutoff <= day[:width] <= upper]
        selected.reverse()
        return selected

    async def points(self, symbol: str, span: HistorySpan, as_of: Optional[date] = None) -> list[dict]:
        """Chart points as {'date', 'close'} dicts, oldest first."""
        return [{"date": day, "close": close} for day, close in await self.closes(symbol, span, as_of)]
