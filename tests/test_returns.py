"""Tests for period returns, price lookup and position returns."""

from datetime import date

import pytest

from folio.analytics.returns import ReturnsEngine
from folio.errors import (
    DivisionByZeroError,
    EmptyPortfolioError,
    EntityNotFoundError,
    InvalidArgumentError,
    NoDataForPeriodError,
    NoPriceFoundError,
)
from folio.models import Period, PriceMatch

AS_OF = date(2024, 5, 15)  # Wednesday


@pytest.fixture
def engine(temp_db, accessor):
    return ReturnsEngine(accessor, db=temp_db)


class TestPeriodReturn:
    @pytest.mark.asyncio
    async def test_exact_ten_percent(self, market, engine):
        market.add_stock("AAPL", 110.0)
        market.monthly["AAPL"] = {"2024-04-30": 100.0, "2024-03-28": 90.0}
        assert await engine.period_return("AAPL", Period.ONE_MONTH, as_of=AS_OF) == 0.10

    @pytest.mark.asyncio
    async def test_yesterday_uses_previous_close(self, market, engine):
        market.add_stock("AAPL", 99.0, previous_close=100.0)
        assert await engine.period_return("AAPL", "yesterday", as_of=AS_OF) == pytest.approx(-0.01)

    @pytest.mark.asyncio
    async def test_one_week_takes_latest_close_on_or_before_target(self, market, engine):
        market.add_stock("AAPL", 120.0)
        market.daily["AAPL"] = {
            "2024-05-14": 118.0,
            "2024-05-09": 111.0,
            "2024-05-08": 100.0,  # exactly one week before AS_OF
            "2024-05-07": 95.0,
        }
        assert await engine.period_return("AAPL", Period.ONE_WEEK, as_of=AS_OF) == pytest.approx(0.20)

    @pytest.mark.asyncio
    async def test_one_year_compares_by_month(self, market, engine):
        market.add_stock("AAPL", 150.0)
        market.monthly["AAPL"] = {
            "2024-04-30": 140.0,
            "2023-06-30": 130.0,
            "2023-05-31": 100.0,
            "2023-04-28": 80.0,
        }
        assert await engine.period_return("AAPL", Period.ONE_YEAR, as_of=AS_OF) == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_no_anchor(self, market, engine):
        market.add_stock("AAPL", 150.0)
        market.monthly["AAPL"] = {"2024-05-10": 140.0}
        with pytest.raises(NoDataForPeriodError):
            await engine.period_return("AAPL", Period.ONE_YEAR, as_of=AS_OF)

    @pytest.mark.asyncio
    async def test_zero_anchor(self, market, engine):
        market.add_stock("AAPL", 150.0)
        market.monthly["AAPL"] = {"2024-04-30": 0.0}
        with pytest.raises(DivisionByZeroError):
            await engine.period_return("AAPL", Period.ONE_MONTH, as_of=AS_OF)

    @pytest.mark.asyncio
    async def test_unknown_period(self, engine):
        with pytest.raises(InvalidArgumentError):
            await engine.period_return("AAPL", "decade", as_of=AS_OF)


class TestPriceAtDate:
    @pytest.fixture(autouse=True)
    def series(self, market):
        market.daily_full["AAPL"] = {
            "2024-05-10": 50.0,  # Friday
            "2024-05-09": 49.0,
            "2024-05-13": 51.0,  # Monday
            "2024-05-14": 52.0,
        }

    @pytest.mark.asyncio
    async def test_exact_match(self, engine):
        result = await engine.price_at_date("AAPL", "2024-05-09", today=AS_OF)
        assert result.price == 49.0
        assert result.reason == PriceMatch.EXACT_MATCH

    @pytest.mark.asyncio
    async def test_saturday_returns_friday(self, engine):
        result = await engine.price_at_date("AAPL", date(2024, 5, 11), today=AS_OF)
        assert result.matched_date == date(2024, 5, 10)
        assert result.price == 50.0
        assert result.reason == PriceMatch.WEEKEND_OR_HOLIDAY
        assert result.reason.value == "weekend_or_holiday_closest_found"

    @pytest.mark.asyncio
    async def test_today_without_data(self, engine):
        result = await engine.price_at_date("AAPL", AS_OF, today=AS_OF)
        assert result.matched_date == date(2024, 5, 14)
        assert result.reason == PriceMatch.TODAY_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_saturday_requested_on_saturday(self, engine):
        saturday = date(2024, 5, 11)
        result = await engine.price_at_date("AAPL", saturday, today=saturday)
        assert result.matched_date == date(2024, 5, 10)
        assert result.reason == PriceMatch.WEEKEND_OR_HOLIDAY

    @pytest.mark.asyncio
    async def test_monday_holiday_jumps_to_friday(self, market, engine):
        market.daily_full["AAPL"] = {"2024-05-03": 40.0, "2024-05-02": 39.0}
        # Monday 2024-05-06 missing: next date tried is Friday 2024-05-03
        result = await engine.price_at_date("AAPL", "2024-05-06", today=AS_OF)
        assert result.matched_date == date(2024, 5, 3)

    @pytest.mark.asyncio
    async def test_future_date_rejected(self, engine):
        with pytest.raises(InvalidArgumentError):
            await engine.price_at_date("AAPL", "2024-05-16", today=AS_OF)

    @pytest.mark.asyncio
    async def test_malformed_date(self, engine):
        with pytest.raises(InvalidArgumentError):
            await engine.price_at_date("AAPL", "15/05/2024", today=AS_OF)

    @pytest.mark.asyncio
    async def test_lookback_limit(self, temp_db, engine):
        await temp_db.set_setting("price_lookback_limit", 2)
        with pytest.raises(NoPriceFoundError):
            await engine.price_at_date("AAPL", "2024-05-08", today=AS_OF)


class TestPositionReturns:
    @pytest.mark.asyncio
    async def test_per_stock_and_overall(self, market, engine, make_portfolio):
        market.add_stock("AAPL", 120.0)
        market.add_stock("MSFT", 90.0)
        portfolio_id = await make_portfolio(holdings={"AAPL": (10, 100.0), "MSFT": (5, 100.0)})

        by_stock = await engine.position_returns(portfolio_id)
        assert by_stock["AAPL"] == {"actual_value": 200.0, "percentage": 20.0}
        assert by_stock["MSFT"] == {"actual_value": -50.0, "percentage": -10.0}

        overall = await engine.overall_returns(portfolio_id)
        assert overall == {"overall_return": 150.0, "percentage": 10.0}

    @pytest.mark.asyncio
    async def test_rounding_half_up(self, market, engine, make_portfolio):
        market.add_stock("AAPL", 10.125)
        portfolio_id = await make_portfolio(holdings={"AAPL": (1, 10.0)})
        by_stock = await engine.position_returns(portfolio_id)
        assert by_stock["AAPL"]["actual_value"] == 0.13

    @pytest.mark.asyncio
    async def test_empty_portfolio_overall_is_zero(self, engine, make_portfolio):
        portfolio_id = await make_portfolio(capital=100.0)
        assert await engine.overall_returns(portfolio_id) == {"overall_return": 0.0, "percentage": 0.0}

    @pytest.mark.asyncio
    async def test_weighted_return(self, market, engine, make_portfolio):
        market.add_stock("AAPL", 120.0)
        market.add_stock("MSFT", 90.0)
        portfolio_id = await make_portfolio(holdings={"AAPL": (10, 100.0), "MSFT": (5, 100.0)})

        aapl = await engine.weighted_return(portfolio_id, "AAPL")
        msft = await engine.weighted_return(portfolio_id, "msft")

        assert aapl == pytest.approx(20.0 * 1200.0 / 1650.0)
        assert msft == pytest.approx(-10.0 * 450.0 / 1650.0)

    @pytest.mark.asyncio
    async def test_weighted_return_unheld(self, market, engine, make_portfolio):
        market.add_stock("AAPL", 120.0)
        portfolio_id = await make_portfolio(holdings={"AAPL": (10, 100.0)})
        with pytest.raises(EntityNotFoundError):
            await engine.weighted_return(portfolio_id, "MSFT")

    @pytest.mark.asyncio
    async def test_weighted_return_empty_portfolio(self, engine, make_portfolio):
        portfolio_id = await make_portfolio(capital=100.0)
        with pytest.raises(EmptyPortfolioError):
            await engine.weighted_return(portfolio_id, "AAPL")

    @pytest.mark.asyncio
    async def test_annualised_return(self, market, engine, make_portfolio):
        market.add_stock("AAPL", 121.0)
        portfolio_id = await make_portfolio(holdings={"AAPL": (1, 100.0, "2022-05-15")})
        result = await engine.annualised_return(portfolio_id, "AAPL", today=date(2024, 5, 14))
        # 730 days held, (1.21 ** 0.5 - 1) * 100
        assert result == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_annualised_return_same_day(self, market, engine, make_portfolio):
        market.add_stock("AAPL", 121.0)
        portfolio_id = await make_portfolio(holdings={"AAPL": (1, 100.0, "2024-05-15")})
        with pytest.raises(DivisionByZeroError):
            await engine.annualised_return(portfolio_id, "AAPL", today=AS_OF)
