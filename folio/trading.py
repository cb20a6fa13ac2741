"""
Trading - Applies share deltas to a stored portfolio.

A rebalance runs as a RebalanceWorkflow: every sell leg first, then every
buy leg, each leg committed on its own. If a leg fails, the legs before it
stay committed, the workflow records what happened and the error is
re-raised unchanged. There is no rollback.

Usage:
    executor = TransactionExecutor(accessor, db=db)
    workflow = await executor.execute(portfolio_id, plan)   # plan or {'AAPL': -5, 'MSFT': 3}

    workflow = RebalanceWorkflow(portfolio_id, {'AAPL': -5, 'MSFT': 3})
    try:
        await executor.run(workflow)
    except InsufficientFundsError:
        print(workflow.committed, workflow.failed)
"""

import logging
from datetime import date
from typing import Optional, Union

from folio.audit import AuditLog
from folio.cache import AnalyticsCache
from folio.database import Database
from folio.errors import EntityNotFoundError, InsufficientFundsError, InvalidArgumentError
from folio.locks import PortfolioLocks
from folio.market_data import TimeSeriesAccessor
from folio.models import CASH, RebalancingPlan, TradeLeg
from folio.settings import Settings

logger = logging.getLogger(__name__)


class RebalanceWorkflow:
    """Ordered trade legs for one portfolio: sells, then buys."""

    def __init__(self, portfolio_id: int, deltas: Union[RebalancingPlan, dict]):
        if isinstance(deltas, RebalancingPlan):
            deltas = deltas.share_deltas()
        self.portfolio_id = portfolio_id

        legs = []
        for symbol, delta in deltas.items():
            if str(symbol).upper() == CASH:
                continue
            if int(delta) != delta:
                raise InvalidArgumentError(f"Share delta for {symbol} must be a whole number, got {delta}")
            if delta:
                legs.append(TradeLeg(symbol=str(symbol).upper(), delta=int(delta)))

        sells = sorted((leg for leg in legs if leg.is_sell), key=lambda leg: leg.symbol)
        buys = sorted((leg for leg in legs if not leg.is_sell), key=lambda leg: leg.symbol)
        self.legs: list[TradeLeg] = sells + buys

    def _with_status(self, status: str) -> list[TradeLeg]:
        return [leg for leg in self.legs if leg.status == status]

    @property
    def committed(self) -> list[TradeLeg]:
        return self._with_status("committed")

    @property
    def failed(self) -> list[TradeLeg]:
        return self._with_status("failed")

    @property
    def pending(self) -> list[TradeLeg]:
        return self._with_status("pending")

    @property
    def completed(self) -> bool:
        return all(leg.status == "committed" for leg in self.legs)

    def to_dict(self) -> dict:
        return {
            "portfolio_id": self.portfolio_id,
            "completed": self.completed,
            "legs": [
                {"symbol": leg.symbol, "delta": leg.delta, "price": leg.price, "status": leg.status, "error": leg.error}
                for leg in self.legs
            ],
        }


class TransactionExecutor:
    """
    Executes workflows against the database.

    Runs are serialized per portfolio on the same PortfolioLocks registry
    that PortfolioBook uses, so a rebalance and a manual trade on one
    portfolio never interleave.
    """

    def __init__(
        self,
        accessor: TimeSeriesAccessor,
        db: Database | None = None,
        audit: AuditLog | None = None,
        settings: Settings | None = None,
        cache: AnalyticsCache | None = None,
        locks: PortfolioLocks | None = None,
    ):
        self._accessor = accessor
        self._db = db or Database()
        self._audit = audit or AuditLog(self._db)
        self._settings = settings or Settings(self._db)
        self._cache = cache or AnalyticsCache()
        self._locks = locks or PortfolioLocks()

    async def execute(
        self,
        portfolio_id: int,
        deltas: Union[RebalancingPlan, dict],
        actor: Optional[str] = None,
        today: Optional[date] = None,
    ) -> RebalanceWorkflow:
        """Build a workflow from a plan or delta mapping and run it."""
        workflow = RebalanceWorkflow(portfolio_id, deltas)
        await self.run(workflow, actor=actor, today=today)
        return workflow

    async def run(self, workflow: RebalanceWorkflow, actor: Optional[str] = None, today: Optional[date] = None) -> None:
        """
        Run every pending leg in order.

        Raises:
            The first leg error, after marking that leg failed. Earlier legs stay committed.
        """
        portfolio_id = workflow.portfolio_id
        async with self._locks.hold(portfolio_id):
            actor = actor or await self._settings.get("audit_actor")
            today = today or date.today()
            logger.info(f"Portfolio #{portfolio_id}: executing {len(workflow.legs)} legs")
            for leg in workflow.pending:
                try:
                    await self.apply_leg(portfolio_id, leg, actor, today)
                except Exception as e:
                    leg.status = "failed"
                    leg.error = str(e)
                    logger.error(
                        f"Portfolio #{portfolio_id}: {leg.symbol} {leg.delta:+d} failed after "
                        f"{len(workflow.committed)} committed legs: {e}"
                    )
                    raise
            logger.info(f"Portfolio #{portfolio_id}: rebalance complete")

    async def apply_leg(self, portfolio_id: int, leg: TradeLeg, actor: str, today: date) -> None:
        """
        Execute and commit one leg at the current price. run() calls this with
        the portfolio lock held.

        A leg that takes the quantity to zero or below closes the position and
        credits its full pre-trade value. Otherwise cash moves by price x shares
        and the position's buy price and date are reset to this execution.

        Raises:
            EntityNotFoundError: Unknown portfolio or no position in the symbol
            InsufficientFundsError: A buy costs more than the remaining capital
        """
        portfolio = await self._db.get_portfolio(portfolio_id)
        if not portfolio:
            raise EntityNotFoundError("Portfolio", portfolio_id)
        position = await self._db.get_position(portfolio_id, leg.symbol)
        if not position:
            raise EntityNotFoundError("Position", f"{leg.symbol} in portfolio #{portfolio_id}")

        price = await self._accessor.current_price(leg.symbol)
        amount = price * abs(leg.delta)
        capital = float(portfolio["remaining_capital"])
        if leg.delta > 0 and amount > capital:
            raise InsufficientFundsError(required=amount, available=capital)

        old_quantity = int(position["quantity"])
        new_quantity = old_quantity + leg.delta
        if new_quantity <= 0:
            new_capital = capital + price * old_quantity
            await self._db.save_trade(portfolio_id, leg.symbol, new_capital, None)
        else:
            new_capital = capital - amount if leg.delta > 0 else capital + amount
            await self._db.save_trade(
                portfolio_id,
                leg.symbol,
                new_capital,
                {"quantity": new_quantity, "buy_price": price, "buy_date": today.isoformat()},
            )

        leg.price = price
        leg.status = "committed"
        self._cache.invalidate_subject(AnalyticsCache.portfolio_key(portfolio_id))

        verb = "sold" if leg.delta < 0 else "bought"
        logger.info(f"Portfolio #{portfolio_id}: {verb} {abs(leg.delta)} {leg.symbol} @ {price:.2f}, cash {new_capital:.2f}")
        await self._audit.record(
            actor,
            f"User successfully {verb} stock {leg.symbol} in Portfolio #{portfolio_id} - {portfolio['name']} "
            f"with new price: {price:.2f} (was {float(position['buy_price']):.2f}) "
            f"and quantity: {abs(leg.delta)} on {today.isoformat()}",
        )
