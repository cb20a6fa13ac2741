"""
Models - Dataclasses and enums shared across the engine.

Stored entities (Stock, Position, Portfolio) validate themselves on
construction. Computed values (GroupingSummary, RebalancingPlan, PriceAtDate)
are never persisted.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from operator import attrgetter
from typing import Callable, Optional

from folio.errors import InvalidArgumentError

CASH = "CASH"
UNKNOWN_GROUP = "Unknown"


class _ParsableEnum(str, Enum):
    @classmethod
    def from_string(cls, value):
        """Create a member from its value or name (case-insensitive).

        Raises:
            InvalidArgumentError: If the value is not supported
        """
        if isinstance(value, cls):
            return value
        if not value:
            raise InvalidArgumentError(f"Invalid {cls.__name__}: empty value")
        normalized = str(value).strip().lower().replace("-", "_")
        for member in cls:
            if member.value == normalized or member.name.lower() == normalized:
                return member
        supported = ", ".join(m.value for m in cls)
        raise InvalidArgumentError(f"Invalid {cls.__name__}: {value} (supported: {supported})")


class Period(_ParsableEnum):
    """Look-back period for a return."""

    YESTERDAY = "yesterday"
    ONE_WEEK = "one_week"
    ONE_MONTH = "one_month"
    ONE_YEAR = "one_year"


class VolatilityKind(_ParsableEnum):
    DAILY = "daily"
    MONTHLY = "monthly"
    ANNUALIZED = "annualized"


class SeriesWindow(_ParsableEnum):
    """Closing-price series variants offered by the market-data source."""

    DAILY_COMPACT = "daily_compact"  # ~100 most recent trading days
    DAILY_FULL = "daily_full"
    MONTHLY = "monthly"


class HistorySpan(_ParsableEnum):
    """Chart spans for price history."""

    ONE_WEEK = "one_week"
    ONE_MONTH = "one_month"
    ONE_QUARTER = "one_quarter"
    ONE_YEAR = "one_year"


class PriceMatch(_ParsableEnum):
    """How price_at_date arrived at its answer."""

    EXACT_MATCH = "exact_match"
    TODAY_UNAVAILABLE = "today_unavailable_closest_found"
    WEEKEND_OR_HOLIDAY = "weekend_or_holiday_closest_found"


class GroupingDimension(_ParsableEnum):
    """Stock attribute used to bucket portfolio value."""

    SECTOR = "sector"
    INDUSTRY = "industry"
    EXCHANGE = "exchange"
    COUNTRY = "country"

    @property
    def accessor(self) -> Callable[["StockSnapshot"], Optional[str]]:
        """Attribute getter for this dimension, usable on Stock or StockSnapshot."""
        return attrgetter(self.value)


# -----------------------------------------------------------------------------
# Stored entities
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Stock:
    """Reference data for a listed stock."""

    symbol: str
    name: str = ""
    sector: Optional[str] = None
    industry: Optional[str] = None
    exchange: Optional[str] = None
    country: Optional[str] = None

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise InvalidArgumentError("Symbol cannot be empty")
        object.__setattr__(self, "symbol", self.symbol.upper().strip())

    @classmethod
    def from_row(cls, row: dict) -> "Stock":
        return cls(
            symbol=row["symbol"],
            name=row.get("name") or "",
            sector=row.get("sector"),
            industry=row.get("industry"),
            exchange=row.get("exchange"),
            country=row.get("country"),
        )


@dataclass
class Position:
    """One portfolio's holding of one stock."""

    portfolio_id: int
    symbol: str
    quantity: int
    buy_price: float
    buy_date: date

    def __post_init__(self):
        """Validate position data."""
        if self.quantity <= 0:
            raise InvalidArgumentError(f"Quantity must be positive, got {self.quantity}")
        if self.buy_price <= 0:
            raise InvalidArgumentError(f"Buy price must be positive, got {self.buy_price}")
        if isinstance(self.buy_date, str):
            self.buy_date = date.fromisoformat(self.buy_date)

    @property
    def cost_basis(self) -> float:
        return self.buy_price * self.quantity

    @classmethod
    def from_row(cls, row: dict) -> "Position":
        return cls(
            portfolio_id=row["portfolio_id"],
            symbol=row["symbol"],
            quantity=int(row["quantity"]),
            buy_price=float(row["buy_price"]),
            buy_date=date.fromisoformat(row["buy_date"]),
        )


@dataclass
class Portfolio:
    """A portfolio with its cash and holdings."""

    id: int
    name: str
    owner: str
    remaining_capital: float
    positions: list[Position] = field(default_factory=list)

    def __post_init__(self):
        if self.remaining_capital < 0:
            raise InvalidArgumentError(f"Remaining capital cannot be negative, got {self.remaining_capital}")

    def position(self, symbol: str) -> Optional[Position]:
        for pos in self.positions:
            if pos.symbol == symbol:
                return pos
        return None


# -----------------------------------------------------------------------------
# Computed values
# -----------------------------------------------------------------------------


@dataclass
class StockSnapshot:
    """A position priced at the time of a grouping request."""

    quantity: int
    current_price: float
    sector: Optional[str] = None
    industry: Optional[str] = None
    exchange: Optional[str] = None
    country: Optional[str] = None

    @property
    def value(self) -> float:
        return self.quantity * self.current_price


@dataclass
class GroupAllocation:
    actual_value: float
    percentage: float


@dataclass
class GroupingSummary:
    """Portfolio value bucketed by one dimension, CASH included."""

    dimension: GroupingDimension
    total_value: float
    stocks: dict[str, StockSnapshot]
    allocations: dict[str, GroupAllocation]


@dataclass
class RebalancingPlan:
    """Projected effect of moving a portfolio toward target percentages."""

    adjustments: dict[str, float]  # symbol -> share delta, CASH -> cash delta
    projected_total_value: float
    final_allocations: dict[str, GroupAllocation]
    final_quantities: dict[str, int]

    def share_deltas(self) -> dict[str, int]:
        """Tradeable share deltas, CASH excluded."""
        return {symbol: int(delta) for symbol, delta in self.adjustments.items() if symbol != CASH}

    @property
    def cash_delta(self) -> float:
        return self.adjustments.get(CASH, 0.0)


@dataclass
class PriceAtDate:
    requested_date: date
    matched_date: date
    price: float
    reason: PriceMatch


@dataclass
class TradeLeg:
    """One symbol's part of a rebalance execution."""

    symbol: str
    delta: int
    price: Optional[float] = None
    status: str = "pending"  # 'pending', 'committed', 'failed'
    error: Optional[str] = None

    @property
    def is_sell(self) -> bool:
        return self.delta < 0
