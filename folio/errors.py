"""Engine exceptions.

Every failure the engine raises is a FolioError subclass with a stable code.
Callers render them with to_dict(), which keeps the underlying cause message
for diagnostics.
"""

from typing import Optional


class FolioError(Exception):
    """Base exception for engine errors."""

    code = "folio_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def cause(self) -> Optional[str]:
        """Message of the chained upstream exception, if any."""
        if self.__cause__ is None:
            return None
        return str(self.__cause__) or type(self.__cause__).__name__

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "cause": self.cause}


class DataUnavailableError(FolioError):
    """Raised when the market-data source has nothing for a symbol or window."""

    code = "data_unavailable"

    def __init__(self, symbol: str, what: str = "data"):
        self.symbol = symbol
        self.what = what
        super().__init__(f"No {what} available for {symbol}")


class NoDataForPeriodError(FolioError):
    """Raised when no anchor price exists for a return period."""

    code = "no_data_for_period"

    def __init__(self, symbol: str, period: str):
        self.symbol = symbol
        self.period = period
        super().__init__(f"No anchor price for {symbol} over period {period}")


class NoPriceFoundError(FolioError):
    """Raised when the backward date search finds no closing price."""

    code = "no_price_found"

    def __init__(self, symbol: str, requested: str, days: int):
        self.symbol = symbol
        self.requested = requested
        self.days = days
        super().__init__(f"No price for {symbol} within {days} days before {requested}")


class InvalidArgumentError(FolioError):
    """Raised for unsupported or malformed input."""

    code = "invalid_argument"


class InvalidTargetAllocationError(InvalidArgumentError):
    """Raised when rebalancing targets do not add up to 100%."""

    code = "invalid_target_allocation"

    def __init__(self, total: float, message: Optional[str] = None):
        self.total = total
        super().__init__(message or f"Target allocations must sum to 100, got {total:g}")


class InsufficientDataError(FolioError):
    """Raised when a series is too short for a volatility calculation."""

    code = "insufficient_data"

    def __init__(self, symbol: str, points: int, required: int = 2):
        self.symbol = symbol
        self.points = points
        self.required = required
        super().__init__(f"Need at least {required} closing prices for {symbol}, got {points}")


class DivisionByZeroError(FolioError):
    """Raised when a computation hits a zero denominator."""

    code = "division_by_zero"


class EmptyPortfolioError(DivisionByZeroError):
    """Raised when a portfolio has no market value to weigh positions against."""

    code = "empty_portfolio"

    def __init__(self, portfolio_id: int):
        self.portfolio_id = portfolio_id
        super().__init__(f"Portfolio #{portfolio_id} has no market value")


class InsufficientFundsError(FolioError):
    """Raised when a purchase costs more than the remaining capital."""

    code = "insufficient_funds"

    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient funds: required {required:.2f}, available {available:.2f}")


class InsufficientQuantityError(FolioError):
    """Raised when selling more shares than the position holds."""

    code = "insufficient_quantity"

    def __init__(self, symbol: str, requested: int, held: int):
        self.symbol = symbol
        self.requested = requested
        self.held = held
        super().__init__(f"Cannot sell {requested} shares of {symbol}, only {held} held")


class EntityNotFoundError(FolioError):
    """Raised when a portfolio, position or stock does not exist."""

    code = "entity_not_found"

    def __init__(self, entity: str, key):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")
