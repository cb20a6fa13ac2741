"""
Folio Utilities Package

Date arithmetic and rounding helpers shared by the analytics modules.
"""

from folio.utils.dates import minus_months, month_prefix, parse_date
from folio.utils.numbers import percent, round2, round_half_up

__all__ = [
    "minus_months",
    "month_prefix",
    "parse_date",
    "percent",
    "round2",
    "round_half_up",
]
