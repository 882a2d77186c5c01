"""
Pure domain layer.

Value objects and helpers with NO dependencies on:
- Storage
- Time/clock (except SystemClock, the one sanctioned boundary)
- I/O

All domain objects are immutable and deterministic.
"""

from membership_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from membership_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from membership_kernel.domain.periods import (
    compare_periods,
    is_valid_period,
    next_period,
    normalize_period,
    parse_period,
    period_from_date,
)
from membership_kernel.domain.values import Currency, Money

__all__ = [
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Money",
    "SystemClock",
    "compare_periods",
    "is_valid_period",
    "next_period",
    "normalize_period",
    "parse_period",
    "period_from_date",
]
