"""
Periods -- "YYYY-MM" billing period keys.

Responsibility:
    Validate, normalize, compare and step billing period keys.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A valid key is four digits, a dash and a zero-padded month 01-12.
      Because keys are fixed-width and zero-padded, plain string
      comparison orders them chronologically.

Failure modes:
    - MalformedPeriodKeyError from ``parse_period`` on anything else.
"""

from __future__ import annotations

import re
from datetime import date

from membership_kernel.exceptions import MalformedPeriodKeyError

PERIOD_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def normalize_period(value: object) -> str | None:
    """Return the trimmed period key, or None when it is not "YYYY-MM"."""
    if value is None:
        return None
    text = str(value).strip()
    return text if PERIOD_RE.match(text) else None


def is_valid_period(value: object) -> bool:
    return normalize_period(value) is not None


def parse_period(value: object) -> str:
    """
    Validate a period key.

    Raises:
        MalformedPeriodKeyError: if ``value`` is not a "YYYY-MM" key.
    """
    key = normalize_period(value)
    if key is None:
        raise MalformedPeriodKeyError(value)
    return key


def compare_periods(a: str, b: str) -> int:
    """-1, 0 or 1, like a classic comparator. Both keys must be valid."""
    left = parse_period(a)
    right = parse_period(b)
    if left == right:
        return 0
    return -1 if left < right else 1


def period_from_date(value: date) -> str:
    """Billing period containing ``value``."""
    return f"{value.year:04d}-{value.month:02d}"


def next_period(key: str) -> str:
    """The calendar month after ``key``."""
    year, month = (int(part) for part in parse_period(key).split("-"))
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"
