"""
Unit tests for billing period keys and the clock.

Verifies:
- "YYYY-MM" validation, trimming and rejection
- Lexicographic ordering matches calendar ordering
- Period helpers (next_period, period_from_date)
- Clock.current_period on deterministic and system clocks
"""

from datetime import UTC, date, datetime

import pytest

from membership_kernel.domain.clock import DeterministicClock, SystemClock
from membership_kernel.domain.periods import (
    compare_periods,
    is_valid_period,
    next_period,
    normalize_period,
    parse_period,
    period_from_date,
)
from membership_kernel.exceptions import MalformedPeriodKeyError


class TestPeriodValidation:
    """Tests for period key shape."""

    @pytest.mark.parametrize("key", ["2025-01", "1999-12", "2030-10"])
    def test_valid_keys(self, key):
        assert is_valid_period(key)
        assert parse_period(key) == key

    @pytest.mark.parametrize(
        "key",
        ["2025-13", "2025-00", "2025-1", "25-01", "2025/01", "", "abcd-ef", None],
    )
    def test_malformed_keys(self, key):
        assert not is_valid_period(key)
        with pytest.raises(MalformedPeriodKeyError) as exc_info:
            parse_period(key)
        assert exc_info.value.period_key == key
        assert exc_info.value.code == "MALFORMED_PERIOD_KEY"

    def test_whitespace_trimmed(self):
        assert normalize_period("  2025-02 ") == "2025-02"


class TestPeriodOrdering:
    """Tests for period comparison."""

    def test_compare(self):
        assert compare_periods("2024-12", "2025-01") == -1
        assert compare_periods("2025-01", "2025-01") == 0
        assert compare_periods("2025-10", "2025-09") == 1

    def test_next_period_rolls_year(self):
        assert next_period("2024-12") == "2025-01"
        assert next_period("2025-03") == "2025-04"

    def test_period_from_date(self):
        assert period_from_date(date(2025, 7, 31)) == "2025-07"


class TestClock:
    """Tests for clock implementations."""

    def test_deterministic_clock_period(self):
        clock = DeterministicClock(datetime(2025, 3, 15, 12, 0, tzinfo=UTC))
        assert clock.current_period() == "2025-03"

    def test_deterministic_clock_advance_crosses_month(self):
        clock = DeterministicClock(datetime(2025, 3, 31, 23, 59, 59, tzinfo=UTC))
        clock.advance(1)
        assert clock.current_period() == "2025-04"

    def test_set_time(self):
        clock = DeterministicClock()
        clock.set_time(datetime(2026, 1, 1, tzinfo=UTC))
        assert clock.current_period() == "2026-01"

    def test_system_clock_is_aware(self):
        now = SystemClock().now()
        assert now.tzinfo is not None
        assert is_valid_period(SystemClock().current_period())
