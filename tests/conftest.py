"""
Pytest fixtures for the membership billing test suite.

Provides:
- Structured logging setup and a JSON log capture fixture
- Deterministic clock
- Builders for period records and ledgers
"""

import json
import logging
from datetime import UTC, datetime
from io import StringIO

import pytest

from membership_engines.ledger import PeriodLedgerAggregator, PeriodRecord
from membership_kernel.domain.clock import DeterministicClock
from membership_kernel.domain.values import Money
from membership_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

NOW_PERIOD = "2025-03"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture membership_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            PeriodLedgerAggregator().aggregate(records=[...], now_period="2025-03")
            logs = captured_logs()
            assert any(r["message"] == "ledger_aggregation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("membership_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed in the middle of NOW_PERIOD."""
    return DeterministicClock(datetime(2025, 3, 15, 12, 0, 0, tzinfo=UTC))


# =============================================================================
# Ledger builders
# =============================================================================


def make_record(period, charge, paid="0", balance=None, status=None, currency="ARS"):
    """PeriodRecord from plain values."""
    return PeriodRecord(
        period=period,
        charge=Money.of(charge, currency),
        paid=Money.of(paid, currency),
        balance=Money.of(balance, currency) if balance is not None else None,
        status=status,
    )


def make_ledger(*entries, now_period=NOW_PERIOD):
    """Ledger rows from ``(period, charge, paid)`` tuples."""
    records = [make_record(*entry) for entry in entries]
    return PeriodLedgerAggregator().aggregate(records=records, now_period=now_period)


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def ledger():
    return make_ledger
