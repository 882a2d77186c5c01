"""
Typed Exception Hierarchy for the membership billing engines.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection the engines produce is an expected business condition that a
cashier or collector screen has to explain: "this group has 3 periods of
arrears, charge at least 2", "2025-04 is not due yet". Callers must be able to
render that message from structured data, never by parsing strings.

So:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (the violating period, months_due, ...)

Example:
    try:
        allocator.allocate(ledger=rows, intent=intent)
    except ArrearsRuleViolationError as e:
        show(f"Tiene {e.months_due} períodos de atraso: "
             f"cobrar al menos {e.min_periods_to_charge}.")
        api_response(code=e.code, months_due=e.months_due)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MembershipError (base)
    |
    +-- LedgerError
    |   +-- MalformedPeriodKeyError
    |
    +-- AllocationError
    |   +-- InvalidPeriodSelectionError
    |   +-- AmountExceedsBalanceError
    |   +-- ArrearsRuleViolationError
    |   +-- PolicyBlockedError
    |   +-- StaleLedgerError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|-----------------------------------------
Ledger       | MALFORMED_PERIOD_KEY      | Period is not "YYYY-MM" (row dropped)
-------------|---------------------------|-----------------------------------------
Allocation   | INVALID_PERIOD_SELECTION  | Manual period unknown, not open, repeated
             | AMOUNT_EXCEEDS_BALANCE    | Manual amount above the period balance
             | ARREARS_RULE_VIOLATION    | Fewer periods than the arrears minimum
             | POLICY_BLOCKED            | 4+ months overdue, office charge refused
             | STALE_LEDGER              | Shown total no longer matches the ledger
-------------|---------------------------|-----------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT  | Group ledger changed under a payment

Programmer errors (negative amounts, an empty manual breakdown, a missing
ledger) are not part of this hierarchy: they raise ValueError/TypeError at
construction time.
"""

from __future__ import annotations

from typing import Any


class MembershipError(Exception):
    """
    Base exception for all membership billing errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MEMBERSHIP_ERROR"


# Ledger-related exceptions


class LedgerError(MembershipError):
    """Base exception for ledger aggregation errors."""

    code: str = "LEDGER_ERROR"


class MalformedPeriodKeyError(LedgerError):
    """A period key does not have the "YYYY-MM" shape."""

    code: str = "MALFORMED_PERIOD_KEY"

    def __init__(self, period_key: Any):
        self.period_key = period_key
        super().__init__(f"Malformed period key: {period_key!r}")


# Allocation-related exceptions


class AllocationError(MembershipError):
    """Base exception for payment allocation rejections."""

    code: str = "ALLOCATION_ERROR"


class InvalidPeriodSelectionError(AllocationError):
    """
    A manual breakdown names a period that cannot receive a payment.

    ``status`` is the period's ledger status, or "unknown" when the period
    is not in the ledger. ``reason`` is "not_open", "unknown" or "duplicate".
    """

    code: str = "INVALID_PERIOD_SELECTION"

    def __init__(self, period: str, status: str, reason: str = "not_open"):
        self.period = period
        self.status = status
        self.reason = reason
        super().__init__(
            f"Period {period} cannot be selected for payment "
            f"(status: {status}, reason: {reason})"
        )


class AmountExceedsBalanceError(AllocationError):
    """A manual breakdown entry pays more than the period owes."""

    code: str = "AMOUNT_EXCEEDS_BALANCE"

    def __init__(self, period: str, amount: str, balance: str):
        self.period = period
        self.amount = amount
        self.balance = balance
        super().__init__(
            f"Amount {amount} exceeds the outstanding balance {balance} "
            f"of period {period}"
        )


class ArrearsRuleViolationError(AllocationError):
    """
    A group with 3+ periods of arrears must settle at least 2 per payment.
    """

    code: str = "ARREARS_RULE_VIOLATION"

    def __init__(
        self,
        months_due: int,
        min_periods_to_charge: int,
        selected_count: int,
    ):
        self.months_due = months_due
        self.min_periods_to_charge = min_periods_to_charge
        self.selected_count = selected_count
        super().__init__(
            f"Group has {months_due} periods in arrears: at least "
            f"{min_periods_to_charge} must be charged, got {selected_count}"
        )


class PolicyBlockedError(AllocationError):
    """Group has 4+ months overdue; collection through this channel is refused."""

    code: str = "POLICY_BLOCKED"

    def __init__(self, months_due: int, channel: str):
        self.months_due = months_due
        self.channel = channel
        super().__init__(
            f"Group has {months_due} periods in arrears: "
            f"{channel} collection is blocked"
        )


class StaleLedgerError(AllocationError):
    """
    The ledger moved between display and apply.

    ``expected`` is what the caller saw (an amount or a snapshot version);
    ``actual`` is what the live ledger holds now.
    """

    code: str = "STALE_LEDGER"

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ledger changed since it was read: expected {expected}, "
            f"found {actual}"
        )


# Concurrency-related exceptions


class ConcurrencyError(MembershipError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """A group's stored records changed between load and write."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, group_id: str, expected_version: int, actual_version: int):
        self.group_id = group_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent modification of group {group_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )
