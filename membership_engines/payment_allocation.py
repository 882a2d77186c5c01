"""
Module: membership_engines.payment_allocation
Responsibility:
    Decide how an incoming payment is distributed across a client group's
    outstanding periods, under two policies:

    * auto   -- settle every open period, oldest first (FIFO);
    * manual -- the payer names periods and amounts explicitly.

    Both are gated by the arrears rule: a group with 3 periods overdue must
    settle at least 2 per payment, and a group with 4 or more is refused at
    the office.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes LedgerRow snapshots from membership_engines.ledger. Returns a
    plan; persisting it is the caller's job (membership_services).

Invariants enforced:
    - Conservation: ``sum(applied) == total_applied`` and, in auto mode,
      ``total_applied`` equals the live sum of open balances.
    - No period ever receives more than its pre-allocation balance.
    - Future, paid and credit periods never receive a payment.
    - FIFO ties are broken by ascending period key only.

Failure modes:
    - PolicyBlockedError: 4+ months due on the office channel.
    - StaleLedgerError: auto amount shown to the payer differs from the
      live open total.
    - InvalidPeriodSelectionError: manual period unknown, not open, or
      named twice.
    - AmountExceedsBalanceError: manual amount above the period balance.
    - ArrearsRuleViolationError: fewer periods than the arrears minimum.
    - ValueError / TypeError: malformed intent or a None ledger.

Usage:
    from membership_engines.payment_allocation import PaymentAllocator, PaymentIntent

    result = PaymentAllocator().allocate(
        ledger=rows,
        intent=PaymentIntent.manual([("2025-01", Money.of(10000))]),
    )
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from membership_engines.ledger import LedgerRow, count_months_due
from membership_engines.tracer import traced_engine
from membership_kernel.domain.periods import normalize_period
from membership_kernel.domain.values import DEFAULT_CURRENCY, Money
from membership_kernel.exceptions import (
    AllocationError,
    AmountExceedsBalanceError,
    ArrearsRuleViolationError,
    InvalidPeriodSelectionError,
    PolicyBlockedError,
    StaleLedgerError,
)
from membership_kernel.logging_config import get_logger

logger = get_logger("engines.payment_allocation")

# Arrears thresholds (periods due or partial)
ARREARS_RESTRICTED_AT = 3
ARREARS_BLOCKED_AT = 4
RESTRICTED_MIN_PERIODS = 2


class PaymentStrategy(str, Enum):
    """How a payment is spread across periods."""

    AUTO = "auto"  # All open periods, oldest first
    MANUAL = "manual"  # Caller-selected periods and amounts


class PaymentChannel(str, Enum):
    """Where the money is collected."""

    OFFICE = "office"
    COLLECTOR = "collector"


class ChargeRuleStatus(str, Enum):
    OK = "ok"
    RESTRICTED = "restricted"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class BreakdownEntry:
    """
    One manually selected period and the amount to apply to it.

    Guarantees:
        - ``amount`` is strictly positive.
    """

    period: str
    amount: Money

    def __post_init__(self) -> None:
        if not self.amount.is_positive:
            raise ValueError(
                f"Breakdown amount for {self.period} must be positive, "
                f"got {self.amount}"
            )


@dataclass(frozen=True)
class PaymentIntent:
    """
    What the payer wants to do.

    Contract:
        Frozen dataclass validated on construction.
    Guarantees:
        - ``manual`` intents carry a non-empty breakdown.
        - ``auto`` intents carry no breakdown; their optional ``amount`` is
          the total the payer was shown, checked against the live ledger.
        - ``amount``, when present, is non-negative (and for manual intents
          equals the breakdown total).
    """

    strategy: PaymentStrategy
    amount: Money | None = None
    breakdown: tuple[BreakdownEntry, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "strategy", PaymentStrategy(self.strategy))
        object.__setattr__(self, "breakdown", tuple(self.breakdown))

        if self.amount is not None and self.amount.is_negative:
            raise ValueError(f"Payment amount cannot be negative: {self.amount}")

        if self.strategy == PaymentStrategy.MANUAL:
            if not self.breakdown:
                raise ValueError("Manual payments require a non-empty breakdown")
            if self.amount is not None:
                total = self.breakdown_total
                if total != self.amount:
                    raise ValueError(
                        f"Manual amount {self.amount} does not match "
                        f"breakdown total {total}"
                    )
        elif self.breakdown:
            raise ValueError("Auto payments do not take a breakdown")

    @property
    def breakdown_total(self) -> Money:
        total = Money.zero(self.breakdown[0].amount.currency)
        for entry in self.breakdown:
            total = total + entry.amount
        return total

    @classmethod
    def auto(cls, amount: Money | None = None) -> PaymentIntent:
        return cls(strategy=PaymentStrategy.AUTO, amount=amount)

    @classmethod
    def manual(
        cls,
        entries: Iterable[BreakdownEntry | tuple[str, Money]],
    ) -> PaymentIntent:
        breakdown = tuple(
            e if isinstance(e, BreakdownEntry) else BreakdownEntry(*e)
            for e in entries
        )
        return cls(strategy=PaymentStrategy.MANUAL, breakdown=breakdown)


@dataclass(frozen=True)
class AppliedPeriod:
    """
    Amount applied to a single period.

    Guarantees:
        - ``0 < amount_applied <= balance_before``.
    """

    period: str
    amount_applied: Money
    balance_before: Money

    @property
    def balance_after(self) -> Money:
        return self.balance_before - self.amount_applied

    @property
    def settles_period(self) -> bool:
        return self.balance_after.is_zero


@dataclass(frozen=True)
class AllocationResult:
    """
    Allocation plan for one payment.

    Contract:
        Frozen dataclass; the caller persists it.
    Guarantees:
        - ``total_applied`` is the sum of ``applied_breakdown`` amounts.
        - ``remainder_as_credit`` is non-negative; ``credit_period`` names
          where it lands and is None when there is no remainder.
    """

    strategy: PaymentStrategy
    applied_breakdown: tuple[AppliedPeriod, ...]
    total_applied: Money
    remainder_as_credit: Money
    credit_period: str | None
    months_due: int
    min_periods_to_charge: int

    @property
    def periods_applied(self) -> tuple[str, ...]:
        return tuple(line.period for line in self.applied_breakdown)

    @property
    def is_empty(self) -> bool:
        return not self.applied_breakdown


@dataclass(frozen=True)
class OfficeChargeRule:
    """The arrears decision a cashier sees before charging."""

    status: ChargeRuleStatus
    months_due: int
    min_periods_to_charge: int
    message: str = ""

    @property
    def allows_charge(self) -> bool:
        return self.status != ChargeRuleStatus.BLOCKED


def min_periods_to_charge(months_due: int) -> int:
    """Minimum periods a single manual payment must cover."""
    return RESTRICTED_MIN_PERIODS if months_due >= ARREARS_RESTRICTED_AT else 0


def office_charge_rule(
    months_due: int,
    channel: PaymentChannel = PaymentChannel.OFFICE,
) -> OfficeChargeRule:
    """
    Arrears gate for a group.

    0-2 periods due: ok. 3: restricted to 2+ periods per payment (or auto).
    4+: blocked at the office; the plan is due to be cancelled. Collectors
    are never blocked, only restricted.
    """
    channel = PaymentChannel(channel)
    minimum = min_periods_to_charge(months_due)
    if months_due >= ARREARS_BLOCKED_AT and channel == PaymentChannel.OFFICE:
        return OfficeChargeRule(
            status=ChargeRuleStatus.BLOCKED,
            months_due=months_due,
            min_periods_to_charge=0,
            message=(
                f"The group has {months_due} periods in arrears. The plan is "
                "due for cancellation and must not be charged at the office."
            ),
        )
    if minimum:
        return OfficeChargeRule(
            status=ChargeRuleStatus.RESTRICTED,
            months_due=months_due,
            min_periods_to_charge=minimum,
            message=(
                f"The group has {months_due} periods in arrears. Charge at "
                f"least {minimum} periods (or everything with auto)."
            ),
        )
    return OfficeChargeRule(
        status=ChargeRuleStatus.OK,
        months_due=months_due,
        min_periods_to_charge=0,
    )


class PaymentAllocator:
    """
    Plan the application of a payment against a ledger snapshot.

    Contract:
        Pure function of (ledger, intent, months_due, channel).
        No I/O, no clock, no mutation of the ledger.
    Guarantees:
        - Auto: every open period is settled oldest first and the total is
          exactly the live open balance.
        - Manual: the breakdown is echoed back, in period order, only after
          every rule passes.
    Non-goals:
        - Does not re-read the ledger on a mismatch; it raises
          StaleLedgerError and lets the caller reload.
        - Does not persist the plan.
    """

    @traced_engine(
        "payment_allocation",
        "1.0",
        fingerprint_fields=("ledger", "intent", "months_due", "channel"),
    )
    def allocate(
        self,
        ledger: Sequence[LedgerRow],
        intent: PaymentIntent,
        months_due: int | None = None,
        channel: PaymentChannel = PaymentChannel.OFFICE,
    ) -> AllocationResult:
        """
        Plan a payment.

        Args:
            ledger: Ledger rows, the same snapshot the payer was shown.
            intent: Strategy, amount and (manual) breakdown.
            months_due: Arrears count; derived from the ledger when None.
            channel: Office cashier or field collector.

        Returns:
            AllocationResult with one line per period receiving money.
        """
        if ledger is None:
            raise TypeError("ledger must be a sequence of LedgerRow, got None")
        rows = sorted(ledger, key=lambda r: r.period)
        if months_due is None:
            months_due = count_months_due(rows)
        elif months_due < 0:
            raise ValueError(f"months_due cannot be negative: {months_due}")
        channel = PaymentChannel(channel)
        minimum = min_periods_to_charge(months_due)

        t0 = time.monotonic()
        logger.info("payment_allocation_started", extra={
            "strategy": intent.strategy.value,
            "channel": channel.value,
            "months_due": months_due,
            "min_periods_to_charge": minimum,
            "row_count": len(rows),
        })

        try:
            rule = office_charge_rule(months_due, channel)
            if rule.status == ChargeRuleStatus.BLOCKED:
                raise PolicyBlockedError(months_due, channel.value)

            match intent.strategy:
                case PaymentStrategy.AUTO:
                    result = self._allocate_auto(rows, intent, months_due, minimum)
                case PaymentStrategy.MANUAL:
                    result = self._allocate_manual(rows, intent, months_due, minimum)
                case _:
                    raise ValueError(f"Unknown payment strategy: {intent.strategy}")
        except AllocationError as exc:
            logger.warning("payment_allocation_rejected", extra={
                "strategy": intent.strategy.value,
                "channel": channel.value,
                "error_code": exc.code,
                "months_due": months_due,
            })
            raise

        logger.info("payment_allocation_completed", extra={
            "strategy": result.strategy.value,
            "total_applied": str(result.total_applied.amount),
            "periods_applied": list(result.periods_applied),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result

    def _allocate_auto(
        self,
        rows: Sequence[LedgerRow],
        intent: PaymentIntent,
        months_due: int,
        minimum: int,
    ) -> AllocationResult:
        """Settle every open period, oldest first."""
        candidates = [row for row in rows if row.is_open]
        if candidates:
            currency = candidates[0].balance.currency
        elif intent.amount is not None:
            currency = intent.amount.currency
        else:
            currency = DEFAULT_CURRENCY

        live_total = Money.zero(currency)
        for row in candidates:
            live_total = live_total + row.balance

        if intent.amount is not None and intent.amount != live_total:
            raise StaleLedgerError(
                expected=str(intent.amount.amount),
                actual=str(live_total.amount),
            )

        if not candidates:
            logger.warning("payment_allocation_nothing_due", extra={
                "strategy": PaymentStrategy.AUTO.value,
            })

        remaining = live_total
        lines: list[AppliedPeriod] = []
        for row in candidates:
            if remaining.is_zero:
                break
            to_apply = min(remaining, row.balance)
            remaining = remaining - to_apply
            lines.append(
                AppliedPeriod(
                    period=row.period,
                    amount_applied=to_apply,
                    balance_before=row.balance,
                )
            )

        total_applied = live_total - remaining
        assert remaining.is_zero, (
            f"Auto allocation left {remaining} unapplied of {live_total}"
        )

        return AllocationResult(
            strategy=PaymentStrategy.AUTO,
            applied_breakdown=tuple(lines),
            total_applied=total_applied,
            remainder_as_credit=Money.zero(currency),
            credit_period=None,
            months_due=months_due,
            min_periods_to_charge=minimum,
        )

    def _allocate_manual(
        self,
        rows: Sequence[LedgerRow],
        intent: PaymentIntent,
        months_due: int,
        minimum: int,
    ) -> AllocationResult:
        """Validate and echo a caller-selected breakdown."""
        by_period = {row.period: row for row in rows}

        # 1. every period exists, is open, and is named once
        selected: list[tuple[LedgerRow, BreakdownEntry]] = []
        seen: set[str] = set()
        for entry in intent.breakdown:
            key = normalize_period(entry.period) or str(entry.period)
            row = by_period.get(key)
            if key in seen:
                raise InvalidPeriodSelectionError(
                    key, row.status.value if row else "unknown", reason="duplicate"
                )
            seen.add(key)
            if row is None:
                raise InvalidPeriodSelectionError(key, "unknown", reason="unknown")
            if not row.is_open:
                raise InvalidPeriodSelectionError(key, row.status.value)
            selected.append((row, entry))

        # 2. no period is overpaid
        for row, entry in selected:
            if entry.amount > row.balance:
                raise AmountExceedsBalanceError(
                    period=row.period,
                    amount=str(entry.amount.amount),
                    balance=str(row.balance.amount),
                )

        # 3. arrears minimum
        if len(selected) < minimum:
            raise ArrearsRuleViolationError(
                months_due=months_due,
                min_periods_to_charge=minimum,
                selected_count=len(selected),
            )

        selected.sort(key=lambda pair: pair[0].period)
        lines = tuple(
            AppliedPeriod(
                period=row.period,
                amount_applied=entry.amount,
                balance_before=row.balance,
            )
            for row, entry in selected
        )
        total_applied = intent.breakdown_total

        return AllocationResult(
            strategy=PaymentStrategy.MANUAL,
            applied_breakdown=lines,
            total_applied=total_applied,
            remainder_as_credit=Money.zero(total_applied.currency),
            credit_period=None,
            months_due=months_due,
            min_periods_to_charge=minimum,
        )
