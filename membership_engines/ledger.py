"""
Module: membership_engines.ledger
Responsibility:
    Fold raw per-period charge/payment records (possibly duplicated or
    fragmented per period) into one canonical, status-classified row per
    billing period, and summarize a ledger into the debt figures the
    cashier and collector screens show.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import membership_kernel.

Invariants enforced:
    - For every LedgerRow, ``balance == charge - paid`` exactly (Decimal
      money, no float rounding).
    - Status is a pure function of (charge, paid, period, now_period,
      future hint): identical inputs always classify identically.
    - Rows come out sorted ascending by period key.
    - Purity: ``now_period`` is a parameter, the clock is never read.

Failure modes:
    - Records with a malformed period key are dropped and logged, never
      fatal.
    - MalformedPeriodKeyError when ``now_period`` itself is malformed.
    - TypeError when ``records`` is None.
    - ValueError when records mix currencies.

Usage:
    from membership_engines.ledger import PeriodLedgerAggregator, PeriodRecord
    from membership_kernel.domain.values import Money

    rows = PeriodLedgerAggregator().aggregate(
        records=[
            PeriodRecord("2025-02", charge=Money.of(10000), paid=Money.of(3000)),
        ],
        now_period="2025-03",
    )
    rows[0].status  # LedgerStatus.PARTIAL
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from membership_engines.tracer import traced_engine
from membership_kernel.domain.periods import parse_period
from membership_kernel.domain.values import DEFAULT_CURRENCY, Currency, Money
from membership_kernel.exceptions import MalformedPeriodKeyError
from membership_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")


class LedgerStatus(str, Enum):
    """Classification of a billing period."""

    FUTURE = "future"  # Not billable yet
    DUE = "due"  # Owed, nothing paid
    PARTIAL = "partial"  # Owed, something paid
    PAID = "paid"  # Settled
    CREDIT = "credit"  # Overpaid / prepaid

    @classmethod
    def coerce(cls, value: Any) -> LedgerStatus | None:
        """Map a raw status hint to a member; unknown hints become None."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


OPEN_STATUSES: frozenset[LedgerStatus] = frozenset(
    {LedgerStatus.DUE, LedgerStatus.PARTIAL}
)


def _to_decimal(value: Any) -> Decimal:
    """Lenient numeric read for API-shaped payloads; junk reads as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    return result if result.is_finite() else Decimal("0")


@dataclass(frozen=True)
class PeriodRecord:
    """
    One raw charge/payment record for a billing period.

    Contract:
        Frozen dataclass. Several records may share a period key.
    Guarantees:
        - ``charge`` and ``paid`` are non-negative.
    Non-goals:
        - Does not validate ``period``; the aggregator drops malformed keys
          so that one bad row never breaks a whole ledger.
    """

    period: str
    charge: Money
    paid: Money
    balance: Money | None = None
    status: LedgerStatus | None = None

    def __post_init__(self) -> None:
        if self.charge.is_negative:
            raise ValueError(f"charge cannot be negative: {self.charge}")
        if self.paid.is_negative:
            raise ValueError(f"paid cannot be negative: {self.paid}")
        object.__setattr__(self, "status", LedgerStatus.coerce(self.status))

    @property
    def computed_balance(self) -> Money:
        return self.charge - self.paid

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        currency: str | Currency = DEFAULT_CURRENCY,
    ) -> PeriodRecord:
        """
        Build a record from an API-shaped dict.

        Accepts ``charge`` or the legacy ``amountDue`` key. Missing or
        non-numeric amounts read as zero.
        """
        charge_raw = data.get("charge")
        if charge_raw is None:
            charge_raw = data.get("amountDue")
        balance_raw = data.get("balance")
        return cls(
            period=str(data.get("period") or ""),
            charge=Money.of(_to_decimal(charge_raw), currency),
            paid=Money.of(_to_decimal(data.get("paid")), currency),
            balance=(
                Money.of(_to_decimal(balance_raw), currency)
                if balance_raw is not None
                else None
            ),
            status=data.get("status"),
        )


@dataclass(frozen=True)
class LedgerRow:
    """
    Canonical summary of one billing period.

    Contract:
        Immutable snapshot, re-derived on every read from raw records.
    Guarantees:
        - ``balance == charge - paid`` exactly.
    """

    period: str
    charge: Money
    paid: Money
    balance: Money
    status: LedgerStatus

    def __post_init__(self) -> None:
        if self.balance != self.charge - self.paid:
            raise ValueError(
                f"Ledger row {self.period}: balance {self.balance} != "
                f"charge {self.charge} - paid {self.paid}"
            )

    @property
    def is_open(self) -> bool:
        """True when the period can receive a payment."""
        return self.status in OPEN_STATUSES


@dataclass(frozen=True)
class LedgerSummary:
    """
    Debt figures derived from a ledger.

    Guarantees:
        - ``months_due`` counts rows with status due or partial.
        - ``total_due`` sums positive balances of non-future rows.
        - ``credit_total`` sums the absolute value of negative balances.
    """

    months_due: int
    total_due: Money
    credit_total: Money
    last_due_period: str | None

    @property
    def has_debt(self) -> bool:
        return self.months_due > 0 or self.total_due.is_positive


def classify_status(
    charge: Money,
    paid: Money,
    period: str,
    now_period: str,
    future_hint: bool = False,
) -> LedgerStatus:
    """
    Classify a period. First match wins:

    1. hinted future and balance >= 0 -> future (only a prepayment, i.e. a
       negative balance, takes a future period out of future early)
    2. balance < 0 -> credit
    3. balance > 0 and paid > 0 -> partial
    4. balance > 0 and nothing paid -> due, or future after now_period
    5. balance == 0 -> paid, or future after now_period
    """
    balance = charge - paid
    is_future_by_date = period > now_period

    if future_hint and not balance.is_negative:
        return LedgerStatus.FUTURE
    if balance.is_negative:
        return LedgerStatus.CREDIT
    if balance.is_positive:
        if paid.is_positive:
            return LedgerStatus.PARTIAL
        return LedgerStatus.FUTURE if is_future_by_date else LedgerStatus.DUE
    return LedgerStatus.FUTURE if is_future_by_date else LedgerStatus.PAID


def count_months_due(rows: Iterable[LedgerRow]) -> int:
    """Arrears: number of periods currently due or partial."""
    return sum(1 for row in rows if row.is_open)


@dataclass
class _LedgerRowBuilder:
    """Per-period accumulator used while folding records."""

    period: str
    charge: Money
    paid: Money
    future_hint: bool = False
    record_count: int = 0

    def add(self, record: PeriodRecord) -> None:
        self.charge = self.charge + record.charge
        self.paid = self.paid + record.paid
        self.future_hint = self.future_hint or record.status == LedgerStatus.FUTURE
        self.record_count += 1

    def build(self, now_period: str) -> LedgerRow:
        return LedgerRow(
            period=self.period,
            charge=self.charge,
            paid=self.paid,
            balance=self.charge - self.paid,
            status=classify_status(
                self.charge, self.paid, self.period, now_period, self.future_hint
            ),
        )


class PeriodLedgerAggregator:
    """
    Build the canonical per-period ledger from raw records.

    Contract:
        Pure function of (records, now_period). No I/O, no clock access.
    Guarantees:
        - One row per distinct valid period key, ascending.
        - ``balance == charge - paid`` on every row.
        - Empty input yields an empty ledger.
    Non-goals:
        - Does not persist anything; rows are recomputed on every read.
        - Does not trust a record's own ``balance``: a disagreeing value is
          logged and ignored.
    """

    def aggregate(
        self,
        records: Iterable[PeriodRecord],
        now_period: str,
    ) -> tuple[LedgerRow, ...]:
        """
        Fold records into one status-classified row per period.

        Args:
            records: Raw period records in any order; any iterable is read once.
            now_period: Current billing period ("YYYY-MM").

        Returns:
            Ledger rows sorted ascending by period.
        """
        if records is None:
            raise TypeError("records must be a sequence, got None")
        return self._fold(records=tuple(records), now_period=now_period)

    @traced_engine("ledger", "1.0", fingerprint_fields=("records", "now_period"))
    def _fold(
        self,
        records: tuple[PeriodRecord, ...],
        now_period: str,
    ) -> tuple[LedgerRow, ...]:
        now = parse_period(now_period)

        t0 = time.monotonic()
        builders: dict[str, _LedgerRowBuilder] = {}
        dropped = 0

        for record in records:
            try:
                key = parse_period(record.period)
            except MalformedPeriodKeyError as exc:
                dropped += 1
                logger.warning("ledger_record_dropped", extra={
                    "period_key": str(exc.period_key),
                    "reason": exc.code,
                })
                continue

            if record.balance is not None and record.balance != record.computed_balance:
                logger.warning("ledger_record_balance_mismatch", extra={
                    "period": key,
                    "reported_balance": str(record.balance.amount),
                    "computed_balance": str(record.computed_balance.amount),
                })

            builder = builders.get(key)
            if builder is None:
                builder = _LedgerRowBuilder(
                    period=key,
                    charge=Money.zero(record.charge.currency),
                    paid=Money.zero(record.charge.currency),
                )
                builders[key] = builder
            builder.add(record)

        rows = tuple(builders[key].build(now) for key in sorted(builders))

        logger.info("ledger_aggregation_completed", extra={
            "record_count": len(records),
            "row_count": len(rows),
            "dropped_count": dropped,
            "now_period": now,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return rows

    def summarize(
        self,
        rows: Sequence[LedgerRow],
        currency: str | Currency = DEFAULT_CURRENCY,
    ) -> LedgerSummary:
        """Debt figures for a ledger (``currency`` is only used when empty)."""
        if rows:
            currency = rows[0].charge.currency
        total_due = Money.zero(currency)
        credit_total = Money.zero(currency)
        for row in rows:
            if row.balance.is_positive and row.status != LedgerStatus.FUTURE:
                total_due = total_due + row.balance
            elif row.balance.is_negative:
                credit_total = credit_total + abs(row.balance)

        open_periods = [row.period for row in rows if row.is_open]
        return LedgerSummary(
            months_due=len(open_periods),
            total_due=total_due,
            credit_total=credit_total,
            last_due_period=max(open_periods) if open_periods else None,
        )
