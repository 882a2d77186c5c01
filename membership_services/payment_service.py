"""
membership_services.payment_service -- Ledger snapshots and payment application.

Responsibility:
    Load a group's raw records, derive its ledger, plan a payment with the
    allocator and, unless it is a dry run, persist the plan. This is the
    imperative shell around the pure ledger and allocation engines.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes PeriodLedgerAggregator, PaymentAllocator and a
    PeriodRecordStore. Owns the clock.

Invariants enforced:
    - At most one payment application per group is in flight in this
      process (a fixed pool of striped locks keyed by group).
    - A commit names the version it planned against; the store refuses it
      if another writer got there first (OptimisticLockError).
    - A caller that passes the version of the snapshot it displayed gets
      StaleLedgerError when the ledger moved since.

Failure modes:
    - Every AllocationError the allocator raises propagates unchanged.
    - StaleLedgerError: ``expected_version`` does not match the store.
    - OptimisticLockError: a concurrent writer outside this process.

Usage:
    store = InMemoryPeriodRecordStore()
    service = PaymentService(store, clock=SystemClock())

    snapshot = service.ledger_snapshot("G-1")
    preview = service.preview_payment("G-1", PaymentIntent.auto(snapshot.summary.total_due))
    receipt = service.apply_payment(
        "G-1", PaymentIntent.auto(snapshot.summary.total_due),
        expected_version=snapshot.version,
    )
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from membership_engines.ledger import LedgerRow, LedgerSummary, PeriodLedgerAggregator
from membership_engines.payment_allocation import (
    AllocationResult,
    OfficeChargeRule,
    PaymentAllocator,
    PaymentChannel,
    PaymentIntent,
    office_charge_rule,
)
from membership_kernel.domain.clock import Clock, SystemClock
from membership_kernel.domain.values import DEFAULT_CURRENCY
from membership_kernel.exceptions import StaleLedgerError
from membership_kernel.logging_config import LogContext, get_logger
from membership_services.record_store import PeriodRecordStore

logger = get_logger("services.payment")

# Size of the striped lock pool serializing payments per group.
LOCK_STRIPES = 64


@dataclass(frozen=True)
class LedgerSnapshot:
    """What a cashier or collector is shown before charging."""

    group_id: str
    now_period: str
    rows: tuple[LedgerRow, ...]
    summary: LedgerSummary
    charge_rule: OfficeChargeRule
    version: int


@dataclass(frozen=True)
class PaymentReceipt:
    """
    Outcome of a payment request.

    ``committed`` is False for dry runs and for plans with nothing to
    apply; ``version`` is then the version the plan was computed at.
    """

    group_id: str
    result: AllocationResult
    committed: bool
    version: int


class PaymentService:
    """
    Payment orchestration for client groups.

    Contract:
        Receives the store and the clock via constructor injection.
    Guarantees:
        - Engines are always fed a fresh snapshot from the store.
        - ``dry_run`` never writes.
    Non-goals:
        - Receipts, cash-box movements and collector settlement are
          handled elsewhere.
    """

    def __init__(
        self,
        store: PeriodRecordStore,
        clock: Clock | None = None,
        currency: str = DEFAULT_CURRENCY,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._currency = currency
        self._aggregator = PeriodLedgerAggregator()
        self._allocator = PaymentAllocator()
        self._locks: tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(LOCK_STRIPES)
        )

    def _lock_for(self, group_id: str) -> threading.Lock:
        # Groups sharing a stripe serialize; one stripe is held at a time.
        return self._locks[hash(group_id) % LOCK_STRIPES]

    def ledger_snapshot(
        self,
        group_id: str,
        channel: PaymentChannel = PaymentChannel.OFFICE,
    ) -> LedgerSnapshot:
        """Current ledger, debt summary and arrears decision of a group."""
        with LogContext.bind(group_id=group_id, channel=PaymentChannel(channel).value):
            stored = self._store.load(group_id)
            now_period = self._clock.current_period()
            rows = self._aggregator.aggregate(records=stored.records, now_period=now_period)
            summary = self._aggregator.summarize(rows, self._currency)
            return LedgerSnapshot(
                group_id=group_id,
                now_period=now_period,
                rows=rows,
                summary=summary,
                charge_rule=office_charge_rule(summary.months_due, channel),
                version=stored.version,
            )

    def preview_payment(
        self,
        group_id: str,
        intent: PaymentIntent,
        channel: PaymentChannel = PaymentChannel.OFFICE,
        expected_version: int | None = None,
        actor_id: str | None = None,
    ) -> PaymentReceipt:
        """Plan a payment without persisting it."""
        return self.apply_payment(
            group_id,
            intent,
            channel=channel,
            dry_run=True,
            expected_version=expected_version,
            actor_id=actor_id,
        )

    def apply_payment(
        self,
        group_id: str,
        intent: PaymentIntent,
        channel: PaymentChannel = PaymentChannel.OFFICE,
        dry_run: bool = False,
        expected_version: int | None = None,
        actor_id: str | None = None,
    ) -> PaymentReceipt:
        """
        Plan and (unless ``dry_run``) persist a payment.

        Args:
            group_id: Client group being charged.
            intent: Auto or manual payment request.
            channel: Office cashier or field collector.
            dry_run: Return the plan without writing it.
            expected_version: Version of the snapshot the payer was shown.
            actor_id: Cashier or collector taking the payment, for the log.

        Raises:
            StaleLedgerError: ``expected_version`` is out of date.
            AllocationError: any rejection from the allocator.
            OptimisticLockError: the store moved between read and write.
        """
        channel = PaymentChannel(channel)
        with LogContext.bind(group_id=group_id, channel=channel.value, actor_id=actor_id):
            with self._lock_for(group_id):
                stored = self._store.load(group_id)
                if expected_version is not None and expected_version != stored.version:
                    logger.warning("payment_snapshot_stale", extra={
                        "expected_version": expected_version,
                        "actual_version": stored.version,
                    })
                    raise StaleLedgerError(
                        expected=str(expected_version),
                        actual=str(stored.version),
                    )

                rows = self._aggregator.aggregate(
                    records=stored.records,
                    now_period=self._clock.current_period(),
                )
                result = self._allocator.allocate(
                    ledger=rows,
                    intent=intent,
                    channel=channel,
                )

                if dry_run or result.is_empty:
                    logger.info("payment_previewed", extra={
                        "strategy": result.strategy.value,
                        "total_applied": str(result.total_applied.amount),
                        "dry_run": dry_run,
                        "version": stored.version,
                    })
                    return PaymentReceipt(
                        group_id=group_id,
                        result=result,
                        committed=False,
                        version=stored.version,
                    )

                version = self._store.append_payments(
                    group_id, result, expected_version=stored.version
                )
                logger.info("payment_applied", extra={
                    "strategy": result.strategy.value,
                    "total_applied": str(result.total_applied.amount),
                    "periods_applied": list(result.periods_applied),
                    "version": version,
                })
                return PaymentReceipt(
                    group_id=group_id,
                    result=result,
                    committed=True,
                    version=version,
                )
