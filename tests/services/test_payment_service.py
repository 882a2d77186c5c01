"""
Tests for PaymentService and the in-memory record store.

Covers:
- Ledger snapshots (rows, summary, arrears decision, version)
- Preview (dry run) never writes
- Commit appends payment records and re-derives the ledger
- Stale snapshot versions and optimistic lock conflicts
- Per-group serialization under concurrent payments
- Log context binding
"""

import threading

import pytest

from membership_engines.ledger import LedgerStatus
from membership_engines.payment_allocation import (
    ChargeRuleStatus,
    PaymentChannel,
    PaymentIntent,
)
from membership_kernel.domain.values import Money
from membership_kernel.exceptions import (
    ArrearsRuleViolationError,
    OptimisticLockError,
    PolicyBlockedError,
    StaleLedgerError,
)
from membership_services import (
    InMemoryPeriodRecordStore,
    PaymentService,
    PeriodRecordStore,
)
from membership_services.payment_service import LOCK_STRIPES


def _m(amount):
    return Money.of(amount)


@pytest.fixture
def store(record):
    store = InMemoryPeriodRecordStore()
    store.add_records("G-1", [
        record("2025-01", "10000", "0"),
        record("2025-02", "10000", "3000"),
        record("2025-03", "10000", "0"),
        record("2025-04", "10000", "0"),
    ])
    return store


@pytest.fixture
def service(store, deterministic_clock):
    return PaymentService(store, clock=deterministic_clock)


class TestRecordStore:
    """Tests for InMemoryPeriodRecordStore."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryPeriodRecordStore(), PeriodRecordStore)

    def test_unknown_group_is_empty(self):
        stored = InMemoryPeriodRecordStore().load("nobody")
        assert stored.records == () and stored.version == 0

    def test_add_records_bumps_version(self, store, record):
        assert store.load("G-1").version == 1
        assert store.add_records("G-1", [record("2025-05", "10000")]) == 2


class TestLedgerSnapshot:
    """Tests for PaymentService.ledger_snapshot."""

    def test_snapshot(self, service):
        snapshot = service.ledger_snapshot("G-1")

        assert snapshot.now_period == "2025-03"
        assert [r.status for r in snapshot.rows] == [
            LedgerStatus.DUE,
            LedgerStatus.PARTIAL,
            LedgerStatus.DUE,
            LedgerStatus.FUTURE,
        ]
        assert snapshot.summary.months_due == 3
        assert snapshot.summary.total_due == _m("27000")
        assert snapshot.charge_rule.status == ChargeRuleStatus.RESTRICTED
        assert snapshot.version == 1

    def test_unknown_group_snapshot(self, deterministic_clock):
        service = PaymentService(InMemoryPeriodRecordStore(), clock=deterministic_clock)
        snapshot = service.ledger_snapshot("new")
        assert snapshot.rows == ()
        assert snapshot.summary.total_due == Money.zero("ARS")
        assert snapshot.charge_rule.status == ChargeRuleStatus.OK


class TestApplyPayment:
    """Tests for preview and commit."""

    def test_preview_does_not_write(self, service, store):
        receipt = service.preview_payment("G-1", PaymentIntent.auto(_m("27000")))

        assert not receipt.committed
        assert receipt.result.total_applied == _m("27000")
        assert receipt.version == 1
        assert store.load("G-1").version == 1

    def test_commit_settles_periods(self, service, store):
        receipt = service.apply_payment(
            "G-1",
            PaymentIntent.manual([("2025-01", _m("10000")), ("2025-02", _m("7000"))]),
            expected_version=1,
        )
        assert receipt.committed
        assert receipt.version == 2

        snapshot = service.ledger_snapshot("G-1")
        statuses = {r.period: r.status for r in snapshot.rows}
        assert statuses["2025-01"] == LedgerStatus.PAID
        assert statuses["2025-02"] == LedgerStatus.PAID
        assert snapshot.summary.months_due == 1
        assert snapshot.charge_rule.status == ChargeRuleStatus.OK

    def test_payments_stored_as_records(self, service, store):
        service.apply_payment("G-1", PaymentIntent.auto())
        payments = [r for r in store.load("G-1").records if r.charge.is_zero]
        assert [(p.period, p.paid) for p in payments] == [
            ("2025-01", _m("10000")),
            ("2025-02", _m("7000")),
            ("2025-03", _m("10000")),
        ]

    def test_rejections_propagate_and_do_not_write(self, service, store):
        with pytest.raises(ArrearsRuleViolationError):
            service.apply_payment("G-1", PaymentIntent.manual([("2025-01", _m("10000"))]))
        assert store.load("G-1").version == 1

    def test_stale_snapshot_version(self, service, store, record):
        snapshot = service.ledger_snapshot("G-1")
        store.add_records("G-1", [record("2024-12", "10000")])

        with pytest.raises(StaleLedgerError) as exc_info:
            service.apply_payment(
                "G-1", PaymentIntent.auto(), expected_version=snapshot.version
            )
        assert exc_info.value.expected == "1"
        assert exc_info.value.actual == "2"

    def test_blocked_at_office_allowed_for_collector(self, service, store, record):
        store.add_records("G-1", [record("2024-12", "10000")])

        with pytest.raises(PolicyBlockedError):
            service.apply_payment("G-1", PaymentIntent.auto())

        receipt = service.apply_payment(
            "G-1", PaymentIntent.auto(), channel=PaymentChannel.COLLECTOR
        )
        assert receipt.committed
        assert receipt.result.total_applied == _m("37000")

    def test_nothing_due_is_not_committed(self, deterministic_clock, record):
        store = InMemoryPeriodRecordStore()
        store.add_records("G-2", [record("2025-01", "10000", "10000")])
        service = PaymentService(store, clock=deterministic_clock)

        receipt = service.apply_payment("G-2", PaymentIntent.auto())
        assert not receipt.committed
        assert receipt.result.is_empty
        assert store.load("G-2").version == 1

    def test_log_context_bound(self, service, captured_logs):
        service.apply_payment("G-1", PaymentIntent.auto(), actor_id="cashier-3")
        applied = [r for r in captured_logs() if r["message"] == "payment_applied"]
        assert applied[0]["group_id"] == "G-1"
        assert applied[0]["channel"] == "office"
        assert applied[0]["actor_id"] == "cashier-3"


class TestConcurrency:
    """Tests for per-group serialization and optimistic locking."""

    def test_store_rejects_stale_write(self, service, store):
        receipt = service.preview_payment("G-1", PaymentIntent.auto())
        store.append_payments("G-1", receipt.result, expected_version=1)

        with pytest.raises(OptimisticLockError) as exc_info:
            store.append_payments("G-1", receipt.result, expected_version=1)
        assert exc_info.value.actual_version == 2

    def test_concurrent_auto_payments_apply_once(self, service, store):
        """Four cashiers charging the same shown total: exactly one wins."""
        shown = service.ledger_snapshot("G-1").summary.total_due
        outcomes = []
        barrier = threading.Barrier(4)

        def pay():
            barrier.wait()
            try:
                outcomes.append(service.apply_payment("G-1", PaymentIntent.auto(shown)))
            except StaleLedgerError as exc:
                outcomes.append(exc)

        threads = [threading.Thread(target=pay) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        committed = [o for o in outcomes if not isinstance(o, Exception) and o.committed]
        assert len(committed) == 1
        assert sum(isinstance(o, StaleLedgerError) for o in outcomes) == 3
        assert service.ledger_snapshot("G-1").summary.months_due == 0

    def test_lock_pool_does_not_grow_with_groups(self, service):
        locks = {id(service._lock_for(f"G-{n}")) for n in range(1000)}
        assert len(locks) <= LOCK_STRIPES
        assert service._lock_for("G-1") is service._lock_for("G-1")
