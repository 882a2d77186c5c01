"""
membership_services.record_store -- Raw period record storage boundary.

Responsibility:
    Define the storage contract the payment service depends on
    (``PeriodRecordStore``) and an in-memory implementation used by tests,
    demos and the CLI.

Architecture position:
    Services -- the only layer allowed to hold state. Engines never see a
    store; they receive the record snapshot it returns.

Invariants enforced:
    - Records are append-only. A payment is stored as one record per
      period with ``charge = 0`` and ``paid = amount_applied``, so the
      ledger is always re-derived from raw records.
    - Every write bumps the group's version token by one. A write that
      names a stale version raises OptimisticLockError and changes nothing.

Failure modes:
    - OptimisticLockError when ``expected_version`` no longer matches.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from membership_engines.ledger import PeriodRecord
from membership_engines.payment_allocation import AllocationResult
from membership_kernel.domain.values import Money
from membership_kernel.exceptions import OptimisticLockError
from membership_kernel.logging_config import get_logger

logger = get_logger("services.record_store")


@dataclass(frozen=True)
class StoredLedger:
    """Raw records of one group and the version they were read at."""

    group_id: str
    records: tuple[PeriodRecord, ...]
    version: int


@runtime_checkable
class PeriodRecordStore(Protocol):
    """Storage contract for per-group period records."""

    def load(self, group_id: str) -> StoredLedger:
        """Snapshot of a group's records. Unknown groups are empty at version 0."""
        ...

    def append_payments(
        self,
        group_id: str,
        result: AllocationResult,
        expected_version: int,
    ) -> int:
        """Persist an allocation plan and return the new version."""
        ...


class InMemoryPeriodRecordStore:
    """
    Thread-safe, process-local PeriodRecordStore.

    Contract:
        Satisfies PeriodRecordStore. State lives for the lifetime of the
        instance.
    Non-goals:
        - No durability; a real deployment backs this with the billing
          database.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, list[PeriodRecord]] = {}
        self._versions: dict[str, int] = {}

    def load(self, group_id: str) -> StoredLedger:
        with self._lock:
            return StoredLedger(
                group_id=group_id,
                records=tuple(self._records.get(group_id, ())),
                version=self._versions.get(group_id, 0),
            )

    def add_records(self, group_id: str, records: Iterable[PeriodRecord]) -> int:
        """Append charge records (billing runs, imports). Returns the new version."""
        records = tuple(records)
        with self._lock:
            self._records.setdefault(group_id, []).extend(records)
            version = self._versions.get(group_id, 0) + 1
            self._versions[group_id] = version
        logger.debug("period_records_added", extra={
            "group_id": group_id,
            "record_count": len(records),
            "version": version,
        })
        return version

    def append_payments(
        self,
        group_id: str,
        result: AllocationResult,
        expected_version: int,
    ) -> int:
        payments = [
            PeriodRecord(
                period=line.period,
                charge=Money.zero(line.amount_applied.currency),
                paid=line.amount_applied,
            )
            for line in result.applied_breakdown
        ]
        with self._lock:
            actual = self._versions.get(group_id, 0)
            if actual != expected_version:
                raise OptimisticLockError(group_id, expected_version, actual)
            self._records.setdefault(group_id, []).extend(payments)
            version = actual + 1
            self._versions[group_id] = version

        logger.info("payment_records_appended", extra={
            "group_id": group_id,
            "record_count": len(payments),
            "total_applied": str(result.total_applied.amount),
            "version": version,
        })
        return version
