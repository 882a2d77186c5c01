"""
membership_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines
    (membership_engines/) with record storage and the clock. This is the
    only layer that may hold state or read wall-clock time.

Architecture position:
    Services -- imperative shell over engines + kernel.

    Dependency direction:
        membership_services/ -> membership_engines/  (allowed)
        membership_services/ -> membership_kernel/   (allowed)
        membership_engines/  -> membership_services/ (FORBIDDEN)
        membership_kernel/   -> membership_services/ (FORBIDDEN)
"""

from membership_kernel.logging_config import get_logger

logger = get_logger("services")

from membership_services.payment_service import (
    LedgerSnapshot,
    PaymentReceipt,
    PaymentService,
)
from membership_services.pricing_service import PricingService
from membership_services.record_store import (
    InMemoryPeriodRecordStore,
    PeriodRecordStore,
    StoredLedger,
)

__all__ = [
    "InMemoryPeriodRecordStore",
    "LedgerSnapshot",
    "PaymentReceipt",
    "PaymentService",
    "PeriodRecordStore",
    "PricingService",
    "StoredLedger",
]
