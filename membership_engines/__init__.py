"""
Module: membership_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the import surface for higher layers
    (membership_services, scripts).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import membership_kernel, membership_config and sibling
    engine modules. MUST NOT import membership_services.

Invariants enforced:
    - Purity: engines never read the clock. The current billing period is
      always passed in (``now_period``).
    - Decimal-only arithmetic: amounts are Money; floats are rejected.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - Typed MembershipError subclasses for business rejections.
    - ValueError / TypeError for malformed inputs.

Usage:
    from membership_engines.ledger import PeriodLedgerAggregator
    from membership_engines.payment_allocation import PaymentAllocator
    from membership_engines.pricing import PricingEngine
    from membership_engines.commission import CommissionEstimator
"""

from membership_kernel.logging_config import get_logger

logger = get_logger("engines")

from membership_engines.commission import (
    CommissionEstimate,
    CommissionEstimator,
    HeldCollection,
)
from membership_engines.ledger import (
    OPEN_STATUSES,
    LedgerRow,
    LedgerStatus,
    LedgerSummary,
    PeriodLedgerAggregator,
    PeriodRecord,
    classify_status,
    count_months_due,
)
from membership_engines.payment_allocation import (
    AllocationResult,
    AppliedPeriod,
    BreakdownEntry,
    ChargeRuleStatus,
    OfficeChargeRule,
    PaymentAllocator,
    PaymentChannel,
    PaymentIntent,
    PaymentStrategy,
    min_periods_to_charge,
    office_charge_rule,
)
from membership_engines.pricing import (
    ChargeComparison,
    PricingEngine,
    PricingInputs,
    PricingQuote,
    round_to_500,
)
from membership_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AllocationResult",
    "AppliedPeriod",
    "BreakdownEntry",
    "ChargeComparison",
    "ChargeRuleStatus",
    "CommissionEstimate",
    "CommissionEstimator",
    "HeldCollection",
    "LedgerRow",
    "LedgerStatus",
    "LedgerSummary",
    "OPEN_STATUSES",
    "OfficeChargeRule",
    "PaymentAllocator",
    "PaymentChannel",
    "PaymentIntent",
    "PaymentStrategy",
    "PeriodLedgerAggregator",
    "PeriodRecord",
    "PricingEngine",
    "PricingInputs",
    "PricingQuote",
    "classify_status",
    "compute_input_fingerprint",
    "count_months_due",
    "min_periods_to_charge",
    "office_charge_rule",
    "round_to_500",
    "traced_engine",
]
