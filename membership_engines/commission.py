"""
Collector commission estimate.

A collector earns ``rate`` of each amount collected. Cash held longer than
the grace period loses ``penalty_per_day`` of that commission for every
extra day, never going below zero. ``expected`` is what the collector would
earn if the whole portfolio were collected on time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from membership_config.schema import CommissionConfig
from membership_engines.ledger import LedgerRow
from membership_engines.tracer import traced_engine
from membership_kernel.domain.values import Money, sum_money
from membership_kernel.logging_config import get_logger

logger = get_logger("engines.commission")


@dataclass(frozen=True)
class HeldCollection:
    """An amount collected and the days it stayed in the collector's hands."""

    amount: Money
    days_in_hand: int = 0

    def __post_init__(self) -> None:
        if not self.amount.is_positive:
            raise ValueError(f"Collected amount must be positive, got: {self.amount}")
        if self.days_in_hand < 0:
            raise ValueError(f"days_in_hand cannot be negative, got: {self.days_in_hand}")


@dataclass(frozen=True)
class CommissionEstimate:
    expected: Money
    current: Money
    current_without_penalty: Money
    penalty: Money
    already_paid: Money
    pending: Money


class CommissionEstimator:
    """
    Pure commission arithmetic over a portfolio and the collections made.

    All figures are rounded to the currency's places, half up.
    """

    def penalty_fraction(self, config: CommissionConfig, days_in_hand: int) -> Decimal:
        """Share of a commission lost for holding cash ``days_in_hand`` days, capped at 1."""
        late_days = max(0, days_in_hand - config.grace_days)
        return min(Decimal("1"), config.penalty_per_day * late_days)

    @traced_engine("commission", "1.0", fingerprint_fields=("config",))
    def estimate(
        self,
        portfolio: Iterable[LedgerRow],
        collections: Iterable[HeldCollection],
        config: CommissionConfig,
        already_paid: Money | None = None,
    ) -> CommissionEstimate:
        currency = config.currency
        paid_out = already_paid if already_paid is not None else Money.zero(currency)
        if paid_out.is_negative:
            raise ValueError(f"already_paid cannot be negative: {paid_out}")

        expected = sum_money((row.charge for row in portfolio), currency) * config.rate

        gross = Money.zero(currency)
        net = Money.zero(currency)
        for collection in collections:
            commission = collection.amount * config.rate
            lost = commission * self.penalty_fraction(config, collection.days_in_hand)
            gross = gross + commission
            net = net + (commission - lost)

        current = net.round()
        without_penalty = gross.round()
        pending = current - paid_out.round()
        if pending.is_negative:
            pending = Money.zero(currency)

        estimate = CommissionEstimate(
            expected=expected.round(),
            current=current,
            current_without_penalty=without_penalty,
            penalty=without_penalty - current,
            already_paid=paid_out.round(),
            pending=pending.round(),
        )
        logger.debug("commission_estimated", extra={
            "rate": str(config.rate),
            "expected": str(estimate.expected.amount),
            "current": str(estimate.current.amount),
            "penalty": str(estimate.penalty.amount),
            "pending": str(estimate.pending.amount),
        })
        return estimate
