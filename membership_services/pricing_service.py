"""
membership_services.pricing_service -- On-demand ideal charge for a group.

Resolves the pricing rules version in effect for a period from the catalog
and runs the pricing engine with it. A group priced for an older period is
priced with the rules of that period, so publishing new rules never
reprices history.
"""

from __future__ import annotations

from membership_config.catalog import RulesCatalog
from membership_engines.pricing import (
    ChargeComparison,
    PricingEngine,
    PricingInputs,
    PricingQuote,
)
from membership_kernel.domain.clock import Clock, SystemClock
from membership_kernel.domain.values import Money
from membership_kernel.logging_config import get_logger

logger = get_logger("services.pricing")


class PricingService:
    """Ideal charges priced with the rules version of the requested period."""

    def __init__(self, catalog: RulesCatalog, clock: Clock | None = None):
        self._catalog = catalog
        self._clock = clock or SystemClock()
        self._engine = PricingEngine()

    def quote(self, inputs: PricingInputs, period: str | None = None) -> PricingQuote:
        period = period or self._clock.current_period()
        rules = self._catalog.rules_for(period)
        quote = self._engine.quote(rules=rules, inputs=inputs)
        logger.info("ideal_charge_computed", extra={
            "period": period,
            "rules_version": rules.version,
            "ideal_charge": str(quote.ideal_charge.amount),
        })
        return quote

    def ideal_charge_for(self, inputs: PricingInputs, period: str | None = None) -> Money:
        """Ideal charge under the rules in effect at ``period`` (default: now)."""
        return self.quote(inputs, period).ideal_charge

    def compare(
        self,
        inputs: PricingInputs,
        billed: Money,
        period: str | None = None,
    ) -> ChargeComparison:
        """Ideal charge against what the group is billed."""
        return self._engine.compare_to_billed(self.ideal_charge_for(inputs, period), billed)
