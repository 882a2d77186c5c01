"""
Module: membership_engines.pricing
Responsibility:
    Compute the rules-based ("ideal") recurring charge of a client group
    from its composition: group size, oldest covered age, and the number
    of members with cremation coverage.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Reads PricingRules from membership_config.schema.

Invariants enforced:
    - Decimal-only arithmetic, never binary float.
    - The ideal charge is rounded to the nearest 500 with the midpoint
      going up. This is a display policy and is reproduced exactly.
    - ``round_to_500(round_to_500(x)) == round_to_500(x)``.
    - More cremations never lower the charge; crossing an age tier upward
      never lowers the age factor (for tiers whose coefficients grow with
      age).

Failure modes:
    - None on inputs: negative or non-numeric inputs are clamped
      (``integrantes`` >= 1, ``edad_max`` >= 0, ``cremaciones`` >= 0).
      This is a preview computation and must never crash its caller.

Usage:
    from membership_engines.pricing import PricingEngine, PricingInputs
    from membership_config import DEFAULT_PRICING_RULES

    engine = PricingEngine()
    engine.compute_ideal_charge(
        rules=DEFAULT_PRICING_RULES,
        inputs=PricingInputs(integrantes=4, edad_max=55, cremaciones=0),
    )  # Money("18000.00", "ARS")
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from membership_config.schema import AgeTier, GroupRules, PricingRules
from membership_engines.tracer import traced_engine
from membership_kernel.domain.values import Money
from membership_kernel.logging_config import get_logger

logger = get_logger("engines.pricing")

ROUNDING_STEP = Decimal("500")
ROUNDING_MIDPOINT = Decimal("250")


def round_to_500(value: Decimal) -> Decimal:
    """
    Round to the nearest 500, midpoint up.

    ``r = value mod 500``; ``value - r`` when ``r < 250`` else
    ``value - r + 500``. Non-finite values round to 0.
    """
    if not value.is_finite():
        return Decimal("0")
    remainder = value % ROUNDING_STEP
    down = value - remainder
    return down + ROUNDING_STEP if remainder >= ROUNDING_MIDPOINT else down


def _clamp_int(value: Any, floor: int, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    if not number.is_finite():
        return default
    return max(floor, int(number))


@dataclass(frozen=True)
class PricingInputs:
    """
    Composition of a client group.

    Guarantees:
        - ``integrantes >= 1``, ``edad_max >= 0``, ``cremaciones >= 0``.
          Out-of-range or non-numeric values are clamped on construction,
          never rejected.
        - Counts are whole numbers: a fractional value such as "2.9" is
          truncated toward zero, so it prices as a group of 2.
    """

    integrantes: int = 1
    edad_max: int = 0
    cremaciones: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "integrantes", _clamp_int(self.integrantes, 1, 1))
        object.__setattr__(self, "edad_max", _clamp_int(self.edad_max, 0, 0))
        object.__setattr__(self, "cremaciones", _clamp_int(self.cremaciones, 0, 0))

    @classmethod
    def of(cls, integrantes: Any = None, edad_max: Any = None, cremaciones: Any = None) -> PricingInputs:
        """Build from raw form values (strings, None, numbers)."""
        return cls(integrantes=integrantes, edad_max=edad_max, cremaciones=cremaciones)


@dataclass(frozen=True)
class PricingQuote:
    """
    The ideal charge together with the factors that produced it.

    Guarantees:
        - ``subtotal == base * group_factor * age_factor + cremation_cost``.
        - ``ideal_charge == round_to_500(subtotal)``.
    """

    rules_version: str
    inputs: PricingInputs
    group_factor: Decimal
    age_factor: Decimal
    cremation_cost: Money
    subtotal: Money
    ideal_charge: Money


@dataclass(frozen=True)
class ChargeComparison:
    """Ideal charge against what the group is actually billed."""

    ideal: Money
    billed: Money
    delta_amount: Money
    delta_pct: Decimal | None  # None when nothing is billed

    @property
    def is_underbilled(self) -> bool:
        return self.delta_amount.is_positive


class PricingEngine:
    """
    Rules-based membership pricing.

    Contract:
        Pure functions of (rules, inputs). No I/O.
    Guarantees:
        - Deterministic: identical rules and inputs give identical quotes.
        - Never raises on group inputs.
    Non-goals:
        - The result is a preview; the authoritative charge is validated
          by the billing backend.
    """

    def group_factor(self, group: GroupRules, integrantes: int) -> Decimal:
        """Override from ``min_map``, else linear around the neutral size."""
        size = max(1, integrantes)
        override = group.override_for(size)
        if override is not None:
            return override
        return Decimal("1") + Decimal(size - group.neutral_at) * group.step

    def age_factor(self, tiers: Sequence[AgeTier], edad_max: int) -> Decimal:
        """Coefficient of the highest tier the oldest member reaches, else 1."""
        for tier in sorted(tiers, key=lambda t: t.min_age, reverse=True):
            if tier.min_age <= edad_max:
                return tier.coef
        return Decimal("1")

    @traced_engine("pricing", "1.0", fingerprint_fields=("rules", "inputs"))
    def quote(self, rules: PricingRules, inputs: PricingInputs) -> PricingQuote:
        """Ideal charge with its breakdown."""
        base = rules.base
        group_factor = self.group_factor(rules.group, inputs.integrantes)
        age_factor = self.age_factor(rules.age, inputs.edad_max)
        cremation_cost = base * rules.cremation_coef * Decimal(max(0, inputs.cremaciones))
        subtotal = base * group_factor * age_factor + cremation_cost
        ideal = round_to_500(subtotal)

        logger.debug("pricing_quote_computed", extra={
            "rules_version": rules.version,
            "integrantes": inputs.integrantes,
            "edad_max": inputs.edad_max,
            "cremaciones": inputs.cremaciones,
            "group_factor": str(group_factor),
            "age_factor": str(age_factor),
            "subtotal": str(subtotal),
            "ideal_charge": str(ideal),
        })

        return PricingQuote(
            rules_version=rules.version,
            inputs=inputs,
            group_factor=group_factor,
            age_factor=age_factor,
            cremation_cost=Money.of(cremation_cost, rules.currency),
            subtotal=Money.of(subtotal, rules.currency),
            ideal_charge=Money.of(ideal, rules.currency).round(),
        )

    def compute_ideal_charge(self, rules: PricingRules, inputs: PricingInputs) -> Money:
        """The rules-derived recurring charge for a group."""
        return self.quote(rules=rules, inputs=inputs).ideal_charge

    def compare_to_billed(self, ideal: Money, billed: Money) -> ChargeComparison:
        """
        How far the billed charge is from the ideal one.

        ``delta_pct`` is relative to the billed amount, rounded to two
        decimals, and None when nothing is billed.
        """
        delta = ideal - billed
        delta_pct = None
        if not billed.is_zero:
            delta_pct = (delta.amount / billed.amount * Decimal("100")).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
        return ChargeComparison(
            ideal=ideal,
            billed=billed,
            delta_amount=delta,
            delta_pct=delta_pct,
        )
