"""
Pricing and commission configuration schema.

Defines the human-authored, reviewable configuration artifacts. YAML files
are parsed into these types by the loader and collected by the catalog.

Every type is a frozen dataclass: a rules version is never mutated in place,
a change is a new version with a later ``effective_from``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from membership_config.lifecycle import RulesStatus


def to_decimal(value: Any) -> Decimal:
    """Exact Decimal from YAML scalars (floats go through their repr)."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Expected a number, got {value!r}")
    return Decimal(str(value))


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgeTier:
    """Coefficient applied when the oldest covered member is at least ``min_age``."""

    min_age: int
    coef: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "coef", to_decimal(self.coef))


@dataclass(frozen=True)
class GroupRules:
    """
    Group-size factor parameters.

    ``min_map`` holds explicit factors for small groups (sizes 1-3 by
    default); every other size uses ``1 + (size - neutral_at) * step``.
    """

    neutral_at: int = 4
    step: Decimal = Decimal("0.25")
    min_map: tuple[tuple[int, Decimal], ...] = (
        (1, Decimal("0.5")),
        (2, Decimal("0.75")),
        (3, Decimal("1.0")),
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "step", to_decimal(self.step))
        object.__setattr__(
            self,
            "min_map",
            tuple(sorted((int(k), to_decimal(v)) for k, v in self.min_map)),
        )

    def override_for(self, size: int) -> Decimal | None:
        for key, factor in self.min_map:
            if key == size:
                return factor
        return None


DEFAULT_AGE_TIERS: tuple[AgeTier, ...] = (
    AgeTier(66, Decimal("1.375")),
    AgeTier(61, Decimal("1.25")),
    AgeTier(51, Decimal("1.125")),
)


@dataclass(frozen=True)
class PricingRules:
    """
    One version of the membership pricing rules.

    Guarantees:
        - Age tiers are stored sorted descending by ``min_age``.
        - All coefficients are Decimal.
    """

    version: str
    base: Decimal = Decimal("16000")
    cremation_coef: Decimal = Decimal("0.125")
    group: GroupRules = field(default_factory=GroupRules)
    age: tuple[AgeTier, ...] = DEFAULT_AGE_TIERS
    currency: str = "ARS"
    effective_from: date | None = None
    status: RulesStatus = RulesStatus.PUBLISHED
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "base", to_decimal(self.base))
        object.__setattr__(self, "cremation_coef", to_decimal(self.cremation_coef))
        object.__setattr__(
            self,
            "age",
            tuple(sorted(self.age, key=lambda t: t.min_age, reverse=True)),
        )
        object.__setattr__(self, "status", RulesStatus(self.status))


DEFAULT_PRICING_RULES = PricingRules(version="default")


# ---------------------------------------------------------------------------
# Collector commissions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommissionConfig:
    """
    Collector commission parameters.

    ``rate`` is the share of each collected amount the collector earns.
    Cash held longer than ``grace_days`` loses ``penalty_per_day`` of that
    commission per extra day.
    """

    rate: Decimal
    grace_days: int = 0
    penalty_per_day: Decimal = Decimal("0")
    currency: str = "ARS"

    def __post_init__(self) -> None:
        object.__setattr__(self, "rate", to_decimal(self.rate))
        object.__setattr__(self, "penalty_per_day", to_decimal(self.penalty_per_day))
        if not Decimal("0") <= self.rate <= Decimal("1"):
            raise ValueError(f"rate must be between 0 and 1, got: {self.rate}")
        if self.grace_days < 0:
            raise ValueError(f"grace_days cannot be negative, got: {self.grace_days}")
        if not Decimal("0") <= self.penalty_per_day <= Decimal("1"):
            raise ValueError(
                f"penalty_per_day must be between 0 and 1, got: {self.penalty_per_day}"
            )
