"""
Configuration Loader (``membership_config.loader``).

Responsibility
--------------
Loads YAML rule files and parses them into the frozen dataclasses of
``membership_config.schema``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling, consumed by
``membership_config.catalog`` and the CLI. No dependency on engines or
services.

Invariants enforced
-------------------
* ``version`` is required: a rules file without one raises ``KeyError``.
* Numeric fields that are missing or not numbers fall back to the house
  defaults (base 16000, cremation 0.125, neutral size 4, step 0.25, ...),
  the same normalization the pricing settings screen applies.
* ``compute_checksum`` produces a deterministic SHA-256 hash of a rules
  version for identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* ``min_map`` that is not a mapping -> ``ValueError``.
* Invalid date format  -> ``ValueError`` from ``date.fromisoformat``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from membership_config.lifecycle import RulesStatus
from membership_config.schema import (
    DEFAULT_AGE_TIERS,
    DEFAULT_PRICING_RULES,
    AgeTier,
    CommissionConfig,
    GroupRules,
    PricingRules,
)

_DEFAULT_GROUP = DEFAULT_PRICING_RULES.group


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def _number(value: Any, default: Decimal) -> Decimal:
    """Decimal of ``value``, or ``default`` when it is missing or not a finite number."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    """First present key; rule files written by the settings screen use camelCase."""
    for key in keys:
        if key in data:
            return data[key]
    return None


def parse_group_rules(data: Mapping[str, Any] | None) -> GroupRules:
    data = data or {}
    raw_map = _pick(data, "min_map", "minMap")
    if raw_map is None:
        min_map = _DEFAULT_GROUP.min_map
    elif isinstance(raw_map, Mapping):
        min_map = tuple(
            (int(size), _number(factor, Decimal("1")))
            for size, factor in raw_map.items()
        )
    else:
        raise ValueError(f"min_map must be a mapping of group size to factor, got {raw_map!r}")

    return GroupRules(
        neutral_at=int(_number(_pick(data, "neutral_at", "neutralAt"),
                               Decimal(_DEFAULT_GROUP.neutral_at))),
        step=_number(data.get("step"), _DEFAULT_GROUP.step),
        min_map=min_map,
    )


def parse_age_tiers(data: Any) -> tuple[AgeTier, ...]:
    """Age tiers; an empty or missing list means the default tiers."""
    if not isinstance(data, list) or not data:
        return DEFAULT_AGE_TIERS
    return tuple(
        AgeTier(
            min_age=int(_number(_pick(tier, "min_age", "min"), Decimal("0"))),
            coef=_number(tier.get("coef"), Decimal("1")),
        )
        for tier in data
    )


def parse_pricing_rules(data: Mapping[str, Any]) -> PricingRules:
    """
    Parse a ``PricingRules`` version from a dict.

    Raises:
        KeyError: if ``version`` is missing.
        ValueError: on a malformed ``min_map`` or ``effective_from``.
    """
    effective_from = _pick(data, "effective_from", "effectiveFrom")
    return PricingRules(
        version=str(data["version"]),
        base=_number(data.get("base"), DEFAULT_PRICING_RULES.base),
        cremation_coef=_number(
            _pick(data, "cremation_coef", "cremationCoef"),
            DEFAULT_PRICING_RULES.cremation_coef,
        ),
        group=parse_group_rules(data.get("group")),
        age=parse_age_tiers(data.get("age")),
        currency=str(data.get("currency", DEFAULT_PRICING_RULES.currency)),
        effective_from=parse_date(effective_from) if effective_from else None,
        status=RulesStatus(data.get("status", RulesStatus.PUBLISHED.value)),
        description=str(data.get("description", "")),
    )


def parse_commission_config(data: Mapping[str, Any]) -> CommissionConfig:
    """
    Parse a ``CommissionConfig``.

    Rule files use fractions: ``rate`` and ``penalty_per_day``. Collector
    records from the users API carry percentages (0-100):
    ``porcentajeCobrador`` (or ``collector_commission_pct``) for the rate and
    ``commissionPenaltyPerDay`` / ``penaltyPerDay`` for the daily penalty.

    Raises:
        KeyError: if no rate is given.
        ValueError: if a value is out of range.
    """
    if "rate" in data:
        rate = _number(data["rate"], Decimal("0"))
    else:
        pct = _pick(data, "collector_commission_pct", "porcentajeCobrador")
        if pct is None:
            raise KeyError("rate")
        rate = _number(pct, Decimal("0")) / Decimal("100")

    if "penalty_per_day" in data:
        penalty_per_day = _number(data["penalty_per_day"], Decimal("0"))
    else:
        penalty_pct = _pick(data, "commissionPenaltyPerDay", "penaltyPerDay")
        penalty_per_day = _number(penalty_pct, Decimal("0")) / Decimal("100")

    grace_days = _pick(data, "grace_days", "commissionGraceDays", "graceDays")
    return CommissionConfig(
        rate=rate,
        grace_days=int(_number(grace_days, Decimal("0"))),
        penalty_per_day=penalty_per_day,
        currency=str(data.get("currency", "ARS")),
    )


def load_pricing_rules(path: Path) -> PricingRules:
    return parse_pricing_rules(load_yaml_file(path))


def load_commission_config(path: Path) -> CommissionConfig:
    return parse_commission_config(load_yaml_file(path))


def rules_to_dict(rules: PricingRules) -> dict[str, Any]:
    """Canonical, JSON-friendly form of a rules version."""
    return {
        "version": rules.version,
        "base": str(rules.base),
        "cremation_coef": str(rules.cremation_coef),
        "group": {
            "neutral_at": rules.group.neutral_at,
            "step": str(rules.group.step),
            "min_map": {str(k): str(v) for k, v in rules.group.min_map},
        },
        "age": [{"min_age": t.min_age, "coef": str(t.coef)} for t in rules.age],
        "currency": rules.currency,
        "effective_from": (
            rules.effective_from.isoformat() if rules.effective_from else None
        ),
    }


def compute_checksum(rules: PricingRules) -> str:
    """
    Compute a deterministic SHA-256 checksum of a rules version.

    Covers every field that affects a price; ``status`` and
    ``description`` are excluded so publishing a version keeps its identity.
    """
    canonical = json.dumps(rules_to_dict(rules), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
