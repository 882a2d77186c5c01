"""
membership_config -- pricing and commission configuration.

Responsibility:
    Provides the versioned pricing rules and the collector commission
    parameters. YAML files under ``sets/`` are parsed into frozen
    dataclasses; the ``RulesCatalog`` resolves the version in effect for a
    billing period.

Architecture position:
    Configuration -- sits above ``membership_kernel`` and below
    ``membership_engines`` / ``membership_services``. The kernel never
    imports from this package.

Failure modes:
    - ``FileNotFoundError`` -- rules directory or file missing.
    - ``KeyError`` / ``ValueError`` -- malformed rules files.
    - ``LookupError`` -- no rules version in effect for a period.
"""

from __future__ import annotations

from pathlib import Path

from membership_config.catalog import RulesCatalog, load_catalog
from membership_config.lifecycle import RulesStatus
from membership_config.loader import (
    compute_checksum,
    load_commission_config,
    load_pricing_rules,
    parse_commission_config,
    parse_pricing_rules,
)
from membership_config.schema import (
    DEFAULT_PRICING_RULES,
    AgeTier,
    CommissionConfig,
    GroupRules,
    PricingRules,
)

# Shipped configuration sets
DEFAULT_SETS_DIR = Path(__file__).parent / "sets"


def default_catalog() -> RulesCatalog:
    """Catalog of the pricing rules shipped with the package."""
    return load_catalog(DEFAULT_SETS_DIR / "pricing")


def default_commission_config() -> CommissionConfig:
    return load_commission_config(DEFAULT_SETS_DIR / "commission.yaml")


__all__ = [
    "AgeTier",
    "CommissionConfig",
    "DEFAULT_PRICING_RULES",
    "DEFAULT_SETS_DIR",
    "GroupRules",
    "PricingRules",
    "RulesCatalog",
    "RulesStatus",
    "compute_checksum",
    "default_catalog",
    "default_commission_config",
    "load_catalog",
    "load_commission_config",
    "load_pricing_rules",
    "parse_commission_config",
    "parse_pricing_rules",
]
