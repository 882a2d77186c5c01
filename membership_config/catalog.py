"""
Rules catalog -- the pricing rules version in effect for a period.

Responsibility:
    Holds every usable pricing rules version ordered by ``effective_from``
    and resolves the version that governs a billing period. A period billed
    under an older version keeps being priced with it; publishing new rules
    never reprices history.

Failure modes:
    - ValueError when two usable versions share a version name or an
      ``effective_from`` date, or when the latest version is superseded.
    - ValueError from ``publish`` on a transition the lifecycle forbids.
    - LookupError when no version is in effect for a period.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from datetime import date
from pathlib import Path

from membership_config.lifecycle import (
    USABLE_STATUSES,
    RulesStatus,
    validate_transition,
)
from membership_config.loader import compute_checksum, load_pricing_rules
from membership_config.schema import PricingRules
from membership_kernel.domain.periods import parse_period
from membership_kernel.logging_config import get_logger

logger = get_logger("config.catalog")


def _period_start(period: str) -> date:
    year, month = parse_period(period).split("-")
    return date(int(year), int(month), 1)


class RulesCatalog:
    """
    Ordered, immutable set of pricing rules versions.

    Draft versions are ignored. A version without ``effective_from`` is in
    effect from the beginning of time.
    """

    def __init__(self, versions: Iterable[PricingRules]):
        usable = [v for v in versions if v.status in USABLE_STATUSES]
        usable.sort(key=lambda v: v.effective_from or date.min)

        names = [v.version for v in usable]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate pricing rules versions: {names}")
        starts = [v.effective_from or date.min for v in usable]
        if len(set(starts)) != len(starts):
            raise ValueError("Two pricing rules versions share an effective_from date")
        if usable and usable[-1].status == RulesStatus.SUPERSEDED:
            raise ValueError(
                f"Pricing rules version {usable[-1].version} is superseded "
                f"but no later version replaces it"
            )

        self._versions: tuple[PricingRules, ...] = tuple(usable)

    @property
    def versions(self) -> tuple[PricingRules, ...]:
        return self._versions

    def __len__(self) -> int:
        return len(self._versions)

    def rules_for(self, period: str) -> PricingRules:
        """
        Version in effect on the first day of ``period``.

        Raises:
            MalformedPeriodKeyError: if ``period`` is not "YYYY-MM".
            LookupError: if no version had started by then.
        """
        start = _period_start(period)
        selected: PricingRules | None = None
        for version in self._versions:
            if (version.effective_from or date.min) <= start:
                selected = version
            else:
                break
        if selected is None:
            raise LookupError(f"No pricing rules in effect for period {period}")
        return selected

    def current(self) -> PricingRules:
        """Latest usable version."""
        if not self._versions:
            raise LookupError("Pricing rules catalog is empty")
        return self._versions[-1]

    def version(self, name: str) -> PricingRules:
        for v in self._versions:
            if v.version == name:
                return v
        raise LookupError(f"Unknown pricing rules version: {name}")

    def publish(self, draft: PricingRules) -> RulesCatalog:
        """
        Catalog with ``draft`` published and the version it replaces superseded.

        The draft must start after every version already in the catalog.

        Raises:
            ValueError: on a status transition the lifecycle forbids, or a
                draft that does not start after the current version.
        """
        if not validate_transition(draft.status, RulesStatus.PUBLISHED):
            raise ValueError(
                f"Cannot publish pricing rules {draft.version} from status "
                f"{draft.status.value}"
            )
        if self._versions:
            latest = self._versions[-1]
            if (draft.effective_from or date.min) <= (latest.effective_from or date.min):
                raise ValueError(
                    f"Pricing rules {draft.version} must start after "
                    f"{latest.version}"
                )

        versions: list[PricingRules] = []
        for v in self._versions:
            if v.status == RulesStatus.PUBLISHED:
                if not validate_transition(v.status, RulesStatus.SUPERSEDED):
                    raise ValueError(f"Cannot supersede pricing rules {v.version}")
                v = replace(v, status=RulesStatus.SUPERSEDED)
            versions.append(v)
        published = replace(draft, status=RulesStatus.PUBLISHED)
        versions.append(published)

        logger.info("pricing_rules_published", extra={
            "version": published.version,
            "effective_from": (
                published.effective_from.isoformat() if published.effective_from else None
            ),
            "checksum": compute_checksum(published)[:16],
        })
        return RulesCatalog(versions)


def load_catalog(directory: Path) -> RulesCatalog:
    """
    Load every ``*.yaml`` rules file in ``directory``.

    Raises:
        FileNotFoundError: if ``directory`` does not exist.
    """
    if not directory.is_dir():
        raise FileNotFoundError(f"Pricing rules directory not found: {directory}")

    versions = [load_pricing_rules(path) for path in sorted(directory.glob("*.yaml"))]
    catalog = RulesCatalog(versions)
    logger.info("pricing_catalog_loaded", extra={
        "directory": str(directory),
        "file_count": len(versions),
        "usable_versions": [v.version for v in catalog.versions],
        "checksums": {v.version: compute_checksum(v)[:16] for v in catalog.versions},
    })
    return catalog
