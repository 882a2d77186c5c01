"""
Rules version lifecycle status.

Pricing rule versions are append-only. Only PUBLISHED versions price new
charges; SUPERSEDED versions stay in the catalog so historical periods keep
the rules that were in effect when they were billed.
"""

from enum import Enum, unique


@unique
class RulesStatus(str, Enum):
    """Lifecycle status for a pricing rules version."""

    DRAFT = "draft"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


# Allowed status transitions (from -> set of valid next states)
ALLOWED_TRANSITIONS: dict[RulesStatus, frozenset[RulesStatus]] = {
    RulesStatus.DRAFT: frozenset({RulesStatus.PUBLISHED}),
    RulesStatus.PUBLISHED: frozenset({RulesStatus.SUPERSEDED}),
    RulesStatus.SUPERSEDED: frozenset(),  # Terminal
}

# Statuses a catalog may resolve a period to
USABLE_STATUSES: frozenset[RulesStatus] = frozenset(
    {RulesStatus.PUBLISHED, RulesStatus.SUPERSEDED}
)


def validate_transition(current: RulesStatus, target: RulesStatus) -> bool:
    """Check if a status transition is valid."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())
