#!/usr/bin/env python3
"""
Preview the ideal membership charge of a client group.

Usage:
    python scripts/pricing_preview.py --integrantes 4 --edad-max 55
    python scripts/pricing_preview.py --rules rules.yaml --integrantes 2 \\
        --edad-max 40 --cremaciones 1 --billed 12000 --json

Without ``--rules`` the version in effect for ``--period`` (default: the
current month) is taken from the packaged rules catalog.

Exit codes: 0 on success, 2 on a bad rules file or period.
"""

import argparse
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

import yaml

from membership_config import default_catalog
from membership_config.loader import compute_checksum, load_pricing_rules
from membership_engines.pricing import PricingEngine, PricingInputs
from membership_kernel.domain.clock import SystemClock
from membership_kernel.domain.values import Money
from membership_kernel.exceptions import MalformedPeriodKeyError
from membership_kernel.logging_config import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ideal membership charge preview")
    parser.add_argument("--rules", type=Path, default=None,
                        help="Pricing rules YAML file (default: packaged catalog)")
    parser.add_argument("--period", default=None,
                        help="Billing period YYYY-MM used to pick the catalog version")
    parser.add_argument("--integrantes", default="1", help="Group size")
    parser.add_argument("--edad-max", dest="edad_max", default="0",
                        help="Age of the oldest covered member")
    parser.add_argument("--cremaciones", default="0",
                        help="Members with cremation coverage")
    parser.add_argument("--billed", default=None,
                        help="Currently billed charge, to compare against")
    parser.add_argument("--json", action="store_true", help="Print JSON")
    parser.add_argument("--verbose", action="store_true",
                        help="Emit structured logs to stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.rules is not None:
            rules = load_pricing_rules(args.rules)
        else:
            period = args.period or SystemClock().current_period()
            rules = default_catalog().rules_for(period)
    except (OSError, KeyError, ValueError, LookupError, yaml.YAMLError,
            MalformedPeriodKeyError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    engine = PricingEngine()
    inputs = PricingInputs.of(args.integrantes, args.edad_max, args.cremaciones)
    quote = engine.quote(rules=rules, inputs=inputs)

    comparison = None
    if args.billed is not None:
        try:
            billed = Money.of(Decimal(args.billed), rules.currency)
        except (InvalidOperation, ValueError):
            print(f"ERROR: --billed is not a number: {args.billed!r}", file=sys.stderr)
            return 2
        comparison = engine.compare_to_billed(quote.ideal_charge, billed)

    if args.json:
        payload = {
            "rules_version": quote.rules_version,
            "rules_checksum": compute_checksum(rules)[:16],
            "currency": rules.currency,
            "integrantes": inputs.integrantes,
            "edad_max": inputs.edad_max,
            "cremaciones": inputs.cremaciones,
            "group_factor": str(quote.group_factor),
            "age_factor": str(quote.age_factor),
            "cremation_cost": str(quote.cremation_cost.amount),
            "subtotal": str(quote.subtotal.amount),
            "ideal_charge": str(quote.ideal_charge.amount),
        }
        if comparison is not None:
            payload["billed"] = str(comparison.billed.amount)
            payload["delta_amount"] = str(comparison.delta_amount.amount)
            payload["delta_pct"] = (
                str(comparison.delta_pct) if comparison.delta_pct is not None else None
            )
        print(json.dumps(payload, indent=2))
        return 0

    print(f"Rules version:  {quote.rules_version}")
    print(f"Group:          {inputs.integrantes} members, oldest {inputs.edad_max}, "
          f"{inputs.cremaciones} with cremation")
    print(f"Group factor:   {quote.group_factor}")
    print(f"Age factor:     {quote.age_factor}")
    print(f"Cremation cost: {quote.cremation_cost}")
    print(f"Subtotal:       {quote.subtotal}")
    print(f"Ideal charge:   {quote.ideal_charge}")
    if comparison is not None:
        pct = f"{comparison.delta_pct}%" if comparison.delta_pct is not None else "n/a"
        print(f"Billed:         {comparison.billed}")
        print(f"Difference:     {comparison.delta_amount} ({pct})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
