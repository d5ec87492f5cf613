# residency/cli.py

"""CLI entrypoint: residency report for a file of flight records."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfoNotFoundError

from .config import get_settings
from .engine import resolve_time_zone
from .logging_utils import configure_logging
from .packet import build_residency_packet
from .pipeline import load_summaries_from_json
from .rules import RuleConfigError, load_rules

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Count presence days per country and check residency thresholds")
    parser.add_argument("--legs", required=True, help="JSON file with flight records (list or {'legs': [...]})")
    parser.add_argument("--rules", help="Rule table (YAML/JSON or .plist); defaults to RESIDENCY_RULES_PATH")
    parser.add_argument("--time-zone", help="IANA reference time zone for day boundaries (default from settings)")
    parser.add_argument("--since", help="First day of the analysis range (YYYY-MM-DD)")
    parser.add_argument("--until", help="Last day of the analysis range (YYYY-MM-DD)")
    parser.add_argument("--log-level", help="Logging level (default from settings)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level_name = (args.log_level or settings.log_level or "INFO").upper()
    configure_logging(getattr(logging, level_name, logging.INFO))

    rules_path = args.rules or settings.rules_path
    if not rules_path:
        logger.error("No rules file given (use --rules or RESIDENCY_RULES_PATH)")
        return 2

    try:
        rules = load_rules(Path(rules_path))
    except RuleConfigError as e:
        logger.error("Rule table could not be loaded: %s", e)
        return 2

    try:
        raw = json.loads(Path(args.legs).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Flight records could not be read from %s: %s", args.legs, e)
        return 2
    if not isinstance(raw, (list, dict)):
        logger.error("Flight records in %s must be a list or an object with 'legs'", args.legs)
        return 2
    if isinstance(raw, dict):
        if args.since:
            raw["since"] = args.since
        if args.until:
            raw["until"] = args.until
    elif args.since or args.until:
        raw = {"legs": raw, "since": args.since, "until": args.until}

    zone_name = args.time_zone or settings.time_zone or "UTC"
    try:
        time_zone = resolve_time_zone(zone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.error("Unknown time zone: %s", zone_name)
        return 2

    result = load_summaries_from_json(
        raw,
        rules=rules,
        time_zone=time_zone,
        assume_us_mdy=settings.assume_us_mdy,
    )

    logger.info(
        "Residency computed for %d traveler(s); %d issue(s)",
        len(result.travelers), len(result.issues),
    )
    json.dump(build_residency_packet(result), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
