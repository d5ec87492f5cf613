# residency/pipeline.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Any, Dict, List, Mapping, Optional, Union

from .engine import ResidencyEngine, TravelerResidencySummary
from .glue import RawSnapshot, parse_leg_list
from .issues import tag_issues
from .models import CountryRule, TravelLeg
from .normalize import normalize_timestamp, normalize_traveler
from .rules import RuleTable
from .validate import Issue, detect_leg_issues

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    travelers: List[TravelerResidencySummary]
    issues: List[Issue]
    snapshots: List[RawSnapshot]
    since: Optional[date]
    until: Optional[date]
    time_zone: str


def _bound(
    raw_value: Any,
    *,
    field_label: str,
    assume_us_mdy: bool,
    issues: List[Issue],
) -> Optional[date]:
    """Parse an optional range bound; a bad value adds an issue and falls back to None."""
    if raw_value in (None, ""):
        return None
    if isinstance(raw_value, date):
        return raw_value
    ts = normalize_timestamp(str(raw_value), assume_us_mdy=assume_us_mdy)
    if ts.value is None:
        issues.append(
            Issue(
                severity="high",
                category="analysis_range",
                message=f"Invalid {field_label} date {raw_value!r}; the default range was used instead.",
                suggested_action=f"Provide {field_label} as YYYY-MM-DD.",
                ref_id=f"range_{field_label}",
            )
        )
        return None
    return ts.value.date()


def load_summaries_from_json(
    raw: Union[Dict[str, Any], List[Dict[str, Any]]],
    *,
    rules: Union[RuleTable, Mapping[str, CountryRule]],
    time_zone: Union[tzinfo, str, None] = None,
    assume_us_mdy: bool = True,
) -> BuildResult:
    """
    End-to-end pipeline:
      - parse raw flight records into TravelLegs (glue), collecting Issues + RawSnapshots
      - run continuity checks per traveler
      - compute residency summaries per traveler

    raw is either a list of flight records or
      {"legs": [...], "initial_countries": {traveler: code}, "since": ..., "until": ...}

    Raises RuleConfigError only when the rule table itself is unusable.
    """
    engine = ResidencyEngine(rules, time_zone=time_zone)

    if isinstance(raw, list):
        raw = {"legs": raw}

    issues: List[Issue] = []

    legs, leg_issues, snapshots = parse_leg_list(raw.get("legs", []) or [], assume_us_mdy=assume_us_mdy)
    issues.extend(leg_issues)

    since = _bound(raw.get("since"), field_label="since", assume_us_mdy=assume_us_mdy, issues=issues)
    until = _bound(raw.get("until"), field_label="until", assume_us_mdy=assume_us_mdy, issues=issues)
    if since is not None and until is not None and since > until:
        issues.append(
            Issue(
                severity="high",
                category="analysis_range",
                message=f"Analysis range starts after it ends ({since} > {until}); no days can be counted.",
                suggested_action="Swap or correct the since/until dates.",
                ref_id="range",
            )
        )

    # keys are matched against traveler names as parse_leg_entry normalizes them
    initial_countries: Dict[str, str] = {
        normalize_traveler(k): str(v).strip().upper()
        for k, v in (raw.get("initial_countries") or {}).items()
        if v and normalize_traveler(k)
    }

    by_traveler: Dict[str, List[TravelLeg]] = {}
    for leg in legs:
        by_traveler.setdefault(leg.traveler, []).append(leg)
    for traveler in sorted(by_traveler):
        found = detect_leg_issues(
            by_traveler[traveler],
            tz=engine.tz,
            initial_country=initial_countries.get(traveler),
        )
        issues.extend(tag_issues(found, f"traveler_{traveler}"))

    travelers = engine.compute_by_traveler(
        legs,
        initial_countries=initial_countries,
        since=since,
        until=until,
    )
    logger.debug("Computed residency for %d traveler(s) from %d leg(s)", len(travelers), len(legs))

    return BuildResult(
        travelers=travelers,
        issues=issues,
        snapshots=snapshots,
        since=since,
        until=until,
        time_zone=str(engine.tz),
    )
