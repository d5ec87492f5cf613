# residency/glue.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .issues import tag_issues
from .models import UNKNOWN_TRAVELER, TravelLeg
from .normalize import normalize_country_code, normalize_timestamp, normalize_traveler
from .presence import day_of, is_usable_leg, sort_legs
from .validate import Issue

logger = logging.getLogger(__name__)


# ======================================================
# Raw snapshot (what the record source actually handed over)
# ======================================================

@dataclass(frozen=True)
class RawSnapshot:
    id: str  # e.g., "leg_0", "leg_7"
    raw: Dict[str, Any]
    notes: Optional[str] = None


def _first_present(raw: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if raw.get(k) not in (None, ""):
            return raw[k]
    return None


def _fmt_allowed_formats(assume_us_mdy: bool) -> str:
    formats = "YYYY-MM-DD, YYYY-MM-DDTHH:MM[:SS][+HH:MM], YYYY/MM/DD"
    return f"{formats}, MM/DD/YYYY" if assume_us_mdy else formats


# ======================================================
# Leg glue
# ======================================================

def parse_leg_entry(
    raw: Dict[str, Any],
    *,
    ref_id: str,
    assume_us_mdy: bool = True,
) -> Tuple[Optional[TravelLeg], List[Issue], RawSnapshot]:
    """
    Build one TravelLeg from a raw record.

    Accepted keys: date | travel_date, departure_country, arrival_country,
    traveler | passenger, departure_airport, arrival_airport.

    Rules:
      - unreadable date => leg dropped (HIGH)
      - neither country code usable => leg dropped (HIGH)
      - one country code unusable => kept with a blank code (MEDIUM)
      - missing traveler => "Unknown" (LOW)
    """
    issues: List[Issue] = []
    snapshot = RawSnapshot(id=ref_id, raw=raw)

    raw_date = _first_present(raw, "date", "travel_date")
    ts = normalize_timestamp(None if raw_date is None else str(raw_date), assume_us_mdy=assume_us_mdy)
    if ts.value is None:
        raw_display = raw_date if raw_date not in (None, "") else "(blank)"
        issues.append(
            Issue(
                severity="high",
                category="travel_leg",
                message=f"Invalid or unrecognized flight date: {raw_display!r}. The flight was not counted.",
                suggested_action=f"Provide the flight date in one of: {_fmt_allowed_formats(assume_us_mdy)}.",
            )
        )

    raw_dep = raw.get("departure_country")
    raw_arr = raw.get("arrival_country")
    dep = normalize_country_code(raw_dep)
    arr = normalize_country_code(raw_arr)

    if dep is None and arr is None:
        issues.append(
            Issue(
                severity="high",
                category="travel_leg",
                message=(
                    f"Flight has no usable country code (departure {raw_dep!r}, arrival {raw_arr!r}). "
                    "The flight was not counted."
                ),
                suggested_action="Provide 2-letter ISO country codes for departure and arrival.",
            )
        )
    else:
        for label, code, raw_value in (("departure", dep, raw_dep), ("arrival", arr, raw_arr)):
            if code is None:
                issues.append(
                    Issue(
                        severity="medium",
                        category="travel_leg",
                        message=f"Unusable {label} country code {raw_value!r}; the {label} side is ignored.",
                        suggested_action=f"Provide the 2-letter ISO code of the {label} country.",
                    )
                )

    traveler = normalize_traveler(_first_present(raw, "traveler", "passenger"))
    if traveler is None:
        issues.append(
            Issue(
                severity="low",
                category="travel_leg",
                message=f"Flight has no traveler name; grouped under {UNKNOWN_TRAVELER!r}.",
                suggested_action="Provide the traveler name as printed on the ticket.",
            )
        )
        traveler = UNKNOWN_TRAVELER

    if ts.value is None or (dep is None and arr is None):
        return None, tag_issues(issues, ref_id), snapshot

    try:
        leg = TravelLeg(
            travel_date=ts.value,
            departure_country=dep or "",
            arrival_country=arr or "",
            traveler=traveler,
            departure_airport=raw.get("departure_airport"),
            arrival_airport=raw.get("arrival_airport"),
        )
    except ValidationError as e:
        issues.append(
            Issue(
                severity="high",
                category="travel_leg",
                message=f"Flight could not be built due to validation error: {e}",
                suggested_action="Check the flight date, countries and airports.",
            )
        )
        return None, tag_issues(issues, ref_id), snapshot

    return leg, tag_issues(issues, ref_id), snapshot


def parse_leg_list(
    raw_list: List[Dict[str, Any]],
    *,
    assume_us_mdy: bool = True,
    id_prefix: str = "leg",
) -> Tuple[List[TravelLeg], List[Issue], List[RawSnapshot]]:
    """
    Parse raw records into TravelLegs.
    Never silently drops a record: dropped legs leave issues + snapshots behind.
    """
    legs: List[TravelLeg] = []
    issues: List[Issue] = []
    snapshots: List[RawSnapshot] = []

    for idx, raw in enumerate(raw_list):
        ref_id = f"{id_prefix}_{idx}"
        if not isinstance(raw, dict):
            snapshots.append(RawSnapshot(id=ref_id, raw={"value": raw}, notes="not a mapping"))
            issues.append(
                Issue(
                    severity="high",
                    category="travel_leg",
                    message=f"Flight record is not an object: {raw!r}.",
                    ref_id=ref_id,
                )
            )
            continue

        leg, leg_issues, snap = parse_leg_entry(raw, ref_id=ref_id, assume_us_mdy=assume_us_mdy)
        snapshots.append(snap)
        issues.extend(leg_issues)
        if leg is not None:
            legs.append(leg)

    dropped = len(raw_list) - len(legs)
    if dropped:
        logger.warning("Dropped %d of %d flight record(s) during parsing", dropped, len(raw_list))

    return legs, issues, snapshots


# ======================================================
# Leg selection (record-source style filter)
# ======================================================

def select_legs(
    legs: Iterable[TravelLeg],
    *,
    tz: tzinfo,
    since: Optional[date] = None,
    until: Optional[date] = None,
    travelers: Optional[Sequence[str]] = None,
) -> List[TravelLeg]:
    """
    Filter legs the way a record store query would:
      - since/until are inclusive calendar days in the reference zone
      - travelers: case-insensitive exact match (names trimmed, blanks ignored;
        an empty list means no traveler filter)
      - legs without any 2-letter country code are dropped
    Result is sorted by date.
    """
    wanted = None
    if travelers:
        names = {n.strip().casefold() for n in travelers if n and n.strip()}
        wanted = names or None

    start = day_of(since, tz) if since is not None else None
    end = day_of(until, tz) if until is not None else None

    selected: List[TravelLeg] = []
    for leg in legs:
        d = day_of(leg.travel_date, tz)
        if start is not None and d < start:
            continue
        if end is not None and d > end:
            continue
        if wanted is not None and leg.traveler.strip().casefold() not in wanted:
            continue
        if not is_usable_leg(leg):
            continue
        selected.append(leg)

    return sort_legs(selected, tz)
