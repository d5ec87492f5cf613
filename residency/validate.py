# residency/validate.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import List, Literal, Optional, Sequence

from .models import TravelLeg
from .presence import day_of, is_usable_leg, sort_legs


Severity = Literal["high", "medium", "low"]


@dataclass(frozen=True)
class Issue:
    severity: Severity
    category: str
    message: str
    suggested_action: Optional[str] = None
    ref_id: Optional[str] = None


def detect_leg_issues(
    legs: Sequence[TravelLeg],
    *,
    tz: tzinfo,
    initial_country: Optional[str] = None,
) -> List[Issue]:
    """
    Continuity checks over ONE traveler's legs (informational only; the
    engine computes the same result whether or not these are resolved).

      - first departure differs from the stated starting country => LOW
      - leg departs from a country other than the previous arrival => MEDIUM
        (a connecting or return flight is probably missing)
      - departure country == arrival country => LOW (domestic leg)
    """
    ordered = sort_legs([leg for leg in legs if is_usable_leg(leg)], tz)
    if not ordered:
        return []

    issues: List[Issue] = []

    first = ordered[0]
    start = (initial_country or "").strip().upper()
    if start and first.departure_country and first.departure_country != start:
        issues.append(
            Issue(
                severity="low",
                category="travel_sequence",
                message=(
                    f"First flight on {day_of(first.travel_date, tz)} departs from {first.departure_country}, "
                    f"but the starting country is {start}."
                ),
                suggested_action="Confirm the starting country or add the flight that took the traveler there.",
            )
        )

    prev: Optional[TravelLeg] = None
    for leg in ordered:
        if leg.departure_country and leg.departure_country == leg.arrival_country:
            issues.append(
                Issue(
                    severity="low",
                    category="travel_sequence",
                    message=f"Flight on {day_of(leg.travel_date, tz)} departs and arrives in {leg.arrival_country}.",
                    suggested_action="Domestic legs do not change presence; confirm the country codes.",
                )
            )

        if (
            prev is not None
            and prev.arrival_country
            and leg.departure_country
            and prev.arrival_country != leg.departure_country
        ):
            issues.append(
                Issue(
                    severity="medium",
                    category="travel_sequence",
                    message=(
                        f"Flight on {day_of(leg.travel_date, tz)} departs from {leg.departure_country}, "
                        f"but the previous flight ({day_of(prev.travel_date, tz)}) arrived in {prev.arrival_country}."
                    ),
                    suggested_action="A flight may be missing between these dates; add it so days are attributed correctly.",
                )
            )
        prev = leg

    return issues
