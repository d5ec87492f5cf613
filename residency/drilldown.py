# residency/drilldown.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta, tzinfo
from typing import List, Sequence

from .models import PresenceMap, TravelLeg
from .presence import day_of, sort_legs
from .rules import RuleTable


@dataclass(frozen=True)
class CountryDayTotal:
    country_code: str
    country_name: str
    days: int


@dataclass(frozen=True)
class FlightStay:
    route: str  # e.g. "HAM-MRS", falls back to country codes
    travel_day: date
    country_code: str
    country_name: str
    days: int


def country_day_totals(presence: PresenceMap, rules: RuleTable) -> List[CountryDayTotal]:
    """Days per country, most days first (ties by country code)."""
    totals = [
        CountryDayTotal(country_code=code, country_name=rules.country_name(code), days=len(days))
        for code, days in presence.items()
    ]
    totals.sort(key=lambda t: (-t.days, t.country_code))
    return totals


def _route(leg: TravelLeg) -> str:
    dep = (leg.departure_airport or leg.departure_country or "").upper()
    arr = (leg.arrival_airport or leg.arrival_country or "").upper()
    return f"{dep}-{arr}"


def flight_stays(
    legs: Sequence[TravelLeg],
    presence: PresenceMap,
    *,
    until: date,
    rules: RuleTable,
    tz: tzinfo,
) -> List[FlightStay]:
    """
    "Between flights" view: how long the traveler stayed after each flight.

    The stay after a leg runs from the leg's day to the day before the next
    leg (the last leg runs to `until`). Only presence days in the leg's
    arrival country are counted. Stays with an empty window (several legs on
    one day) are skipped.
    """
    if not legs:
        return []

    ordered = sort_legs(legs, tz)
    last_day = day_of(until, tz)
    out: List[FlightStay] = []

    for idx, leg in enumerate(ordered):
        stay_start = day_of(leg.travel_date, tz)
        if idx + 1 < len(ordered):
            stay_end = day_of(ordered[idx + 1].travel_date, tz) - timedelta(days=1)
        else:
            stay_end = last_day
        if stay_end < stay_start:
            continue

        code = leg.arrival_country
        days_here = sum(1 for d in presence.get(code, ()) if stay_start <= d <= stay_end)

        out.append(
            FlightStay(
                route=_route(leg),
                travel_day=stay_start,
                country_code=code,
                country_name=rules.country_name(code),
                days=days_here,
            )
        )

    return out
