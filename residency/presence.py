# residency/presence.py

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from .models import CountryRule, PresenceMap, TravelLeg

logger = logging.getLogger(__name__)

RuleLookup = Callable[[str], CountryRule]

_ISO_CODE = re.compile(r"[A-Z]{2}")


# ======================================================
# Travel-day attribution policy
# ======================================================

# (counts_arrival_departure, counts_partial_days) -> credited when a leg touches the country
_CREDIT_ON_CONTACT: Dict[Tuple[bool, bool], bool] = {
    (True, True): True,
    (True, False): False,
    (False, True): False,
    (False, False): False,
}


def credits_on_contact(rule: CountryRule) -> bool:
    return _CREDIT_ON_CONTACT[(rule.counts_arrival_departure, rule.counts_partial_days)]


@dataclass(frozen=True)
class TravelDayAttribution:
    credited: FrozenSet[str]
    end_of_day_country: Optional[str]


def attribute_travel_day(
    legs: Sequence[TravelLeg],
    *,
    current_country: Optional[str],
    rule_for: RuleLookup,
) -> TravelDayAttribution:
    """
    Decide which countries a day with flights is credited to.

    Ordered evaluation:
      1) every leg, in time order: departure country and arrival country are
         credited when their rule credits on contact (arrival/departure AND
         partial days both counted)
      2) the end-of-day country (arrival of the last leg) is credited unless
         its rule already credits on contact (it was credited in step 1)

    Blank codes are never credited; a blank arrival keeps the previous
    end-of-day country.
    """
    credited = set()
    end_of_day = current_country

    for leg in legs:
        for code in (leg.departure_country, leg.arrival_country):
            if code and credits_on_contact(rule_for(code)):
                credited.add(code)
        if leg.arrival_country:
            end_of_day = leg.arrival_country

    if end_of_day and not credits_on_contact(rule_for(end_of_day)):
        credited.add(end_of_day)

    return TravelDayAttribution(credited=frozenset(credited), end_of_day_country=end_of_day)


# ======================================================
# Day helpers
# ======================================================

def local_wall_time(ts: datetime, tz: tzinfo) -> datetime:
    """Naive wall-clock time in the reference zone (naive input is taken as already local)."""
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(tz).replace(tzinfo=None)


def day_of(value: date, tz: tzinfo) -> date:
    if isinstance(value, datetime):
        return local_wall_time(value, tz).date()
    return value


def is_usable_leg(leg: TravelLeg) -> bool:
    return bool(_ISO_CODE.fullmatch(leg.departure_country) or _ISO_CODE.fullmatch(leg.arrival_country))


def sort_legs(legs: Sequence[TravelLeg], tz: tzinfo) -> List[TravelLeg]:
    return sorted(legs, key=lambda leg: local_wall_time(leg.travel_date, tz))


# ======================================================
# Presence builder
# ======================================================

def build_presence_sets(
    legs: Sequence[TravelLeg],
    *,
    rule_for: RuleLookup,
    start: date,
    end: date,
    tz: tzinfo,
    initial_country: Optional[str] = None,
) -> PresenceMap:
    """
    Walk every day in [start, end] and attribute it to countries.

    - Day without flights: credited to the country carried over from the
      previous day (nothing if that is still unknown).
    - Day with flights: see attribute_travel_day().

    If no initial_country is given, the traveler is assumed to start in the
    departure country of the first leg.
    """
    usable = [leg for leg in legs if is_usable_leg(leg)]
    if len(usable) != len(legs):
        logger.debug("Ignoring %d leg(s) without a usable country code", len(legs) - len(usable))
    if not usable or start > end:
        return {}

    ordered = sort_legs(usable, tz)

    legs_by_day: Dict[date, List[TravelLeg]] = {}
    for leg in ordered:
        legs_by_day.setdefault(day_of(leg.travel_date, tz), []).append(leg)

    current = (initial_country or "").strip().upper() or None
    if current is None:
        current = ordered[0].departure_country or None

    presence: PresenceMap = {}
    day = start
    while day <= end:
        todays = legs_by_day.get(day)
        if not todays:
            if current:
                presence.setdefault(current, set()).add(day)
        else:
            attribution = attribute_travel_day(todays, current_country=current, rule_for=rule_for)
            for code in attribution.credited:
                presence.setdefault(code, set()).add(day)
            current = attribution.end_of_day_country
        day += timedelta(days=1)

    return presence
