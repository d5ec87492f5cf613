# residency/engine.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from zoneinfo import ZoneInfo

from .models import UNKNOWN_TRAVELER, CountryRule, PresenceMap, TravelLeg
from .presence import build_presence_sets, day_of, is_usable_leg, sort_legs
from .rules import RuleTable
from .windows import CountryWindowResult, evaluate_windows

logger = logging.getLogger(__name__)

# Context added on both sides of the observed legs when no range is given,
# so a best rolling window can extend past the first/last flight.
DEFAULT_RANGE_PADDING_DAYS = 400


@dataclass(frozen=True)
class CountryResidencyResult:
    country_code: str
    country_name: str
    rule: CountryRule
    windows: List[CountryWindowResult]

    @property
    def any_window_meets_threshold(self) -> bool:
        return any(w.meets_threshold for w in self.windows)


@dataclass(frozen=True)
class ResidencySummary:
    generated_at: datetime
    results: List[CountryResidencyResult]


@dataclass(frozen=True)
class TravelerResidencySummary:
    traveler: str
    generated_at: datetime
    results: List[CountryResidencyResult]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_time_zone(tz: Union[tzinfo, str, None]) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return timezone.utc if tz.upper() == "UTC" else ZoneInfo(tz)
    return tz


class ResidencyEngine:
    """
    Builds per-day presence from travel legs and evaluates every observed
    country against its rule.

    Stateless between calls: the rule table is only read, and each call
    builds and discards its own presence map.
    """

    def __init__(
        self,
        rules: Union[RuleTable, Mapping[str, CountryRule]],
        *,
        time_zone: Union[tzinfo, str, None] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        # RuleTable raises RuleConfigError when "Default" is missing
        self.rules = rules if isinstance(rules, RuleTable) else RuleTable(rules)
        self.tz = resolve_time_zone(time_zone)
        self._clock = clock

    # -------------------------
    # Public API
    # -------------------------

    def compute(
        self,
        legs: Sequence[TravelLeg],
        *,
        initial_country: Optional[str] = None,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> ResidencySummary:
        """Residency results for one traveler's legs."""
        return self._compute(legs, initial_country=initial_country, since=since, until=until)

    def compute_for_traveler(
        self,
        legs: Sequence[TravelLeg],
        *,
        initial_country: Optional[str] = None,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> TravelerResidencySummary:
        """Same as compute(), labelled with the traveler of the first leg."""
        summary = self._compute(legs, initial_country=initial_country, since=since, until=until)
        traveler = legs[0].traveler if legs else UNKNOWN_TRAVELER
        return TravelerResidencySummary(
            traveler=traveler,
            generated_at=summary.generated_at,
            results=summary.results,
        )

    def compute_by_traveler(
        self,
        legs: Sequence[TravelLeg],
        *,
        initial_countries: Optional[Mapping[str, str]] = None,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> List[TravelerResidencySummary]:
        """
        Split a mixed list of legs by traveler and compute each independently.
        initial_countries maps traveler -> country at the start of the analysis.
        Summaries are ordered by traveler.
        """
        grouped: Dict[str, List[TravelLeg]] = {}
        for leg in legs:
            grouped.setdefault(leg.traveler, []).append(leg)

        initial_countries = initial_countries or {}
        out: List[TravelerResidencySummary] = []
        for traveler in sorted(grouped):
            summary = self._compute(
                grouped[traveler],
                initial_country=initial_countries.get(traveler),
                since=since,
                until=until,
            )
            out.append(
                TravelerResidencySummary(
                    traveler=traveler,
                    generated_at=summary.generated_at,
                    results=summary.results,
                )
            )
        return out

    def presence_days_by_country(
        self,
        legs: Sequence[TravelLeg],
        *,
        initial_country: Optional[str],
        since: date,
        until: date,
    ) -> PresenceMap:
        """Raw presence sets for drill-down views (no threshold evaluation)."""
        return build_presence_sets(
            legs,
            rule_for=self.rules.rule_for,
            start=day_of(since, self.tz),
            end=day_of(until, self.tz),
            tz=self.tz,
            initial_country=initial_country,
        )

    def analysis_range(
        self,
        legs: Sequence[TravelLeg],
        *,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> Optional[Tuple[date, date]]:
        """
        Inclusive day range used by compute(): explicit bounds when given,
        otherwise the observed leg span widened by DEFAULT_RANGE_PADDING_DAYS.
        None when there are no usable legs to derive it from.
        """
        usable = [leg for leg in legs if is_usable_leg(leg)]
        if not usable:
            return None
        ordered = sort_legs(usable, self.tz)
        padding = timedelta(days=DEFAULT_RANGE_PADDING_DAYS)

        start = day_of(since, self.tz) if since is not None else day_of(ordered[0].travel_date, self.tz) - padding
        end = day_of(until, self.tz) if until is not None else day_of(ordered[-1].travel_date, self.tz) + padding
        return start, end

    # -------------------------
    # Core
    # -------------------------

    def _compute(
        self,
        legs: Sequence[TravelLeg],
        *,
        initial_country: Optional[str],
        since: Optional[date],
        until: Optional[date],
    ) -> ResidencySummary:
        analysis = self.analysis_range(legs, since=since, until=until)
        if analysis is None:
            return ResidencySummary(generated_at=self._clock(), results=[])
        start, end = analysis

        presence = build_presence_sets(
            legs,
            rule_for=self.rules.rule_for,
            start=start,
            end=end,
            tz=self.tz,
            initial_country=initial_country,
        )
        logger.debug(
            "Presence built for %d leg(s) over %s..%s: %d country(ies)",
            len(legs), start, end, len(presence),
        )

        results: List[CountryResidencyResult] = []
        for code, days in presence.items():
            rule = self.rules.rule_for(code)
            results.append(
                CountryResidencyResult(
                    country_code=code,
                    country_name=self.rules.country_name(code),
                    rule=rule,
                    windows=evaluate_windows(days, rule),
                )
            )

        # countries meeting a threshold first, then by code
        results.sort(key=lambda r: (not r.any_window_meets_threshold, r.country_code))

        return ResidencySummary(generated_at=self._clock(), results=results)
