# residency/windows.py

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Collection, Dict, List

from dateutil.relativedelta import relativedelta

from .models import CountryRule, WindowType

ROLLING_LABEL = "Best rolling 12 months"

# one year minus one day: 365 calendar days inclusive
ROLLING_SPAN_DAYS = 364


@dataclass(frozen=True)
class CountryWindowResult:
    label: str
    start: date
    end: date
    counted_days: int
    threshold: int

    @property
    def meets_threshold(self) -> bool:
        return self.counted_days >= self.threshold


# -------------------------
# Calendar helpers
# -------------------------

def _one_year_minus_one_day(start: date) -> date:
    return start + relativedelta(years=1) - timedelta(days=1)


def _tax_year_start(year: int, month: int, day: int) -> date:
    # CountryRule only admits start days that exist in every year
    return date(year, month, day)


def _count_in_range(sorted_days: List[date], start: date, end: date) -> int:
    return bisect_right(sorted_days, end) - bisect_left(sorted_days, start)


# -------------------------
# Window strategies
# -------------------------

def calendar_year_windows(days: Collection[date], rule: CountryRule) -> List[CountryWindowResult]:
    """One window per observed year, Jan 1 - Dec 31, ascending. Empty years are omitted."""
    if not days:
        return []
    by_year = Counter(d.year for d in days)
    return [
        CountryWindowResult(
            label=str(year),
            start=date(year, 1, 1),
            end=date(year, 12, 31),
            counted_days=by_year[year],
            threshold=rule.day_threshold,
        )
        for year in sorted(by_year)
    ]


def tax_year_windows(days: Collection[date], rule: CountryRule) -> List[CountryWindowResult]:
    """
    Tax years starting on the rule's start month/day.

    Candidates run from (earliest year - 1) to (latest year + 1) so a tax
    year straddling either calendar boundary is never missed; only windows
    with at least one counted day are kept.
    """
    if not days:
        return []
    sorted_days = sorted(days)
    first_year = sorted_days[0].year - 1
    last_year = sorted_days[-1].year + 1

    windows: List[CountryWindowResult] = []
    for year in range(first_year, last_year + 1):
        start = _tax_year_start(year, rule.tax_year_start_month, rule.tax_year_start_day)
        end = _one_year_minus_one_day(start)

        count = _count_in_range(sorted_days, start, end)
        if count == 0:
            continue

        label = str(start.year) if start.year == end.year else f"{start.year}/{end.year}"
        windows.append(
            CountryWindowResult(
                label=label,
                start=start,
                end=end,
                counted_days=count,
                threshold=rule.day_threshold,
            )
        )

    windows.sort(key=lambda w: w.start)
    return windows


def rolling_window(days: Collection[date], rule: CountryRule) -> List[CountryWindowResult]:
    """
    Best 365-day window (two-pointer sweep over sorted days).

    For each observed day i the end pointer j advances while
    sorted[j] - sorted[i] <= 364 days; j - i days fall in the window. Only a
    strictly greater count replaces the best, so ties keep the earliest start.
    The reported end is start + 364 days, clamped to the last observed day.
    """
    if not days:
        return []
    sorted_days = sorted(days)
    n = len(sorted_days)
    span = timedelta(days=ROLLING_SPAN_DAYS)

    best_count = 0
    best_start = sorted_days[0]

    j = 0
    for i in range(n):
        while j < n and sorted_days[j] - sorted_days[i] <= span:
            j += 1
        if j - i > best_count:
            best_count = j - i
            best_start = sorted_days[i]

    best_end = min(best_start + span, sorted_days[-1])
    return [
        CountryWindowResult(
            label=ROLLING_LABEL,
            start=best_start,
            end=best_end,
            counted_days=best_count,
            threshold=rule.day_threshold,
        )
    ]


_STRATEGIES: Dict[WindowType, Callable[[Collection[date], CountryRule], List[CountryWindowResult]]] = {
    "CALENDAR_YEAR": calendar_year_windows,
    "TAX_YEAR": tax_year_windows,
    "ROLLING_12_MONTHS": rolling_window,
}


def evaluate_windows(days: Collection[date], rule: CountryRule) -> List[CountryWindowResult]:
    """Apply the accounting regime selected by rule.window_type."""
    return _STRATEGIES[rule.window_type](days, rule)
