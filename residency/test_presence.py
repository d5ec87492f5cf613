# residency/test_presence.py

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from residency.models import CountryRule, TravelLeg
from residency.presence import attribute_travel_day, build_presence_sets, credits_on_contact
from residency.rules import RuleTable


def rules(**extra: CountryRule) -> RuleTable:
    table = {"Default": CountryRule(country_name="Default", day_threshold=183)}
    table.update(extra)
    return RuleTable(table)


def leg(d, dep: str, arr: str, traveler: str = "Jane Doe") -> TravelLeg:
    return TravelLeg(travel_date=d, departure_country=dep, arrival_country=arr, traveler=traveler)


def days(start: date, end: date) -> set:
    return {start + timedelta(days=i) for i in range((end - start).days + 1)}


def test_contact_decision_table():
    assert credits_on_contact(CountryRule(country_name="x", counts_arrival_departure=True, counts_partial_days=True))
    assert not credits_on_contact(CountryRule(country_name="x", counts_arrival_departure=True, counts_partial_days=False))
    assert not credits_on_contact(CountryRule(country_name="x", counts_arrival_departure=False, counts_partial_days=True))
    assert not credits_on_contact(CountryRule(country_name="x", counts_arrival_departure=False, counts_partial_days=False))


def test_single_leg_credits_both_countries_on_travel_day():
    table = rules()
    presence = build_presence_sets(
        [leg(date(2024, 3, 1), "AA", "BB")],
        rule_for=table.rule_for,
        start=date(2024, 1, 1),
        end=date(2024, 12, 31),
        tz=timezone.utc,
        initial_country="AA",
    )
    # 2024 is a leap year: Jan 1 - Mar 1 inclusive is 61 days
    assert presence["AA"] == days(date(2024, 1, 1), date(2024, 3, 1))
    assert len(presence["AA"]) == 61
    assert presence["BB"] == days(date(2024, 3, 1), date(2024, 12, 31))
    assert len(presence["BB"]) == 306


def test_country_without_partial_days_only_gets_end_of_day_credit():
    table = rules(GB=CountryRule(country_name="United Kingdom", counts_partial_days=False))
    presence = build_presence_sets(
        [leg(date(2024, 3, 10), "FR", "GB"), leg(date(2024, 3, 11), "GB", "FR")],
        rule_for=table.rule_for,
        start=date(2024, 3, 8),
        end=date(2024, 3, 12),
        tz=timezone.utc,
        initial_country="FR",
    )
    # arrival day: end-of-day credit; departure day: nothing
    assert presence["GB"] == {date(2024, 3, 10)}
    assert presence["FR"] == days(date(2024, 3, 8), date(2024, 3, 12))


def test_multi_leg_day_credits_every_country_touched():
    table = rules()
    attribution = attribute_travel_day(
        [
            leg(datetime(2024, 5, 1, 8, 0), "FR", "DE"),
            leg(datetime(2024, 5, 1, 14, 0), "DE", "IT"),
        ],
        current_country="FR",
        rule_for=table.rule_for,
    )
    assert attribution.credited == {"FR", "DE", "IT"}
    assert attribution.end_of_day_country == "IT"


def test_end_of_day_country_credited_once_when_not_contact_country():
    table = rules(
        CH=CountryRule(country_name="Switzerland", counts_arrival_departure=False),
    )
    attribution = attribute_travel_day(
        [leg(datetime(2024, 5, 1, 8, 0), "FR", "CH")],
        current_country="FR",
        rule_for=table.rule_for,
    )
    assert attribution.credited == {"FR", "CH"}


def test_starting_country_inferred_from_first_departure():
    table = rules()
    presence = build_presence_sets(
        [leg(date(2024, 1, 5), "PT", "ES")],
        rule_for=table.rule_for,
        start=date(2024, 1, 1),
        end=date(2024, 1, 10),
        tz=timezone.utc,
    )
    assert presence["PT"] == days(date(2024, 1, 1), date(2024, 1, 5))
    assert presence["ES"] == days(date(2024, 1, 5), date(2024, 1, 10))


def test_unsorted_legs_are_sorted_by_time():
    table = rules()
    presence = build_presence_sets(
        [
            leg(datetime(2024, 1, 3, 18, 0), "BB", "CC"),
            leg(datetime(2024, 1, 3, 7, 0), "AA", "BB"),
        ],
        rule_for=table.rule_for,
        start=date(2024, 1, 1),
        end=date(2024, 1, 5),
        tz=timezone.utc,
    )
    assert presence["AA"] == days(date(2024, 1, 1), date(2024, 1, 3))
    assert presence["CC"] == days(date(2024, 1, 3), date(2024, 1, 5))


def test_empty_legs_yield_empty_map():
    table = rules()
    assert build_presence_sets(
        [], rule_for=table.rule_for, start=date(2024, 1, 1), end=date(2024, 12, 31), tz=timezone.utc
    ) == {}


def test_blank_codes_are_tolerated():
    table = rules()
    presence = build_presence_sets(
        [
            leg(date(2024, 1, 2), "", ""),  # ignored entirely
            leg(date(2024, 1, 3), "AA", ""),  # blank arrival: stays in AA
            leg(date(2024, 1, 5), "AA", "BB"),
        ],
        rule_for=table.rule_for,
        start=date(2024, 1, 1),
        end=date(2024, 1, 6),
        tz=timezone.utc,
        initial_country="AA",
    )
    assert "" not in presence
    assert presence["AA"] == days(date(2024, 1, 1), date(2024, 1, 5))
    assert presence["BB"] == {date(2024, 1, 5), date(2024, 1, 6)}


def test_reference_time_zone_decides_the_travel_day():
    table = rules()
    late_evening_new_york = datetime(2024, 3, 1, 23, 30, tzinfo=ZoneInfo("America/New_York"))
    legs = [leg(late_evening_new_york, "AA", "BB")]

    utc = build_presence_sets(
        legs, rule_for=table.rule_for, start=date(2024, 3, 1), end=date(2024, 3, 3),
        tz=timezone.utc, initial_country="AA",
    )
    assert utc["AA"] == {date(2024, 3, 1), date(2024, 3, 2)}
    assert utc["BB"] == {date(2024, 3, 2), date(2024, 3, 3)}

    ny = build_presence_sets(
        legs, rule_for=table.rule_for, start=date(2024, 3, 1), end=date(2024, 3, 3),
        tz=ZoneInfo("America/New_York"), initial_country="AA",
    )
    assert ny["AA"] == {date(2024, 3, 1)}
    assert ny["BB"] == days(date(2024, 3, 1), date(2024, 3, 3))
