# residency/test_pipeline_smoke.py

from residency.models import CountryRule
from residency.pipeline import load_summaries_from_json

RULES = {
    "Default": CountryRule(country_name="Default", day_threshold=183),
    "GB": CountryRule(
        country_name="United Kingdom",
        window_type="TAX_YEAR",
        tax_year_start_month=4,
        tax_year_start_day=6,
        counts_partial_days=False,
    ),
}

RAW = {
    "since": "2024-01-01",
    "until": "2024-12-31",
    "initial_countries": {"Jane Doe": "fr"},
    "legs": [
        {"date": "2024-02-01T07:15:00+01:00", "departure_country": "FR", "arrival_country": "GB", "traveler": "Jane Doe"},
        {"date": "2024-09-15", "departure_country": "GB", "arrival_country": "FR", "traveler": "Jane Doe"},
        {"date": "2024-02-31", "departure_country": "FR", "arrival_country": "US", "traveler": "Jane Doe"},  # invalid
        {"date": "2024-05-01", "departure_country": "US", "arrival_country": "CA", "traveler": "John Roe"},
    ],
}


def test_pipeline_end_to_end():
    result = load_summaries_from_json(RAW, rules=RULES)

    assert [t.traveler for t in result.travelers] == ["Jane Doe", "John Roe"]

    jane = {r.country_code: r for r in result.travelers[0].results}
    # Feb 1 - Sep 14 in GB (departure day not credited for GB)
    gb_days = sum(w.counted_days for w in jane["GB"].windows)
    assert gb_days == 227
    assert [w.label for w in jane["GB"].windows] == ["2023/2024", "2024/2025"]
    assert jane["GB"].any_window_meets_threshold is False

    assert any(i.ref_id == "leg_2" and i.severity == "high" for i in result.issues)
    assert result.time_zone == "UTC"


def test_bare_list_and_bad_range():
    result = load_summaries_from_json(
        {"legs": RAW["legs"][:2], "since": "not a date"},
        rules=RULES,
    )
    assert result.since is None
    assert any(i.category == "analysis_range" for i in result.issues)

    result = load_summaries_from_json(RAW["legs"][3:], rules=RULES)
    assert [t.traveler for t in result.travelers] == ["John Roe"]


def test_initial_country_key_matches_normalized_traveler():
    result = load_summaries_from_json(
        {
            "since": "2024-01-01",
            "until": "2024-12-31",
            "initial_countries": {"  Jane   Doe ": "cc"},
            "legs": [{"date": "2024-03-01", "departure_country": "AA", "arrival_country": "BB", "traveler": "Jane  Doe"}],
        },
        rules=RULES,
    )
    [jane] = result.travelers
    assert jane.traveler == "Jane Doe"
    counts = {r.country_code: r.windows[0].counted_days for r in jane.results}
    # Jan 1 - Feb 29 in CC before the first flight
    assert counts["CC"] == 60
    assert any(i.ref_id == "traveler_Jane Doe" for i in result.issues)


def main():
    result = load_summaries_from_json(RAW, rules=RULES)

    print("\n=== Range ===")
    print("since:", result.since)
    print("until:", result.until)

    for summary in result.travelers:
        print(f"\n=== {summary.traveler} ===")
        for r in summary.results:
            flag = "meets" if r.any_window_meets_threshold else "-"
            print(f"  {r.country_code} ({r.country_name}) {flag}")
            for w in r.windows:
                print(f"    {w.label}: {w.counted_days}/{w.threshold}")

    print("\n=== Issues ===")
    for i in result.issues:
        print(f"[{i.severity}] ({i.category}) ref_id={i.ref_id} :: {i.message}")


if __name__ == "__main__":
    main()
