# residency/test_packet_smoke.py

import json

from residency.packet import build_residency_packet
from residency.pipeline import load_summaries_from_json
from residency.test_pipeline_smoke import RAW, RULES


def test_packet_is_json_friendly():
    packet = build_residency_packet(load_summaries_from_json(RAW, rules=RULES))

    # must serialize without custom encoders
    json.dumps(packet)

    assert packet["meta"] == {"since": "2024-01-01", "until": "2024-12-31", "time_zone": "UTC"}

    jane = packet["travelers"][0]
    assert jane["traveler"] == "Jane Doe"
    gb = next(c for c in jane["countries"] if c["country_code"] == "GB")
    assert gb["window_type"] == "TAX_YEAR"
    assert gb["windows"][0] == {
        "label": "2023/2024",
        "start": "2023-04-06",
        "end": "2024-04-05",
        "counted_days": 65,
        "threshold": 183,
        "meets_threshold": False,
    }

    issues = packet["issues"]
    assert issues["counts"]["high"] >= 1
    assert issues["counts"]["total"] == sum(issues["counts"][s] for s in ("high", "medium", "low"))
    bad = issues["by_ref_id"]["leg_2"][0]
    assert bad["raw_snapshot"]["raw"]["date"] == "2024-02-31"
    assert issues["top_items"][0]["severity"] == "high"


def main():
    packet = build_residency_packet(load_summaries_from_json(RAW, rules=RULES))

    print(json.dumps(packet["issues"]["counts"], indent=2))
    print("\nSample HIGH issue (if any):")
    highs = packet["issues"]["by_severity"]["high"]
    if highs:
        print(json.dumps(highs[0], indent=2))
    else:
        print("No high issues.")

    print("\nTravelers:")
    for t in packet["travelers"]:
        print(f"- {t['traveler']}: {len(t['countries'])} country(ies), meeting threshold: {t['countries_meeting_threshold']}")


if __name__ == "__main__":
    main()
