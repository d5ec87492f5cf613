# residency/packet.py

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Any, Dict, List, Optional

from .engine import CountryResidencyResult, TravelerResidencySummary
from .glue import RawSnapshot
from .issues import top_issues
from .pipeline import BuildResult
from .validate import Issue, Severity
from .windows import CountryWindowResult


def _iso(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d else None


def _snapshot_index(snapshots: List[RawSnapshot]) -> Dict[str, RawSnapshot]:
    return {s.id: s for s in snapshots}


def _issue_to_dict(issue: Issue, snapshot_by_id: Dict[str, RawSnapshot]) -> Dict[str, Any]:
    snap = snapshot_by_id.get(issue.ref_id) if issue.ref_id else None
    return {
        "severity": issue.severity,
        "category": issue.category,
        "ref_id": issue.ref_id,
        "message": issue.message,
        "suggested_action": issue.suggested_action,
        "raw_snapshot": asdict(snap) if snap else None,
    }


def _format_window(w: CountryWindowResult) -> Dict[str, Any]:
    return {
        "label": w.label,
        "start": _iso(w.start),
        "end": _iso(w.end),
        "counted_days": w.counted_days,
        "threshold": w.threshold,
        "meets_threshold": w.meets_threshold,
    }


def _format_country(r: CountryResidencyResult) -> Dict[str, Any]:
    return {
        "country_code": r.country_code,
        "country_name": r.country_name,
        "window_type": r.rule.window_type,
        "day_threshold": r.rule.day_threshold,
        "any_window_meets_threshold": r.any_window_meets_threshold,
        "notes": r.rule.notes,
        "windows": [_format_window(w) for w in r.windows],
    }


def _format_traveler(s: TravelerResidencySummary) -> Dict[str, Any]:
    return {
        "traveler": s.traveler,
        "generated_at": s.generated_at.isoformat(),
        "countries_meeting_threshold": [r.country_code for r in s.results if r.any_window_meets_threshold],
        "countries": [_format_country(r) for r in s.results],
    }


def _group_issues(issues: List[Issue]) -> Dict[Severity, List[Issue]]:
    grouped: Dict[Severity, List[Issue]] = {"high": [], "medium": [], "low": []}
    for i in issues:
        grouped[i.severity].append(i)
    return grouped


def _group_issues_by_ref(issues: List[Issue]) -> Dict[str, List[Issue]]:
    by_ref: Dict[str, List[Issue]] = {}
    for i in issues:
        by_ref.setdefault(i.ref_id or "unlinked", []).append(i)
    return by_ref


def build_residency_packet(result: BuildResult) -> Dict[str, Any]:
    """
    Build a JSON-friendly residency report.

    Output includes:
      - the analysis range and reference time zone
      - per traveler: every observed country with its windows and day counts
      - issues grouped by severity and by ref_id, with the raw record attached

    No computation is performed here.
    """
    snap_by_id = _snapshot_index(result.snapshots)
    grouped_by_sev = _group_issues(result.issues)

    return {
        "meta": {
            "since": _iso(result.since),
            "until": _iso(result.until),
            "time_zone": result.time_zone,
        },
        "travelers": [_format_traveler(s) for s in result.travelers],
        "issues": {
            "counts": {
                "high": len(grouped_by_sev["high"]),
                "medium": len(grouped_by_sev["medium"]),
                "low": len(grouped_by_sev["low"]),
                "total": len(result.issues),
            },
            "top_items": [_issue_to_dict(i, snap_by_id) for i in top_issues(result.issues, n=3)],
            "by_severity": {
                sev: [_issue_to_dict(i, snap_by_id) for i in items]
                for sev, items in grouped_by_sev.items()
            },
            "by_ref_id": {
                ref_id: [_issue_to_dict(i, snap_by_id) for i in items]
                for ref_id, items in _group_issues_by_ref(result.issues).items()
            },
        },
    }
