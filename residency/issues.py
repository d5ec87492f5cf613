# residency/issues.py

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List

from .validate import Issue, Severity

_SEVERITY_ORDER: Dict[Severity, int] = {"high": 0, "medium": 1, "low": 2}


def tag_issues(issues: List[Issue], ref_id: str) -> List[Issue]:
    """
    Return a new list with ref_id filled in where it is missing.
    (Issue is frozen, so tagged copies are built with dataclasses.replace.)
    """
    return [i if i.ref_id is not None else replace(i, ref_id=ref_id) for i in issues]


def top_issues(issues: List[Issue], n: int = 3) -> List[Issue]:
    """Most severe first; original order kept within a severity."""
    return sorted(issues, key=lambda i: _SEVERITY_ORDER.get(i.severity, 9))[:n]
