# residency/normalize.py

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Literal, Optional


TimestampPrecision = Literal["datetime", "day", "unknown"]


@dataclass(frozen=True)
class NormalizedTimestamp:
    """
    value:
      - datetime when known (midnight for day-only input)
      - None when the input could not be read

    precision:
      - datetime | day | unknown
    """
    value: Optional[datetime]
    precision: TimestampPrecision


_UNKNOWN = NormalizedTimestamp(value=None, precision="unknown")


def _safe_day(y: int, m: int, d: int) -> Optional[datetime]:
    """Return None instead of raising ValueError for impossible days (e.g., 2023-02-31)."""
    try:
        return datetime.combine(date(y, m, d), datetime.min.time())
    except ValueError:
        return None


def normalize_timestamp(text: Optional[str], assume_us_mdy: bool = True) -> NormalizedTimestamp:
    """
    Normalize a flight date/time string from a record source.

    Supported inputs:

      Date and time (ISO 8601):
      - "YYYY-MM-DDTHH:MM[:SS]" with optional offset ("+02:00", "Z")
      - "YYYY-MM-DD HH:MM[:SS]"

      Day precision:
      - "YYYY-MM-DD"
      - "YYYY/MM/DD"
      - "MM/DD/YYYY"   (only when assume_us_mdy=True)

    Invalid input NEVER raises; it comes back with precision="unknown".
    Offsets are preserved so the engine can move the timestamp into its
    reference time zone.
    """
    if text is None:
        return _UNKNOWN

    s = text.strip()
    if not s:
        return _UNKNOWN

    # -----------------------------
    # Date + time
    # -----------------------------
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?", s):
        try:
            return NormalizedTimestamp(value=datetime.fromisoformat(s), precision="datetime")
        except ValueError:
            return _UNKNOWN

    # -----------------------------
    # Day precision
    # -----------------------------

    # YYYY-MM-DD
    m = re.fullmatch(r"(\d{4})-(\d{2})-(\d{2})", s)
    if m:
        y, mo, d = map(int, m.groups())
        dt = _safe_day(y, mo, d)
        return NormalizedTimestamp(value=dt, precision="day") if dt else _UNKNOWN

    # YYYY/MM/DD
    m = re.fullmatch(r"(\d{4})/(\d{1,2})/(\d{1,2})", s)
    if m:
        y, mo, d = map(int, m.groups())
        dt = _safe_day(y, mo, d)
        return NormalizedTimestamp(value=dt, precision="day") if dt else _UNKNOWN

    # MM/DD/YYYY
    if assume_us_mdy:
        m = re.fullmatch(r"(\d{1,2})/(\d{1,2})/(\d{4})", s)
        if m:
            mo, d, y = map(int, m.groups())
            dt = _safe_day(y, mo, d)
            return NormalizedTimestamp(value=dt, precision="day") if dt else _UNKNOWN

    return _UNKNOWN


def normalize_country_code(text: Optional[str]) -> Optional[str]:
    """ISO 3166-1 alpha-2 code in uppercase, or None ("fr " -> "FR", "FRA" -> None)."""
    if text is None:
        return None
    c = str(text).strip().upper()
    if re.fullmatch(r"[A-Z]{2}", c):
        return c
    return None


def normalize_traveler(name: Optional[str]) -> Optional[str]:
    """Collapse whitespace; None for blank names."""
    if name is None:
        return None
    n = re.sub(r"\s+", " ", str(name)).strip()
    return n or None
