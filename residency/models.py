# residency/models.py

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Literal, Optional, Set

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


# ======================================================
# Controlled sets
# ======================================================

WindowType = Literal["CALENDAR_YEAR", "TAX_YEAR", "ROLLING_12_MONTHS"]

DEFAULT_RULE_KEY = "Default"
UNKNOWN_TRAVELER = "Unknown"

# country code -> calendar days attributed to that country
PresenceMap = Dict[str, Set[date]]


# ======================================================
# Travel legs (one flight segment)
# ======================================================

class TravelLeg(BaseModel):
    """
    One flight segment as handed over by the record source.

    travel_date may be naive (already in the reference time zone) or aware.
    Country codes are ISO 3166-1 alpha-2; blanks are tolerated so a bad
    upstream record cannot break a whole computation.
    """
    model_config = ConfigDict(frozen=True)

    travel_date: datetime
    departure_country: str = ""
    arrival_country: str = ""
    traveler: str = UNKNOWN_TRAVELER

    # IATA codes, only used for route labels in drill-down views
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None

    @field_validator("travel_date", mode="before")
    @classmethod
    def _day_to_midnight(cls, v: Any) -> Any:
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime(v.year, v.month, v.day)
        return v

    @field_validator("departure_country", "arrival_country", mode="before")
    @classmethod
    def _upper_code(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip().upper()

    @field_validator("traveler", mode="before")
    @classmethod
    def _strip_traveler(cls, v: Any) -> str:
        if v is None:
            return UNKNOWN_TRAVELER
        return str(v).strip() or UNKNOWN_TRAVELER


# ======================================================
# Country rules (pre-parsed configuration)
# ======================================================

class CountryRule(BaseModel):
    """
    Per-country accounting policy.

    counts_weekends_holidays and treaty_employment_rule are carried through
    for consumers; day counting does not read them.
    """
    model_config = ConfigDict(frozen=True)

    country_name: str
    day_threshold: int = Field(default=183, ge=0)
    window_type: WindowType = "CALENDAR_YEAR"

    tax_year_start_month: int = Field(default=1, ge=1, le=12)
    tax_year_start_day: int = Field(default=1, ge=1, le=31)

    counts_arrival_departure: bool = True
    counts_partial_days: bool = True
    counts_weekends_holidays: bool = True
    treaty_employment_rule: bool = Field(
        default=False,
        validation_alias=AliasChoices("treaty_employment_rule", "treaty_employment_183_rule"),
    )
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _tax_year_start_exists_every_year(self) -> "CountryRule":
        # checked against a non-leap year so 29 Feb is rejected too
        try:
            date(2001, self.tax_year_start_month, self.tax_year_start_day)
        except ValueError:
            raise ValueError(
                f"tax year start {self.tax_year_start_month:02d}-{self.tax_year_start_day:02d} "
                "does not exist in every year"
            ) from None
        return self

