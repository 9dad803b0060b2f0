"""Core data models for the workforce analytics engine.

JobRecord is the read-only input every analyzer consumes. Records are frozen;
derived values (agency name, parsed posting date, seniority) are exposed as
properties so a record never changes after validation.
"""

from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN = "Unknown"

# Grade code fragments per seniority band, checked in this order.
_SENIORITY_BANDS: list[tuple[str, tuple[str, ...]]] = [
    ("Junior", ("P1", "P2", "NOA", "NOB", "G1", "G2", "G3")),
    ("Mid", ("P3", "P4", "NOC", "NOD", "G4", "G5", "G6")),
    ("Senior", ("P5", "P6", "L6", "L7", "G7", "G8")),
    ("Executive", ("D1", "D2", "ASG", "USG")),
]

SENIOR_LEVELS = frozenset({"Senior", "Executive"})


def classify_seniority(grade: str) -> str:
    """Map a UN-style grade code to Junior / Mid / Senior / Executive.

    Unknown or empty grades fall back to "Mid".
    """
    if not grade:
        return "Mid"
    upper = grade.upper()
    for level, fragments in _SENIORITY_BANDS:
        if any(fragment in upper for fragment in fragments):
            return level
    return "Mid"


def parse_date(value: Any) -> date | None:
    """Parse a posting date; returns None instead of raising.

    Accepts date/datetime instances and ISO-8601 strings, with or without a
    time component and trailing "Z".
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if len(text) < 10:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    # Older interpreters reject some valid offsets; fall back to the date part.
    if len(text) == 10 or text[10] in ("T", " "):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def _split_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple)):
        # Bad items are dropped, not the record.
        items = (str(item).strip() for item in value if item is not None)
        return [item for item in items if item]
    return value


class JobRecord(BaseModel):
    """A single job posting as supplied by the host application.

    Frozen: analyzers only read records, never annotate them.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    short_agency: str = ""
    long_agency: str = ""
    title: str = ""
    primary_category: str = UNKNOWN
    grade: str = ""
    duty_country: str = ""
    duty_station: str = ""
    posting_date: str | None = Field(
        default=None,
        description="Posting date as supplied; unparseable values are kept but never bucketed.",
    )
    application_window_days: int | None = None
    job_labels: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    seniority_level: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def id_to_str(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            msg = "id must not be empty"
            raise ValueError(msg)
        return str(v).strip()

    @field_validator(
        "short_agency",
        "long_agency",
        "title",
        "grade",
        "duty_country",
        "duty_station",
        "seniority_level",
        mode="before",
    )
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("posting_date", mode="before")
    @classmethod
    def posting_date_to_str(cls, v: Any) -> str | None:
        if isinstance(v, (date, datetime)):
            return v.isoformat()
        if v is None:
            return None
        return str(v)

    @field_validator("application_window_days", mode="before")
    @classmethod
    def window_or_none(cls, v: Any) -> int | None:
        # Unreadable numbers are dropped, not rejected.
        if v is None or isinstance(v, bool):
            return None
        try:
            return int(float(v))
        except (TypeError, ValueError, OverflowError):
            return None

    @field_validator("job_labels", "languages", mode="before")
    @classmethod
    def comma_separated(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("primary_category", mode="before")
    @classmethod
    def category_default(cls, v: Any) -> str:
        if v is None or not str(v).strip():
            return UNKNOWN
        return str(v).strip()

    @property
    def agency(self) -> str:
        return self.short_agency or self.long_agency or UNKNOWN

    @property
    def location(self) -> str:
        return self.duty_country or self.duty_station or UNKNOWN

    @property
    def posted_on(self) -> date | None:
        return parse_date(self.posting_date)

    @property
    def seniority(self) -> str:
        return self.seniority_level or classify_seniority(self.grade)

    def matches_agency(self, name: str) -> bool:
        """True when name is this record's short or long agency name."""
        if not name:
            return False
        return name in (self.short_agency, self.long_agency)


def canonical_agency(records: Iterable[JobRecord], name: str) -> str:
    """Resolve a short or long agency name to the name analyzers group by."""
    for r in records:
        if r.matches_agency(name):
            return r.agency
    return name
