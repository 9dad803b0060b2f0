"""Calendar period bucketing for job records.

Periods are identified by a (year, index) tuple where index is the month
(1-12) or the quarter (1-4). Records whose posting date does not parse are
left out of every bucket; callers never see an error for them.
"""

import logging
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from workforce_intel.core.config import Granularity
from workforce_intel.core.schemas import SENIOR_LEVELS, JobRecord

logger = logging.getLogger(__name__)

PeriodKey = tuple[int, int]

_PERIODS_PER_YEAR: dict[str, int] = {"month": 12, "quarter": 4}


class PeriodSnapshot(BaseModel):
    """Records posted inside one calendar period, [start, end)."""

    model_config = ConfigDict(frozen=True)

    label: str
    start: date
    end: date
    records: list[JobRecord] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)


class VolumeChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    absolute: int
    percentage: float


class CategoryShift(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    baseline_share: float
    current_share: float
    shift: float


class PeriodComparison(BaseModel):
    """Side-by-side view of two record sets (e.g. Q3 last year vs Q3 this year)."""

    model_config = ConfigDict(frozen=True)

    baseline_period: str
    current_period: str
    volume_change: VolumeChange
    category_shifts: list[CategoryShift] = Field(default_factory=list)
    strategic_changes: list[str] = Field(default_factory=list)


def check_granularity(granularity: str) -> int:
    try:
        return _PERIODS_PER_YEAR[granularity]
    except KeyError:
        msg = f"granularity must be 'month' or 'quarter', got {granularity!r}"
        raise ValueError(msg) from None


def period_key(day: date, granularity: Granularity = "month") -> PeriodKey:
    """Return the (year, index) of the period containing day."""
    check_granularity(granularity)
    if granularity == "month":
        return (day.year, day.month)
    return (day.year, (day.month - 1) // 3 + 1)


def period_label(key: PeriodKey, granularity: Granularity = "month") -> str:
    year, index = key
    if granularity == "month":
        return f"{year}-{index:02d}"
    return f"{year}-Q{index}"


def shift_period(key: PeriodKey, n: int, granularity: Granularity = "month") -> PeriodKey:
    """Move a period key n periods forward (negative n moves back)."""
    per_year = check_granularity(granularity)
    year, index = key
    absolute = year * per_year + (index - 1) + n
    return (absolute // per_year, absolute % per_year + 1)


def period_bounds(key: PeriodKey, granularity: Granularity = "month") -> tuple[date, date]:
    """Return the [start, end) dates of a period."""
    months_per_period = 1 if granularity == "month" else 3
    year, index = key
    start = date(year, (index - 1) * months_per_period + 1, 1)
    next_year, next_index = shift_period(key, 1, granularity)
    end = date(next_year, (next_index - 1) * months_per_period + 1, 1)
    return start, end


def months_between(earlier: date, later: date) -> int:
    """Calendar month difference, ignoring the day of month."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


def with_dates(records: Iterable[JobRecord]) -> list[tuple[JobRecord, date]]:
    """Pair each record with its parsed posting date, dropping undated records."""
    return [(r, d) for r in records if (d := r.posted_on) is not None]


def records_between(records: Iterable[JobRecord], start: date, end: date) -> list[JobRecord]:
    """Records posted in [start, end)."""
    return [r for r, d in with_dates(records) if start <= d < end]


def build_snapshots(
    records: Iterable[JobRecord],
    now: date,
    granularity: Granularity = "month",
    periods: int = 6,
) -> list[PeriodSnapshot]:
    """Bucket records into the `periods` periods ending with the one containing now.

    Snapshots are ordered oldest first. Every period in the window is present,
    even when no record falls inside it.
    """
    check_granularity(granularity)
    if periods < 1:
        msg = f"periods must be >= 1, got {periods}"
        raise ValueError(msg)

    current = period_key(now, granularity)
    keys = [shift_period(current, -offset, granularity) for offset in range(periods - 1, -1, -1)]
    buckets: dict[PeriodKey, list[JobRecord]] = {key: [] for key in keys}

    undated = 0
    for r in records:
        posted = r.posted_on
        if posted is None:
            undated += 1
            continue
        bucket = buckets.get(period_key(posted, granularity))
        if bucket is not None:
            bucket.append(r)
    if undated:
        logger.debug("build_snapshots: %d records without a parseable date", undated)

    snapshots = []
    for key in keys:
        start, end = period_bounds(key, granularity)
        snapshots.append(
            PeriodSnapshot(
                label=period_label(key, granularity),
                start=start,
                end=end,
                records=buckets[key],
            )
        )
    return snapshots


def count_by(records: Iterable[JobRecord], key: Callable[[JobRecord], str]) -> Counter[str]:
    """Count records per key; ties keep first-seen order in most_common()."""
    return Counter(key(r) for r in records)


def category_shares(records: Sequence[JobRecord]) -> dict[str, float]:
    """Percentage of records per primary category. Empty input -> {}."""
    total = len(records)
    if total == 0:
        return {}
    counts = count_by(records, lambda r: r.primary_category)
    return {category: count / total * 100 for category, count in counts.items()}


def _senior_share(records: Sequence[JobRecord]) -> float:
    if not records:
        return 0.0
    return sum(1 for r in records if r.seniority in SENIOR_LEVELS) / len(records)


def compare_periods(
    baseline: Sequence[JobRecord],
    current: Sequence[JobRecord],
    baseline_period: str = "baseline",
    current_period: str = "current",
) -> PeriodComparison:
    """Compare volume, category mix and seniority mix between two record sets."""
    absolute = len(current) - len(baseline)
    percentage = absolute / len(baseline) * 100 if baseline else 0.0

    base_shares = category_shares(baseline)
    curr_shares = category_shares(current)
    shifts = [
        CategoryShift(
            category=category,
            baseline_share=round(base_shares.get(category, 0.0), 1),
            current_share=round(curr_shares.get(category, 0.0), 1),
            shift=round(curr_shares.get(category, 0.0) - base_shares.get(category, 0.0), 1),
        )
        for category in dict.fromkeys([*base_shares, *curr_shares])
    ]
    shifts.sort(key=lambda s: abs(s.shift), reverse=True)

    changes: list[str] = []
    if baseline and current:
        senior_delta = _senior_share(current) - _senior_share(baseline)
        if senior_delta > 0.1:
            changes.append("Shift towards senior positions")
        elif senior_delta < -0.1:
            changes.append("Shift towards junior positions")

    return PeriodComparison(
        baseline_period=baseline_period,
        current_period=current_period,
        volume_change=VolumeChange(absolute=absolute, percentage=round(percentage, 1)),
        category_shifts=shifts,
        strategic_changes=changes,
    )
