"""Hiring surge detection.

A surge is an (agency, category) pair whose current-month volume clears a
multiple of its trailing baseline. Sudden spikes tend to signal new donor
funding, programme launches or emergency response.

Baseline = mean of per-month counts over *populated* prior months only.
Months with no postings are absent rather than zero, so sporadic posters get
a higher baseline than a true all-months average would give them. Changing
that would shift the meaning of every threshold below.
"""

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

from workforce_intel.analytics.periods import (
    PeriodKey,
    count_by,
    period_bounds,
    period_key,
    period_label,
    shift_period,
    with_dates,
)
from workforce_intel.core.config import SurgeConfig
from workforce_intel.core.schemas import UNKNOWN, JobRecord, canonical_agency

logger = logging.getLogger(__name__)

GroupKey = tuple[str, str]


class LocationShare(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: str
    count: int
    percentage: float


class LocationCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: str
    count: int


class GradeConcentration(BaseModel):
    model_config = ConfigDict(frozen=True)

    most_common_grade: str
    concentration: float


class HiringSurge(BaseModel):
    """One (agency, category) pair hiring well above its baseline."""

    model_config = ConfigDict(frozen=True)

    agency: str
    category: str
    current_month_count: int
    baseline_average: float
    surge_multiplier: float
    is_anomalous: bool
    surge_month: str
    top_locations: list[LocationShare] = Field(default_factory=list)
    grade_concentration: GradeConcentration
    potential_signal: str


class SurgingAgency(BaseModel):
    model_config = ConfigDict(frozen=True)

    agency: str
    count: int
    multiplier: float


class CategorySurge(BaseModel):
    """All surges sharing a category, rolled up."""

    model_config = ConfigDict(frozen=True)

    category: str
    total_surge: int
    agencies: list[SurgingAgency] = Field(default_factory=list)
    top_locations: list[LocationCount] = Field(default_factory=list)


class SystemTrend(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_current_month: int
    total_previous_average: float
    overall_multiplier: float


class Timeframe(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_month: str
    comparison_period: str


class SurgeAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    surges: list[HiringSurge] = Field(default_factory=list)
    by_category: list[CategorySurge] = Field(default_factory=list)
    system_trend: SystemTrend
    timeframe: Timeframe


class AgencySurgeExposure(BaseModel):
    """Surges seen from one agency's point of view."""

    model_config = ConfigDict(frozen=True)

    agency: str
    your_surges: list[HiringSurge] = Field(default_factory=list)
    other_agency_surges: list[HiringSurge] = Field(default_factory=list)
    categories_with_competition: list[str] = Field(default_factory=list)


def surge_multiplier(current_count: int, baseline: float) -> float:
    """current / baseline, 0.0 when there is no baseline."""
    if baseline <= 0:
        return 0.0
    return current_count / baseline


def detect_surges(
    records: Iterable[JobRecord],
    now: date,
    config: SurgeConfig | None = None,
    lookback_months: int = 6,
) -> SurgeAnalysis:
    """Detect hiring surges across all agencies and categories.

    Args:
        records: Job records; undated ones are ignored.
        now: Reference date; its calendar month is the "current month".
        config: Thresholds. Defaults to SurgeConfig().
        lookback_months: Number of prior months forming the baseline window.

    Returns:
        SurgeAnalysis with the top surges (multiplier descending), per-category
        rollups and the system-wide trend, which is always populated.
    """
    if lookback_months < 1:
        msg = f"lookback_months must be >= 1, got {lookback_months}"
        raise ValueError(msg)
    config = config or SurgeConfig()
    records = list(records)

    current = period_key(now, "month")
    current_label = period_label(current)
    window_start, _ = period_bounds(shift_period(current, -lookback_months))
    _, window_end = period_bounds(current)

    # (agency, category) -> month -> records; dict order is first-seen order.
    groups: dict[GroupKey, dict[PeriodKey, list[JobRecord]]] = {}
    for r, posted in with_dates(records):
        if not window_start <= posted < window_end:
            continue
        months = groups.setdefault((r.agency, r.primary_category), {})
        months.setdefault(period_key(posted), []).append(r)

    surges: list[HiringSurge] = []
    for (agency, category), months in groups.items():
        current_jobs = months.get(current, [])
        if len(current_jobs) < config.min_current_jobs:
            continue

        prior_counts = [len(jobs) for key, jobs in months.items() if key != current]
        if len(prior_counts) < config.min_baseline_months:
            logger.debug("Skipping %s/%s: %d baseline months", agency, category, len(prior_counts))
            continue

        baseline = sum(prior_counts) / len(prior_counts)
        if baseline < config.min_baseline_jobs:
            logger.debug("Skipping %s/%s: baseline %.2f too low", agency, category, baseline)
            continue

        multiplier = surge_multiplier(len(current_jobs), baseline)
        if multiplier < config.surge_threshold:
            continue

        surges.append(
            _build_surge(agency, category, current_jobs, baseline, multiplier, current_label, config)
        )

    # sort() is stable: equal multipliers keep group order.
    surges.sort(key=lambda s: s.surge_multiplier, reverse=True)
    by_category = _aggregate_by_category(surges, records, current)
    system_trend = _system_trend(records, current, window_start)

    logger.info(
        "Surge detection for %s: %d groups, %d surges (%d anomalous)",
        current_label,
        len(groups),
        len(surges),
        sum(1 for s in surges if s.is_anomalous),
    )

    return SurgeAnalysis(
        surges=surges[: config.max_surges],
        by_category=by_category,
        system_trend=system_trend,
        timeframe=Timeframe(
            current_month=current_label,
            comparison_period=f"{lookback_months} month average",
        ),
    )


def detect_surges_affecting_agency(
    records: Iterable[JobRecord],
    agency: str,
    now: date,
    config: SurgeConfig | None = None,
    lookback_months: int = 6,
) -> AgencySurgeExposure:
    """Split surges into the agency's own and competitors' surges in its categories."""
    records = list(records)
    analysis = detect_surges(records, now, config, lookback_months)

    name = canonical_agency(records, agency)
    your_categories = {r.primary_category for r in records if r.matches_agency(agency)}
    yours = [s for s in analysis.surges if s.agency == name]
    others = [s for s in analysis.surges if s.agency != name and s.category in your_categories]
    contested = list(dict.fromkeys(s.category for s in others))

    return AgencySurgeExposure(
        agency=agency,
        your_surges=yours,
        other_agency_surges=others,
        categories_with_competition=contested,
    )


def _build_surge(
    agency: str,
    category: str,
    current_jobs: list[JobRecord],
    baseline: float,
    multiplier: float,
    month_label: str,
    config: SurgeConfig,
) -> HiringSurge:
    count = len(current_jobs)
    locations = count_by(current_jobs, lambda r: r.location)
    top_locations = [
        LocationShare(location=loc, count=n, percentage=n / count * 100)
        for loc, n in locations.most_common(3)
    ]

    grades = count_by(current_jobs, lambda r: r.grade or UNKNOWN)
    top_grade, top_grade_count = grades.most_common(1)[0]

    return HiringSurge(
        agency=agency,
        category=category,
        current_month_count=count,
        baseline_average=baseline,
        surge_multiplier=multiplier,
        is_anomalous=multiplier >= config.anomaly_threshold,
        surge_month=month_label,
        top_locations=top_locations,
        grade_concentration=GradeConcentration(
            most_common_grade=top_grade,
            concentration=top_grade_count / count * 100,
        ),
        potential_signal=interpret_signal(multiplier, top_locations, top_grade),
    )


def interpret_signal(
    multiplier: float,
    top_locations: list[LocationShare],
    top_grade: str | None,
) -> str:
    """Build the one-line narrative shown next to a surge."""
    signals: list[str] = []

    if multiplier >= 5:
        signals.append("Major hiring surge")
    elif multiplier >= 3:
        signals.append("Significant hiring increase")
    else:
        signals.append("Moderate hiring uptick")

    if top_locations and top_locations[0].percentage > 60:
        top = top_locations[0]
        signals.append(f"concentrated in {top.location} ({top.percentage:.0f}%)")
    elif len(top_locations) >= 3:
        signals.append("across multiple locations")

    if top_grade:
        grade = top_grade.upper()
        if "CONSULT" in grade or "IC" in grade:
            signals.append("primarily consultants")
        elif grade.startswith(("P3", "P4")):
            signals.append("mid-level positions")
        elif grade.startswith(("P5", "D")):
            signals.append("senior positions")

    if multiplier >= 3:
        signals.append("(may indicate new programme funding)")

    return " ".join(signals)


def _aggregate_by_category(
    surges: list[HiringSurge],
    records: list[JobRecord],
    current: PeriodKey,
) -> list[CategorySurge]:
    totals: dict[str, int] = {}
    agencies: dict[str, list[SurgingAgency]] = {}
    for s in surges:
        totals[s.category] = totals.get(s.category, 0) + s.current_month_count
        agencies.setdefault(s.category, []).append(
            SurgingAgency(agency=s.agency, count=s.current_month_count, multiplier=s.surge_multiplier)
        )

    current_locations: dict[str, Counter[str]] = {category: Counter() for category in totals}
    for r, posted in with_dates(records):
        counter = current_locations.get(r.primary_category)
        if counter is not None and period_key(posted) == current:
            counter[r.duty_country or UNKNOWN] += 1

    rollups = [
        CategorySurge(
            category=category,
            total_surge=total,
            agencies=agencies[category],
            top_locations=[
                LocationCount(location=loc, count=n)
                for loc, n in current_locations[category].most_common(3)
            ],
        )
        for category, total in totals.items()
    ]
    rollups.sort(key=lambda c: c.total_surge, reverse=True)
    return rollups


def _system_trend(records: list[JobRecord], current: PeriodKey, window_start: date) -> SystemTrend:
    current_total = 0
    prior: Counter[PeriodKey] = Counter()
    for _, posted in with_dates(records):
        key = period_key(posted)
        if key == current:
            current_total += 1
        elif window_start <= posted and key < current:
            prior[key] += 1

    previous_avg = sum(prior.values()) / len(prior) if prior else 1.0
    return SystemTrend(
        total_current_month=current_total,
        total_previous_average=previous_avg,
        overall_multiplier=current_total / previous_avg if previous_avg > 0 else 1.0,
    )
