"""Skill demand timelines, co-occurrence profiles and emerging-skill detection.

Skills come from each record's job labels plus a keyword scan of the title
against GENERIC_COMPETENCIES. Skills are matched case-insensitively; the
first spelling seen in the record set is the one reported.
"""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from workforce_intel.analytics.competitive import competition_intensity
from workforce_intel.analytics.periods import (
    build_snapshots,
    check_granularity,
    count_by,
    months_between,
    period_key,
    period_label,
)
from workforce_intel.core.config import Granularity
from workforce_intel.core.schemas import SENIOR_LEVELS, JobRecord

logger = logging.getLogger(__name__)

SkillTrend = Literal["rising", "stable", "falling"]
DemandLevel = Literal["high", "medium", "low"]
Trajectory = Literal["emerging", "growing", "mature", "declining"]
Importance = Literal["critical", "important", "nice_to_have"]
SupplyDifficulty = Literal["scarce", "competitive", "abundant"]

GENERIC_COMPETENCIES = (
    "Management",
    "Leadership",
    "Analysis",
    "Research",
    "Communication",
    "Planning",
    "Coordination",
    "Monitoring",
    "Evaluation",
    "Reporting",
    "Policy",
    "Strategy",
    "Finance",
    "Budget",
    "Data",
    "Technology",
    "Program",
    "Project",
    "Operations",
    "Administration",
    "Legal",
    "Advocacy",
    "Partnership",
    "Capacity Building",
    "Training",
)

TREND_CHANGE_PCT = 15.0
RECENT_WINDOW_MONTHS = 6
OLDER_WINDOW_MONTHS = 12
EMERGING_GROWTH_FACTOR = 1.5
# Growth from zero cannot be measured; new skills get a fixed rate.
NEW_SKILL_GROWTH_PCT = 200.0


class SkillTrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: str
    demand_count: int
    percentage_of_jobs: float
    trend: SkillTrend


class SkillClassification(BaseModel):
    model_config = ConfigDict(frozen=True)

    demand_level: DemandLevel
    growth_trajectory: Trajectory
    strategic_importance: Importance


class MarketContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    agencies_seeking: int
    competition_intensity: float
    supply_difficulty: SupplyDifficulty


class SkillTimeline(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    timeline: list[SkillTrendPoint] = Field(default_factory=list)
    classification: SkillClassification
    market_context: MarketContext


class CoOccurrence(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    co_occurrence_rate: float


class SkillCombination(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    occurrences: int
    commonly_combined_with: list[CoOccurrence] = Field(default_factory=list)
    typical_categories: list[str] = Field(default_factory=list)
    typical_levels: list[str] = Field(default_factory=list)
    avg_application_window: float


class AdoptionPrediction(BaseModel):
    """Heuristic outlook; confidence is a bounded score, not a probability."""

    model_config = ConfigDict(frozen=True)

    will_become_mainstream: bool
    confidence: int
    estimated_timeline: str


class EmergingSkill(BaseModel):
    model_config = ConfigDict(frozen=True)

    skill: str
    first_appearance: str
    growth_rate: float
    recent_count: int
    previous_count: int
    adoption_agencies: list[str] = Field(default_factory=list)
    adopting_agency_count: int
    related_skills: list[str] = Field(default_factory=list)
    prediction: AdoptionPrediction


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_skills(record: JobRecord) -> list[str]:
    """Labels first, then competencies named in the title; duplicates collapsed."""
    title = record.title.lower()
    candidates = [*record.job_labels, *(s for s in GENERIC_COMPETENCIES if s.lower() in title)]

    seen: set[str] = set()
    skills: list[str] = []
    for skill in candidates:
        key = skill.strip().casefold()
        if not key or key in seen:
            continue
        seen.add(key)
        skills.append(skill.strip())
    return skills


class _SkillIndex:
    """Skill keys per record plus the display name for each key."""

    def __init__(self, records: Sequence[JobRecord]) -> None:
        self.records = records
        self.names: dict[str, str] = {}
        self.keys: list[tuple[str, ...]] = []
        for r in records:
            keys = []
            for skill in extract_skills(r):
                key = skill.casefold()
                self.names.setdefault(key, skill)
                keys.append(key)
            self.keys.append(tuple(keys))

    def totals(self) -> Counter[str]:
        return Counter(key for keys in self.keys for key in keys)

    def top(self, n: int) -> list[str]:
        return [key for key, _ in self.totals().most_common(n)]

    def with_skill(self, key: str) -> list[tuple[JobRecord, tuple[str, ...]]]:
        return [(r, keys) for r, keys in zip(self.records, self.keys) if key in keys]


def _skill_keys(record: JobRecord) -> set[str]:
    return {skill.casefold() for skill in extract_skills(record)}


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------


def _check_positive(name: str, value: int) -> None:
    if value < 1:
        msg = f"{name} must be >= 1, got {value}"
        raise ValueError(msg)


def classify_trend(current: int, previous: int) -> SkillTrend:
    if previous == 0:
        return "stable"
    change = (current - previous) / previous * 100
    if change > TREND_CHANGE_PCT:
        return "rising"
    if change < -TREND_CHANGE_PCT:
        return "falling"
    return "stable"


def classify_demand(avg_count: float) -> DemandLevel:
    if avg_count > 50:
        return "high"
    if avg_count > 20:
        return "medium"
    return "low"


def classify_trajectory(trends: Sequence[SkillTrend], demand: DemandLevel) -> Trajectory:
    """Judge the last three trend points."""
    recent = list(trends)[-3:]
    rising = recent.count("rising")
    falling = recent.count("falling")
    if rising >= 2 and demand == "low":
        return "emerging"
    if rising >= 2:
        return "growing"
    if falling >= 2:
        return "declining"
    return "mature"


def classify_importance(senior_pct: float, demand: DemandLevel) -> Importance:
    if senior_pct > 40 or demand == "high":
        return "critical"
    if senior_pct > 20 or demand == "medium":
        return "important"
    return "nice_to_have"


def classify_supply(urgent_pct: float) -> SupplyDifficulty:
    if urgent_pct > 40:
        return "scarce"
    if urgent_pct > 20:
        return "competitive"
    return "abundant"


def skill_demand_timeline(
    records: Iterable[JobRecord],
    now: date,
    granularity: Granularity = "month",
    periods: int = 6,
    top_n: int = 20,
    urgent_window_days: int = 14,
) -> list[SkillTimeline]:
    """Per-period demand for the most requested skills, with classification."""
    check_granularity(granularity)
    _check_positive("periods", periods)
    _check_positive("top_n", top_n)
    _check_positive("urgent_window_days", urgent_window_days)
    records = list(records)
    index = _SkillIndex(records)
    top = index.top(top_n)
    snapshots = build_snapshots(records, now, granularity, periods)
    period_counts = [
        Counter(key for r in s.records for key in _skill_keys(r)) for s in snapshots
    ]

    timelines = []
    for key in top:
        points: list[SkillTrendPoint] = []
        previous = 0
        for snapshot, counts in zip(snapshots, period_counts):
            count = counts.get(key, 0)
            pct = count / snapshot.count * 100 if snapshot.count else 0.0
            points.append(
                SkillTrendPoint(
                    period=snapshot.label,
                    demand_count=count,
                    percentage_of_jobs=round(pct, 1),
                    trend=classify_trend(count, previous),
                )
            )
            previous = count

        skill_records = [r for r, _ in index.with_skill(key)]
        timelines.append(
            SkillTimeline(
                skill=index.names[key],
                timeline=points,
                classification=_classify(points, skill_records),
                market_context=_market_context(skill_records, len(records), urgent_window_days),
            )
        )

    logger.info("Skill timelines: %d skills over %d periods", len(timelines), len(snapshots))
    return timelines


def _classify(points: list[SkillTrendPoint], skill_records: list[JobRecord]) -> SkillClassification:
    avg = sum(p.demand_count for p in points) / len(points) if points else 0.0
    demand = classify_demand(avg)
    senior = sum(1 for r in skill_records if r.seniority in SENIOR_LEVELS)
    senior_pct = senior / len(skill_records) * 100 if skill_records else 0.0
    return SkillClassification(
        demand_level=demand,
        growth_trajectory=classify_trajectory([p.trend for p in points], demand),
        strategic_importance=classify_importance(senior_pct, demand),
    )


def _market_context(skill_records: list[JobRecord], total: int, urgent_window_days: int) -> MarketContext:
    agencies = {r.agency for r in skill_records}
    share = len(skill_records) / total if total else 0.0

    # Records without a usable window are left out of the urgency ratio.
    windows = [r.application_window_days for r in skill_records if r.application_window_days is not None]
    urgent = sum(1 for w in windows if w < urgent_window_days)
    urgent_pct = urgent / len(windows) * 100 if windows else 0.0

    return MarketContext(
        agencies_seeking=len(agencies),
        competition_intensity=round(competition_intensity(len(agencies), share), 1),
        supply_difficulty=classify_supply(urgent_pct),
    )


# ---------------------------------------------------------------------------
# Co-occurrence
# ---------------------------------------------------------------------------


def analyze_skill_combinations(
    records: Iterable[JobRecord],
    top_n: int = 15,
) -> list[SkillCombination]:
    """Which skills travel together, and in what kind of posting."""
    _check_positive("top_n", top_n)
    records = list(records)
    index = _SkillIndex(records)

    combinations = []
    for key in index.top(top_n):
        matches = index.with_skill(key)
        n = len(matches)
        partners = Counter(other for _, keys in matches for other in keys if other != key)
        skill_records = [r for r, _ in matches]
        windows = [r.application_window_days for r in skill_records if r.application_window_days is not None]

        combinations.append(
            SkillCombination(
                skill=index.names[key],
                occurrences=n,
                commonly_combined_with=[
                    CoOccurrence(skill=index.names[other], co_occurrence_rate=round(c / n * 100, 1))
                    for other, c in partners.most_common(5)
                ],
                typical_categories=[
                    c for c, _ in count_by(skill_records, lambda r: r.primary_category).most_common(3)
                ],
                typical_levels=[s for s, _ in count_by(skill_records, lambda r: r.seniority).most_common(3)],
                avg_application_window=round(sum(windows) / len(windows), 1) if windows else 0.0,
            )
        )
    return combinations


# ---------------------------------------------------------------------------
# Emerging skills
# ---------------------------------------------------------------------------


def predict_adoption(growth_rate: float, current_demand: int, agency_count: int) -> AdoptionPrediction:
    """Mainstream-adoption heuristic for an emerging skill."""
    mainstream = growth_rate > 100 and current_demand > 10 and agency_count >= 5
    confidence = min(95.0, growth_rate / 2 + current_demand * 2 + agency_count * 3)
    if growth_rate > 150:
        timeline = "Within 6 months"
    elif growth_rate > 100:
        timeline = "Within 12 months"
    else:
        timeline = "Within 18 months"
    return AdoptionPrediction(
        will_become_mainstream=mainstream,
        confidence=round(confidence),
        estimated_timeline=timeline,
    )


def detect_emerging_skills(
    records: Iterable[JobRecord],
    now: date,
    granularity: Granularity = "month",
    max_results: int = 10,
) -> list[EmergingSkill]:
    """Skills that are new in the last 6 months, or grew >= 1.5x vs the 6 before.

    Sorted by growth rate, highest first.
    """
    check_granularity(granularity)
    _check_positive("max_results", max_results)
    records = list(records)
    index = _SkillIndex(records)

    recent: Counter[str] = Counter()
    older: Counter[str] = Counter()
    for r, keys in zip(index.records, index.keys):
        posted = r.posted_on
        if posted is None:
            continue
        ago = months_between(posted, now)
        if 0 <= ago <= RECENT_WINDOW_MONTHS:
            recent.update(keys)
        elif RECENT_WINDOW_MONTHS < ago <= OLDER_WINDOW_MONTHS:
            older.update(keys)

    emerging = []
    for key, recent_count in recent.items():
        older_count = older.get(key, 0)
        if older_count and recent_count < older_count * EMERGING_GROWTH_FACTOR:
            continue
        growth = (recent_count - older_count) / older_count * 100 if older_count else NEW_SKILL_GROWTH_PCT

        matches = index.with_skill(key)
        agencies = sorted({r.agency for r, _ in matches})
        related = Counter(other for _, keys in matches for other in keys if other != key)
        dated = [d for r, _ in matches if (d := r.posted_on) is not None]

        emerging.append(
            EmergingSkill(
                skill=index.names[key],
                first_appearance=period_label(period_key(min(dated), granularity), granularity),
                growth_rate=round(growth, 1),
                recent_count=recent_count,
                previous_count=older_count,
                adoption_agencies=agencies[:5],
                adopting_agency_count=len(agencies),
                related_skills=[index.names[k] for k, _ in related.most_common(3)],
                prediction=predict_adoption(growth, recent_count, len(agencies)),
            )
        )

    emerging.sort(key=lambda e: e.growth_rate, reverse=True)
    logger.info("Emerging skills: %d candidates", len(emerging))
    return emerging[:max_results]
