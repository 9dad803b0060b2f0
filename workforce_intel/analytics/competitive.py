"""Competitive evolution: market share timelines, positioning and talent war zones.

Market share, rank and momentum are computed per period snapshot. The
positioning matrix compares one agency's footprint to every other agency by
Jaccard similarity of their category sets. War-zone intensity is a bounded
composite score (0-10), not a probability.
"""

import logging
import math
from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from workforce_intel.analytics.periods import build_snapshots, count_by, months_between, with_dates
from workforce_intel.core.config import CompetitiveConfig, Granularity
from workforce_intel.core.schemas import JobRecord, canonical_agency

logger = logging.getLogger(__name__)

Momentum = Literal["accelerating", "steady", "decelerating"]
Impact = Literal["high", "medium", "low"]
ThreatLevel = Literal["high", "medium", "low"]
Trend = Literal["gaining", "stable", "losing"]
Recommendation = Literal["attack", "defend", "maintain", "exit"]

# Approximate weeks per month used for hiring velocity.
WEEKS_PER_PERIOD = 4
MOMENTUM_CHANGE_PCT = 20.0
RECENT_MONTHS = 3
PREVIOUS_MONTHS = 6


class TimelinePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: str
    market_share: float
    rank: int
    hiring_velocity: float
    momentum: Momentum


class StrategicMove(BaseModel):
    model_config = ConfigDict(frozen=True)

    period: str
    move: str
    new_categories: list[str] = Field(default_factory=list)
    impact: Impact


class CompetitiveEvolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    agency: str
    timeline: list[TimelinePoint] = Field(default_factory=list)
    strategic_moves: list[StrategicMove] = Field(default_factory=list)


class AgencyMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    market_share: float
    growth_rate: float
    category_diversity: float
    geographic_reach: int


class Competitor(BaseModel):
    model_config = ConfigDict(frozen=True)

    agency: str
    similarity_score: float
    threat_level: ThreatLevel
    overlapping_categories: list[str] = Field(default_factory=list)


class MarketLeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    agency: str
    leadership_areas: list[str] = Field(default_factory=list)


class PositioningMatrix(BaseModel):
    model_config = ConfigDict(frozen=True)

    agency: str
    your_agency: AgencyMetrics
    direct_competitors: list[Competitor] = Field(default_factory=list)
    market_leaders: list[MarketLeader] = Field(default_factory=list)


class CategoryLeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    agency: str
    market_share: float


class YourPosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    rank: int = 0
    market_share: float = 0.0
    trend: Trend = "stable"


class TalentWarZone(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    competition_intensity: float
    agencies_competing: int
    leader: CategoryLeader
    recent_entries: list[str] = Field(default_factory=list)
    recent_exits: list[str] = Field(default_factory=list)
    your_position: YourPosition = Field(default_factory=YourPosition)
    strategic_recommendation: Recommendation


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """|A ∩ B| / |A ∪ B| x 100; 0.0 when both sets are empty."""
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union) * 100


def shannon_entropy(counts: Mapping[str, int]) -> float:
    """Base-2 Shannon entropy of a count distribution."""
    total = sum(counts.values())
    if total <= 0:
        return 0.0
    entropy = 0.0
    for n in counts.values():
        if n > 0:
            p = n / total
            entropy -= p * math.log2(p)
    return entropy


def competition_intensity(agency_count: int, share_of_all: float) -> float:
    """min(10, 0.5 x agencies + 100 x share). share_of_all is a fraction."""
    return min(10.0, agency_count * 0.5 + share_of_all * 100)


def classify_momentum(current: float, previous: float) -> Momentum:
    if previous == 0:
        return "steady"
    change = (current - previous) / previous * 100
    if change > MOMENTUM_CHANGE_PCT:
        return "accelerating"
    if change < -MOMENTUM_CHANGE_PCT:
        return "decelerating"
    return "steady"


def classify_threat(similarity: float, their_volume: int, your_volume: int) -> ThreatLevel:
    if similarity > 50 and their_volume >= your_volume * 0.8:
        return "high"
    if similarity > 30:
        return "medium"
    return "low"


def classify_trend(recent: int, previous: int) -> Trend:
    if recent > previous * 1.2:
        return "gaining"
    if recent < previous * 0.8:
        return "losing"
    return "stable"


def recommend(intensity: float, market_share: float, trend: Trend) -> Recommendation:
    """Posture decision table for one category; first matching row wins."""
    if intensity > 7 and market_share < 10 and trend == "losing":
        return "exit"
    if intensity > 7 and market_share < 15 and trend == "gaining":
        return "attack"
    if market_share > 20 and trend == "losing":
        return "defend"
    if market_share > 20:
        return "maintain"
    if intensity < 5 and market_share < 5:
        return "exit"
    return "maintain"


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------


def track_competitive_evolution(
    records: Iterable[JobRecord],
    now: date,
    granularity: Granularity = "month",
    periods: int = 6,
    config: CompetitiveConfig | None = None,
) -> list[CompetitiveEvolution]:
    """Build market-share/rank/momentum timelines for the top agencies by volume."""
    config = config or CompetitiveConfig()
    records = list(records)
    snapshots = build_snapshots(records, now, granularity, periods)

    top_agencies = [a for a, _ in count_by(records, lambda r: r.agency).most_common(config.top_agencies)]
    period_counts = [count_by(s.records, lambda r: r.agency) for s in snapshots]
    period_ranks = [
        {agency: i + 1 for i, (agency, _) in enumerate(counts.most_common())}
        for counts in period_counts
    ]
    period_categories = [_categories_by_agency(s.records) for s in snapshots]

    evolutions = []
    for agency in top_agencies:
        timeline: list[TimelinePoint] = []
        previous_velocity = 0.0
        for snapshot, counts, ranks in zip(snapshots, period_counts, period_ranks):
            count = counts.get(agency, 0)
            share = count / snapshot.count * 100 if snapshot.count else 0.0
            velocity = count / WEEKS_PER_PERIOD
            timeline.append(
                TimelinePoint(
                    period=snapshot.label,
                    market_share=round(share, 1),
                    rank=ranks.get(agency, 0),
                    hiring_velocity=round(velocity, 1),
                    momentum=classify_momentum(velocity, previous_velocity),
                )
            )
            previous_velocity = velocity

        moves = _detect_strategic_moves(
            [s.label for s in snapshots],
            [cats.get(agency, set()) for cats in period_categories],
        )
        evolutions.append(
            CompetitiveEvolution(
                agency=agency,
                timeline=timeline,
                strategic_moves=moves[-config.max_moves:],
            )
        )

    logger.info("Competitive evolution: %d agencies over %d periods", len(evolutions), len(snapshots))
    return evolutions


def _categories_by_agency(records: Iterable[JobRecord]) -> dict[str, set[str]]:
    result: dict[str, set[str]] = {}
    for r in records:
        result.setdefault(r.agency, set()).add(r.primary_category)
    return result


def _detect_strategic_moves(labels: list[str], categories: list[set[str]]) -> list[StrategicMove]:
    moves: list[StrategicMove] = []
    for i in range(1, len(labels)):
        new = sorted(categories[i] - categories[i - 1])
        if not new:
            continue
        names = ", ".join(new[:2]) + ("..." if len(new) > 2 else "")
        impact: Impact = "high" if len(new) > 2 else "medium" if len(new) > 1 else "low"
        moves.append(
            StrategicMove(period=labels[i], move=f"Expanded into {names}", new_categories=new, impact=impact)
        )
    return moves


# ---------------------------------------------------------------------------
# Positioning
# ---------------------------------------------------------------------------


def _window_split(
    records: Iterable[JobRecord], now: date
) -> tuple[list[JobRecord], list[JobRecord]]:
    """Split dated records into (0-3 months ago, 4-6 months ago)."""
    recent: list[JobRecord] = []
    previous: list[JobRecord] = []
    for r, posted in with_dates(records):
        ago = months_between(posted, now)
        if 0 <= ago <= RECENT_MONTHS:
            recent.append(r)
        elif RECENT_MONTHS < ago <= PREVIOUS_MONTHS:
            previous.append(r)
    return recent, previous


def growth_rate(records: Iterable[JobRecord], now: date) -> float:
    """Percent change of the last 3 months over the 3 before; 0 without history."""
    recent, previous = _window_split(records, now)
    if not previous:
        return 0.0
    return (len(recent) - len(previous)) / len(previous) * 100


def create_positioning_matrix(
    records: Iterable[JobRecord],
    agency: str | None,
    now: date,
    config: CompetitiveConfig | None = None,
) -> PositioningMatrix | None:
    """Compare one agency against its most similar competitors.

    Returns None when no agency is given or the agency has no records.
    """
    if not agency:
        return None
    config = config or CompetitiveConfig()
    records = list(records)
    yours = [r for r in records if r.matches_agency(agency)]
    if not yours:
        logger.info("Positioning matrix: no records for %s", agency)
        return None

    metrics = AgencyMetrics(
        market_share=len(yours) / len(records) * 100,
        growth_rate=round(growth_rate(yours, now), 1),
        category_diversity=round(shannon_entropy(count_by(yours, lambda r: r.primary_category)), 2),
        geographic_reach=len({r.duty_country for r in yours if r.duty_country}),
    )

    your_categories = {r.primary_category for r in yours}
    by_agency: dict[str, list[JobRecord]] = {}
    for r in records:
        if not r.matches_agency(agency):
            by_agency.setdefault(r.agency, []).append(r)

    competitors = []
    for other in sorted(by_agency):
        theirs = by_agency[other]
        their_categories = {r.primary_category for r in theirs}
        similarity = jaccard_similarity(your_categories, their_categories)
        competitors.append(
            Competitor(
                agency=other,
                similarity_score=round(similarity, 1),
                threat_level=classify_threat(similarity, len(theirs), len(yours)),
                overlapping_categories=sorted(your_categories & their_categories),
            )
        )
    competitors.sort(key=lambda c: c.similarity_score, reverse=True)

    return PositioningMatrix(
        agency=agency,
        your_agency=metrics,
        direct_competitors=competitors[: config.max_competitors],
        market_leaders=_market_leaders(records, canonical_agency(yours, agency))[: config.max_leaders],
    )


def _market_leaders(records: list[JobRecord], your_agency: str) -> list[MarketLeader]:
    """Agencies (other than yours) that lead at least one category."""
    by_category: dict[str, Counter[str]] = {}
    for r in records:
        by_category.setdefault(r.primary_category, Counter())[r.agency] += 1

    areas: dict[str, list[str]] = {}
    for category in sorted(by_category):
        leader, _ = by_category[category].most_common(1)[0]
        areas.setdefault(leader, []).append(category)

    leaders = [
        MarketLeader(agency=leader, leadership_areas=cats)
        for leader, cats in areas.items()
        if leader != your_agency
    ]
    leaders.sort(key=lambda m: len(m.leadership_areas), reverse=True)
    return leaders


# ---------------------------------------------------------------------------
# War zones
# ---------------------------------------------------------------------------


def identify_talent_war_zones(
    records: Iterable[JobRecord],
    now: date,
    agency: str | None = None,
) -> list[TalentWarZone]:
    """Assess every category for competitive intensity, most contested first."""
    records = list(records)
    total = len(records)
    by_category: dict[str, list[JobRecord]] = {}
    for r in records:
        by_category.setdefault(r.primary_category, []).append(r)

    your_name = canonical_agency(records, agency) if agency else None

    zones = []
    for category in sorted(by_category):
        category_jobs = by_category[category]
        counts = count_by(category_jobs, lambda r: r.agency)
        intensity = competition_intensity(len(counts), len(category_jobs) / total)

        leader, leader_count = counts.most_common(1)[0]
        recent, previous = _window_split(category_jobs, now)
        recent_agencies = {r.agency for r in recent}
        previous_agencies = {r.agency for r in previous}

        position = YourPosition()
        if agency:
            ranking = [a for a, _ in counts.most_common()]
            yours = sum(1 for r in category_jobs if r.matches_agency(agency))
            position = YourPosition(
                rank=ranking.index(your_name) + 1 if your_name in ranking else 0,
                market_share=yours / len(category_jobs) * 100,
                trend=classify_trend(
                    sum(1 for r in recent if r.matches_agency(agency)),
                    sum(1 for r in previous if r.matches_agency(agency)),
                ),
            )

        zones.append(
            TalentWarZone(
                category=category,
                competition_intensity=round(intensity, 1),
                agencies_competing=len(counts),
                leader=CategoryLeader(agency=leader, market_share=leader_count / len(category_jobs) * 100),
                recent_entries=sorted(recent_agencies - previous_agencies),
                recent_exits=sorted(previous_agencies - recent_agencies),
                your_position=position,
                strategic_recommendation=recommend(intensity, position.market_share, position.trend),
            )
        )

    zones.sort(key=lambda z: z.competition_intensity, reverse=True)
    logger.info("Talent war zones: %d categories assessed", len(zones))
    return zones
