"""Tests for competitive evolution, positioning and talent war zones."""

from datetime import date
from itertools import count

import pytest

from workforce_intel.analytics.competitive import (
    classify_momentum,
    classify_threat,
    classify_trend,
    competition_intensity,
    create_positioning_matrix,
    growth_rate,
    identify_talent_war_zones,
    jaccard_similarity,
    recommend,
    shannon_entropy,
    track_competitive_evolution,
)
from workforce_intel.core.config import CompetitiveConfig
from workforce_intel.core.schemas import JobRecord

NOW = date(2024, 6, 15)
_ids = count()


def _record(agency: str, category: str = "Health", posting_date: str = "2024-06-01", **kw: object) -> JobRecord:
    defaults: dict[str, object] = {
        "id": str(next(_ids)),
        "short_agency": agency,
        "primary_category": category,
        "posting_date": posting_date,
    }
    defaults.update(kw)
    return JobRecord(**defaults)  # type: ignore[arg-type]


def _many(n: int, agency: str, category: str = "Health", posting_date: str = "2024-06-01") -> list[JobRecord]:
    return [_record(agency, category, posting_date) for _ in range(n)]


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


class TestJaccardSimilarity:
    def test_partial_overlap(self) -> None:
        a = {"Health", "Education", "WASH", "Nutrition"}
        b = {"WASH", "Nutrition", "Logistics", "Food Security"}
        similarity = jaccard_similarity(a, b)
        assert round(similarity, 1) == 33.3
        assert classify_threat(similarity, 4, 5) == "medium"

    def test_symmetric(self) -> None:
        a, b = {"x", "y", "z"}, {"y", "q"}
        assert jaccard_similarity(a, b) == jaccard_similarity(b, a)

    def test_identical_and_disjoint(self) -> None:
        assert jaccard_similarity({"a", "b"}, {"b", "a"}) == 100.0
        assert jaccard_similarity({"a"}, {"b"}) == 0.0

    def test_both_empty(self) -> None:
        assert jaccard_similarity(set(), set()) == 0.0


class TestShannonEntropy:
    def test_single_category_is_zero(self) -> None:
        assert shannon_entropy({"Health": 12}) == 0.0

    def test_even_spread(self) -> None:
        assert shannon_entropy({"a": 3, "b": 3}) == pytest.approx(1.0)
        assert shannon_entropy({"a": 1, "b": 1, "c": 1, "d": 1}) == pytest.approx(2.0)

    def test_increases_with_spread(self) -> None:
        values = [shannon_entropy({str(i): 5 for i in range(n)}) for n in range(1, 7)]
        assert values == sorted(values)
        assert len(set(values)) == len(values)

    def test_empty(self) -> None:
        assert shannon_entropy({}) == 0.0


class TestClassifiers:
    def test_competition_intensity_bounded(self) -> None:
        assert competition_intensity(4, 0.05) == pytest.approx(7.0)
        assert competition_intensity(30, 0.5) == 10.0

    def test_momentum(self) -> None:
        assert classify_momentum(3.0, 0.0) == "steady"
        assert classify_momentum(3.0, 2.0) == "accelerating"
        assert classify_momentum(1.0, 2.0) == "decelerating"
        assert classify_momentum(2.2, 2.0) == "steady"

    def test_threat(self) -> None:
        assert classify_threat(60.0, 8, 10) == "high"
        assert classify_threat(60.0, 5, 10) == "medium"
        assert classify_threat(20.0, 50, 10) == "low"

    def test_trend(self) -> None:
        assert classify_trend(13, 10) == "gaining"
        assert classify_trend(7, 10) == "losing"
        assert classify_trend(10, 10) == "stable"
        assert classify_trend(0, 0) == "stable"

    @pytest.mark.parametrize(
        ("intensity", "share", "trend", "expected"),
        [
            (8.0, 5.0, "losing", "exit"),
            (8.0, 12.0, "gaining", "attack"),
            (6.0, 25.0, "losing", "defend"),
            (6.0, 25.0, "stable", "maintain"),
            (3.0, 2.0, "stable", "exit"),
            (6.0, 10.0, "stable", "maintain"),
        ],
    )
    def test_recommend(self, intensity: float, share: float, trend: str, expected: str) -> None:
        assert recommend(intensity, share, trend) == expected  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Timelines
# ---------------------------------------------------------------------------


def _evolution_records() -> list[JobRecord]:
    return (
        _many(6, "A", "Health", "2024-04-03")
        + _many(5, "A", "Health", "2024-05-03")
        + _many(1, "A", "Education", "2024-05-03")
        + _many(9, "A", "Health", "2024-06-03")
        + [_record("A", c, "2024-06-03") for c in ("WASH", "Logistics", "Nutrition")]
        + _many(2, "B", "Health", "2024-04-03")
        + _many(2, "B", "Health", "2024-05-03")
        + _many(4, "B", "Health", "2024-06-03")
    )


class TestTrackCompetitiveEvolution:
    def test_timeline(self) -> None:
        evolutions = track_competitive_evolution(_evolution_records(), NOW, periods=3)
        assert [e.agency for e in evolutions] == ["A", "B"]

        a = evolutions[0]
        assert [p.period for p in a.timeline] == ["2024-04", "2024-05", "2024-06"]
        assert [p.market_share for p in a.timeline] == [75.0, 75.0, 75.0]
        assert [p.rank for p in a.timeline] == [1, 1, 1]
        assert [p.hiring_velocity for p in a.timeline] == [1.5, 1.5, 3.0]
        assert [p.momentum for p in a.timeline] == ["steady", "steady", "accelerating"]

        b = evolutions[1]
        assert [p.rank for p in b.timeline] == [2, 2, 2]
        assert [p.market_share for p in b.timeline] == [25.0, 25.0, 25.0]

    def test_strategic_moves(self) -> None:
        [a, b] = track_competitive_evolution(_evolution_records(), NOW, periods=3)
        assert [(m.period, m.move, m.impact) for m in a.strategic_moves] == [
            ("2024-05", "Expanded into Education", "low"),
            ("2024-06", "Expanded into Logistics, Nutrition...", "high"),
        ]
        assert a.strategic_moves[1].new_categories == ["Logistics", "Nutrition", "WASH"]
        assert b.strategic_moves == []

    def test_moves_capped_to_latest(self) -> None:
        config = CompetitiveConfig(max_moves=1)
        [a, _] = track_competitive_evolution(_evolution_records(), NOW, periods=3, config=config)
        assert [m.period for m in a.strategic_moves] == ["2024-06"]

    def test_top_agencies_cutoff(self) -> None:
        config = CompetitiveConfig(top_agencies=1)
        evolutions = track_competitive_evolution(_evolution_records(), NOW, periods=3, config=config)
        assert [e.agency for e in evolutions] == ["A"]

    def test_absent_agency_has_rank_zero(self) -> None:
        records = _many(3, "A", posting_date="2024-05-03") + _many(2, "B", posting_date="2024-06-03")
        [a, b] = track_competitive_evolution(records, NOW, periods=2)
        assert [p.rank for p in a.timeline] == [1, 0]
        assert [p.rank for p in b.timeline] == [0, 1]

    def test_empty(self) -> None:
        assert track_competitive_evolution([], NOW) == []

    def test_deterministic(self) -> None:
        records = _evolution_records()
        assert track_competitive_evolution(records, NOW) == track_competitive_evolution(records, NOW)


# ---------------------------------------------------------------------------
# Positioning
# ---------------------------------------------------------------------------


def _positioning_records() -> list[JobRecord]:
    unicef = [
        _record("UNICEF", category, duty_country=country, long_agency="United Nations Children's Fund")
        for category, country in [
            ("Health", "Kenya"),
            ("Health", "Kenya"),
            ("Education", "Chad"),
            ("WASH", "Mali"),
            ("Nutrition", "Mali"),
        ]
    ]
    wfp = [_record("WFP", c) for c in ("WASH", "Nutrition", "Logistics", "Food Security")]
    return unicef + wfp + [_record("UNHCR", "Protection")]


class TestGrowthRate:
    def test_recent_over_previous(self) -> None:
        records = (
            _many(2, "A", posting_date="2024-02-10")
            + _many(3, "A", posting_date="2024-05-10")
            + _many(7, "A", posting_date="2023-10-10")
        )
        assert growth_rate(records, NOW) == 50.0

    def test_no_history(self) -> None:
        assert growth_rate(_many(4, "A"), NOW) == 0.0


class TestCreatePositioningMatrix:
    def test_metrics(self) -> None:
        matrix = create_positioning_matrix(_positioning_records(), "UNICEF", NOW)
        assert matrix is not None
        assert matrix.your_agency.market_share == 50.0
        assert matrix.your_agency.growth_rate == 0.0
        assert matrix.your_agency.category_diversity == pytest.approx(1.92)
        assert matrix.your_agency.geographic_reach == 3

    def test_competitors(self) -> None:
        matrix = create_positioning_matrix(_positioning_records(), "UNICEF", NOW)
        assert matrix is not None
        wfp, unhcr = matrix.direct_competitors
        assert (wfp.agency, wfp.similarity_score, wfp.threat_level) == ("WFP", 33.3, "medium")
        assert wfp.overlapping_categories == ["Nutrition", "WASH"]
        assert (unhcr.agency, unhcr.similarity_score, unhcr.threat_level) == ("UNHCR", 0.0, "low")

    def test_market_leaders_exclude_you(self) -> None:
        matrix = create_positioning_matrix(_positioning_records(), "UNICEF", NOW)
        assert matrix is not None
        assert [(m.agency, m.leadership_areas) for m in matrix.market_leaders] == [
            ("WFP", ["Food Security", "Logistics"]),
            ("UNHCR", ["Protection"]),
        ]

    def test_long_name_accepted(self) -> None:
        matrix = create_positioning_matrix(_positioning_records(), "United Nations Children's Fund", NOW)
        assert matrix is not None
        assert "UNICEF" not in [m.agency for m in matrix.market_leaders]
        assert "UNICEF" not in [c.agency for c in matrix.direct_competitors]

    def test_competitor_cap(self) -> None:
        config = CompetitiveConfig(max_competitors=1)
        matrix = create_positioning_matrix(_positioning_records(), "UNICEF", NOW, config)
        assert matrix is not None
        assert [c.agency for c in matrix.direct_competitors] == ["WFP"]

    def test_none_without_agency_or_records(self) -> None:
        assert create_positioning_matrix(_positioning_records(), None, NOW) is None
        assert create_positioning_matrix(_positioning_records(), "UNDP", NOW) is None
        assert create_positioning_matrix([], "UNICEF", NOW) is None


# ---------------------------------------------------------------------------
# War zones
# ---------------------------------------------------------------------------


def _war_zone_records() -> list[JobRecord]:
    return (
        _many(3, "UNICEF", "Health", "2024-05-10")
        + _many(3, "WHO", "Health", "2024-05-10")
        + _many(2, "WHO", "Health", "2024-02-10")
        + _many(1, "MSF", "Health", "2024-02-10")
        + _many(1, "WFP", "Logistics", "2024-05-10")
    )


class TestIdentifyTalentWarZones:
    def test_health_zone(self) -> None:
        zones = identify_talent_war_zones(_war_zone_records(), NOW, "UNICEF")
        health = next(z for z in zones if z.category == "Health")
        assert health.agencies_competing == 3
        assert health.competition_intensity == 10.0
        assert health.leader.agency == "WHO"
        assert health.leader.market_share == pytest.approx(500 / 9)
        assert health.recent_entries == ["UNICEF"]
        assert health.recent_exits == ["MSF"]
        assert health.your_position.rank == 2
        assert health.your_position.market_share == pytest.approx(100 / 3)
        assert health.your_position.trend == "gaining"
        assert health.strategic_recommendation == "maintain"

    def test_not_present_in_category(self) -> None:
        zones = identify_talent_war_zones(_war_zone_records(), NOW, "UNICEF")
        logistics = next(z for z in zones if z.category == "Logistics")
        assert logistics.your_position.rank == 0
        assert logistics.your_position.market_share == 0.0

    def test_without_agency(self) -> None:
        zones = identify_talent_war_zones(_war_zone_records(), NOW)
        assert all(z.your_position.rank == 0 for z in zones)

    def test_sorted_by_intensity(self) -> None:
        records = _many(20, "A", "Health") + _many(1, "B", "Health") + _many(1, "C", "Legal")
        records += _many(2, "D", "Legal") + _many(50, "E", "Finance")
        zones = identify_talent_war_zones(records, NOW)
        intensities = [z.competition_intensity for z in zones]
        assert intensities == sorted(intensities, reverse=True)

    def test_empty(self) -> None:
        assert identify_talent_war_zones([], NOW, "UNICEF") == []
