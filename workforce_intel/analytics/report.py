"""Report assembly: runs every analyzer over one record set.

Data flow:
  1. Surge detection (plus the your-agency view when configured)
  2. Competitive evolution, positioning and war zones
  3. Skill timelines, combinations and emerging skills
  4. DashboardReport
"""

import json
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from workforce_intel.analytics.competitive import (
    CompetitiveEvolution,
    PositioningMatrix,
    TalentWarZone,
    create_positioning_matrix,
    identify_talent_war_zones,
    track_competitive_evolution,
)
from workforce_intel.analytics.skills import (
    EmergingSkill,
    SkillCombination,
    SkillTimeline,
    analyze_skill_combinations,
    detect_emerging_skills,
    skill_demand_timeline,
)
from workforce_intel.analytics.surge import (
    AgencySurgeExposure,
    SurgeAnalysis,
    detect_surges,
    detect_surges_affecting_agency,
)
from workforce_intel.core.config import AnalysisSettings
from workforce_intel.core.schemas import JobRecord

logger = logging.getLogger(__name__)


class DashboardReport(BaseModel):
    """Everything the dashboard shows for one reference date."""

    model_config = ConfigDict(frozen=True)

    generated_for: date
    total_records: int
    dated_records: int
    surges: SurgeAnalysis
    agency_surges: AgencySurgeExposure | None = None
    competitive_evolution: list[CompetitiveEvolution] = Field(default_factory=list)
    positioning: PositioningMatrix | None = None
    talent_war_zones: list[TalentWarZone] = Field(default_factory=list)
    skill_timelines: list[SkillTimeline] = Field(default_factory=list)
    skill_combinations: list[SkillCombination] = Field(default_factory=list)
    emerging_skills: list[EmergingSkill] = Field(default_factory=list)


def _surge_section(records: list[JobRecord], now: date, settings: AnalysisSettings) -> dict[str, Any]:
    section: dict[str, Any] = {
        "surges": detect_surges(records, now, settings.surge, settings.lookback_months),
    }
    if settings.your_agency:
        section["agency_surges"] = detect_surges_affecting_agency(
            records, settings.your_agency, now, settings.surge, settings.lookback_months
        )
    return section


def _competitive_section(records: list[JobRecord], now: date, settings: AnalysisSettings) -> dict[str, Any]:
    return {
        "competitive_evolution": track_competitive_evolution(
            records, now, settings.granularity, settings.periods, settings.competitive
        ),
        "positioning": create_positioning_matrix(records, settings.your_agency, now, settings.competitive),
        "talent_war_zones": identify_talent_war_zones(records, now, settings.your_agency),
    }


def _skill_section(records: list[JobRecord], now: date, settings: AnalysisSettings) -> dict[str, Any]:
    skills = settings.skills
    return {
        "skill_timelines": skill_demand_timeline(
            records,
            now,
            settings.granularity,
            settings.periods,
            top_n=skills.top_skills,
            urgent_window_days=skills.urgent_window_days,
        ),
        "skill_combinations": analyze_skill_combinations(records, top_n=skills.top_combinations),
        "emerging_skills": detect_emerging_skills(
            records, now, settings.granularity, max_results=skills.max_emerging
        ),
    }


Section = Callable[[list[JobRecord], date, AnalysisSettings], dict[str, Any]]

SECTIONS: dict[str, Section] = {
    "surges": _surge_section,
    "competitive": _competitive_section,
    "skills": _skill_section,
}


def run_section(
    name: str,
    records: Iterable[JobRecord],
    now: date,
    settings: AnalysisSettings | None = None,
) -> dict[str, Any]:
    """Run one group of analyzers; keys match DashboardReport field names."""
    try:
        section = SECTIONS[name]
    except KeyError:
        msg = f"Unknown section {name!r}, expected one of {sorted(SECTIONS)}"
        raise ValueError(msg) from None
    return section(list(records), now, settings or AnalysisSettings())


def build_report(
    records: Iterable[JobRecord],
    now: date,
    settings: AnalysisSettings | None = None,
    parallel: bool = False,
) -> DashboardReport:
    """Run all analyzers and collect their results.

    Analyzers share nothing but the (read-only) records, so parallel=True
    only changes how the work is scheduled, never the result.
    """
    settings = settings or AnalysisSettings()
    records = list(records)
    logger.info("Building report for %s over %d records", now.isoformat(), len(records))

    fields: dict[str, Any] = {}
    if parallel:
        with ThreadPoolExecutor(max_workers=len(SECTIONS)) as pool:
            futures = [pool.submit(section, records, now, settings) for section in SECTIONS.values()]
            for future in futures:
                fields.update(future.result())
    else:
        for section in SECTIONS.values():
            fields.update(section(records, now, settings))

    return DashboardReport(
        generated_for=now,
        total_records=len(records),
        dated_records=sum(1 for r in records if r.posted_on is not None),
        **fields,
    )


def to_jsonable(value: Any) -> Any:
    """Convert result models (or dicts and lists of them) to plain JSON types."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


def export_json(value: Any) -> str:
    """Serialize a report, a section or any result model as indented JSON."""
    return json.dumps(to_jsonable(value), indent=2)
