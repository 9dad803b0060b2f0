"""Configuration models and YAML loader for the analytics engine.

Every threshold below is a dashboard heuristic carried over from the product,
not a calibrated statistical model. Keep them configurable.
"""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, model_validator

Granularity = Literal["month", "quarter"]


class SurgeConfig(BaseModel):
    """Thresholds for hiring surge detection."""

    surge_threshold: float = Field(default=2.0, gt=0.0)
    anomaly_threshold: float = Field(default=3.0, gt=0.0)
    min_current_jobs: int = Field(default=3, ge=1)
    min_baseline_jobs: float = Field(default=3.0, ge=0.0)
    min_baseline_months: int = Field(default=2, ge=1)
    max_surges: int = Field(default=20, ge=1)

    @model_validator(mode="after")
    def anomaly_above_surge(self) -> "SurgeConfig":
        if self.anomaly_threshold < self.surge_threshold:
            msg = "anomaly_threshold must be >= surge_threshold"
            raise ValueError(msg)
        return self


class CompetitiveConfig(BaseModel):
    """Cutoffs for competitive evolution and positioning."""

    top_agencies: int = Field(default=10, ge=1)
    max_competitors: int = Field(default=5, ge=1)
    max_leaders: int = Field(default=5, ge=1)
    max_moves: int = Field(default=5, ge=1)


class SkillConfig(BaseModel):
    """Cutoffs for skill demand analysis."""

    top_skills: int = Field(default=20, ge=1)
    top_combinations: int = Field(default=15, ge=1)
    max_emerging: int = Field(default=10, ge=1)
    urgent_window_days: int = Field(default=14, ge=1)


class AnalysisSettings(BaseModel):
    """Knobs shared by all analyzers."""

    granularity: Granularity = "month"
    lookback_months: int = Field(default=6, ge=1)
    periods: int = Field(default=6, ge=1)
    your_agency: str | None = None
    surge: SurgeConfig = Field(default_factory=SurgeConfig)
    competitive: CompetitiveConfig = Field(default_factory=CompetitiveConfig)
    skills: SkillConfig = Field(default_factory=SkillConfig)


class SourceConfig(BaseModel):
    """Where the CLI loads job records from."""

    path: str = "data/jobs.json"
    table: str = "jobs"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
