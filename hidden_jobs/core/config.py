"""Configuration models and YAML loaders for the hidden jobs crawler."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from hidden_jobs.core.schemas import CandidateSite

DEFAULT_WEBSITE_KEYWORDS: tuple[str, ...] = (
    "job", "jobs", "career", "careers", "work", "vacancy", "vacancies",
    "hire", "hiring", "apply", "application", "position", "spontaneous",
    "opportunity", "employment", "recruitment", "join us", "join our team",
)


def _clean_keywords(values: list[str]) -> list[str]:
    return [v.strip() for v in values if v.strip()]


class SearchConfig(BaseModel):
    """Keyword configuration for one crawl run. Immutable while the run lasts."""

    user_keywords: list[str] = Field(default_factory=list)
    job_specific_keywords: list[str] = Field(default_factory=list)
    website_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_WEBSITE_KEYWORDS),
    )
    max_results: int = Field(default=20, ge=1)

    @field_validator("user_keywords", "job_specific_keywords", "website_keywords")
    @classmethod
    def strip_keywords(cls, v: list[str]) -> list[str]:
        return _clean_keywords(v)


class CacheConfig(BaseModel):
    """Result cache settings. Owned by the user, read-only to the crawler."""

    enabled: bool = True
    ttl_days: int = Field(default=30, ge=1)


class BrowserConfig(BaseModel):
    """Browser session and tab timing configuration."""

    headless: bool = False
    timeout_ms: int = Field(default=30000, ge=1000)
    load_timeout_s: float = Field(default=15.0, gt=0.0)
    subpage_timeout_s: float = Field(default=5.0, gt=0.0)
    job_delay_min: float = Field(default=0.5, ge=0.0)
    job_delay_max: float = Field(default=1.0, ge=0.0)

    @model_validator(mode="after")
    def delay_range_ordered(self) -> "BrowserConfig":
        if self.job_delay_max < self.job_delay_min:
            msg = "job_delay_max must be >= job_delay_min"
            raise ValueError(msg)
        return self


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/hidden_jobs.db"


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


class CandidateList(BaseModel):
    websites: list[CandidateSite] = Field(default_factory=list)


def load_candidates(path: str | Path) -> list[CandidateSite]:
    """Load the candidate site list from a YAML file with a ``websites`` key."""
    path = Path(path)
    if not path.exists():
        msg = f"Candidates file not found: {path}"
        raise FileNotFoundError(msg)
    raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
    return CandidateList.model_validate(raw).websites
