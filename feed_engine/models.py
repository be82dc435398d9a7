"""Data models for the feed engine.

The product owns a *stable* normalized schema regardless of what the upstream
feed looks like. `RawFeedItem` is the short-lived record the assembler emits;
`NormalizedJob` is what gets persisted.

This file uses Pydantic v2.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


EmploymentType = Literal["FULL_TIME", "PART_TIME", "CONTRACTOR", "INTERN", "TEMPORARY"]
SalaryUnit = Literal["HOUR", "DAY", "WEEK", "MONTH", "YEAR"]
RunStatus = Literal["completed", "already_running", "failed", "disabled"]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RawFeedItem(BaseModel):
    """One `<job>`/`<item>` element as found in the feed, fields untouched."""

    title: str = ""
    description: str = ""
    company: str = ""
    link: str = ""
    guid: str = ""
    pub_date: str = Field(default_factory=_now_iso)


class Salary(BaseModel):
    currency: str
    min: Optional[int] = None
    max: Optional[int] = None
    unit: SalaryUnit = "HOUR"


class JobLocation(BaseModel):
    """A place a job is located at. `country` is always set."""

    country: str
    city: Optional[str] = None

    def as_place(self) -> Dict[str, Any]:
        """Render as a schema.org `Place` for structured data consumers."""
        address: Dict[str, Any] = {"@type": "PostalAddress"}
        if self.city:
            address["addressLocality"] = self.city
        address["addressCountry"] = self.country
        return {"@type": "Place", "address": address}


class JobMeta(BaseModel):
    """Signals inferred from the posting text."""

    employment_type: EmploymentType = "FULL_TIME"
    is_remote: bool = False
    salary: Optional[Salary] = None
    experience_requirements: Optional[str] = None
    experience_in_place_of_education: bool = False
    job_locations: List[JobLocation] = Field(default_factory=list)


class NormalizedJob(BaseModel):
    """A normalized job record, ready to be written by `JobStore`.

    Jobs are append-only: once stored they are never updated, only evicted by
    retention trimming.
    """

    guid: str = Field(..., min_length=1, description="Natural identity: feed guid, link, or job-<ordinal>.")
    source: str = Field(..., description="Origin host of the feed, or 'manual'.")

    title: str = ""
    company: str = ""
    description_html: str = ""
    description_short: str = ""
    url: str = ""
    published_at: int = Field(..., description="Unix seconds.")
    slug: str = Field(..., min_length=1, max_length=120)
    tags: List[str] = Field(default_factory=list, max_length=8)

    meta: Optional[JobMeta] = None

    @property
    def tags_csv(self) -> str:
        return ", ".join(self.tags)


class RewriteResult(BaseModel):
    short: str
    html: str
    tags: List[str] = Field(default_factory=list)
    used_ai: bool = False


class RunStats(BaseModel):
    """Aggregate counters for one pipeline run."""

    processed: int = 0
    matched: int = 0
    ai_enhanced: int = 0
    fallback: int = 0
    skipped: int = 0
    inserted: int = 0
    trimmed: int = 0


class RunResult(BaseModel):
    status: RunStatus
    stats: Optional[RunStats] = None
    error: Optional[str] = None


class ManualPosting(BaseModel):
    """A job submitted by hand instead of coming from the feed."""

    title: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    description: str = ""
    tags: str = Field(default="", description="Comma-separated user tags.")
    employment_type: EmploymentType = "FULL_TIME"
    is_remote: bool = False
    currency: str = ""
    salary_min: str = ""
    salary_max: str = ""
    salary_unit: SalaryUnit = "YEAR"

    @field_validator("title", "company", "url")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("salary_unit", mode="before")
    @classmethod
    def _upper_unit(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value
