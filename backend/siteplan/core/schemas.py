"""
SitePlan - Pydantic Schemas
===========================

Boundary records exchanged with the external collaborators (snapshot,
analysis content, action plan, verdict) and the request/response schemas
of the HTTP API. Collaborator output is validated here before the engine
stores any of it.
"""

import math
from datetime import datetime, timezone
from typing import Literal, Optional
from uuid import UUID

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    field_validator,
    model_validator,
)

from siteplan.core.models import (
    TaskCategory,
    TaskEffort,
    TaskImpact,
    TaskPriority,
    TaskStatus,
    utcnow,
)

_http_url = TypeAdapter(HttpUrl)


def validate_http_url(value: str) -> str:
    """Validate ``value`` as an http(s) URL and return it unchanged."""
    value = value.strip()
    _http_url.validate_python(value)
    return value


# ==========================================================================
# Base Schemas
# ==========================================================================

class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class PayloadSchema(BaseSchema):
    """Base for collaborator payloads: unknown keys are dropped."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


# ==========================================================================
# Website Snapshot
# ==========================================================================

class Headings(PayloadSchema):
    h1: list[str] = Field(default_factory=list)
    h2: list[str] = Field(default_factory=list)
    h3: list[str] = Field(default_factory=list)
    h4: list[str] = Field(default_factory=list)
    h5: list[str] = Field(default_factory=list)
    h6: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(len(level) for level in (self.h1, self.h2, self.h3, self.h4, self.h5, self.h6))


class ImageStats(PayloadSchema):
    total: int = Field(0, ge=0)
    with_alt: int = Field(0, ge=0, validation_alias=AliasChoices("with_alt", "withAlt"))
    without_alt: int = Field(0, ge=0, validation_alias=AliasChoices("without_alt", "withoutAlt"))


class OpenGraph(PayloadSchema):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    type: Optional[str] = None


class WebsiteSnapshot(PayloadSchema):
    """Normalized signals extracted from one fetch of a web page."""

    schema_version: Literal[1] = 1
    url: str
    title: Optional[str] = None
    meta_description: Optional[str] = Field(
        None, validation_alias=AliasChoices("meta_description", "metaDescription")
    )
    meta_keywords: Optional[str] = Field(
        None, validation_alias=AliasChoices("meta_keywords", "metaKeywords")
    )
    headings: Headings = Field(default_factory=Headings)
    images: ImageStats = Field(default_factory=ImageStats)
    scripts: int = Field(0, ge=0)
    stylesheets: int = Field(0, ge=0)
    word_count: int = Field(0, ge=0, validation_alias=AliasChoices("word_count", "wordCount"))
    framework: Optional[str] = None
    open_graph: Optional[OpenGraph] = Field(
        None, validation_alias=AliasChoices("open_graph", "openGraph")
    )
    fetched_at: datetime = Field(default_factory=utcnow)

    @field_validator("fetched_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


# ==========================================================================
# Analysis Content
# ==========================================================================

class AnalysisContent(PayloadSchema):
    """Findings produced by the insight generator for one snapshot."""

    schema_version: Literal[1] = 1
    content: str = Field(min_length=1)
    seo: str = Field(min_length=1)
    performance: str = Field(min_length=1)
    accessibility: str = Field(min_length=1)


# ==========================================================================
# Action Plan
# ==========================================================================

class PlanTask(PayloadSchema):
    """One task as proposed by the plan generator."""

    id: Optional[str] = Field(None, max_length=100)
    category: TaskCategory
    priority: TaskPriority
    title: str = Field(min_length=1, max_length=500)
    description: str = Field(min_length=1)
    effort: TaskEffort
    impact: TaskImpact
    estimated_time: Optional[str] = Field(
        None,
        max_length=100,
        validation_alias=AliasChoices("estimated_time", "estimatedTime"),
    )

    @field_validator("category", "priority", "effort", "impact", mode="before")
    @classmethod
    def normalize_enum(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower()
        return v


class ActionPlanContent(PayloadSchema):
    """A generated action plan: summary, optional timeline, quick wins and ordered tasks."""

    summary: str = Field(min_length=1)
    timeline: Optional[str] = None
    quick_wins: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("quick_wins", "quickWins"),
    )
    tasks: list[PlanTask] = Field(default_factory=list)


# ==========================================================================
# Verdict
# ==========================================================================

VerdictStatus = Literal["resolved", "partially_resolved", "not_resolved", "inconclusive"]


class Verdict(PayloadSchema):
    """Outcome of re-checking a task against a fresh snapshot."""

    status: VerdictStatus
    score: int = 0
    feedback: str = ""
    suggestions: list[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=utcnow)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_").replace(" ", "_")
        return v

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: object) -> int:
        try:
            score = float(v)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError):
            return 0
        if math.isnan(score):
            return 0
        # Clamp before rounding; round() cannot convert infinities
        return int(round(max(0.0, min(100.0, score))))


# ==========================================================================
# Analysis Schemas
# ==========================================================================

class AnalyzeRequest(BaseSchema):
    """Request to analyze a website."""

    url: str = Field(min_length=1, max_length=2048)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_http_url(v)


class AnalysisPayload(BaseSchema):
    """An analysis supplied inline by the caller instead of by id."""

    url: str = Field(min_length=1, max_length=2048)
    snapshot: WebsiteSnapshot
    analysis: AnalysisContent

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_http_url(v)


class PlanRequest(BaseSchema):
    """Request to generate a plan, by analysis id or from an inline payload."""

    analysis_id: Optional[UUID] = None
    payload: Optional[AnalysisPayload] = None

    @model_validator(mode="after")
    def exactly_one_source(self) -> "PlanRequest":
        if (self.analysis_id is None) == (self.payload is None):
            raise ValueError("Provide exactly one of analysis_id or payload")
        return self


class SavePlanRequest(BaseSchema):
    """Retry saving an already generated plan."""

    payload: AnalysisPayload
    plan: ActionPlanContent


class PlanDetails(BaseSchema):
    summary: str
    timeline: Optional[str] = None
    quick_wins: list[str] = Field(default_factory=list)
    generated_at: Optional[datetime] = None


class AnalysisResponse(BaseSchema):
    """Schema for an analysis in responses."""

    id: UUID
    owner_id: Optional[str] = None
    url: str
    snapshot: WebsiteSnapshot
    analysis: AnalysisContent
    plan: Optional[PlanDetails] = None
    analyzed_at: datetime
    created_at: datetime


class AnalysisListItem(BaseSchema):
    """Compact analysis entry for listings."""

    id: UUID
    url: str
    plan_summary: Optional[str] = None
    analyzed_at: datetime
    created_at: datetime


class AnalysisHistoryItem(BaseSchema):
    """Analyses of one URL grouped together."""

    url: str
    latest_analysis_id: UUID
    latest_analyzed_at: datetime
    total_count: int
    title: Optional[str] = None


class DeleteResponse(BaseSchema):
    """Result of a delete operation."""

    message: str
    deleted_count: int
    url: Optional[str] = None


# ==========================================================================
# Task Schemas
# ==========================================================================

class TaskResponse(BaseSchema):
    """Schema for a task in responses."""

    id: UUID
    analysis_id: UUID
    external_ref: Optional[str] = None
    category: TaskCategory
    priority: TaskPriority
    effort: TaskEffort
    impact: TaskImpact
    title: str
    description: str
    estimated_time: Optional[str] = None
    sequence: int
    status: TaskStatus
    notes: Optional[str] = None
    last_reanalysis: Optional[Verdict] = None
    last_reanalysis_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TaskUpdate(BaseSchema):
    """Partial task update: status, notes, or both."""

    status: Optional[TaskStatus] = None
    notes: Optional[str] = Field(None, max_length=10_000)

    @model_validator(mode="after")
    def at_least_one(self) -> "TaskUpdate":
        if self.status is None and "notes" not in self.model_fields_set:
            raise ValueError("Provide status or notes")
        return self


class AnalysisDetailResponse(AnalysisResponse):
    """An analysis with its tasks in plan order."""

    tasks: list[TaskResponse] = Field(default_factory=list)


# ==========================================================================
# Plan Outcome Schemas
# ==========================================================================

class WarningResponse(BaseSchema):
    message: str
    code: str
    retryable: bool = True


class PlanResponse(BaseSchema):
    """
    Result of plan generation. ``persisted`` is False when the plan was
    generated but could not be saved; ``warning`` then explains why and
    the plan can be resubmitted to ``/plans/save``.
    """

    analysis_id: Optional[UUID] = None
    created: bool = False
    persisted: bool
    plan: ActionPlanContent
    tasks: list[TaskResponse] = Field(default_factory=list)
    warning: Optional[WarningResponse] = None


# ==========================================================================
# Common Schemas
# ==========================================================================

class MessageResponse(BaseSchema):
    """Generic message response."""

    message: str
    success: bool = True


class ErrorResponse(BaseSchema):
    """Error response schema."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str
    version: str
    environment: str
    database: str
