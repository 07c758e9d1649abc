"""
SitePlan - Database Models
==========================

SQLAlchemy models for the two tables owned by the lifecycle engine:
``analyses`` and the ``tasks`` of their action plans.
"""

import enum
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from siteplan.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# ==========================================================================
# Enums
# ==========================================================================

class TaskStatus(str, enum.Enum):
    """Task lifecycle states."""
    PENDING = "pending"          # Initial state
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"


class TaskPriority(str, enum.Enum):
    """Task priority. Ordering: high > medium > low."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


class TaskCategory(str, enum.Enum):
    """Area of the website a task improves."""
    SEO = "seo"
    CONTENT = "content"
    PERFORMANCE = "performance"
    ACCESSIBILITY = "accessibility"


class TaskEffort(str, enum.Enum):
    """Expected effort to complete a task."""
    QUICK = "quick"
    MODERATE = "moderate"
    SIGNIFICANT = "significant"


class TaskImpact(str, enum.Enum):
    """Expected impact of a task."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ==========================================================================
# Mixins
# ==========================================================================

class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


# ==========================================================================
# Models
# ==========================================================================

class Analysis(Base, TimestampMixin):
    """
    One completed analysis run for a URL.

    ``owner_id`` is NULL for anonymous runs and never changes after
    creation. The plan columns stay empty until a plan is attached;
    attaching a plan never touches ``analyzed_at``.
    """

    __tablename__ = "analyses"
    __table_args__ = (
        Index("ix_analyses_owner_url_analyzed", "owner_id", "url", "analyzed_at"),
    )

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        index=True,
    )

    # Payloads (validated at the engine boundary)
    snapshot: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )
    analysis: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
    )

    # Plan
    plan_summary: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    plan_timeline: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    quick_wins: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
    )
    plan_generated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    analyzed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    @property
    def has_plan(self) -> bool:
        return self.plan_summary is not None

    def __repr__(self) -> str:
        return f"<Analysis {self.id} {self.url}>"


# Owner key of anonymous records in ``analysis_url_locks``; real owner ids
# are never empty
ANONYMOUS_OWNER_KEY = ""


class AnalysisUrlLock(Base):
    """
    One row per (owner, url) ever planned.

    Plan saves lock this row before resolving the latest analysis, so two
    first-time saves for the same pair cannot both insert. The row exists
    even before any analysis does, which a lock on ``analyses`` cannot
    offer.
    """

    __tablename__ = "analysis_url_locks"

    owner_key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    url: Mapped[str] = mapped_column(
        String(2048),
        primary_key=True,
    )


class Task(Base, TimestampMixin):
    """
    One actionable recommendation from an analysis' action plan.

    ``owner_id`` is copied from the parent analysis at creation so every
    task operation can check ownership without a join.
    """

    __tablename__ = "tasks"

    id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    analysis_id: Mapped[UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("analyses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )
    external_ref: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )  # Generator's own id, e.g. "seo-1"

    # Classification
    category: Mapped[TaskCategory] = mapped_column(
        Enum(TaskCategory, values_callable=_enum_values),
        nullable=False,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        Enum(TaskPriority, values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    effort: Mapped[TaskEffort] = mapped_column(
        Enum(TaskEffort, values_callable=_enum_values),
        nullable=False,
    )
    impact: Mapped[TaskImpact] = mapped_column(
        Enum(TaskImpact, values_callable=_enum_values),
        nullable=False,
    )

    # Content
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    estimated_time: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )  # Position in the plan, 0-based

    # Tracking
    status: Mapped[TaskStatus] = mapped_column(
        Enum(TaskStatus, values_callable=_enum_values),
        default=TaskStatus.PENDING,
        nullable=False,
        index=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    last_reanalysis: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
    )
    last_reanalysis_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Task {self.id} {self.status.value}>"
