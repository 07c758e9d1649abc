"""
SitePlan - Test Fixtures
========================

Shared pytest fixtures: an in-memory database, fake collaborators with
failure injection, a lifecycle engine and an HTTP client.
"""

from collections.abc import AsyncGenerator
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from siteplan.api.deps import Collaborators, get_collaborators
from siteplan.api.main import app
from siteplan.core import models  # noqa: F401
from siteplan.core.config import settings
from siteplan.core.database import Base, get_db
from siteplan.core.lifecycle import LifecycleEngine
from siteplan.core.models import Task
from siteplan.core.schemas import (
    ActionPlanContent,
    AnalysisContent,
    Headings,
    ImageStats,
    PlanTask,
    Verdict,
    WebsiteSnapshot,
)


# ==========================================================================
# Test Database Setup
# ==========================================================================

# Use in-memory SQLite for tests (fast)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

EXAMPLE_URL = "https://example.com"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a clean database session for each test.

    Creates all tables before test, drops after.
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


# ==========================================================================
# Sample Payloads
# ==========================================================================

def make_snapshot(url: str = EXAMPLE_URL, title: str = "Example Domain", **overrides) -> WebsiteSnapshot:
    data = {
        "url": url,
        "title": title,
        "meta_description": "An example page",
        "headings": Headings(h1=["Example Domain"], h2=["About"]),
        "images": ImageStats(total=4, with_alt=3, without_alt=1),
        "scripts": 2,
        "stylesheets": 1,
        "word_count": 120,
    }
    data.update(overrides)
    return WebsiteSnapshot(**data)


def make_analysis(label: str = "first") -> AnalysisContent:
    return AnalysisContent(
        content=f"Content findings ({label})",
        seo=f"SEO findings ({label})",
        performance=f"Performance findings ({label})",
        accessibility=f"Accessibility findings ({label})",
    )


PRIORITY_CYCLE = ("low", "high", "medium")


def make_plan(task_count: int = 3, label: str = "plan") -> ActionPlanContent:
    return ActionPlanContent(
        summary=f"Summary of {label}",
        timeline=f"Timeline of {label}",
        quick_wins=[f"{label} quick win 1", f"{label} quick win 2"],
        tasks=[
            PlanTask(
                id=f"{label}-{i + 1}",
                category="seo",
                priority=PRIORITY_CYCLE[i % len(PRIORITY_CYCLE)],
                title=f"{label} task {i + 1}",
                description=f"Do the {label} thing number {i + 1}",
                effort="quick",
                impact="high",
                estimated_time="30 minutes",
            )
            for i in range(task_count)
        ],
    )


# ==========================================================================
# Fake Collaborators
# ==========================================================================

class FakeSnapshotProvider:
    """Returns a snapshot for any URL; ``fail_with`` makes the next calls raise."""

    def __init__(self):
        self.calls: list[str] = []
        self.fail_with: Optional[BaseException] = None
        self.title = "Example Domain"

    async def fetch_snapshot(self, url: str) -> WebsiteSnapshot:
        self.calls.append(url)
        if self.fail_with is not None:
            raise self.fail_with
        return make_snapshot(url, title=self.title)


class FakeInsightGenerator:
    def __init__(self):
        self.calls = 0
        self.fail_with: Optional[BaseException] = None

    async def generate_analysis(self, snapshot: WebsiteSnapshot) -> AnalysisContent:
        self.calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        return make_analysis(f"run {self.calls}")


class FakePlanGenerator:
    """Produces plans with ``task_counts[i]`` tasks on the i-th call (last count repeats)."""

    def __init__(self, task_counts: tuple[int, ...] = (3,)):
        self.task_counts = task_counts
        self.calls = 0
        self.fail_with: Optional[BaseException] = None

    async def generate_plan(
        self, analysis: AnalysisContent, snapshot: WebsiteSnapshot
    ) -> ActionPlanContent:
        if self.fail_with is not None:
            raise self.fail_with
        count = self.task_counts[min(self.calls, len(self.task_counts) - 1)]
        self.calls += 1
        return make_plan(count, label=f"plan{self.calls}")


class FakeTaskEvaluator:
    def __init__(self):
        self.calls: list[Task] = []
        self.verdict_status = "resolved"
        self.fail_with: Optional[BaseException] = None

    async def evaluate(self, task: Task, snapshot: WebsiteSnapshot) -> Verdict:
        self.calls.append(task)
        if self.fail_with is not None:
            raise self.fail_with
        return Verdict(
            status=self.verdict_status,
            score=95,
            feedback=f"Checked '{task.title}' against {snapshot.url}",
            suggestions=["Keep it up"],
        )


@pytest.fixture
def snapshot_provider() -> FakeSnapshotProvider:
    return FakeSnapshotProvider()


@pytest.fixture
def insight_generator() -> FakeInsightGenerator:
    return FakeInsightGenerator()


@pytest.fixture
def plan_generator() -> FakePlanGenerator:
    return FakePlanGenerator()


@pytest.fixture
def task_evaluator() -> FakeTaskEvaluator:
    return FakeTaskEvaluator()


@pytest.fixture
def collaborators(
    snapshot_provider: FakeSnapshotProvider,
    insight_generator: FakeInsightGenerator,
    plan_generator: FakePlanGenerator,
    task_evaluator: FakeTaskEvaluator,
) -> Collaborators:
    return Collaborators(
        snapshot_provider=snapshot_provider,
        insight_generator=insight_generator,
        plan_generator=plan_generator,
        task_evaluator=task_evaluator,
    )


# ==========================================================================
# Engine & Client Fixtures
# ==========================================================================

@pytest.fixture
def engine(db_session: AsyncSession, collaborators: Collaborators) -> LifecycleEngine:
    return LifecycleEngine(
        db_session,
        snapshot_provider=collaborators.snapshot_provider,
        insight_generator=collaborators.insight_generator,
        plan_generator=collaborators.plan_generator,
        task_evaluator=collaborators.task_evaluator,
    )


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, collaborators: Collaborators
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database and collaborator overrides.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_collaborators] = lambda: collaborators

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==========================================================================
# Auth Fixtures
# ==========================================================================

def make_token(owner: str) -> str:
    return jwt.encode({"sub": owner}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization headers for owner ``alice``."""
    return {"Authorization": f"Bearer {make_token('alice')}"}


@pytest.fixture
def other_auth_headers() -> dict[str, str]:
    """Authorization headers for owner ``bob``."""
    return {"Authorization": f"Bearer {make_token('bob')}"}
