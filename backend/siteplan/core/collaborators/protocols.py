"""
Collaborator contracts consumed by the lifecycle engine.

Implementations signal failure with ``FetchError`` / ``GenerationError``
and time-outs with ``ExternalTimeoutError`` (or a plain ``TimeoutError``,
which the engine translates).
"""

from typing import Protocol, runtime_checkable

from siteplan.core.models import Task
from siteplan.core.schemas import ActionPlanContent, AnalysisContent, Verdict, WebsiteSnapshot


@runtime_checkable
class SnapshotProvider(Protocol):
    async def fetch_snapshot(self, url: str) -> WebsiteSnapshot:
        """Fetch ``url`` and extract its signals."""
        ...


@runtime_checkable
class InsightGenerator(Protocol):
    async def generate_analysis(self, snapshot: WebsiteSnapshot) -> AnalysisContent:
        """Produce findings for a snapshot."""
        ...


@runtime_checkable
class PlanGenerator(Protocol):
    async def generate_plan(
        self, analysis: AnalysisContent, snapshot: WebsiteSnapshot
    ) -> ActionPlanContent:
        """Turn an analysis into an ordered action plan."""
        ...


@runtime_checkable
class TaskEvaluator(Protocol):
    async def evaluate(self, task: Task, snapshot: WebsiteSnapshot) -> Verdict:
        """Judge whether ``task`` looks resolved on a fresh snapshot."""
        ...
