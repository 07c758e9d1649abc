"""
Lifecycle Engine - orchestration of the analyze, plan and reanalyze use cases.

The engine owns the transaction boundary: stores only flush, and every
use case here either commits once at its end or rolls back.

Plan generation follows the upsert-by-URL policy:
1. Generate the plan (nothing is mutated if this fails)
2. Resolve the latest (owner, url) record, or create one from the payload
3. Overwrite the plan fields and replace the task set
4. Commit; a storage failure at this point still returns the generated
   plan, marked as not persisted, so the caller can retry ``save_plan``
"""

import asyncio
from collections.abc import Awaitable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, TypeVar
from uuid import UUID

import httpx
import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from siteplan.core.collaborators.protocols import (
    InsightGenerator,
    PlanGenerator,
    SnapshotProvider,
    TaskEvaluator,
)
from siteplan.core.errors import (
    EngineError,
    ExternalTimeoutError,
    FetchError,
    GenerationError,
    InvalidRequestError,
    PersistenceError,
    PersistenceWarning,
)
from siteplan.core.lifecycle.analysis_store import AnalysisStore
from siteplan.core.lifecycle.task_store import TaskOrder, TaskStore
from siteplan.core.models import Analysis, Task, TaskStatus
from siteplan.core.schemas import (
    ActionPlanContent,
    AnalysisContent,
    AnalysisPayload,
    Verdict,
    WebsiteSnapshot,
)

ModelT = TypeVar("ModelT", bound=BaseModel)
ResultT = TypeVar("ResultT")

TIMEOUT_ERRORS = (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)

# Collaborator stage -> error raised when it fails
STAGE_ERRORS: dict[str, type[EngineError]] = {
    "fetch": FetchError,
    "analysis": GenerationError,
    "plan": GenerationError,
    "evaluation": GenerationError,
}


@dataclass
class PlanOutcome:
    """
    Result of plan generation.

    ``persisted`` is False when the plan was generated but could not be
    saved; ``warning`` then says why and ``analysis_id``/``tasks`` are
    empty.
    """

    plan: ActionPlanContent
    persisted: bool
    analysis_id: Optional[UUID] = None
    created: bool = False
    tasks: list[Task] = field(default_factory=list)
    warning: Optional[PersistenceWarning] = None


@dataclass
class AnalysisDetail:
    analysis: Analysis
    tasks: list[Task]


class LifecycleEngine:
    """
    Coordinates the stores and the external collaborators.

    One engine is bound to one ``AsyncSession`` (one request). The
    collaborators are injected and may be shared across engines.
    """

    def __init__(
        self,
        db: AsyncSession,
        snapshot_provider: SnapshotProvider,
        insight_generator: InsightGenerator,
        plan_generator: PlanGenerator,
        task_evaluator: TaskEvaluator,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.db = db
        self.snapshot_provider = snapshot_provider
        self.insight_generator = insight_generator
        self.plan_generator = plan_generator
        self.task_evaluator = task_evaluator
        self.logger = logger or structlog.get_logger(__name__)

        self.analyses = AnalysisStore(db, self.logger)
        self.tasks = TaskStore(db, self.logger)

    # ==========================================================================
    # Plumbing
    # ==========================================================================

    async def _call(self, stage: str, awaitable: Awaitable[ResultT]) -> ResultT:
        """
        Await a collaborator call and normalize its failures.

        Time-outs become ExternalTimeoutError; anything that is not
        already an EngineError becomes the stage's error with a generic
        message. Cancellation propagates untouched.
        """
        try:
            return await awaitable
        except EngineError:
            raise
        except TIMEOUT_ERRORS as exc:
            self.logger.warning("collaborator_timeout", stage=stage)
            raise ExternalTimeoutError(stage=stage) from exc
        except Exception as exc:
            self.logger.error("collaborator_failed", stage=stage, exc_info=exc)
            raise STAGE_ERRORS[stage]() from exc

    @staticmethod
    def _validated(model: type[ModelT], value: object) -> ModelT:
        """Validate collaborator output against its boundary record."""
        if isinstance(value, model):
            return value
        try:
            return model.model_validate(value)
        except ValidationError as exc:
            raise GenerationError(
                "The analysis service returned a result in an unexpected format"
            ) from exc

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[None]:
        """Commit on success, roll back on any failure."""
        try:
            yield
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            self.logger.error("transaction_failed", operation=operation, exc_info=exc)
            raise PersistenceError() from exc
        except Exception:
            await self.db.rollback()
            raise

    # ==========================================================================
    # Analyze
    # ==========================================================================

    async def analyze(self, url: str, owner: Optional[str] = None) -> Analysis:
        """
        Fetch a website, generate findings and store a new analysis.

        Single attempt. A fetch or generation failure aborts before
        anything is written.

        Raises:
            FetchError, GenerationError, ExternalTimeoutError, PersistenceError
        """
        self.logger.info("analysis_started", url=url, owner=owner)

        snapshot = self._validated(
            WebsiteSnapshot,
            await self._call("fetch", self.snapshot_provider.fetch_snapshot(url)),
        )
        content = self._validated(
            AnalysisContent,
            await self._call("analysis", self.insight_generator.generate_analysis(snapshot)),
        )

        async with self._transaction("analyze"):
            record = await self.analyses.create(owner, url, snapshot, content)

        return record

    # ==========================================================================
    # Plan
    # ==========================================================================

    async def generate_plan(
        self,
        owner: Optional[str] = None,
        analysis_id: Optional[UUID] = None,
        payload: Optional[AnalysisPayload] = None,
    ) -> PlanOutcome:
        """
        Generate an action plan and save it with the upsert-by-URL policy.

        Args:
            owner: Caller identity (None for anonymous)
            analysis_id: A stored analysis to plan from (ownership checked
                before generating)
            payload: Inline url/snapshot/analysis, e.g. results the client
                kept in memory

        Returns:
            PlanOutcome; ``persisted`` is False if saving failed

        Raises:
            InvalidRequestError: Neither or both sources given
            NotFoundError, UnauthorizedError: Bad ``analysis_id``
            GenerationError, ExternalTimeoutError: Plan generation failed
        """
        if (analysis_id is None) == (payload is None):
            raise InvalidRequestError("Provide exactly one of analysis_id or payload")

        if analysis_id is not None:
            source = await self._stored_payload(analysis_id, owner)
        else:
            source = payload

        plan = self._validated(
            ActionPlanContent,
            await self._call(
                "plan",
                self.plan_generator.generate_plan(source.analysis, source.snapshot),
            ),
        )
        self.logger.info("plan_generated", url=source.url, owner=owner, task_count=len(plan.tasks))

        return await self.save_plan(owner, source.url, source.snapshot, source.analysis, plan)

    async def _stored_payload(self, analysis_id: UUID, owner: Optional[str]) -> AnalysisPayload:
        """The url, snapshot and findings of a stored analysis the caller owns."""
        record = await self.analyses.get_for_owner(analysis_id, owner)
        return AnalysisPayload(
            url=record.url,
            snapshot=WebsiteSnapshot.model_validate(record.snapshot),
            analysis=AnalysisContent.model_validate(record.analysis),
        )

    async def save_plan(
        self,
        owner: Optional[str],
        url: str,
        snapshot: WebsiteSnapshot,
        analysis: AnalysisContent,
        plan: ActionPlanContent,
    ) -> PlanOutcome:
        """
        Persist an already generated plan in one transaction.

        The latest analysis for (owner, url) receives the plan and a fresh
        task set; a new analysis is created from the payload when none
        exists. On storage failure everything is rolled back and the plan
        is returned unsaved with a PersistenceWarning.
        """
        try:
            async with self._transaction("save_plan"):
                record, created = await self.analyses.upsert_by_url(owner, url, snapshot, analysis)
                await self.analyses.attach_plan(record.id, plan)
                replaced = await self.tasks.delete_for_analysis(record.id)
                tasks = await self.tasks.create_many(record.id, owner, plan.tasks)
        except PersistenceError as exc:
            self.logger.warning("plan_persist_failed", url=url, owner=owner, exc_info=exc)
            return PlanOutcome(
                plan=plan,
                persisted=False,
                warning=PersistenceWarning(
                    "The plan was generated but could not be saved. Retry saving it."
                ),
            )

        self.logger.info(
            "plan_saved",
            analysis_id=str(record.id),
            created=created,
            replaced_tasks=replaced,
            task_count=len(tasks),
        )
        return PlanOutcome(
            plan=plan,
            persisted=True,
            analysis_id=record.id,
            created=created,
            tasks=tasks,
        )

    # ==========================================================================
    # Tasks
    # ==========================================================================

    async def set_task_status(self, task_id: UUID, owner: Optional[str], status: TaskStatus) -> Task:
        async with self._transaction("set_task_status"):
            task = await self.tasks.set_status(task_id, owner, status)
        return task

    async def set_task_notes(self, task_id: UUID, owner: Optional[str], notes: Optional[str]) -> Task:
        async with self._transaction("set_task_notes"):
            task = await self.tasks.set_notes(task_id, owner, notes)
        return task

    async def update_task(
        self,
        task_id: UUID,
        owner: Optional[str],
        status: Optional[TaskStatus] = None,
        notes: Optional[str] = None,
        update_notes: bool = False,
    ) -> Task:
        """
        Apply a status change and/or a notes change in one transaction.

        ``update_notes`` distinguishes "clear the notes" (notes=None,
        update_notes=True) from "leave them alone".
        """
        if status is None and not update_notes:
            raise InvalidRequestError("Provide status or notes")

        async with self._transaction("update_task"):
            task = await self.tasks.get_for_owner(task_id, owner)
            if status is not None:
                task = await self.tasks.set_status(task_id, owner, status)
            if update_notes:
                task = await self.tasks.set_notes(task_id, owner, notes)
        return task

    async def reanalyze_task(self, task_id: UUID, owner: Optional[str]) -> Verdict:
        """
        Re-check a task against a fresh fetch of its analysis' URL.

        The verdict is stored on the task; the task's status is never
        changed here.

        Raises:
            NotFoundError: Task missing, or its analysis is gone
            UnauthorizedError: Caller does not own the task
            FetchError, GenerationError, ExternalTimeoutError: Nothing stored
        """
        # End the read transaction before the external calls; the session
        # does not expire instances on commit
        async with self._transaction("reanalyze_task_read"):
            task = await self.tasks.get_for_owner(task_id, owner)
            parent = await self.analyses.get(task.analysis_id)
            url = parent.url

        snapshot = self._validated(
            WebsiteSnapshot,
            await self._call("fetch", self.snapshot_provider.fetch_snapshot(url)),
        )
        verdict = self._validated(
            Verdict,
            await self._call("evaluation", self.task_evaluator.evaluate(task, snapshot)),
        )

        async with self._transaction("reanalyze_task"):
            await self.tasks.attach_reanalysis(task_id, owner, verdict)

        self.logger.info(
            "task_reanalyzed", task_id=str(task_id), verdict=verdict.status, score=verdict.score
        )
        return verdict

    async def delete_task(self, task_id: UUID, owner: Optional[str]) -> None:
        async with self._transaction("delete_task"):
            await self.tasks.delete(task_id, owner)

    async def get_task(self, task_id: UUID, owner: Optional[str]) -> Task:
        return await self.tasks.get_for_owner(task_id, owner)

    async def list_tasks(
        self,
        owner: Optional[str],
        status: Optional[TaskStatus] = None,
        analysis_id: Optional[UUID] = None,
        order: TaskOrder = "priority",
    ) -> list[Task]:
        if analysis_id is not None:
            await self.analyses.get_for_owner(analysis_id, owner)
        return await self.tasks.list_for_owner(owner, status=status, analysis_id=analysis_id, order=order)

    # ==========================================================================
    # Analyses
    # ==========================================================================

    async def delete_analysis(self, analysis_id: UUID, owner: Optional[str]) -> None:
        """Delete one analysis and its tasks."""
        async with self._transaction("delete_analysis"):
            await self.analyses.delete(analysis_id, owner)

    async def delete_analyses_for_url(
        self, analysis_id: UUID, owner: Optional[str]
    ) -> tuple[int, str]:
        """Delete every analysis of the owner for the URL of ``analysis_id``."""
        async with self._transaction("delete_analyses_for_url"):
            deleted, url = await self.analyses.delete_all_for_url(analysis_id, owner)
        return deleted, url

    async def get_analysis_detail(self, analysis_id: UUID, owner: Optional[str]) -> AnalysisDetail:
        """An analysis with its tasks in plan order."""
        record = await self.analyses.get_for_owner(analysis_id, owner)
        tasks = await self.tasks.list_for_owner(owner, analysis_id=record.id, order="sequence")
        return AnalysisDetail(analysis=record, tasks=tasks)

    async def list_analyses(self, owner: str, limit: int = 10) -> list[Analysis]:
        return await self.analyses.list_for_owner(owner, limit=limit)

    async def analysis_history(self, owner: str) -> list[dict]:
        return await self.analyses.history_for_owner(owner)
