"""
Task Store - persistence and status tracking of action plan tasks.

Status lifecycle:

    pending -> in_progress -> completed
          \\-> skipped

Any explicit transition is accepted, including re-opening a completed
or skipped task. Side effects:
- every transition stamps updated_at
- entering completed stamps completed_at (again on every re-entry)
- entering in_progress stamps started_at only the first time
"""

from collections.abc import Sequence
from typing import Literal, Optional
from uuid import UUID, uuid4

from sqlalchemy import case, delete, func, select

from siteplan.core.errors import NotFoundError, UnauthorizedError
from siteplan.core.lifecycle.base import Store, owner_matches
from siteplan.core.models import Task, TaskPriority, TaskStatus, utcnow
from siteplan.core.schemas import PlanTask, Verdict

TaskOrder = Literal["priority", "sequence"]

# high -> 1, medium -> 2, low -> 3
PRIORITY_RANK = case(
    (Task.priority == TaskPriority.HIGH, TaskPriority.HIGH.rank),
    (Task.priority == TaskPriority.MEDIUM, TaskPriority.MEDIUM.rank),
    else_=TaskPriority.LOW.rank,
)


class TaskStore(Store):
    """Owns the ``tasks`` table."""

    async def create_many(
        self,
        analysis_id: UUID,
        owner: Optional[str],
        tasks: Sequence[PlanTask],
    ) -> list[Task]:
        """
        Insert the tasks of a plan in one flush.

        Sequence positions 0..n-1 follow input order. Either every task
        is written or, on failure, none are once the transaction rolls back.
        """
        now = utcnow()
        records = [
            Task(
                id=uuid4(),
                analysis_id=analysis_id,
                owner_id=owner,
                external_ref=item.id,
                category=item.category,
                priority=item.priority,
                effort=item.effort,
                impact=item.impact,
                title=item.title,
                description=item.description,
                estimated_time=item.estimated_time,
                sequence=position,
                status=TaskStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            for position, item in enumerate(tasks)
        ]

        async with self.guard("create_tasks"):
            self.db.add_all(records)
            await self.db.flush()

        self.logger.info("tasks_created", analysis_id=str(analysis_id), count=len(records))
        return records

    async def delete_for_analysis(self, analysis_id: UUID) -> int:
        """Remove every task of an analysis. Returns the number removed."""
        async with self.guard("delete_tasks_for_analysis"):
            count = (
                await self.db.execute(
                    select(func.count(Task.id)).where(Task.analysis_id == analysis_id)
                )
            ).scalar_one()
            await self.db.execute(delete(Task).where(Task.analysis_id == analysis_id))
        return count

    async def list_for_owner(
        self,
        owner: Optional[str],
        status: Optional[TaskStatus] = None,
        analysis_id: Optional[UUID] = None,
        order: TaskOrder = "priority",
    ) -> list[Task]:
        """
        List the owner's tasks.

        Args:
            owner: Owner identity (None lists anonymous tasks)
            status: Only tasks in this status
            analysis_id: Only tasks of this analysis
            order: "priority" (high to low, then newest first) or
                "sequence" (plan order, newest plan first)
        """
        query = select(Task).where(owner_matches(Task.owner_id, owner))

        if status is not None:
            query = query.where(Task.status == status)
        if analysis_id is not None:
            query = query.where(Task.analysis_id == analysis_id)

        if order == "sequence":
            query = query.order_by(Task.created_at.desc(), Task.analysis_id, Task.sequence.asc())
        else:
            query = query.order_by(PRIORITY_RANK, Task.created_at.desc(), Task.sequence.asc())

        async with self.guard("list_tasks"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def get(self, task_id: UUID) -> Task:
        """Get a task by id without an ownership check."""
        async with self.guard("get_task"):
            task = await self.db.get(Task, task_id)

        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    async def get_for_owner(self, task_id: UUID, owner: Optional[str]) -> Task:
        """Get a task and verify the caller owns it."""
        task = await self.get(task_id)
        if task.owner_id != owner:
            raise UnauthorizedError("Task", task_id)
        return task

    async def set_status(self, task_id: UUID, owner: Optional[str], status: TaskStatus) -> Task:
        """Move a task to ``status`` and apply the transition timestamps."""
        task = await self.get_for_owner(task_id, owner)

        now = utcnow()
        previous = task.status

        task.status = status
        task.updated_at = now
        if status == TaskStatus.COMPLETED:
            task.completed_at = now
        elif status == TaskStatus.IN_PROGRESS and task.started_at is None:
            task.started_at = now

        async with self.guard("set_task_status"):
            await self.db.flush()

        self.logger.info(
            "task_status_changed",
            task_id=str(task_id),
            from_status=previous.value,
            to_status=status.value,
        )
        return task

    async def set_notes(self, task_id: UUID, owner: Optional[str], notes: Optional[str]) -> Task:
        """Replace the task's notes."""
        task = await self.get_for_owner(task_id, owner)

        task.notes = notes
        task.updated_at = utcnow()

        async with self.guard("set_task_notes"):
            await self.db.flush()
        return task

    async def attach_reanalysis(self, task_id: UUID, owner: Optional[str], verdict: Verdict) -> Task:
        """
        Store the latest reanalysis verdict and when it was recorded.

        Status is left alone; closing a task stays a separate call.
        """
        task = await self.get_for_owner(task_id, owner)

        now = utcnow()
        task.last_reanalysis = verdict.model_dump(mode="json")
        task.last_reanalysis_at = now
        task.updated_at = now

        async with self.guard("attach_reanalysis"):
            await self.db.flush()

        self.logger.info("task_reanalysis_attached", task_id=str(task_id), verdict=verdict.status)
        return task

    async def delete(self, task_id: UUID, owner: Optional[str]) -> None:
        """Delete one task."""
        task = await self.get_for_owner(task_id, owner)

        async with self.guard("delete_task"):
            await self.db.delete(task)
            await self.db.flush()

        self.logger.info("task_deleted", task_id=str(task_id))
