"""
SitePlan - Tasks API
====================

Task listing, status/notes updates, deletion and re-analysis.
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Query

from siteplan.api.deps import CurrentOwner, Engine
from siteplan.core.models import TaskStatus
from siteplan.core.schemas import ErrorResponse, MessageResponse, TaskResponse, TaskUpdate, Verdict

router = APIRouter(prefix="/tasks", tags=["Tasks"])

ERRORS = {
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Not the owner"},
    404: {"model": ErrorResponse, "description": "Task not found"},
}


@router.get(
    "",
    response_model=list[TaskResponse],
    summary="List tasks",
)
async def list_tasks(
    engine: Engine,
    owner: CurrentOwner,
    status_filter: Optional[TaskStatus] = Query(None, alias="status", description="Filter by status"),
    analysis_id: Optional[UUID] = Query(None, description="Only tasks of this analysis"),
    order: Literal["priority", "sequence"] = Query(
        "priority", description="priority (high first, newest first) or plan sequence"
    ),
) -> list[TaskResponse]:
    tasks = await engine.list_tasks(owner, status=status_filter, analysis_id=analysis_id, order=order)
    return [TaskResponse.model_validate(task) for task in tasks]


@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Get a task",
    responses=ERRORS,
)
async def get_task(task_id: UUID, engine: Engine, owner: CurrentOwner) -> TaskResponse:
    task = await engine.get_task(task_id, owner)
    return TaskResponse.model_validate(task)


@router.patch(
    "/{task_id}",
    response_model=TaskResponse,
    summary="Update task status and/or notes",
    responses=ERRORS,
)
async def update_task(
    task_id: UUID, body: TaskUpdate, engine: Engine, owner: CurrentOwner
) -> TaskResponse:
    """
    Change status, notes, or both in one transaction.

    Sending ``"notes": null`` clears the notes.
    """
    task = await engine.update_task(
        task_id,
        owner,
        status=body.status,
        notes=body.notes,
        update_notes="notes" in body.model_fields_set,
    )
    return TaskResponse.model_validate(task)


@router.delete(
    "/{task_id}",
    response_model=MessageResponse,
    summary="Delete a task",
    responses=ERRORS,
)
async def delete_task(task_id: UUID, engine: Engine, owner: CurrentOwner) -> MessageResponse:
    await engine.delete_task(task_id, owner)
    return MessageResponse(message="Task deleted")


@router.post(
    "/{task_id}/reanalyze",
    response_model=Verdict,
    summary="Re-check a task against the live website",
    responses={
        **ERRORS,
        502: {"model": ErrorResponse, "description": "Fetch or evaluation failed"},
        504: {"model": ErrorResponse, "description": "External service timed out"},
    },
)
async def reanalyze_task(task_id: UUID, engine: Engine, owner: CurrentOwner) -> Verdict:
    """
    Fetch the site again and judge whether the task looks resolved.

    The verdict is stored on the task; its status is not changed.
    """
    return await engine.reanalyze_task(task_id, owner)
