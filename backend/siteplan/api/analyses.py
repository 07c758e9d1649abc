"""
SitePlan - Analyses API
=======================

Analyze a website, generate and save action plans, and browse or delete
stored analyses.
"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Query, status

from siteplan.api.deps import CurrentOwner, Engine, OptionalOwner
from siteplan.core.lifecycle import PlanOutcome
from siteplan.core.models import Analysis
from siteplan.core.schemas import (
    AnalysisDetailResponse,
    AnalysisHistoryItem,
    AnalysisListItem,
    AnalysisResponse,
    AnalyzeRequest,
    DeleteResponse,
    ErrorResponse,
    PlanDetails,
    PlanRequest,
    PlanResponse,
    SavePlanRequest,
    TaskResponse,
    WarningResponse,
)

router = APIRouter(tags=["Analyses"])

ERRORS = {
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Not the owner"},
    404: {"model": ErrorResponse, "description": "Not found"},
}


# ==========================================================================
# Helper Functions
# ==========================================================================

def to_analysis_response(record: Analysis) -> AnalysisResponse:
    plan = None
    if record.has_plan:
        plan = PlanDetails(
            summary=record.plan_summary,
            timeline=record.plan_timeline,
            quick_wins=record.quick_wins or [],
            generated_at=record.plan_generated_at,
        )
    return AnalysisResponse(
        id=record.id,
        owner_id=record.owner_id,
        url=record.url,
        snapshot=record.snapshot,
        analysis=record.analysis,
        plan=plan,
        analyzed_at=record.analyzed_at,
        created_at=record.created_at,
    )


def to_plan_response(outcome: PlanOutcome) -> PlanResponse:
    warning = None
    if outcome.warning is not None:
        warning = WarningResponse(
            message=outcome.warning.message,
            code=outcome.warning.code,
            retryable=outcome.warning.retryable,
        )
    return PlanResponse(
        analysis_id=outcome.analysis_id,
        created=outcome.created,
        persisted=outcome.persisted,
        plan=outcome.plan,
        tasks=[TaskResponse.model_validate(task) for task in outcome.tasks],
        warning=warning,
    )


# ==========================================================================
# Analyze & Plan
# ==========================================================================

@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Analyze a website",
    responses={
        502: {"model": ErrorResponse, "description": "Fetch or generation failed"},
        504: {"model": ErrorResponse, "description": "External service timed out"},
    },
)
async def analyze(body: AnalyzeRequest, engine: Engine, owner: OptionalOwner) -> AnalysisResponse:
    """
    Fetch the URL, generate findings and store a new analysis.

    Anonymous callers are allowed; their analyses have no owner.
    """
    record = await engine.analyze(body.url, owner=owner)
    return to_analysis_response(record)


@router.post(
    "/plans",
    response_model=PlanResponse,
    summary="Generate an action plan",
    responses={**ERRORS, 502: {"model": ErrorResponse, "description": "Generation failed"}},
)
async def generate_plan(body: PlanRequest, engine: Engine, owner: OptionalOwner) -> PlanResponse:
    """
    Generate a plan from a stored analysis or an inline payload.

    The plan lands on the latest analysis for the same owner and URL;
    ``created`` is true when a new analysis had to be created. When the
    plan could not be saved, ``persisted`` is false and ``warning`` is set.
    """
    outcome = await engine.generate_plan(
        owner=owner, analysis_id=body.analysis_id, payload=body.payload
    )
    return to_plan_response(outcome)


@router.post(
    "/plans/save",
    response_model=PlanResponse,
    summary="Save a generated plan",
)
async def save_plan(body: SavePlanRequest, engine: Engine, owner: OptionalOwner) -> PlanResponse:
    """Retry saving a plan that was generated but not persisted."""
    outcome = await engine.save_plan(
        owner,
        body.payload.url,
        body.payload.snapshot,
        body.payload.analysis,
        body.plan,
    )
    return to_plan_response(outcome)


# ==========================================================================
# Browse
# ==========================================================================

@router.get(
    "/analyses",
    response_model=list[AnalysisListItem],
    summary="List analyses",
)
async def list_analyses(
    engine: Engine,
    owner: CurrentOwner,
    limit: int = Query(10, ge=1, le=100, description="Maximum number of analyses"),
) -> list[AnalysisListItem]:
    """The caller's most recent analyses."""
    records = await engine.list_analyses(owner, limit=limit)
    return [AnalysisListItem.model_validate(record) for record in records]


@router.get(
    "/analyses/history",
    response_model=list[AnalysisHistoryItem],
    summary="Analysis history grouped by URL",
)
async def analysis_history(engine: Engine, owner: CurrentOwner) -> list[AnalysisHistoryItem]:
    rows = await engine.analysis_history(owner)
    return [AnalysisHistoryItem(**row) for row in rows]


@router.get(
    "/analyses/{analysis_id}",
    response_model=AnalysisDetailResponse,
    summary="Get an analysis with its tasks",
    responses=ERRORS,
)
async def get_analysis(
    analysis_id: UUID, engine: Engine, owner: OptionalOwner
) -> AnalysisDetailResponse:
    detail = await engine.get_analysis_detail(analysis_id, owner)
    base = to_analysis_response(detail.analysis)
    return AnalysisDetailResponse(
        **base.model_dump(),
        tasks=[TaskResponse.model_validate(task) for task in detail.tasks],
    )


@router.delete(
    "/analyses/{analysis_id}",
    response_model=DeleteResponse,
    summary="Delete an analysis",
    responses=ERRORS,
)
async def delete_analysis(
    analysis_id: UUID,
    engine: Engine,
    owner: CurrentOwner,
    scope: Literal["record", "url"] = Query(
        "record", description="Delete only this analysis, or every analysis of its URL"
    ),
) -> DeleteResponse:
    """Delete an analysis (and its tasks), or every analysis of the same URL."""
    if scope == "url":
        deleted, url = await engine.delete_analyses_for_url(analysis_id, owner)
        return DeleteResponse(
            message=f"Deleted {deleted} analyses for {url}",
            deleted_count=deleted,
            url=url,
        )

    await engine.delete_analysis(analysis_id, owner)
    return DeleteResponse(message="Analysis deleted", deleted_count=1)
