"""
SitePlan - API Dependencies
===========================

Shared dependencies for FastAPI endpoints: database session, caller
identity and the per-request lifecycle engine.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from siteplan.core.collaborators import (
    ClaudeClient,
    ClaudeInsightGenerator,
    ClaudePlanGenerator,
    ClaudeTaskEvaluator,
    HttpSnapshotProvider,
    InsightGenerator,
    PlanGenerator,
    SnapshotProvider,
    TaskEvaluator,
)
from siteplan.core.config import settings
from siteplan.core.database import get_db
from siteplan.core.lifecycle import LifecycleEngine


# ==========================================================================
# Security
# ==========================================================================

security = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """
    Decode and validate a JWT issued by the identity provider.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


# ==========================================================================
# Owner Dependencies
# ==========================================================================

async def get_optional_owner(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Optional[str]:
    """
    The caller's owner id (the token's ``sub``), or None for anonymous calls.

    A token that is present but invalid is still rejected.
    """
    if credentials is None:
        return None

    payload = decode_token(credentials.credentials)
    owner = payload.get("sub")
    if not owner:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(owner)


async def get_current_owner(
    owner: Annotated[Optional[str], Depends(get_optional_owner)],
) -> str:
    """The caller's owner id; anonymous calls are rejected."""
    if owner is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return owner


# ==========================================================================
# Engine
# ==========================================================================

class Collaborators:
    """The external services shared by every request's engine."""

    def __init__(
        self,
        snapshot_provider: SnapshotProvider,
        insight_generator: InsightGenerator,
        plan_generator: PlanGenerator,
        task_evaluator: TaskEvaluator,
    ):
        self.snapshot_provider = snapshot_provider
        self.insight_generator = insight_generator
        self.plan_generator = plan_generator
        self.task_evaluator = task_evaluator

    @classmethod
    def default(cls) -> "Collaborators":
        client = ClaudeClient()
        return cls(
            snapshot_provider=HttpSnapshotProvider(),
            insight_generator=ClaudeInsightGenerator(client),
            plan_generator=ClaudePlanGenerator(client),
            task_evaluator=ClaudeTaskEvaluator(client),
        )


def get_collaborators(request: Request) -> Collaborators:
    """Collaborators built at startup, or defaults when the lifespan did not run."""
    collaborators = getattr(request.app.state, "collaborators", None)
    if collaborators is None:
        collaborators = Collaborators.default()
        request.app.state.collaborators = collaborators
    return collaborators


async def get_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    collaborators: Annotated[Collaborators, Depends(get_collaborators)],
) -> LifecycleEngine:
    """A lifecycle engine bound to this request's session."""
    return LifecycleEngine(
        db,
        snapshot_provider=collaborators.snapshot_provider,
        insight_generator=collaborators.insight_generator,
        plan_generator=collaborators.plan_generator,
        task_evaluator=collaborators.task_evaluator,
    )


# ==========================================================================
# Type Aliases for Dependency Injection
# ==========================================================================

OptionalOwner = Annotated[Optional[str], Depends(get_optional_owner)]
CurrentOwner = Annotated[str, Depends(get_current_owner)]
Engine = Annotated[LifecycleEngine, Depends(get_engine)]
