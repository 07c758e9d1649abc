"""
SitePlan - Engine Errors
========================

Failure taxonomy shared by the stores, the lifecycle engine and the
collaborator adapters. Every error carries a human-readable ``message``
that is safe to show to the caller and a stable ``code``; the underlying
driver/SDK exception is chained, never embedded in the message.
"""

from dataclasses import dataclass
from typing import Optional


class EngineError(Exception):
    """Base class for all lifecycle engine failures."""

    code = "ENGINE_ERROR"
    default_message = "The request could not be completed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class FetchError(EngineError):
    """The snapshot provider could not retrieve the target website."""

    code = "FETCH_ERROR"
    default_message = "The website could not be fetched"


class GenerationError(EngineError):
    """An AI collaborator failed or returned output that does not validate."""

    code = "GENERATION_ERROR"
    default_message = "The analysis service could not produce a result"


class ExternalTimeoutError(EngineError):
    """An external collaborator timed out or was cut off by the caller's deadline."""

    code = "EXTERNAL_TIMEOUT"
    default_message = "An external service took too long to respond"

    def __init__(self, message: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class PersistenceError(EngineError):
    """A store read or write failed."""

    code = "PERSISTENCE_ERROR"
    default_message = "The result could not be saved"


class NotFoundError(EngineError):
    """A referenced analysis or task does not exist."""

    code = "NOT_FOUND"
    default_message = "Record not found"

    def __init__(self, entity: str, entity_id: object = None):
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.entity_id = entity_id


class UnauthorizedError(EngineError):
    """The caller does not own the referenced record."""

    code = "UNAUTHORIZED"
    default_message = "You do not have access to this record"

    def __init__(self, entity: str, entity_id: object = None):
        super().__init__(f"You do not have access to this {entity.lower()}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidRequestError(EngineError):
    """The caller supplied an unusable combination of arguments."""

    code = "INVALID_REQUEST"
    default_message = "Invalid request"


@dataclass(frozen=True)
class PersistenceWarning:
    """
    Attached to an otherwise successful plan generation whose result
    could not be saved. The generated plan is still returned so the
    caller can retry saving without generating again.
    """

    message: str
    code: str = PersistenceError.code
    retryable: bool = True
