"""
Shared plumbing for the stores: session binding, owner matching and
translation of driver failures into ``PersistenceError``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from sqlalchemy import ColumnElement
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from siteplan.core.errors import PersistenceError


def owner_matches(column: InstrumentedAttribute, owner: Optional[str]) -> ColumnElement[bool]:
    """
    SQL condition for an exact owner match.

    ``None`` is its own key: anonymous rows never match a concrete owner
    and a concrete owner never matches anonymous rows.
    """
    if owner is None:
        return column.is_(None)
    return column == owner


class Store:
    """
    Base for stores bound to one ``AsyncSession``.

    Stores only flush; committing is left to the lifecycle engine, which
    owns the transaction boundary of each use case.
    """

    def __init__(
        self,
        db: AsyncSession,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.db = db
        self.logger = logger or structlog.get_logger(self.__class__.__module__)

    @asynccontextmanager
    async def guard(self, operation: str) -> AsyncIterator[None]:
        """Re-raise storage failures as ``PersistenceError`` with a safe message."""
        try:
            yield
        except SQLAlchemyError as exc:
            self.logger.error("store_operation_failed", operation=operation, exc_info=exc)
            raise PersistenceError() from exc
