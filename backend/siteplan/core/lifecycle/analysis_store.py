"""
Analysis Store - persistence of analysis records.

Handles:
- Inserting analyses (never deduplicated)
- Lookup by id and by latest (owner, url)
- The upsert-by-URL step of plan generation
- Attaching/replacing plan fields
- Cascading deletes
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Select, delete, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from siteplan.core.errors import NotFoundError, UnauthorizedError
from siteplan.core.lifecycle.base import Store, owner_matches
from siteplan.core.models import ANONYMOUS_OWNER_KEY, Analysis, AnalysisUrlLock, Task, utcnow
from siteplan.core.schemas import ActionPlanContent, AnalysisContent, WebsiteSnapshot


class AnalysisStore(Store):
    """Owns the ``analyses`` table."""

    async def create(
        self,
        owner: Optional[str],
        url: str,
        snapshot: WebsiteSnapshot,
        analysis: AnalysisContent,
        analyzed_at: Optional[datetime] = None,
    ) -> Analysis:
        """
        Insert a new analysis row. Always inserts, even when a row for the
        same owner and URL already exists.

        Args:
            owner: Owner identity, or None for an anonymous run
            url: Analyzed URL
            snapshot: Validated website snapshot
            analysis: Validated analysis content
            analyzed_at: When the snapshot was produced (defaults to its
                ``fetched_at``)

        Returns:
            The new Analysis
        """
        record = Analysis(
            id=uuid4(),
            owner_id=owner,
            url=url,
            snapshot=snapshot.model_dump(mode="json"),
            analysis=analysis.model_dump(mode="json"),
            analyzed_at=analyzed_at or snapshot.fetched_at,
        )

        async with self.guard("create_analysis"):
            self.db.add(record)
            await self.db.flush()

        self.logger.info("analysis_created", analysis_id=str(record.id), owner=owner, url=url)
        return record

    async def get(self, analysis_id: UUID) -> Analysis:
        """Get an analysis by id or raise NotFoundError."""
        async with self.guard("get_analysis"):
            record = await self.db.get(Analysis, analysis_id)

        if record is None:
            raise NotFoundError("Analysis", analysis_id)
        return record

    async def get_for_owner(self, analysis_id: UUID, owner: Optional[str]) -> Analysis:
        """Get an analysis and verify the caller owns it."""
        record = await self.get(analysis_id)
        if record.owner_id != owner:
            raise UnauthorizedError("Analysis", analysis_id)
        return record

    def _latest_query(self, owner: Optional[str], url: str) -> Select:
        return (
            select(Analysis)
            .where(owner_matches(Analysis.owner_id, owner), Analysis.url == url)
            .order_by(Analysis.analyzed_at.desc(), Analysis.created_at.desc())
            .limit(1)
        )

    async def find_latest_by_owner_and_url(
        self, owner: Optional[str], url: str
    ) -> Optional[Analysis]:
        """Most recently analyzed record for exactly (owner, url), or None."""
        async with self.guard("find_latest_analysis"):
            result = await self.db.execute(self._latest_query(owner, url))
            return result.scalar_one_or_none()

    async def get_latest_by_owner_and_url(self, owner: Optional[str], url: str) -> Analysis:
        """Like ``find_latest_by_owner_and_url`` but raises NotFoundError."""
        record = await self.find_latest_by_owner_and_url(owner, url)
        if record is None:
            raise NotFoundError("Analysis")
        return record

    async def _lock_owner_url(self, owner: Optional[str], url: str) -> None:
        owner_key = ANONYMOUS_OWNER_KEY if owner is None else owner
        dialect = self.db.get_bind().dialect.name
        insert = postgresql_insert if dialect == "postgresql" else sqlite_insert

        await self.db.execute(
            insert(AnalysisUrlLock.__table__)
            .values(owner_key=owner_key, url=url)
            .on_conflict_do_nothing(index_elements=["owner_key", "url"])
        )
        await self.db.execute(
            select(AnalysisUrlLock.owner_key)
            .where(AnalysisUrlLock.owner_key == owner_key, AnalysisUrlLock.url == url)
            .with_for_update()
        )

    async def upsert_by_url(
        self,
        owner: Optional[str],
        url: str,
        snapshot: WebsiteSnapshot,
        analysis: AnalysisContent,
    ) -> tuple[Analysis, bool]:
        """
        Resolve the live record for (owner, url) in one step.

        The pair's ``analysis_url_locks`` row is created if missing and
        locked first; only then is the latest analysis looked up, and a
        new one inserted from the given payload when there is none. The
        lock is held until the caller's transaction ends, so concurrent
        plan saves for the same pair serialize, including the very first
        ones. On SQLite the lock row insert takes the database write lock,
        which serializes the same way.

        Returns:
            (analysis, created)
        """
        async with self.guard("upsert_analysis"):
            await self._lock_owner_url(owner, url)
            result = await self.db.execute(self._latest_query(owner, url).with_for_update())
            existing = result.scalar_one_or_none()

        if existing is not None:
            self.logger.debug(
                "analysis_resolved_by_url", analysis_id=str(existing.id), owner=owner, url=url
            )
            return existing, False

        record = await self.create(owner, url, snapshot, analysis)
        return record, True

    async def attach_plan(self, analysis_id: UUID, plan: ActionPlanContent) -> Analysis:
        """
        Overwrite the plan summary, timeline and quick wins of an analysis.

        ``analyzed_at`` is left untouched: attaching a plan does not re-run
        the website fetch.
        """
        record = await self.get(analysis_id)

        record.plan_summary = plan.summary
        record.plan_timeline = plan.timeline
        record.quick_wins = list(plan.quick_wins)
        record.plan_generated_at = utcnow()

        async with self.guard("attach_plan"):
            await self.db.flush()

        self.logger.info(
            "plan_attached", analysis_id=str(record.id), task_count=len(plan.tasks)
        )
        return record

    async def delete(self, analysis_id: UUID, owner: Optional[str]) -> None:
        """Delete an analysis owned by ``owner`` together with its tasks."""
        record = await self.get_for_owner(analysis_id, owner)

        async with self.guard("delete_analysis"):
            await self.db.execute(delete(Task).where(Task.analysis_id == record.id))
            await self.db.execute(delete(Analysis).where(Analysis.id == record.id))

        self.logger.info("analysis_deleted", analysis_id=str(analysis_id), owner=owner)

    async def delete_all_for_url(
        self, analysis_id: UUID, owner: Optional[str]
    ) -> tuple[int, str]:
        """
        Delete every analysis of ``owner`` for the URL of ``analysis_id``.

        Returns:
            (number of analyses deleted, url)
        """
        record = await self.get_for_owner(analysis_id, owner)
        url = record.url
        matching = select(Analysis.id).where(
            owner_matches(Analysis.owner_id, owner), Analysis.url == url
        )

        async with self.guard("delete_analyses_for_url"):
            deleted = (
                await self.db.execute(select(func.count()).select_from(matching.subquery()))
            ).scalar_one()
            await self.db.execute(delete(Task).where(Task.analysis_id.in_(matching)))
            await self.db.execute(
                delete(Analysis).where(owner_matches(Analysis.owner_id, owner), Analysis.url == url)
            )

        self.logger.info("analyses_deleted_for_url", url=url, owner=owner, deleted=deleted)
        return deleted, url

    async def list_for_owner(self, owner: str, limit: int = 10) -> list[Analysis]:
        """Owner's analyses, newest first."""
        query = (
            select(Analysis)
            .where(owner_matches(Analysis.owner_id, owner))
            .order_by(Analysis.analyzed_at.desc())
            .limit(limit)
        )
        async with self.guard("list_analyses"):
            result = await self.db.execute(query)
            return list(result.scalars().all())

    async def history_for_owner(self, owner: str) -> list[dict]:
        """
        Owner's analyses grouped by URL.

        Returns:
            One dict per URL with url, latest_analysis_id, latest_analyzed_at,
            total_count and title, newest URL first.
        """
        grouped = (
            select(
                Analysis.url,
                func.count(Analysis.id).label("total_count"),
                func.max(Analysis.analyzed_at).label("latest_analyzed_at"),
            )
            .where(owner_matches(Analysis.owner_id, owner))
            .group_by(Analysis.url)
            .order_by(func.max(Analysis.analyzed_at).desc())
        )

        async with self.guard("analysis_history"):
            rows = (await self.db.execute(grouped)).all()

            history = []
            for row in rows:
                latest = (
                    await self.db.execute(self._latest_query(owner, row.url))
                ).scalar_one()
                history.append({
                    "url": row.url,
                    "latest_analysis_id": latest.id,
                    "latest_analyzed_at": latest.analyzed_at,
                    "total_count": row.total_count,
                    "title": (latest.snapshot or {}).get("title"),
                })
        return history
