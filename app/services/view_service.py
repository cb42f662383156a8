"""
View Service

Counts unique views of a list: one per identity per rolling window
(settings.view_dedup_window_hours). An identity is the viewer's user id, the
SHA-256 of their network address, or both; a previous view matching either
component suppresses the new one.

Recording a view is best effort. record_view() never raises and works inside a
savepoint, so it neither commits nor discards anything else pending on the
session it is given. ViewTracker.schedule() runs it in the background on a
session of its own, which it commits, so request handlers do not wait on it.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.list import MediaList
from app.models.list_engagement import ListView
from app.utils.hashing import hash_identity
from app.utils.validators import is_positive_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewResult:
    recorded: bool
    already_viewed: bool = False


class ViewService:
    """Service for unique list views and list popularity."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_view(
        self,
        list_id: int,
        user_id: str | None = None,
        raw_address: str | None = None,
    ) -> ViewResult:
        """
        Record a unique view of a list.

        Calls without any identity, for a non-positive id or for a list that
        does not exist are ignored. Storage errors are logged and reported as
        not recorded.

        The view is written in a savepoint; it becomes durable when the
        session's transaction commits.
        """
        if not is_positive_id(list_id) or (not user_id and not raw_address):
            return ViewResult(recorded=False)

        address_hash = hash_identity(raw_address) if raw_address else None
        window_start = datetime.utcnow() - timedelta(hours=settings.view_dedup_window_hours)

        identity_matches = []
        if user_id:
            identity_matches.append(ListView.user_id == user_id)
        if address_hash:
            identity_matches.append(ListView.ip_address_hash == address_hash)

        async def operation() -> ViewResult:
            found = await self.db.execute(select(MediaList.id).where(MediaList.id == list_id))
            if found.scalar_one_or_none() is None:
                logger.debug("Ignoring view of missing list %s", list_id)
                return ViewResult(recorded=False)

            existing = await self.db.execute(
                select(ListView.id)
                .where(
                    and_(
                        ListView.list_id == list_id,
                        ListView.created_at >= window_start,
                        or_(*identity_matches),
                    )
                )
                .limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                return ViewResult(recorded=False, already_viewed=True)

            self.db.add(ListView(list_id=list_id, user_id=user_id or None, ip_address_hash=address_hash))
            await self.db.flush()
            return ViewResult(recorded=True)

        try:
            async with self.db.begin_nested():
                return await operation()
        except Exception:
            logger.exception("Error occurred while tracking view of list %s", list_id, extra={"list_id": list_id})
            return ViewResult(recorded=False)

    async def get_view_count(self, list_id: int, days: int = 30) -> int:
        """Unique views recorded for a list over the last ``days`` days."""
        start_date = datetime.utcnow() - timedelta(days=days)
        result = await self.db.execute(
            select(func.count(ListView.id)).where(ListView.list_id == list_id, ListView.created_at >= start_date)
        )
        return result.scalar() or 0

    async def get_popular_lists(self, limit: int = 10, days: int = 7) -> list[dict[str, Any]]:
        """Lists with the most unique views over the last ``days`` days."""
        start_date = datetime.utcnow() - timedelta(days=days)
        view_count = func.count(ListView.id).label("view_count")
        result = await self.db.execute(
            select(MediaList, view_count)
            .join(ListView, ListView.list_id == MediaList.id)
            .where(ListView.created_at >= start_date)
            .group_by(MediaList.id)
            .order_by(view_count.desc(), MediaList.id.asc())
            .limit(limit)
        )
        return [{"list": media_list, "view_count": count} for media_list, count in result.all()]


class ViewTracker:
    """
    Fire-and-forget view recording.

    Each scheduled view runs in its own task with its own session, so the
    caller's session and response are never involved. Task references are
    kept until the task finishes.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory
        self._tasks: set[asyncio.Task] = set()

    def schedule(self, list_id: int, user_id: str | None = None, raw_address: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(self._record(list_id, user_id, raw_address))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for all scheduled views to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _record(self, list_id: int, user_id: str | None, raw_address: str | None) -> ViewResult:
        try:
            async with self.session_factory() as session:
                result = await ViewService(session).record_view(list_id, user_id=user_id, raw_address=raw_address)
                await session.commit()
                return result
        except Exception:
            logger.exception("Background view tracking failed for list %s", list_id, extra={"list_id": list_id})
            return ViewResult(recorded=False)
