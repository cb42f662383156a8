"""
Engagement Service

Likes and saves on lists. Each toggle writes the per-user join row and the
list's cached counter in one transaction; the unique (user_id, list_id)
constraint decides which of several racing requests actually counts.
Nothing else in the codebase writes these counters or join rows.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ErrorCode, ListNotFoundError, ValidationError
from app.models.list import MediaList
from app.models.list_engagement import EngagementKind, ListLike, ListSave
from app.utils.transactions import run_in_transaction
from app.utils.upsert import insert_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngagementLedger:
    """Join table and counter column backing one kind of toggle."""

    join_model: Any
    counter: Any
    counter_name: str


ENGAGEMENT_LEDGERS: dict[EngagementKind, EngagementLedger] = {
    EngagementKind.LIKE: EngagementLedger(join_model=ListLike, counter=MediaList.like_count, counter_name="like_count"),
    EngagementKind.SAVE: EngagementLedger(join_model=ListSave, counter=MediaList.save_count, counter_name="save_count"),
}


@dataclass(frozen=True)
class ToggleResult:
    """Counter value after a toggle and whether this call changed anything."""

    count: int
    changed: bool


def _ledger(kind: EngagementKind | str) -> EngagementLedger:
    try:
        return ENGAGEMENT_LEDGERS[EngagementKind(kind)]
    except ValueError:
        raise ValidationError(
            f"Unsupported list action '{kind}'",
            field="kind",
            error_code=ErrorCode.VALIDATION_UNSUPPORTED_KIND,
        ) from None


class EngagementService:
    """Service for like/save toggles and their counters."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def toggle_on(self, actor_id: str, list_id: int, kind: EngagementKind | str) -> ToggleResult:
        """
        Record that ``actor_id`` liked/saved the list.

        Repeating the call is a no-op that returns the current counter.

        Raises:
            ListNotFoundError: The list does not exist
        """
        ledger = _ledger(kind)

        async def operation() -> ToggleResult:
            await self._require_list(list_id)

            stmt = (
                insert_for(self.db, ledger.join_model)
                .values(user_id=actor_id, list_id=list_id)
                .on_conflict_do_nothing(index_elements=["user_id", "list_id"])
                .returning(ledger.join_model.id)
            )
            inserted = (await self.db.execute(stmt)).scalar_one_or_none()
            if inserted is None:
                return ToggleResult(count=await self._current_count(list_id, ledger), changed=False)

            result = await self.db.execute(
                update(MediaList)
                .where(MediaList.id == list_id)
                .values({ledger.counter_name: ledger.counter + 1})
                .returning(ledger.counter)
            )
            return ToggleResult(count=result.scalar_one(), changed=True)

        result = await run_in_transaction(self.db, operation, name=f"toggle_on_{ledger.counter_name}")
        if result.changed:
            logger.info(
                "List %d %s by %s, %s=%d",
                list_id,
                EngagementKind(kind).value,
                actor_id,
                ledger.counter_name,
                result.count,
                extra={"list_id": list_id, "user_id": actor_id, "kind": EngagementKind(kind).value},
            )
        return result

    async def toggle_off(self, actor_id: str, list_id: int, kind: EngagementKind | str) -> ToggleResult:
        """
        Remove the actor's like/save.

        Removing something that is not there returns the current counter.
        The counter never drops below zero.

        Raises:
            ListNotFoundError: The list does not exist
        """
        ledger = _ledger(kind)
        join_model = ledger.join_model

        async def operation() -> ToggleResult:
            await self._require_list(list_id)

            deleted = (
                await self.db.execute(
                    delete(join_model)
                    .where(join_model.user_id == actor_id, join_model.list_id == list_id)
                    .returning(join_model.id)
                )
            ).scalar_one_or_none()
            if deleted is None:
                return ToggleResult(count=await self._current_count(list_id, ledger), changed=False)

            result = await self.db.execute(
                update(MediaList)
                .where(MediaList.id == list_id)
                .values({ledger.counter_name: case((ledger.counter > 0, ledger.counter - 1), else_=0)})
                .returning(ledger.counter)
            )
            return ToggleResult(count=result.scalar_one(), changed=True)

        result = await run_in_transaction(self.db, operation, name=f"toggle_off_{ledger.counter_name}")
        if result.changed:
            logger.info(
                "List %d un-%s by %s, %s=%d",
                list_id,
                EngagementKind(kind).value,
                actor_id,
                ledger.counter_name,
                result.count,
                extra={"list_id": list_id, "user_id": actor_id, "kind": EngagementKind(kind).value},
            )
        return result

    async def has_engaged(self, actor_id: str, list_id: int, kind: EngagementKind | str) -> bool:
        """Whether the actor currently likes/saves the list."""
        join_model = _ledger(kind).join_model
        result = await self.db.execute(
            select(join_model.id).where(join_model.user_id == actor_id, join_model.list_id == list_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def engagement_status(self, actor_id: str, list_id: int) -> dict[str, bool]:
        return {
            "is_liked": await self.has_engaged(actor_id, list_id, EngagementKind.LIKE),
            "is_saved": await self.has_engaged(actor_id, list_id, EngagementKind.SAVE),
        }

    async def reconcile(self, list_id: int) -> dict[str, int]:
        """
        Recompute both counters from the join tables.

        Decrements are clamped at zero, so any drift would otherwise be
        permanent; this rewrites the cached values from count(*).

        Returns:
            Dict with the corrected like_count and save_count
        """

        async def operation() -> dict[str, int]:
            current = await self._require_list(list_id)
            values = {}
            for ledger in ENGAGEMENT_LEDGERS.values():
                join_model = ledger.join_model
                actual = (
                    await self.db.execute(select(func.count(join_model.id)).where(join_model.list_id == list_id))
                ).scalar() or 0
                cached = current[ledger.counter_name]
                if cached != actual:
                    logger.warning(
                        "Counter drift on list %d: %s cached=%d actual=%d",
                        list_id,
                        ledger.counter_name,
                        cached,
                        actual,
                        extra={"list_id": list_id},
                    )
                values[ledger.counter_name] = actual

            await self.db.execute(update(MediaList).where(MediaList.id == list_id).values(values))
            return values

        return await run_in_transaction(self.db, operation, name="reconcile_counters")

    async def _require_list(self, list_id: int) -> dict[str, int]:
        row = (
            await self.db.execute(
                select(MediaList.like_count, MediaList.save_count).where(MediaList.id == list_id)
            )
        ).one_or_none()
        if row is None:
            raise ListNotFoundError(list_id)
        return {"like_count": row.like_count, "save_count": row.save_count}

    async def _current_count(self, list_id: int, ledger: EngagementLedger) -> int:
        result = await self.db.execute(select(ledger.counter).where(MediaList.id == list_id))
        return result.scalar_one()
