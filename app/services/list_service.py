"""
List Service

List lifecycle (create, rename, delete, lookup by slug) and list membership.
Ownership is always checked inside the same transaction as the write it
guards. Lists that are missing and lists owned by someone else both surface
as ListNotFoundError.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ListNotFoundError
from app.models.list import ListSlugHistory, MediaList
from app.models.list_item import ListItem
from app.models.media import MediaType, Movie, Tv
from app.models.user import User
from app.services.engagement_service import EngagementService
from app.services.slug_service import SlugScope, SlugService, validate_title
from app.utils.transactions import run_in_transaction
from app.utils.upsert import insert_for
from app.utils.validators import coerce_media_type, is_positive_id, require_positive_id

logger = logging.getLogger(__name__)

# ListItem column holding the media id for each media type
MEDIA_ITEM_COLUMNS: dict[MediaType, str] = {
    MediaType.MOVIE: "movie_id",
    MediaType.TV: "series_id",
}


@dataclass
class AddItemResult:
    """Outcome of an idempotent add: the row, and whether this call created it."""

    created: bool
    item: ListItem


@dataclass
class ListItemEntry:
    list_item_id: int
    list_id: int
    media_type: MediaType
    media_id: int
    title: str | None
    poster_path: str | None
    created_at: datetime


@dataclass
class ListDetail:
    list: MediaList
    items: list[ListItemEntry] = field(default_factory=list)
    is_liked: bool = False
    is_saved: bool = False
    redirected: bool = False


class ListService:
    """Service for lists and the media placed on them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============== Lists ==============

    async def create_list(self, actor_id: str, name: str) -> MediaList:
        """Create a list with a slug unique among the actor's lists."""
        name = validate_title(name)

        async def operation() -> MediaList:
            slug = await SlugService(self.db).allocate(name, SlugScope.LIST, actor_id)
            media_list = MediaList(user_id=actor_id, name=name, slug=slug)
            self.db.add(media_list)
            await self.db.flush()
            return media_list

        # A concurrent create can claim the same slug first; retrying re-allocates
        media_list = await run_in_transaction(self.db, operation, name="create_list", retry_on_conflict=True)
        logger.info("Created list %d (%s) for %s", media_list.id, media_list.slug, actor_id)
        return media_list

    async def get_lists(self, actor_id: str) -> list[MediaList]:
        result = await self.db.execute(
            select(MediaList).where(MediaList.user_id == actor_id).order_by(MediaList.created_at.asc(), MediaList.id.asc())
        )
        return list(result.scalars().all())

    async def authorize_owner(self, actor_id: str | None, list_id: int, for_update: bool = False) -> MediaList:
        """
        Load a list the actor owns.

        Raises:
            ListNotFoundError: Missing id, bad id, or a list owned by someone else
        """
        if not actor_id or not is_positive_id(list_id):
            raise ListNotFoundError(list_id)

        query = select(MediaList).where(MediaList.id == list_id)
        if for_update:
            query = query.with_for_update()
        media_list = (await self.db.execute(query)).scalar_one_or_none()

        if media_list is None:
            logger.debug("List %s does not exist", list_id)
            raise ListNotFoundError(list_id)
        if media_list.user_id != actor_id:
            logger.info(
                "User %s attempted to modify list %d owned by someone else",
                actor_id,
                list_id,
                extra={"list_id": list_id, "user_id": actor_id},
            )
            raise ListNotFoundError(list_id)
        return media_list

    async def rename_list(self, actor_id: str, list_id: int, name: str) -> MediaList:
        """
        Rename a list and move it to a fresh slug.

        The previous slug is written to list_slug_history first, so the new
        slug can never equal it and old URLs keep resolving.
        """
        name = validate_title(name)

        async def operation() -> MediaList:
            media_list = await self.authorize_owner(actor_id, list_id, for_update=True)
            if media_list.name == name:
                return media_list

            old_slug = media_list.slug
            self.db.add(ListSlugHistory(list_id=media_list.id, old_slug=old_slug))
            await self.db.flush()

            media_list.slug = await SlugService(self.db).allocate(name, SlugScope.LIST, actor_id)
            media_list.name = name
            media_list.updated_at = datetime.utcnow()
            await self.db.flush()

            logger.info("Renamed list %d: %s -> %s", list_id, old_slug, media_list.slug)
            return media_list

        return await run_in_transaction(self.db, operation, name="rename_list", retry_on_conflict=True)

    async def delete_list(self, actor_id: str, list_id: int) -> MediaList:
        """Delete a list; items, likes, saves, views and slug history cascade."""

        async def operation() -> MediaList:
            media_list = await self.authorize_owner(actor_id, list_id, for_update=True)
            await self.db.execute(
                delete(MediaList).where(MediaList.id == list_id, MediaList.user_id == actor_id)
            )
            return media_list

        media_list = await run_in_transaction(self.db, operation, name="delete_list")
        logger.info("Deleted list %d", list_id, extra={"list_id": list_id, "user_id": actor_id})
        return media_list

    async def resolve_list(self, username: str, slug: str) -> tuple[MediaList, bool]:
        """
        Find a list by owner username and slug.

        Returns:
            (list, redirected) where redirected is True when ``slug`` is a
            retired slug and the caller should redirect to the current one
        """
        live = await self.db.execute(
            select(MediaList)
            .join(User, MediaList.user_id == User.id)
            .where(User.username == username, MediaList.slug == slug)
        )
        media_list = live.scalar_one_or_none()
        if media_list is not None:
            return media_list, False

        retired = await self.db.execute(
            select(MediaList)
            .join(ListSlugHistory, ListSlugHistory.list_id == MediaList.id)
            .join(User, MediaList.user_id == User.id)
            .where(User.username == username, ListSlugHistory.old_slug == slug)
            .order_by(ListSlugHistory.created_at.desc(), ListSlugHistory.id.desc())
            .limit(1)
        )
        media_list = retired.scalar_one_or_none()
        if media_list is None:
            raise ListNotFoundError(slug)
        return media_list, True

    async def get_list_data(self, username: str, slug: str, viewer_id: str | None = None) -> ListDetail:
        """List, its items, and the viewer's like/save state."""
        media_list, redirected = await self.resolve_list(username, slug)
        detail = ListDetail(
            list=media_list,
            items=await self.get_list_items(media_list.id),
            redirected=redirected,
        )
        if viewer_id:
            status = await EngagementService(self.db).engagement_status(viewer_id, media_list.id)
            detail.is_liked = status["is_liked"]
            detail.is_saved = status["is_saved"]
        return detail

    # ============== List Items ==============

    async def get_list_items(self, list_id: int) -> list[ListItemEntry]:
        """Items on a list, newest first, with catalogue titles and posters."""
        result = await self.db.execute(
            select(
                ListItem.id,
                ListItem.list_id,
                ListItem.media_type,
                func.coalesce(ListItem.movie_id, ListItem.series_id).label("media_id"),
                func.coalesce(Movie.title, Tv.title).label("title"),
                func.coalesce(Movie.poster_path, Tv.poster_path).label("poster_path"),
                ListItem.created_at,
            )
            .outerjoin(Movie, ListItem.movie_id == Movie.id)
            .outerjoin(Tv, ListItem.series_id == Tv.id)
            .where(ListItem.list_id == list_id)
            .order_by(ListItem.created_at.desc(), ListItem.id.desc())
        )
        return [
            ListItemEntry(
                list_item_id=row.id,
                list_id=row.list_id,
                media_type=row.media_type,
                media_id=row.media_id,
                title=row.title,
                poster_path=row.poster_path,
                created_at=row.created_at,
            )
            for row in result.all()
        ]

    async def get_list_item(self, actor_id: str, media_type: MediaType | str, media_id: int) -> ListItem | None:
        """The actor's list item for this media, if it is on any of their lists."""
        column = getattr(ListItem, MEDIA_ITEM_COLUMNS[coerce_media_type(media_type)])
        result = await self.db.execute(
            select(ListItem)
            .where(ListItem.user_id == actor_id, column == media_id)
            .order_by(ListItem.created_at.asc(), ListItem.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_item(self, actor_id: str, list_id: int, media_type: MediaType | str, media_id: int) -> AddItemResult:
        """
        Put a media item on one of the actor's lists.

        Adding an item that is already there returns the existing row with
        ``created=False``.

        Raises:
            ValidationError: Bad media type or ids
            ListNotFoundError: The list is missing or not the actor's
        """
        media_type = coerce_media_type(media_type)
        require_positive_id(media_id, "media_id")
        column_name = MEDIA_ITEM_COLUMNS[media_type]
        column = getattr(ListItem, column_name)

        async def operation() -> AddItemResult:
            await self.authorize_owner(actor_id, list_id, for_update=True)

            stmt = (
                insert_for(self.db, ListItem)
                .values(list_id=list_id, user_id=actor_id, media_type=media_type, **{column_name: media_id})
                .on_conflict_do_nothing()
                .returning(ListItem)
            )
            item = (await self.db.execute(stmt)).scalar_one_or_none()
            if item is None:
                existing = await self.db.execute(
                    select(ListItem).where(ListItem.list_id == list_id, column == media_id)
                )
                return AddItemResult(created=False, item=existing.scalar_one())

            await self.db.execute(
                update(MediaList).where(MediaList.id == list_id).values(updated_at=datetime.utcnow())
            )
            return AddItemResult(created=True, item=item)

        result = await run_in_transaction(self.db, operation, name="add_list_item")
        if result.created:
            logger.info(
                "Added %s %d to list %d",
                media_type.value,
                media_id,
                list_id,
                extra={"list_id": list_id, "user_id": actor_id},
            )
        return result

    async def remove_item(self, actor_id: str, item_id: int) -> ListItem | None:
        """
        Remove a list item the actor owns.

        Returns None both when the item does not exist and when it belongs to
        someone else.
        """
        if not is_positive_id(item_id):
            return None

        async def operation() -> ListItem | None:
            result = await self.db.execute(
                delete(ListItem).where(ListItem.id == item_id, ListItem.user_id == actor_id).returning(ListItem)
            )
            return result.scalar_one_or_none()

        item = await run_in_transaction(self.db, operation, name="remove_list_item")
        if item is not None:
            logger.info("Removed item %d from list %d", item_id, item.list_id, extra={"list_id": item.list_id})
        return item
