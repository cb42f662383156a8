"""
Racing requests against one list

Each task gets its own session and connection on a file-backed database, and
all of them run at once with asyncio.gather. The unique constraints decide the
winner; the losers must see a no-op rather than a double count or an error.
"""

import asyncio

import pytest
from sqlalchemy import func, select

from app.config import settings
from app.models import ListItem, ListLike, MediaList, Movie, User
from app.services.engagement_service import EngagementService
from app.services.list_service import ListService

RACERS = 5


@pytest.fixture(autouse=True)
def generous_retries(monkeypatch):
    # Losers of a SQLite write lock surface as "database is locked" and are retried
    monkeypatch.setattr(settings, "transaction_max_retries", 10)
    monkeypatch.setattr(settings, "transaction_retry_backoff", [0.01, 0.02, 0.05])


@pytest.fixture
async def seeded(concurrent_session_factory) -> dict[str, object]:
    async with concurrent_session_factory() as db:
        users = [User(id=f"user-{n}", username=f"user{n}") for n in range(RACERS)]
        db.add_all(users)
        db.add(Movie(id=603, title="The Matrix", slug="the-matrix"))
        await db.flush()
        media_list = MediaList(user_id="user-0", name="Favourites", slug="favourites")
        db.add(media_list)
        await db.commit()
        return {"owner_id": "user-0", "user_ids": [user.id for user in users], "list_id": media_list.id}


async def scalar(session_factory, query):
    async with session_factory() as db:
        return (await db.execute(query)).scalar()


class TestRacingToggles:
    @pytest.mark.asyncio
    async def test_same_user_liking_at_once_counts_once(self, concurrent_session_factory, seeded):
        list_id = seeded["list_id"]

        async def like():
            async with concurrent_session_factory() as db:
                return await EngagementService(db).toggle_on("user-1", list_id, "like")

        results = await asyncio.gather(*(like() for _ in range(RACERS)))

        assert sum(result.changed for result in results) == 1
        assert all(result.count == 1 for result in results if result.changed)
        assert await scalar(concurrent_session_factory, select(MediaList.like_count).where(MediaList.id == list_id)) == 1
        assert await scalar(concurrent_session_factory, select(func.count(ListLike.id))) == 1

    @pytest.mark.asyncio
    async def test_different_users_liking_at_once_all_count(self, concurrent_session_factory, seeded):
        list_id = seeded["list_id"]

        async def like(user_id):
            async with concurrent_session_factory() as db:
                return await EngagementService(db).toggle_on(user_id, list_id, "like")

        results = await asyncio.gather(*(like(user_id) for user_id in seeded["user_ids"]))

        assert all(result.changed for result in results)
        assert sorted(result.count for result in results) == list(range(1, RACERS + 1))
        assert await scalar(concurrent_session_factory, select(MediaList.like_count).where(MediaList.id == list_id)) == RACERS

    @pytest.mark.asyncio
    async def test_like_and_unlike_at_once_stay_consistent(self, concurrent_session_factory, seeded):
        list_id = seeded["list_id"]

        async def toggle(on: bool):
            async with concurrent_session_factory() as db:
                service = EngagementService(db)
                if on:
                    return await service.toggle_on("user-2", list_id, "save")
                return await service.toggle_off("user-2", list_id, "save")

        await asyncio.gather(*(toggle(n % 2 == 0) for n in range(RACERS)))

        async with concurrent_session_factory() as db:
            engaged = await EngagementService(db).has_engaged("user-2", list_id, "save")
        count = await scalar(concurrent_session_factory, select(MediaList.save_count).where(MediaList.id == list_id))
        assert count == (1 if engaged else 0)


class TestRacingListWrites:
    @pytest.mark.asyncio
    async def test_adding_same_item_at_once_creates_one_row(self, concurrent_session_factory, seeded):
        async def add():
            async with concurrent_session_factory() as db:
                return await ListService(db).add_item(seeded["owner_id"], seeded["list_id"], "movie", 603)

        results = await asyncio.gather(*(add() for _ in range(RACERS)))

        assert sum(result.created for result in results) == 1
        assert len({result.item.id for result in results}) == 1
        assert await scalar(concurrent_session_factory, select(func.count(ListItem.id))) == 1

    @pytest.mark.asyncio
    async def test_creating_same_name_at_once_gets_distinct_slugs(self, concurrent_session_factory, seeded):
        async def create():
            async with concurrent_session_factory() as db:
                return await ListService(db).create_list(seeded["owner_id"], "Same")

        created = await asyncio.gather(*(create() for _ in range(4)))

        assert sorted(media_list.slug for media_list in created) == ["same", "same-1", "same-2", "same-3"]
