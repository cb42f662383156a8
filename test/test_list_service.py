"""
Tests for list lifecycle, slug redirects and list membership.
"""

import pytest
from sqlalchemy import func, select

from app.exceptions import ListNotFoundError, ValidationError
from app.models import ListItem, ListLike, ListSlugHistory, MediaList, MediaType, Movie, Tv
from app.services.engagement_service import EngagementService
from app.services.list_service import ListService


async def count_rows(db, model, *criteria) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*criteria))).scalar()


class TestCreateList:
    @pytest.mark.asyncio
    async def test_create_allocates_slug(self, test_db, users):
        media_list = await ListService(test_db).create_list(users["alice"].id, "  Best of 2024  ")

        assert media_list.id is not None
        assert media_list.name == "Best of 2024"
        assert media_list.slug == "best-of-2024"
        assert media_list.like_count == 0
        assert media_list.save_count == 0

    @pytest.mark.asyncio
    async def test_same_name_gets_suffix_per_owner(self, test_db, users):
        service = ListService(test_db)

        first = await service.create_list(users["alice"].id, "Watch Later")
        second = await service.create_list(users["alice"].id, "Watch Later")
        other_owner = await service.create_list(users["bob"].id, "Watch Later")

        assert first.slug == "watch-later"
        assert second.slug == "watch-later-1"
        assert other_owner.slug == "watch-later"

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, test_db, users):
        with pytest.raises(ValidationError):
            await ListService(test_db).create_list(users["alice"].id, "")

    @pytest.mark.asyncio
    async def test_get_lists_only_returns_own_lists(self, test_db, users):
        service = ListService(test_db)
        await service.create_list(users["alice"].id, "One")
        await service.create_list(users["alice"].id, "Two")
        await service.create_list(users["bob"].id, "Three")

        lists = await service.get_lists(users["alice"].id)

        assert [media_list.name for media_list in lists] == ["One", "Two"]


class TestAuthorizeOwner:
    @pytest.mark.asyncio
    async def test_owner_gets_list(self, test_db, users, alice_list):
        media_list = await ListService(test_db).authorize_owner(users["alice"].id, alice_list.id)
        assert media_list.id == alice_list.id

    @pytest.mark.asyncio
    async def test_foreign_list_looks_missing(self, test_db, users, alice_list):
        with pytest.raises(ListNotFoundError):
            await ListService(test_db).authorize_owner(users["bob"].id, alice_list.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("list_id", [0, -1, True, "12"])
    async def test_invalid_ids_look_missing(self, test_db, users, list_id):
        with pytest.raises(ListNotFoundError):
            await ListService(test_db).authorize_owner(users["alice"].id, list_id)

    @pytest.mark.asyncio
    async def test_anonymous_actor_rejected(self, test_db, alice_list):
        with pytest.raises(ListNotFoundError):
            await ListService(test_db).authorize_owner(None, alice_list.id)


class TestListItems:
    @pytest.mark.asyncio
    async def test_add_item_creates_row(self, test_db, users, catalog, alice_list):
        result = await ListService(test_db).add_item(users["alice"].id, alice_list.id, "movie", 603)

        assert result.created is True
        assert result.item.movie_id == 603
        assert result.item.series_id is None
        assert result.item.media_type == MediaType.MOVIE

    @pytest.mark.asyncio
    async def test_add_item_twice_returns_existing_row(self, test_db, users, catalog, alice_list):
        service = ListService(test_db)

        first = await service.add_item(users["alice"].id, alice_list.id, MediaType.MOVIE, 603)
        second = await service.add_item(users["alice"].id, alice_list.id, MediaType.MOVIE, 603)

        assert second.created is False
        assert second.item.id == first.item.id
        assert await count_rows(test_db, ListItem, ListItem.list_id == alice_list.id) == 1

    @pytest.mark.asyncio
    async def test_add_item_from_second_session(self, session_factory, users, catalog, alice_list):
        async with session_factory() as first, session_factory() as second:
            one = await ListService(first).add_item(users["alice"].id, alice_list.id, "tv", 1398)
            two = await ListService(second).add_item(users["alice"].id, alice_list.id, "tv", 1398)

        assert (one.created, two.created) == (True, False)
        async with session_factory() as check:
            assert await count_rows(check, ListItem, ListItem.series_id == 1398) == 1

    @pytest.mark.asyncio
    async def test_same_id_as_movie_and_series_are_distinct(self, test_db, users, alice_list):
        service = ListService(test_db)
        test_db.add_all(
            [
                Movie(id=1, title="Movie One", slug="movie-one"),
                Tv(id=1, title="Series One", slug="series-one"),
            ]
        )
        await test_db.commit()

        movie = await service.add_item(users["alice"].id, alice_list.id, "movie", 1)
        series = await service.add_item(users["alice"].id, alice_list.id, "tv", 1)

        assert movie.created and series.created
        assert movie.item.id != series.item.id

    @pytest.mark.asyncio
    async def test_non_owner_cannot_add(self, test_db, users, catalog, alice_list):
        with pytest.raises(ListNotFoundError):
            await ListService(test_db).add_item(users["bob"].id, alice_list.id, "movie", 603)

        assert await count_rows(test_db, ListItem) == 0

    @pytest.mark.asyncio
    async def test_bad_media_input_rejected(self, test_db, users, alice_list):
        service = ListService(test_db)
        with pytest.raises(ValidationError):
            await service.add_item(users["alice"].id, alice_list.id, "podcast", 603)
        with pytest.raises(ValidationError):
            await service.add_item(users["alice"].id, alice_list.id, "movie", 0)

    @pytest.mark.asyncio
    async def test_get_list_items_newest_first(self, test_db, users, catalog, alice_list):
        service = ListService(test_db)
        await service.add_item(users["alice"].id, alice_list.id, "movie", 603)
        await service.add_item(users["alice"].id, alice_list.id, "tv", 1398)

        items = await service.get_list_items(alice_list.id)

        assert [(item.media_type, item.media_id, item.title) for item in items] == [
            (MediaType.TV, 1398, "The Sopranos"),
            (MediaType.MOVIE, 603, "The Matrix"),
        ]
        assert items[0].poster_path == "/sopranos.jpg"

    @pytest.mark.asyncio
    async def test_get_list_item_finds_actor_item(self, test_db, users, catalog, alice_list):
        service = ListService(test_db)
        await service.add_item(users["alice"].id, alice_list.id, "movie", 949)

        assert (await service.get_list_item(users["alice"].id, "movie", 949)).list_id == alice_list.id
        assert await service.get_list_item(users["bob"].id, "movie", 949) is None
        assert await service.get_list_item(users["alice"].id, "tv", 949) is None

    @pytest.mark.asyncio
    async def test_remove_item(self, test_db, users, catalog, alice_list):
        service = ListService(test_db)
        added = await service.add_item(users["alice"].id, alice_list.id, "movie", 603)

        assert await service.remove_item(users["bob"].id, added.item.id) is None
        removed = await service.remove_item(users["alice"].id, added.item.id)

        assert removed.id == added.item.id
        assert await count_rows(test_db, ListItem) == 0
        assert await service.remove_item(users["alice"].id, added.item.id) is None
        assert await service.remove_item(users["alice"].id, -5) is None


class TestRenameList:
    @pytest.mark.asyncio
    async def test_rename_records_history_and_redirects(self, test_db, users, alice_list):
        service = ListService(test_db)

        renamed = await service.rename_list(users["alice"].id, alice_list.id, "All Time Favourites")

        assert renamed.slug == "all-time-favourites"
        assert renamed.name == "All Time Favourites"
        history = (await test_db.execute(select(ListSlugHistory.old_slug))).scalars().all()
        assert history == ["favourites"]

        current, redirected = await service.resolve_list("alice", "all-time-favourites")
        assert (current.id, redirected) == (alice_list.id, False)
        old, redirected = await service.resolve_list("alice", "favourites")
        assert (old.id, redirected) == (alice_list.id, True)

    @pytest.mark.asyncio
    async def test_rename_to_same_slug_text_gets_new_slug(self, test_db, users, alice_list):
        renamed = await ListService(test_db).rename_list(users["alice"].id, alice_list.id, "FAVOURITES")

        assert renamed.slug == "favourites-1"

    @pytest.mark.asyncio
    async def test_rename_to_same_name_is_noop(self, test_db, users, alice_list):
        renamed = await ListService(test_db).rename_list(users["alice"].id, alice_list.id, "Favourites")

        assert renamed.slug == "favourites"
        assert await count_rows(test_db, ListSlugHistory) == 0

    @pytest.mark.asyncio
    async def test_non_owner_cannot_rename(self, test_db, users, alice_list):
        with pytest.raises(ListNotFoundError):
            await ListService(test_db).rename_list(users["bob"].id, alice_list.id, "Mine now")

        assert await count_rows(test_db, ListSlugHistory) == 0

    @pytest.mark.asyncio
    async def test_unknown_slug_not_found(self, test_db, users, alice_list):
        service = ListService(test_db)
        with pytest.raises(ListNotFoundError):
            await service.resolve_list("alice", "nope")
        with pytest.raises(ListNotFoundError):
            await service.resolve_list("bob", "favourites")


class TestDeleteList:
    @pytest.mark.asyncio
    async def test_delete_cascades(self, test_db, users, catalog, alice_list):
        service = ListService(test_db)
        await service.add_item(users["alice"].id, alice_list.id, "movie", 603)
        await EngagementService(test_db).toggle_on(users["bob"].id, alice_list.id, "like")
        await service.rename_list(users["alice"].id, alice_list.id, "Renamed")

        await service.delete_list(users["alice"].id, alice_list.id)

        assert await count_rows(test_db, MediaList) == 0
        assert await count_rows(test_db, ListItem) == 0
        assert await count_rows(test_db, ListLike) == 0
        assert await count_rows(test_db, ListSlugHistory) == 0

    @pytest.mark.asyncio
    async def test_non_owner_cannot_delete(self, test_db, users, alice_list):
        with pytest.raises(ListNotFoundError):
            await ListService(test_db).delete_list(users["bob"].id, alice_list.id)

        assert await count_rows(test_db, MediaList) == 1


class TestListData:
    @pytest.mark.asyncio
    async def test_list_data_for_viewer(self, test_db, users, catalog, alice_list):
        service = ListService(test_db)
        await service.add_item(users["alice"].id, alice_list.id, "movie", 603)
        await EngagementService(test_db).toggle_on(users["bob"].id, alice_list.id, "like")

        detail = await service.get_list_data("alice", "favourites", viewer_id=users["bob"].id)

        assert detail.list.id == alice_list.id
        assert [item.media_id for item in detail.items] == [603]
        assert detail.is_liked is True
        assert detail.is_saved is False
        assert detail.redirected is False

    @pytest.mark.asyncio
    async def test_list_data_anonymous(self, test_db, users, alice_list):
        detail = await ListService(test_db).get_list_data("alice", "favourites")

        assert detail.items == []
        assert detail.is_liked is False
