"""Tests for favorite synchronization."""

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from recipebox.core.exceptions import UpstreamFailureException
from recipebox.services.favorite_service import (
    FavoriteCache,
    FavoriteStatus,
    FavoriteSynchronizer,
)
from recipebox.services.favorite_store import FavoriteStore


@pytest.mark.asyncio
class TestFavoriteSynchronizer:
    """Tests for idempotent add and remove."""

    async def test_add_then_add_again(self, db_session: AsyncSession, test_user: dict):
        synchronizer = FavoriteSynchronizer()

        assert await synchronizer.add(db_session, test_user["id"], "52772") is FavoriteStatus.ADDED
        assert (
            await synchronizer.add(db_session, test_user["id"], "52772")
            is FavoriteStatus.ALREADY_FAVORITE
        )
        assert await synchronizer.list(db_session, test_user["id"]) == ["52772"]

    async def test_remove(self, db_session: AsyncSession, test_user: dict):
        synchronizer = FavoriteSynchronizer()
        await synchronizer.add(db_session, test_user["id"], "52772")

        assert (
            await synchronizer.remove(db_session, test_user["id"], "52772") is FavoriteStatus.REMOVED
        )
        assert (
            await synchronizer.remove(db_session, test_user["id"], "52772")
            is FavoriteStatus.NOT_FAVORITE
        )
        assert await synchronizer.list(db_session, test_user["id"]) == []

    async def test_racing_add_reports_already_favorite(
        self, db_session: AsyncSession, test_user: dict
    ):
        """When the existence check misses, the primary key still rejects the duplicate."""
        store = FavoriteStore()
        await store.create(db_session, test_user["id"], "52772")
        store.find = AsyncMock(return_value=None)  # type: ignore[method-assign]

        status = await FavoriteSynchronizer(store).add(db_session, test_user["id"], "52772")

        assert status is FavoriteStatus.ALREADY_FAVORITE
        assert await store.list_by_user(db_session, test_user["id"]) == ["52772"]

    async def test_favorites_are_per_user(
        self, db_session: AsyncSession, test_user: dict, other_user: dict
    ):
        synchronizer = FavoriteSynchronizer()
        await synchronizer.add(db_session, test_user["id"], "52772")
        await synchronizer.add(db_session, other_user["id"], "53049")

        assert await synchronizer.list(db_session, test_user["id"]) == ["52772"]
        assert await synchronizer.list(db_session, other_user["id"]) == ["53049"]

    async def test_store_failure_is_upstream_failure(
        self, db_session: AsyncSession, test_user: dict, monkeypatch: pytest.MonkeyPatch
    ):
        async def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(db_session, "execute", broken_execute)

        with pytest.raises(UpstreamFailureException):
            await FavoriteSynchronizer().add(db_session, test_user["id"], "52772")

    async def test_rejected_insert_for_missing_account_is_upstream_failure(
        self, db_session: AsyncSession, test_user: dict, monkeypatch: pytest.MonkeyPatch
    ):
        """Only a rejected duplicate means the pair already exists."""
        real_execute = db_session.execute
        calls = []

        async def insert_rejected(statement, *args, **kwargs):
            calls.append(statement)
            if len(calls) == 1:
                raise IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))
            return await real_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", insert_rejected)

        with pytest.raises(UpstreamFailureException):
            await FavoriteStore().create(db_session, test_user["id"], "52772")

        monkeypatch.undo()
        assert await FavoriteStore().list_by_user(db_session, test_user["id"]) == []


class TestFavoriteCache:
    """Tests for the client-held favorite set."""

    def test_toggle_flips_state(self):
        cache = FavoriteCache()

        assert cache.toggle("52772") == "add"
        assert cache.is_favorite("52772")
        assert cache.toggle("52772") == "remove"
        assert not cache.is_favorite("52772")

    def test_acknowledge_clears_pending(self):
        cache = FavoriteCache()
        cache.toggle("52772")
        cache.acknowledge("52772")

        assert cache.pending == {}
        assert cache.is_favorite("52772")

    def test_load_overwrites_with_server_state(self):
        cache = FavoriteCache(recipe_ids={"1", "2"})

        change = cache.load(["2", "3"])

        assert cache.recipe_ids == {"2", "3"}
        assert change.added == frozenset({"3"})
        assert change.removed == frozenset({"1"})
        assert change.discarded_pending == frozenset()

    def test_load_discards_unacknowledged_toggle(self):
        """A toggle the server has not seen is lost on reload."""
        cache = FavoriteCache(recipe_ids={"1"})
        cache.toggle("2")

        change = cache.load(["1"])

        assert not cache.is_favorite("2")
        assert change.discarded_pending == frozenset({"2"})
        assert cache.pending == {}

    def test_load_keeps_toggle_the_server_already_applied(self):
        cache = FavoriteCache()
        cache.toggle("2")

        change = cache.load(["2"])

        assert cache.is_favorite("2")
        assert change.discarded_pending == frozenset()


@pytest.mark.asyncio
class TestFavoriteEndpoints:
    """Tests for POST /favorite and GET /favorites."""

    async def test_add_favorite(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/favorite",
            json={"recipeId": "52772", "action": "add"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["status"] == "added"

    async def test_add_existing_favorite(self, client: AsyncClient, auth_headers: dict):
        body = {"recipeId": "52772", "action": "add"}
        await client.post("/api/v1/favorite", json=body, headers=auth_headers)

        response = await client.post("/api/v1/favorite", json=body, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "already_favorite"

    async def test_remove_favorite(self, client: AsyncClient, auth_headers: dict):
        await client.post(
            "/api/v1/favorite", json={"recipeId": "52772", "action": "add"}, headers=auth_headers
        )

        response = await client.post(
            "/api/v1/favorite",
            json={"recipeId": "52772", "action": "remove"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "removed"

    async def test_remove_missing_favorite(self, client: AsyncClient, auth_headers: dict):
        response = await client.post(
            "/api/v1/favorite",
            json={"recipeId": "52772", "action": "remove"},
            headers=auth_headers,
        )

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "body",
        [
            {"action": "add"},
            {"recipeId": "52772"},
            {"recipeId": 52772, "action": "add"},
            {"recipeId": "52772", "action": "toggle"},
            {"recipeId": "", "action": "add"},
        ],
    )
    async def test_malformed_body_is_bad_request(
        self, client: AsyncClient, auth_headers: dict, body: dict
    ):
        response = await client.post("/api/v1/favorite", json=body, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    async def test_favorite_requires_authentication(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/favorite", json={"recipeId": "52772", "action": "add"}
        )

        assert response.status_code == 401

    async def test_list_favorites(self, client: AsyncClient, auth_headers: dict):
        for recipe_id in ("53049", "52772"):
            await client.post(
                "/api/v1/favorite",
                json={"recipeId": recipe_id, "action": "add"},
                headers=auth_headers,
            )

        response = await client.get("/api/v1/favorites", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"recipeIds": ["52772", "53049"]}

    async def test_other_endpoints_keep_422(self, client: AsyncClient):
        """Only the favorite endpoint maps validation errors to 400."""
        response = await client.post("/api/v1/auth/login", json={"email": "cook@example.com"})

        assert response.status_code == 422

    async def test_store_failure_is_server_error(self, client: AsyncClient, auth_headers: dict):
        from recipebox.dependencies import get_favorite_synchronizer
        from recipebox.main import app

        store = FavoriteStore()
        store.find = AsyncMock(side_effect=UpstreamFailureException("Favorite store unavailable"))  # type: ignore[method-assign]
        app.dependency_overrides[get_favorite_synchronizer] = lambda: FavoriteSynchronizer(store)

        response = await client.post(
            "/api/v1/favorite",
            json={"recipeId": "52772", "action": "add"},
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Favorite store unavailable"
