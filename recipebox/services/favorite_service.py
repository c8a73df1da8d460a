"""Favorite synchronization between the client cache and the favorite store."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.services.favorite_store import FavoriteStore

logger = get_logger(__name__)


class FavoriteStatus(str, Enum):
    """Outcome of a favorite mutation."""

    ADDED = "added"
    ALREADY_FAVORITE = "already_favorite"
    REMOVED = "removed"
    NOT_FAVORITE = "not_favorite"


class FavoriteSynchronizer:
    """Idempotent add/remove of favorites.

    ``add`` checks then inserts, which is not atomic; the store's primary key
    on (user_id, recipe_id) decides the race and the loser reports
    ALREADY_FAVORITE.
    """

    def __init__(self, store: FavoriteStore | None = None):
        self.store = store or FavoriteStore()

    async def add(self, db: AsyncSession, user_id: UUID, recipe_id: str) -> FavoriteStatus:
        """Favorite ``recipe_id`` for ``user_id``."""
        if await self.store.find(db, user_id, recipe_id) is not None:
            return FavoriteStatus.ALREADY_FAVORITE

        if not await self.store.create(db, user_id, recipe_id):
            logger.info("favorite_add_raced", user_id=str(user_id), recipe_id=recipe_id)
            return FavoriteStatus.ALREADY_FAVORITE

        logger.info("favorite_added", user_id=str(user_id), recipe_id=recipe_id)
        return FavoriteStatus.ADDED

    async def remove(self, db: AsyncSession, user_id: UUID, recipe_id: str) -> FavoriteStatus:
        """Unfavorite ``recipe_id`` for ``user_id``."""
        if not await self.store.delete(db, user_id, recipe_id):
            return FavoriteStatus.NOT_FAVORITE

        logger.info("favorite_removed", user_id=str(user_id), recipe_id=recipe_id)
        return FavoriteStatus.REMOVED

    async def list(self, db: AsyncSession, user_id: UUID) -> list[str]:
        """Favorited recipe ids, used once per session to seed the client cache."""
        return await self.store.list_by_user(db, user_id)


@dataclass(frozen=True)
class CacheReload:
    """What a server reload changed in the client cache."""

    added: frozenset[str] = frozenset()
    removed: frozenset[str] = frozenset()
    discarded_pending: frozenset[str] = frozenset()


@dataclass
class FavoriteCache:
    """Client-held favorite set with optimistic toggles.

    ``load`` replaces the cache with the server list unconditionally. A toggle
    the server has not acknowledged yet is dropped by a reload and reported in
    ``CacheReload.discarded_pending``; it is not merged back.
    """

    recipe_ids: set[str] = field(default_factory=set)
    pending: dict[str, str] = field(default_factory=dict)

    def is_favorite(self, recipe_id: str) -> bool:
        return recipe_id in self.recipe_ids

    def toggle(self, recipe_id: str) -> str:
        """Flip the local state and return the action to send ("add" or "remove")."""
        if recipe_id in self.recipe_ids:
            self.recipe_ids.discard(recipe_id)
            action = "remove"
        else:
            self.recipe_ids.add(recipe_id)
            action = "add"
        self.pending[recipe_id] = action
        return action

    def acknowledge(self, recipe_id: str) -> None:
        """The server accepted the pending toggle for ``recipe_id``."""
        self.pending.pop(recipe_id, None)

    def load(self, server_ids: Iterable[str]) -> CacheReload:
        """Overwrite the cache with the authoritative server list."""
        server = set(server_ids)
        discarded = frozenset(
            recipe_id
            for recipe_id, action in self.pending.items()
            if (action == "add") != (recipe_id in server)
        )
        change = CacheReload(
            added=frozenset(server - self.recipe_ids),
            removed=frozenset(self.recipe_ids - server),
            discarded_pending=discarded,
        )
        self.recipe_ids = server
        self.pending.clear()
        return change
