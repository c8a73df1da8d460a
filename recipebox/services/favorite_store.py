"""Favorite store: existence-only (user, recipe) markers."""

from uuid import UUID

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.core.exceptions import UpstreamFailureException
from recipebox.database import translate_store_errors
from recipebox.models.favorites import favorites

logger = get_logger(__name__)


def _pair(user_id: UUID, recipe_id: str):
    return and_(favorites.c.user_id == user_id, favorites.c.recipe_id == recipe_id)


class FavoriteStore:
    """Persistence for favorite records, unique on (user_id, recipe_id)."""

    async def find(self, db: AsyncSession, user_id: UUID, recipe_id: str) -> dict | None:
        """Get the favorite record for a pair, if any."""
        with translate_store_errors("favorite", "find"):
            result = await db.execute(select(favorites).where(_pair(user_id, recipe_id)))
        row = result.mappings().first()
        return dict(row) if row else None

    async def create(self, db: AsyncSession, user_id: UUID, recipe_id: str) -> bool:
        """Insert a favorite record.

        Returns False when the pair already exists (the primary key rejected
        the insert), True when a new record was written. Any other integrity
        failure, such as the owning account being gone, raises
        ``UpstreamFailureException``.
        """
        with translate_store_errors("favorite", "create"):
            try:
                await db.execute(favorites.insert().values(user_id=user_id, recipe_id=recipe_id))
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if await self.find(db, user_id, recipe_id) is not None:
                    return False
                logger.error(
                    "favorite_insert_rejected",
                    user_id=str(user_id),
                    recipe_id=recipe_id,
                    error=str(e.orig),
                )
                raise UpstreamFailureException("Favorite could not be saved") from e
        return True

    async def delete(self, db: AsyncSession, user_id: UUID, recipe_id: str) -> bool:
        """Delete a favorite record. Returns False when there was nothing to delete."""
        with translate_store_errors("favorite", "delete"):
            result = await db.execute(delete(favorites).where(_pair(user_id, recipe_id)))
            await db.commit()
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def list_by_user(self, db: AsyncSession, user_id: UUID) -> list[str]:
        """All favorited recipe ids for a user."""
        query = (
            select(favorites.c.recipe_id)
            .where(favorites.c.user_id == user_id)
            .order_by(favorites.c.recipe_id)
        )
        with translate_store_errors("favorite", "list_by_user"):
            result = await db.execute(query)
        return list(result.scalars().all())
