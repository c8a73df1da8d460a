"""Session projection: the per-request view of an identity record."""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from recipebox.schemas.auth import SessionView
from recipebox.services.identity_store import IdentityStore


def to_session_view(user: dict) -> SessionView:
    """Project an identity record onto the session-visible fields."""
    return SessionView(
        id=user["id"],
        display_name=user.get("display_name") or user["email"],
        role=user["role"],
        provider=user["provider"],
    )


class SessionProjector:
    """Read-through session view. Nothing is cached between calls."""

    def __init__(self, store: IdentityStore):
        self.store = store

    async def project(self, db: AsyncSession, identity_id: UUID) -> SessionView | None:
        """Re-read the identity and build its session view.

        Returns None (expired) when the identity no longer exists.
        """
        user = await self.store.find_by_id(db, identity_id)
        if user is None:
            return None
        return to_session_view(user)
