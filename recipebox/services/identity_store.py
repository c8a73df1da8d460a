"""Identity store: durable identity records keyed by email."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.core.exceptions import ConflictException
from recipebox.core.logging_safety import safe_log_identifier
from recipebox.database import translate_store_errors
from recipebox.models.users import users

logger = get_logger(__name__)

# Fields that may never change after creation.
IMMUTABLE_FIELDS = frozenset({"id", "provider", "created_at"})


def normalize_email(email: str) -> str:
    """Canonical stored form of an email address."""
    return email.strip().lower()


class IdentityStore:
    """Persistence for identity records.

    Uniqueness of ``email`` is enforced by the database; a duplicate insert or
    update surfaces as ``ConflictException`` no matter what the caller checked
    beforehand.
    """

    async def _first(self, db: AsyncSession, query: Any, operation: str) -> dict | None:
        with translate_store_errors("identity", operation):
            result = await db.execute(query)
        row = result.mappings().first()
        return dict(row) if row else None

    async def find_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get identity record by internal ID."""
        return await self._first(db, select(users).where(users.c.id == user_id), "find_by_id")

    async def find_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get identity record by email."""
        query = select(users).where(users.c.email == normalize_email(email))
        return await self._first(db, query, "find_by_email")

    async def find_by_email_and_provider(
        self, db: AsyncSession, email: str, provider: str
    ) -> dict | None:
        """Get identity record by email, only if it was created by ``provider``."""
        query = select(users).where(
            and_(users.c.email == normalize_email(email), users.c.provider == provider)
        )
        return await self._first(db, query, "find_by_email_and_provider")

    async def find_by_display_name(
        self, db: AsyncSession, display_name: str, exclude_id: UUID | None = None
    ) -> dict | None:
        """Get a record using ``display_name``, optionally ignoring one identity."""
        query = select(users).where(users.c.display_name == display_name)
        if exclude_id is not None:
            query = query.where(users.c.id != exclude_id)
        return await self._first(db, query.limit(1), "find_by_display_name")

    async def create(
        self,
        db: AsyncSession,
        *,
        email: str,
        provider: str,
        password_hash: str | None = None,
        display_name: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        avatar_uri: str | None = None,
        verified: bool = False,
        role: str = "user",
    ) -> dict:
        """Insert a new identity record.

        Raises:
            ConflictException: If the email already belongs to a record
        """
        if (provider == "credential") != (password_hash is not None):
            raise ValueError("password_hash must be set if and only if provider is 'credential'")

        query = (
            users.insert()
            .values(
                email=normalize_email(email),
                provider=provider,
                password_hash=password_hash,
                display_name=display_name,
                first_name=first_name,
                last_name=last_name,
                avatar_uri=avatar_uri,
                verified=verified,
                role=role,
            )
            .returning(users)
        )

        with translate_store_errors("identity", "create"):
            try:
                result = await db.execute(query)
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConflictException("Email already in use") from e

        user = result.mappings().first()
        if not user:
            raise ValueError("Failed to create identity record")

        user_dict = dict(user)
        logger.info(
            "identity_created",
            user_id=str(user_dict["id"]),
            provider=provider,
            email=safe_log_identifier(user_dict["email"], prefix="email"),
        )
        return user_dict

    async def update_fields(self, db: AsyncSession, user_id: UUID, **fields: Any) -> dict | None:
        """Update mutable fields in place and return the new record.

        Returns None when the identity does not exist.

        Raises:
            ConflictException: If a new email already belongs to another record
        """
        forbidden = IMMUTABLE_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Immutable identity fields: {', '.join(sorted(forbidden))}")

        if "email" in fields and fields["email"] is not None:
            fields["email"] = normalize_email(fields["email"])
        fields["updated_at"] = datetime.now(UTC)

        query = update(users).where(users.c.id == user_id).values(**fields).returning(users)

        with translate_store_errors("identity", "update_fields"):
            try:
                result = await db.execute(query)
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConflictException("Email already in use") from e

        user = result.mappings().first()
        return dict(user) if user else None

    async def touch_last_login(self, db: AsyncSession, user_id: UUID) -> None:
        """Update the identity's last login timestamp."""
        query = update(users).where(users.c.id == user_id).values(last_login_at=datetime.now(UTC))
        with translate_store_errors("identity", "touch_last_login"):
            await db.execute(query)
            await db.commit()
