"""Profile and credential mutators for the signed-in identity."""

import asyncio
from dataclasses import dataclass
from pathlib import PurePosixPath
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UpstreamFailureException,
    ValidationException,
)
from recipebox.core.security import PasswordHasher
from recipebox.core.storage import (
    ALLOWED_IMAGE_TYPES,
    BlobStore,
    build_object_key,
    key_belongs_to,
)
from recipebox.schemas.auth import SessionView
from recipebox.services.credential_service import validate_email, validate_password
from recipebox.services.identity_store import IdentityStore

logger = get_logger(__name__)

ALLOWED_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})


@dataclass(frozen=True)
class AvatarChange:
    """Result of pointing an identity at a new avatar."""

    user: dict
    previous_avatar_deleted: bool
    warning: str | None = None

    @property
    def degraded(self) -> bool:
        """The new avatar is set but the old blob could not be removed."""
        return self.warning is not None


class ProfileService:
    """Mutations of an identity by its owner.

    Authorization is identity equality: the session's id must be the target
    user id. Roles play no part.
    """

    def __init__(
        self,
        store: IdentityStore,
        hasher: PasswordHasher,
        blob_store: BlobStore | None = None,
    ):
        self.store = store
        self.hasher = hasher
        self.blob_store = blob_store

    @staticmethod
    def _authorize(session: SessionView, user_id: UUID) -> None:
        if session.id != user_id:
            logger.warning(
                "profile_mutation_forbidden",
                session_id=str(session.id),
                target_id=str(user_id),
            )
            raise ForbiddenException("You can only modify your own account")

    async def _load(self, db: AsyncSession, user_id: UUID) -> dict:
        user = await self.store.find_by_id(db, user_id)
        if user is None:
            raise NotFoundException("User not found")
        return user

    async def _update(self, db: AsyncSession, user_id: UUID, **fields) -> dict:
        user = await self.store.update_fields(db, user_id, **fields)
        if user is None:
            raise NotFoundException("User not found")
        return user

    def _owned_key(self, uri: str | None, user_id: UUID) -> str | None:
        """Key of a blob this identity uploaded, None for anything else."""
        if not uri or self.blob_store is None:
            return None
        key = self.blob_store.key_from_url(uri)
        if key is None or not key_belongs_to(key, user_id):
            return None
        return key

    def _require_blob_store(self) -> BlobStore:
        if self.blob_store is None:
            raise UpstreamFailureException("Avatar storage is not configured")
        return self.blob_store

    async def get_profile(self, db: AsyncSession, session: SessionView, user_id: UUID) -> dict:
        """Full identity record of the session's own account."""
        self._authorize(session, user_id)
        return await self._load(db, user_id)

    async def edit_profile(
        self,
        db: AsyncSession,
        session: SessionView,
        user_id: UUID,
        *,
        display_name: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> dict:
        """Update name fields. A new display name must not be used by anyone else."""
        self._authorize(session, user_id)
        user = await self._load(db, user_id)

        fields: dict = {}
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name:
                raise ValidationException("Display name cannot be empty")
            if display_name != user["display_name"]:
                taken = await self.store.find_by_display_name(db, display_name, exclude_id=user_id)
                if taken is not None:
                    raise ConflictException("Username already in use")
            fields["display_name"] = display_name
        if first_name is not None:
            fields["first_name"] = first_name.strip() or None
        if last_name is not None:
            fields["last_name"] = last_name.strip() or None

        if not fields:
            return user
        return await self._update(db, user_id, **fields)

    async def change_email(
        self, db: AsyncSession, session: SessionView, user_id: UUID, new_email: str
    ) -> dict:
        """Move a credential account to a new email address.

        Raises:
            ForbiddenException: If the session does not own ``user_id``
            ValidationException: For a malformed email or a provider account
            ConflictException: If another record already owns the email
        """
        self._authorize(session, user_id)
        new_email = validate_email(new_email)
        user = await self._load(db, user_id)

        if user["provider"] != "credential":
            raise ValidationException(f"Email is managed by {user['provider']} for this account")

        owner = await self.store.find_by_email(db, new_email)
        if owner is not None and owner["id"] != user_id:
            raise ConflictException("Email is already in use by another user")

        # The unique index still decides if another request claims it meanwhile.
        updated = await self._update(db, user_id, email=new_email)
        logger.info("email_changed", user_id=str(user_id))
        return updated

    async def change_password(
        self, db: AsyncSession, session: SessionView, user_id: UUID, new_password: str
    ) -> dict:
        """Rehash and replace the password of a credential account."""
        self._authorize(session, user_id)
        validate_password(new_password)
        user = await self._load(db, user_id)

        if user["provider"] != "credential":
            raise ValidationException(f"Password sign-in is not available for {user['provider']} accounts")

        updated = await self._update(db, user_id, password_hash=self.hasher.hash(new_password))
        logger.info("password_changed", user_id=str(user_id))
        return updated

    async def change_avatar(
        self, db: AsyncSession, session: SessionView, user_id: UUID, new_uri: str
    ) -> AvatarChange:
        """Point the identity at ``new_uri`` and delete the old hosted blob.

        A ``new_uri`` in our bucket must be one of this identity's own uploads.
        Only blobs under the identity's own key prefix are ever deleted. The old
        blob is removed after the record update. A failed removal does not undo
        the update; it is reported through ``AvatarChange.warning``.
        """
        self._authorize(session, user_id)
        if (
            self.blob_store is not None
            and self.blob_store.key_from_url(new_uri) is not None
            and self._owned_key(new_uri, user_id) is None
        ):
            logger.warning("avatar_foreign_blob_rejected", user_id=str(user_id))
            raise ForbiddenException("Avatar image was not uploaded by this account")

        user = await self._load(db, user_id)
        previous = user.get("avatar_uri")

        updated = await self._update(db, user_id, avatar_uri=new_uri)

        if previous == new_uri:
            return AvatarChange(user=updated, previous_avatar_deleted=False)

        old_key = self._owned_key(previous, user_id)
        if old_key is None:
            # Provider picture, external URL or someone else's blob.
            return AvatarChange(user=updated, previous_avatar_deleted=False)

        try:
            await asyncio.to_thread(self.blob_store.delete, old_key)
        except Exception as e:
            logger.warning(
                "avatar_cleanup_failed",
                user_id=str(user_id),
                key=old_key,
                error=str(e),
            )
            return AvatarChange(
                user=updated,
                previous_avatar_deleted=False,
                warning="Avatar updated but the previous image could not be deleted",
            )

        return AvatarChange(user=updated, previous_avatar_deleted=True)

    async def upload_avatar(
        self,
        db: AsyncSession,
        session: SessionView,
        user_id: UUID,
        *,
        filename: str,
        content_type: str,
        data: bytes,
        folder: str,
    ) -> AvatarChange:
        """Store an uploaded image and make it the identity's avatar.

        The file type is checked before the blob store is touched.
        """
        self._authorize(session, user_id)

        extension = PurePosixPath(filename or "").suffix.lower()
        if content_type not in ALLOWED_IMAGE_TYPES or (
            extension and extension not in ALLOWED_IMAGE_EXTENSIONS
        ):
            raise ValidationException("Invalid file type")
        if not data:
            raise ValidationException("File is empty")
        if ".." in folder.split("/"):
            raise ValidationException("Invalid folder")

        blob_store = self._require_blob_store()
        await self._load(db, user_id)

        key = build_object_key(folder, user_id, filename)
        try:
            url = await asyncio.to_thread(blob_store.put, key, data, content_type)
        except Exception as e:
            logger.error("avatar_upload_failed", user_id=str(user_id), key=key, error=str(e))
            raise UpstreamFailureException("File upload failed") from e

        try:
            stored = await asyncio.to_thread(blob_store.head_check, key)
        except Exception as e:
            logger.error("avatar_upload_unverified", user_id=str(user_id), key=key, error=str(e))
            await self._discard_upload(blob_store, key)
            raise UpstreamFailureException("File upload failed") from e

        if not stored:
            logger.error("avatar_upload_missing", user_id=str(user_id), key=key)
            await self._discard_upload(blob_store, key)
            raise UpstreamFailureException("File upload failed")

        return await self.change_avatar(db, session, user_id, url)

    @staticmethod
    async def _discard_upload(blob_store: BlobStore, key: str) -> None:
        """Best-effort removal of an upload that never became an avatar."""
        try:
            await asyncio.to_thread(blob_store.delete, key)
        except Exception as e:
            logger.warning("avatar_upload_cleanup_failed", key=key, error=str(e))

    async def remove_avatar(self, db: AsyncSession, session: SessionView, user_id: UUID) -> dict:
        """Delete the hosted avatar blob and clear the pointer."""
        self._authorize(session, user_id)
        user = await self._load(db, user_id)

        avatar_uri = user.get("avatar_uri")
        if not avatar_uri:
            raise NotFoundException("Avatar not found")

        key = self._owned_key(avatar_uri, user_id)
        if key is not None:
            try:
                await asyncio.to_thread(self.blob_store.delete, key)
            except Exception as e:
                logger.error("avatar_delete_failed", user_id=str(user_id), key=key, error=str(e))
                raise UpstreamFailureException("Failed to delete image") from e

        return await self._update(db, user_id, avatar_uri=None)
