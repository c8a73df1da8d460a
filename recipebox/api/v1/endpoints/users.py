"""User profile endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from recipebox.config import settings
from recipebox.dependencies import CurrentSession, DatabaseSession, get_profile_service
from recipebox.schemas.users import (
    AvatarChangeResponse,
    AvatarUriChange,
    EmailChange,
    PasswordChange,
    ProfileUpdate,
    UserResponse,
)
from recipebox.services.profile_service import AvatarChange, ProfileService

router = APIRouter(prefix="/users", tags=["Users"])

ProfileServiceDep = Annotated[ProfileService, Depends(get_profile_service)]


def _avatar_response(change: AvatarChange) -> AvatarChangeResponse:
    return AvatarChangeResponse(
        avatar_uri=change.user["avatar_uri"],
        old_avatar_removed=change.previous_avatar_deleted,
        degraded=change.degraded,
        warning=change.warning,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
):
    """Get the signed-in user's own profile."""
    user = await profile_service.get_profile(db, session, user_id)
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    user_data: ProfileUpdate,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
):
    """Update display name and real name fields."""
    user = await profile_service.edit_profile(
        db,
        session,
        user_id,
        display_name=user_data.display_name,
        first_name=user_data.first_name,
        last_name=user_data.last_name,
    )
    return UserResponse.model_validate(user)


@router.put("/{user_id}/email", response_model=UserResponse)
async def change_email(
    user_id: UUID,
    request: EmailChange,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
):
    """Change the email of a credential account."""
    user = await profile_service.change_email(db, session, user_id, request.email)
    return UserResponse.model_validate(user)


@router.put("/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    user_id: UUID,
    request: PasswordChange,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
) -> None:
    """Change the password of a credential account."""
    await profile_service.change_password(db, session, user_id, request.password)


@router.post("/{user_id}/avatar", response_model=AvatarChangeResponse)
async def upload_avatar(
    user_id: UUID,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
    file: Annotated[UploadFile, File()],
    folder: Annotated[str | None, Form()] = None,
):
    """
    Upload a new avatar image.

    Accepts JPEG, PNG and WEBP. A response with ``degraded`` set means the new
    avatar is in place but the previous image is still stored.
    """
    data = await file.read()
    change = await profile_service.upload_avatar(
        db,
        session,
        user_id,
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=data,
        folder=folder or settings.avatar_folder,
    )
    return _avatar_response(change)


@router.put("/{user_id}/avatar", response_model=AvatarChangeResponse)
async def set_avatar(
    user_id: UUID,
    request: AvatarUriChange,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
):
    """Point the avatar at an already stored image."""
    change = await profile_service.change_avatar(db, session, user_id, request.avatar_uri)
    return _avatar_response(change)


@router.delete("/{user_id}/avatar", status_code=status.HTTP_204_NO_CONTENT)
async def delete_avatar(
    user_id: UUID,
    session: CurrentSession,
    db: DatabaseSession,
    profile_service: ProfileServiceDep,
) -> None:
    """Delete the stored avatar image and clear it from the profile."""
    await profile_service.remove_avatar(db, session, user_id)
