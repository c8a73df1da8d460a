"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

import redis
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from recipebox.core.exceptions import UnauthorizedException
from recipebox.core.identity_providers import FirebaseIdentityProvider, IdentityProvider
from recipebox.core.redis_client import CacheManager, get_redis_client
from recipebox.core.security import PasswordHasher, decode_access_token, password_hasher
from recipebox.core.storage import BlobStore, get_blob_store
from recipebox.database import get_db
from recipebox.schemas.auth import SessionView
from recipebox.services.auth_service import AuthService
from recipebox.services.credential_service import CredentialVerifier
from recipebox.services.favorite_service import FavoriteSynchronizer
from recipebox.services.identity_store import IdentityStore
from recipebox.services.profile_service import ProfileService
from recipebox.services.provider_service import ProviderReconciler
from recipebox.services.session_service import SessionProjector

# Security
security = HTTPBearer(auto_error=False)


def get_identity_store() -> IdentityStore:
    return IdentityStore()


def get_password_hasher() -> PasswordHasher:
    return password_hasher


def get_identity_provider() -> IdentityProvider:
    return FirebaseIdentityProvider()


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    return CacheManager(redis_client)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """
    Extract and validate the identity id from the access token.

    Raises:
        UnauthorizedException: If the token is missing, invalid or expired
    """
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthorizedException("User is not authenticated.")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Could not validate credentials")

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise UnauthorizedException("Could not validate credentials")

    try:
        return UUID(user_id_str)
    except ValueError:
        raise UnauthorizedException("Invalid user ID format")


async def get_current_session(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
    store: Annotated[IdentityStore, Depends(get_identity_store)],
) -> SessionView:
    """
    Re-derive the session view from the identity store for this request.

    Raises:
        UnauthorizedException: If the identity no longer exists
    """
    session = await SessionProjector(store).project(db, user_id)
    if session is None:
        raise UnauthorizedException("Session expired")
    return session


def get_credential_verifier(
    store: Annotated[IdentityStore, Depends(get_identity_store)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> CredentialVerifier:
    return CredentialVerifier(store, hasher)


def get_provider_reconciler(
    store: Annotated[IdentityStore, Depends(get_identity_store)],
) -> ProviderReconciler:
    return ProviderReconciler(store)


def get_auth_service(
    cache_manager: Annotated[CacheManager, Depends(get_cache_manager)],
    store: Annotated[IdentityStore, Depends(get_identity_store)],
) -> AuthService:
    return AuthService(cache_manager, store)


def get_profile_service(
    store: Annotated[IdentityStore, Depends(get_identity_store)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
) -> ProfileService:
    return ProfileService(store, hasher, blob_store)


def get_favorite_synchronizer() -> FavoriteSynchronizer:
    return FavoriteSynchronizer()


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentSession = Annotated[SessionView, Depends(get_current_session)]
RedisClient = Annotated[redis.Redis, Depends(get_redis_client)]
