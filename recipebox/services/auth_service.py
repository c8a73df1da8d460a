"""Authentication dispatch and token lifecycle."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.config import settings
from recipebox.core.exceptions import ConflictException, UnauthorizedException
from recipebox.core.redis_client import CacheManager
from recipebox.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from recipebox.schemas.auth import ProviderAssertion, Token
from recipebox.services.credential_service import CredentialVerifier
from recipebox.services.identity_store import IdentityStore
from recipebox.services.provider_service import ProviderReconciler

logger = get_logger(__name__)


@dataclass(frozen=True)
class CredentialAuth:
    """Successful email/password authentication."""

    record: dict


@dataclass(frozen=True)
class ProviderAuth:
    """Successful Google/GitHub authentication."""

    record: dict


@dataclass(frozen=True)
class AuthFailed:
    """Authentication failure. ``reason`` is for server-side diagnostics only."""

    reason: str


AuthOutcome = CredentialAuth | ProviderAuth | AuthFailed


class Authenticator(ABC):
    """One way of proving an identity."""

    @abstractmethod
    async def authenticate(self, db: AsyncSession) -> AuthOutcome:
        """Resolve the attempt to an outcome."""


class CredentialAuthenticator(Authenticator):
    """Email/password attempt, checked by the credential verifier."""

    def __init__(self, verifier: CredentialVerifier, email: str, password: str):
        self.verifier = verifier
        self.email = email
        self.password = password

    async def authenticate(self, db: AsyncSession) -> AuthOutcome:
        user = await self.verifier.verify(db, self.email, self.password)
        if user is None:
            return AuthFailed(reason="invalid_credentials")
        return CredentialAuth(record=user)


class ProviderAuthenticator(Authenticator):
    """Verified provider assertion, reconciled onto a local identity."""

    def __init__(self, reconciler: ProviderReconciler, assertion: ProviderAssertion):
        self.reconciler = reconciler
        self.assertion = assertion

    async def authenticate(self, db: AsyncSession) -> AuthOutcome:
        try:
            user = await self.reconciler.reconcile(db, self.assertion)
        except ConflictException:
            return AuthFailed(reason="provider_mismatch")
        return ProviderAuth(record=user)


class AuthService:
    """Sign-in, token refresh and revocation."""

    def __init__(self, cache_manager: CacheManager, store: IdentityStore | None = None):
        """Initialize auth service with cache manager."""
        self.cache = cache_manager
        self.store = store or IdentityStore()

    async def sign_in(self, db: AsyncSession, authenticator: Authenticator) -> tuple[dict, Token]:
        """
        Run an authentication attempt and issue tokens for the resolved identity.

        Args:
            db: Database session
            authenticator: Credential or provider attempt

        Returns:
            Tuple of (identity record, token pair)

        Raises:
            UnauthorizedException: If the attempt failed, without saying why
        """
        outcome = await authenticator.authenticate(db)

        if isinstance(outcome, AuthFailed):
            logger.info("sign_in_failed", reason=outcome.reason)
            raise UnauthorizedException("Invalid credentials")

        user = outcome.record
        await self.store.touch_last_login(db, user["id"])
        logger.info(
            "sign_in_succeeded",
            user_id=str(user["id"]),
            method="credential" if isinstance(outcome, CredentialAuth) else user["provider"],
        )
        return user, self.create_tokens(str(user["id"]))

    def create_tokens(self, user_id: str) -> Token:
        """
        Create access and refresh tokens for a user.

        Args:
            user_id: Identity id

        Returns:
            Token pair (access and refresh)
        """
        access_token = create_access_token(
            data={"sub": user_id},
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )

        refresh_token = create_refresh_token(
            data={"sub": user_id},
            expires_delta=timedelta(days=settings.refresh_token_expire_days),
        )

        return Token(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
        )

    def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Create new token pair from refresh token.

        Raises:
            UnauthorizedException: If refresh token is invalid or revoked
        """
        payload = decode_refresh_token(refresh_token)

        if payload is None:
            raise UnauthorizedException("Invalid refresh token")

        user_id = payload.get("sub")
        if user_id is None:
            raise UnauthorizedException("Invalid refresh token")

        if self.cache.exists(f"blacklist:{refresh_token}"):
            raise UnauthorizedException("Token has been revoked")

        return self.create_tokens(user_id)

    def revoke_token(self, token: str, ttl: int | None = None) -> None:
        """
        Revoke a refresh token by adding it to blacklist.

        Args:
            token: Token to revoke
            ttl: Blacklist entry lifetime, defaults to the refresh token lifetime
        """
        self.cache.set(
            f"blacklist:{token}",
            "1",
            ttl=ttl or settings.refresh_token_expire_days * 86400,
        )
