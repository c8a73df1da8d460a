"""Authentication endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from recipebox.config import settings
from recipebox.core.exceptions import RateLimitException, UnauthorizedException
from recipebox.core.identity_providers import IdentityProvider, IdentityVerificationError
from recipebox.core.redis_client import RateLimiter
from recipebox.dependencies import (
    DatabaseSession,
    RedisClient,
    get_auth_service,
    get_credential_verifier,
    get_identity_provider,
    get_provider_reconciler,
)
from recipebox.schemas.auth import (
    CredentialLoginRequest,
    LoginResponse,
    ProviderLoginRequest,
    Token,
    TokenRefresh,
)
from recipebox.schemas.users import RegisterRequest, UserResponse
from recipebox.services.auth_service import (
    AuthService,
    CredentialAuthenticator,
    ProviderAuthenticator,
)
from recipebox.services.credential_service import CredentialVerifier
from recipebox.services.provider_service import ProviderReconciler
from recipebox.services.session_service import to_session_view

router = APIRouter()


def _login_response(user: dict, tokens: Token) -> LoginResponse:
    return LoginResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
        session=to_session_view(user),
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an email/password account",
)
async def register(
    request: RegisterRequest,
    db: DatabaseSession,
    verifier: Annotated[CredentialVerifier, Depends(get_credential_verifier)],
) -> UserResponse:
    """
    Register a credential account.

    The account starts unverified.

    Raises:
        ValidationException: For a malformed email or password length
        ConflictException: If the email is already registered
    """
    user = await verifier.register(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
    )
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Email/password sign-in",
)
async def login(
    request: CredentialLoginRequest,
    http_request: Request,
    db: DatabaseSession,
    redis_client: RedisClient,
    verifier: Annotated[CredentialVerifier, Depends(get_credential_verifier)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """
    Sign in with email and password and return JWT tokens.

    Every failure answers 401 with the same message.

    Raises:
        RateLimitException: If the client exceeded the sign-in rate limit
        UnauthorizedException: If the credentials are not valid
    """
    client = http_request.client.host if http_request.client else "unknown"
    limiter = RateLimiter(redis_client)
    if not limiter.check_rate_limit(f"rate_limit:login:{client}", settings.rate_limit_per_minute):
        raise RateLimitException()

    user, tokens = await auth_service.sign_in(
        db, CredentialAuthenticator(verifier, request.email, request.password)
    )
    return _login_response(user, tokens)


@router.post(
    "/provider/verify",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Google/GitHub ID token verification",
)
async def provider_verify(
    request: ProviderLoginRequest,
    db: DatabaseSession,
    identity_provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    reconciler: Annotated[ProviderReconciler, Depends(get_provider_reconciler)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """
    Verify a provider ID token and return JWT tokens.

    The client completes the Google or GitHub sign-in through Firebase and
    sends the resulting ID token. The first sign-in creates a verified
    identity; later ones reuse it.

    Raises:
        UnauthorizedException: If the token is invalid or the email belongs
            to an account of another provider
    """
    try:
        assertion = await identity_provider.verify(request.id_token)
    except IdentityVerificationError as e:
        raise UnauthorizedException(f"Authentication failed: {e!s}")

    user, tokens = await auth_service.sign_in(db, ProviderAuthenticator(reconciler, assertion))
    return _login_response(user, tokens)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    summary="Refresh access token",
)
async def refresh_token(
    request: TokenRefresh,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> Token:
    """
    Refresh access token using refresh token.

    Raises:
        UnauthorizedException: If refresh token is invalid or revoked
    """
    return auth_service.refresh_access_token(request.refresh_token)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Logout and revoke tokens",
)
async def logout(
    request: TokenRefresh,
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> None:
    """
    Logout user by revoking refresh token.

    Args:
        request: Refresh token to revoke
    """
    auth_service.revoke_token(request.refresh_token)
