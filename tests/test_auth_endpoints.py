"""Tests for authentication endpoints."""

from unittest.mock import MagicMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from recipebox.core.redis_client import CacheManager
from recipebox.core.security import decode_access_token, decode_refresh_token, password_hasher
from recipebox.schemas.auth import ProviderAssertion
from recipebox.services.auth_service import (
    AuthFailed,
    AuthService,
    CredentialAuth,
    CredentialAuthenticator,
    ProviderAuth,
    ProviderAuthenticator,
)
from recipebox.services.credential_service import CredentialVerifier
from recipebox.services.identity_store import IdentityStore
from recipebox.services.provider_service import ProviderReconciler


def google_assertion(email: str = "nigella@example.com") -> ProviderAssertion:
    return ProviderAssertion(
        provider="google",
        email=email,
        display_name="Nigella Lawson",
        avatar_url="https://lh3.example.com/nigella.jpg",
        provider_id="google-uid-1",
    )


@pytest.mark.asyncio
class TestAuthenticators:
    """Tests for authentication outcome dispatch."""

    async def test_credential_outcomes(
        self, db_session: AsyncSession, identity_store: IdentityStore, test_user: dict
    ):
        verifier = CredentialVerifier(identity_store, password_hasher)

        ok = await CredentialAuthenticator(
            verifier, "cook@example.com", "correct-horse"
        ).authenticate(db_session)
        failed = await CredentialAuthenticator(
            verifier, "cook@example.com", "nope-nope"
        ).authenticate(db_session)

        assert isinstance(ok, CredentialAuth)
        assert ok.record["id"] == test_user["id"]
        assert isinstance(failed, AuthFailed)

    async def test_provider_outcomes(
        self, db_session: AsyncSession, identity_store: IdentityStore, test_user: dict
    ):
        reconciler = ProviderReconciler(identity_store)

        ok = await ProviderAuthenticator(reconciler, google_assertion()).authenticate(db_session)
        mismatch = await ProviderAuthenticator(
            reconciler, google_assertion("cook@example.com")
        ).authenticate(db_session)

        assert isinstance(ok, ProviderAuth)
        assert ok.record["provider"] == "google"
        assert mismatch == AuthFailed(reason="provider_mismatch")

    async def test_tokens_carry_only_identity_id(self, mock_redis: MagicMock):
        tokens = AuthService(CacheManager(mock_redis)).create_tokens("abc")

        access = decode_access_token(tokens.access_token)
        assert set(access) == {"sub", "type", "iat", "exp"}
        assert access["sub"] == "abc"
        assert decode_refresh_token(tokens.access_token) is None
        assert decode_refresh_token(tokens.refresh_token)["sub"] == "abc"


@pytest.mark.asyncio
class TestCredentialEndpoints:
    """Tests for register and login."""

    async def test_register(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "first_name": "Ina",
                "last_name": "Garten",
                "email": "ina@example.com",
                "password": "barefoot-1",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["provider"] == "credential"
        assert data["verified"] is False
        assert "password_hash" not in data

    async def test_register_existing_email(self, client: AsyncClient, test_user: dict):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "first_name": "Julia",
                "last_name": "Child",
                "email": "cook@example.com",
                "password": "another-pass",
            },
        )

        assert response.status_code == 409

    async def test_login(self, client: AsyncClient, test_user: dict):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "cook@example.com", "password": "correct-horse"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["session"] == {
            "id": str(test_user["id"]),
            "display_name": "Julia Child",
            "role": "user",
            "provider": "credential",
        }

        session = await client.get(
            "/api/v1/session", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert session.status_code == 200

    @pytest.mark.parametrize(
        ("email", "password"),
        [
            ("cook@example.com", "wrong-horse"),
            ("nobody@example.com", "correct-horse"),
            ("baker@example.com", "correct-horse"),
        ],
    )
    async def test_login_failures_look_the_same(
        self,
        client: AsyncClient,
        test_user: dict,
        other_user: dict,
        email: str,
        password: str,
    ):
        response = await client.post(
            "/api/v1/auth/login", json={"email": email, "password": password}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    async def test_login_rate_limited(self, client: AsyncClient, mock_redis: MagicMock):
        mock_redis.get.return_value = "1000"

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "cook@example.com", "password": "correct-horse"},
        )

        assert response.status_code == 429


@pytest.mark.asyncio
class TestProviderEndpoint:
    """Tests for provider ID token sign-in."""

    async def test_first_and_repeat_login(self, client: AsyncClient, identity_provider):
        identity_provider.assertions["token-1"] = google_assertion()

        first = await client.post("/api/v1/auth/provider/verify", json={"id_token": "token-1"})
        second = await client.post("/api/v1/auth/provider/verify", json={"id_token": "token-1"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["session"]["id"] == second.json()["session"]["id"]
        assert first.json()["session"]["provider"] == "google"
        assert first.json()["session"]["display_name"] == "Nigella Lawson"

    async def test_invalid_token(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/provider/verify", json={"id_token": "forged"})

        assert response.status_code == 401

    async def test_email_of_credential_account(
        self, client: AsyncClient, identity_provider, test_user: dict
    ):
        identity_provider.assertions["token-2"] = google_assertion("cook@example.com")

        response = await client.post("/api/v1/auth/provider/verify", json={"id_token": "token-2"})

        assert response.status_code == 401


@pytest.mark.asyncio
class TestTokenLifecycle:
    """Tests for refresh and logout."""

    async def test_refresh(self, client: AsyncClient, test_user: dict):
        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "cook@example.com", "password": "correct-horse"},
        )

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]}
        )

        assert response.status_code == 200
        assert decode_access_token(response.json()["access_token"])["sub"] == str(test_user["id"])

    async def test_refresh_rejects_access_token(self, client: AsyncClient, auth_headers: dict):
        access_token = auth_headers["Authorization"].removeprefix("Bearer ")

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})

        assert response.status_code == 401

    async def test_logout_revokes_refresh_token(
        self, client: AsyncClient, test_user: dict, mock_redis: MagicMock
    ):
        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "cook@example.com", "password": "correct-horse"},
        )
        refresh_token = login.json()["refresh_token"]

        response = await client.post("/api/v1/auth/logout", json={"refresh_token": refresh_token})

        assert response.status_code == 204
        mock_redis.setex.assert_any_call(f"blacklist:{refresh_token}", 30 * 86400, "1")

        mock_redis.exists.return_value = 1
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})
        assert response.status_code == 401
