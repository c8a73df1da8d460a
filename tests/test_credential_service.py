"""Tests for credential verification and sign-up."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from recipebox.core.exceptions import ConflictException, ValidationException
from recipebox.core.security import PasswordHasher, password_hasher
from recipebox.services.credential_service import (
    CredentialVerifier,
    validate_email,
    validate_password,
)
from recipebox.services.identity_store import IdentityStore


@pytest.fixture
def verifier(identity_store: IdentityStore) -> CredentialVerifier:
    return CredentialVerifier(identity_store, password_hasher)


class TestValidation:
    """Tests for email and password format rules."""

    def test_validate_email_normalizes(self):
        assert validate_email(" Cook@Example.com ") == "cook@example.com"

    @pytest.mark.parametrize("email", ["", "not-an-email", "cook@", "@example.com"])
    def test_validate_email_rejects_malformed(self, email: str):
        with pytest.raises(ValidationException):
            validate_email(email)

    def test_password_bounds(self):
        """Passwords of 8 and 32 characters pass; 7 and 33 do not."""
        assert validate_password("a" * 8) == "a" * 8
        assert validate_password("a" * 32) == "a" * 32

        with pytest.raises(ValidationException):
            validate_password("a" * 7)
        with pytest.raises(ValidationException):
            validate_password("a" * 33)


class TestPasswordHasher:
    def test_hash_and_verify(self):
        hasher = PasswordHasher(rounds=4)
        digest = hasher.hash("correct-horse")

        assert digest != "correct-horse"
        assert hasher.verify("correct-horse", digest)
        assert not hasher.verify("wrong-horse", digest)

    def test_malformed_digest_never_verifies(self):
        hasher = PasswordHasher(rounds=4)

        assert not hasher.verify("correct-horse", "not-a-bcrypt-hash")
        assert not hasher.verify("correct-horse", None)


@pytest.mark.asyncio
class TestCredentialVerifier:
    """Tests for email/password verification."""

    async def test_valid_credentials(
        self, db_session: AsyncSession, verifier: CredentialVerifier, test_user: dict
    ):
        user = await verifier.verify(db_session, "Cook@Example.com", "correct-horse")
        assert user is not None
        assert user["id"] == test_user["id"]

    async def test_failures_are_indistinguishable(
        self,
        db_session: AsyncSession,
        verifier: CredentialVerifier,
        test_user: dict,
        other_user: dict,
    ):
        """Wrong password, unknown email and provider accounts all return None."""
        assert await verifier.verify(db_session, "cook@example.com", "wrong-horse") is None
        assert await verifier.verify(db_session, "nobody@example.com", "correct-horse") is None
        assert await verifier.verify(db_session, "baker@example.com", "correct-horse") is None
        assert await verifier.verify(db_session, "not-an-email", "correct-horse") is None
        assert await verifier.verify(db_session, "cook@example.com", "short") is None

    async def test_register_creates_unverified_credential_account(
        self, db_session: AsyncSession, verifier: CredentialVerifier
    ):
        user = await verifier.register(
            db_session,
            first_name="Ina",
            last_name="Garten",
            email="Ina@Example.com",
            password="barefoot-1",
        )

        assert user["email"] == "ina@example.com"
        assert user["provider"] == "credential"
        assert user["verified"] is False
        assert user["display_name"] == "Ina Garten"
        assert user["password_hash"] != "barefoot-1"
        assert await verifier.verify(db_session, "ina@example.com", "barefoot-1") is not None

    async def test_register_existing_email_conflicts(
        self, db_session: AsyncSession, verifier: CredentialVerifier, other_user: dict
    ):
        """An email owned by a provider account cannot be registered again."""
        with pytest.raises(ConflictException):
            await verifier.register(
                db_session,
                first_name="Paul",
                last_name="Hollywood",
                email="baker@example.com",
                password="sourdough-1",
            )

    async def test_register_validates_input(
        self, db_session: AsyncSession, verifier: CredentialVerifier
    ):
        with pytest.raises(ValidationException):
            await verifier.register(
                db_session, first_name="", last_name="X", email="x@example.com", password="12345678"
            )
        with pytest.raises(ValidationException):
            await verifier.register(
                db_session, first_name="X", last_name="Y", email="x@example.com", password="1234567"
            )

    async def test_sign_in_before_and_after_register(
        self, db_session: AsyncSession, verifier: CredentialVerifier
    ):
        assert await verifier.verify(db_session, "a@b.com", "secret123") is None

        created = await verifier.register(
            db_session, first_name="A", last_name="B", email="a@b.com", password="secret123"
        )

        user = await verifier.verify(db_session, "a@b.com", "secret123")
        assert user is not None
        assert user["id"] == created["id"]
