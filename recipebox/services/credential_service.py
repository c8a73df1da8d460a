"""Email/password credentials: verification and sign-up."""

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.core.exceptions import ConflictException, ValidationException
from recipebox.core.logging_safety import safe_log_identifier
from recipebox.core.security import PasswordHasher
from recipebox.services.identity_store import IdentityStore, normalize_email

logger = get_logger(__name__)

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 32

_email_adapter = TypeAdapter(EmailStr)


def validate_email(email: str) -> str:
    """Return the normalized email, or raise ValidationException for a malformed one."""
    normalized = normalize_email(email or "")
    try:
        _email_adapter.validate_python(normalized)
    except ValidationError as e:
        raise ValidationException("Email is invalid") from e
    return normalized


def validate_password(password: str) -> str:
    """Enforce the 8-32 character password bounds."""
    if password is None or not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        raise ValidationException(
            f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters"
        )
    return password


class CredentialVerifier:
    """Checks email/password pairs against the identity store.

    Every failure returns None so callers cannot tell an unknown email from a
    wrong password. The reason is only recorded in the server log.
    """

    def __init__(self, store: IdentityStore, hasher: PasswordHasher):
        self.store = store
        self.hasher = hasher
        self._dummy_hash: str | None = None

    def _burn_verify(self, password: str) -> None:
        # Keep unknown-email responses as slow as a real hash comparison.
        if self._dummy_hash is None:
            self._dummy_hash = self.hasher.hash("recipebox-dummy-password")
        self.hasher.verify(password, self._dummy_hash)

    async def verify(self, db: AsyncSession, email: str, password: str) -> dict | None:
        """Return the identity record for valid credentials, None otherwise."""
        email_token = safe_log_identifier(email, prefix="email")

        try:
            email = validate_email(email)
            validate_password(password)
        except ValidationException:
            logger.info("credential_login_rejected", reason="invalid_format", email=email_token)
            return None

        user = await self.store.find_by_email(db, email)
        if user is None:
            self._burn_verify(password)
            logger.info("credential_login_rejected", reason="unknown_email", email=email_token)
            return None

        if user["provider"] != "credential":
            self._burn_verify(password)
            logger.info(
                "credential_login_rejected",
                reason="not_credential_account",
                provider=user["provider"],
                email=email_token,
            )
            return None

        if not self.hasher.verify(password, user["password_hash"]):
            logger.info("credential_login_rejected", reason="password_mismatch", email=email_token)
            return None

        return user

    async def register(
        self,
        db: AsyncSession,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
    ) -> dict:
        """Create an unverified credential account.

        Raises:
            ValidationException: For a malformed email, empty names or a bad password length
            ConflictException: If the email already belongs to a record
        """
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not first_name or not last_name:
            raise ValidationException("Please fill all fields")

        email = validate_email(email)
        validate_password(password)

        if await self.store.find_by_email(db, email) is not None:
            raise ConflictException("User already exists")

        return await self.store.create(
            db,
            email=email,
            provider="credential",
            password_hash=self.hasher.hash(password),
            display_name=f"{first_name} {last_name}",
            first_name=first_name,
            last_name=last_name,
            verified=False,
        )
