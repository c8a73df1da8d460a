"""Maps verified external identity assertions onto local identity records."""

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from recipebox.core.exceptions import ConflictException, ValidationException
from recipebox.core.logging_safety import safe_log_identifier
from recipebox.schemas.auth import ProviderAssertion
from recipebox.services.identity_store import IdentityStore, normalize_email

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = frozenset({"google", "github"})


def split_display_name(display_name: str | None) -> tuple[str | None, str | None]:
    """Split a full name into first and last name on the first space."""
    if not display_name or not display_name.strip():
        return None, None
    parts = display_name.strip().split(" ", 1)
    return parts[0], parts[1].strip() if len(parts) > 1 else None


class ProviderReconciler:
    """Finds or creates the identity record for a provider sign-in.

    The lookup-then-create sequence is not atomic. Two concurrent first logins
    both miss the lookup; the email unique constraint rejects the loser, which
    then re-reads and returns the winner's record.
    """

    def __init__(self, store: IdentityStore):
        self.store = store

    async def reconcile(self, db: AsyncSession, assertion: ProviderAssertion) -> dict:
        """Return the identity for ``assertion``, creating it on first login.

        Existing records are returned unchanged; repeat logins never overwrite
        profile fields.

        Raises:
            ValidationException: If the provider is not an OAuth provider or the email is empty
            ConflictException: If the email belongs to an account of another provider
        """
        provider = assertion.provider
        if provider not in SUPPORTED_PROVIDERS:
            raise ValidationException(f"Unsupported identity provider: {provider}")

        email = normalize_email(assertion.email or "")
        if not email:
            raise ValidationException("Email is required from the identity provider")

        email_token = safe_log_identifier(email, prefix="email")

        existing = await self.store.find_by_email_and_provider(db, email, provider)
        if existing is not None:
            logger.info(
                "provider_identity_reconciled",
                provider=provider,
                user_id=str(existing["id"]),
                created=False,
            )
            return existing

        first_name, last_name = split_display_name(assertion.display_name)
        try:
            created = await self.store.create(
                db,
                email=email,
                provider=provider,
                display_name=assertion.display_name or None,
                first_name=first_name,
                last_name=last_name,
                avatar_uri=assertion.avatar_url or None,
                verified=True,
            )
        except ConflictException:
            winner = await self.store.find_by_email_and_provider(db, email, provider)
            if winner is not None:
                logger.info(
                    "provider_identity_reconciled",
                    provider=provider,
                    user_id=str(winner["id"]),
                    created=False,
                    concurrent_create=True,
                )
                return winner

            logger.warning("provider_identity_conflict", provider=provider, email=email_token)
            raise ConflictException(
                "An account with this email already exists with a different sign-in method"
            )

        logger.info(
            "provider_identity_reconciled",
            provider=provider,
            user_id=str(created["id"]),
            created=True,
        )
        return created
