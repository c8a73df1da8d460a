"""External identity provider adapters.

An identity provider completes the OAuth handshake out of band and hands the
service a verified assertion. The assertion is trusted verbatim.
"""

from abc import ABC, abstractmethod

from recipebox.core.firebase import verify_firebase_token
from recipebox.schemas.auth import ProviderAssertion

# Firebase ``sign_in_provider`` values mapped onto local provider names.
FIREBASE_SIGN_IN_PROVIDERS = {
    "google.com": "google",
    "github.com": "github",
}


class IdentityVerificationError(Exception):
    """Raised when an identity token cannot be verified or normalized."""


class IdentityProvider(ABC):
    """Provider-neutral identity assertion interface."""

    @abstractmethod
    async def verify(self, id_token: str) -> ProviderAssertion:
        """Verify ``id_token`` and return the normalized assertion."""


class FirebaseIdentityProvider(IdentityProvider):
    """Google and GitHub sign-in brokered by Firebase Authentication."""

    async def verify(self, id_token: str) -> ProviderAssertion:
        try:
            decoded = await verify_firebase_token(id_token)
        except ValueError as e:
            raise IdentityVerificationError(str(e)) from e

        sign_in_provider = decoded.get("firebase", {}).get("sign_in_provider")
        provider = FIREBASE_SIGN_IN_PROVIDERS.get(sign_in_provider)
        if provider is None:
            raise IdentityVerificationError(f"Unsupported sign-in provider: {sign_in_provider}")

        email = decoded.get("email")
        if not email:
            raise IdentityVerificationError("Email is required from the identity provider")

        return ProviderAssertion(
            provider=provider,
            email=email,
            display_name=decoded.get("name"),
            avatar_url=decoded.get("picture"),
            provider_id=str(decoded.get("uid") or decoded.get("sub") or ""),
        )
