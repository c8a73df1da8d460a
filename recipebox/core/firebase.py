"""Firebase Admin SDK initialization and token verification."""

import json
import os

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

from recipebox.core.logging_safety import safe_log_identifier

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None


def initialize_firebase(
    firebase_credentials_path: str | None = None, firebase_config_json: str | None = None
) -> None:
    """
    Initialize Firebase Admin SDK.

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.

    Credentials are looked up in order: raw JSON, file path, then the
    application default credentials.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("Firebase already initialized")
        return

    try:
        cred = None

        if firebase_config_json:
            logger.info("Initializing Firebase with JSON string from environment")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("Initializing Firebase with JSON file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred)
        else:
            _firebase_app = firebase_admin.initialize_app()
            logger.info("Firebase initialized with default credentials")

    except Exception as e:
        logger.error("Failed to initialize Firebase", error=str(e))
        raise


async def verify_firebase_token(id_token: str) -> dict:
    """
    Verify a Firebase ID token.

    Args:
        id_token: Firebase ID token from the client

    Returns:
        Decoded token containing user information

    Raises:
        ValueError: If token is invalid or expired
    """
    try:
        # clock_skew_seconds tolerates small clock differences with Google
        decoded_token = auth.verify_id_token(id_token, clock_skew_seconds=10)

        logger.info(
            "Firebase token verified",
            uid=safe_log_identifier(decoded_token.get("uid"), prefix="uid"),
            sign_in_provider=decoded_token.get("firebase", {}).get("sign_in_provider"),
        )

        return decoded_token

    except auth.InvalidIdTokenError as e:
        logger.warning("Invalid or expired Firebase ID token", error=str(e))
        raise ValueError(f"Invalid Firebase ID token: {e!s}") from e
    except Exception as e:
        logger.error("Firebase token verification failed", error=str(e))
        raise ValueError(f"Token verification failed: {e!s}") from e
