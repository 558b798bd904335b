"""Google sign-in token verification."""
import logging

from google.auth.transport.requests import Request
from google.oauth2 import id_token

from eventsnap.core.config import settings
from eventsnap.core.errors import AuthRequired

logger = logging.getLogger(__name__)


def verify_google_credential(credential: str) -> dict:
    """
    Verify a Google ID token from the sign-in button.

    Returns:
        The token claims; ``email`` and ``name`` are the ones used.

    Raises:
        AuthRequired: If the token is invalid, expired, or has no email.
    """
    if not settings.google_client_id:
        logger.warning("No GOOGLE_CLIENT_ID configured")
    try:
        claims = id_token.verify_oauth2_token(
            credential,
            Request(),
            settings.google_client_id or None,
        )
    except ValueError as e:
        logger.error(f"Failed to verify Google credential: {e}")
        raise AuthRequired("Sign-in failed. Please try again.") from e

    if not claims.get("email"):
        raise AuthRequired("Sign-in failed: no email on the Google account.")
    return claims
