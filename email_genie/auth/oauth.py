"""
Google OAuth 2.0 access-token refresh.

Connected accounts carry a long-lived refresh token. Before polling, the
poller trades it for a fresh access token when the cached one is expired
or its stored expiry looks implausible.

A failed refresh raises CredentialRefreshFailed. We never fall back to the
stale token: the account's pass is aborted and counted as one error.

Usage:
    from email_genie.auth.oauth import refresh_access_token
    tokens = refresh_access_token(account.refresh_token)
"""

import logging
import time
from dataclasses import dataclass
from datetime import timezone
from typing import Callable, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from email_genie.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600
EXPIRY_BUFFER_SECONDS = 300


class CredentialRefreshFailed(Exception):
    """The refresh token could not be exchanged for a new access token."""
    pass


@dataclass
class TokenSet:
    access_token: str
    refresh_token: str
    expires_at: float  # UTC epoch seconds


def is_token_expired(
    expires_at: float,
    now: Optional[float] = None,
    buffer_seconds: int = EXPIRY_BUFFER_SECONDS,
) -> bool:
    """Check if an access token has expired (with a 5-minute buffer)."""
    now = time.time() if now is None else now
    return now >= expires_at - buffer_seconds


def refresh_access_token(
    refresh_token: str,
    request: Optional[Callable] = None,
    now: Optional[float] = None,
) -> TokenSet:
    """
    Use a refresh token to get a new access token.

    Args:
        refresh_token: The account's stored refresh token.
        request: google-auth transport request (tests inject a fake).
        now: Clock override, used when Google omits `expires_in`.

    Returns:
        TokenSet. Google usually omits refresh_token on refresh, in which
        case the one passed in is kept.

    Raises:
        CredentialRefreshFailed: When Google rejects the grant or cannot
                                 be reached.
    """
    if not refresh_token:
        raise CredentialRefreshFailed("No refresh token stored for account")

    creds = Credentials(
        token=None,
        refresh_token=refresh_token,
        token_uri=settings.google_token_url,
        client_id=settings.google_client_id,
        client_secret=settings.google_client_secret,
    )
    try:
        creds.refresh(request or Request())
    except GoogleAuthError as e:
        logger.warning(
            "oauth.token_refresh_failed",
            extra={
                "action": "oauth.token_refresh_failed",
                "error_type": type(e).__name__,
                "error": str(e)[:200],
            },
        )
        raise CredentialRefreshFailed(f"Token refresh failed: {e}") from e

    if creds.expiry is not None:
        # google-auth reports expiry as naive UTC
        expires_at = creds.expiry.replace(tzinfo=timezone.utc).timestamp()
    else:
        issued_at = time.time() if now is None else now
        expires_at = issued_at + DEFAULT_TOKEN_LIFETIME_SECONDS

    logger.info(
        "oauth.token_refreshed",
        extra={
            "action": "oauth.token_refreshed",
            "has_new_refresh_token": creds.refresh_token != refresh_token,
        },
    )

    return TokenSet(
        access_token=creds.token,
        refresh_token=creds.refresh_token or refresh_token,
        expires_at=expires_at,
    )
