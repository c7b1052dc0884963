"""
FastAPI dependencies for authenticating callers.

Two kinds of callers reach the API:
- The scheduler, which triggers processing passes with a shared cron secret.
- Management clients (rules, logs, test categorization) with an API key.
"""

import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

from email_genie.config import settings

logger = logging.getLogger(__name__)


def _matches(candidate: Optional[str], secret: str) -> bool:
    return bool(candidate) and hmac.compare_digest(candidate, secret)


async def require_cron_secret(request: Request) -> None:
    """
    Allow the scheduler through.

    Accepts `Authorization: Bearer <secret>`, an `x-cron-secret` header, or
    a `?secret=` query parameter. With no CRON_SECRET configured the
    endpoint is open.
    """
    secret = settings.cron_secret
    if not secret:
        return

    auth_header = request.headers.get("authorization", "")
    bearer = auth_header[len("Bearer "):] if auth_header.startswith("Bearer ") else None

    if (
        _matches(bearer, secret)
        or _matches(request.headers.get("x-cron-secret"), secret)
        or _matches(request.query_params.get("secret"), secret)
    ):
        return

    logger.warning(
        "auth.cron_secret_rejected",
        extra={"action": "auth.cron_secret_rejected", "path": request.url.path},
    )
    raise HTTPException(status_code=401, detail="Unauthorized")


async def require_api_key(request: Request) -> None:
    """Require the x-api-key header to equal API_SECRET_KEY. Unset key rejects everything."""
    expected = settings.api_secret_key
    if expected and _matches(request.headers.get("x-api-key"), expected):
        return

    logger.warning(
        "auth.api_key_rejected",
        extra={"action": "auth.api_key_rejected", "path": request.url.path},
    )
    raise HTTPException(status_code=401, detail="Unauthorized")
