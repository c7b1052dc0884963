"""
Incremental polling cursor.

Decides which messages count as "new" for an account on each pass:

    since = max(watermark - OVERLAP, epoch)

The overlap deliberately re-lists a short trailing window every pass to
absorb clock skew and search-index lag. Duplicates that produces are
dropped within a pass by message id, and tolerated across passes because
every mailbox action is idempotent.

The watermark advances to the poll's start time as soon as the listing
call returns, before any message is processed, so slow processing never
opens a gap. A listing cut short by the per-poll cap leaves the watermark
where it was: the listing is newest first, so advancing would strand the
older messages below the next window.

Usage:
    from email_genie.poller.cursor import poll_window
    since = poll_window(account, now)
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from email_genie.auth.oauth import TokenSet, is_token_expired, refresh_access_token
from email_genie.gmail.client import MessageListing
from email_genie.logging.audit import audit
from email_genie.storage.base import AccountStore
from email_genie.storage.models import Account

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(minutes=10)
OVERLAP = timedelta(seconds=30)
MAX_ACCESS_TOKEN_TTL = timedelta(hours=2)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MessageLister(Protocol):
    def list_message_ids_since(self, since: datetime, max_results: Optional[int] = None) -> MessageListing:
        ...


@dataclass
class PollResult:
    """Message ids to process for one account in one pass."""
    account_id: str
    since: datetime
    next_watermark: Optional[datetime]
    message_ids: list[str]
    duplicates_skipped: int = 0
    truncated: bool = False


def poll_window(account: Account, now: datetime) -> datetime:
    """Lower bound of the receipt-time window to list for this pass."""
    last_check = account.last_email_check or (now - DEFAULT_LOOKBACK)
    return max(last_check - OVERLAP, EPOCH)


def expiry_is_plausible(token_expiry: Optional[float], now: float) -> bool:
    """
    Whether a stored access-token expiry can be trusted.

    Google access tokens live about an hour. A missing, non-positive, or
    more-than-two-hours-ahead expiry means the stored value is corrupt or
    stale, and the token must be refreshed.
    """
    if token_expiry is None or token_expiry <= 0:
        return False
    return token_expiry - now <= MAX_ACCESS_TOKEN_TTL.total_seconds()


def ensure_valid_credentials(
    user_id: str,
    account: Account,
    accounts: AccountStore,
    refresher: Callable[[str], TokenSet] = refresh_access_token,
    now: Optional[float] = None,
) -> TokenSet:
    """
    Return usable tokens for the account, refreshing and persisting if needed.

    Raises:
        CredentialRefreshFailed: Propagated from the refresher. The stale
                                 token is never returned as a fallback.
    """
    now = time.time() if now is None else now

    if expiry_is_plausible(account.token_expiry, now) and not is_token_expired(account.token_expiry, now):
        return TokenSet(
            access_token=account.access_token,
            refresh_token=account.refresh_token,
            expires_at=account.token_expiry,
        )

    logger.info(
        "poll.credentials_refreshing",
        extra={
            "action": "poll.credentials_refreshing",
            "expiry_plausible": expiry_is_plausible(account.token_expiry, now),
        },
    )
    tokens = refresher(account.refresh_token)
    accounts.update_tokens(
        user_id,
        account.id,
        tokens.access_token,
        tokens.refresh_token,
        tokens.expires_at,
    )
    return tokens


def poll_account(
    user_id: str,
    account: Account,
    accounts: AccountStore,
    mailbox: MessageLister,
    now: datetime,
    max_results: Optional[int] = None,
) -> PollResult:
    """
    List new message ids for the account and advance its watermark.

    The watermark is only advanced if the listing call succeeds and was not
    truncated; otherwise it is left untouched so the next pass re-lists the
    same window.
    """
    since = poll_window(account, now)
    listing = mailbox.list_message_ids_since(since, max_results)
    listed = listing.ids

    if listing.truncated:
        next_watermark = account.last_email_check
        logger.warning(
            "poll.truncated",
            extra={
                "action": "poll.truncated",
                "since": since.isoformat(),
                "listed": len(listed),
            },
        )
    else:
        next_watermark = now
        accounts.update_last_watermark(user_id, account.id, now)

    seen: set[str] = set()
    message_ids = []
    for message_id in listed:
        if not message_id or message_id in seen:
            continue
        seen.add(message_id)
        message_ids.append(message_id)

    audit.info(
        "poll.listed",
        since=since.isoformat(),
        listed=len(listed),
        unique=len(message_ids),
        truncated=listing.truncated,
    )

    return PollResult(
        account_id=account.id,
        since=since,
        next_watermark=next_watermark,
        message_ids=message_ids,
        duplicates_skipped=len(listed) - len(message_ids),
        truncated=listing.truncated,
    )
