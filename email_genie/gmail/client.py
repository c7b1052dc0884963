"""
Gmail REST API client for the operations the processing job needs.

- Listing message ids received after a timestamp (with pagination)
- Fetching and parsing a full message
- Label mutations: star, mark important, archive, mark read, apply labels
- Get-or-create for user labels, safe against concurrent creation

Every failure raises GmailError. Callers decide whether a failure is
per-message or per-account.

Usage:
    from email_genie.gmail.client import GmailClient

    with GmailClient(access_token="ya29...") as gmail:
        listing = gmail.list_message_ids_since(since)
        message = gmail.fetch_message(listing.ids[0])
"""

import base64
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import httpx

from email_genie.agent.schemas import EmailData
from email_genie.config import settings
from email_genie.logging.audit import audit

logger = logging.getLogger(__name__)

# System label ids
LABEL_STARRED = "STARRED"
LABEL_IMPORTANT = "IMPORTANT"
LABEL_INBOX = "INBOX"
LABEL_UNREAD = "UNREAD"

PAGE_SIZE = 100


class GmailError(Exception):
    """A Gmail API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class MailMessage:
    """A message as fetched from Gmail."""
    id: str
    thread_id: str = ""
    sender: str = ""
    to: str = ""
    subject: str = ""
    date: str = ""
    body: str = ""
    snippet: str = ""
    label_ids: list[str] = field(default_factory=list)

    def to_email_data(self) -> EmailData:
        return EmailData(
            sender=self.sender,
            subject=self.subject,
            body=self.body,
            snippet=self.snippet,
            message_id=self.id,
        )


@dataclass
class MessageListing:
    """Message ids from one listing call, newest first."""
    ids: list[str] = field(default_factory=list)
    truncated: bool = False


class GmailClient:
    """
    Gmail API client bound to one account's access token.

    Token refresh is handled by the poller before the client is built.
    """

    def __init__(self, access_token: str, http: Optional[httpx.Client] = None):
        self._base = settings.gmail_base_url
        self._http = http or httpx.Client(
            timeout=30.0,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
        )
        self._label_ids: dict[str, str] = {}
        self._label_lock = threading.Lock()

    def close(self):
        """Close the HTTP client. Call when done."""
        self._http.close()

    def __enter__(self) -> "GmailClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # LOW-LEVEL REQUEST
    # =========================================================================

    def _request(self, method: str, path: str, operation: str, **kwargs) -> dict:
        try:
            resp = self._http.request(method, f"{self._base}{path}", **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"gmail.{operation}.error",
                extra={
                    "action": f"gmail.{operation}.error",
                    "status_code": e.response.status_code,
                    "response_body": e.response.text[:500],
                },
            )
            raise GmailError(
                f"Gmail {operation} failed (HTTP {e.response.status_code})",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                f"gmail.{operation}.error",
                extra={"action": f"gmail.{operation}.error", "error": str(e)},
            )
            raise GmailError(f"Gmail {operation} failed: {e}") from e

        if not resp.content:
            return {}
        return resp.json()

    # =========================================================================
    # LISTING: Message ids received after a timestamp
    # =========================================================================

    def list_message_ids_since(
        self, since: datetime, max_results: Optional[int] = None
    ) -> MessageListing:
        """
        List ids of messages received after `since`.

        Gmail's `after:` operator takes epoch seconds, so sub-second
        precision is dropped (the poller's overlap absorbs that).

        Args:
            since: Lower bound (exclusive) on receipt time.
            max_results: Stop after this many ids (default: settings value).

        Returns:
            Message ids, newest first, possibly with duplicates across pages.
            `truncated` is set when the cap cut the listing short, in which
            case the oldest matching messages were not listed.
        """
        start = time.monotonic()
        max_results = max_results or settings.max_messages_per_poll
        params = {
            "q": f"after:{int(since.timestamp())}",
            "maxResults": min(PAGE_SIZE, max_results),
        }

        ids: list[str] = []
        pages = 0
        truncated = False
        while True:
            data = self._request("GET", "/messages", "list_messages", params=params)
            pages += 1
            page_ids = [ref["id"] for ref in data.get("messages", []) if ref.get("id")]
            room = max_results - len(ids)
            ids.extend(page_ids[:room])

            page_token = data.get("nextPageToken")
            if len(page_ids) > room or (page_token and len(ids) >= max_results):
                truncated = True
                break
            if not page_token:
                break
            params = {**params, "pageToken": page_token}

        audit.info(
            "gmail.messages.listed",
            count=len(ids),
            pages=pages,
            truncated=truncated,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        return MessageListing(ids=ids, truncated=truncated)

    # =========================================================================
    # FETCHING
    # =========================================================================

    def fetch_message(self, message_id: str) -> MailMessage:
        """Fetch and parse one message (format=full)."""
        msg = self._request(
            "GET", f"/messages/{message_id}", "get_message", params={"format": "full"}
        )
        return self._parse_message(msg)

    @staticmethod
    def _parse_message(msg: dict) -> MailMessage:
        """Parse a raw Gmail message resource into a MailMessage."""
        payload = msg.get("payload") or {}
        headers = {
            str(h.get("name", "")).lower(): str(h.get("value", ""))
            for h in payload.get("headers") or []
        }
        snippet = str(msg.get("snippet") or "")
        body = _extract_plain_body(payload)

        return MailMessage(
            id=str(msg.get("id") or ""),
            thread_id=str(msg.get("threadId") or ""),
            sender=headers.get("from", ""),
            to=headers.get("to", ""),
            subject=headers.get("subject", ""),
            date=headers.get("date", ""),
            body=body or snippet,
            snippet=snippet,
            label_ids=list(msg.get("labelIds") or []),
        )

    # =========================================================================
    # LABEL MUTATIONS
    # =========================================================================

    def modify_labels(
        self,
        message_id: str,
        add: Optional[list[str]] = None,
        remove: Optional[list[str]] = None,
    ) -> None:
        self._request(
            "POST",
            f"/messages/{message_id}/modify",
            "modify_message",
            json={"addLabelIds": add or [], "removeLabelIds": remove or []},
        )
        audit.info(
            "gmail.message.modified",
            message_id=message_id,
            added=len(add or []),
            removed=len(remove or []),
        )

    def mark_important(self, message_id: str) -> None:
        """Star the message."""
        self.modify_labels(message_id, add=[LABEL_STARRED])

    def pin_conversation(self, message_id: str) -> None:
        """Gmail has no pinning; the IMPORTANT marker keeps it in the priority section."""
        self.modify_labels(message_id, add=[LABEL_IMPORTANT])

    def archive(self, message_id: str) -> None:
        """Remove the message from the inbox."""
        self.modify_labels(message_id, remove=[LABEL_INBOX])

    def mark_read_and_label(self, message_id: str, label_ids: list[str]) -> None:
        """Mark as read and add labels without archiving."""
        self.modify_labels(message_id, add=label_ids, remove=[LABEL_UNREAD])

    def apply_labels(self, message_id: str, label_ids: list[str]) -> None:
        self.modify_labels(message_id, add=label_ids)

    # =========================================================================
    # LABELS: get or create
    # =========================================================================

    def list_labels(self) -> list[dict]:
        data = self._request("GET", "/labels", "list_labels")
        return data.get("labels", [])

    def _find_label(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for label in self.list_labels():
            if str(label.get("name", "")).lower() == wanted and label.get("id"):
                return label["id"]
        return None

    def get_or_create_label(self, name: str) -> str:
        """
        Return the id of the label called `name`, creating it if needed.

        Gmail label names are unique case-insensitively. Lookups are cached
        and serialized per client; a 409 from a concurrent creator is
        resolved by looking the label up again.
        """
        key = name.lower()
        with self._label_lock:
            if key in self._label_ids:
                return self._label_ids[key]

            label_id = self._find_label(name)
            if label_id is None:
                try:
                    created = self._request(
                        "POST",
                        "/labels",
                        "create_label",
                        json={
                            "name": name,
                            "labelListVisibility": "labelShow",
                            "messageListVisibility": "show",
                        },
                    )
                    label_id = created.get("id")
                    audit.info("gmail.label.created", label_id=label_id)
                except GmailError as e:
                    if e.status_code != 409:
                        raise
                    label_id = self._find_label(name)

            if not label_id:
                raise GmailError(f"Could not resolve label id for '{name}'")

            self._label_ids[key] = label_id
            return label_id


def _decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def _extract_plain_body(payload: dict) -> str:
    """Return the message's text/plain content, searching nested parts."""
    body_data = (payload.get("body") or {}).get("data")
    if body_data and payload.get("mimeType", "text/plain").startswith("text/plain"):
        return _decode_base64url(body_data)

    for part in payload.get("parts") or []:
        if part.get("mimeType") == "text/plain":
            data = (part.get("body") or {}).get("data")
            if data:
                return _decode_base64url(data)
        if part.get("parts"):
            nested = _extract_plain_body(part)
            if nested:
                return nested

    # Single-part message of another type (e.g. text/html only)
    if body_data and not payload.get("parts"):
        return _decode_base64url(body_data)
    return ""
