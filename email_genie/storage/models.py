"""
Persisted records: mailbox accounts, decision logs and job status.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from email_genie.agent.schemas import CategorizationDecision, utcnow


class Account(BaseModel):
    """A connected mailbox and its cached credentials."""
    id: str
    user_id: str
    email: str
    access_token: str = Field(default="")
    refresh_token: str = Field(default="")
    token_expiry: Optional[float] = Field(default=None, description="Access token expiry, epoch seconds")
    last_email_check: Optional[datetime] = Field(default=None, description="Poll watermark")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class EmailLogEntry(BaseModel):
    """Immutable record of one decision and what was actually applied."""
    id: str
    user_id: str
    account_id: str
    message_id: str
    sender: str = Field(default="")
    subject: str = Field(default="")
    snippet: str = Field(default="")
    body: str = Field(default="")
    applied_actions: list[str] = Field(default_factory=list)
    rule_matched: Optional[str] = Field(default=None)
    matched_rule_id: Optional[str] = Field(default=None)
    decision: CategorizationDecision
    processed_at: datetime = Field(default_factory=utcnow)
    expires_at: Optional[datetime] = Field(default=None)

    def with_retention(self, days: int) -> "EmailLogEntry":
        return self.model_copy(update={"expires_at": self.processed_at + timedelta(days=days)})


class JobState(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class ProcessingFailure(BaseModel):
    """One message or account that could not be processed in a pass."""
    account_id: Optional[str] = None
    message_id: Optional[str] = None
    error_type: str
    error: str


class JobRunSummary(BaseModel):
    """Outcome of one processing pass. Also the persisted job status."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: JobState
    processed_count: int = 0
    error_count: int = 0
    message: str = Field(default="")
    failures: list[ProcessingFailure] = Field(default_factory=list)
