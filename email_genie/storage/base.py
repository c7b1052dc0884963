"""
Store interfaces consumed by the poller and the processing job.

Every call takes an explicit user_id; there is no implicit tenant.
"""

from datetime import datetime
from typing import Any, Optional, Protocol

from email_genie.agent.schemas import Rule
from email_genie.storage.models import Account, EmailLogEntry, JobRunSummary


class AccountStore(Protocol):
    def list_accounts(self, user_id: str) -> list[Account]: ...

    def get_account(self, user_id: str, account_id: str) -> Optional[Account]: ...

    def save_account(self, account: Account) -> Account: ...

    def update_tokens(
        self,
        user_id: str,
        account_id: str,
        access_token: str,
        refresh_token: str,
        token_expiry: float,
    ) -> None: ...

    def update_last_watermark(self, user_id: str, account_id: str, ts: Optional[datetime]) -> None: ...


class RuleStore(Protocol):
    def list_rules(self, user_id: str, account_id: Optional[str] = None) -> list[Rule]:
        """Rules that apply to the account, sorted by ascending priority."""
        ...

    def get_rule(self, user_id: str, rule_id: str) -> Optional[Rule]: ...

    def create_rule(self, rule: Rule) -> Rule: ...

    def update_rule(self, user_id: str, rule_id: str, updates: dict[str, Any]) -> Optional[Rule]: ...

    def delete_rule(self, user_id: str, rule_id: str) -> bool: ...


class LogStore(Protocol):
    def append_log(self, entry: EmailLogEntry) -> None: ...

    def list_logs(self, user_id: str, account_id: str, days: int = 7) -> list[EmailLogEntry]: ...


class JobStatusStore(Protocol):
    def set_status(self, user_id: str, summary: JobRunSummary) -> None: ...

    def get_status(self, user_id: str) -> Optional[JobRunSummary]: ...
