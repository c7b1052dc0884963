"""
In-memory implementation of every store interface.

Used directly in tests and as the base of the JSON file store.
Thread-safe: all access goes through one re-entrant lock.
"""

import threading
from datetime import datetime, timedelta
from typing import Any, Optional

from email_genie.agent.schemas import Rule, utcnow
from email_genie.storage.models import Account, EmailLogEntry, JobRunSummary


class InMemoryStore:
    """Accounts, rules, logs and job status keyed by user."""

    def __init__(self):
        self._lock = threading.RLock()
        self._accounts: dict[tuple[str, str], Account] = {}
        self._rules: dict[tuple[str, str], Rule] = {}
        self._logs: list[EmailLogEntry] = []
        self._status: dict[str, JobRunSummary] = {}

    def _changed(self) -> None:
        """Hook called after every mutation."""

    # =========================================================================
    # ACCOUNTS
    # =========================================================================

    def list_accounts(self, user_id: str) -> list[Account]:
        with self._lock:
            return [a for (uid, _), a in self._accounts.items() if uid == user_id]

    def get_account(self, user_id: str, account_id: str) -> Optional[Account]:
        with self._lock:
            return self._accounts.get((user_id, account_id))

    def save_account(self, account: Account) -> Account:
        with self._lock:
            self._accounts[(account.user_id, account.id)] = account
            self._changed()
            return account

    def update_tokens(
        self,
        user_id: str,
        account_id: str,
        access_token: str,
        refresh_token: str,
        token_expiry: float,
    ) -> None:
        self._update_account(
            user_id,
            account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            token_expiry=token_expiry,
        )

    def update_last_watermark(self, user_id: str, account_id: str, ts: Optional[datetime]) -> None:
        self._update_account(user_id, account_id, last_email_check=ts)

    def _update_account(self, user_id: str, account_id: str, **fields: Any) -> None:
        with self._lock:
            key = (user_id, account_id)
            account = self._accounts.get(key)
            if account is None:
                raise KeyError(f"Unknown account {account_id} for user {user_id}")
            self._accounts[key] = account.model_copy(update={**fields, "updated_at": utcnow()})
            self._changed()

    # =========================================================================
    # RULES
    # =========================================================================

    def list_rules(self, user_id: str, account_id: Optional[str] = None) -> list[Rule]:
        with self._lock:
            rules = [r for (uid, _), r in self._rules.items() if uid == user_id]
        if account_id:
            rules = [r for r in rules if account_id in r.account_ids]
        return sorted(rules, key=lambda r: r.priority)

    def get_rule(self, user_id: str, rule_id: str) -> Optional[Rule]:
        with self._lock:
            return self._rules.get((user_id, rule_id))

    def create_rule(self, rule: Rule) -> Rule:
        with self._lock:
            self._rules[(rule.user_id, rule.id)] = rule
            self._changed()
            return rule

    def update_rule(self, user_id: str, rule_id: str, updates: dict[str, Any]) -> Optional[Rule]:
        with self._lock:
            existing = self._rules.get((user_id, rule_id))
            if existing is None:
                return None
            protected = {"id", "user_id", "created_at"}
            data = existing.model_dump()
            data.update({k: v for k, v in updates.items() if k not in protected})
            data["updated_at"] = utcnow()
            updated = Rule.model_validate(data)
            self._rules[(user_id, rule_id)] = updated
            self._changed()
            return updated

    def delete_rule(self, user_id: str, rule_id: str) -> bool:
        with self._lock:
            removed = self._rules.pop((user_id, rule_id), None)
            if removed is not None:
                self._changed()
            return removed is not None

    # =========================================================================
    # LOGS: append-only
    # =========================================================================

    def append_log(self, entry: EmailLogEntry) -> None:
        with self._lock:
            self._logs.append(entry)
            self._changed()

    def list_logs(self, user_id: str, account_id: str, days: int = 7) -> list[EmailLogEntry]:
        cutoff = utcnow() - timedelta(days=days)
        with self._lock:
            logs = [
                e for e in self._logs
                if e.user_id == user_id and e.account_id == account_id and e.processed_at >= cutoff
            ]
        return sorted(logs, key=lambda e: e.processed_at, reverse=True)

    def prune_expired_logs(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        with self._lock:
            before = len(self._logs)
            self._logs = [e for e in self._logs if e.expires_at is None or e.expires_at > now]
            removed = before - len(self._logs)
            if removed:
                self._changed()
            return removed

    # =========================================================================
    # JOB STATUS: last writer wins
    # =========================================================================

    def set_status(self, user_id: str, summary: JobRunSummary) -> None:
        with self._lock:
            self._status[user_id] = summary
            self._changed()

    def get_status(self, user_id: str) -> Optional[JobRunSummary]:
        with self._lock:
            return self._status.get(user_id)
