"""
JSON-file persistence for accounts, rules, logs and job status.

The whole state lives in one JSON file, rewritten atomically (temp file +
rename) after every mutation. Expired log entries are pruned on load.

Usage:
    from email_genie.storage.json_store import get_store
    store = get_store()
    accounts = store.list_accounts("default-user")
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from email_genie.agent.schemas import Rule
from email_genie.config import settings
from email_genie.storage.memory import InMemoryStore
from email_genie.storage.models import Account, EmailLogEntry, JobRunSummary

logger = logging.getLogger(__name__)

# Cache one store per process
_store: Optional["JsonFileStore"] = None


class JsonFileStore(InMemoryStore):
    """InMemoryStore that mirrors itself to a JSON file."""

    def __init__(self, path: str):
        super().__init__()
        self._path = Path(path)
        self._loading = False
        self._load()
        self.prune_expired_logs()

    def _load(self) -> None:
        if not self._path.exists():
            return

        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)

        self._loading = True
        try:
            for raw in data.get("accounts", []):
                account = Account.model_validate(raw)
                self._accounts[(account.user_id, account.id)] = account
            for raw in data.get("rules", []):
                rule = Rule.model_validate(raw)
                self._rules[(rule.user_id, rule.id)] = rule
            self._logs = [EmailLogEntry.model_validate(raw) for raw in data.get("logs", [])]
            self._status = {
                user_id: JobRunSummary.model_validate(raw)
                for user_id, raw in data.get("status", {}).items()
            }
        finally:
            self._loading = False

        logger.info(
            "store.loaded",
            extra={
                "action": "store.loaded",
                "accounts": len(self._accounts),
                "rules": len(self._rules),
                "logs": len(self._logs),
            },
        )

    def _changed(self) -> None:
        if self._loading:
            return
        self._save()

    def _save(self) -> None:
        data = {
            "accounts": [a.model_dump(mode="json") for a in self._accounts.values()],
            "rules": [r.model_dump(mode="json") for r in self._rules.values()],
            "logs": [e.model_dump(mode="json") for e in self._logs],
            "status": {uid: s.model_dump(mode="json") for uid, s in self._status.items()},
        }

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self._path)
        except OSError:
            logger.error(
                "store.save_failed",
                extra={"action": "store.save_failed", "path": str(self._path)},
                exc_info=True,
            )
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def get_store() -> JsonFileStore:
    """Get or create the process-wide store at settings.data_path."""
    global _store
    if _store is None:
        _store = JsonFileStore(settings.data_path)
    return _store
