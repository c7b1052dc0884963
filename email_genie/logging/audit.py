"""
Audit logging for decisions and mailbox mutations.

SECURITY: Never log email content, subjects, body text, sender addresses,
LLM prompts, or LLM responses. Only log identifiers and counts.

Usage:
    from email_genie.logging.audit import audit
    audit.info("email.categorized", message_id="18c2...", source="constrained")
"""

import logging
from typing import Any


class AuditLogger:
    """Thin wrapper around logging that enforces structured action fields."""

    def __init__(self, name: str = "audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, action: str, fields: dict[str, Any]) -> None:
        self._logger.log(level, action, extra={"action": action, **fields})

    def info(self, action: str, **fields: Any) -> None:
        self._log(logging.INFO, action, fields)

    def warning(self, action: str, **fields: Any) -> None:
        self._log(logging.WARNING, action, fields)

    def error(self, action: str, **fields: Any) -> None:
        self._log(logging.ERROR, action, fields)


audit = AuditLogger()
