"""
Structured JSON logging configuration.

One JSON object per line on stdout. Every line carries the request, job run
and account it was emitted under, so a single pass can be followed across
modules without passing ids around.

Usage:
    # At startup (once):
    from email_genie.logging.config import setup_logging
    setup_logging()

    # In any module:
    import logging
    logger = logging.getLogger(__name__)
    logger.info("poll.listed", extra={"message_count": 12})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
run_id_var: ContextVar[str] = ContextVar("run_id", default="-")
account_id_var: ContextVar[str] = ContextVar("account_id", default="-")

CONTEXT_VARS = (request_id_var, run_id_var, account_id_var)

NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "google.auth", "urllib3", "uvicorn.access")

# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """Formats every log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        log.update({var.name: var.get() for var in CONTEXT_VARS})

        for key, val in vars(record).items():
            if key not in _RECORD_ATTRS:
                log.setdefault(key, val)

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            log["exception_type"] = exc_type.__name__
            log["exception_message"] = str(exc)
            log["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log, default=str)


def setup_logging(level: str = "info") -> None:
    """Configure the root logger to output structured JSON to stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
