"""
Email processing job: one pass over every account of one user.

For each account:
    credentials → poll window → list ids → for each id:
        fetch → categorize → apply actions → append log

Failures are contained at the smallest scope that makes sense:
- A message that fails is recorded and skipped; the account continues.
- An account that fails (credential refresh, listing) is recorded as one
  error; other accounts continue.
- Anything else (e.g. the account listing itself) writes an `error`
  status and propagates to the caller.

Usage:
    from email_genie.jobs.processor import create_default_job
    summary = create_default_job().run()
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Optional

from email_genie.agent.engine import CategorizationEngine
from email_genie.agent.schemas import utcnow
from email_genie.agent.suggestion import LLMSuggestionSource
from email_genie.auth.oauth import TokenSet, refresh_access_token
from email_genie.config import settings
from email_genie.gmail.client import GmailClient
from email_genie.jobs.actions import apply_decision
from email_genie.llm.client import LLMClient
from email_genie.logging.audit import audit
from email_genie.logging.config import account_id_var, run_id_var
from email_genie.poller.cursor import ensure_valid_credentials, poll_account
from email_genie.storage.base import AccountStore, JobStatusStore, LogStore, RuleStore
from email_genie.storage.models import (
    Account,
    EmailLogEntry,
    JobRunSummary,
    JobState,
    ProcessingFailure,
)

logger = logging.getLogger(__name__)


class _Tally:
    """Counters for one pass."""

    def __init__(self):
        self.processed = 0
        self.failures: list[ProcessingFailure] = []

    def fail(self, account_id: Optional[str], message_id: Optional[str], error: Exception) -> None:
        self.failures.append(
            ProcessingFailure(
                account_id=account_id,
                message_id=message_id,
                error_type=type(error).__name__,
                error=str(error),
            )
        )

    @property
    def errors(self) -> int:
        return len(self.failures)


class EmailProcessingJob:
    """Polls, categorizes and acts on new mail for every account of a user."""

    def __init__(
        self,
        user_id: str,
        accounts: AccountStore,
        rules: RuleStore,
        logs: LogStore,
        status: JobStatusStore,
        engine: CategorizationEngine,
        mailbox_factory: Callable[[str], GmailClient],
        refresher: Callable[[str], TokenSet] = refresh_access_token,
        clock: Callable[[], datetime] = utcnow,
        log_retention_days: Optional[int] = None,
    ):
        self._user_id = user_id
        self._accounts = accounts
        self._rules = rules
        self._logs = logs
        self._status = status
        self._engine = engine
        self._mailbox_factory = mailbox_factory
        self._refresher = refresher
        self._clock = clock
        self._retention_days = log_retention_days or settings.log_retention_days

    def run(self, cancel_event: Optional[threading.Event] = None) -> JobRunSummary:
        """
        Run one processing pass.

        Args:
            cancel_event: If set during the pass, processing stops before the
                          next message. Work already done is kept.

        Returns:
            The run summary, also persisted as the job status.

        Raises:
            Whatever aborted the pass outside per-account handling, after an
            `error` status has been recorded.
        """
        started_at = self._clock()
        run_token = run_id_var.set(uuid.uuid4().hex[:8])
        tally = _Tally()

        self._status.set_status(
            self._user_id,
            JobRunSummary(started_at=started_at, status=JobState.RUNNING, message="Job started"),
        )
        audit.info("job.started", user_id=self._user_id)

        try:
            accounts = self._accounts.list_accounts(self._user_id)

            for account in accounts:
                if _cancelled(cancel_event):
                    break
                self._process_account(account, tally, cancel_event)

            cancelled = _cancelled(cancel_event)
            status = JobState.PARTIAL if tally.errors or cancelled else JobState.SUCCESS
            message = f"Processed {tally.processed} emails with {tally.errors} errors"
            if cancelled:
                message += " (cancelled)"

            summary = JobRunSummary(
                started_at=started_at,
                finished_at=self._clock(),
                status=status,
                processed_count=tally.processed,
                error_count=tally.errors,
                message=message,
                failures=tally.failures,
            )
            self._status.set_status(self._user_id, summary)
            audit.info(
                "job.finished",
                status=status.value,
                processed_count=tally.processed,
                error_count=tally.errors,
                account_count=len(accounts),
            )
            return summary

        except Exception as e:
            logger.error(
                "job.failed",
                extra={"action": "job.failed", "error_type": type(e).__name__},
                exc_info=True,
            )
            tally.fail(None, None, e)
            self._status.set_status(
                self._user_id,
                JobRunSummary(
                    started_at=started_at,
                    finished_at=self._clock(),
                    status=JobState.ERROR,
                    processed_count=tally.processed,
                    error_count=tally.errors,
                    message="Job failed with an unexpected error",
                    failures=tally.failures,
                ),
            )
            raise
        finally:
            run_id_var.reset(run_token)

    # =========================================================================
    # PER ACCOUNT
    # =========================================================================

    def _process_account(
        self,
        account: Account,
        tally: _Tally,
        cancel_event: Optional[threading.Event],
    ) -> None:
        account_token = account_id_var.set(account.id)
        try:
            now = self._clock()
            tokens = ensure_valid_credentials(
                self._user_id,
                account,
                self._accounts,
                refresher=self._refresher,
                now=now.timestamp(),
            )

            mailbox = self._mailbox_factory(tokens.access_token)
            try:
                poll = poll_account(self._user_id, account, self._accounts, mailbox, now)
                if not poll.message_ids:
                    return

                rules = self._rules.list_rules(self._user_id, account.id)
                for message_id in poll.message_ids:
                    if _cancelled(cancel_event):
                        break
                    self._process_message(account, mailbox, message_id, rules, tally)
            finally:
                mailbox.close()

        except Exception as e:
            logger.error(
                "job.account_failed",
                extra={
                    "action": "job.account_failed",
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            tally.fail(account.id, None, e)
        finally:
            account_id_var.reset(account_token)

    # =========================================================================
    # PER MESSAGE
    # =========================================================================

    def _process_message(self, account: Account, mailbox, message_id: str, rules, tally: _Tally) -> None:
        try:
            message = mailbox.fetch_message(message_id)
            decision = self._engine.categorize(message.to_email_data(), rules)
            applied = apply_decision(mailbox, message_id, decision)

            entry = EmailLogEntry(
                id=uuid.uuid4().hex[:16],
                user_id=self._user_id,
                account_id=account.id,
                message_id=message_id,
                sender=message.sender,
                subject=message.subject,
                snippet=message.snippet,
                body=message.body[: settings.body_max_chars],
                applied_actions=applied,
                rule_matched=decision.reasoning,
                matched_rule_id=decision.matched_rule_id,
                decision=decision,
                processed_at=self._clock(),
            ).with_retention(self._retention_days)
            self._logs.append_log(entry)

            tally.processed += 1
            audit.info(
                "email.processed",
                message_id=message_id,
                applied_actions=applied,
            )

        except Exception as e:
            logger.error(
                "job.message_failed",
                extra={
                    "action": "job.message_failed",
                    "message_id": message_id,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            tally.fail(account.id, message_id, e)


def _cancelled(cancel_event: Optional[threading.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def create_default_job(user_id: Optional[str] = None) -> EmailProcessingJob:
    """Wire the job to the JSON store, Gmail and the Anthropic suggestion source."""
    from email_genie.storage.json_store import get_store

    store = get_store()
    engine = CategorizationEngine(suggestion_source=LLMSuggestionSource(LLMClient()))
    return EmailProcessingJob(
        user_id=user_id or settings.user_id,
        accounts=store,
        rules=store,
        logs=store,
        status=store,
        engine=engine,
        mailbox_factory=GmailClient,
    )
