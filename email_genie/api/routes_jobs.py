"""
Processing job routes.

The scheduler calls /api/jobs/process-emails on a fixed cadence (GET or
POST, whichever the cron provider supports). The handler runs the pass
synchronously and returns the run summary.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from email_genie.auth.dependencies import require_api_key, require_cron_secret
from email_genie.config import settings
from email_genie.jobs.processor import create_default_job
from email_genie.storage.json_store import get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["jobs"])


@router.api_route(
    "/process-emails",
    methods=["GET", "POST"],
    dependencies=[Depends(require_cron_secret)],
)
def process_emails():
    """Run one processing pass for the configured user."""
    job = create_default_job(settings.user_id)
    try:
        summary = job.run()
    except Exception as e:
        logger.error(
            "api.process_emails_failed",
            extra={"action": "api.process_emails_failed", "error_type": type(e).__name__},
        )
        raise HTTPException(status_code=500, detail="Email processing failed")

    return summary.model_dump(mode="json")


@router.get("/status", dependencies=[Depends(require_api_key)])
def job_status():
    """Latest persisted job status, or a placeholder if no pass has run."""
    summary = get_store().get_status(settings.user_id)
    if summary is None:
        return {"status": "never_run"}
    return summary.model_dump(mode="json")
