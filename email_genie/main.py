"""
FastAPI application entry point.

Run with:
    uvicorn email_genie.main:app --port 8000

The scheduler hits /api/jobs/process-emails; everything else under /api is
for management clients holding the API key.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request

from email_genie.api.routes_accounts import router as accounts_router
from email_genie.api.routes_categorize import router as categorize_router
from email_genie.api.routes_jobs import router as jobs_router
from email_genie.api.routes_rules import router as rules_router
from email_genie.config import settings
from email_genie.logging.config import request_id_var, setup_logging

# Logging before anything else can emit
setup_logging(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.app_env == "development" else None,
    redoc_url=None,
)

for router in (jobs_router, rules_router, categorize_router, accounts_router):
    app.include_router(router)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag every log line of the request with an id and log the outcome."""
    req_id = uuid.uuid4().hex[:8]
    token = request_id_var.set(req_id)
    start = time.monotonic()

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = req_id
        logger.info(
            "http.request",
            extra={
                "action": "http.request",
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "latency_ms": int((time.monotonic() - start) * 1000),
            },
        )
        return response
    finally:
        request_id_var.reset(token)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    checks = {
        "anthropic_key_set": bool(settings.anthropic_api_key),
        "google_client_set": bool(settings.google_client_id and settings.google_client_secret),
        "api_key_set": bool(settings.api_secret_key),
        "data_path_set": bool(settings.data_path),
    }
    return {
        "status": "ready" if all(checks.values()) else "not_ready",
        "checks": checks,
    }
