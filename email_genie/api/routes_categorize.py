"""
Categorization preview and decision log routes.

/api/categorize/test runs the engine against a caller-supplied email and
the account's rules. It never touches the mailbox and writes no log entry.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from email_genie.agent.engine import CategorizationEngine
from email_genie.agent.schemas import EmailData
from email_genie.agent.suggestion import LLMSuggestionSource
from email_genie.auth.dependencies import require_api_key
from email_genie.config import settings
from email_genie.llm.client import LLMClient
from email_genie.storage.json_store import get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["categorize"], dependencies=[Depends(require_api_key)])


class CategorizeTestRequest(BaseModel):
    account_id: str
    email: EmailData


def _get_engine() -> CategorizationEngine:
    return CategorizationEngine(suggestion_source=LLMSuggestionSource(LLMClient()))


@router.post("/categorize/test")
def categorize_test(request: CategorizeTestRequest):
    store = get_store()
    if store.get_account(settings.user_id, request.account_id) is None:
        raise HTTPException(status_code=404, detail="Account not found")

    rules = store.list_rules(settings.user_id, request.account_id)
    decision = _get_engine().categorize(request.email, rules)
    return decision.model_dump(mode="json")


@router.get("/logs")
def list_logs(account_id: str, days: int = Query(default=7, ge=1, le=365)):
    entries = get_store().list_logs(settings.user_id, account_id, days=days)
    return {"logs": [e.model_dump(mode="json") for e in entries], "count": len(entries)}
