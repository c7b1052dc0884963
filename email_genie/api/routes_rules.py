"""
Rule management routes.

Rules are scoped to the configured user. Updates are partial: only fields
present in the request body are changed.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from email_genie.agent.schemas import Rule, RuleActions, RuleConditions, RuleType, utcnow
from email_genie.auth.dependencies import require_api_key
from email_genie.config import settings
from email_genie.logging.audit import audit
from email_genie.storage.json_store import get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rules", tags=["rules"], dependencies=[Depends(require_api_key)])


class RuleCreate(BaseModel):
    name: str = Field(min_length=1)
    account_ids: list[str] = Field(min_length=1)
    type: RuleType = RuleType.CONDITION
    conditions: Optional[RuleConditions] = None
    actions: RuleActions = Field(default_factory=RuleActions)
    ai_prompt: Optional[str] = None
    priority: int = 100
    enabled: bool = True


class RuleUpdate(BaseModel):
    name: Optional[str] = None
    account_ids: Optional[list[str]] = None
    type: Optional[RuleType] = None
    conditions: Optional[RuleConditions] = None
    actions: Optional[RuleActions] = None
    ai_prompt: Optional[str] = None
    priority: Optional[int] = None
    enabled: Optional[bool] = None


@router.get("")
def list_rules(account_id: Optional[str] = None):
    rules = get_store().list_rules(settings.user_id, account_id)
    return {"rules": [r.model_dump(mode="json") for r in rules]}


@router.post("", status_code=201)
def create_rule(body: RuleCreate):
    rule = Rule(id=uuid.uuid4().hex[:16], user_id=settings.user_id, **body.model_dump())
    get_store().create_rule(rule)
    audit.info("rule.created", rule_id=rule.id, priority=rule.priority)
    return rule.model_dump(mode="json")


@router.put("/{rule_id}")
def update_rule(rule_id: str, body: RuleUpdate):
    updates = body.model_dump(exclude_unset=True)
    updates["updated_at"] = utcnow()

    rule = get_store().update_rule(settings.user_id, rule_id, updates)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")

    audit.info("rule.updated", rule_id=rule_id, fields=sorted(updates))
    return rule.model_dump(mode="json")


@router.delete("/{rule_id}")
def delete_rule(rule_id: str):
    if not get_store().delete_rule(settings.user_id, rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")

    audit.info("rule.deleted", rule_id=rule_id)
    return {"deleted": True}
