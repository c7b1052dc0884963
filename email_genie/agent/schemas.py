"""
Data models for rules, incoming emails and categorization decisions.

These Pydantic models define the shape of everything flowing through the
categorization pipeline. Rules are read-only here; decisions are produced
once per email per pass and never mutated after they are logged.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RuleType(str, Enum):
    """
    How a rule is evaluated.

    AI: only the free-text instruction guides the model; never matched
        deterministically unless it also declares conditions.
    CONDITION: sender/subject/body conditions only.
    HYBRID: conditions set the authorization ceiling, the instruction
        guides the model's suggestion within it.
    """
    AI = "AI"
    CONDITION = "condition"
    HYBRID = "hybrid"


class RuleConditions(BaseModel):
    """Substring conditions. Any non-empty list matching is enough."""
    sender_email: list[str] = Field(default_factory=list)
    sender_domain: list[str] = Field(default_factory=list)
    subject_contains: list[str] = Field(default_factory=list)
    body_contains: list[str] = Field(default_factory=list)

    def has_any(self) -> bool:
        return bool(
            self.sender_email
            or self.sender_domain
            or self.subject_contains
            or self.body_contains
        )


class RuleActions(BaseModel):
    """The most a matching rule is allowed to do to an email."""
    mark_important: bool = False
    pin_conversation: bool = False
    skip_inbox: bool = False
    mark_read_and_label: bool = False
    apply_labels: list[str] = Field(default_factory=list)


class Rule(BaseModel):
    """A named, prioritized categorization policy owned by one user."""
    id: str
    user_id: str
    account_ids: list[str] = Field(default_factory=list)
    name: str
    type: RuleType = RuleType.CONDITION
    conditions: Optional[RuleConditions] = None
    actions: RuleActions = Field(default_factory=RuleActions)
    ai_prompt: Optional[str] = None
    priority: int = Field(default=100, description="Lower value is evaluated first")
    enabled: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class EmailData(BaseModel):
    """The parts of a message the engine looks at. Never mutated."""
    sender: str = Field(default="", description="Raw From header")
    subject: str = Field(default="")
    body: str = Field(default="")
    snippet: str = Field(default="")
    message_id: Optional[str] = Field(default=None)


class DecisionSource(str, Enum):
    """Terminal state of one categorization."""
    NO_RULES = "no_rules"
    CONSTRAINED = "constrained"
    FALLBACK_MATCHED = "fallback_matched"
    FALLBACK_NO_MATCH = "fallback_no_match"


class CategorizationDecision(BaseModel):
    """Which authorized actions to apply to one email."""
    should_mark_important: bool = False
    should_pin_conversation: bool = False
    should_skip_inbox: bool = False
    should_mark_read_and_label: bool = False
    suggested_labels: list[str] = Field(default_factory=list)
    reasoning: str = Field(default="")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    # --- Provenance, filled in by the engine ---
    matched_rule_id: Optional[str] = Field(default=None)
    source: Optional[DecisionSource] = Field(default=None)

    @property
    def has_actions(self) -> bool:
        return (
            self.should_mark_important
            or self.should_pin_conversation
            or self.should_skip_inbox
            or self.should_mark_read_and_label
            or bool(self.suggested_labels)
        )
