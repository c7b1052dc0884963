"""
Categorization engine. Decides what to do with one email.

This module ties together prompt building, the suggestion source, rule
matching and constraint enforcement. It does NOT fetch or mutate mail;
it receives parsed EmailData and returns a CategorizationDecision.

Per email:

    Start → AwaitingSuggestion ─┬─ success → Constrained
                                └─ failure ─┬─ FallbackMatched
                                            └─ FallbackNoMatch

The engine never raises to its caller. A failing suggestion source
degrades to deterministic rule matching.

Usage:
    from email_genie.agent.engine import CategorizationEngine

    engine = CategorizationEngine(suggestion_source=LLMSuggestionSource(LLMClient()))
    decision = engine.categorize(email, rules)
"""

import logging
from typing import Optional

from email_genie.agent.constraints import (
    apply_rule_constraints,
    decision_from_rule,
    no_match_decision,
    no_rules_decision,
)
from email_genie.agent.matcher import find_matching_rule
from email_genie.agent.prompts import build_system_prompt, build_user_prompt
from email_genie.agent.schemas import (
    CategorizationDecision,
    DecisionSource,
    EmailData,
    Rule,
)
from email_genie.agent.suggestion import SuggestionError, SuggestionSource
from email_genie.config import settings
from email_genie.logging.audit import audit

logger = logging.getLogger(__name__)


class CategorizationEngine:
    """Resolves the governing rule for an email and clamps suggestions to it."""

    def __init__(
        self,
        suggestion_source: SuggestionSource,
        fallback_confidence: Optional[float] = None,
        max_body_chars: Optional[int] = None,
    ):
        self._source = suggestion_source
        self._fallback_confidence = (
            settings.fallback_confidence if fallback_confidence is None else fallback_confidence
        )
        self._max_body_chars = max_body_chars or settings.body_max_chars

    def categorize(self, email: EmailData, rules: list[Rule]) -> CategorizationDecision:
        """
        Decide which authorized actions to apply to an email.

        Args:
            email: The email to categorize.
            rules: Candidate rules. Disabled rules are ignored; the rest are
                   evaluated in ascending priority (stable for ties).

        Returns:
            A decision whose every action is authorized by the matched rule.
        """
        enabled = sorted((r for r in rules if r.enabled), key=lambda r: r.priority)

        if not enabled:
            decision = no_rules_decision()
            self._audit(email, decision)
            return decision

        system_prompt = build_system_prompt(enabled)
        user_prompt = build_user_prompt(email, self._max_body_chars)

        try:
            raw = self._source.suggest(system_prompt, user_prompt)
        except SuggestionError as e:
            logger.warning(
                "categorize.suggestion_failed",
                extra={
                    "action": "categorize.suggestion_failed",
                    "message_id": email.message_id,
                    "error": str(e),
                },
            )
            decision = self._fallback(email, enabled)
        except Exception as e:
            logger.error(
                "categorize.suggestion_unexpected_error",
                extra={
                    "action": "categorize.suggestion_unexpected_error",
                    "message_id": email.message_id,
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            decision = self._fallback(email, enabled)
        else:
            matched = find_matching_rule(email, enabled)
            decision = apply_rule_constraints(raw, matched)

        self._audit(email, decision)
        return decision

    def _fallback(self, email: EmailData, rules: list[Rule]) -> CategorizationDecision:
        """Deterministic decision used when no suggestion is available."""
        matched = find_matching_rule(email, rules)
        if matched is None:
            return no_match_decision(source=DecisionSource.FALLBACK_NO_MATCH)
        return decision_from_rule(matched, self._fallback_confidence)

    @staticmethod
    def _audit(email: EmailData, decision: CategorizationDecision) -> None:
        audit.info(
            "email.categorized",
            message_id=email.message_id,
            source=decision.source.value if decision.source else None,
            matched_rule_id=decision.matched_rule_id,
            confidence=decision.confidence,
            label_count=len(decision.suggested_labels),
            has_actions=decision.has_actions,
        )
