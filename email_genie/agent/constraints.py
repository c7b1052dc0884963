"""
Clamp a suggested decision to what the matched rule authorizes.

A rule's actions are a hard upper bound on what may happen to an email.
Suggestions from the model can only narrow that set, never widen it, and
without a matched rule nothing happens at all.
"""

from typing import Iterable, Optional

from email_genie.agent.schemas import CategorizationDecision, DecisionSource, Rule

NO_MATCH_REASONING = "No rule conditions matched"
NO_RULES_REASONING = "No active rules configured"


def no_match_decision(source: Optional[DecisionSource] = None) -> CategorizationDecision:
    """The canonical no-op decision used when no rule governs the email."""
    return CategorizationDecision(
        reasoning=NO_MATCH_REASONING,
        confidence=1.0,
        source=source,
    )


def no_rules_decision() -> CategorizationDecision:
    return CategorizationDecision(
        reasoning=NO_RULES_REASONING,
        confidence=1.0,
        source=DecisionSource.NO_RULES,
    )


def dedupe_labels(labels: Iterable[str]) -> list[str]:
    """Drop case-insensitive duplicates, keeping the first spelling and order."""
    seen: set[str] = set()
    result = []
    for label in labels:
        key = label.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(label)
    return result


def apply_rule_constraints(
    raw: CategorizationDecision,
    matched_rule: Optional[Rule],
) -> CategorizationDecision:
    """
    Intersect a raw suggestion with the matched rule's actions.

    Labels are matched case-insensitively and emitted in the rule's own
    spelling. Anything the rule does not list is dropped silently.
    """
    if matched_rule is None:
        return no_match_decision(source=DecisionSource.CONSTRAINED)

    actions = matched_rule.actions
    allowed = {label.lower(): label for label in actions.apply_labels}
    labels = [allowed[label.lower()] for label in raw.suggested_labels if label.lower() in allowed]

    return CategorizationDecision(
        should_mark_important=raw.should_mark_important and actions.mark_important,
        should_pin_conversation=raw.should_pin_conversation and actions.pin_conversation,
        should_skip_inbox=raw.should_skip_inbox and actions.skip_inbox,
        should_mark_read_and_label=raw.should_mark_read_and_label and actions.mark_read_and_label,
        suggested_labels=dedupe_labels(labels),
        reasoning=f"Matched rule: {matched_rule.name}" if matched_rule.name else raw.reasoning,
        confidence=raw.confidence,
        matched_rule_id=matched_rule.id,
        source=DecisionSource.CONSTRAINED,
    )


def decision_from_rule(rule: Rule, confidence: float) -> CategorizationDecision:
    """Build a decision straight from a rule's actions, with no model input."""
    actions = rule.actions
    return CategorizationDecision(
        should_mark_important=actions.mark_important,
        should_pin_conversation=actions.pin_conversation,
        should_skip_inbox=actions.skip_inbox,
        should_mark_read_and_label=actions.mark_read_and_label,
        suggested_labels=dedupe_labels(actions.apply_labels),
        reasoning=f"Rule-based fallback: matched {rule.name}",
        confidence=confidence,
        matched_rule_id=rule.id,
        source=DecisionSource.FALLBACK_MATCHED,
    )
