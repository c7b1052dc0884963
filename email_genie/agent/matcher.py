"""
Deterministic rule matching.

Finds the single rule that governs an email: the first rule, in the order
given (callers sort by ascending priority), whose conditions match. All
comparisons are case-insensitive containment checks.

A rule matches when ANY of its non-empty condition lists has ANY entry
contained in the corresponding email field. Categories are OR'd together,
not AND'd.

Usage:
    from email_genie.agent.matcher import find_matching_rule
    rule = find_matching_rule(email, rules)
    if rule is None:
        print("no rule governs this email")
"""

import re
from typing import Iterable, Optional

from email_genie.agent.schemas import EmailData, Rule

_ANGLE_ADDRESS = re.compile(r"<(.+?)>")


def extract_sender_details(sender: str) -> tuple[str, str]:
    """
    Derive the lower-cased sender address and domain from a From header.

    "Deals <Deals@Newsletter.com>" → ("deals@newsletter.com", "newsletter.com")
    "bob@example.org"              → ("bob@example.org", "example.org")
    """
    normalized = sender.lower()
    match = _ANGLE_ADDRESS.search(normalized)
    sender_email = match.group(1) if match else normalized
    parts = sender_email.split("@")
    sender_domain = parts[1] if len(parts) > 1 else ""
    return sender_email, sender_domain


def rule_has_conditions(rule: Rule) -> bool:
    """True if the rule declares at least one non-empty condition list."""
    return rule.conditions is not None and rule.conditions.has_any()


def _any_contained(needles: Iterable[str], haystack: str) -> bool:
    return any(needle.lower() in haystack for needle in needles)


def rule_matches(rule: Rule, email: EmailData) -> bool:
    """Evaluate one rule's conditions against an email."""
    if not rule_has_conditions(rule):
        return False

    conditions = rule.conditions
    sender_email, sender_domain = extract_sender_details(email.sender)

    if _any_contained(conditions.sender_email, sender_email):
        return True
    if _any_contained(conditions.sender_domain, sender_domain):
        return True
    if _any_contained(conditions.subject_contains, email.subject.lower()):
        return True
    if _any_contained(conditions.body_contains, email.body.lower()):
        return True
    return False


def find_matching_rule(email: EmailData, rules: list[Rule]) -> Optional[Rule]:
    """
    Return the first rule whose conditions match, or None.

    Conditionless (AI-only) rules are skipped: they can never set the
    authorization ceiling through this path.
    """
    for rule in rules:
        if rule_matches(rule, email):
            return rule
    return None
