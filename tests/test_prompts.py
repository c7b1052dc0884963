"""
Tests for categorization prompt templates and builders.
"""

from email_genie.agent.prompts import (
    CATEGORIZATION_TOOL,
    CATEGORIZE_POLICY,
    TRUNCATION_MARKER,
    build_system_prompt,
    build_user_prompt,
    format_rule,
    truncate_body,
)
from email_genie.agent.schemas import RuleType
from factories import make_email, make_rule


class TestSystemPrompt:
    def test_rules_numbered_in_given_order(self):
        rules = [
            make_rule(id="a", name="Invoices", priority=1),
            make_rule(id="b", name="Newsletters", priority=50),
        ]
        prompt = build_system_prompt(rules)

        assert "1. Invoices (condition, priority: 1)" in prompt
        assert "2. Newsletters (condition, priority: 50)" in prompt
        assert prompt.index("Invoices") < prompt.index("Newsletters")

    def test_policy_included(self):
        prompt = build_system_prompt([make_rule()])
        assert CATEGORIZE_POLICY.strip() in prompt
        assert "highest-priority" in prompt

    def test_format_rule_lists_conditions_actions_and_prompt(self):
        rule = make_rule(
            name="Bank",
            type=RuleType.HYBRID,
            conditions={"sender_domain": ["bank.com"], "subject_contains": ["statement", "alert"]},
            actions={"mark_important": True, "apply_labels": ["Finance", "Bank"]},
            ai_prompt="Only fraud alerts are important.",
        )
        text = format_rule(3, rule)

        assert text.startswith("3. Bank (hybrid, priority: 100)")
        assert "Sender domains: bank.com" in text
        assert "Subject contains: statement, alert" in text
        assert "Mark as important" in text
        assert "Apply labels: Finance, Bank" in text
        assert "AI Instructions: Only fraud alerts are important." in text
        assert "Skip inbox" not in text

    def test_conditionless_rule_has_no_conditions_block(self):
        rule = make_rule(type=RuleType.AI, conditions=None, ai_prompt="Anything from family")
        assert "Conditions:" not in format_rule(1, rule)


class TestUserPrompt:
    def test_contains_email_fields(self):
        email = make_email(
            sender="Acme <billing@acme.com>",
            subject="Invoice 42",
            snippet="Your invoice",
            body="Amount due: $10",
        )
        prompt = build_user_prompt(email)

        assert "From: Acme <billing@acme.com>" in prompt
        assert "Subject: Invoice 42" in prompt
        assert "Preview: Your invoice" in prompt
        assert "Amount due: $10" in prompt

    def test_body_truncated(self):
        email = make_email(body="x" * 5000)
        prompt = build_user_prompt(email, max_body_chars=2000)
        assert "x" * 2000 + TRUNCATION_MARKER in prompt
        assert "x" * 2001 not in prompt

    def test_braces_in_email_are_safe(self):
        email = make_email(subject="Template {name}", body="{{not a placeholder}}")
        prompt = build_user_prompt(email)
        assert "Template {name}" in prompt


class TestTruncateBody:
    def test_short_body_untouched(self):
        assert truncate_body("hello", 10) == "hello"

    def test_exact_length_untouched(self):
        assert truncate_body("abcde", 5) == "abcde"

    def test_long_body_cut(self):
        assert truncate_body("abcdef", 3) == "abc" + TRUNCATION_MARKER


class TestTool:
    def test_schema_requires_every_decision_field(self):
        schema = CATEGORIZATION_TOOL["input_schema"]
        assert set(schema["required"]) == set(schema["properties"])
        assert "suggested_labels" in schema["required"]

    def test_provenance_fields_not_requested(self):
        props = CATEGORIZATION_TOOL["input_schema"]["properties"]
        assert "matched_rule_id" not in props
        assert "source" not in props
