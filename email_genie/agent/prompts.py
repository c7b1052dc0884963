"""
All LLM prompt templates for email categorization.

This is the single file to edit when you need to change how the model is
instructed. No other code changes needed.

IMPORTANT:
- Never put actual email content in this file. These are templates.
- The {placeholders} are filled in at runtime by the categorization engine.
- The policy block must keep telling the model to stay inside the single
  highest-priority matching rule; the engine enforces it regardless.
"""

from email_genie.agent.schemas import EmailData, Rule

# =============================================================================
# SYSTEM PROMPT: Role, available actions, rules, policy
# =============================================================================

CATEGORIZE_SYSTEM_HEADER = """\
You are an intelligent email categorization assistant. Your job is to analyze \
incoming emails and suggest appropriate actions based on the user's defined rules.

Available actions:
1. Mark as important (star the email)
2. Pin conversation
3. Skip inbox (archive the email)
4. Mark as read and move to label (keeps email searchable, doesn't archive)
5. Apply custom labels

User's rules (in priority order):
"""

CATEGORIZE_POLICY = """
Analyze the email and determine which actions should be applied based on the rules above.
Only apply actions when the email matches at least one rule's conditions.
If no rule conditions match, return no actions (all booleans false, empty labels) \
and explain that no rules matched.
When multiple rules match, apply actions only from the highest-priority (earliest listed) rule.
Do not invent labels or actions beyond what the matching rule specifies.
Record your answer with the record_categorization tool."""

# =============================================================================
# USER PROMPT: The email itself
# =============================================================================

CATEGORIZE_USER = """\
Email to categorize:

From: {sender}
Subject: {subject}
Preview: {snippet}

Full content:
{body}

Based on the rules, what actions should be applied to this email?"""

TRUNCATION_MARKER = "..."

# =============================================================================
# STRUCTURED OUTPUT: The tool the model is forced to call
# =============================================================================

CATEGORIZATION_TOOL = {
    "name": "record_categorization",
    "description": "Record the actions to apply to the email being categorized.",
    "input_schema": {
        "type": "object",
        "properties": {
            "should_mark_important": {
                "type": "boolean",
                "description": "Whether the email should be marked as important/starred",
            },
            "should_pin_conversation": {
                "type": "boolean",
                "description": "Whether the conversation should be pinned",
            },
            "should_skip_inbox": {
                "type": "boolean",
                "description": "Whether the email should skip the inbox (be archived)",
            },
            "should_mark_read_and_label": {
                "type": "boolean",
                "description": (
                    "Whether the email should be marked as read and moved to a label "
                    "without archiving (keeps it searchable)"
                ),
            },
            "suggested_labels": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Custom labels to apply",
            },
            "reasoning": {
                "type": "string",
                "description": "Brief explanation of the categorization decision",
            },
            "confidence": {
                "type": "number",
                "minimum": 0,
                "maximum": 1,
                "description": "Confidence score of the categorization (0-1)",
            },
        },
        "required": [
            "should_mark_important",
            "should_pin_conversation",
            "should_skip_inbox",
            "should_mark_read_and_label",
            "suggested_labels",
            "reasoning",
            "confidence",
        ],
    },
}


# =============================================================================
# BUILDERS
# =============================================================================

def format_rule(index: int, rule: Rule) -> str:
    """Render one rule as a numbered block for the system prompt."""
    lines = [f"{index}. {rule.name} ({rule.type.value}, priority: {rule.priority})"]

    conditions = rule.conditions
    if conditions is not None and conditions.has_any():
        lines.append("   Conditions:")
        if conditions.sender_email:
            lines.append(f"   - Sender emails: {', '.join(conditions.sender_email)}")
        if conditions.sender_domain:
            lines.append(f"   - Sender domains: {', '.join(conditions.sender_domain)}")
        if conditions.subject_contains:
            lines.append(f"   - Subject contains: {', '.join(conditions.subject_contains)}")
        if conditions.body_contains:
            lines.append(f"   - Body contains: {', '.join(conditions.body_contains)}")

    actions = rule.actions
    lines.append("   Actions:")
    if actions.mark_important:
        lines.append("   - Mark as important")
    if actions.pin_conversation:
        lines.append("   - Pin conversation")
    if actions.skip_inbox:
        lines.append("   - Skip inbox")
    if actions.mark_read_and_label:
        lines.append("   - Mark as read and move to label")
    if actions.apply_labels:
        lines.append(f"   - Apply labels: {', '.join(actions.apply_labels)}")

    if rule.ai_prompt:
        lines.append(f"   AI Instructions: {rule.ai_prompt}")

    return "\n".join(lines)


def build_system_prompt(rules: list[Rule]) -> str:
    """
    Build the system prompt summarizing every enabled rule.

    Args:
        rules: Enabled rules, already sorted by ascending priority.
    """
    blocks = [format_rule(i, rule) for i, rule in enumerate(rules, start=1)]
    return CATEGORIZE_SYSTEM_HEADER + "\n" + "\n\n".join(blocks) + "\n" + CATEGORIZE_POLICY


def truncate_body(body: str, max_chars: int) -> str:
    """Cut the body to max_chars, marking the cut."""
    if len(body) <= max_chars:
        return body
    return body[:max_chars] + TRUNCATION_MARKER


def build_user_prompt(email: EmailData, max_body_chars: int = 2000) -> str:
    return CATEGORIZE_USER.format(
        sender=email.sender,
        subject=email.subject,
        snippet=email.snippet,
        body=truncate_body(email.body, max_body_chars),
    )
