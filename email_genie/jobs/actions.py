"""
Apply a categorization decision to a mailbox.

Label ids are resolved before anything is mutated, so a label that cannot
be looked up or created leaves the message untouched. Once mutations start
they run in a fixed order; a failure partway through is reported by the
caller as an error for that message and is not rolled back.
"""

from typing import Protocol

from email_genie.agent.schemas import CategorizationDecision


class MailboxActions(Protocol):
    def get_or_create_label(self, name: str) -> str: ...

    def mark_important(self, message_id: str) -> None: ...

    def pin_conversation(self, message_id: str) -> None: ...

    def archive(self, message_id: str) -> None: ...

    def mark_read_and_label(self, message_id: str, label_ids: list[str]) -> None: ...

    def apply_labels(self, message_id: str, label_ids: list[str]) -> None: ...


def apply_decision(
    mailbox: MailboxActions,
    message_id: str,
    decision: CategorizationDecision,
) -> list[str]:
    """
    Perform every action the decision asks for.

    Returns:
        Names of the actions actually applied, in order.
    """
    labels = decision.suggested_labels
    label_ids = [mailbox.get_or_create_label(name) for name in labels]

    applied: list[str] = []

    if decision.should_mark_important:
        mailbox.mark_important(message_id)
        applied.append("marked_important")

    if decision.should_pin_conversation:
        mailbox.pin_conversation(message_id)
        applied.append("pinned")

    if decision.should_skip_inbox:
        mailbox.archive(message_id)
        applied.append("archived")

    if label_ids:
        if decision.should_mark_read_and_label:
            mailbox.mark_read_and_label(message_id, label_ids)
            applied.append(f"marked_read_and_labeled:{','.join(labels)}")
        else:
            mailbox.apply_labels(message_id, label_ids)
            applied.append(f"applied_labels:{','.join(labels)}")

    return applied
