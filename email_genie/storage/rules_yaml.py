"""
Load categorization rules from a YAML file.

Handy for seeding a fresh store or keeping rules in version control.

Example file:

    rules:
      - name: Invoices
        priority: 10
        conditions:
          subject_contains: ["invoice", "receipt"]
        actions:
          apply_labels: ["Finance"]
      - name: Newsletters
        type: hybrid
        priority: 50
        ai_prompt: Archive promotional newsletters, keep product updates.
        conditions:
          sender_domain: ["newsletter.com"]
        actions:
          skip_inbox: true
"""

import logging
import re
import uuid
from pathlib import Path

import yaml

from email_genie.agent.schemas import Rule

logger = logging.getLogger(__name__)


def _slug(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def load_rules_file(path: str, user_id: str, account_ids: list[str]) -> list[Rule]:
    """
    Parse a rules YAML file into Rule models.

    Rules without an explicit `id` get a stable one derived from their name,
    so re-importing the same file updates rather than duplicates them.
    Rules without `account_ids` apply to the given accounts.
    """
    file = Path(path)
    if not file.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    with open(file, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("rules", [])
    if not isinstance(entries, list):
        raise ValueError(f"'rules' must be a list in {path}")

    rules = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        entry = dict(entry)
        entry.setdefault("id", uuid.uuid5(uuid.NAMESPACE_URL, f"{user_id}/{_slug(entry.get('name', ''))}").hex[:16])
        entry.setdefault("account_ids", list(account_ids))
        entry["user_id"] = user_id
        rules.append(Rule.model_validate(entry))

    logger.info(
        "rules_file.loaded",
        extra={"action": "rules_file.loaded", "rule_count": len(rules)},
    )
    return rules
