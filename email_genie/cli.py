"""
Command-line interface for operating Email Genie without the HTTP server.

Usage:
    email-genie run
    email-genie status
    email-genie add-account --email me@gmail.com --refresh-token 1//0g...
    email-genie import-rules rules.yaml --account acc-1
    email-genie reset-watermarks --minutes-ago 60
"""

import argparse
import json
import logging
import sys
import uuid
from datetime import timedelta
from typing import Optional

from email_genie.agent.schemas import utcnow
from email_genie.config import settings
from email_genie.logging.audit import audit
from email_genie.logging.config import setup_logging
from email_genie.storage.json_store import get_store
from email_genie.storage.models import Account, JobState
from email_genie.storage.rules_yaml import load_rules_file

logger = logging.getLogger(__name__)

DEFAULT_RESET_MINUTES = 7 * 24 * 60


def cmd_run(args: argparse.Namespace) -> int:
    from email_genie.jobs.processor import create_default_job

    summary = create_default_job(args.user).run()
    print(json.dumps(summary.model_dump(mode="json"), indent=2))
    return 0 if summary.status == JobState.SUCCESS else 1


def cmd_status(args: argparse.Namespace) -> int:
    summary = get_store().get_status(args.user)
    if summary is None:
        print("No processing pass has run yet.")
        return 0
    print(json.dumps(summary.model_dump(mode="json"), indent=2))
    return 0


def cmd_add_account(args: argparse.Namespace) -> int:
    account = Account(
        id=args.id or uuid.uuid4().hex[:16],
        user_id=args.user,
        email=args.email,
        refresh_token=args.refresh_token,
    )
    get_store().save_account(account)
    audit.info("account.added", account_id=account.id)
    print(f"Added account {account.id} ({account.email})")
    return 0


def cmd_import_rules(args: argparse.Namespace) -> int:
    store = get_store()
    if store.get_account(args.user, args.account) is None:
        print(f"Unknown account: {args.account}", file=sys.stderr)
        return 2

    try:
        rules = load_rules_file(args.file, args.user, [args.account])
    except (FileNotFoundError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2

    for rule in rules:
        if store.get_rule(args.user, rule.id) is None:
            store.create_rule(rule)
        else:
            store.update_rule(args.user, rule.id, rule.model_dump(exclude={"created_at"}))

    audit.info("rules.imported", rule_count=len(rules), account_id=args.account)
    print(f"Imported {len(rules)} rule(s)")
    return 0


def cmd_reset_watermarks(args: argparse.Namespace) -> int:
    store = get_store()
    target = utcnow() - timedelta(minutes=args.minutes_ago)

    accounts = store.list_accounts(args.user)
    for account in accounts:
        store.update_last_watermark(args.user, account.id, target)
        print(f"{account.email}: {account.last_email_check or 'not set'} -> {target.isoformat()}")

    audit.info("poll.watermarks_reset", account_count=len(accounts), minutes_ago=args.minutes_ago)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="email-genie", description="Rule-driven Gmail categorization")
    parser.add_argument("--user", default=settings.user_id, help="Tenant user id")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run one processing pass")
    run.set_defaults(func=cmd_run)

    status = sub.add_parser("status", help="Show the last job status")
    status.set_defaults(func=cmd_status)

    add = sub.add_parser("add-account", help="Register a Gmail account by refresh token")
    add.add_argument("--email", required=True)
    add.add_argument("--refresh-token", required=True)
    add.add_argument("--id", default=None, help="Account id (generated if omitted)")
    add.set_defaults(func=cmd_add_account)

    imp = sub.add_parser("import-rules", help="Load rules from a YAML file")
    imp.add_argument("file")
    imp.add_argument("--account", required=True, help="Account the rules apply to")
    imp.set_defaults(func=cmd_import_rules)

    reset = sub.add_parser("reset-watermarks", help="Move every account's poll watermark back")
    reset.add_argument("--minutes-ago", type=int, default=DEFAULT_RESET_MINUTES)
    reset.set_defaults(func=cmd_reset_watermarks)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    setup_logging(level=settings.log_level)
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
