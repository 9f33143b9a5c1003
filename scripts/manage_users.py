"""
Administer JetJot accounts from the command line.

Examples:
  python scripts/manage_users.py list
  python scripts/manage_users.py disable alice
  python scripts/manage_users.py grant-admin bob
  python scripts/manage_users.py delete carol --yes

Uses the same DATABASE_URL settings as the API.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jetjot.admin import AccountAdmin
from jetjot.dependencies import get_document_store
from jetjot.errors import JetJotError

logger = logging.getLogger(__name__)


def print_users(admin: AccountAdmin) -> None:
    users = admin.list_users()
    if not users:
        print("No users.")
        return
    for user in users:
        flags = []
        if user.is_admin:
            flags.append("admin")
        if user.disabled:
            flags.append("disabled")
        print(
            f"{user.username:<24} sprints={user.sprint_count:<4} "
            f"created={user.created_at} {' '.join(flags)}".rstrip()
        )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Administer JetJot accounts")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List users with their sprint counts")
    for name, help_text in (
        ("disable", "Disable an account"),
        ("enable", "Re-enable an account"),
        ("grant-admin", "Give an account admin rights"),
        ("revoke-admin", "Take admin rights away"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("username")
    delete = sub.add_parser("delete", help="Delete an account and all its sprints")
    delete.add_argument("username")
    delete.add_argument(
        "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    admin = AccountAdmin(get_document_store())

    try:
        if args.command == "list":
            print_users(admin)
        elif args.command in ("disable", "enable"):
            admin.set_disabled(args.username, args.command == "disable")
        elif args.command in ("grant-admin", "revoke-admin"):
            admin.set_admin(args.username, args.command == "grant-admin")
        elif args.command == "delete":
            if not args.yes:
                answer = input(f"Delete {args.username} and all their sprints? [y/N] ")
                if answer.strip().lower() != "y":
                    logger.info("Aborted")
                    return 1
            deleted = admin.delete_account(args.username)
            logger.info("Deleted %s (%d sprints)", args.username, deleted)
    except JetJotError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
