#!/usr/bin/env python3
"""
AccountKit -- operator command line.

Usage:
  python main.py normalize-phone "+44 7400 123456"
  python main.py normalize-phone "(201) 555-0123" --region US
  python main.py resolve-login Ana@Example.com
  python main.py create-admin --username root --email root@example.com --full-name "Site Admin"
  python main.py purge-tokens

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the account database (default: ./accountkit.db)
  SECRET_KEY    Required by commands that touch accounts unless DEBUG=true.
"""

import argparse
import getpass
import sys
from typing import Optional

from core.errors import AccountError
from core.identifiers import resolve_login
from core.phone import normalize_phone


def _cmd_normalize_phone(args: argparse.Namespace) -> int:
    print(normalize_phone(args.raw, args.region))
    return 0


def _cmd_resolve_login(args: argparse.Namespace) -> int:
    identifier = resolve_login(args.raw)
    print(f"{identifier.field}\t{identifier.value}")
    return 0


def _cmd_create_admin(args: argparse.Namespace) -> int:
    # Account commands need SECRET_KEY (via auth.tokens); import lazily so the
    # pure lookup commands above work without one.
    from auth.models import Account
    from auth.store import AccountStore
    from auth.tokens import hash_password

    password = args.password or getpass.getpass("Password: ")
    if len(password) < 6:
        print("  [!] Password must be at least 6 characters.")
        return 1

    phone = normalize_phone(args.phone, args.region) if args.phone else None
    email = args.email.strip().lower()

    store = AccountStore()
    try:
        conflicts = store.find_conflicts(email=email, username=args.username, phone_number=phone)
        if conflicts:
            print(f"  [!] Already taken: {', '.join(conflicts)}")
            return 1
        account_id = store.create_account(
            Account(
                username=args.username,
                full_name=args.full_name,
                email=email,
                hashed_password=hash_password(password),
                role="admin",
                phone_number=phone,
            )
        )
    finally:
        store.close()
    print(f"Created admin account {account_id} ({args.username}).")
    return 0


def _cmd_purge_tokens(args: argparse.Namespace) -> int:
    from auth.store import AccountStore

    store = AccountStore()
    try:
        removed = store.purge_expired_tokens()
    finally:
        store.close()
    print(f"Purged {removed} expired/revoked token(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="accountkit",
        description="AccountKit operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py normalize-phone 07400123456 --region GB
  python main.py resolve-login +16502530000
  python main.py create-admin --username root --email root@example.com --full-name "Site Admin"
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("normalize-phone", help="Print a phone number in E.164 form")
    p.add_argument("raw", help="Phone number as typed")
    p.add_argument("--region", metavar="CC", help="Two-letter default region for numbers without '+'")
    p.set_defaults(func=_cmd_normalize_phone)

    p = sub.add_parser("resolve-login", help="Show how a login string is classified")
    p.add_argument("raw", help="Email, phone number or username")
    p.set_defaults(func=_cmd_resolve_login)

    p = sub.add_parser("create-admin", help="Create an admin account")
    p.add_argument("--username", required=True)
    p.add_argument("--email", required=True)
    p.add_argument("--full-name", required=True)
    p.add_argument("--password", help="Prompted for when omitted")
    p.add_argument("--phone", help="Optional phone number")
    p.add_argument("--region", metavar="CC", help="Default region for --phone")
    p.set_defaults(func=_cmd_create_admin)

    p = sub.add_parser("purge-tokens", help="Delete expired and revoked tokens")
    p.set_defaults(func=_cmd_purge_tokens)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    try:
        return args.func(args)
    except AccountError as exc:
        print(f"  [!] {exc.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
