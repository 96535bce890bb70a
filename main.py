#!/usr/bin/env python3
"""
Marketing site admin -- account management CLI.

Provision and inspect admin accounts directly against the database, without
going through the HTTP API. Useful for seeding the first super_admin on a
fresh install and for recovering when every super_admin is locked out.

Usage:
  python main.py create-admin --email owner@example.com --name "Site Owner"
  python main.py create-admin --email editor@example.com --name Editor --role admin
  python main.py list-accounts
  python main.py list-accounts --status pending

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the account database (default: sqlite file
                next to this script).
  SECRET_KEY    Required unless DEBUG=true; see core/config.py.

The password is read with getpass unless --password is given. Passing it on
the command line leaves it in shell history, so prefer the prompt.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.errors import AuthError
from auth.lifecycle import AccountService
from auth.models import ROLE_SUPER_ADMIN, ROLES, STATUSES
from auth.notifications import Notifier
from auth.store import AccountStore


def _read_password(provided: Optional[str]) -> Optional[str]:
    """Return the password from the flag, or prompt twice and require a match."""
    if provided:
        return provided
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def create_admin(store: AccountStore, email: str, name: str, role: str, password: str) -> int:
    service = AccountService(store, Notifier())
    try:
        account = service.create_admin(email, password, name, role=role)
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Created {account.role} account {account.email} (id {account.id}).")
    return 0


def list_accounts(store: AccountStore, status: Optional[str] = None) -> int:
    accounts = store.list_accounts()
    if status:
        accounts = [a for a in accounts if a.status == status]
    if not accounts:
        print("  No accounts found.")
        return 0

    print(f"  {'EMAIL':<36} {'NAME':<24} {'ROLE':<12} {'STATUS':<10} VERIFIED")
    print("  " + "─" * 92)
    for a in accounts:
        verified = "yes" if a.email_verified else "no"
        print(f"  {a.email:<36} {a.name[:24]:<24} {a.role:<12} {a.status:<10} {verified}")
    print(f"\n  {len(accounts)} account(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Manage marketing site admin accounts.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        help="Override DATABASE_URL for this run",
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create-admin", help="Create an active, verified account")
    create.add_argument("--email", required=True, help="Login email")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument(
        "--role",
        choices=ROLES,
        default=ROLE_SUPER_ADMIN,
        help="Account role (default: super_admin)",
    )
    create.add_argument(
        "--password",
        help="Password (prompted for if omitted)",
    )

    listing = sub.add_parser("list-accounts", help="List accounts, newest first")
    listing.add_argument(
        "--status",
        choices=STATUSES,
        help="Only show accounts with this status",
    )

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    store = AccountStore(args.database_url)
    try:
        if args.command == "create-admin":
            password = _read_password(args.password)
            if password is None:
                return 1
            return create_admin(store, args.email, args.name, args.role, password)
        return list_accounts(store, args.status)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
