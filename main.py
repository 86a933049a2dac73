#!/usr/bin/env python3
"""
RBAC API -- operator command line.

Runs directory maintenance directly against DATABASE_URL, without going
through HTTP. This is the bootstrap path for the first admin: accounts
registered over HTTP with the ADMIN role start as pending, and activating
them needs an admin who already exists.

Usage:
  python main.py create-admin --email admin@example.com --password 's3cret-pass'
  python main.py add-role auditor
  python main.py set-status someone@example.com active
  python main.py list-users pending

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the directory (default: auth/rbac.db)
  SECRET_KEY    Required unless DEBUG=true (the token settings load on import)
"""

import argparse
import sys

from auth.directory import DirectoryError, add_role, register_user, update_user_status, users_by_status
from auth.models import STATUS_ACTIVE, USER_STATUSES, canonical_role
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings


def _create_admin(store: UserStore, args: argparse.Namespace) -> int:
    if store.get_role(canonical_role("admin")) is None:
        print(f"  {add_role(store, 'admin')}")
    user, _message = register_user(
        store,
        full_name=args.name,
        email=args.email.lower(),
        password=args.password,
        hash_password=hash_password,
        roles=["admin"],
        cell_number=args.cell,
    )
    update_user_status(store, user.email, STATUS_ACTIVE)
    print(f"  Admin account {user.email} created and active.")
    return 0


def _add_role(store: UserStore, args: argparse.Namespace) -> int:
    print(f"  {add_role(store, args.name)}")
    return 0


def _set_status(store: UserStore, args: argparse.Namespace) -> int:
    print(f"  {update_user_status(store, args.email.lower(), args.status)}")
    return 0


def _list_users(store: UserStore, args: argparse.Namespace) -> int:
    for user in users_by_status(store, args.status):
        print(f"  {user.id:>5}  {user.email:<40} {','.join(user.roles)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rbac",
        description="RBAC API directory maintenance.",
    )
    parser.add_argument("--db", metavar="URL", help="Override DATABASE_URL.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-admin", help="Create an active admin account (bootstrap).")
    p.add_argument("--email", required=True)
    p.add_argument("--password", required=True)
    p.add_argument("--name", default="Administrator")
    p.add_argument("--cell", default=None)
    p.set_defaults(handler=_create_admin)

    p = sub.add_parser("add-role", help="Create a role, e.g. 'auditor' -> ROLE_AUDITOR.")
    p.add_argument("name")
    p.set_defaults(handler=_add_role)

    p = sub.add_parser("set-status", help="Change a user's account status.")
    p.add_argument("email")
    p.add_argument("status", choices=USER_STATUSES)
    p.set_defaults(handler=_set_status)

    p = sub.add_parser("list-users", help="List users with a given status.")
    p.add_argument("status", choices=USER_STATUSES)
    p.set_defaults(handler=_list_users)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = UserStore(args.db or get_settings().database_url)
    try:
        return args.handler(store, args)
    except DirectoryError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
