#!/usr/bin/env python3
"""Administrative commands for a HackHub deployment.

    python manage.py init-db
    python manage.py create-user --email admin@example.com --name Admin --role admin
"""

import argparse
import sqlite3
import sys

from models.db import create_user, init_db
from models.schemas import ROLES


def cmd_init_db(args) -> int:
    init_db()
    print("✅ Database ready")
    return 0


def cmd_create_user(args) -> int:
    init_db()
    try:
        row, token = create_user(args.email, args.name, role=args.role, mobile=args.mobile)
    except sqlite3.IntegrityError:
        print(f"❌ A user with email {args.email} already exists", file=sys.stderr)
        return 1
    print(f"✅ Created {row['role']} {row['email']} (id {row['id']})")
    print(f"   Bearer token: {token}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HackHub administration")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="Apply pending migrations")
    init.set_defaults(func=cmd_init_db)

    user = sub.add_parser("create-user", help="Create an account and print its API token")
    user.add_argument("--email", required=True)
    user.add_argument("--name", required=True)
    user.add_argument("--role", choices=ROLES, default="student")
    user.add_argument("--mobile")
    user.set_defaults(func=cmd_create_user)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
