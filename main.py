#!/usr/bin/env python3
"""
authcore -- operator CLI for the authorization core.

Usage:
  python main.py seed
  python main.py seed --with-demo-users
  python main.py purge-tokens

Environment variables (see core/config.py for the full list):
  SECRET_KEY      Session token signing key (32+ chars). Required unless DEBUG=true.
  DATABASE_URL    SQLAlchemy URL. Defaults to authcore.db next to the package.
  BCRYPT_ROUNDS   bcrypt work factor (default 12).
  LOG_LEVEL       Logging level (default INFO).
"""

import argparse
import sys

from auth.seed import DEMO_USERS, seed
from auth.service import AuthService
from core.config import get_settings
from core.log import configure_logging


def _cmd_seed(auth: AuthService, args: argparse.Namespace) -> int:
    print("Seeding database...")
    report = seed(auth, with_demo_users=args.with_demo_users)
    print(f"  Permissions created: {report.permissions_created}")
    print(f"  Roles created:       {report.roles_created}")
    if args.with_demo_users:
        for name, email, password, role in DEMO_USERS:
            status = "created" if email in report.users_created else "already present"
            print(f"  Demo {role:<6} {email} / {password} ({status})")
    print("Done.")
    return 0


def _cmd_purge_tokens(auth: AuthService, args: argparse.Namespace) -> int:
    blacklisted = auth.session_tokens.purge_expired()
    resets = auth.reset_tokens.purge_expired()
    print(f"  Purged {blacklisted} expired blacklist entries and {resets} expired reset tokens.")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="authcore",
        description="Maintenance commands for the authorization core.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py seed
  python main.py seed --with-demo-users
  DATABASE_URL=postgresql://user:pw@host/db python main.py purge-tokens
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    seed_parser = sub.add_parser("seed", help="Create default permissions and roles (idempotent)")
    seed_parser.add_argument(
        "--with-demo-users",
        action="store_true",
        help="Also create admin@example.com and user@example.com with well-known passwords (dev only)",
    )
    seed_parser.set_defaults(handler=_cmd_seed)

    purge_parser = sub.add_parser("purge-tokens", help="Delete expired blacklist entries and reset tokens")
    purge_parser.set_defaults(handler=_cmd_purge_tokens)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(settings.log_level)
    auth = AuthService.from_settings(settings)
    try:
        return args.handler(auth, args)
    finally:
        auth.store.close()


if __name__ == "__main__":
    sys.exit(main())
