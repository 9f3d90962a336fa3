#!/usr/bin/env python3
"""
AuthGate -- management CLI.

Usage:
  python main.py create-user --email admin@example.com --name Admin --role admin
  python main.py check-config

create-user prompts for the password (twice) unless --password-stdin is
given, in which case the first line of stdin is used. It goes through the
same CredentialService as POST /api/v1/auth/sign-up, so the same email and
uniqueness rules apply.

Environment variables:
  JWT_SECRET     Signing secret. Required (>= 32 chars) when ENVIRONMENT=production.
  DATABASE_URL   SQLAlchemy URL of the user database.
  ENVIRONMENT    development (default) or production.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.credentials import CredentialService
from auth.errors import AuthError, DuplicateUserError
from auth.store import UserStore
from core.config import Settings


def _read_password(from_stdin: bool) -> Optional[str]:
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def create_user(args: argparse.Namespace, settings: Settings) -> int:
    password = _read_password(args.password_stdin)
    if not password:
        print("  [!] A password is required.")
        return 1

    store = UserStore(settings.database_url)
    try:
        service = CredentialService(store, rounds=settings.bcrypt_rounds)
        user = service.create_user(name=args.name, email=args.email, password=password, role=args.role)
    except DuplicateUserError:
        print(f"  [!] An account for '{args.email}' already exists.")
        return 1
    except AuthError as exc:
        print(f"  [!] Could not create user: {exc}")
        return 1
    finally:
        store.close()

    print(f"  Created {user.role} '{user.email}' (id={user.id}).")
    return 0


def check_config(args: argparse.Namespace, settings: Settings) -> int:
    print(f"  Environment:     {settings.environment}")
    print(f"  Database:        {settings.database_url}")
    print(f"  Secure cookies:  {settings.cookie_secure}")
    admission = settings.admission_mode if settings.admission_enabled else "disabled"
    print(f"  Admission:       {admission} ({settings.admission_storage_uri})")
    print(f"  Sign-in limit:   {settings.signin_rate_limit} per IP")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="AuthGate management commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email admin@example.com --name Admin --role admin
  echo 's3cret-pass' | python main.py create-user --email ops@example.com --password-stdin
  ENVIRONMENT=production python main.py check-config
        """,
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create-user", help="Create an account")
    create.add_argument("--email", required=True, help="Account email (unique, case-insensitive)")
    create.add_argument("--name", default="", help="Display name")
    create.add_argument("--role", choices=["admin", "user"], default="user", help="Account role (default: user)")
    create.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )

    sub.add_parser("check-config", help="Validate settings and print a summary")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = Settings()
    except ValueError as exc:
        print(f"  [!] Invalid configuration: {exc}")
        return 1

    if args.command == "create-user":
        return create_user(args, settings)
    return check_config(args, settings)


if __name__ == "__main__":
    sys.exit(main())
