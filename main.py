#!/usr/bin/env python3
"""
Shopgate -- administrative command line.

Owners cannot register themselves through the API; they are provisioned here,
by someone with access to the server and its database.

Usage:
  python main.py create-owner --email owner@store.com --name "Store Owner"
  python main.py create-owner --email owner@store.com --name "Store Owner" --password 'OwnerPass123!'
  python main.py list-users

Environment variables:
  AUTH_DB_URL    Identity database (default: auth/shopgate_auth.db).
  SECRET_KEY     Required unless DEBUG=true (see core/config.py).
  BCRYPT_ROUNDS  Work factor for the new password hash (default 12).
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.credentials import CredentialStore
from auth.errors import AuthError, WeakPassword
from auth.models import Role
from auth.policy import VIOLATION_MESSAGES, PasswordPolicy
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer
from core.config import get_settings


def _build_service(db_url: Optional[str]) -> AuthService:
    settings = get_settings()
    return AuthService(
        store=IdentityStore(db_url or settings.auth_db_url),
        credentials=CredentialStore(rounds=settings.bcrypt_rounds),
        issuer=TokenIssuer(settings.token_config()),
        policy=PasswordPolicy(),
    )


def _prompt_password() -> str:
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Confirm password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def create_owner(service: AuthService, email: str, name: str, password: Optional[str]) -> int:
    """Provision an OWNER identity. Returns a process exit code."""
    if password is None:
        password = _prompt_password()
    try:
        identity = service.provision(email=email, display_name=name, password=password, role=Role.OWNER)
    except WeakPassword as exc:
        print("  [!] Password rejected:")
        for code in exc.violations:
            print(f"      - {VIOLATION_MESSAGES[code]}")
        return 1
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Owner created: {identity.email} (id {identity.id})")
    return 0


def list_users(service: AuthService) -> int:
    identities = service.list_identities()
    if not identities:
        print("  No users yet.")
        return 0
    width = max(len(i.email) for i in identities)
    for identity in identities:
        print(f"  {identity.email:<{width}}  {identity.role.value:<6}  {identity.display_name}  ({identity.id})")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="shopgate",
        description="Shopgate administrative commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy URL of the identity database (default: AUTH_DB_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    owner = sub.add_parser("create-owner", help="Provision an identity with the owner role")
    owner.add_argument("--email", required=True, help="Login email of the new owner")
    owner.add_argument("--name", required=True, help="Display name of the new owner")
    owner.add_argument(
        "--password",
        default=None,
        help="Password (prompted when omitted -- preferred, keeps it out of shell history)",
    )

    sub.add_parser("list-users", help="List every identity (never shows password hashes)")

    args = parser.parse_args(argv)
    service = _build_service(args.db_url)
    try:
        if args.command == "create-owner":
            return create_owner(service, args.email, args.name, args.password)
        return list_users(service)
    finally:
        service.store.close()


if __name__ == "__main__":
    sys.exit(main())
