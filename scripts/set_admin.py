#!/usr/bin/env python3
"""
Grant (or revoke) admin dashboard access for an existing account.

Usage:
  python scripts/set_admin.py --email someone@example.com [--revoke]
"""
from __future__ import annotations

import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from tapinfi.repositories.sql_repository import SQLRepository


def main() -> None:
    ap = argparse.ArgumentParser(description="Grant or revoke Tapinfi admin access")
    ap.add_argument("--email", required=True, help="email of an existing account")
    ap.add_argument("--revoke", action="store_true", help="remove admin access instead of granting it")
    args = ap.parse_args()

    repo = SQLRepository()
    identity = repo.get_identity_by_email(args.email)
    if not identity:
        raise SystemExit(f"No account for '{args.email}'")
    if not identity.email_confirmed_at:
        print(f"Warning: {identity.email} has not confirmed the email yet")
    repo.ensure_profile(identity.id, identity.email)
    repo.set_admin(identity.id, not args.revoke)
    state = "revoked" if args.revoke else "granted"
    print(f"OK: admin access {state} for {identity.email}")


if __name__ == "__main__":
    try:
        main()
    except SQLAlchemyError as exc:  # pragma: no cover - CLI usage
        sys.stderr.write(f"Error: {exc}\n")
        raise SystemExit(1)
