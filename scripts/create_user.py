#!/usr/bin/env python3
"""Create a user (or attach roles to an existing one). Idempotent.

Usage:
  python scripts/create_user.py --email ana@example.com --password secret --role USER
  python scripts/create_user.py --email boss@example.com --password secret --role USER --role ADMIN
"""

import sys
import os
import argparse
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.models import Role
from app.crm.rbac import ROLE_ADMIN, ROLE_USER
from scripts._db_utils import script_session
from scripts.init_db import ensure_user


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email (login)")
    parser.add_argument("--password", required=True, help="Initial password (ignored if the user exists)")
    parser.add_argument("--role", action="append", choices=(ROLE_USER, ROLE_ADMIN), default=None)
    args = parser.parse_args()

    role_keys = args.role or [ROLE_USER]
    db_url = (os.environ.get("DATABASE_URL") or "sqlite:///crm.db").strip()
    with script_session(db_url) as s:
        roles = s.query(Role).filter(Role.key.in_(role_keys)).all()
        missing = set(role_keys) - {r.key for r in roles}
        if missing:
            print(f"Roles not found: {', '.join(sorted(missing))}. Run python scripts/init_db.py first.")
            sys.exit(1)
        ensure_user(s, args.email.strip().lower(), args.password, roles)
    print(f"User {args.email} has roles: {', '.join(sorted(role_keys))}")


if __name__ == "__main__":
    main()
