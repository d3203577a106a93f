import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.models import Role, User
from app.crm.rbac import ROLE_ADMIN, ROLE_USER
from scripts._db_utils import script_session


def ensure_role(s, key: str, name: str) -> Role:
    r = s.query(Role).filter(Role.key == key).one_or_none()
    if not r:
        r = Role(key=key, name=name)
        s.add(r)
    return r


def ensure_user(s, email: str, password: str, roles: list[Role]) -> User:
    """
    Create the user if missing and attach roles.
    Does NOT overwrite an existing user's password.
    """
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user:
        user = User(email=email, password_hash=generate_password_hash(password), is_active=True)
        s.add(user)
    for r in roles:
        if r not in user.roles:
            user.roles.append(r)
    return user


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed roles and the admin user in an idempotent way.
    A plain USER account is seeded only when USER_EMAIL is set.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@example.com").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"
    user_email = (os.environ.get("USER_EMAIL") or "").strip().lower()
    user_password = os.environ.get("USER_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///crm.db").strip()

    with script_session(db_url) as s:
        role_user = ensure_role(s, ROLE_USER, "User")
        role_admin = ensure_role(s, ROLE_ADMIN, "Administrator")
        ensure_user(s, admin_email, admin_password, [role_user, role_admin])
        if user_email:
            ensure_user(s, user_email, user_password, [role_user])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
