import logging
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, jsonify

from app.crm.models import User

logger = logging.getLogger(__name__)

ROLE_USER = "USER"
ROLE_ADMIN = "ADMIN"

ANY_ROLE = frozenset({ROLE_USER, ROLE_ADMIN})
ADMIN_ONLY = frozenset({ROLE_ADMIN})
# Any active, authenticated user regardless of roles.
AUTHENTICATED = frozenset()

# operation id -> roles allowed to call it.
ACCESS_POLICY: dict[str, frozenset[str]] = {
    # Customers
    "customers.create": ANY_ROLE,
    "customers.list": ANY_ROLE,
    "customers.get": ANY_ROLE,
    "customers.update": ANY_ROLE,
    "customers.delete": ADMIN_ONLY,
    "customers.search_name": ANY_ROLE,
    "customers.search_phone": ANY_ROLE,
    "customers.get_by_email": ANY_ROLE,
    "customers.get_by_cpf": ANY_ROLE,
    "customers.period": ADMIN_ONLY,
    "customers.registered_today": ADMIN_ONLY,
    # Products
    "products.create": ANY_ROLE,
    "products.list": ANY_ROLE,
    "products.get": ANY_ROLE,
    "products.update": ANY_ROLE,
    "products.delete": ADMIN_ONLY,
    "products.search_name": ANY_ROLE,
    "products.by_category": ANY_ROLE,
    "products.low_stock": ANY_ROLE,
    "products.price_range": ANY_ROLE,
    "products.set_stock": ADMIN_ONLY,
    # Statistics
    "statistics.dashboard": ADMIN_ONLY,
    "statistics.summary": ADMIN_ONLY,
    # Demo endpoints
    "demo.hello": AUTHENTICATED,
    "demo.admin": ADMIN_ONLY,
}


def user_is_allowed(user: User | None, operation: str) -> bool:
    if not user or not user.is_active:
        return False
    allowed = ACCESS_POLICY[operation]
    if not allowed:
        return True
    return bool(user.role_keys & allowed)


def require_operation(operation: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    if operation not in ACCESS_POLICY:
        raise KeyError(f"No access policy for operation {operation!r}")

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Missing/invalid token → 401
            if not user or not user.is_active:
                return jsonify({"error": "unauthorized", "message": "Authentication required."}), 401
            # Authenticated but no allowed role → 403
            if not user_is_allowed(user, operation):
                logger.warning(
                    "Forbidden: operation=%s user_id=%s request_id=%s",
                    operation,
                    user.id,
                    getattr(g, "request_id", None),
                )
                return jsonify({"error": "forbidden", "message": f"Not allowed: {operation}."}), 403
            return fn(*args, **kwargs)

        wrapped.operation = operation  # type: ignore[attr-defined]
        return wrapped

    return decorator
