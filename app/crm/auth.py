from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone

import jwt
from flask import Blueprint, current_app, g, jsonify, request
from werkzeug.security import check_password_hash

from app.crm.db import db_session
from app.crm.models import User

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.now()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.now())


def issue_token(user: User) -> str:
    cfg = current_app.config
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "roles": sorted(user.role_keys),
        "iat": now,
        "exp": now + timedelta(minutes=int(cfg["JWT_EXPIRES_MINUTES"])),
    }
    return jwt.encode(claims, cfg["JWT_SECRET"], algorithm=cfg["JWT_ALGORITHM"])


def decode_token(token: str) -> dict:
    """Raises jwt.InvalidTokenError (incl. expiry) on a bad token."""
    cfg = current_app.config
    return jwt.decode(token, cfg["JWT_SECRET"], algorithms=[cfg["JWT_ALGORITHM"]])


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def load_current_user() -> None:
    """
    Loads g.current_user from the bearer token.
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    g.current_user = None

    token = _bearer_token()
    if not token:
        return

    try:
        claims = decode_token(token)
    except jwt.InvalidTokenError as e:
        current_app.logger.info("Rejected bearer token (request_id=%s): %s", g.request_id, e)
        return

    try:
        user_id = int(claims.get("sub", ""))
    except (TypeError, ValueError):
        return

    user = db_session().get(User, user_id)
    if not user or not user.is_active:
        return
    g.current_user = user


@bp.post("/login")
def login_post():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return jsonify({"error": "rate_limited", "message": "Too many login attempts. Please wait 5 minutes."}), 429

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        current_app.logger.warning("Login failed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        return jsonify({"error": "unauthorized", "message": "Invalid credentials."}), 401

    _login_attempts[ip].clear()
    current_app.logger.info("Login ok (user_id=%s)", user.id)
    return jsonify(
        {
            "access_token": issue_token(user),
            "token_type": "Bearer",
            "expires_in": int(current_app.config["JWT_EXPIRES_MINUTES"]) * 60,
        }
    )
