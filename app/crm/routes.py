from flask import Blueprint, g, jsonify

from app.crm.rbac import require_operation

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return {"service": "crm", "status": "online", "auth": "POST /auth/login"}


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s probes. No DB access, minimal overhead.
    """
    return "ok", 200


# Demo endpoints: "any authenticated user" vs "ADMIN only".
@bp.get("/api/hello")
@require_operation("demo.hello")
def hello():
    return jsonify({"message": f"Hello, {g.current_user.email}. You reached a protected endpoint."})


@bp.get("/api/admin")
@require_operation("demo.admin")
def admin_only():
    return jsonify({"message": "Welcome, administrator. This resource is restricted."})
