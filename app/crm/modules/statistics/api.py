from flask import Blueprint, jsonify

from app.crm.db import db_session
from app.crm.modules.statistics.service import dashboard, summary
from app.crm.rbac import require_operation

bp = Blueprint("statistics", __name__)


@bp.get("/dashboard")
@require_operation("statistics.dashboard")
def statistics_dashboard():
    return jsonify(dashboard(db_session()))


@bp.get("/summary")
@require_operation("statistics.summary")
def statistics_summary():
    return jsonify(summary(db_session()))
