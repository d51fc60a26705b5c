from flask import Blueprint, g, jsonify

from ..models import AuditLog
from ..services.stats import collection_stats
from ..utils.auth_utils import tenant_required
from ..utils.parsing import pagination

bp = Blueprint("dashboard", __name__)


@bp.get("/dashboard/stats")
@tenant_required
def stats():
    return jsonify(collection_stats(g.tenant_id)), 200


@bp.get("/dashboard/activity")
@tenant_required
def activity():
    limit, offset = pagination()
    entries = (
        AuditLog.query.filter(AuditLog.tenant_id == g.tenant_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit).offset(offset).all()
    )
    return jsonify({"activity": [entry.serialize() for entry in entries]}), 200
