from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from ..clock import utcnow
from ..extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    try:
        db.session.execute(db.text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        db.session.rollback()
        database = f"error: {e.__class__.__name__}"
    status = 200 if database == "ok" else 503
    return jsonify(
        {
            "status": "ok" if status == 200 else "degraded",
            "database": database,
            "time": utcnow().isoformat(),
            "service": "rentaldesk",
        }
    ), status
