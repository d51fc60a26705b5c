from functools import wraps

from flask import g, jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request


def tenant_required(fn):
    """Require a JWT carrying a ``tenant_id`` claim and expose it as ``g.tenant_id``."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        claims = get_jwt()
        tenant_id = claims.get("tenant_id")
        try:
            g.tenant_id = int(tenant_id)
        except (TypeError, ValueError):
            return jsonify({"error": "forbidden", "message": "Token is not bound to a tenant"}), 403
        g.actor = str(get_jwt_identity())
        return fn(*args, **kwargs)
    return wrapper
