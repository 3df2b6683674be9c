# Overview: Request decorators for API routes.

from functools import wraps
from flask import jsonify, request, session

ADMIN_SESSION_KEY = "is_admin"


def is_admin() -> bool:
    return bool(session.get(ADMIN_SESSION_KEY))


def require_admin(f):
    """
    Require an admin session established by POST /api/admin/login.

    Returns 401 when the session flag is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_admin():
            return jsonify({"error": "Admin access required"}), 401
        return f(*args, **kwargs)

    return decorated_function


def require_confirmation(f):
    """
    Irrevocable admin actions (settle, deletes) need an explicit confirm flag,
    either "confirm": true in the JSON body or ?confirm=true in the query.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        confirmed = data.get("confirm") is True or request.args.get("confirm", "").lower() in ("1", "true", "yes")
        if not confirmed:
            return jsonify({"error": "Confirmation required", "confirm_required": True}), 400
        return f(*args, **kwargs)

    return decorated_function
