from functools import wraps
from flask import g, jsonify, current_app, request

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    SUPER_ADMIN passes every role check.
    """
    allowed = set(role_names) | {"SUPER_ADMIN"}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not user.has_role(*allowed):
                current_app.logger.warning("User %s denied %s %s", user.id, request.method, request.path)
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
