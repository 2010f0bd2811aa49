from functools import wraps

from flask import current_app, jsonify
from flask_login import current_user


def admin_required(f):
    """Reject non-admin users with a JSON 403 (use below login_required)"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated or not current_user.is_admin:
            current_app.logger.warning(
                f"Admin endpoint {f.__name__} denied for "
                f"{getattr(current_user, 'username', 'anonymous')}"
            )
            return jsonify({"error": "Access denied"}), 403
        return f(*args, **kwargs)

    return decorated_function


def no_store(f):
    """Keep polled JSON responses out of browser and proxy caches"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = current_app.make_response(f(*args, **kwargs))
        response.headers["Cache-Control"] = (
            "no-store, no-cache, must-revalidate, max-age=0"
        )
        return response

    return decorated_function
