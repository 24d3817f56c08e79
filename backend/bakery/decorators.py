# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .enums import Role
from .models import User

IDENTITY_HEADER = "X-User-Id"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require an identified, active user.

    Authentication itself is performed upstream (gateway or session layer),
    which forwards the resolved user id in the X-User-Id header. Sets:
    - g.current_user: the User row
    - g.role: the user's Role

    Returns 401 if the header is missing, malformed, unknown or the user is
    deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(IDENTITY_HEADER, "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        if not raw.isdigit():
            return jsonify({"error": "Invalid user identity"}), 401

        user = db.session.get(User, int(raw))
        if user is None or not user.is_active:
            return jsonify({"error": "Invalid or inactive user"}), 401

        g.current_user = user
        g.role = Role(user.role)

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: Role):
    """Require the authenticated user to hold one of the given roles."""
    allowed = {Role(r) for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.role not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(r.value for r in allowed),
                    "message": f"Requires one of: {', '.join(sorted(r.value for r in allowed))}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def is_manager() -> bool:
    return _is_authenticated() and g.role in (Role.OWNER, Role.MANAGER)
