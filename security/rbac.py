from functools import wraps
from flask import g, jsonify

SUPERUSER_ROLE = "SUPER_ADMIN"


def principal_roles(principal) -> set:
    """Role names of a session principal; principals without roles have none."""
    return {r.name for r in getattr(principal, "roles", None) or []}


def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")

    Checks the principal of the current session. While impersonating, that is
    the impersonated user, so staff routes stay closed until they revert.
    """
    wanted = set(role_names)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            principal = getattr(g, "user", None)
            if principal is None:
                return jsonify(error="Authentication required"), 401

            granted = principal_roles(principal)
            if SUPERUSER_ROLE not in granted and not granted & wanted:
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
