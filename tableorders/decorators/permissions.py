"""
Permission decorators for role-based access control.
Extends require_login with a check on the acting user's role.
"""

from functools import wraps
from flask import g

from tableorders.exceptions import ForbiddenError, UnauthorizedError


def require_role(*allowed_roles):
    """
    Decorator to restrict an endpoint to specific roles.

    Usage:
        @require_role('admin')
        @require_role('server', 'admin')

    Status-changing endpoints do not use this; they check the target
    status against the role x status tables in access_control instead.
    """
    allowed = {getattr(role, 'value', role) for role in allowed_roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not g.get('user'):
                raise UnauthorizedError(g.get('auth_error') or 'Authentication required')

            user_role = g.get('user_role')
            if user_role not in allowed:
                raise ForbiddenError(
                    f"Role '{user_role}' cannot access this endpoint",
                    role=user_role,
                )

            return f(*args, **kwargs)

        return decorated_function
    return decorator
