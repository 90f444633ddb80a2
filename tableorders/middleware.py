"""Middleware for bearer-token authentication."""
from functools import wraps
from flask import g, request, current_app
from tableorders.database import get_session
from tableorders.exceptions import UnauthorizedError
from tableorders.models import AppUser
from tableorders.services.auth_service import decode_token


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_user():
    """
    Load the acting user into g before each request.

    Sets g.user, g.user_id and g.user_role when the Authorization header
    carries a valid token for an active user. g.auth_error keeps the reason
    a token was rejected so require_login can report it.
    """
    g.user = None
    g.user_id = None
    g.user_role = None
    g.auth_error = None

    token = _bearer_token()
    if not token:
        return

    try:
        claims = decode_token(
            token,
            current_app.config['SECRET_KEY'],
            current_app.config.get('JWT_ALGORITHM', 'HS256'),
        )
    except UnauthorizedError as e:
        g.auth_error = e.message
        return

    try:
        user_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        g.auth_error = 'Invalid token'
        return

    user = get_session().query(AppUser).filter_by(id=user_id, active=True).first()
    if not user:
        g.auth_error = 'User not found or inactive'
        return

    g.user = user
    g.user_id = user.id
    g.user_role = user.role


def require_login(f):
    """Decorator: 401 unless load_user() found a valid user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError(g.get('auth_error') or 'Authentication required')
        return f(*args, **kwargs)

    return decorated_function
