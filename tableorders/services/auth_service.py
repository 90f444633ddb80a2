"""
Authentication service for staff accounts.

Handles signup, password sign-in and bearer tokens. Tokens carry the user
id and role; the role is re-read from the database on every request.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from sqlalchemy import func
from sqlalchemy.orm import Session

from tableorders.database import transaction
from tableorders.exceptions import InvalidInputError, UnauthorizedError
from tableorders.models import AppUser
from tableorders.services.access_control import parse_role

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def register_user(session: Session, email: str, password: str, full_name: str, role: str = 'server') -> AppUser:
    """Create a staff account; email is unique (case-insensitive)."""
    email = (email or '').strip().lower()
    full_name = (full_name or '').strip()

    if not email or '@' not in email:
        raise InvalidInputError('email', 'A valid email is required')
    if not full_name:
        raise InvalidInputError('full_name', 'Full name is required')
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError('password', f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    role = parse_role(role)

    with transaction(session, 'register_user'):
        if session.query(AppUser).filter(func.lower(AppUser.email) == email).first():
            raise InvalidInputError('email', f'User with email {email} already exists')
        user = AppUser(email=email, full_name=full_name, role=role.value, active=True)
        user.set_password(password)
        session.add(user)
        session.flush()

    logger.info(f"User registered: {email} ({role.value})")
    return user


def authenticate(session: Session, email: str, password: str) -> AppUser:
    """Check credentials and stamp last_login; any mismatch is UnauthorizedError."""
    email = (email or '').strip().lower()
    user = session.query(AppUser).filter(func.lower(AppUser.email) == email).first()

    if not user or not user.active or not user.check_password(password or ''):
        logger.warning(f"Failed sign-in for {email}")
        raise UnauthorizedError('Invalid email or password')

    with transaction(session, 'authenticate'):
        user.last_login = datetime.now()
    logger.info(f"User signed in: {email}")
    return user


def issue_token(user: AppUser, secret_key: str, algorithm: str = 'HS256', expiration_hours: int = 24) -> str:
    payload = {
        'sub': str(user.id),
        'role': user.role,
        'iat': datetime.now(timezone.utc),
        'exp': datetime.now(timezone.utc) + timedelta(hours=expiration_hours),
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_token(token: str, secret_key: str, algorithm: str = 'HS256') -> Dict[str, Any]:
    """Verified claims, or UnauthorizedError if the token is expired or invalid."""
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError('Token has expired')
    except jwt.InvalidTokenError:
        raise UnauthorizedError('Invalid token')
