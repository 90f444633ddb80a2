"""Auth blueprint - signup, signin and the current user."""
from flask import Blueprint, jsonify, g, current_app

from tableorders.database import get_session
from tableorders.exceptions import ForbiddenError
from tableorders.middleware import require_login
from tableorders.models import UserRole
from tableorders.services import auth_service
from tableorders.utils.request_helpers import json_body

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _token_for(user):
    return auth_service.issue_token(
        user,
        current_app.config['SECRET_KEY'],
        current_app.config.get('JWT_ALGORITHM', 'HS256'),
        current_app.config.get('JWT_EXPIRATION_HOURS', 24),
    )


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """
    Create a staff account and return a token.

    Anyone may sign up as a server; other roles need an admin token.
    """
    data = json_body()
    role = data.get('role') or UserRole.SERVER.value
    if role != UserRole.SERVER.value and g.get('user_role') != UserRole.ADMIN.value:
        raise ForbiddenError(f"Only an admin can create '{role}' accounts", role=g.get('user_role'), target=role)

    user = auth_service.register_user(
        get_session(),
        email=data.get('email'),
        password=data.get('password'),
        full_name=data.get('full_name'),
        role=role,
    )
    return jsonify({'status': 'success', 'user': user.to_dict(), 'token': _token_for(user)}), 201


@auth_bp.route('/signin', methods=['POST'])
def signin():
    data = json_body()
    user = auth_service.authenticate(get_session(), data.get('email'), data.get('password'))
    return jsonify({'status': 'success', 'user': user.to_dict(), 'token': _token_for(user)})


@auth_bp.route('/me')
@require_login
def me():
    return jsonify({'status': 'success', 'user': g.user.to_dict()})
