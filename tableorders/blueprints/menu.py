"""Menu blueprint - reads for signed-in staff, admin writes."""
from flask import Blueprint, jsonify, g, request

from tableorders.database import get_session
from tableorders.decorators.permissions import require_role
from tableorders.middleware import require_login
from tableorders.models import UserRole
from tableorders.services import catalog_service
from tableorders.utils.request_helpers import json_body, int_arg, bool_arg

menu_bp = Blueprint('menu', __name__, url_prefix='/api/menu')


@menu_bp.route('', methods=['GET'])
@require_login
def list_items():
    include_unavailable = bool_arg('include_unavailable') and g.get('user_role') == UserRole.ADMIN.value
    items = catalog_service.list_menu_items(
        get_session(),
        category=request.args.get('category'),
        company_id=int_arg('company_id'),
        include_unavailable=include_unavailable,
    )
    return jsonify({'status': 'success', 'items': [item.to_dict() for item in items]})


@menu_bp.route('/<int:item_id>', methods=['GET'])
@require_login
def get_item(item_id):
    item = catalog_service.get_menu_item(get_session(), item_id)
    return jsonify({'status': 'success', 'item': item.to_dict()})


@menu_bp.route('', methods=['POST'])
@require_role(UserRole.ADMIN)
def create_item():
    item = catalog_service.create_menu_item(get_session(), json_body())
    return jsonify({'status': 'success', 'item': item.to_dict()}), 201


@menu_bp.route('/<int:item_id>', methods=['PUT'])
@require_role(UserRole.ADMIN)
def update_item(item_id):
    item = catalog_service.update_menu_item(get_session(), item_id, json_body())
    return jsonify({'status': 'success', 'item': item.to_dict()})


@menu_bp.route('/<int:item_id>', methods=['DELETE'])
@require_role(UserRole.ADMIN)
def delete_item(item_id):
    catalog_service.delete_menu_item(get_session(), item_id)
    return jsonify({'status': 'success', 'message': 'Menu item deleted'})
