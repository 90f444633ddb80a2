"""Orders blueprint - whole orders outside table sessions."""
from datetime import datetime

from flask import Blueprint, jsonify, request, g, current_app

from tableorders.database import get_session
from tableorders.decorators.permissions import require_role
from tableorders.exceptions import ForbiddenError, InvalidInputError
from tableorders.middleware import require_login
from tableorders.models import UserRole
from tableorders.services import order_service
from tableorders.utils.request_helpers import json_body

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _date_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise InvalidInputError(name, f"'{name}' must be an ISO date")


@orders_bp.route('', methods=['GET'])
@require_login
def list_orders():
    orders = order_service.list_orders(
        get_session(), g.user_id, g.user_role,
        status=request.args.get('status'),
        start_date=_date_arg('start_date'),
        end_date=_date_arg('end_date'),
    )
    return jsonify({'status': 'success', 'orders': [order_service.serialize_order(o) for o in orders]})


@orders_bp.route('/stats', methods=['GET'])
@require_role(UserRole.ADMIN)
def stats():
    data = order_service.get_order_stats(get_session())
    data['total_revenue'] = str(data['total_revenue'])
    data['average_order_value'] = str(data['average_order_value'])
    return jsonify({'status': 'success', 'stats': data})


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_login
def get_order(order_id):
    order = order_service.get_order(get_session(), order_id)
    if g.user_role == UserRole.SERVER.value and order.customer_id != g.user_id:
        raise ForbiddenError('Servers can only view their own orders', role=g.user_role)
    return jsonify({'status': 'success', 'order': order_service.serialize_order(order)})


@orders_bp.route('', methods=['POST'])
@require_role(UserRole.SERVER, UserRole.ADMIN)
def create_order():
    data = json_body()
    order = order_service.create_order(
        get_session(), g.user_id, data.get('items'),
        table_number=data.get('table_number'),
        special_instructions=data.get('special_instructions'),
    )
    return jsonify({'status': 'success', 'order': order_service.serialize_order(order)}), 201


@orders_bp.route('/<int:order_id>/status', methods=['PATCH'])
@require_login
def update_status(order_id):
    status = json_body().get('status')
    if not status:
        raise InvalidInputError('status', 'status is required')
    order = order_service.update_order_status(
        get_session(), order_id, status, g.user_role,
        strict=current_app.config.get('STRICT_STATUS_TRANSITIONS', True),
    )
    return jsonify({'status': 'success', 'order': order_service.serialize_order(order)})


@orders_bp.route('/<int:order_id>/payment', methods=['PATCH'])
@require_role(UserRole.SERVER, UserRole.ADMIN)
def update_payment_status(order_id):
    payment_status = json_body().get('payment_status')
    if not payment_status:
        raise InvalidInputError('payment_status', 'payment_status is required')
    order = order_service.update_order_payment_status(get_session(), order_id, payment_status)
    return jsonify({'status': 'success', 'order': order_service.serialize_order(order)})
