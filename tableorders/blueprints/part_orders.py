"""Part Orders blueprint - kitchen queue, status changes and printing."""
from flask import Blueprint, jsonify, request, g, current_app, send_file

from tableorders.database import get_session
from tableorders.decorators.permissions import require_role
from tableorders.exceptions import InvalidInputError
from tableorders.middleware import require_login
from tableorders.models import UserRole
from tableorders.services import part_order_service, receipt_service
from tableorders.services.table_session_service import serialize_part_order
from tableorders.utils.request_helpers import json_body, int_arg

part_orders_bp = Blueprint('part_orders', __name__, url_prefix='/api/part-orders')


def _part_order_response(part_order, status_code=200):
    return jsonify({'status': 'success', 'part_order': serialize_part_order(part_order)}), status_code


@part_orders_bp.route('', methods=['GET'])
@require_login
def list_part_orders():
    part_orders = part_order_service.list_part_orders(
        get_session(),
        table_session_id=int_arg('table_session_id'),
        status=request.args.get('status'),
        server_id=int_arg('server_id'),
    )
    return jsonify({'status': 'success', 'part_orders': [serialize_part_order(po) for po in part_orders]})


@part_orders_bp.route('/kitchen/queue', methods=['GET'])
@require_role(UserRole.KITCHEN, UserRole.ADMIN)
def kitchen_queue():
    part_orders = part_order_service.kitchen_queue(get_session())
    return jsonify({'status': 'success', 'part_orders': [serialize_part_order(po) for po in part_orders]})


@part_orders_bp.route('/<int:part_order_id>', methods=['GET'])
@require_login
def get_part_order(part_order_id):
    return _part_order_response(part_order_service.get_part_order(get_session(), part_order_id))


@part_orders_bp.route('/<int:part_order_id>', methods=['PUT'])
@require_role(UserRole.SERVER, UserRole.ADMIN)
def update_part_order(part_order_id):
    part_order = part_order_service.update_part_order(get_session(), part_order_id, json_body())
    return _part_order_response(part_order)


@part_orders_bp.route('/<int:part_order_id>', methods=['DELETE'])
@require_role(UserRole.SERVER, UserRole.ADMIN)
def delete_part_order(part_order_id):
    part_order_service.delete_part_order(get_session(), part_order_id)
    return jsonify({'status': 'success', 'message': 'Part order deleted'})


@part_orders_bp.route('/<int:part_order_id>/status', methods=['PATCH'])
@require_login
def update_status(part_order_id):
    """Any signed-in role; the role x status table decides."""
    status = json_body().get('status')
    if not status:
        raise InvalidInputError('status', 'status is required')
    part_order = part_order_service.transition_part_order(
        get_session(), part_order_id, status, g.user_role,
        strict=current_app.config.get('STRICT_STATUS_TRANSITIONS', True),
    )
    return _part_order_response(part_order)


@part_orders_bp.route('/<int:part_order_id>/print', methods=['POST'])
@require_login
def mark_printed(part_order_id):
    return _part_order_response(part_order_service.mark_printed(get_session(), part_order_id))


@part_orders_bp.route('/<int:part_order_id>/ticket', methods=['GET'])
@require_login
def ticket(part_order_id):
    """Kitchen ticket PDF. Does not mark the part order as printed."""
    part_order = part_order_service.get_part_order(get_session(), part_order_id)
    pdf = receipt_service.render_kitchen_ticket_pdf(part_order)
    return send_file(pdf, mimetype='application/pdf', as_attachment=False,
                     download_name=f"ticket_{part_order.id}.pdf")
