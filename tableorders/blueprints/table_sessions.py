"""Table Sessions blueprint - open tables, attach part orders, discounts, close and pay."""
from flask import Blueprint, jsonify, request, g, current_app, send_file

from tableorders.database import get_session
from tableorders.decorators.permissions import require_role
from tableorders.exceptions import InvalidInputError, NotFoundError, PaymentError
from tableorders.middleware import require_login
from tableorders.models import UserRole
from tableorders.services import table_session_service, part_order_service, payment_service, receipt_service
from tableorders.utils.request_helpers import json_body, int_arg

table_sessions_bp = Blueprint('table_sessions', __name__, url_prefix='/api/table-sessions')

FLOOR_ROLES = (UserRole.SERVER, UserRole.ADMIN)


def _session_response(table_session, status_code=200, **extra):
    body = {'status': 'success', 'table_session': table_session_service.serialize_table_session(table_session)}
    body.update(extra)
    return jsonify(body), status_code


def _business_info():
    config = current_app.config
    return {
        'name': config.get('BUSINESS_NAME'),
        'address': config.get('BUSINESS_ADDRESS'),
        'phone': config.get('BUSINESS_PHONE'),
        'currency_symbol': config.get('CURRENCY_SYMBOL', '£'),
    }


def _payment_gateway():
    gateway = current_app.extensions.get('payment_gateway')
    if gateway is None:
        gateway = payment_service.get_payment_gateway(current_app.config)
        current_app.extensions['payment_gateway'] = gateway
    return gateway


@table_sessions_bp.route('', methods=['GET'])
@require_login
def list_sessions():
    sessions = table_session_service.list_table_sessions(
        get_session(),
        status=request.args.get('status'),
        table_number=int_arg('table_number'),
        server_id=int_arg('server_id'),
    )
    return jsonify({
        'status': 'success',
        'table_sessions': [
            table_session_service.serialize_table_session(s, include_part_orders=False) for s in sessions
        ],
    })


@table_sessions_bp.route('', methods=['POST'])
@require_role(*FLOOR_ROLES)
def open_session():
    """Open a table; returns the existing active session (200) if the table is already open."""
    data = json_body()
    table_session, created = table_session_service.open_session(
        get_session(),
        table_number=data.get('table_number'),
        server_id=g.user_id,
        customer_name=data.get('customer_name'),
    )
    return _session_response(table_session, 201 if created else 200, created=created)


@table_sessions_bp.route('/<int:session_id>', methods=['GET'])
@require_login
def get_table_session(session_id):
    return _session_response(table_session_service.get_table_session(get_session(), session_id))


@table_sessions_bp.route('/table/<int:table_number>/active', methods=['GET'])
@require_login
def active_for_table(table_number):
    table_session = table_session_service.get_active_for_table(get_session(), table_number)
    if not table_session:
        raise NotFoundError('table_session', None, f"No active session for table {table_number}")
    return _session_response(table_session)


@table_sessions_bp.route('/<int:session_id>/status', methods=['PATCH'])
@require_role(*FLOOR_ROLES)
def update_status(session_id):
    status = json_body().get('status')
    if not status:
        raise InvalidInputError('status', 'status is required')
    table_session = table_session_service.update_status(get_session(), session_id, status)
    return _session_response(table_session)


@table_sessions_bp.route('/<int:session_id>/discount', methods=['PATCH'])
@require_role(*FLOOR_ROLES)
def set_discount(session_id):
    """Body: {"discount_type": "PERCENT"|"AMOUNT"|null, "discount_value": "10"}."""
    data = json_body()
    table_session = table_session_service.set_session_discount(
        get_session(),
        session_id,
        data.get('discount_type'),
        data.get('discount_value'),
        allow_after_close=current_app.config.get('ALLOW_DISCOUNT_AFTER_CLOSE', True),
    )
    return _session_response(table_session)


@table_sessions_bp.route('/<int:session_id>/payment', methods=['PATCH'])
@require_role(*FLOOR_ROLES)
def set_payment_status(session_id):
    data = json_body()
    if not data.get('payment_status'):
        raise InvalidInputError('payment_status', 'payment_status is required')
    table_session = table_session_service.set_payment_status(
        get_session(), session_id, data['payment_status'],
        method=data.get('payment_method'), reference=data.get('payment_reference'),
    )
    return _session_response(table_session)


@table_sessions_bp.route('/<int:session_id>/pay', methods=['POST'])
@require_role(*FLOOR_ROLES)
def pay(session_id):
    """Close the session and charge it; a declined charge answers 402 and leaves payment 'failed'."""
    method = json_body().get('method')
    if not method:
        raise InvalidInputError('method', 'method is required')

    gateway = None if method == 'cash' else _payment_gateway()
    table_session, payment = payment_service.pay_table_session(
        get_session(), session_id, method, gateway,
        currency=current_app.config.get('CURRENCY', 'gbp'),
        actor_id=g.user_id,
    )
    if payment.status != 'succeeded':
        raise PaymentError(f"Payment for table session {session_id} failed", session_id=session_id,
                           reason=payment.failure_reason)
    return _session_response(table_session, payment={
        'id': payment.id,
        'method': payment.method,
        'amount': str(payment.amount),
        'currency': payment.currency,
        'reference': payment.provider_reference,
    })


@table_sessions_bp.route('/<int:session_id>/part-orders', methods=['POST'])
@require_role(*FLOOR_ROLES)
def attach_part_order(session_id):
    data = json_body()
    session = get_session()
    part_order = part_order_service.create_part_order(
        session, session_id, g.user_id, data.get('items'),
        special_instructions=data.get('special_instructions'),
    )
    table_session = table_session_service.get_table_session(session, session_id)
    return _session_response(
        table_session, 201,
        part_order=table_session_service.serialize_part_order(part_order),
    )


@table_sessions_bp.route('/<int:session_id>/items/<int:item_id>', methods=['PATCH'])
@require_role(*FLOOR_ROLES)
def edit_line_item(session_id, item_id):
    """Body may contain quantity, discount_type and discount_value."""
    data = json_body()
    changes = {k: data[k] for k in ('quantity', 'discount_type', 'discount_value') if k in data}
    if not changes:
        raise InvalidInputError('body', 'Nothing to change')
    table_session = table_session_service.edit_line_item(
        get_session(), session_id, item_id, changes,
        allow_discount_after_close=current_app.config.get('ALLOW_DISCOUNT_AFTER_CLOSE', True),
    )
    return _session_response(table_session)


@table_sessions_bp.route('/<int:session_id>/receipt', methods=['GET'])
@require_login
def receipt(session_id):
    """Receipt as JSON, or as a PDF with ?format=pdf."""
    table_session = table_session_service.get_table_session(get_session(), session_id)
    data = table_session_service.build_receipt(table_session)

    if request.args.get('format') == 'pdf':
        pdf = receipt_service.render_receipt_pdf(data, _business_info())
        return send_file(pdf, mimetype='application/pdf', as_attachment=False,
                         download_name=f"receipt_table_{table_session.table_number}_{session_id}.pdf")

    return jsonify({'status': 'success', 'receipt': table_session_service.receipt_to_dict(data)})
