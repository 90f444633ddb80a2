"""Companies blueprint - suppliers and brands behind menu items."""
from flask import Blueprint, jsonify, request

from tableorders.database import get_session
from tableorders.decorators.permissions import require_role
from tableorders.middleware import require_login
from tableorders.models import UserRole
from tableorders.services import catalog_service
from tableorders.utils.request_helpers import json_body

companies_bp = Blueprint('companies', __name__, url_prefix='/api/companies')


@companies_bp.route('', methods=['GET'])
@require_login
def list_companies():
    companies = catalog_service.list_companies(get_session(), category=request.args.get('category'))
    return jsonify({'status': 'success', 'companies': [c.to_dict() for c in companies]})


@companies_bp.route('/category/<category>', methods=['GET'])
@require_login
def list_by_category(category):
    companies = catalog_service.list_companies(get_session(), category=category)
    return jsonify({'status': 'success', 'companies': [c.to_dict() for c in companies]})


@companies_bp.route('/<int:company_id>', methods=['GET'])
@require_login
def get_company(company_id):
    company = catalog_service.get_company(get_session(), company_id)
    return jsonify({'status': 'success', 'company': company.to_dict()})


@companies_bp.route('', methods=['POST'])
@require_role(UserRole.ADMIN)
def create_company():
    company = catalog_service.create_company(get_session(), json_body())
    return jsonify({'status': 'success', 'company': company.to_dict()}), 201


@companies_bp.route('/<int:company_id>', methods=['PUT'])
@require_role(UserRole.ADMIN)
def update_company(company_id):
    company = catalog_service.update_company(get_session(), company_id, json_body())
    return jsonify({'status': 'success', 'company': company.to_dict()})


@companies_bp.route('/<int:company_id>', methods=['DELETE'])
@require_role(UserRole.ADMIN)
def delete_company(company_id):
    catalog_service.delete_company(get_session(), company_id)
    return jsonify({'status': 'success', 'message': 'Company deleted'})
