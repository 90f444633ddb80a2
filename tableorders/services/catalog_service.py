"""Catalog service - menu items and companies (soft-deleted, read-mostly)."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tableorders.database import transaction
from tableorders.exceptions import InvalidInputError, NotFoundError, InvalidStateError
from tableorders.models import MenuItem, Company
from tableorders.services.pricing_service import to_decimal

logger = logging.getLogger(__name__)

MENU_FIELDS = ('name', 'description', 'price', 'tax_rate', 'category', 'food_category', 'company_id', 'available')
COMPANY_FIELDS = ('name', 'category', 'contact_email', 'phone', 'address')


# =====================================================
# MENU ITEMS
# =====================================================

def _clean_menu_data(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """Validate menu item fields; on partial updates only the given keys."""
    clean = {k: data[k] for k in MENU_FIELDS if k in data}

    if not partial or 'name' in clean:
        name = (clean.get('name') or '').strip()
        if not name:
            raise InvalidInputError('name', 'Menu item name is required')
        clean['name'] = name

    if not partial or 'price' in clean:
        price = to_decimal(clean.get('price'), 'price')
        if price < 0:
            raise InvalidInputError('price', 'Price cannot be negative')
        clean['price'] = price

    if 'tax_rate' in clean or not partial:
        tax_rate = to_decimal(clean.get('tax_rate', 0) or 0, 'tax_rate')
        if tax_rate < 0 or tax_rate > 100:
            raise InvalidInputError('tax_rate', 'Tax rate must be between 0 and 100')
        clean['tax_rate'] = tax_rate

    if 'category' in clean:
        clean['category'] = (clean['category'] or 'General').strip()
    if 'available' in clean:
        clean['available'] = bool(clean['available'])
    return clean


def list_menu_items(session: Session, category: Optional[str] = None, company_id: Optional[int] = None,
                    include_unavailable: bool = False) -> List[MenuItem]:
    """Active menu items ordered by category then name."""
    query = session.query(MenuItem).filter(MenuItem.deleted_at.is_(None))
    if not include_unavailable:
        query = query.filter(MenuItem.available.is_(True))
    if category:
        query = query.filter(func.lower(MenuItem.category) == category.lower())
    if company_id:
        query = query.filter(MenuItem.company_id == company_id)
    return query.order_by(MenuItem.category, MenuItem.name).all()


def get_menu_item(session: Session, item_id: int) -> MenuItem:
    item = session.query(MenuItem).filter(
        MenuItem.id == item_id,
        MenuItem.deleted_at.is_(None)
    ).first()
    if not item:
        raise NotFoundError('menu_item', item_id)
    return item


def get_orderable_items(session: Session, item_ids: List[int]) -> Dict[int, MenuItem]:
    """Fetch menu items for new lines; each must exist, be active and available."""
    unique_ids = set(item_ids)
    items = session.query(MenuItem).filter(MenuItem.id.in_(unique_ids)).all() if unique_ids else []
    by_id = {item.id: item for item in items}
    for item_id in item_ids:
        item = by_id.get(item_id)
        if not item or not item.is_active:
            raise NotFoundError('menu_item', item_id)
        if not item.available:
            raise InvalidStateError(f'Menu item "{item.name}" is not available',
                                    entity='menu_item', entity_id=item_id, current='unavailable')
    return by_id


def _check_company(session: Session, company_id):
    if company_id is None:
        return
    company = session.query(Company).filter(Company.id == company_id, Company.deleted_at.is_(None)).first()
    if not company:
        raise NotFoundError('company', company_id)


def create_menu_item(session: Session, data: Dict[str, Any]) -> MenuItem:
    clean = _clean_menu_data(data)
    with transaction(session, 'create_menu_item'):
        _check_company(session, clean.get('company_id'))
        item = MenuItem(**clean)
        session.add(item)
        session.flush()
    logger.info(f"Menu item created: {item.id} '{item.name}' at {item.price}")
    return item


def update_menu_item(session: Session, item_id: int, data: Dict[str, Any]) -> MenuItem:
    """Administrative edit. Lines already ordered keep their captured price and tax."""
    clean = _clean_menu_data(data, partial=True)
    with transaction(session, 'update_menu_item'):
        item = get_menu_item(session, item_id)
        if 'company_id' in clean:
            _check_company(session, clean['company_id'])
        for key, value in clean.items():
            setattr(item, key, value)
        item.updated_at = datetime.now()
    logger.info(f"Menu item updated: {item.id} fields={sorted(clean)}")
    return item


def delete_menu_item(session: Session, item_id: int) -> None:
    """Soft delete."""
    with transaction(session, 'delete_menu_item'):
        item = get_menu_item(session, item_id)
        item.deleted_at = datetime.now()
    logger.info(f"Menu item soft-deleted: {item_id}")


# =====================================================
# COMPANIES
# =====================================================

def list_companies(session: Session, category: Optional[str] = None) -> List[Company]:
    query = session.query(Company).filter(Company.deleted_at.is_(None))
    if category:
        query = query.filter(Company.category == category)
    return query.order_by(Company.name).all()


def get_company(session: Session, company_id: int) -> Company:
    company = session.query(Company).filter(
        Company.id == company_id,
        Company.deleted_at.is_(None)
    ).first()
    if not company:
        raise NotFoundError('company', company_id)
    return company


def _validate_company_name(session: Session, name: str, exclude_id: Optional[int] = None) -> str:
    """Required and unique among active companies."""
    name = (name or '').strip()
    if not name:
        raise InvalidInputError('name', 'Company name is required')
    query = session.query(Company).filter(
        Company.deleted_at.is_(None),
        func.lower(Company.name) == name.lower()
    )
    if exclude_id:
        query = query.filter(Company.id != exclude_id)
    if query.first():
        raise InvalidInputError('name', f"A company named '{name}' already exists")
    return name


def create_company(session: Session, data: Dict[str, Any]) -> Company:
    with transaction(session, 'create_company'):
        clean = {k: data.get(k) for k in COMPANY_FIELDS}
        clean['name'] = _validate_company_name(session, clean.get('name'))
        company = Company(**clean)
        session.add(company)
        session.flush()
    logger.info(f"Company created: {company.id} '{company.name}'")
    return company


def update_company(session: Session, company_id: int, data: Dict[str, Any]) -> Company:
    with transaction(session, 'update_company'):
        company = get_company(session, company_id)
        for key in COMPANY_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if key == 'name':
                value = _validate_company_name(session, value, exclude_id=company.id)
            setattr(company, key, value)
        company.updated_at = datetime.now()
    return company


def delete_company(session: Session, company_id: int) -> None:
    """Soft delete."""
    with transaction(session, 'delete_company'):
        company = get_company(session, company_id)
        company.deleted_at = datetime.now()
    logger.info(f"Company soft-deleted: {company_id}")
