import pytest
from decimal import Decimal

from config import TestingConfig
from tableorders import create_app
from tableorders.database import get_session
from tableorders.models import AppUser, MenuItem, Company, UserRole
from tableorders.services.auth_service import issue_token
from tableorders.services.payment_service import MockPaymentGateway


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database per test)."""
    app = create_app(TestingConfig)
    app.extensions['payment_gateway'] = MockPaymentGateway()
    ctx = app.app_context()
    ctx.push()
    yield app
    get_session().remove()
    ctx.pop()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the app."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def gateway(app):
    """The mock payment gateway used by the API."""
    return app.extensions['payment_gateway']


def _make_user(session, email, full_name, role):
    user = AppUser(email=email, full_name=full_name, role=role.value, active=True)
    user.set_password('password123')
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def server_user(session):
    return _make_user(session, 'server@test.com', 'Sam Server', UserRole.SERVER)


@pytest.fixture(scope='function')
def other_server(session):
    return _make_user(session, 'server2@test.com', 'Sasha Server', UserRole.SERVER)


@pytest.fixture(scope='function')
def kitchen_user(session):
    return _make_user(session, 'kitchen@test.com', 'Kim Kitchen', UserRole.KITCHEN)


@pytest.fixture(scope='function')
def admin_user(session):
    return _make_user(session, 'admin@test.com', 'Alex Admin', UserRole.ADMIN)


@pytest.fixture(scope='function')
def auth_headers_for(app, server_user, kitchen_user, admin_user):
    """auth_headers_for('kitchen') -> Authorization header for that role's user."""
    users = {
        'server': server_user,
        'kitchen': kitchen_user,
        'admin': admin_user,
    }

    def _headers(role):
        token = issue_token(users[role], app.config['SECRET_KEY'], app.config['JWT_ALGORITHM'])
        return {'Authorization': f'Bearer {token}'}

    return _headers


@pytest.fixture(scope='function')
def company(session):
    company = Company(name='Riverside Bakery', category='bakery')
    session.add(company)
    session.commit()
    return company


@pytest.fixture(scope='function')
def menu(session, company):
    """
    Menu items by key:
    - burger: 10.00 at 20% tax
    - salad: 5.00 at 10% tax
    - water: 10.00 at 0% tax
    - special: unavailable
    """
    items = {
        'burger': MenuItem(name='Burger', category='Mains', price=Decimal('10.00'), tax_rate=Decimal('20')),
        'salad': MenuItem(name='Salad', category='Starters', price=Decimal('5.00'), tax_rate=Decimal('10')),
        'water': MenuItem(name='Sparkling Water', category='Drinks', price=Decimal('10.00'),
                          tax_rate=Decimal('0'), company_id=company.id),
        'special': MenuItem(name='Chef Special', category='Mains', price=Decimal('25.00'),
                            tax_rate=Decimal('20'), available=False),
    }
    session.add_all(items.values())
    session.commit()
    return items
