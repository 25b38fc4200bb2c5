import pytest
from datetime import date
from decimal import Decimal
import uuid

from pharmabill import create_app, database
from pharmabill.database import get_session
from pharmabill.models import Product


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    app.config['TESTING'] = True
    return app


@pytest.fixture(scope='function')
def session(app):
    """Create database session on a fresh schema for each test."""
    database.create_all()
    session = get_session()
    yield session
    session.rollback()
    session.remove()
    database.drop_all()


@pytest.fixture(scope='function')
def client(app, session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def make_product(session):
    """Factory for products; every field can be overridden."""
    def _make(**overrides):
        suffix = str(uuid.uuid4())[:8]
        fields = {
            'name': f'Product {suffix}',
            'generic_name': 'Paracetamol',
            'composition': 'Paracetamol 500mg',
            'manufacturer': 'Cipla',
            'batch': f'B{suffix[:5].upper()}',
            'hsn_code': '3004',
            'pack_units': '1x10',
            'expiry_date': date(2027, 6, 30),
            'mrp': Decimal('120.00'),
            'price': Decimal('100.00'),
            'stock': 50,
            'cgst_rate': Decimal('6'),
            'sgst_rate': Decimal('6'),
            'active': True,
        }
        fields.update(overrides)
        product = Product(**fields)
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product(price=100, stock=5)."""
    return make_product(name='Dolo 650', price=Decimal('100.00'), mrp=Decimal('110.00'), stock=5)


@pytest.fixture(scope='function')
def draft(session):
    """Draft with a customer name and no items."""
    from pharmabill.services import sale_draft_service
    draft = sale_draft_service.create_draft(session, customer_name='John Doe', customer_phone='+91-9876543220')
    session.commit()
    return draft
