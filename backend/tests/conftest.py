"""
Pytest fixtures for BizDesk backend tests.

Provides test database setup, owner fixtures for row scoping, and test client.
"""

from decimal import Decimal

import pytest
from bizdesk import create_app
from bizdesk.extensions import db
from bizdesk.models import User, Profile, Product, Customer
from bizdesk.services.auth_service import hash_password
from bizdesk.services import session_service

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_NEGATIVE_STOCK': True,
        'PASSWORD_RESET_URL': 'http://localhost:5173/auth/reset',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt at cost 12 is slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


def make_user(db_session, email: str, password_hash: str, business_name: str | None = None) -> User:
    user = User(email=email, password_hash=password_hash)
    db_session.add(user)
    db_session.flush()
    db_session.add(Profile(user_id=user.id, business_name=business_name, email=email))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session, password_hash):
    """The business owner most tests act as."""
    return make_user(db_session, "owner@shop.test", password_hash, business_name="Corner Shop")


@pytest.fixture(scope='function')
def other_owner(db_session, password_hash):
    """A second, unrelated account."""
    return make_user(db_session, "other@elsewhere.test", password_hash, business_name="Elsewhere Ltd")


@pytest.fixture(scope='function')
def token(owner):
    _, plaintext = session_service.create_session(owner.id)
    return plaintext


@pytest.fixture(scope='function')
def other_token(other_owner):
    _, plaintext = session_service.create_session(other_owner.id)
    return plaintext


def make_product(db_session, user, **overrides) -> Product:
    values = {
        "user_id": user.id,
        "name": "Widget",
        "sku": "W-001",
        "price": Decimal("10.00"),
        "cost": Decimal("4.00"),
        "stock_quantity": 20,
        "low_stock_threshold": 5,
    }
    values.update(overrides)
    if values.get("is_service"):
        values.update(product_type="service", stock_quantity=0, low_stock_threshold=0)
    product = Product(**values)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, owner):
    """Physical product priced 10.00 with 20 in stock."""
    return make_product(db_session, owner, name="Product A", sku="A-001", price=Decimal("10.00"), stock_quantity=20)


@pytest.fixture(scope='function')
def product_b(db_session, owner):
    """Physical product priced 5.00 with 10 in stock."""
    return make_product(db_session, owner, name="Product B", sku="B-001", price=Decimal("5.00"),
                        cost=Decimal("2.50"), stock_quantity=10)


@pytest.fixture(scope='function')
def service_product(db_session, owner):
    """A service: unbounded stock, never moved by sales."""
    return make_product(db_session, owner, name="Repair Service", sku="SVC-001",
                        price=Decimal("50.00"), cost=Decimal("0.00"), is_service=True)


@pytest.fixture(scope='function')
def customer(db_session, owner):
    c = Customer(user_id=owner.id, name="Ada Buyer", email="ada@buyer.test", phone="555-0100")
    db_session.add(c)
    db_session.commit()
    return c


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(token):
    return auth_headers(token)


@pytest.fixture(scope='function')
def other_headers(other_token):
    return auth_headers(other_token)
