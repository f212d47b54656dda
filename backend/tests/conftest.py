"""
Pytest fixtures for greenstore backend tests.

Provides the test database, users per role with bearer sessions, catalog and
policy factories, and the Flask test client.
"""

from decimal import Decimal

import pytest
from greenstore import create_app
from greenstore.config import Config
from greenstore.extensions import db
from greenstore.models import Category, Discount, Product
from greenstore.services.auth_service import create_user
from greenstore.services import session_service, settings_service


TEST_PASSWORD = "Password123!"


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database for each test."""
    # Clear all data but keep schema
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


def make_user(role: str, email: str | None = None, *, is_active: bool = True):
    user = create_user(
        name=f"{role.title()} User",
        email=email or f"{role}@greenstore.test",
        password=TEST_PASSWORD,
        role=role,
        rounds=4,  # fast hashing for tests
    )
    user.is_active = is_active
    db.session.commit()
    return user


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login(user) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture
def operator(db_session):
    return make_user("operator")


@pytest.fixture
def supervisor(db_session):
    return make_user("supervisor")


@pytest.fixture
def manager(db_session):
    return make_user("manager")


@pytest.fixture
def admin(db_session):
    return make_user("admin")


@pytest.fixture
def operator_headers(operator):
    return login(operator)


@pytest.fixture
def supervisor_headers(supervisor):
    return login(supervisor)


@pytest.fixture
def manager_headers(manager):
    return login(manager)


@pytest.fixture
def admin_headers(admin):
    return login(admin)


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make(*, price="10.00", stock="100", unit_type="unit", category=None, name=None, min_stock="0", is_active=True):
        counter["n"] += 1
        product = Product(
            sku=f"SKU-{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            unit_type=unit_type,
            price=Decimal(price),
            current_stock=Decimal(stock),
            min_stock=Decimal(min_stock),
            is_active=is_active,
            category_id=category.id if category else None,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def product(make_product):
    """Price 10.00, 100 units in stock."""
    return make_product()


@pytest.fixture
def category(db_session):
    category = Category(name="Produce")
    db.session.add(category)
    db.session.commit()
    return category


@pytest.fixture
def make_discount(db_session):
    def _make(**fields):
        fields.setdefault("name", "Test discount")
        fields.setdefault("type", "percent")
        fields.setdefault("value", Decimal("10"))
        discount = Discount(**fields)
        db.session.add(discount)
        db.session.commit()
        return discount

    return _make


@pytest.fixture
def set_policy(db_session):
    """Write policy settings, e.g. set_policy(max_stock_adjust="100")."""
    def _set(**values):
        settings_service.upsert_settings(values, actor_user_id=None)
        db.session.commit()

    return _set
