"""
Pytest fixtures for bakery backend tests.

Provides the app with an in-memory database, per-test table cleanup, staff
and product fixtures, and the test client.
"""

from datetime import date, datetime

import pytest
from bakery import create_app
from bakery.extensions import db
from bakery.enums import Role, Shift
from bakery.models import User, Product


# Fixed local day used by service tests. BAKERY_TIMEZONE is Africa/Lagos
# (UTC+1, no DST), so this day runs 2026-03-13 23:00 -> 2026-03-14 23:00 UTC.
TEST_DAY = date(2026, 3, 14)
IN_DAY = datetime(2026, 3, 14, 10, 0)
NEXT_DAY = datetime(2026, 3, 15, 10, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BAKERY_TIMEZONE': 'Africa/Lagos',
        'BATCH_TICKER_ENABLED': False,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(session, username: str, role: Role, shift: Shift = Shift.MORNING) -> User:
    user = User(username=username, display_name=username.title(), role=role, selected_shift=shift)
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    return _make_user(db_session, "owner", Role.OWNER)


@pytest.fixture(scope='function')
def manager(db_session):
    return _make_user(db_session, "manager", Role.MANAGER)


@pytest.fixture(scope='function')
def sales_rep(db_session):
    return _make_user(db_session, "ada", Role.SALES_REP)


@pytest.fixture(scope='function')
def other_rep(db_session):
    return _make_user(db_session, "bola", Role.SALES_REP)


@pytest.fixture(scope='function')
def white_bread(db_session):
    product = Product(name="White Bread", price_cents=500)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def wheat_bread(db_session):
    product = Product(name="Wheat Bread", price_cents=800)
    db_session.add(product)
    db_session.commit()
    return product


def identity_headers(user) -> dict:
    """Identity header for a user (resolved upstream in production)."""
    return {'X-User-Id': str(user.id)}


@pytest.fixture(scope='function')
def manager_headers(manager):
    return identity_headers(manager)


@pytest.fixture(scope='function')
def owner_headers(owner):
    return identity_headers(owner)


@pytest.fixture(scope='function')
def rep_headers(sales_rep):
    return identity_headers(sales_rep)


@pytest.fixture(scope='function')
def other_rep_headers(other_rep):
    return identity_headers(other_rep)
