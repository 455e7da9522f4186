"""
Pytest fixtures for MineStock backend tests.

Provides test database setup, pinned execution contexts, and test client.

Calendar anchors (December 2025):
- SATURDAY  2025-12-06: non-holiday weekend, resource writes allowed
- WEDNESDAY 2025-12-03: weekday, resource writes restricted
- CHRISTMAS 2025-12-25: Thursday holiday, restricted as HOLIDAY
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
from minestock import create_app
from minestock.context import ExecutionContext
from minestock.extensions import db
from minestock.models import Holiday, Resource, Supplier, UsageEvent


SATURDAY = datetime(2025, 12, 6, 10, 0, 0)
WEDNESDAY = datetime(2025, 12, 3, 10, 0, 0)
CHRISTMAS = datetime(2025, 12, 25, 10, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


def make_context(moment: datetime, actor: str = "tester") -> ExecutionContext:
    return ExecutionContext(
        actor=actor,
        session_id="sess-1",
        ip_address="10.0.0.5",
        machine_name="pit-terminal-1",
        module="tests",
        action="pytest",
        effective_at=moment,
    )


@pytest.fixture(scope='function')
def weekend_ctx(db_session):
    return make_context(SATURDAY)


@pytest.fixture(scope='function')
def weekday_ctx(db_session):
    return make_context(WEDNESDAY)


@pytest.fixture(scope='function')
def christmas(db_session):
    """Christmas Day as a yearly holiday."""
    holiday = Holiday(
        holiday_date=date(2025, 12, 25),
        name="Christmas Day",
        is_recurring=True,
        recurrence_type="YEARLY",
        created_by="SEED",
    )
    db_session.add(holiday)
    db_session.commit()
    return holiday


@pytest.fixture(scope='function')
def holiday_ctx(christmas):
    return make_context(CHRISTMAS)


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Atlas Blasting Supply", contact="R. Okafor", email="orders@atlas.example")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def make_resource(db_session):
    """Factory inserting resources directly (provisioning, no gate, no audit)."""
    counter = {"n": 0}

    def _make(stock="100", threshold="20", name=None, **fields):
        counter["n"] += 1
        resource = Resource(
            name=name or f"Resource {counter['n']}",
            stock_level=Decimal(str(stock)),
            threshold=Decimal(str(threshold)),
            **fields,
        )
        db_session.add(resource)
        db_session.commit()
        return resource

    return _make


@pytest.fixture(scope='function')
def add_usage(db_session):
    """Factory appending usage history directly (no stock change)."""

    def _add(resource, quantity, used_at):
        event = UsageEvent(resource_id=resource.id, quantity=Decimal(str(quantity)), used_at=used_at)
        db_session.add(event)
        db_session.commit()
        return event

    return _add


def days_before(moment: datetime, days: float) -> datetime:
    return moment - timedelta(days=days)
