"""
Pytest fixtures for lottoledger backend tests.

Provides test database setup, store fixtures, and test client.
"""

from datetime import datetime

import pytest
from lottoledger import create_app
from lottoledger.extensions import db
from lottoledger.models import Store, Box, TicketPack
from lottoledger.services.notification_service import get_broadcaster
from lottoledger.services.store_service import get_store_context


# A fixed business day used across tests (UTC)
DAY_ONE = datetime(2026, 3, 14, 12, 0, 0)


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


@pytest.fixture(scope='function')
def events(app):
    """Capture broadcasts as (topic, event) tuples."""
    captured = []
    remove = get_broadcaster().add_listener(lambda topic, event: captured.append((topic, event)))
    yield captured
    remove()


@pytest.fixture(scope='function')
def store_a(db_session):
    """Create Store A."""
    store = Store(name="Store A", code="A1", timezone="UTC")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    """Create Store B."""
    store = Store(name="Store B", code="B1", timezone="UTC")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def ctx_a(store_a):
    return get_store_context(store_a.id)


@pytest.fixture(scope='function')
def ctx_b(store_b):
    return get_store_context(store_b.id)


@pytest.fixture(scope='function')
def box_a(db_session, store_a):
    """Active box in Store A, last touched on DAY_ONE."""
    box = Box(
        store_id=store_a.id,
        box_number="1",
        game_number="1234",
        ticket_serial="1234-0567890",
        ticket_cost_cents=200,
        opening_number=0,
        closing_number=0,
        is_active=True,
        last_updated=DAY_ONE,
    )
    db_session.add(box)
    db_session.commit()
    return box


@pytest.fixture(scope='function')
def pack_a(db_session, store_a):
    """Active 10-ticket pack in Store A with serials 000-009."""
    pack = TicketPack(
        store_id=store_a.id,
        game_number="1234",
        game_name="Lucky 7s",
        start_serial="000",
        end_serial="009",
        ticket_price_cents=500,
        total_tickets=10,
        remaining_tickets=10,
        scanned_count=0,
        status="active",
        activation_date=DAY_ONE,
    )
    db_session.add(pack)
    db_session.commit()
    return pack


@pytest.fixture(scope='function')
def headers_a(store_a):
    """Store context headers for Store A."""
    return {'X-Store-Id': str(store_a.id)}
