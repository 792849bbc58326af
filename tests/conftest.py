"""
Pytest fixtures for agriledger tests.

Provides the application, a per-test clean database, reference rows
(farmer, staff, item, asset) and the test client.
"""

import pytest

from agriledger import create_app
from agriledger.extensions import db, events
from agriledger.models import Farmer, Staff, Item, Asset


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()
    events.shutdown()


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
        events.clear()

        yield db.session

        # Cleanup after test
        events.flush(timeout=5)
        events.clear()
        db.session.rollback()


@pytest.fixture(scope='function')
def farmer(db_session):
    farmer = Farmer(reference_number="FRM-0001", first_name="Juan", last_name="Cruz", cluster="Cluster 4")
    db_session.add(farmer)
    db_session.commit()
    return farmer


@pytest.fixture(scope='function')
def other_farmer(db_session):
    farmer = Farmer(reference_number="FRM-0002", first_name="Maria", last_name="Santos", cluster="Cluster 1")
    db_session.add(farmer)
    db_session.commit()
    return farmer


@pytest.fixture(scope='function')
def staff(db_session):
    staff = Staff(name="Ana Reyes", role="staff")
    db_session.add(staff)
    db_session.commit()
    return staff


@pytest.fixture(scope='function')
def admin(db_session):
    admin = Staff(name="Ben Lim", role="admin")
    db_session.add(admin)
    db_session.commit()
    return admin


@pytest.fixture(scope='function')
def item(db_session):
    """Item with 10 units on hand."""
    item = Item(name="Hybrid rice seed", quantity=10, classification="seeds", barcode="4800016", unit="sack")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def fertilizer(db_session):
    """Item with 3 units on hand."""
    item = Item(name="Urea fertilizer", quantity=3, classification="fertilizer", barcode="4800017", unit="bag")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def asset(db_session):
    asset = Asset(reference_number="TRC-001", name="Hand tractor", condition="okay", is_available=True)
    db_session.add(asset)
    db_session.commit()
    return asset


def actor_headers(staff_id: int) -> dict:
    """Helper to create identity headers for mutating routes."""
    return {'X-Actor-Id': str(staff_id)}


def ledger_rows(entity_type: str, entity_id: int) -> list:
    from agriledger.services.ledger_service import list_ledger_events
    return list_ledger_events(entity_type=entity_type, entity_id=entity_id)
