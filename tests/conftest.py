"""
Pytest configuration and fixtures for training hub tests.
"""
import os
import sys
from datetime import datetime
from decimal import Decimal

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from training_hub.app import create_app
from training_hub.models import db, GameMode
from training_hub.directory import PlayerDirectory
from training_hub.training_registry import TrainingRegistry
from training_hub.roster import RosterManager
from training_hub.cost_allocator import CostAllocator
from shared.pubsub import EventPublisher


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')
    yield app


@pytest.fixture(scope='function')
def db_session(app):
    """Push an app context for the test and start from empty tables."""
    with app.app_context():
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client sharing the test's app context."""
    return app.test_client()


@pytest.fixture
def sample_players(db_session):
    """Three registered players, in registration order."""
    directory = PlayerDirectory()
    return [
        directory.create_player(name='Alice Archer', email='alice@example.com'),
        directory.create_player(name='Bob Bullseye', email='bob@example.com', nickname='Bully'),
        directory.create_player(name='Carol Checkout', email='carol@example.com'),
    ]


@pytest.fixture
def game_mode(db_session):
    mode = GameMode(name='501 Double Out', description='Classic 501', rules='{"startingScore": 501}')
    db_session.add(mode)
    db_session.commit()
    return mode


@pytest.fixture
def registry(db_session):
    return TrainingRegistry()


@pytest.fixture
def roster(db_session):
    return RosterManager()


@pytest.fixture
def cost_allocator(db_session):
    return CostAllocator()


@pytest.fixture
def planned_session(registry, sample_players):
    """A planned session with the three sample players enrolled."""
    return registry.create_session(
        name='Tuesday Practice',
        training_date=datetime(2026, 10, 20, 19, 0),
        cost_per_player=Decimal('5.00')
    )


@pytest.fixture
def active_session(registry, planned_session):
    return registry.start_session(planned_session.session_id)


@pytest.fixture
def mock_redis(mocker):
    return mocker.MagicMock()


@pytest.fixture
def mock_publisher(mock_redis):
    """EventPublisher backed by a mocked Redis client."""
    return EventPublisher(mock_redis)
