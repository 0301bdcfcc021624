"""
Shared pytest fixtures for bracket and scoring tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - fast subset (skips every-size bracket sweeps)
"""
import pytest
import random
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.bracket import generate_bracket
from core.models import Competitor, Event
from core.notifications import NotificationHub
from core.service import TournamentService
from core.storage import EventDocument, EventStore


def make_competitors(count, prefix='athlete'):
    """Create ``count`` valid competitors with predictable ids."""
    return [
        Competitor(id=f'{prefix}-{i + 1}', name=f'Athlete {i + 1}', affiliation=f'Dojo {i % 3 + 1}')
        for i in range(count)
    ]


@pytest.fixture
def competitors():
    """Four competitors, enough for a bracket without byes."""
    return make_competitors(4)


@pytest.fixture
def rng():
    """Seeded random source so draws are repeatable inside a test."""
    return random.Random(1234)


@pytest.fixture
def document(competitors, rng):
    """An in-memory event with a generated four-competitor bracket."""
    doc = EventDocument(Event(id='event-1', name='Spring Open', event_code='KRT-20260301-ABCD'),
                        competitors=list(competitors))
    doc.matches = generate_bracket(competitors, 'event-1', 'KRT-20260301-ABCD', rng=rng)
    return doc


@pytest.fixture
def store(tmp_path):
    """Event store rooted in a temporary directory."""
    return EventStore(str(tmp_path / 'data'), lock_timeout=5)


@pytest.fixture
def hub():
    return NotificationHub()


@pytest.fixture
def service(store, hub):
    return TournamentService(store, hub)


@pytest.fixture
def event_factory(service):
    """Create an event with ``count`` registered competitors and a generated bracket."""
    def _create(count, seed=7):
        event = service.create_event('Spring Open', start_date='2026-03-01', location='Main Hall')
        service.register_competitors(event.id, make_competitors(count))
        service.generate_event_bracket(event.id, rng=random.Random(seed))
        return event
    return _create


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Flask test client backed by a temporary data directory."""
    import app as app_module

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path / 'data'))
    monkeypatch.setattr(app_module, '_service', None)
    app_module.app.config['TESTING'] = True
    with app_module.app.test_client() as client:
        yield client
