"""
Tests for the YAML event store.
"""
import pytest
import random
import sys
import os
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.bracket import generate_bracket
from core.errors import EventNotFound, MatchNotFound
from core.models import COMPLETED, Event
from core.scoring import apply_score_action
from core.storage import EventDocument, EventStore
from conftest import make_competitors


@pytest.fixture
def event(store):
    event = Event(id='event-1', name='Spring Open', event_code='KRT-20260301-EVEN')
    store.create_event(event)
    return event


def install_bracket(store, event_id, count=4):
    with store.transaction(event_id) as document:
        document.competitors = make_competitors(count)
        document.replace_matches(generate_bracket(document.competitors, event_id, 'KRT', rng=random.Random(9)))
        matches = list(document.matches)
    store.reindex_event(event_id, [m.id for m in matches])
    return matches


class TestEventStore:
    """Tests for loading and saving event documents."""

    def test_create_and_load(self, store, event):
        document = store.load(event.id)
        assert document.event.event_code == 'KRT-20260301-EVEN'
        assert document.matches == []

    def test_create_twice_fails(self, store, event):
        with pytest.raises(ValueError):
            store.create_event(event)

    def test_missing_event(self, store):
        with pytest.raises(EventNotFound):
            store.load('nope')

    def test_rejects_path_traversal(self, store):
        with pytest.raises(EventNotFound):
            store.load('../secrets')

    def test_list_events(self, store, event):
        store.create_event(Event(id='event-2', name='Autumn Cup', event_code='KRT-2'))
        assert sorted(e.id for e in store.list_events()) == ['event-1', 'event-2']

    def test_document_is_plain_yaml(self, store, event):
        """Stored documents are readable YAML with the expected sections."""
        install_bracket(store, event.id)
        with open(os.path.join(store.events_dir, 'event-1.yaml'), encoding='utf-8') as f:
            data = yaml.safe_load(f)
        assert set(data) == {'event', 'competitors', 'matches', 'scores', 'audit_log', 'next_sequence_id', 'revision'}
        assert len(data['matches']) == 3

    def test_round_trip(self, store, event):
        matches = install_bracket(store, event.id)
        with store.transaction(event.id) as document:
            apply_score_action(document, matches[0].id, matches[0].competitor_a, 'HEAD_KICK', performed_by='judge')

        reloaded = store.load(event.id)
        score = reloaded.find_score(matches[0].id, matches[0].competitor_a)
        assert score.head_kicks == 1
        assert score.total_score == 3
        assert reloaded.audit_for(matches[0].id)[0].performed_by == 'judge'
        assert reloaded.next_sequence_id == 2
        assert reloaded.revision == 2


class TestTransactions:
    """Tests for all-or-nothing units of work."""

    def test_commit_on_success(self, store, event):
        with store.transaction(event.id) as document:
            document.event.location = 'Main Hall'
        assert store.load(event.id).event.location == 'Main Hall'

    def test_rollback_on_error(self, store, event):
        """An exception inside the block leaves the stored document untouched."""
        matches = install_bracket(store, event.id)
        with pytest.raises(RuntimeError):
            with store.transaction(event.id) as document:
                match = document.get_match(matches[0].id)
                apply_score_action(document, match.id, match.competitor_a, 'PUNCH')
                match.status = COMPLETED
                raise RuntimeError('boom')

        document = store.load(event.id)
        assert document.scores == []
        assert document.audit_log == []
        assert document.revision == 1
        assert document.get_match(matches[0].id).status == 'PENDING'

    def test_no_temp_files_left(self, store, event):
        install_bracket(store, event.id)
        leftovers = [n for n in os.listdir(store.events_dir) if n.endswith('.tmp')]
        assert leftovers == []

    def test_transaction_on_missing_event(self, store):
        with pytest.raises(EventNotFound):
            with store.transaction('missing'):
                pass


class TestMatchIndex:
    """Tests for resolving match ids to events."""

    def test_lookup(self, store, event):
        matches = install_bracket(store, event.id)
        assert store.event_for_match(matches[-1].id) == event.id

    def test_unknown_match(self, store, event):
        install_bracket(store, event.id)
        with pytest.raises(MatchNotFound):
            store.event_for_match('missing')

    def test_regeneration_drops_old_ids(self, store, event):
        old = install_bracket(store, event.id)
        new = install_bracket(store, event.id)
        with open(store.index_file, encoding='utf-8') as f:
            index = yaml.safe_load(f)
        assert old[0].id not in index
        assert all(index[m.id] == event.id for m in new)

    def test_reindex_keeps_other_events(self, store, event):
        store.create_event(Event(id='event-2', name='Autumn Cup', event_code='KRT-2'))
        first = install_bracket(store, event.id)
        install_bracket(store, 'event-2')
        assert store.event_for_match(first[0].id) == event.id

    def test_falls_back_to_scan(self, store, event):
        """A match missing from the index is still found in its event."""
        matches = install_bracket(store, event.id)
        os.remove(store.index_file)
        assert store.event_for_match(matches[1].id) == event.id


class TestEventDocumentQueries:
    def test_round_queries(self):
        competitors = make_competitors(8)
        document = EventDocument(Event(id='e', name='E', event_code='K'))
        document.matches = generate_bracket(competitors, 'e', 'K')
        assert [m.match_order for m in document.matches_in_round(1)] == [1, 2, 3, 4]
        assert document.matches_in_round(4) == []
        assert document.match_at(3, 1).round == 3
        assert document.match_at(3, 2) is None
        assert document.count_undecided() == 7

    def test_replace_matches_clears_scores_and_log(self, document):
        match = document.match_at(1, 1)
        apply_score_action(document, match.id, match.competitor_a, 'PUNCH')
        document.replace_matches([])
        assert document.scores == []
        assert document.audit_log == []
        with pytest.raises(MatchNotFound):
            document.get_match(match.id)
