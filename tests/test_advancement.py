"""
Unit tests for winner advancement and event completion.
"""
import pytest
import random
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.advancement import advance_winner
from core.bracket import generate_bracket
from core.models import BYE, COMPLETED, EVENT_COMPLETED, EVENT_ONGOING, PENDING, Event
from core.scoring import set_winner
from core.storage import EventDocument
from conftest import make_competitors


def build_document(count, seed=5):
    competitors = make_competitors(count)
    document = EventDocument(Event(id='event-1', name='Cup', event_code='KRT', status=EVENT_ONGOING),
                             competitors=competitors)
    document.matches = generate_bracket(competitors, 'event-1', 'KRT', rng=random.Random(seed))
    return document


class TestAdvanceWinner:
    """Tests for placing winners into the next round."""

    def test_order_one_fills_slot_a(self):
        """Round 1 match 1 feeds round 2 match 1, slot A."""
        document = build_document(8)
        match = document.match_at(1, 1)
        set_winner(document, match.id, match.competitor_a, 'SCORE')
        destination = document.match_at(2, 1)
        assert destination.competitor_a == match.competitor_a
        assert destination.competitor_b is None

    def test_order_two_fills_slot_b(self):
        """Round 1 match 2 feeds round 2 match 1, slot B."""
        document = build_document(8)
        match = document.match_at(1, 2)
        outcome = set_winner(document, match.id, match.competitor_b, 'SCORE')
        destination = document.match_at(2, 1)
        assert outcome['destination'] is destination
        assert destination.competitor_b == match.competitor_b
        assert destination.competitor_a is None

    def test_higher_orders(self):
        document = build_document(16)
        match = document.match_at(1, 7)
        set_winner(document, match.id, match.competitor_a, 'DQ')
        assert document.match_at(2, 4).competitor_a == match.competitor_a

    def test_destination_status_unchanged(self):
        """Filling both slots does not change the destination's status."""
        document = build_document(4)
        for order in (1, 2):
            match = document.match_at(1, order)
            set_winner(document, match.id, match.competitor_a, 'SCORE')
        final = document.match_at(2, 1)
        assert len(final.competitors) == 2
        assert final.status == PENDING

    def test_final_has_no_destination(self):
        document = build_document(2)
        final = document.match_at(1, 1)
        outcome = set_winner(document, final.id, final.competitor_a, 'SCORE')
        assert outcome['destination'] is None

    def test_only_one_round_advanced(self):
        """Advancement never resolves the next match on its own."""
        document = build_document(3)
        real = next(m for m in document.matches if m.round == 1 and m.status == PENDING)
        set_winner(document, real.id, real.competitor_a, 'SCORE')
        final = document.match_at(2, 1)
        assert len(final.competitors) == 2
        assert final.winner is None
        assert final.status == PENDING


class TestEventCompletion:
    """Tests for the event-complete signal."""

    def test_fires_on_last_match_only(self):
        document = build_document(4)
        first = document.match_at(1, 1)
        second = document.match_at(1, 2)

        assert set_winner(document, first.id, first.competitor_a, 'SCORE')['event_completed'] is False
        assert set_winner(document, second.id, second.competitor_b, 'SCORE')['event_completed'] is False
        assert document.event.status == EVENT_ONGOING

        final = document.match_at(2, 1)
        outcome = set_winner(document, final.id, final.competitor_a, 'SCORE')
        assert outcome['event_completed'] is True
        assert document.event.status == EVENT_COMPLETED

    def test_fires_once(self):
        """Re-declaring a finished final does not signal completion again."""
        document = build_document(2)
        final = document.match_at(1, 1)
        assert set_winner(document, final.id, final.competitor_a, 'SCORE')['event_completed'] is True
        assert set_winner(document, final.id, final.competitor_b, 'REFEREE')['event_completed'] is False

    def test_byes_count_as_decided(self):
        """BYE matches never hold up completion."""
        document = build_document(5)
        for round_number in (1, 2, 3):
            for match in document.matches_in_round(round_number):
                if match.status == BYE:
                    continue
                outcome = set_winner(document, match.id, match.competitors[0], 'SCORE')
        assert outcome['event_completed'] is True
        assert all(m.status in (COMPLETED, BYE) for m in document.matches)

    def test_advance_winner_directly_counts_undecided(self):
        document = build_document(4)
        match = document.match_at(1, 1)
        match.winner = match.competitor_a
        match.status = COMPLETED
        outcome = advance_winner(document, match)
        assert outcome['event_completed'] is False
        assert document.count_undecided() == 2
