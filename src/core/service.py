"""
Operation boundary for bracket generation and match scoring.

Each public method runs one unit of work against the event store and,
after it has committed, publishes the matching notifications. Payloads
carry the event's commit ``revision``; notifications for one event may be
delivered out of commit order, so subscribers keep the highest revision seen.
"""
import logging
import random
import uuid
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from core import notifications
from core.bracket import generate_bracket
from core.models import (
    COMPETITOR_VALID, EVENT_ONGOING, Competitor, Event,
)
from core.notifications import NotificationHub
from core.scoring import (
    apply_score_action, scoreboard, set_winner, undo_last_action,
)
from core.storage import EventStore

logger = logging.getLogger(__name__)

EVENT_CODE_PREFIX = 'KRT'


def make_event_code(event_id: str, start_date=None) -> str:
    """Build ``KRT-YYYYMMDD-XXXX`` from the start date and the event id."""
    if start_date is None:
        start = date.today()
    elif isinstance(start_date, (date, datetime)):
        start = start_date
    else:
        start = datetime.fromisoformat(str(start_date)[:10]).date()
    return f"{EVENT_CODE_PREFIX}-{start.strftime('%Y%m%d')}-{event_id.replace('-', '')[:4].upper()}"


class TournamentService:
    def __init__(self, store: EventStore, hub: Optional[NotificationHub] = None):
        self.store = store
        self.hub = hub or NotificationHub()

    # Events and roster

    def create_event(self, name: str, start_date=None, end_date=None, location=None) -> Event:
        if not name or not str(name).strip():
            raise ValueError('Event name is required')
        event_id = str(uuid.uuid4())
        event = Event(
            id=event_id,
            name=str(name).strip(),
            event_code=make_event_code(event_id, start_date),
            start_date=str(start_date) if start_date else None,
            end_date=str(end_date) if end_date else None,
            location=location,
        )
        self.store.create_event(event)
        return event

    def list_events(self) -> List[Event]:
        return self.store.list_events()

    def register_competitors(self, event_id: str, competitors: Iterable) -> List[Competitor]:
        """Add competitors to the event roster; ids already registered are ignored."""
        with self.store.transaction(event_id) as document:
            registered = {c.id for c in document.competitors}
            for item in competitors:
                competitor = item if isinstance(item, Competitor) else Competitor.from_dict(item)
                if competitor.id in registered:
                    continue
                document.competitors.append(competitor)
                registered.add(competitor.id)
            roster = list(document.competitors)
        logger.info("Event %s roster now has %d competitor(s)", event_id, len(roster))
        return roster

    def get_event(self, event_id: str) -> Dict:
        document = self.store.load(event_id)
        data = document.event.to_dict()
        data['competitors'] = [c.to_dict() for c in document.competitors]
        data['matches'] = [m.to_dict() for m in sorted(
            document.matches, key=lambda m: (m.round, m.match_order))]
        return data

    # Bracket

    def generate_event_bracket(self, event_id: str, rng: Optional[random.Random] = None) -> List[Dict]:
        """Draw a new bracket from the valid roster, replacing any existing one."""
        with self.store.transaction(event_id) as document:
            valid = [c for c in document.competitors if c.status == COMPETITOR_VALID]
            matches = generate_bracket(valid, event_id, document.event.event_code, rng=rng)
            document.replace_matches(matches)
            document.event.status = EVENT_ONGOING
            revision = document.revision

        self.store.reindex_event(event_id, [m.id for m in matches])
        match_records = [m.to_dict() for m in matches]
        self.hub.publish(notifications.BRACKET_UPDATED, {
            'eventId': event_id,
            'revision': revision,
            'matches': match_records,
        })
        return match_records

    def list_event_matches(self, event_id: str) -> List[Dict]:
        document = self.store.load(event_id)
        ordered = sorted(document.matches, key=lambda m: (m.round, m.match_order))
        return [scoreboard(document, m) for m in ordered]

    # Matches

    def get_match(self, match_id: str) -> Dict:
        event_id = self.store.event_for_match(match_id)
        document = self.store.load(event_id)
        return scoreboard(document, document.get_match(match_id))

    def apply_score_action(self, match_id: str, competitor_id: str, action: str,
                           performed_by: str = None) -> Dict:
        event_id = self.store.event_for_match(match_id)
        with self.store.transaction(event_id) as document:
            apply_score_action(document, match_id, competitor_id, action, performed_by)
            record = scoreboard(document, document.get_match(match_id))
            revision = document.revision

        self._publish_scores(record, revision)
        return record

    def undo_last_action(self, match_id: str) -> Dict:
        event_id = self.store.event_for_match(match_id)
        with self.store.transaction(event_id) as document:
            undone = undo_last_action(document, match_id)
            record = scoreboard(document, document.get_match(match_id))
            revision = document.revision

        self._publish_scores(record, revision)
        return {**record, 'undone_action': undone}

    def set_winner(self, match_id: str, winner_id: str, method: str) -> Dict:
        event_id = self.store.event_for_match(match_id)
        with self.store.transaction(event_id) as document:
            outcome = set_winner(document, match_id, winner_id, method)
            record = scoreboard(document, outcome['match'])
            revision = document.revision

        payload = {'matchId': match_id, 'eventId': event_id, 'revision': revision, 'match': record}
        self.hub.publish(notifications.MATCH_FINISHED, payload)
        self.hub.publish(notifications.BRACKET_UPDATED, payload)
        if outcome['event_completed']:
            self.hub.publish(notifications.EVENT_COMPLETED, {'eventId': event_id, 'revision': revision})

        destination = outcome['destination']
        return {
            **record,
            'method': method,
            'destination_match_id': destination.id if destination else None,
            'event_completed': outcome['event_completed'],
        }

    def _publish_scores(self, record: Dict, revision: int):
        payload = {
            'matchId': record['id'],
            'eventId': record['event_id'],
            'revision': revision,
            'scores': record['scores'],
            'match': record,
        }
        self.hub.publish(notifications.SCORE_UPDATED, payload)
        self.hub.publish(notifications.MATCH_UPDATED, payload)
