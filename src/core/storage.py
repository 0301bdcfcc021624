"""
YAML file storage for events, their matches, scores and audit log.

Each event lives in one document (``events/<event_id>.yaml``) guarded by
its own FileLock. A unit of work loads the document under the lock,
mutates it in memory and writes it back only when the block finishes
without raising, so a failed operation leaves nothing behind.
"""
import logging
import os
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional

import yaml
from filelock import FileLock

from core.errors import EventNotFound, MatchNotFound
from core.models import (
    TERMINAL_STATUSES, AuditLogEntry, Competitor, Event, Match, Score,
)

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventDocument:
    """In-memory view of one event's stored state."""

    def __init__(self, event: Event, competitors=None, matches=None, scores=None,
                 audit_log=None, next_sequence_id=1, revision=0):
        self.event = event
        self.competitors: List[Competitor] = competitors or []
        self.matches: List[Match] = matches or []
        self.scores: List[Score] = scores or []
        self.audit_log: List[AuditLogEntry] = audit_log or []
        self.next_sequence_id = next_sequence_id
        # Bumped by every committed unit of work
        self.revision = revision

    # Matches

    def get_match(self, match_id: str) -> Match:
        for match in self.matches:
            if match.id == match_id:
                return match
        raise MatchNotFound(f'Match not found: {match_id}')

    def matches_in_round(self, round_number: int) -> List[Match]:
        return sorted((m for m in self.matches if m.round == round_number),
                      key=lambda m: m.match_order)

    def match_at(self, round_number: int, match_order: int) -> Optional[Match]:
        return next((m for m in self.matches
                     if m.round == round_number and m.match_order == match_order), None)

    def count_undecided(self) -> int:
        """Number of matches whose status is neither COMPLETED nor BYE."""
        return sum(1 for m in self.matches if m.status not in TERMINAL_STATUSES)

    def replace_matches(self, matches: List[Match]):
        """Drop every match, score and audit entry and install a new bracket."""
        self.matches = list(matches)
        self.scores = []
        self.audit_log = []

    # Scores

    def find_score(self, match_id: str, competitor_id: str) -> Optional[Score]:
        return next((s for s in self.scores
                     if s.match_id == match_id and s.competitor_id == competitor_id), None)

    def add_score(self, score: Score):
        self.scores.append(score)

    def scores_for(self, match_id: str) -> List[Score]:
        return [s for s in self.scores if s.match_id == match_id]

    # Audit log

    def append_audit(self, entry: AuditLogEntry):
        self.audit_log.append(entry)
        self.next_sequence_id = max(self.next_sequence_id, entry.sequence_id + 1)

    def allocate_sequence_id(self) -> int:
        sequence_id = self.next_sequence_id
        self.next_sequence_id += 1
        return sequence_id

    def audit_for(self, match_id: str) -> List[AuditLogEntry]:
        return sorted((e for e in self.audit_log if e.match_id == match_id),
                      key=lambda e: e.sequence_id)

    def last_audit(self, match_id: str) -> Optional[AuditLogEntry]:
        entries = self.audit_for(match_id)
        return entries[-1] if entries else None

    def remove_audit(self, entry: AuditLogEntry):
        self.audit_log = [e for e in self.audit_log if e.sequence_id != entry.sequence_id]

    # Serialization

    def to_dict(self) -> Dict:
        return {
            'event': self.event.to_dict(),
            'competitors': [c.to_dict() for c in self.competitors],
            'matches': [m.to_dict() for m in self.matches],
            'scores': [s.to_dict() for s in self.scores],
            'audit_log': [e.to_dict() for e in self.audit_log],
            'next_sequence_id': self.next_sequence_id,
            'revision': self.revision,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'EventDocument':
        return cls(
            event=Event.from_dict(data['event']),
            competitors=[Competitor.from_dict(c) for c in data.get('competitors') or []],
            matches=[Match.from_dict(m) for m in data.get('matches') or []],
            scores=[Score.from_dict(s) for s in data.get('scores') or []],
            audit_log=[AuditLogEntry.from_dict(e) for e in data.get('audit_log') or []],
            next_sequence_id=data.get('next_sequence_id', 1),
            revision=data.get('revision', 0),
        )


class EventStore:
    """Locked, all-or-nothing access to event documents on disk."""

    def __init__(self, data_dir: str, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.data_dir = data_dir
        self.events_dir = os.path.join(data_dir, 'events')
        self.index_file = os.path.join(data_dir, 'match_index.yaml')
        self.lock_timeout = lock_timeout
        self._locks: Dict[str, FileLock] = {}
        os.makedirs(self.events_dir, exist_ok=True)

    def _event_path(self, event_id: str) -> str:
        if not event_id or '..' in event_id or '/' in event_id or '\\' in event_id:
            raise EventNotFound(f'Event not found: {event_id}')
        return os.path.join(self.events_dir, f'{event_id}.yaml')

    def _lock(self, path: str) -> FileLock:
        lock_path = os.path.splitext(path)[0] + '.lock'
        if lock_path not in self._locks:
            self._locks[lock_path] = FileLock(lock_path, timeout=self.lock_timeout)
        return self._locks[lock_path]

    @staticmethod
    def _read_yaml(path: str):
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)

    @staticmethod
    def _write_yaml(path: str, data):
        """Write ``data`` next to ``path`` and swap it in with one rename."""
        directory = os.path.dirname(path)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    # Events

    def create_event(self, event: Event) -> EventDocument:
        path = self._event_path(event.id)
        with self._lock(path):
            if os.path.exists(path):
                raise ValueError(f'Event already exists: {event.id}')
            document = EventDocument(event)
            self._write_yaml(path, document.to_dict())
        logger.info("Created event %s (%s)", event.id, event.event_code)
        return document

    def load(self, event_id: str) -> EventDocument:
        """Read a consistent snapshot of an event."""
        path = self._event_path(event_id)
        with self._lock(path):
            return self._load_unlocked(event_id, path)

    def _load_unlocked(self, event_id: str, path: str) -> EventDocument:
        if not os.path.exists(path):
            raise EventNotFound(f'Event not found: {event_id}')
        data = self._read_yaml(path)
        if not data or 'event' not in data:
            raise EventNotFound(f'Event not found: {event_id}')
        return EventDocument.from_dict(data)

    def list_events(self) -> List[Event]:
        events = []
        for name in sorted(os.listdir(self.events_dir)):
            if not name.endswith('.yaml'):
                continue
            try:
                events.append(self.load(name[:-len('.yaml')]).event)
            except EventNotFound:
                logger.warning("Skipping unreadable event file %s", name)
        return events

    @contextmanager
    def transaction(self, event_id: str) -> Iterator[EventDocument]:
        """
        Unit of work over one event.

        Holds the event lock for the whole block; the document is saved only
        if the block completes, otherwise the stored copy is left untouched.
        The document's ``revision`` is one higher than the stored one inside
        the block, so readers can order snapshots by commit.
        """
        path = self._event_path(event_id)
        with self._lock(path):
            document = self._load_unlocked(event_id, path)
            document.revision += 1
            yield document
            self._write_yaml(path, document.to_dict())

    # Match index

    def _read_index(self) -> Dict[str, str]:
        if not os.path.exists(self.index_file):
            return {}
        return self._read_yaml(self.index_file) or {}

    def event_for_match(self, match_id: str) -> str:
        """Return the id of the event owning ``match_id``."""
        with self._lock(self.index_file):
            index = self._read_index()
        event_id = index.get(match_id)
        if event_id is None:
            # Index rewrites happen after the event write; fall back to a scan
            event_id = self._scan_for_match(match_id)
        if event_id is None:
            raise MatchNotFound(f'Match not found: {match_id}')
        return event_id

    def _scan_for_match(self, match_id: str) -> Optional[str]:
        for event in self.list_events():
            document = self.load(event.id)
            if any(m.id == match_id for m in document.matches):
                logger.warning("Match %s missing from index, found in event %s", match_id, event.id)
                return event.id
        return None

    def reindex_event(self, event_id: str, match_ids: List[str]):
        """Point the index at an event's current matches, dropping its old ones."""
        with self._lock(self.index_file):
            index = {mid: eid for mid, eid in self._read_index().items() if eid != event_id}
            for match_id in match_ids:
                index[match_id] = event_id
            self._write_yaml(self.index_file, index)
