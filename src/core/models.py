"""
Data records for events, competitors, matches and scoring.

Records are plain objects that round-trip through dicts so they can be
stored as YAML documents.
"""
from typing import Dict, List


# Match lifecycle
PENDING = 'PENDING'
IN_PROGRESS = 'IN_PROGRESS'
COMPLETED = 'COMPLETED'
BYE = 'BYE'
TERMINAL_STATUSES = (COMPLETED, BYE)

# Event lifecycle
EVENT_UPCOMING = 'UPCOMING'
EVENT_ONGOING = 'ONGOING'
EVENT_COMPLETED = 'COMPLETED'

# Competitor registration status; only VALID competitors are seeded
COMPETITOR_PENDING = 'PENDING'
COMPETITOR_VALID = 'VALID'
COMPETITOR_DISQUALIFIED = 'DISQUALIFIED'

# Scoring actions and the counter each one increments
HEAD_KICK = 'HEAD_KICK'
BODY_KICK = 'BODY_KICK'
PUNCH = 'PUNCH'
RED_CARD = 'RED_CARD'
BLUE_CARD = 'BLUE_CARD'
FOUL = 'FOUL'
ACTION_COUNTERS = {
    HEAD_KICK: 'head_kicks',
    BODY_KICK: 'body_kicks',
    PUNCH: 'punches',
    RED_CARD: 'red_cards',
    BLUE_CARD: 'blue_cards',
    FOUL: 'fouls',
}

# Informational labels attached to a winner decision
WIN_METHODS = ('SCORE', 'POINT_GAP', 'DQ', 'REFEREE')

SLOT_A = 'A'
SLOT_B = 'B'


class Competitor:
    def __init__(self, id, name, affiliation=None, status=COMPETITOR_VALID):
        self.id = id
        self.name = name
        self.affiliation = affiliation
        self.status = status

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'affiliation': self.affiliation,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Competitor':
        return cls(
            id=str(data['id']),
            name=str(data.get('name') or data['id']),
            affiliation=data.get('affiliation'),
            status=data.get('status', COMPETITOR_VALID),
        )

    def __repr__(self):
        return f"Competitor(id={self.id}, name={self.name}, affiliation={self.affiliation})"


class Event:
    def __init__(self, id, name, event_code, start_date=None, end_date=None,
                 location=None, status=EVENT_UPCOMING):
        self.id = id
        self.name = name
        self.event_code = event_code
        self.start_date = start_date
        self.end_date = end_date
        self.location = location
        self.status = status

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'event_code': self.event_code,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'location': self.location,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Event':
        return cls(
            id=data['id'],
            name=data.get('name'),
            event_code=data.get('event_code'),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            location=data.get('location'),
            status=data.get('status', EVENT_UPCOMING),
        )

    def __repr__(self):
        return f"Event(id={self.id}, code={self.event_code}, status={self.status})"


class Match:
    """A slot-pair in the bracket tree.

    ``round`` and ``match_order`` locate the match in its event; the winner
    always moves to ``round + 1``, order ``ceil(match_order / 2)``.
    """

    def __init__(self, id, event_id, round, match_order, match_code=None,
                 competitor_a=None, competitor_b=None, winner=None,
                 status=PENDING, arena='A', parent_match_id=None,
                 origin_slot=None, win_method=None):
        self.id = id
        self.event_id = event_id
        self.round = round
        self.match_order = match_order
        self.match_code = match_code
        self.competitor_a = competitor_a
        self.competitor_b = competitor_b
        self.winner = winner
        self.status = status
        self.arena = arena
        self.parent_match_id = parent_match_id
        self.origin_slot = origin_slot
        self.win_method = win_method

    @property
    def competitors(self) -> List[str]:
        return [c for c in (self.competitor_a, self.competitor_b) if c is not None]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'event_id': self.event_id,
            'round': self.round,
            'match_order': self.match_order,
            'match_code': self.match_code,
            'competitor_a': self.competitor_a,
            'competitor_b': self.competitor_b,
            'winner': self.winner,
            'status': self.status,
            'arena': self.arena,
            'parent_match_id': self.parent_match_id,
            'origin_slot': self.origin_slot,
            'win_method': self.win_method,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Match':
        return cls(**data)

    def __repr__(self):
        return (f"Match(code={self.match_code}, round={self.round}, order={self.match_order}, "
                f"a={self.competitor_a}, b={self.competitor_b}, status={self.status})")


class Score:
    """Running counters for one competitor in one match."""

    COUNTERS = ('head_kicks', 'body_kicks', 'punches', 'red_cards', 'blue_cards', 'fouls')

    def __init__(self, match_id, competitor_id, head_kicks=0, body_kicks=0, punches=0,
                 red_cards=0, blue_cards=0, fouls=0, total_score=0):
        self.match_id = match_id
        self.competitor_id = competitor_id
        self.head_kicks = head_kicks
        self.body_kicks = body_kicks
        self.punches = punches
        self.red_cards = red_cards
        self.blue_cards = blue_cards
        self.fouls = fouls
        self.total_score = total_score

    def to_dict(self) -> Dict:
        data = {'match_id': self.match_id, 'competitor_id': self.competitor_id}
        for counter in self.COUNTERS:
            data[counter] = getattr(self, counter)
        data['total_score'] = self.total_score
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Score':
        return cls(**data)

    def __repr__(self):
        return f"Score(match={self.match_id}, competitor={self.competitor_id}, total={self.total_score})"


class AuditLogEntry:
    def __init__(self, sequence_id, match_id, competitor_id, action, old_total, new_total,
                 performed_by=None, created_at=None):
        self.sequence_id = sequence_id
        self.match_id = match_id
        self.competitor_id = competitor_id
        self.action = action
        self.old_total = old_total
        self.new_total = new_total
        self.performed_by = performed_by
        self.created_at = created_at

    def to_dict(self) -> Dict:
        return {
            'sequence_id': self.sequence_id,
            'match_id': self.match_id,
            'competitor_id': self.competitor_id,
            'action': self.action,
            'old_total': self.old_total,
            'new_total': self.new_total,
            'performed_by': self.performed_by,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'AuditLogEntry':
        return cls(**data)

    def __repr__(self):
        return (f"AuditLogEntry(seq={self.sequence_id}, match={self.match_id}, "
                f"action={self.action}, {self.old_total}->{self.new_total})")
