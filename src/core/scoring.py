"""
Match scoring: per-competitor counters, the audit log behind undo, and
the PENDING -> IN_PROGRESS -> COMPLETED lifecycle.

Every function here mutates an ``EventDocument`` that the caller holds
inside a store transaction, so the counter update, the total recompute
and the audit append commit together or not at all.
"""
import logging
from typing import Dict, List

from core.advancement import advance_winner
from core.errors import (
    InvalidAction, InvalidWinner, MatchAlreadyCompleted, NoActionsToUndo,
)
from core.models import (
    ACTION_COUNTERS, BYE, COMPLETED, IN_PROGRESS, PENDING, WIN_METHODS,
    AuditLogEntry, Match, Score,
)
from core.storage import EventDocument, utc_now

logger = logging.getLogger(__name__)

# Points per counter; blue cards and fouls are recorded but not scored
POINTS = {
    'head_kicks': 3,
    'body_kicks': 2,
    'punches': 1,
    'red_cards': -1,
}


def compute_total(score: Score) -> int:
    return sum(getattr(score, counter) * points for counter, points in POINTS.items())


class ScoreLedger:
    """Score rows and the ordered action log of the matches in one event."""

    def __init__(self, document: EventDocument):
        self.document = document

    def score_for(self, match_id: str, competitor_id: str) -> Score:
        """Return the score row, creating it on first use."""
        score = self.document.find_score(match_id, competitor_id)
        if score is None:
            score = Score(match_id, competitor_id)
            self.document.add_score(score)
        return score

    def record(self, match_id: str, competitor_id: str, action: str,
               performed_by: str = None) -> AuditLogEntry:
        """Increment the counter for ``action`` and append it to the log."""
        counter = ACTION_COUNTERS.get(action)
        if counter is None:
            raise InvalidAction(action)

        score = self.score_for(match_id, competitor_id)
        old_total = score.total_score
        setattr(score, counter, getattr(score, counter) + 1)
        score.total_score = compute_total(score)

        entry = AuditLogEntry(
            sequence_id=self.document.allocate_sequence_id(),
            match_id=match_id,
            competitor_id=competitor_id,
            action=action,
            old_total=old_total,
            new_total=score.total_score,
            performed_by=performed_by,
            created_at=utc_now(),
        )
        self.document.append_audit(entry)
        return entry

    def revert_last(self, match_id: str) -> AuditLogEntry:
        """Undo and consume the newest log entry of the match."""
        entry = self.document.last_audit(match_id)
        if entry is None:
            raise NoActionsToUndo()

        counter = ACTION_COUNTERS.get(entry.action)
        if counter is not None:
            score = self.score_for(match_id, entry.competitor_id)
            setattr(score, counter, max(0, getattr(score, counter) - 1))
            score.total_score = compute_total(score)
        else:
            logger.warning("Audit entry %s has unknown action %s; removing it",
                           entry.sequence_id, entry.action)
        self.document.remove_audit(entry)
        return entry

    def snapshot(self, match_id: str) -> List[Dict]:
        return [s.to_dict() for s in self.document.scores_for(match_id)]


def apply_score_action(document: EventDocument, match_id: str, competitor_id: str,
                       action: str, performed_by: str = None) -> AuditLogEntry:
    """
    Apply one scoring action to a match.

    Raises:
        MatchNotFound: no such match in the event.
        MatchAlreadyCompleted: the match is COMPLETED or a BYE.
        InvalidAction: ``action`` is not a known scoring action.
    """
    match = document.get_match(match_id)
    if match.status in (COMPLETED, BYE):
        raise MatchAlreadyCompleted(f'Match already completed: {match.match_code or match.id}')
    if action not in ACTION_COUNTERS:
        raise InvalidAction(action)

    if match.status == PENDING:
        match.status = IN_PROGRESS
        logger.info("Match %s started", match.match_code)

    entry = ScoreLedger(document).record(match_id, competitor_id, action, performed_by)
    logger.debug("Match %s: %s for %s (%d -> %d)", match.match_code, action,
                 competitor_id, entry.old_total, entry.new_total)
    return entry


def undo_last_action(document: EventDocument, match_id: str) -> str:
    """Revert the newest action of the match and return its kind."""
    match = document.get_match(match_id)
    entry = ScoreLedger(document).revert_last(match_id)
    logger.debug("Match %s: undid %s for %s", match.match_code, entry.action, entry.competitor_id)
    return entry.action


def set_winner(document: EventDocument, match_id: str, winner_id: str, method: str) -> Dict:
    """
    Complete a match and advance its winner one round.

    The method is an informational label and is not checked against the
    recorded scores.

    Returns:
        Dict with the completed ``match``, the ``destination`` match (or None
        for the final) and ``event_completed``.
    """
    match = document.get_match(match_id)
    if method not in WIN_METHODS:
        raise InvalidWinner(f'Invalid method: {method}')

    match.winner = winner_id
    match.win_method = method
    match.status = COMPLETED
    logger.info("Match %s won by %s (%s)", match.match_code, winner_id, method)

    advancement = advance_winner(document, match)
    return {'match': match, **advancement}


def scoreboard(document: EventDocument, match: Match) -> Dict:
    """Match record together with its score rows."""
    data = match.to_dict()
    data['scores'] = ScoreLedger(document).snapshot(match.id)
    return data
