"""
Winner advancement after a match completes.

Moves the winner exactly one round forward and checks whether the event
has any undecided match left. Generation-time BYE cascading lives in
``core.bracket`` and is a separate algorithm.
"""
import logging
from typing import Dict

from core.bracket import winner_destination
from core.models import EVENT_COMPLETED, SLOT_A, Match
from core.storage import EventDocument

logger = logging.getLogger(__name__)


def advance_winner(document: EventDocument, match: Match) -> Dict:
    """
    Place ``match.winner`` into its slot of the next round.

    The destination's status is left alone; it becomes playable once both
    slots are filled.

    Returns:
        Dict with ``destination`` (Match or None) and ``event_completed``,
        which is True only on the call that leaves no undecided match.
    """
    destination = None
    next_round, next_order, slot = winner_destination(match.round, match.match_order)
    if document.matches_in_round(next_round):
        destination = document.match_at(next_round, next_order)
        if destination is not None:
            if slot == SLOT_A:
                destination.competitor_a = match.winner
            else:
                destination.competitor_b = match.winner
            logger.debug("Advanced %s from %s to %s slot %s", match.winner,
                         match.match_code, destination.match_code, slot)

    event_completed = False
    if document.count_undecided() == 0 and document.event.status != EVENT_COMPLETED:
        document.event.status = EVENT_COMPLETED
        event_completed = True
        logger.info("Event %s completed", document.event.id)

    return {'destination': destination, 'event_completed': event_completed}
