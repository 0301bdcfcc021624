"""
Single elimination bracket generation.

BYE slots are spread with a bit-reversal permutation so the empty
positions are maximally far apart, and first-round BYE winners are
cascaded into later rounds before the bracket is returned.
"""
import logging
import math
import random
import uuid
from typing import Dict, List, Optional, Set

from core.errors import InvalidParticipantCount
from core.models import BYE, PENDING, SLOT_A, SLOT_B, Match

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2
MAX_PARTICIPANTS = 512
ARENAS = ('A', 'B', 'C', 'D')


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def next_power_of_two(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)."""
    if n <= 1:
        return 1
    return 2 ** math.ceil(math.log2(n))


def get_round_name(round_number: int, total_rounds: int) -> str:
    """Get the display name of a round (1 = earliest, total_rounds = final)."""
    competitors_in_round = 2 ** (total_rounds - round_number + 1)
    if competitors_in_round == 2:
        return "Final"
    elif competitors_in_round == 4:
        return "Semifinal"
    elif competitors_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {competitors_in_round}"


def winner_destination(round_number: int, match_order: int):
    """Return (round, match_order, slot) that the winner of a match moves into."""
    slot = SLOT_A if match_order % 2 == 1 else SLOT_B
    return round_number + 1, (match_order + 1) // 2, slot


def bit_reversal_permutation(size: int) -> List[int]:
    """
    Bit-reversal permutation of ``0..size-1`` (size must be a power of two).

    Index i maps to i with its log2(size) bits reversed, e.g. for 8:
    [0, 4, 2, 6, 1, 5, 3, 7].
    """
    if not is_power_of_two(size):
        raise ValueError(f"Permutation size must be a power of two, got {size}")
    bits = size.bit_length() - 1
    permutation = []
    for index in range(size):
        reversed_index = 0
        value = index
        for _ in range(bits):
            reversed_index = (reversed_index << 1) | (value & 1)
            value >>= 1
        permutation.append(reversed_index)
    return permutation


def calculate_bye_slots(bracket_size: int, participant_count: int) -> Set[int]:
    """
    Slot indices (0-based) left empty in a bracket of ``bracket_size``.

    The BYE slots are the images of the last ``bracket_size - participant_count``
    natural positions under the bit-reversal permutation.
    """
    bye_count = bracket_size - participant_count
    if bye_count <= 0:
        return set()
    permutation = bit_reversal_permutation(bracket_size)
    return {permutation[position] for position in range(bracket_size - bye_count, bracket_size)}


def get_bracket_metadata(participant_count: int) -> Dict[str, int]:
    """Layout numbers for a bracket of ``participant_count`` without generating it."""
    bracket_size = next_power_of_two(participant_count)
    return {
        'bracket_size': bracket_size,
        'total_rounds': int(math.log2(bracket_size)),
        'total_matches': bracket_size - 1,
        'bye_count': bracket_size - participant_count,
        'participant_count': participant_count,
    }


def _build_match_shells(event_id: str, code_prefix: str, total_rounds: int) -> Dict[int, List[Match]]:
    """Create empty matches for every round, final first."""
    matches_by_round = {}
    for round_number in range(total_rounds, 0, -1):
        matches_in_round = 2 ** (total_rounds - round_number)
        matches_by_round[round_number] = [
            Match(
                id=str(uuid.uuid4()),
                event_id=event_id,
                round=round_number,
                match_order=i + 1,
                match_code=f"{code_prefix}-R{round_number}-M{i + 1}",
                arena=ARENAS[i % len(ARENAS)],
                status=PENDING,
            )
            for i in range(matches_in_round)
        ]

    # Link every match to the one its winner feeds
    for round_number in range(1, total_rounds):
        for match in matches_by_round[round_number]:
            _, parent_order, slot = winner_destination(round_number, match.match_order)
            match.parent_match_id = matches_by_round[round_number + 1][parent_order - 1].id
            match.origin_slot = slot
    return matches_by_round


def _resolve_first_round_byes(first_round: List[Match]):
    for match in first_round:
        occupied = match.competitors
        if len(occupied) == 1:
            match.winner = occupied[0]
            match.status = BYE
        elif not occupied:
            # Double BYE: nobody advances from here
            match.status = BYE


def _is_empty_bye(match: Match) -> bool:
    return match.status == BYE and match.winner is None


def _cascade_byes(matches_by_round: Dict[int, List[Match]], total_rounds: int):
    """
    Push known winners up the tree, one round at a time.

    A parent left with a single competitor whose other feeder is an empty
    BYE is itself resolved as a BYE; a parent fed by two empty BYEs becomes
    an empty BYE. Each parent is examined once, so the pass always ends.
    """
    for round_number in range(1, total_rounds):
        current = matches_by_round[round_number]
        for parent in matches_by_round[round_number + 1]:
            feeder_a = current[2 * parent.match_order - 2]
            feeder_b = current[2 * parent.match_order - 1]
            if feeder_a.winner:
                parent.competitor_a = feeder_a.winner
            if feeder_b.winner:
                parent.competitor_b = feeder_b.winner

            if _is_empty_bye(feeder_a) and _is_empty_bye(feeder_b):
                parent.status = BYE
            elif parent.competitor_a and not parent.competitor_b and _is_empty_bye(feeder_b):
                parent.winner = parent.competitor_a
                parent.status = BYE
            elif parent.competitor_b and not parent.competitor_a and _is_empty_bye(feeder_a):
                parent.winner = parent.competitor_b
                parent.status = BYE


def generate_bracket(participants: List, event_id: str, code_prefix: str,
                     rng: Optional[random.Random] = None) -> List[Match]:
    """
    Generate a single elimination bracket for 2-512 participants.

    Args:
        participants: Competitors to seed (anything with an ``id`` attribute).
        event_id: Event the matches belong to.
        code_prefix: Prefix of the match codes, usually the event code.
        rng: Random source for the draw; a fresh shuffle every call by default.

    Returns:
        Every match of every round, ordered by round then match_order.
    """
    count = len(participants)
    if count < MIN_PARTICIPANTS or count > MAX_PARTICIPANTS:
        raise InvalidParticipantCount(count)

    shuffled = list(participants)
    (rng or random).shuffle(shuffled)

    meta = get_bracket_metadata(count)
    bracket_size = meta['bracket_size']
    total_rounds = meta['total_rounds']
    bye_slots = calculate_bye_slots(bracket_size, count)

    matches_by_round = _build_match_shells(event_id, code_prefix, total_rounds)
    first_round = matches_by_round[1]

    # Fill the non-BYE slots in order; slots (2k, 2k+1) form match k+1
    seeded = iter(shuffled)
    for slot in range(bracket_size):
        if slot in bye_slots:
            continue
        competitor = next(seeded, None)
        if competitor is None:
            break
        match = first_round[slot // 2]
        if slot % 2 == 0:
            match.competitor_a = competitor.id
        else:
            match.competitor_b = competitor.id

    _resolve_first_round_byes(first_round)
    _cascade_byes(matches_by_round, total_rounds)

    matches = []
    for round_number in range(1, total_rounds + 1):
        matches.extend(matches_by_round[round_number])

    logger.info("Generated bracket for event %s: %d participants, size %d, %d byes",
                event_id, count, bracket_size, meta['bye_count'])
    return matches
