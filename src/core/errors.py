"""
Errors raised by bracket generation and match scoring.

Each error carries the HTTP status the API answers with; none of them
are transient, so callers never retry.
"""


class BracketError(Exception):
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.default_message)

    default_message = 'Bracket operation failed'


class InvalidParticipantCount(BracketError):
    default_message = 'Between 2 and 512 participants are required to generate a bracket'

    def __init__(self, count):
        self.count = count
        super().__init__(f'{self.default_message} (got {count})')


class EventNotFound(BracketError):
    status_code = 404
    default_message = 'Event not found'


class MatchNotFound(BracketError):
    status_code = 404
    default_message = 'Match not found'


class MatchAlreadyCompleted(BracketError):
    status_code = 409
    default_message = 'Match already completed'


class InvalidAction(BracketError):
    default_message = 'Invalid action'

    def __init__(self, action=None):
        self.action = action
        super().__init__(f'Invalid action: {action}' if action else None)


class NoActionsToUndo(BracketError):
    default_message = 'No actions to undo'


class InvalidWinner(BracketError):
    default_message = 'Invalid winner'
