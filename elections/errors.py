"""
Error taxonomy for the election engine.

Every error carries the HTTP status it maps to and a JSON payload with at
least a ``message`` key. ``ApiErrorMiddleware`` turns them into responses.
"""


class ElectionError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_payload(self):
        return {'message': self.message, **self.extra}


class ValidationFailed(ElectionError):
    status_code = 400
    default_message = 'Invalid request'


class NotFound(ElectionError):
    status_code = 404
    default_message = 'Not found'


class Forbidden(ElectionError):
    status_code = 403
    default_message = 'Forbidden'


class Conflict(ElectionError):
    status_code = 409
    default_message = 'Conflict with existing data'


class VoteBudgetExceeded(ElectionError):
    """Raised when a voter has used every vote the settings allow."""

    status_code = 400

    def __init__(self, vote_count, max_votes):
        self.vote_count = vote_count
        self.max_votes = max_votes
        super().__init__(
            f'You have already used all your votes ({vote_count}/{max_votes})',
            voteCount=vote_count,
            maxVotes=max_votes,
        )


class UpstreamTimeout(ElectionError):
    status_code = 503
    default_message = 'Database operation timed out'


class Internal(ElectionError):
    status_code = 500
    default_message = 'Server error'
