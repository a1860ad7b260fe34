class GameSessionError(Exception):
    """Base for every error raised by the session core."""

    code = 'game_session_error'


class InvalidTransition(GameSessionError):
    """Intent is not legal in the current phase. Dropped and logged."""

    code = 'invalid_transition'


class AlreadyClaimed(GameSessionError):
    """Team-claim race loser. Surfaced only to the claiming participant."""

    code = 'already_claimed'


class DuplicateApplication(GameSessionError):
    """A reveal/score-once intent was replayed. Silent no-op."""

    code = 'duplicate_application'


class ContentExhausted(GameSessionError):
    """Not enough questions for a single full round of the chosen teams."""

    code = 'content_exhausted'


class TransportFailure(GameSessionError):
    """A broadcast could not be delivered. Host state is unaffected."""

    code = 'transport_failure'


class SessionNotFound(GameSessionError):
    code = 'session_not_found'


class NotSessionHost(GameSessionError):
    code = 'not_session_host'
