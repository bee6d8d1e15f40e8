"""
Exceptions raised by the rotation services.

Domain errors subclass ValueError so callers that only care about
"bad request vs. server error" can keep catching ValueError.
"""


class PickleballError(Exception):
    """Base class for rotation engine errors."""


class InsufficientPlayersError(PickleballError, ValueError):
    """Raised when the eligible pool cannot fill the requested courts."""

    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(
            f"Not enough players to start a round: {available} available, {required} needed"
        )


class SessionNotFoundError(PickleballError, ValueError):
    """Raised when a session does not exist or has been deleted."""


class PlayerNotFoundError(PickleballError, ValueError):
    """Raised when a player cannot be found."""


class MatchNotFoundError(PickleballError, ValueError):
    """Raised when a match cannot be found."""


class ConcurrentSelectionError(PickleballError):
    """Raised when a selected player was taken by another round before we could claim them."""


class PersistenceFailure(PickleballError):
    """Raised when a database read or write fails. The original error is chained."""
