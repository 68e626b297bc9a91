"""
Exceptions raised by the tournament engine.
"""


class TournamentError(Exception):
    """Base class for engine errors."""


class InvalidRequestError(TournamentError, ValueError):
    """A request failed validation at the boundary."""


class SeedingError(TournamentError):
    """Not enough eligible players to build groups or a bracket."""


class MatchResultError(TournamentError):
    """A reported result cannot drive bracket resolution."""


class NotFoundError(TournamentError, KeyError):
    """An id does not exist in the store."""
