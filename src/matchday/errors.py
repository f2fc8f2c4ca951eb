"""Typed errors raised by the simulation core."""

from __future__ import annotations


class MatchdayError(Exception):
    """Base class for all core errors."""


class GameStateError(MatchdayError):
    """The game clock row for a save is missing or inconsistent."""


class SeasonNotFoundError(MatchdayError):
    """A season id does not exist for the current save."""


class MatchNotFoundError(MatchdayError):
    """A match id does not exist."""


class MatchAlreadyPlayedError(MatchdayError):
    """A match was asked to be simulated a second time."""


class StandingsUpdateError(MatchdayError):
    """Standings could not be folded for a played match."""


class SeasonTransitionError(MatchdayError):
    """The end-of-season transition failed and was rolled back."""
