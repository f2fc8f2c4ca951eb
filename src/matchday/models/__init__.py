"""Model exports for matchday."""

from matchday.models.club import Club
from matchday.models.competition import (
    Competition,
    CompetitionStage,
    CompetitionType,
    Match,
    MatchStatus,
)
from matchday.models.player import LineupPlayer, Player, Position
from matchday.models.season import (
    GameClock,
    Season,
    SeasonStatus,
    TransferWindow,
    TransferWindowType,
)
from matchday.models.standing import StandingRow

__all__ = [
    "Club",
    "Competition",
    "CompetitionStage",
    "CompetitionType",
    "GameClock",
    "LineupPlayer",
    "Match",
    "MatchStatus",
    "Player",
    "Position",
    "Season",
    "SeasonStatus",
    "StandingRow",
    "TransferWindow",
    "TransferWindowType",
]
