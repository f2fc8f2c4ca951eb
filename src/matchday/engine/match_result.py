"""Match result dataclasses — structured output from every simulated match.

MatchEvent captures individual incidents (kickoff, goals, cards, injuries, full time).
MatchResult is the complete match output: score, xG, per-player stats, events and MOTM.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from matchday.models.standing import POINTS_FOR_DRAW, POINTS_FOR_WIN


class EventType(str, Enum):
    """Types of match events."""
    KICKOFF = "kickoff"
    GOAL = "goal"
    YELLOW_CARD = "yellow_card"
    RED_CARD = "red_card"
    INJURY = "injury"
    FULL_TIME = "full_time"


@dataclass
class MatchEvent:
    """A single match incident."""
    minute: int
    event_type: EventType
    detail: str = ""
    player_id: int | None = None
    club_id: int | None = None

    def __str__(self) -> str:
        return f"{self.minute}' {self.event_type.value.upper()}: {self.detail}"


@dataclass
class PlayerMatchStats:
    """Per-player output from a single match."""
    player_id: int
    club_id: int
    name: str
    position: str  # position played
    rating: float = 6.0
    goals: int = 0
    assists: int = 0
    shots: int = 0
    shots_on_target: int = 0
    passes: int = 0
    tackles_won: int = 0
    interceptions: int = 0
    defenses: int = 0
    fouls_committed: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    injured: bool = False
    injury_type: str = ""
    injury_days: int = 0
    is_motm: bool = False


@dataclass
class MatchResult:
    """Complete result of a simulated match."""
    match_id: int
    home_club_id: int
    away_club_id: int
    home_goals: int
    away_goals: int
    home_xg: float = 0.0
    away_xg: float = 0.0
    home_team: str = "Home"
    away_team: str = "Away"

    home_player_stats: list[PlayerMatchStats] = field(default_factory=list)
    away_player_stats: list[PlayerMatchStats] = field(default_factory=list)

    # Events timeline (chronological)
    events: list[MatchEvent] = field(default_factory=list)
    motm_player_ids: list[int] = field(default_factory=list)

    # Set when either side could not field 11 players; the score is then 0-0
    insufficient_lineup: bool = False
    log_text: str = ""

    @property
    def winner(self) -> str:
        """'home', 'away', or 'draw'."""
        if self.home_goals > self.away_goals:
            return "home"
        elif self.away_goals > self.home_goals:
            return "away"
        return "draw"

    @property
    def home_points(self) -> int:
        return POINTS_FOR_WIN if self.winner == "home" else (POINTS_FOR_DRAW if self.winner == "draw" else 0)

    @property
    def away_points(self) -> int:
        return POINTS_FOR_WIN if self.winner == "away" else (POINTS_FOR_DRAW if self.winner == "draw" else 0)

    @property
    def all_player_stats(self) -> list[PlayerMatchStats]:
        return self.home_player_stats + self.away_player_stats

    def scoreline(self) -> str:
        return f"{self.home_team} {self.home_goals} - {self.away_goals} {self.away_team}"

    def goal_events(self) -> list[MatchEvent]:
        return [e for e in self.events if e.event_type == EventType.GOAL]

    def injury_events(self) -> list[MatchEvent]:
        return [e for e in self.events if e.event_type == EventType.INJURY]

    def to_dict(self) -> dict:
        """Serializable summary for callers outside the engine."""
        return {
            "match_id": self.match_id,
            "home_score": self.home_goals,
            "away_score": self.away_goals,
            "home_xg": round(self.home_xg, 2),
            "away_xg": round(self.away_xg, 2),
            "winner": self.winner,
            "motm_player_ids": list(self.motm_player_ids),
            "insufficient_lineup": self.insufficient_lineup,
            "match_log": self.log_text,
            "events": [str(e) for e in self.events],
        }
