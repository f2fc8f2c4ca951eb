"""League table row model."""

from __future__ import annotations

from pydantic import BaseModel, Field

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1


class StandingRow(BaseModel):
    """Cumulative table snapshot for one club at one match-day."""
    competition_id: int
    season_id: int
    club_id: int
    match_day: int = Field(ge=1)
    played: int = Field(default=0, ge=0)
    wins: int = Field(default=0, ge=0)
    draws: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    goals_for: int = Field(default=0, ge=0)
    goals_against: int = Field(default=0, ge=0)
    points: int = Field(default=0, ge=0)
    position: int = Field(default=0, ge=0, description="1-based rank; 0 until ranked")

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against

    def sort_key(self) -> tuple[int, int, int, int]:
        """Ascending sort key for table order: points, GD, GF desc then club id asc."""
        return (-self.points, -self.goal_difference, -self.goals_for, self.club_id)
