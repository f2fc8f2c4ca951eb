"""Competition, stage and match models."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class CompetitionType(str, Enum):
    LEAGUE = "league"
    CUP = "cup"
    COMBINATION = "combination"


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    PLAYED = "played"
    SKIPPED = "skipped"


FINAL_STAGE_NAME = "final"
LEAGUE_STAGE_NAME = "League Stage"


class Competition(BaseModel):
    """A league, cup or mixed-format competition."""
    id: int
    name: str
    type: CompetitionType = CompetitionType.LEAGUE
    nation: Optional[str] = Field(default=None, description="Owning nation; None for international")

    @property
    def keeps_table(self) -> bool:
        """Cups are pure knockouts; leagues and combinations keep standings."""
        return self.type != CompetitionType.CUP


class CompetitionStage(BaseModel):
    """A named phase of a competition within one season."""
    id: int
    competition_id: int
    season_id: int
    name: str
    stage_order: int = 1
    stage_type: str = "league"
    number_of_legs: int = Field(default=2, ge=1, le=2)
    is_current: bool = True


class Match(BaseModel):
    """A scheduled or played fixture."""
    id: int
    competition_id: int
    season_id: int
    stage_id: Optional[int] = None
    home_club_id: int
    away_club_id: int
    match_date: date
    leg_number: int = Field(default=1, ge=1, description="Round number; doubles as the match-day")
    status: MatchStatus = MatchStatus.SCHEDULED
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @model_validator(mode="after")
    def clubs_must_differ(self) -> "Match":
        if self.home_club_id == self.away_club_id:
            raise ValueError(f"Match {self.id}: a club cannot play itself")
        return self

    @property
    def is_played(self) -> bool:
        return self.status == MatchStatus.PLAYED
