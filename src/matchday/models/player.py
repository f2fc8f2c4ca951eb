"""Player model — identity, overall rating and the attribute map.

Attributes use a 1-20 scale (e.g. Finishing, Passing, Vision, Tackling,
Goalkeeping, Discipline). The single 1-99 ``overall`` summarises them and
drives lineup selection, goal/assist propensity and the base match rating.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Position(str, Enum):
    """On-pitch positions understood by the match engine."""
    GK = "GK"
    RB = "RB"
    CB = "CB"
    LB = "LB"
    RWB = "RWB"
    LWB = "LWB"
    CDM = "CDM"
    RM = "RM"
    CM = "CM"
    LM = "LM"
    CAM = "CAM"
    RW = "RW"
    LW = "LW"
    CF = "CF"
    ST = "ST"


# Canonical attribute names (1-20 scale)
ATTRIBUTE_NAMES = (
    "Finishing", "Dribbling", "Passing", "Vision", "Pace",
    "Tackling", "Marking", "Strength", "Composure",
    "Goalkeeping", "Discipline",
)
ATTRIBUTE_MIN = 1
ATTRIBUTE_MAX = 20


class Player(BaseModel):
    """A registered player in the game world."""

    id: int
    first_name: str
    last_name: str
    position: Position = Field(default=Position.CM, description="Natural position")
    overall: int = Field(default=60, ge=1, le=99)
    birth_date: date = Field(default=date(2000, 1, 1))
    nation: str = Field(default="Unknown")
    attributes: dict[str, int] = Field(default_factory=dict)
    is_retired: bool = False

    @field_validator("attributes")
    @classmethod
    def attributes_in_range(cls, v: dict[str, int]) -> dict[str, int]:
        for name, value in v.items():
            if not ATTRIBUTE_MIN <= value <= ATTRIBUTE_MAX:
                raise ValueError(
                    f"Attribute {name}={value} outside {ATTRIBUTE_MIN}-{ATTRIBUTE_MAX}"
                )
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def attribute(self, name: str, default: int = 0) -> int:
        return self.attributes.get(name, default)

    def age_on(self, on_date: date) -> int:
        """Age in whole years on a given calendar date."""
        years = on_date.year - self.birth_date.year
        if (on_date.month, on_date.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years


class LineupPlayer(BaseModel):
    """A player as fielded in one match: the engine's input unit.

    ``position`` is the position played in this match, which may differ from
    the player's natural position.
    """

    player_id: int
    club_id: int
    name: str
    position: Position
    overall: int = Field(ge=1, le=99)
    attributes: dict[str, int] = Field(default_factory=dict)
    is_captain: bool = False

    def attribute(self, name: str, default: int = 0) -> int:
        return self.attributes.get(name, default)

    @classmethod
    def from_player(
        cls,
        player: Player,
        club_id: int,
        position: Position | None = None,
        is_captain: bool = False,
    ) -> "LineupPlayer":
        return cls(
            player_id=player.id,
            club_id=club_id,
            name=player.full_name,
            position=position or player.position,
            overall=player.overall,
            attributes=dict(player.attributes),
            is_captain=is_captain,
        )
