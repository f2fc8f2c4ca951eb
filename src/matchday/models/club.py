"""Club model."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Club(BaseModel):
    """A club in the game world."""
    id: int
    name: str
    abbreviation: str = Field(default="", max_length=5)
    nation: str = Field(default="Unknown", description="Nation code; leagues group clubs by nation")
    reputation: int = Field(default=50, ge=0, le=100, description="Club prestige rating")
    stadium_capacity: int = Field(default=20_000, ge=0)
