"""Season, game clock and transfer window models."""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class SeasonStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class Season(BaseModel):
    """One campaign of a save, from start_date to end_date inclusive."""
    id: int
    save_id: str = "default"
    start_date: date
    end_date: date
    status: SeasonStatus = SeasonStatus.IN_PROGRESS

    @model_validator(mode="after")
    def end_after_start(self) -> "Season":
        if self.end_date < self.start_date:
            raise ValueError(f"Season {self.id}: end_date precedes start_date")
        return self

    @property
    def is_finished(self) -> bool:
        return self.status == SeasonStatus.FINISHED

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


def season_end_for(start_date: date) -> date:
    """End date of a season starting on ``start_date``: one year minus a day."""
    try:
        anniversary = start_date.replace(year=start_date.year + 1)
    except ValueError:
        # 29 February start
        anniversary = start_date.replace(year=start_date.year + 1, day=28) + timedelta(days=1)
    return anniversary - timedelta(days=1)


class GameClock(BaseModel):
    """The authoritative simulation tick for one save."""
    save_id: str = "default"
    current_date: date
    season_id: int


class TransferWindowType(str, Enum):
    SUMMER = "summer"
    WINTER = "winter"


class TransferWindow(BaseModel):
    """A date range during which transfer offers may be made."""
    id: int
    season_id: int
    window_type: TransferWindowType
    start_date: date
    end_date: date = Field(description="Inclusive")

    def is_open(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date
