"""SQLAlchemy ORM models for the matchday database.

One SQLite file holds one save. The game clock and seasons are keyed by
``save_id`` so nothing relies on "the first row" of a table.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# ── World ───────────────────────────────────────────────────────────────


class ClubDB(Base):
    __tablename__ = "clubs"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, index=True)
    abbreviation = Column(String(5), default="")
    nation = Column(String(50), default="Unknown", index=True)
    reputation = Column(Integer, default=50)
    stadium_capacity = Column(Integer, default=20_000)

    def __repr__(self) -> str:
        return f"<ClubDB {self.name} ({self.id})>"


class PlayerDB(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    position = Column(String(5), nullable=False, default="CM")
    overall = Column(Integer, nullable=False, default=60)
    birth_date = Column(Date, nullable=False)
    nation = Column(String(50), default="Unknown")
    # {"Finishing": 14, "Passing": 12, ...} on a 1-20 scale
    attributes = Column(JSON, nullable=False, default=dict)
    is_retired = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<PlayerDB {self.first_name} {self.last_name} ({self.position}, {self.overall})>"


class PlayerContractDB(Base):
    __tablename__ = "player_contracts"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, nullable=False, index=True)
    club_id = Column(Integer, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    monthly_wage = Column(Integer, default=0)


class StaffDB(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(String(50), default="Coach")
    birth_date = Column(Date, nullable=True)


class StaffContractDB(Base):
    __tablename__ = "staff_contracts"

    id = Column(Integer, primary_key=True)
    staff_id = Column(Integer, nullable=False, index=True)
    club_id = Column(Integer, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    monthly_wage = Column(Integer, default=0)


# ── Calendar ────────────────────────────────────────────────────────────


class SeasonDB(Base):
    __tablename__ = "seasons"

    id = Column(Integer, primary_key=True)
    save_id = Column(String(64), nullable=False, default="default", index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="in_progress")

    def __repr__(self) -> str:
        return f"<SeasonDB {self.id} {self.start_date}..{self.end_date} [{self.status}]>"


class GameClockDB(Base):
    __tablename__ = "game_clock"

    save_id = Column(String(64), primary_key=True)
    # "current_date" is an SQL keyword, so the column is stored as game_date
    current_date = Column("game_date", Date, nullable=False)
    season_id = Column(Integer, nullable=False)


class TransferWindowDB(Base):
    __tablename__ = "transfer_windows"

    id = Column(Integer, primary_key=True)
    season_id = Column(Integer, nullable=False, index=True)
    window_type = Column(String(10), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    __table_args__ = (UniqueConstraint("season_id", "window_type", name="uq_window_season_type"),)


# ── Competitions & matches ──────────────────────────────────────────────


class CompetitionDB(Base):
    __tablename__ = "competitions"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, default="league")
    nation = Column(String(50), nullable=True)


class CompetitionSeasonDB(Base):
    __tablename__ = "competition_seasons"

    competition_id = Column(Integer, primary_key=True)
    season_id = Column(Integer, primary_key=True)


class CompetitionStageDB(Base):
    __tablename__ = "competition_stages"

    id = Column(Integer, primary_key=True)
    competition_id = Column(Integer, nullable=False)
    season_id = Column(Integer, nullable=False)
    name = Column(String(50), nullable=False)
    stage_order = Column(Integer, default=1)
    stage_type = Column(String(20), default="league")
    number_of_legs = Column(Integer, default=2)
    is_current = Column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint("competition_id", "season_id", "name", name="uq_stage_comp_season_name"),
    )


class MatchDB(Base):
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True)
    competition_id = Column(Integer, nullable=False)
    season_id = Column(Integer, nullable=False)
    stage_id = Column(Integer, nullable=True)
    home_club_id = Column(Integer, nullable=False)
    away_club_id = Column(Integer, nullable=False)
    match_date = Column(Date, nullable=False)
    leg_number = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="scheduled")
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)

    __table_args__ = (
        Index("ix_matches_due", "season_id", "match_date", "status"),
        Index("ix_matches_comp_season", "competition_id", "season_id"),
    )

    def __repr__(self) -> str:
        return f"<MatchDB {self.id} {self.home_club_id}-{self.away_club_id} @ {self.match_date}>"


class MatchLineupDB(Base):
    __tablename__ = "match_lineups"

    match_id = Column(Integer, primary_key=True)
    club_id = Column(Integer, primary_key=True)
    player_id = Column(Integer, primary_key=True)
    position_played = Column(String(5), nullable=False)
    is_starter = Column(Boolean, nullable=False, default=True)
    is_captain = Column(Boolean, nullable=False, default=False)


class PlayerMatchStatsDB(Base):
    __tablename__ = "player_match_stats"

    match_id = Column(Integer, primary_key=True)
    player_id = Column(Integer, primary_key=True)
    club_id = Column(Integer, nullable=False)
    position_played = Column(String(5), nullable=False)
    rating = Column(Float, nullable=False, default=6.0)
    goals = Column(Integer, default=0)
    assists = Column(Integer, default=0)
    shots = Column(Integer, default=0)
    shots_on_target = Column(Integer, default=0)
    passes = Column(Integer, default=0)
    tackles_won = Column(Integer, default=0)
    interceptions = Column(Integer, default=0)
    defenses = Column(Integer, default=0)
    fouls_committed = Column(Integer, default=0)
    yellow_cards = Column(Integer, default=0)
    red_cards = Column(Integer, default=0)
    injured = Column(Boolean, default=False)
    is_motm = Column(Boolean, default=False)


class MatchEventDB(Base):
    __tablename__ = "match_events"

    id = Column(Integer, primary_key=True)
    match_id = Column(Integer, nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    minute = Column(Integer, nullable=False)
    event_type = Column(String(20), nullable=False)
    player_id = Column(Integer, nullable=True)
    club_id = Column(Integer, nullable=True)
    detail = Column(Text, default="")


class MatchLogDB(Base):
    __tablename__ = "match_logs"

    id = Column(Integer, primary_key=True)
    match_id = Column(Integer, nullable=False, index=True)
    log_text = Column(Text, nullable=False)


class LeagueStandingDB(Base):
    __tablename__ = "league_standings"

    id = Column(Integer, primary_key=True)
    competition_id = Column(Integer, nullable=False)
    season_id = Column(Integer, nullable=False)
    club_id = Column(Integer, nullable=False)
    match_day = Column(Integer, nullable=False)
    played = Column(Integer, default=0)
    wins = Column(Integer, default=0)
    draws = Column(Integer, default=0)
    losses = Column(Integer, default=0)
    goals_for = Column(Integer, default=0)
    goals_against = Column(Integer, default=0)
    goal_difference = Column(Integer, default=0)
    points = Column(Integer, default=0)
    position = Column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint(
            "competition_id", "season_id", "club_id", "match_day",
            name="uq_standing_comp_season_club_day",
        ),
        Index("ix_standings_day", "competition_id", "season_id", "match_day"),
    )


# ── Honours & movement ──────────────────────────────────────────────────


class ClubTrophyDB(Base):
    __tablename__ = "club_trophies"

    id = Column(Integer, primary_key=True)
    club_id = Column(Integer, nullable=False)
    competition_id = Column(Integer, nullable=False)
    season_id = Column(Integer, nullable=False)
    date_won = Column(Date, nullable=False)

    __table_args__ = (UniqueConstraint("competition_id", "season_id", name="uq_trophy_comp_season"),)


class PlayerAwardDB(Base):
    __tablename__ = "player_awards"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, nullable=False)
    award_type = Column(String(50), nullable=False)
    season_id = Column(Integer, nullable=False)
    # 0 = season-wide award, otherwise the competition it belongs to
    competition_id = Column(Integer, nullable=False, default=0)
    award_date = Column(Date, nullable=False)
    value = Column(Float, default=0.0)

    __table_args__ = (
        UniqueConstraint("award_type", "season_id", "competition_id", name="uq_award_type_season_comp"),
    )


class TeamOfTheYearDB(Base):
    __tablename__ = "team_of_the_year"

    id = Column(Integer, primary_key=True)
    season_id = Column(Integer, nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    award_date = Column(Date, nullable=False)


class TeamOfTheYearSelectionDB(Base):
    __tablename__ = "team_of_the_year_selections"

    team_of_the_year_id = Column(Integer, primary_key=True)
    player_id = Column(Integer, primary_key=True)
    position = Column(String(5), nullable=False)
    average_rating = Column(Float, default=0.0)


class TransferDB(Base):
    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, nullable=True)
    staff_id = Column(Integer, nullable=True)
    club_from_id = Column(Integer, nullable=True)
    club_to_id = Column(Integer, nullable=True)
    transfer_type = Column(String(20), nullable=False)
    transfer_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="completed")
    description = Column(Text, default="")


# ── Finance ─────────────────────────────────────────────────────────────


class ClubFinanceDB(Base):
    __tablename__ = "club_finances"

    club_id = Column(Integer, primary_key=True)
    balance = Column(Float, nullable=False, default=0.0)
    last_updated_date = Column(Date, nullable=True)


class FinancialTransactionDB(Base):
    __tablename__ = "financial_transactions"

    id = Column(Integer, primary_key=True)
    club_id = Column(Integer, nullable=False, index=True)
    category = Column(String(50), nullable=False)
    amount = Column(Float, nullable=False)
    transaction_date = Column(Date, nullable=False)
    description = Column(Text, default="")
    related_match_id = Column(Integer, nullable=True)
