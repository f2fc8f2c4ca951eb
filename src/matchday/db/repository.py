"""Repository layer — reads and writes for the matchday database.

Handles conversion between Pydantic models and SQLAlchemy ORM objects.
Repositories only flush: the caller's ``session_scope`` owns the
transaction, so a multi-step operation commits or rolls back as one unit.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from matchday.db.models import (
    ClubDB,
    CompetitionDB,
    CompetitionSeasonDB,
    CompetitionStageDB,
    GameClockDB,
    LeagueStandingDB,
    MatchDB,
    MatchLineupDB,
    PlayerContractDB,
    PlayerDB,
    SeasonDB,
    TransferWindowDB,
)
from matchday.errors import GameStateError, MatchNotFoundError, SeasonNotFoundError
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

logger = logging.getLogger(__name__)


class ClubRepository:
    """Clubs of the game world."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, club_id: int) -> Club | None:
        db_obj = self.session.get(ClubDB, club_id)
        if db_obj is None:
            return None
        return _db_to_club(db_obj)

    def get_all(self) -> list[Club]:
        db_objs = self.session.scalars(select(ClubDB).order_by(ClubDB.id)).all()
        return [_db_to_club(obj) for obj in db_objs]

    def get_by_nation(self, nation: str) -> list[Club]:
        """Clubs of one nation, ordered by id (the scheduler's input order)."""
        db_objs = self.session.scalars(
            select(ClubDB).where(ClubDB.nation == nation).order_by(ClubDB.id)
        ).all()
        return [_db_to_club(obj) for obj in db_objs]

    def add(self, club: Club) -> Club:
        self.session.add(_club_to_db(club))
        self.session.flush()
        return club


class PlayerRepository:
    """Players and their contracts."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, player_id: int) -> Player | None:
        db_obj = self.session.get(PlayerDB, player_id)
        if db_obj is None:
            return None
        return _db_to_player(db_obj)

    def add(self, player: Player) -> Player:
        self.session.add(_player_to_db(player))
        self.session.flush()
        return player

    def add_contract(
        self,
        player_id: int,
        club_id: int,
        start_date: date,
        end_date: date,
        monthly_wage: int = 0,
    ) -> int:
        contract = PlayerContractDB(
            player_id=player_id,
            club_id=club_id,
            start_date=start_date,
            end_date=end_date,
            monthly_wage=monthly_wage,
        )
        self.session.add(contract)
        self.session.flush()
        return contract.id

    def get_contracted(self, club_id: int, on_date: date) -> list[Player]:
        """Active (non-retired) players under contract with a club on a date,
        best overall first."""
        db_objs = self.session.scalars(
            select(PlayerDB)
            .join(PlayerContractDB, PlayerContractDB.player_id == PlayerDB.id)
            .where(
                PlayerContractDB.club_id == club_id,
                PlayerContractDB.start_date <= on_date,
                PlayerContractDB.end_date >= on_date,
                PlayerDB.is_retired.is_(False),
            )
            .order_by(PlayerDB.overall.desc(), PlayerDB.id)
        ).all()
        return [_db_to_player(obj) for obj in db_objs]

    def mark_retired(self, player_id: int) -> None:
        db_obj = self.session.get(PlayerDB, player_id)
        if db_obj is not None:
            db_obj.is_retired = True
            self.session.flush()


class SeasonRepository:
    """Seasons and the game clock of one save."""

    def __init__(self, session: Session, save_id: str):
        self.session = session
        self.save_id = save_id

    def get(self, season_id: int) -> Season:
        db_obj = self.session.get(SeasonDB, season_id)
        if db_obj is None or db_obj.save_id != self.save_id:
            raise SeasonNotFoundError(f"Season {season_id} not found for save '{self.save_id}'")
        return _db_to_season(db_obj)

    def get_active(self) -> Season | None:
        """The single in-progress season of this save, if any."""
        db_obj = self.session.scalars(
            select(SeasonDB)
            .where(SeasonDB.save_id == self.save_id, SeasonDB.status == SeasonStatus.IN_PROGRESS.value)
            .order_by(SeasonDB.start_date.desc())
        ).first()
        return _db_to_season(db_obj) if db_obj is not None else None

    def create(self, start_date: date, end_date: date) -> Season:
        db_obj = SeasonDB(
            save_id=self.save_id,
            start_date=start_date,
            end_date=end_date,
            status=SeasonStatus.IN_PROGRESS.value,
        )
        self.session.add(db_obj)
        self.session.flush()
        logger.info(f"Created season {db_obj.id}: {start_date} → {end_date}")
        return _db_to_season(db_obj)

    def mark_finished(self, season_id: int) -> None:
        db_obj = self.session.get(SeasonDB, season_id)
        if db_obj is None:
            raise SeasonNotFoundError(f"Season {season_id} not found")
        db_obj.status = SeasonStatus.FINISHED.value
        self.session.flush()

    # ── Game clock ─────────────────────────────────────────────────────

    def get_clock(self) -> GameClock:
        db_obj = self.session.get(GameClockDB, self.save_id)
        if db_obj is None:
            raise GameStateError(
                f"Game clock not initialized for save '{self.save_id}'"
            )
        return GameClock(
            save_id=db_obj.save_id,
            current_date=db_obj.current_date,
            season_id=db_obj.season_id,
        )

    def set_clock(self, current_date: date, season_id: int) -> GameClock:
        db_obj = self.session.get(GameClockDB, self.save_id)
        if db_obj is None:
            db_obj = GameClockDB(save_id=self.save_id, current_date=current_date, season_id=season_id)
            self.session.add(db_obj)
        else:
            db_obj.current_date = current_date
            db_obj.season_id = season_id
        self.session.flush()
        return GameClock(save_id=self.save_id, current_date=current_date, season_id=season_id)

    # ── Transfer windows ───────────────────────────────────────────────

    def add_transfer_window(
        self,
        season_id: int,
        window_type: TransferWindowType,
        start_date: date,
        end_date: date,
    ) -> None:
        stmt = sqlite_insert(TransferWindowDB).values(
            season_id=season_id,
            window_type=window_type.value,
            start_date=start_date,
            end_date=end_date,
        ).on_conflict_do_nothing(index_elements=["season_id", "window_type"])
        self.session.execute(stmt)

    def get_transfer_windows(self, season_id: int) -> list[TransferWindow]:
        db_objs = self.session.scalars(
            select(TransferWindowDB)
            .where(TransferWindowDB.season_id == season_id)
            .order_by(TransferWindowDB.start_date)
        ).all()
        return [
            TransferWindow(
                id=w.id,
                season_id=w.season_id,
                window_type=TransferWindowType(w.window_type),
                start_date=w.start_date,
                end_date=w.end_date,
            )
            for w in db_objs
        ]

    def is_transfer_window_open(self, day: date) -> bool:
        count = self.session.scalar(
            select(func.count(TransferWindowDB.id))
            .join(SeasonDB, SeasonDB.id == TransferWindowDB.season_id)
            .where(
                SeasonDB.save_id == self.save_id,
                TransferWindowDB.start_date <= day,
                TransferWindowDB.end_date >= day,
            )
        )
        return bool(count)


class CompetitionRepository:
    """Competitions, their per-season links and stages."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, competition_id: int) -> Competition | None:
        db_obj = self.session.get(CompetitionDB, competition_id)
        return _db_to_competition(db_obj) if db_obj is not None else None

    def add(self, competition: Competition) -> Competition:
        self.session.add(CompetitionDB(
            id=competition.id,
            name=competition.name,
            type=competition.type.value,
            nation=competition.nation,
        ))
        self.session.flush()
        return competition

    def get_national_leagues(self) -> list[Competition]:
        db_objs = self.session.scalars(
            select(CompetitionDB)
            .where(CompetitionDB.type == CompetitionType.LEAGUE.value, CompetitionDB.nation.is_not(None))
            .order_by(CompetitionDB.id)
        ).all()
        return [_db_to_competition(obj) for obj in db_objs]

    def link_season(self, competition_id: int, season_id: int) -> bool:
        """Attach a competition to a season. Returns False if already linked."""
        stmt = sqlite_insert(CompetitionSeasonDB).values(
            competition_id=competition_id, season_id=season_id,
        ).on_conflict_do_nothing(index_elements=["competition_id", "season_id"])
        return self.session.execute(stmt).rowcount > 0

    def get_for_season(self, season_id: int) -> list[Competition]:
        db_objs = self.session.scalars(
            select(CompetitionDB)
            .join(CompetitionSeasonDB, CompetitionSeasonDB.competition_id == CompetitionDB.id)
            .where(CompetitionSeasonDB.season_id == season_id)
            .order_by(CompetitionDB.id)
        ).all()
        return [_db_to_competition(obj) for obj in db_objs]

    def get_or_create_stage(
        self,
        competition_id: int,
        season_id: int,
        name: str,
        stage_order: int = 1,
        stage_type: str = "league",
        number_of_legs: int = 2,
    ) -> CompetitionStage:
        db_obj = self.session.scalars(
            select(CompetitionStageDB).where(
                CompetitionStageDB.competition_id == competition_id,
                CompetitionStageDB.season_id == season_id,
                CompetitionStageDB.name == name,
            )
        ).first()
        if db_obj is None:
            db_obj = CompetitionStageDB(
                competition_id=competition_id,
                season_id=season_id,
                name=name,
                stage_order=stage_order,
                stage_type=stage_type,
                number_of_legs=number_of_legs,
                is_current=True,
            )
            self.session.add(db_obj)
            self.session.flush()
        return CompetitionStage(
            id=db_obj.id,
            competition_id=db_obj.competition_id,
            season_id=db_obj.season_id,
            name=db_obj.name,
            stage_order=db_obj.stage_order or 1,
            stage_type=db_obj.stage_type or "league",
            number_of_legs=db_obj.number_of_legs or 2,
            is_current=bool(db_obj.is_current),
        )


class MatchRepository:
    """Fixtures and lineups."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, match_id: int) -> Match:
        db_obj = self.session.get(MatchDB, match_id)
        if db_obj is None:
            raise MatchNotFoundError(f"Match with ID {match_id} not found")
        return _db_to_match(db_obj)

    def add(self, match: Match) -> int:
        db_obj = MatchDB(
            competition_id=match.competition_id,
            season_id=match.season_id,
            stage_id=match.stage_id,
            home_club_id=match.home_club_id,
            away_club_id=match.away_club_id,
            match_date=match.match_date,
            leg_number=match.leg_number,
            status=match.status.value,
            home_score=match.home_score,
            away_score=match.away_score,
        )
        self.session.add(db_obj)
        self.session.flush()
        return db_obj.id

    def count_for(self, competition_id: int, season_id: int) -> int:
        return self.session.scalar(
            select(func.count(MatchDB.id)).where(
                MatchDB.competition_id == competition_id,
                MatchDB.season_id == season_id,
            )
        ) or 0

    def get_for_season(self, season_id: int, competition_id: int | None = None) -> list[Match]:
        stmt = select(MatchDB).where(MatchDB.season_id == season_id)
        if competition_id is not None:
            stmt = stmt.where(MatchDB.competition_id == competition_id)
        db_objs = self.session.scalars(stmt.order_by(MatchDB.match_date, MatchDB.id)).all()
        return [_db_to_match(obj) for obj in db_objs]

    def get_due(self, day: date, season_id: int) -> list[Match]:
        """Scheduled matches of the active season falling on ``day``."""
        db_objs = self.session.scalars(
            select(MatchDB)
            .where(
                MatchDB.match_date == day,
                MatchDB.season_id == season_id,
                MatchDB.status == MatchStatus.SCHEDULED.value,
            )
            .order_by(MatchDB.id)
        ).all()
        return [_db_to_match(obj) for obj in db_objs]

    def mark_played(self, match_id: int, home_score: int, away_score: int) -> None:
        db_obj = self.session.get(MatchDB, match_id)
        if db_obj is None:
            raise MatchNotFoundError(f"Match with ID {match_id} not found")
        db_obj.home_score = home_score
        db_obj.away_score = away_score
        db_obj.status = MatchStatus.PLAYED.value
        self.session.flush()

    def mark_skipped(self, match_id: int) -> None:
        """Take a scheduled match off the calendar. ``simulate_match`` can still resolve it."""
        db_obj = self.session.get(MatchDB, match_id)
        if db_obj is not None and db_obj.status == MatchStatus.SCHEDULED.value:
            db_obj.status = MatchStatus.SKIPPED.value
            self.session.flush()

    # ── Lineups ────────────────────────────────────────────────────────

    def count_starters(self, match_id: int, club_id: int) -> int:
        return self.session.scalar(
            select(func.count()).select_from(MatchLineupDB).where(
                MatchLineupDB.match_id == match_id,
                MatchLineupDB.club_id == club_id,
                MatchLineupDB.is_starter.is_(True),
            )
        ) or 0

    def replace_lineup(
        self,
        match_id: int,
        club_id: int,
        entries: list[tuple[int, Position, bool]],
    ) -> None:
        """Store a lineup as (player_id, position_played, is_captain) starters."""
        self.session.query(MatchLineupDB).filter(
            MatchLineupDB.match_id == match_id,
            MatchLineupDB.club_id == club_id,
        ).delete(synchronize_session=False)
        for player_id, position, is_captain in entries:
            self.session.add(MatchLineupDB(
                match_id=match_id,
                club_id=club_id,
                player_id=player_id,
                position_played=position.value,
                is_starter=True,
                is_captain=is_captain,
            ))
        self.session.flush()

    def get_starters(self, match_id: int, club_id: int) -> list[LineupPlayer]:
        rows = self.session.execute(
            select(PlayerDB, MatchLineupDB)
            .join(MatchLineupDB, MatchLineupDB.player_id == PlayerDB.id)
            .where(
                MatchLineupDB.match_id == match_id,
                MatchLineupDB.club_id == club_id,
                MatchLineupDB.is_starter.is_(True),
            )
            .order_by(MatchLineupDB.is_captain.desc(), PlayerDB.overall.desc(), PlayerDB.id)
        ).all()
        return [
            LineupPlayer(
                player_id=player.id,
                club_id=club_id,
                name=f"{player.first_name} {player.last_name}",
                position=_parse_position(lineup.position_played),
                overall=player.overall,
                attributes=dict(player.attributes or {}),
                is_captain=bool(lineup.is_captain),
            )
            for player, lineup in rows
        ]


class StandingRepository:
    """Append-only league table snapshots."""

    def __init__(self, session: Session):
        self.session = session

    def get_latest_for_club(
        self,
        competition_id: int,
        season_id: int,
        club_id: int,
        before_match_day: int | None = None,
    ) -> StandingRow | None:
        stmt = select(LeagueStandingDB).where(
            LeagueStandingDB.competition_id == competition_id,
            LeagueStandingDB.season_id == season_id,
            LeagueStandingDB.club_id == club_id,
        )
        if before_match_day is not None:
            stmt = stmt.where(LeagueStandingDB.match_day < before_match_day)
        db_obj = self.session.scalars(
            stmt.order_by(LeagueStandingDB.match_day.desc())
        ).first()
        return _db_to_standing(db_obj) if db_obj is not None else None

    def upsert(self, row: StandingRow) -> None:
        """Write the snapshot for (competition, season, club, match_day).

        A re-run of the same match-day replaces the earlier snapshot.
        """
        db_obj = self.session.scalars(
            select(LeagueStandingDB).where(
                LeagueStandingDB.competition_id == row.competition_id,
                LeagueStandingDB.season_id == row.season_id,
                LeagueStandingDB.club_id == row.club_id,
                LeagueStandingDB.match_day == row.match_day,
            )
        ).first()
        if db_obj is None:
            db_obj = LeagueStandingDB(
                competition_id=row.competition_id,
                season_id=row.season_id,
                club_id=row.club_id,
                match_day=row.match_day,
            )
            self.session.add(db_obj)
        db_obj.played = row.played
        db_obj.wins = row.wins
        db_obj.draws = row.draws
        db_obj.losses = row.losses
        db_obj.goals_for = row.goals_for
        db_obj.goals_against = row.goals_against
        db_obj.goal_difference = row.goal_difference
        db_obj.points = row.points
        db_obj.position = row.position
        self.session.flush()

    def get_at_match_day(
        self, competition_id: int, season_id: int, match_day: int
    ) -> list[LeagueStandingDB]:
        return list(self.session.scalars(
            select(LeagueStandingDB)
            .where(
                LeagueStandingDB.competition_id == competition_id,
                LeagueStandingDB.season_id == season_id,
                LeagueStandingDB.match_day == match_day,
            )
            .order_by(
                LeagueStandingDB.points.desc(),
                LeagueStandingDB.goal_difference.desc(),
                LeagueStandingDB.goals_for.desc(),
                LeagueStandingDB.club_id.asc(),
            )
        ).all())

    def get_history(
        self, competition_id: int, season_id: int, club_id: int
    ) -> list[StandingRow]:
        db_objs = self.session.scalars(
            select(LeagueStandingDB)
            .where(
                LeagueStandingDB.competition_id == competition_id,
                LeagueStandingDB.season_id == season_id,
                LeagueStandingDB.club_id == club_id,
            )
            .order_by(LeagueStandingDB.match_day)
        ).all()
        return [_db_to_standing(obj) for obj in db_objs]

    def get_latest_rows(self, competition_id: int, season_id: int) -> list[StandingRow]:
        """Each club's most recent snapshot for a competition/season."""
        latest = (
            select(
                LeagueStandingDB.club_id.label("club_id"),
                func.max(LeagueStandingDB.match_day).label("match_day"),
            )
            .where(
                LeagueStandingDB.competition_id == competition_id,
                LeagueStandingDB.season_id == season_id,
            )
            .group_by(LeagueStandingDB.club_id)
            .subquery()
        )
        db_objs = self.session.scalars(
            select(LeagueStandingDB).join(
                latest,
                (LeagueStandingDB.club_id == latest.c.club_id)
                & (LeagueStandingDB.match_day == latest.c.match_day),
            ).where(
                LeagueStandingDB.competition_id == competition_id,
                LeagueStandingDB.season_id == season_id,
            )
        ).all()
        return [_db_to_standing(obj) for obj in db_objs]


# ── Conversion Helpers ──────────────────────────────────────────────────


def _parse_position(value: str | None) -> Position:
    try:
        return Position(value)
    except ValueError:
        return Position.CM


def _club_to_db(club: Club) -> ClubDB:
    return ClubDB(
        id=club.id,
        name=club.name,
        abbreviation=club.abbreviation,
        nation=club.nation,
        reputation=club.reputation,
        stadium_capacity=club.stadium_capacity,
    )


def _db_to_club(db: ClubDB) -> Club:
    return Club(
        id=db.id,
        name=db.name,
        abbreviation=db.abbreviation or "",
        nation=db.nation or "Unknown",
        reputation=db.reputation if db.reputation is not None else 50,
        stadium_capacity=db.stadium_capacity or 0,
    )


def _player_to_db(player: Player) -> PlayerDB:
    return PlayerDB(
        id=player.id,
        first_name=player.first_name,
        last_name=player.last_name,
        position=player.position.value,
        overall=player.overall,
        birth_date=player.birth_date,
        nation=player.nation,
        attributes=dict(player.attributes),
        is_retired=player.is_retired,
    )


def _db_to_player(db: PlayerDB) -> Player:
    return Player(
        id=db.id,
        first_name=db.first_name,
        last_name=db.last_name,
        position=_parse_position(db.position),
        overall=db.overall or 1,
        birth_date=db.birth_date,
        nation=db.nation or "Unknown",
        attributes=dict(db.attributes or {}),
        is_retired=bool(db.is_retired),
    )


def _db_to_season(db: SeasonDB) -> Season:
    return Season(
        id=db.id,
        save_id=db.save_id,
        start_date=db.start_date,
        end_date=db.end_date,
        status=SeasonStatus(db.status),
    )


def _db_to_competition(db: CompetitionDB) -> Competition:
    return Competition(
        id=db.id,
        name=db.name,
        type=CompetitionType(db.type),
        nation=db.nation,
    )


def _db_to_match(db: MatchDB) -> Match:
    return Match(
        id=db.id,
        competition_id=db.competition_id,
        season_id=db.season_id,
        stage_id=db.stage_id,
        home_club_id=db.home_club_id,
        away_club_id=db.away_club_id,
        match_date=db.match_date,
        leg_number=db.leg_number or 1,
        status=MatchStatus(db.status),
        home_score=db.home_score,
        away_score=db.away_score,
    )


def _db_to_standing(db: LeagueStandingDB) -> StandingRow:
    return StandingRow(
        competition_id=db.competition_id,
        season_id=db.season_id,
        club_id=db.club_id,
        match_day=db.match_day,
        played=db.played or 0,
        wins=db.wins or 0,
        draws=db.draws or 0,
        losses=db.losses or 0,
        goals_for=db.goals_for or 0,
        goals_against=db.goals_against or 0,
        points=db.points or 0,
        position=db.position or 0,
    )
