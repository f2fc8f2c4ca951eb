"""Season transition — closes a finished season and opens the next one.

Runs as a single transaction:
1. Mark the season finished
2. Trophies (league table winner, cup/combination final winner) + prize money
3. Individual awards and the Team of the Year
4. Expiring player/staff contracts: retirement or free-transfer release
5. Next season: dates, competition links, fixtures, transfer windows, clock

Any failure rolls the whole transition back and surfaces as
SeasonTransitionError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path

import numpy as np
from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from matchday.db.models import (
    ClubTrophyDB,
    CompetitionStageDB,
    MatchDB,
    PlayerAwardDB,
    PlayerContractDB,
    PlayerDB,
    PlayerMatchStatsDB,
    StaffContractDB,
    TeamOfTheYearDB,
    TeamOfTheYearSelectionDB,
    TransferDB,
)
from matchday.db.repository import (
    CompetitionRepository,
    PlayerRepository,
    SeasonRepository,
)
from matchday.db.session import GameContext
from matchday.engine.fixture_generator import schedule_season
from matchday.engine.standings import current_standings
from matchday.errors import SeasonTransitionError
from matchday.models.competition import (
    FINAL_STAGE_NAME,
    Competition,
    CompetitionType,
    MatchStatus,
)
from matchday.models.season import Season, TransferWindowType, season_end_for
from matchday.services.finance import PRIZE_MONEY, FinanceLedger
from matchday.utils.rules import load_section

logger = logging.getLogger(__name__)

GOLDEN_BOOT = "Golden Boot"
BEST_PLAYER = "Best Player of the Season"
BEST_GOALKEEPER = "Best Goalkeeper"
COMPETITION_BEST_PLAYER = "Best Player of Competition"
COMPETITION_TOP_SCORER = "Top Scorer of Competition"

# competition_id used for season-wide awards
SEASON_WIDE = 0

# Team of the Year shape: (line, registered positions, slots)
TEAM_OF_THE_YEAR_SHAPE: tuple[tuple[str, tuple[str, ...], int], ...] = (
    ("GK", ("GK",), 1),
    ("DEF", ("CB", "LB", "RB", "LWB", "RWB"), 4),
    ("MID", ("CDM", "CM", "CAM", "LM", "RM"), 3),
    ("ATT", ("ST", "CF", "LW", "RW"), 3),
)

DEFAULT_PRIZE_MONEY: dict[str, int] = {
    CompetitionType.LEAGUE.value: 2_000_000,
    CompetitionType.CUP.value: 5_000_000,
    CompetitionType.COMBINATION.value: 10_000_000,
}

RETIREMENT = "retirement"
FREE_TRANSFER = "free_transfer"
CONTRACT_EXPIRED = "contract_expired"


@dataclass
class SeasonEndReport:
    """What a season transition did."""
    season_id: int
    next_season_id: int | None = None
    trophies: dict[int, int] = field(default_factory=dict)  # competition_id -> club_id
    awards: list[tuple[str, int, int]] = field(default_factory=list)  # (award, competition_id, player_id)
    team_of_the_year: list[int] = field(default_factory=list)
    retired: list[int] = field(default_factory=list)
    released: list[int] = field(default_factory=list)
    staff_released: list[int] = field(default_factory=list)
    fixtures_created: int = 0


class SeasonTransitionProcessor:
    """End-of-season state machine for one save."""

    def __init__(
        self,
        context: GameContext,
        rules_path: str | Path | None = None,
        seed: int | None = None,
    ):
        self.context = context
        self.rng = np.random.default_rng(seed)
        self.award_min_matches = 10
        self.next_season_gap_days = 7
        self.prize_money = dict(DEFAULT_PRIZE_MONEY)

        if rules_path is not None:
            season_rules = load_section(rules_path, "season")
            self.award_min_matches = int(season_rules.get("award_min_matches", self.award_min_matches))
            self.next_season_gap_days = int(
                season_rules.get("next_season_gap_days", self.next_season_gap_days)
            )
            self.prize_money.update(season_rules.get("prize_money", {}))

    def process_season_end(self, season_id: int | None = None) -> SeasonEndReport | None:
        """Run the full transition for a season (default: the clock's season).

        Returns:
            The report, or None when the season was already finished.

        Raises:
            SeasonTransitionError: Any step failed; nothing was persisted.
        """
        try:
            with self.context.session_scope() as session:
                seasons = SeasonRepository(session, self.context.save_id)
                if season_id is None:
                    season_id = seasons.get_clock().season_id
                season = seasons.get(season_id)
                if season.is_finished:
                    logger.info(f"Season {season.id} already finished, nothing to do")
                    return None
                return self._transition(session, season)
        except Exception as exc:
            raise SeasonTransitionError(
                f"Season {season_id} transition failed and was rolled back: {exc}"
            ) from exc

    def _transition(self, session: Session, season: Season) -> SeasonEndReport:
        logger.info(f"Processing end of season {season.id} ({season.end_date})")
        report = SeasonEndReport(season_id=season.id)
        seasons = SeasonRepository(session, self.context.save_id)
        competitions = CompetitionRepository(session).get_for_season(season.id)

        seasons.mark_finished(season.id)
        self.award_trophies(session, season, competitions, report)
        self.award_individuals(session, season, competitions, report)
        self.resolve_expiring_contracts(session, season, report)
        self.start_next_season(session, season, competitions, report)

        logger.info(
            f"Season {season.id} closed: {len(report.trophies)} trophies, "
            f"{len(report.awards)} awards, {len(report.retired)} retirements, "
            f"{len(report.released)} released → season {report.next_season_id}"
        )
        return report

    # ── Trophies ─────────────────────────────────────────────────────────

    def award_trophies(
        self,
        session: Session,
        season: Season,
        competitions: list[Competition],
        report: SeasonEndReport,
    ) -> None:
        ledger = FinanceLedger(session)
        for competition in competitions:
            if competition.type == CompetitionType.LEAGUE:
                winner = self._league_winner(session, competition, season)
            else:
                winner = self._final_winner(session, competition, season)
            if winner is None:
                logger.warning(f"No winner determined for {competition.name} in season {season.id}")
                continue

            stmt = sqlite_insert(ClubTrophyDB).values(
                club_id=winner,
                competition_id=competition.id,
                season_id=season.id,
                date_won=season.end_date,
            ).on_conflict_do_nothing(index_elements=["competition_id", "season_id"])
            if session.execute(stmt).rowcount == 0:
                continue

            report.trophies[competition.id] = winner
            prize = self.prize_money.get(competition.type.value, 0)
            if prize:
                ledger.record_transaction(
                    winner, PRIZE_MONEY, prize, season.end_date,
                    f"Prize money for winning {competition.name}",
                )
            logger.info(f"Club {winner} wins {competition.name} (prize {prize:,})")

    @staticmethod
    def _league_winner(session: Session, competition: Competition, season: Season) -> int | None:
        table = current_standings(session, competition.id, season.id)
        return table[0].club_id if table else None

    @staticmethod
    def _final_winner(session: Session, competition: Competition, season: Season) -> int | None:
        final = session.scalars(
            select(MatchDB)
            .join(CompetitionStageDB, CompetitionStageDB.id == MatchDB.stage_id)
            .where(
                MatchDB.competition_id == competition.id,
                MatchDB.season_id == season.id,
                MatchDB.status == MatchStatus.PLAYED.value,
                CompetitionStageDB.name == FINAL_STAGE_NAME,
            )
            .order_by(MatchDB.match_date.desc(), MatchDB.id.desc())
        ).first()
        if final is None or final.home_score == final.away_score:
            return None
        return final.home_club_id if final.home_score > final.away_score else final.away_club_id

    # ── Individual awards ────────────────────────────────────────────────

    def award_individuals(
        self,
        session: Session,
        season: Season,
        competitions: list[Competition],
        report: SeasonEndReport,
    ) -> None:
        top_scorer = self._top_scorer(session, season.id)
        if top_scorer is not None:
            self._give_award(session, report, GOLDEN_BOOT, season, SEASON_WIDE, *top_scorer)

        best = self._best_rated(session, season.id, min_matches=self.award_min_matches)
        if best is not None:
            self._give_award(session, report, BEST_PLAYER, season, SEASON_WIDE, *best)
        else:
            logger.warning(
                f"No player reached {self.award_min_matches} matches for {BEST_PLAYER}"
            )

        keeper = self._best_rated(session, season.id, position_played="GK")
        if keeper is not None:
            self._give_award(session, report, BEST_GOALKEEPER, season, SEASON_WIDE, *keeper)

        for competition in competitions:
            comp_best = self._best_rated(session, season.id, competition_id=competition.id)
            if comp_best is not None:
                self._give_award(
                    session, report, COMPETITION_BEST_PLAYER, season, competition.id, *comp_best
                )
            comp_scorer = self._top_scorer(session, season.id, competition_id=competition.id)
            if comp_scorer is not None:
                self._give_award(
                    session, report, COMPETITION_TOP_SCORER, season, competition.id, *comp_scorer
                )

        self._pick_team_of_the_year(session, season, report)

    @staticmethod
    def _stats_query(season_id: int, competition_id: int | None = None):
        stmt = (
            select(
                PlayerMatchStatsDB.player_id,
                func.count(PlayerMatchStatsDB.match_id).label("matches"),
                func.sum(PlayerMatchStatsDB.goals).label("goals"),
                func.avg(PlayerMatchStatsDB.rating).label("avg_rating"),
            )
            .join(MatchDB, MatchDB.id == PlayerMatchStatsDB.match_id)
            .where(MatchDB.season_id == season_id)
            .group_by(PlayerMatchStatsDB.player_id)
        )
        if competition_id is not None:
            stmt = stmt.where(MatchDB.competition_id == competition_id)
        return stmt

    def _top_scorer(
        self, session: Session, season_id: int, competition_id: int | None = None
    ) -> tuple[int, float] | None:
        stmt = self._stats_query(season_id, competition_id)
        goals = func.sum(PlayerMatchStatsDB.goals)
        row = session.execute(
            stmt.having(goals > 0).order_by(goals.desc(), PlayerMatchStatsDB.player_id)
        ).first()
        return (row.player_id, float(row.goals)) if row else None

    def _best_rated(
        self,
        session: Session,
        season_id: int,
        competition_id: int | None = None,
        position_played: str | None = None,
        min_matches: int = 1,
    ) -> tuple[int, float] | None:
        stmt = self._stats_query(season_id, competition_id)
        if position_played is not None:
            stmt = stmt.where(PlayerMatchStatsDB.position_played == position_played)
        avg_rating = func.avg(PlayerMatchStatsDB.rating)
        row = session.execute(
            stmt.having(func.count(PlayerMatchStatsDB.match_id) >= min_matches)
            .order_by(avg_rating.desc(), PlayerMatchStatsDB.player_id)
        ).first()
        return (row.player_id, round(float(row.avg_rating), 2)) if row else None

    @staticmethod
    def _give_award(
        session: Session,
        report: SeasonEndReport,
        award_type: str,
        season: Season,
        competition_id: int,
        player_id: int,
        value: float,
    ) -> None:
        stmt = sqlite_insert(PlayerAwardDB).values(
            player_id=player_id,
            award_type=award_type,
            season_id=season.id,
            competition_id=competition_id,
            award_date=season.end_date,
            value=value,
        ).on_conflict_do_nothing(index_elements=["award_type", "season_id", "competition_id"])
        if session.execute(stmt).rowcount:
            report.awards.append((award_type, competition_id, player_id))
            logger.info(f"{award_type}: player {player_id} ({value})")

    def _pick_team_of_the_year(
        self, session: Session, season: Season, report: SeasonEndReport
    ) -> None:
        avg_rating = func.avg(PlayerMatchStatsDB.rating)
        selections: list[tuple[int, str, float]] = []

        for line, positions, slots in TEAM_OF_THE_YEAR_SHAPE:
            rows = session.execute(
                select(PlayerMatchStatsDB.player_id, PlayerDB.position, avg_rating.label("avg_rating"))
                .join(MatchDB, MatchDB.id == PlayerMatchStatsDB.match_id)
                .join(PlayerDB, PlayerDB.id == PlayerMatchStatsDB.player_id)
                .where(MatchDB.season_id == season.id, PlayerDB.position.in_(positions))
                .group_by(PlayerMatchStatsDB.player_id, PlayerDB.position)
                .having(func.count(PlayerMatchStatsDB.match_id) >= self.award_min_matches)
                .order_by(avg_rating.desc(), PlayerMatchStatsDB.player_id)
                .limit(slots)
            ).all()
            if len(rows) < slots:
                logger.warning(f"Team of the Year: only {len(rows)}/{slots} {line} candidates")
            selections.extend((r.player_id, r.position, round(float(r.avg_rating), 2)) for r in rows)

        if not selections:
            return

        stmt = sqlite_insert(TeamOfTheYearDB).values(
            season_id=season.id,
            name=f"Team of the Year {season.start_date.year}/{season.end_date.year}",
            award_date=season.end_date,
        ).on_conflict_do_nothing(index_elements=["season_id"])
        if session.execute(stmt).rowcount == 0:
            return

        team_id = session.scalar(select(TeamOfTheYearDB.id).where(TeamOfTheYearDB.season_id == season.id))
        for player_id, position, rating in selections:
            session.add(TeamOfTheYearSelectionDB(
                team_of_the_year_id=team_id,
                player_id=player_id,
                position=position,
                average_rating=rating,
            ))
            report.team_of_the_year.append(player_id)
        session.flush()

    # ── Contracts ────────────────────────────────────────────────────────

    def resolve_expiring_contracts(
        self, session: Session, season: Season, report: SeasonEndReport
    ) -> None:
        """Retire or release every player whose contract ends with the season.

        Age 35+ with overall below 70 retires 80% of the time; otherwise age
        30+ retires 20% of the time; everyone else leaves on a free transfer.
        """
        players = PlayerRepository(session)
        end = season.end_date

        contracts = session.scalars(
            select(PlayerContractDB)
            .where(PlayerContractDB.end_date == end)
            .order_by(PlayerContractDB.id)
        ).all()
        for contract in contracts:
            player = players.get(contract.player_id)
            if player is None or player.is_retired:
                continue

            age = player.age_on(end)
            if age >= 35 and player.overall < 70 and self.rng.random() < 0.8:
                retiring = True
            elif age >= 30 and self.rng.random() < 0.2:
                retiring = True
            else:
                retiring = False

            if retiring:
                players.mark_retired(player.id)
                report.retired.append(player.id)
                description = f"{player.full_name} has retired."
            else:
                report.released.append(player.id)
                description = f"{player.full_name} left club {contract.club_id} on a free transfer."

            session.add(TransferDB(
                player_id=player.id,
                club_from_id=contract.club_id,
                club_to_id=None,
                transfer_type=RETIREMENT if retiring else FREE_TRANSFER,
                transfer_date=end,
                description=description,
            ))
            logger.info(description)

        staff_contracts = session.scalars(
            select(StaffContractDB)
            .where(StaffContractDB.end_date == end)
            .order_by(StaffContractDB.id)
        ).all()
        for contract in staff_contracts:
            session.add(TransferDB(
                staff_id=contract.staff_id,
                club_from_id=contract.club_id,
                transfer_type=CONTRACT_EXPIRED,
                transfer_date=end,
                description=f"Staff contract with club {contract.club_id} expired.",
            ))
            report.staff_released.append(contract.staff_id)
            logger.info(f"Staff {contract.staff_id} contract with club {contract.club_id} expired")

        session.flush()

    # ── Next season ──────────────────────────────────────────────────────

    def start_next_season(
        self,
        session: Session,
        season: Season,
        competitions: list[Competition],
        report: SeasonEndReport,
    ) -> Season:
        seasons = SeasonRepository(session, self.context.save_id)
        comp_repo = CompetitionRepository(session)

        start = season.end_date + timedelta(days=self.next_season_gap_days)
        new_season = seasons.create(start, season_end_for(start))
        report.next_season_id = new_season.id

        for competition in competitions:
            comp_repo.link_season(competition.id, new_season.id)
        report.fixtures_created = schedule_season(session, new_season)

        # Summer runs from the day after this season ends up to the next kick-off
        seasons.add_transfer_window(
            new_season.id, TransferWindowType.SUMMER,
            season.end_date + timedelta(days=1), new_season.start_date,
        )
        winter = winter_window(new_season)
        if winter is not None:
            seasons.add_transfer_window(new_season.id, TransferWindowType.WINTER, *winter)

        seasons.set_clock(new_season.start_date, new_season.id)
        return new_season


def winter_window(season: Season) -> tuple[date, date] | None:
    """The first January inside a season, clipped to its end date."""
    start = season.start_date
    january_year = start.year if (start.month, start.day) == (1, 1) else start.year + 1
    window_start = date(january_year, 1, 1)
    window_end = min(date(january_year, 1, 31), season.end_date)
    if window_start > window_end:
        return None
    return window_start, window_end
