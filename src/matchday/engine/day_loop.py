"""Day loop — advances the game clock one calendar day at a time.

Each tick selects the matches due today, simulates them on a bounded
worker pool and applies the results through this (coordinating) thread,
one transaction per match. Workers only compute; they never touch the
database, so the single SQLite file always has one writer.

A match that fails or times out is marked skipped with a log line; the
clock advances regardless. Only a missing clock row aborts the tick.
"""

from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import date, timedelta
from pathlib import Path

import numpy as np
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matchday.db.models import (
    ClubDB,
    MatchEventDB,
    MatchLogDB,
    PlayerMatchStatsDB,
)
from matchday.db.repository import (
    CompetitionRepository,
    MatchRepository,
    SeasonRepository,
)
from matchday.db.session import GameContext
from matchday.engine.lineups import resolve_lineup
from matchday.engine.match_result import MatchResult
from matchday.engine.match_sim import MatchSimulator
from matchday.engine.standings import apply_match_result
from matchday.errors import MatchdayError
from matchday.models.competition import Match
from matchday.models.player import LineupPlayer
from matchday.services.finance import FinanceService
from matchday.utils.rules import load_section

logger = logging.getLogger(__name__)


@dataclass
class MatchTask:
    """Everything a worker needs to simulate one match, detached from the DB."""
    match: Match
    home_lineup: list[LineupPlayer]
    away_lineup: list[LineupPlayer]
    home_name: str
    away_name: str
    rng: np.random.Generator


@dataclass
class MatchFailure:
    match_id: int
    reason: str


@dataclass
class DaySummary:
    """Outcome of one day advancement."""
    previous_date: date
    new_date: date
    season_id: int
    matches_played: int = 0
    failures: list[MatchFailure] = field(default_factory=list)
    # True when the processed day was the active season's last day
    season_ended: bool = False

    def to_dict(self) -> dict:
        return {
            "matches_played": self.matches_played,
            "new_date": self.new_date.isoformat(),
            "failures": [{"match_id": f.match_id, "reason": f.reason} for f in self.failures],
            "season_ended": self.season_ended,
        }


def club_names(session: Session, club_ids: list[int]) -> dict[int, str]:
    rows = session.query(ClubDB.id, ClubDB.name).filter(ClubDB.id.in_(club_ids)).all()
    return {club_id: name for club_id, name in rows}


def build_match_task(
    session: Session, match: Match, rng: np.random.Generator
) -> MatchTask:
    """Resolve both lineups (auto-picking where needed) and snapshot them."""
    names = club_names(session, [match.home_club_id, match.away_club_id])
    return MatchTask(
        match=match,
        home_lineup=resolve_lineup(session, match.id, match.home_club_id, match.match_date),
        away_lineup=resolve_lineup(session, match.id, match.away_club_id, match.match_date),
        home_name=names.get(match.home_club_id, f"Club {match.home_club_id}"),
        away_name=names.get(match.away_club_id, f"Club {match.away_club_id}"),
        rng=rng,
    )


def record_match_result(session: Session, match: Match, result: MatchResult) -> None:
    """Persist score, stats, events, log line and (for table competitions) standings.

    Runs inside the caller's transaction.
    """
    MatchRepository(session).mark_played(match.id, result.home_goals, result.away_goals)

    for stat in result.all_player_stats:
        session.add(PlayerMatchStatsDB(
            match_id=match.id,
            player_id=stat.player_id,
            club_id=stat.club_id,
            position_played=stat.position,
            rating=stat.rating,
            goals=stat.goals,
            assists=stat.assists,
            shots=stat.shots,
            shots_on_target=stat.shots_on_target,
            passes=stat.passes,
            tackles_won=stat.tackles_won,
            interceptions=stat.interceptions,
            defenses=stat.defenses,
            fouls_committed=stat.fouls_committed,
            yellow_cards=stat.yellow_cards,
            red_cards=stat.red_cards,
            injured=stat.injured,
            is_motm=stat.is_motm,
        ))

    for sequence, event in enumerate(result.events, start=1):
        session.add(MatchEventDB(
            match_id=match.id,
            sequence=sequence,
            minute=event.minute,
            event_type=event.event_type.value,
            player_id=event.player_id,
            club_id=event.club_id,
            detail=event.detail,
        ))

    session.add(MatchLogDB(match_id=match.id, log_text=result.log_text))
    session.flush()

    competition = CompetitionRepository(session).get(match.competition_id)
    if competition is not None and competition.keeps_table:
        apply_match_result(session, match, result.home_goals, result.away_goals)


def record_skip(session: Session, match_id: int, reason: str) -> None:
    """Mark a match that could not be resolved today as skipped and log why."""
    MatchRepository(session).mark_skipped(match_id)
    session.add(MatchLogDB(match_id=match_id, log_text=f"Match skipped: {reason}"))


class DayAdvancer:
    """Coarse-grained control loop for one save: one call = one calendar day."""

    def __init__(
        self,
        context: GameContext,
        simulator: MatchSimulator | None = None,
        finance: FinanceService | None = None,
        rules_path: str | Path | None = None,
        seed: int | None = None,
    ):
        self.context = context
        self.simulator = simulator or MatchSimulator(rules_path=rules_path, seed=seed)
        self.finance = finance or FinanceService(rules_path=rules_path)
        self.rng = np.random.default_rng(seed)
        self.max_workers = 4
        self.match_timeout = 30.0
        # No overlapping day-advances for the same save
        self._tick_lock = threading.Lock()

        if rules_path is not None:
            loop_rules = load_section(rules_path, "loop")
            self.max_workers = int(loop_rules.get("max_workers", self.max_workers))
            self.match_timeout = float(loop_rules.get("match_timeout_seconds", self.match_timeout))

    def advance_one_day(self) -> DaySummary:
        """Resolve every match due today, then move the clock forward one day.

        Raises:
            GameStateError: If the save has no game clock. Nothing advances.
        """
        with self._tick_lock:
            return self._advance()

    def _advance(self) -> DaySummary:
        with self.context.session_scope() as session:
            seasons = SeasonRepository(session, self.context.save_id)
            clock = seasons.get_clock()
            season = seasons.get(clock.season_id)
            due = MatchRepository(session).get_due(clock.current_date, clock.season_id)

        today = clock.current_date
        summary = DaySummary(
            previous_date=today,
            new_date=today + timedelta(days=1),
            season_id=clock.season_id,
            season_ended=today >= season.end_date,
        )
        logger.info(f"Advancing {today}: {len(due)} match(es) due")

        tasks = self._prepare_tasks(due, summary)
        results = self._simulate_all(tasks, summary)
        for task in tasks:
            result = results.get(task.match.id)
            if result is not None:
                self._apply(task.match, result, summary)

        with self.context.session_scope() as session:
            SeasonRepository(session, self.context.save_id).set_clock(summary.new_date, clock.season_id)

        if summary.new_date.day == 1:
            self.finance.process_monthly(self.context, summary.new_date, self.rng)

        logger.info(
            f"Day {today} done: {summary.matches_played} played, "
            f"{len(summary.failures)} skipped → {summary.new_date}"
        )
        return summary

    # ── Steps ────────────────────────────────────────────────────────────

    def _prepare_tasks(self, due: list[Match], summary: DaySummary) -> list[MatchTask]:
        """Resolve lineups for each due match. A failing match is skipped, not fatal."""
        tasks = []
        for match in due:
            try:
                with self.context.session_scope() as session:
                    tasks.append(build_match_task(session, match, self.simulator.spawn_rng()))
            except (SQLAlchemyError, MatchdayError, ValueError) as exc:
                self._fail(match.id, f"lineup preparation failed: {exc}", summary)
        return tasks

    def _simulate_all(
        self, tasks: list[MatchTask], summary: DaySummary
    ) -> dict[int, MatchResult]:
        """Run the simulations on the worker pool and collect finished results.

        Workers are bounded by a deadline of one match timeout per batch of
        ``max_workers`` matches; anything still running after it is skipped.
        """
        if not tasks:
            return {}

        workers = max(1, min(self.max_workers, len(tasks)))
        deadline = self.match_timeout * math.ceil(len(tasks) / workers)
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="match-worker")
        futures: dict[Future, MatchTask] = {
            pool.submit(self._simulate, task): task for task in tasks
        }
        try:
            done, not_done = wait(futures, timeout=deadline)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        results: dict[int, MatchResult] = {}
        for future in done:
            task = futures[future]
            try:
                results[task.match.id] = future.result()
            except Exception as exc:
                logger.exception(f"Simulation of match {task.match.id} failed")
                self._fail(task.match.id, f"simulation error: {exc}", summary)
        for future in not_done:
            self._fail(futures[future].match.id, f"timed out after {deadline:.0f}s", summary)
        return results

    def _simulate(self, task: MatchTask) -> MatchResult:
        return self.simulator.simulate_match(
            task.match.id,
            task.match.home_club_id,
            task.match.away_club_id,
            task.home_lineup,
            task.away_lineup,
            home_team_name=task.home_name,
            away_team_name=task.away_name,
            rng=task.rng,
        )

    def _apply(self, match: Match, result: MatchResult, summary: DaySummary) -> None:
        """Fan-in write: one transaction per match, applied by the coordinator."""
        try:
            with self.context.session_scope() as session:
                record_match_result(session, match, result)
                self.finance.record_ticket_revenue(session, match, self.rng)
            summary.matches_played += 1
        except (SQLAlchemyError, MatchdayError) as exc:
            self._fail(match.id, f"could not save result: {exc}", summary)

    def _fail(self, match_id: int, reason: str, summary: DaySummary) -> None:
        logger.error(f"Match {match_id} skipped: {reason}")
        summary.failures.append(MatchFailure(match_id=match_id, reason=reason))
        with self.context.session_scope() as session:
            record_skip(session, match_id, reason)
