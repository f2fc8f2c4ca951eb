"""Game session facade — the operations a caller (API, script, test) drives.

Wraps the fixture scheduler, day loop, single-match simulation, standings
and season transition behind one object bound to a GameContext, so no
component needs a process-wide "current save".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from matchday.db.repository import MatchRepository, SeasonRepository
from matchday.db.session import GameContext
from matchday.engine.day_loop import DayAdvancer, DaySummary, build_match_task, record_match_result
from matchday.engine.fixture_generator import generate_fixtures
from matchday.engine.match_result import MatchResult
from matchday.engine.match_sim import MatchSimulator
from matchday.engine.season_end import SeasonEndReport, SeasonTransitionProcessor, winter_window
from matchday.engine.standings import get_standings
from matchday.errors import GameStateError, MatchAlreadyPlayedError, SeasonTransitionError
from matchday.models.season import Season, TransferWindowType, season_end_for
from matchday.models.standing import StandingRow
from matchday.services.finance import FinanceService

logger = logging.getLogger(__name__)


@dataclass
class DayResult:
    """A processed day plus the season transition it triggered, if any."""
    summary: DaySummary
    season_end: SeasonEndReport | None = None
    # Set when the transition rolled back; the next day retries it
    season_end_error: str | None = None


class GameSession:
    """Facade over the simulation core for one loaded save."""

    def __init__(
        self,
        context: GameContext,
        rules_path: str | Path | None = None,
        seed: int | None = None,
        simulator: MatchSimulator | None = None,
    ):
        self.context = context
        self.rules_path = Path(rules_path) if rules_path else None
        self.simulator = simulator or MatchSimulator(rules_path=self.rules_path, seed=seed)
        self.finance = FinanceService(rules_path=self.rules_path)
        self._advancer = DayAdvancer(
            context,
            simulator=self.simulator,
            finance=self.finance,
            rules_path=self.rules_path,
            seed=seed,
        )
        self._transition = SeasonTransitionProcessor(context, rules_path=self.rules_path, seed=seed)

    # ── Bootstrap ────────────────────────────────────────────────────────

    def new_game(self, start_date: date) -> Season:
        """Create the first season, its transfer windows, the clock and fixtures."""
        with self.context.session_scope() as session:
            seasons = SeasonRepository(session, self.context.save_id)
            if seasons.get_active() is not None:
                raise GameStateError(f"Save '{self.context.save_id}' already has an active season")
            season = seasons.create(start_date, season_end_for(start_date))

            # The opening window only covers the first day
            seasons.add_transfer_window(season.id, TransferWindowType.SUMMER, start_date, start_date)
            winter = winter_window(season)
            if winter is not None:
                seasons.add_transfer_window(season.id, TransferWindowType.WINTER, *winter)
            seasons.set_clock(start_date, season.id)

        self.generate_fixtures(season.id)
        logger.info(f"New game '{self.context.save_id}': season {season.id} from {start_date}")
        return season

    def generate_fixtures(self, season_id: int) -> int:
        return generate_fixtures(self.context, season_id)

    # ── Time ─────────────────────────────────────────────────────────────

    def advance_one_day(self) -> DayResult:
        """Process today, then close the season if today was its last day.

        A failed season transition does not lose the processed day: it is
        logged and reported on the result, and retried on the next call.

        Raises:
            GameStateError: If the save has no game clock.
        """
        summary = self._advancer.advance_one_day()
        result = DayResult(summary=summary)
        if summary.season_ended:
            try:
                result.season_end = self.process_season_end(summary.season_id)
            except SeasonTransitionError as exc:
                logger.error(str(exc))
                result.season_end_error = str(exc)
        return result

    def run_until(self, target: date) -> list[DayResult]:
        """Advance day by day until the clock reaches ``target``."""
        results = []
        while self.current_date() < target:
            results.append(self.advance_one_day())
        return results

    def run_season(self) -> list[DayResult]:
        """Advance until the active season has been closed."""
        results = []
        while True:
            result = self.advance_one_day()
            results.append(result)
            if result.summary.season_ended:
                return results

    def current_date(self) -> date:
        with self.context.session_scope() as session:
            return SeasonRepository(session, self.context.save_id).get_clock().current_date

    def active_season(self) -> Season | None:
        with self.context.session_scope() as session:
            return SeasonRepository(session, self.context.save_id).get_active()

    # ── Matches & tables ─────────────────────────────────────────────────

    def simulate_match(self, match_id: int) -> MatchResult:
        """Resolve one scheduled match synchronously, outside the day loop.

        Raises:
            MatchNotFoundError: Unknown match id.
            MatchAlreadyPlayedError: The match already has a result.
        """
        with self.context.session_scope() as session:
            match = MatchRepository(session).get(match_id)
            if match.is_played:
                raise MatchAlreadyPlayedError(f"Match {match_id} has already been played")
            task = build_match_task(session, match, self.simulator.spawn_rng())

        result = self.simulator.simulate_match(
            match.id,
            match.home_club_id,
            match.away_club_id,
            task.home_lineup,
            task.away_lineup,
            home_team_name=task.home_name,
            away_team_name=task.away_name,
            rng=task.rng,
        )

        with self.context.session_scope() as session:
            record_match_result(session, match, result)
            self.finance.record_ticket_revenue(session, match, task.rng)
        return result

    def get_standings(self, competition_id: int, season_id: int) -> list[StandingRow]:
        return get_standings(self.context, competition_id, season_id)

    def is_transfer_window_open(self, day: date | None = None) -> bool:
        with self.context.session_scope() as session:
            seasons = SeasonRepository(session, self.context.save_id)
            return seasons.is_transfer_window_open(day or seasons.get_clock().current_date)

    # ── Season end ───────────────────────────────────────────────────────

    def process_season_end(self, season_id: int | None = None) -> SeasonEndReport | None:
        return self._transition.process_season_end(season_id)
