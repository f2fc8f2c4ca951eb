"""Tests for the day loop: clock advancement, fan-in writes and failure isolation."""

from __future__ import annotations

import threading
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from conftest import RULES_PATH, build_world
from matchday.db.models import MatchEventDB, MatchLogDB, PlayerMatchStatsDB
from matchday.db.repository import (
    MatchRepository,
    PlayerRepository,
    SeasonRepository,
    StandingRepository,
)
from matchday.engine.day_loop import DayAdvancer
from matchday.engine.fixture_generator import generate_fixtures
from matchday.engine.match_sim import MatchSimulator
from matchday.errors import GameStateError
from matchday.models.competition import MatchStatus
from matchday.services.finance import SALARIES, TICKET_SALES, FinanceLedger

START = date(2025, 8, 1)


class _FailingSimulator(MatchSimulator):
    """Raises for chosen match ids, simulates the rest normally."""

    def __init__(self, failing_ids):
        super().__init__(seed=1)
        self.failing_ids = set(failing_ids)

    def simulate_match(self, match_id, *args, **kwargs):
        if match_id in self.failing_ids:
            raise RuntimeError("engine exploded")
        return super().simulate_match(match_id, *args, **kwargs)


class _BlockingSimulator(MatchSimulator):
    """Never finishes until released."""

    def __init__(self):
        super().__init__(seed=1)
        self.release = threading.Event()

    def simulate_match(self, match_id, *args, **kwargs):
        self.release.wait(5)
        return super().simulate_match(match_id, *args, **kwargs)


def _start_season(context, start: date = START, end: date | None = None) -> int:
    with context.session_scope() as session:
        seasons = SeasonRepository(session, context.save_id)
        season = seasons.create(start, end or date(start.year + 1, 7, 31))
        seasons.set_clock(start, season.id)
    generate_fixtures(context, season.id)
    return season.id


def _set_clock(context, day: date, season_id: int) -> None:
    with context.session_scope() as session:
        SeasonRepository(session, context.save_id).set_clock(day, season_id)


def _due_ids(context, day: date, season_id: int) -> list[int]:
    with context.session_scope() as session:
        return [m.id for m in MatchRepository(session).get_due(day, season_id)]


def _advancer(context, simulator=None) -> DayAdvancer:
    return DayAdvancer(context, simulator=simulator, rules_path=RULES_PATH, seed=1)


class TestAdvance:
    def test_plays_due_matches_and_moves_clock(self, context, world):
        season_id = _start_season(context)
        due = _due_ids(context, START, season_id)
        assert len(due) == 2

        summary = _advancer(context).advance_one_day()

        assert summary.previous_date == START
        assert summary.new_date == START + timedelta(days=1)
        assert summary.matches_played == 2
        assert summary.failures == []
        assert not summary.season_ended

        with context.session_scope() as session:
            assert SeasonRepository(session, context.save_id).get_clock().current_date == summary.new_date
            matches = [MatchRepository(session).get(mid) for mid in due]
            assert all(m.status == MatchStatus.PLAYED for m in matches)
            for m in matches:
                stats = session.scalar(
                    select(func.count()).select_from(PlayerMatchStatsDB)
                    .where(PlayerMatchStatsDB.match_id == m.id)
                )
                assert stats == 22
                sequences = session.scalars(
                    select(MatchEventDB.sequence)
                    .where(MatchEventDB.match_id == m.id)
                    .order_by(MatchEventDB.sequence)
                ).all()
                assert sequences == list(range(1, len(sequences) + 1))
                assert FinanceLedger(session).get_transactions(m.home_club_id, TICKET_SALES)

            table = StandingRepository(session).get_at_match_day(1, season_id, 1)
            assert sorted(r.club_id for r in table) == world.clubs["ENG"]

    def test_idle_day_still_advances(self, context, world):
        season_id = _start_season(context)
        _set_clock(context, START + timedelta(days=1), season_id)

        summary = _advancer(context).advance_one_day()
        assert summary.matches_played == 0
        assert summary.new_date == START + timedelta(days=2)

    def test_missing_clock_aborts(self, context, world):
        with pytest.raises(GameStateError):
            _advancer(context).advance_one_day()

    def test_summary_to_dict(self, context, world):
        _start_season(context)
        data = _advancer(context).advance_one_day().to_dict()
        assert data == {
            "matches_played": 2,
            "new_date": "2025-08-02",
            "failures": [],
            "season_ended": False,
        }

    def test_last_day_flags_season_end(self, context, world):
        season_id = _start_season(context, end=date(2025, 8, 3))
        _set_clock(context, date(2025, 8, 2), season_id)
        advancer = _advancer(context)
        assert not advancer.advance_one_day().season_ended
        assert advancer.advance_one_day().season_ended


class TestFailureIsolation:
    def test_failed_simulation_marks_match_skipped(self, context, world):
        season_id = _start_season(context)
        failing, healthy = _due_ids(context, START, season_id)

        summary = _advancer(context, _FailingSimulator([failing])).advance_one_day()

        assert summary.matches_played == 1
        assert [f.match_id for f in summary.failures] == [failing]
        assert "engine exploded" in summary.failures[0].reason
        assert summary.new_date == START + timedelta(days=1)

        with context.session_scope() as session:
            repo = MatchRepository(session)
            assert repo.get(failing).status == MatchStatus.SKIPPED
            assert repo.get(healthy).status == MatchStatus.PLAYED
            logs = session.scalars(
                select(MatchLogDB.log_text).where(MatchLogDB.match_id == failing)
            ).all()
            assert any(text.startswith("Match skipped") for text in logs)
            # Nothing but the skip line was written for the failed match
            assert session.scalar(
                select(func.count()).select_from(PlayerMatchStatsDB)
                .where(PlayerMatchStatsDB.match_id == failing)
            ) == 0

    def test_timed_out_matches_are_skipped(self, context, world):
        season_id = _start_season(context)
        simulator = _BlockingSimulator()
        advancer = _advancer(context, simulator)
        advancer.match_timeout = 0.05

        try:
            summary = advancer.advance_one_day()
        finally:
            simulator.release.set()

        assert summary.matches_played == 0
        assert len(summary.failures) == 2
        assert all("timed out" in f.reason for f in summary.failures)
        assert summary.new_date == START + timedelta(days=1)
        assert _due_ids(context, START, season_id) == []
        with context.session_scope() as session:
            matches = MatchRepository(session).get_for_season(season_id)
        statuses = {m.status for m in matches if m.match_date == START}
        assert statuses == {MatchStatus.SKIPPED}

    def test_insufficient_lineup_is_played_goalless(self, context):
        world = build_world(context, {"ENG": 4})
        with context.session_scope() as session:
            players = PlayerRepository(session)
            for player_id in world.squads[4][:3]:
                players.mark_retired(player_id)
        season_id = _start_season(context)

        summary = _advancer(context).advance_one_day()
        assert summary.matches_played == 2

        with context.session_scope() as session:
            short = [
                m for m in MatchRepository(session).get_for_season(season_id)
                if 4 in (m.home_club_id, m.away_club_id) and m.match_date == START
            ][0]
            assert short.status == MatchStatus.PLAYED
            assert (short.home_score, short.away_score) == (0, 0)
            log = session.scalars(
                select(MatchLogDB.log_text).where(MatchLogDB.match_id == short.id)
            ).one()
            assert "insufficient lineup" in log
            row = StandingRepository(session).get_latest_for_club(1, season_id, 4)
            assert (row.played, row.draws, row.points) == (1, 1, 1)


class TestMonthlyAndConcurrency:
    def test_monthly_finances_on_the_first(self, context, world):
        season_id = _start_season(context)
        _set_clock(context, date(2025, 8, 30), season_id)
        advancer = _advancer(context)

        advancer.advance_one_day()
        with context.session_scope() as session:
            assert FinanceLedger(session).get_transactions(1, SALARIES) == []

        summary = advancer.advance_one_day()
        assert summary.new_date == date(2025, 9, 1)
        with context.session_scope() as session:
            (salaries,) = FinanceLedger(session).get_transactions(1, SALARIES)
        assert salaries.transaction_date == date(2025, 9, 1)
        assert salaries.amount == -110_000

    def test_concurrent_ticks_do_not_overlap(self, context, world):
        season_id = _start_season(context)
        advancer = _advancer(context)
        summaries = []

        threads = [
            threading.Thread(target=lambda: summaries.append(advancer.advance_one_day()))
            for _ in range(2)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(s.previous_date for s in summaries) == [START, START + timedelta(days=1)]
        assert sum(s.matches_played for s in summaries) == 2
        with context.session_scope() as session:
            assert SeasonRepository(session, context.save_id).get_clock().current_date == START + timedelta(days=2)
        assert _due_ids(context, START, season_id) == []
