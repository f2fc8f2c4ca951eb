"""Tests for the round-robin scheduler and fixture persistence."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, timedelta

import pytest

from conftest import build_world
from matchday.db.repository import MatchRepository, SeasonRepository
from matchday.engine.fixture_generator import (
    generate_fixtures,
    generate_round_robin,
    round_dates,
    total_matchdays,
)

SEASON_START = date(2025, 8, 1)


def _create_season(context, start: date = SEASON_START) -> int:
    with context.session_scope() as session:
        season = SeasonRepository(session, context.save_id).create(start, date(start.year + 1, 7, 31))
    return season.id


def _matches(context, season_id: int):
    with context.session_scope() as session:
        return MatchRepository(session).get_for_season(season_id)


class TestRoundRobin:
    @pytest.mark.parametrize("n", [2, 4, 6, 10, 20])
    def test_even_count_plays_everyone_twice(self, n):
        rounds = generate_round_robin(list(range(n)))
        assert len(rounds) == 2 * (n - 1)

        fixtures = [pair for rnd in rounds for pair in rnd]
        assert len(fixtures) == n * (n - 1)

        ordered = Counter(fixtures)
        assert all(count == 1 for count in ordered.values())
        for home, away in fixtures:
            assert (away, home) in ordered

    @pytest.mark.parametrize("n", [3, 5, 7])
    def test_odd_count_never_pairs_the_bye(self, n):
        rounds = generate_round_robin(list(range(n)))
        assert len(rounds) == total_matchdays(n) == 2 * n

        for rnd in rounds:
            assert all(home is not None and away is not None for home, away in rnd)
            playing = [c for pair in rnd for c in pair]
            # Exactly one club rests each round
            assert len(playing) == n - 1

        idle = Counter()
        for rnd in rounds[:n]:
            playing = {c for pair in rnd for c in pair}
            for club in set(range(n)) - playing:
                idle[club] += 1
        assert all(idle[c] == 1 for c in range(n))

    def test_no_club_twice_in_a_round(self):
        for rnd in generate_round_robin(list(range(8))):
            playing = [c for pair in rnd for c in pair]
            assert len(playing) == len(set(playing))

    def test_circle_method_order(self):
        rounds = generate_round_robin([1, 2, 3, 4])
        assert rounds[0] == [(1, 4), (2, 3)]
        assert rounds[1] == [(1, 3), (4, 2)]
        assert rounds[2] == [(1, 2), (3, 4)]
        # Second leg mirrors the first
        assert rounds[3] == [(4, 1), (3, 2)]

    def test_too_few_teams(self):
        with pytest.raises(ValueError):
            generate_round_robin([1])

    def test_round_dates_are_weekly(self):
        dates = round_dates(SEASON_START, 3)
        assert dates == [SEASON_START, SEASON_START + timedelta(days=7), SEASON_START + timedelta(days=14)]


class TestGenerateFixtures:
    def test_four_club_league(self, context, world):
        season_id = _create_season(context)
        created = generate_fixtures(context, season_id)

        matches = _matches(context, season_id)
        assert created == len(matches) == 12
        assert sorted({m.match_date for m in matches}) == [
            SEASON_START + timedelta(days=7 * i) for i in range(6)
        ]
        assert sorted({m.leg_number for m in matches}) == [1, 2, 3, 4, 5, 6]

    def test_no_club_twice_on_same_date(self, context):
        build_world(context, {"ENG": 6})
        season_id = _create_season(context)
        generate_fixtures(context, season_id)

        by_date = defaultdict(list)
        for m in _matches(context, season_id):
            by_date[m.match_date].extend([m.home_club_id, m.away_club_id])
        for clubs in by_date.values():
            assert len(clubs) == len(set(clubs))

    def test_odd_league_persists_no_bye(self, context):
        world = build_world(context, {"ESP": 5})
        season_id = _create_season(context)
        generate_fixtures(context, season_id)

        matches = _matches(context, season_id)
        assert len(matches) == 5 * 4
        clubs = set(world.clubs["ESP"])
        for m in matches:
            assert m.home_club_id in clubs
            assert m.away_club_id in clubs

    def test_league_with_one_club_is_skipped(self, context):
        world = build_world(context, {"ENG": 4, "WAL": 1})
        season_id = _create_season(context)
        generate_fixtures(context, season_id)

        comps = {m.competition_id for m in _matches(context, season_id)}
        assert comps == {world.leagues["ENG"]}

    def test_unknown_season_schedules_nothing(self, context, world):
        assert generate_fixtures(context, 999) == 0
        with context.session_scope() as session:
            assert MatchRepository(session).get_for_season(999) == []

    def test_idempotent(self, context, world):
        season_id = _create_season(context)
        assert generate_fixtures(context, season_id) == 12
        assert generate_fixtures(context, season_id) == 0
        assert len(_matches(context, season_id)) == 12

    def test_leagues_are_scheduled_per_nation(self, context):
        world = build_world(context, {"ENG": 4, "ITA": 6})
        season_id = _create_season(context)
        assert generate_fixtures(context, season_id) == 12 + 30

        for m in _matches(context, season_id):
            nation = "ENG" if m.competition_id == world.leagues["ENG"] else "ITA"
            assert m.home_club_id in world.clubs[nation]
