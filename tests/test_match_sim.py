"""Tests for the match engine — MatchSimulator and MatchResult.

Covers: score bounds, goal/assist attribution, rating clamp, MOTM,
strength model, insufficient lineups, determinism and rules loading.
"""

from __future__ import annotations

import json
import statistics

import numpy as np
import pytest

from conftest import RULES_PATH, make_attributes
from matchday.engine.match_result import EventType, MatchResult, PlayerMatchStats
from matchday.engine.match_sim import LINEUP_SIZE, MatchSimulator
from matchday.models.player import LineupPlayer, Position


# ── Helpers ──────────────────────────────────────────────────────────────

XI_POSITIONS = [
    Position.GK, Position.RB, Position.CB, Position.CB, Position.LB,
    Position.RM, Position.CM, Position.CM, Position.LM,
    Position.ST, Position.ST,
]


def _make_lineup(
    club_id: int,
    level: int = 12,
    overall: int = 70,
    size: int = LINEUP_SIZE,
    **attribute_overrides: int,
) -> list[LineupPlayer]:
    return [
        LineupPlayer(
            player_id=club_id * 100 + i,
            club_id=club_id,
            name=f"Player {club_id}-{i}",
            position=XI_POSITIONS[i % len(XI_POSITIONS)],
            overall=overall,
            attributes=make_attributes(level, **attribute_overrides),
            is_captain=i == 0,
        )
        for i in range(size)
    ]


def _simulate(sim: MatchSimulator, home=None, away=None, match_id: int = 1) -> MatchResult:
    return sim.simulate_match(
        match_id, 1, 2,
        home if home is not None else _make_lineup(1),
        away if away is not None else _make_lineup(2),
        home_team_name="Home FC",
        away_team_name="Away FC",
    )


@pytest.fixture
def sim() -> MatchSimulator:
    return MatchSimulator(seed=42)


# ═══════════════════════════════════════════════════════════════════════
# Core outcome properties
# ═══════════════════════════════════════════════════════════════════════


class TestOutcome:
    def test_scores_non_negative(self, sim):
        for i in range(200):
            result = _simulate(sim, match_id=i)
            assert result.home_goals >= 0
            assert result.away_goals >= 0

    def test_ratings_clamped(self, sim):
        strong = _make_lineup(1, level=20, overall=99)
        weak = _make_lineup(2, level=1, overall=1)
        for i in range(100):
            result = _simulate(sim, strong, weak, match_id=i)
            for stat in result.all_player_stats:
                assert 4.0 <= stat.rating <= 10.0

    def test_tackles_count_once_in_rating(self):
        defender = _make_lineup(1, overall=60)[2]
        keeper = _make_lineup(1, overall=60)[0]
        tackler = PlayerMatchStats(1, 1, "CB", "CB", tackles_won=15, defenses=15)
        saver = PlayerMatchStats(2, 1, "GK", "GK", defenses=15)

        assert MatchSimulator._rate(defender, tackler) == 6.1
        assert MatchSimulator._rate(keeper, saver) == 6.1

    def test_player_goals_sum_to_score(self, sim):
        for i in range(200):
            result = _simulate(sim, match_id=i)
            assert sum(s.goals for s in result.home_player_stats) == result.home_goals
            assert sum(s.goals for s in result.away_player_stats) == result.away_goals
            assert len(result.goal_events()) == result.home_goals + result.away_goals

    def test_assist_rate_near_nominal(self, sim):
        goals = assists = 0
        for i in range(1500):
            result = _simulate(sim, match_id=i)
            goals += result.home_goals + result.away_goals
            assists += sum(s.assists for s in result.all_player_stats)
        assert goals > 1000
        rate = assists / goals
        assert 0.78 < rate < 0.92

    def test_scorer_never_assists_own_goal(self, sim):
        for i in range(300):
            result = _simulate(sim, match_id=i)
            for event in result.goal_events():
                if "(assist:" in event.detail:
                    scorer_name = event.detail.split(" scores for ")[0]
                    assister_name = event.detail.split("(assist: ")[1].rstrip(")")
                    assert scorer_name != assister_name

    def test_average_goals_realistic(self, sim):
        totals = []
        for i in range(300):
            result = _simulate(sim, match_id=i)
            totals.append(result.home_goals + result.away_goals)
        assert 1.5 < statistics.mean(totals) < 5.0

    def test_goalkeeper_rarely_scores(self, sim):
        keeper_goals = 0
        total = 0
        for i in range(500):
            result = _simulate(sim, match_id=i)
            total += result.home_goals
            keeper_goals += result.home_player_stats[0].goals
        assert keeper_goals < total * 0.02


class TestEventsAndMotm:
    def test_events_bracketed_by_kickoff_and_full_time(self, sim):
        result = _simulate(sim)
        assert result.events[0].event_type == EventType.KICKOFF
        assert result.events[-1].event_type == EventType.FULL_TIME
        minutes = [e.minute for e in result.events]
        assert minutes == sorted(minutes)

    def test_motm_are_top_rated(self, sim):
        result = _simulate(sim)
        assert len(result.motm_player_ids) == sim.motm_count
        best = max(s.rating for s in result.all_player_stats)
        motm_stats = [s for s in result.all_player_stats if s.is_motm]
        assert {s.player_id for s in motm_stats} == set(result.motm_player_ids)
        assert any(s.rating == best for s in motm_stats)

    def test_red_card_implies_yellow(self, sim):
        undisciplined = _make_lineup(1, Discipline=1)
        for i in range(200):
            result = _simulate(sim, undisciplined, match_id=i)
            for stat in result.all_player_stats:
                if stat.red_cards:
                    assert stat.yellow_cards == 1

    def test_low_discipline_more_cards(self, sim):
        def cards(lineup):
            return sum(
                sum(s.yellow_cards for s in _simulate(sim, lineup, match_id=i).home_player_stats)
                for i in range(200)
            )

        assert cards(_make_lineup(1, Discipline=2)) > cards(_make_lineup(1, Discipline=20))

    def test_injury_events_match_stats(self, sim):
        weak = _make_lineup(1, overall=1)
        for i in range(200):
            result = _simulate(sim, weak, match_id=i)
            injured = {s.player_id for s in result.all_player_stats if s.injured}
            assert injured == {e.player_id for e in result.injury_events()}
            for stat in result.all_player_stats:
                if stat.injured:
                    assert stat.injury_type in sim.injury_types
                    assert 1 <= stat.injury_days <= 180


class TestInsufficientLineup:
    @pytest.mark.parametrize("home_size,away_size", [(10, 11), (11, 0), (3, 5)])
    def test_short_side_is_goalless_placeholder(self, sim, home_size, away_size):
        result = _simulate(
            sim, _make_lineup(1, size=home_size), _make_lineup(2, size=away_size)
        )
        assert result.insufficient_lineup
        assert (result.home_goals, result.away_goals) == (0, 0)
        assert result.all_player_stats == []
        assert "insufficient lineup" in result.log_text

    def test_extra_players_are_bench(self, sim):
        result = _simulate(sim, _make_lineup(1, size=15))
        assert len(result.home_player_stats) == LINEUP_SIZE


class TestStrengthModel:
    def test_empty_lineup_uses_default_strength(self, sim):
        attack, defense = sim._calculate_team_ratings([])
        assert attack == pytest.approx(sim.default_line_strength * sim.strength_scale)
        assert defense == pytest.approx(sim.default_line_strength * sim.strength_scale)

    def test_goalkeeper_only_feeds_defense(self, sim):
        keeper = _make_lineup(1, size=1, Goalkeeping=20)
        attack, defense = sim._calculate_team_ratings(keeper)
        assert attack == pytest.approx(sim.default_line_strength * sim.strength_scale)
        assert defense == pytest.approx(20 * sim.strength_scale)

    def test_expected_goals_floor(self, sim):
        assert sim._expected_goals(0.0, 1000.0) == 0.0
        assert sim._expected_goals(50.0, 50.0) == pytest.approx(sim.base_expected_goals)

    def test_stronger_side_scores_more(self, sim):
        strong = _make_lineup(1, level=18, overall=90)
        weak = _make_lineup(2, level=6, overall=50)
        diff = []
        for i in range(300):
            result = _simulate(sim, strong, weak, match_id=i)
            diff.append(result.home_goals - result.away_goals)
        assert statistics.mean(diff) > 0.5

    def test_poisson_zero_mean(self):
        rng = np.random.default_rng(0)
        assert all(MatchSimulator._poisson(rng, 0.0) == 0 for _ in range(50))

    def test_poisson_mean(self):
        rng = np.random.default_rng(0)
        draws = [MatchSimulator._poisson(rng, 1.6) for _ in range(5000)]
        assert statistics.mean(draws) == pytest.approx(1.6, abs=0.1)


class TestDeterminismAndRules:
    def test_same_seed_same_results(self):
        a = [_simulate(MatchSimulator(seed=7), match_id=i).scoreline() for i in range(5)]
        b = [_simulate(MatchSimulator(seed=7), match_id=i).scoreline() for i in range(5)]
        assert a == b

    def test_explicit_rng_is_reproducible(self, sim):
        home, away = _make_lineup(1), _make_lineup(2)
        r1 = sim.simulate_match(1, 1, 2, home, away, rng=np.random.default_rng(3))
        r2 = sim.simulate_match(1, 1, 2, home, away, rng=np.random.default_rng(3))
        assert r1.to_dict() == r2.to_dict()

    def test_loads_rules_file(self):
        sim = MatchSimulator(rules_path=RULES_PATH)
        assert sim.home_advantage == 3.0
        assert sim.category_of("CAM") == "attack"
        assert sim.goal_propensity["ST"] == 0.35

    def test_reload_overrides(self, tmp_path):
        rules = {"match": {"home_advantage": 10.0, "motm_count": 1, "assist_probability": 0.0}}
        path = tmp_path / "rules.json"
        path.write_text(json.dumps(rules))

        sim = MatchSimulator(seed=1)
        sim.reload(path)
        assert sim.home_advantage == 10.0
        assert sim.motm_count == 1
        # Untouched keys keep their defaults
        assert sim.base_expected_goals == 1.5

        result = _simulate(sim)
        assert len(result.motm_player_ids) == 1
        assert sum(s.assists for s in result.all_player_stats) == 0

    def test_missing_rules_file_uses_defaults(self, tmp_path):
        sim = MatchSimulator(rules_path=tmp_path / "nope.json")
        assert sim.home_advantage == 3.0


class TestMatchResult:
    def test_points_and_winner(self):
        home_win = MatchResult(match_id=1, home_club_id=1, away_club_id=2, home_goals=2, away_goals=1)
        assert home_win.winner == "home"
        assert (home_win.home_points, home_win.away_points) == (3, 0)

        draw = MatchResult(match_id=2, home_club_id=1, away_club_id=2, home_goals=1, away_goals=1)
        assert draw.winner == "draw"
        assert (draw.home_points, draw.away_points) == (1, 1)

    def test_to_dict(self, sim):
        data = _simulate(sim).to_dict()
        assert set(data) >= {"home_score", "away_score", "motm_player_ids", "match_log"}
