"""Matchday Match Simulator — the single match outcome model.

Poisson-based match engine with:
- Position-weighted attack/defense strengths from the 1-20 attribute map
- Additive home advantage and a linear expected-goals model
- Goal/assist attribution weighted by position propensity, finishing/passing and overall
- Attribute-scaled counters (shots, passes, tackles, interceptions, fouls)
- Discipline-driven cards, overall-scaled injury rolls
- Per-player match ratings (4.0–10.0) and man-of-the-match selection

All tuning constants, including the position tables, are hot-reloadable
from the "match" section of rules.json.
"""

from __future__ import annotations

import logging
import math
import threading
from pathlib import Path

import numpy as np

from matchday.engine.match_result import (
    EventType,
    MatchEvent,
    MatchResult,
    PlayerMatchStats,
)
from matchday.models.player import LineupPlayer
from matchday.utils.rules import load_section

logger = logging.getLogger(__name__)

LINEUP_SIZE = 11


# ── Default position tables ─────────────────────────────────────────────

DEFAULT_POSITION_CATEGORIES: dict[str, list[str]] = {
    "attack": ["ST", "CF", "LW", "RW", "CAM"],
    "midfield": ["LM", "RM", "CM", "CDM"],
    "defense": ["LB", "RB", "LWB", "RWB", "CB"],
    "goalkeeper": ["GK"],
}

DEFAULT_GOAL_PROPENSITY: dict[str, float] = {
    "ST": 0.35, "CF": 0.25, "LW": 0.15, "RW": 0.15, "CAM": 0.08,
    "CM": 0.04, "CDM": 0.01, "LM": 0.03, "RM": 0.03,
    "LB": 0.005, "RB": 0.005, "LWB": 0.01, "RWB": 0.01, "CB": 0.005,
    "GK": 0.0,
}

DEFAULT_ASSIST_PROPENSITY: dict[str, float] = {
    "ST": 0.05, "CF": 0.10, "LW": 0.15, "RW": 0.15, "CAM": 0.25,
    "CM": 0.15, "CDM": 0.08, "LM": 0.12, "RM": 0.12,
    "LB": 0.05, "RB": 0.05, "LWB": 0.08, "RWB": 0.08, "CB": 0.01,
    "GK": 0.0,
}

DEFAULT_INJURY_TYPES: list[str] = [
    "Muscle Strain", "Ankle Sprain", "ACL Tear", "Hamstring Injury",
    "Concussion", "Fracture", "Tendonitis",
]

# Attribute blends per role: (attribute, weight)
ATTACKER_ATTACK_BLEND = (
    ("Finishing", 0.30), ("Dribbling", 0.25), ("Passing", 0.20), ("Vision", 0.15), ("Pace", 0.10),
)
MIDFIELD_ATTACK_BLEND = (
    ("Passing", 0.30), ("Vision", 0.25), ("Dribbling", 0.15), ("Tackling", 0.15), ("Composure", 0.15),
)
MIDFIELD_DEFENSE_BLEND = (
    ("Tackling", 0.30), ("Marking", 0.20), ("Passing", 0.20), ("Composure", 0.15), ("Strength", 0.15),
)
DEFENDER_DEFENSE_BLEND = (
    ("Tackling", 0.35), ("Marking", 0.35), ("Strength", 0.15), ("Composure", 0.15),
)

# Propensity used for positions missing from the tables (or listed as 0)
MIN_PROPENSITY = 0.001


class MatchSimulator:
    """Fast match simulator — Poisson goals + rich per-player stats.

    The simulator itself holds only read-only tuning state, so one instance
    can serve many worker threads. Each call draws from its own generator
    spawned from the simulator's seed sequence.
    """

    def __init__(self, rules_path: str | Path | None = None, seed: int | None = None):
        """Initialize with rules.json for tuning constants.

        Args:
            rules_path: Path to rules.json. If None, uses built-in defaults.
            seed: Root seed for reproducible simulations. None = OS entropy.
        """
        self.home_advantage = 3.0
        self.base_expected_goals = 1.5
        self.goals_per_strength_point = 0.025
        self.strength_scale = 4.95
        self.default_line_strength = 12.0
        self.assist_probability = 0.85
        self.injury_base_probability = 0.01
        self.yellow_card_base_probability = 0.02
        self.red_card_base_probability = 0.002
        self.motm_count = 2
        self.position_categories = _invert_categories(DEFAULT_POSITION_CATEGORIES)
        self.goal_propensity = dict(DEFAULT_GOAL_PROPENSITY)
        self.assist_propensity = dict(DEFAULT_ASSIST_PROPENSITY)
        self.injury_types = list(DEFAULT_INJURY_TYPES)

        self._seed_sequence = np.random.SeedSequence(seed)
        self._seed_lock = threading.Lock()

        if rules_path is not None:
            self._load_rules(rules_path)

    def _load_rules(self, rules_path: str | Path) -> None:
        """Load tuning constants from the "match" section of rules.json."""
        match_rules = load_section(rules_path, "match")

        self.home_advantage = match_rules.get("home_advantage", self.home_advantage)
        self.base_expected_goals = match_rules.get("base_expected_goals", self.base_expected_goals)
        self.goals_per_strength_point = match_rules.get(
            "goals_per_strength_point", self.goals_per_strength_point
        )
        self.strength_scale = match_rules.get("strength_scale", self.strength_scale)
        self.default_line_strength = match_rules.get("default_line_strength", self.default_line_strength)
        self.assist_probability = match_rules.get("assist_probability", self.assist_probability)
        self.injury_base_probability = match_rules.get(
            "injury_base_probability", self.injury_base_probability
        )
        self.yellow_card_base_probability = match_rules.get(
            "yellow_card_base_probability", self.yellow_card_base_probability
        )
        self.red_card_base_probability = match_rules.get(
            "red_card_base_probability", self.red_card_base_probability
        )
        self.motm_count = int(match_rules.get("motm_count", self.motm_count))

        if "position_categories" in match_rules:
            self.position_categories = _invert_categories(match_rules["position_categories"])
        if "goal_propensity" in match_rules:
            self.goal_propensity.update(match_rules["goal_propensity"])
        if "assist_propensity" in match_rules:
            self.assist_propensity.update(match_rules["assist_propensity"])
        if match_rules.get("injury_types"):
            self.injury_types = list(match_rules["injury_types"])

    def reload(self, rules_path: str | Path) -> None:
        """Hot-reload all tuning constants."""
        self._load_rules(rules_path)

    def spawn_rng(self) -> np.random.Generator:
        """Independent generator for one simulation (safe across threads)."""
        with self._seed_lock:
            child = self._seed_sequence.spawn(1)[0]
        return np.random.default_rng(child)

    # ── Main Simulation ─────────────────────────────────────────────────

    def simulate_match(
        self,
        match_id: int,
        home_club_id: int,
        away_club_id: int,
        home_lineup: list[LineupPlayer],
        away_lineup: list[LineupPlayer],
        home_team_name: str = "Home",
        away_team_name: str = "Away",
        rng: np.random.Generator | None = None,
    ) -> MatchResult:
        """Simulate a full match between two starting lineups.

        Args:
            match_id: Fixture being resolved.
            home_club_id: Home club id.
            away_club_id: Away club id.
            home_lineup: Home starters (first 11 play).
            away_lineup: Away starters (first 11 play).
            home_team_name: Display name for home team.
            away_team_name: Display name for away team.
            rng: Generator to draw from. Spawned from the seed sequence if None.

        Returns:
            MatchResult with complete match data. When either side has fewer
            than 11 players the result is a 0-0 with ``insufficient_lineup`` set.
        """
        if rng is None:
            rng = self.spawn_rng()

        home_xi = home_lineup[:LINEUP_SIZE]
        away_xi = away_lineup[:LINEUP_SIZE]

        if len(home_xi) < LINEUP_SIZE or len(away_xi) < LINEUP_SIZE:
            return self._insufficient_lineup_result(
                match_id, home_club_id, away_club_id,
                home_team_name, away_team_name, len(home_xi), len(away_xi),
            )

        events: list[MatchEvent] = [MatchEvent(
            minute=0,
            event_type=EventType.KICKOFF,
            detail=f"Kick-off: {home_team_name} vs {away_team_name}",
        )]

        # 1. Team strengths
        home_attack, home_defense = self._calculate_team_ratings(home_xi)
        away_attack, away_defense = self._calculate_team_ratings(away_xi)

        # 2. Expected goals (home side gets the additive bonus)
        home_xg = self._expected_goals(home_attack + self.home_advantage, away_defense)
        away_xg = self._expected_goals(away_attack, home_defense)

        # 3. Goals
        home_goals = self._poisson(rng, home_xg)
        away_goals = self._poisson(rng, away_xg)

        # 4. Per-player stats, goal/assist attribution, cards, injuries
        home_stats = self._generate_player_stats(
            rng, home_xi, home_club_id, home_goals, home_team_name, events
        )
        away_stats = self._generate_player_stats(
            rng, away_xi, away_club_id, away_goals, away_team_name, events
        )

        # 5. Man of the match
        motm_ids = self._select_motm(home_stats + away_stats)

        result = MatchResult(
            match_id=match_id,
            home_club_id=home_club_id,
            away_club_id=away_club_id,
            home_goals=home_goals,
            away_goals=away_goals,
            home_xg=round(home_xg, 2),
            away_xg=round(away_xg, 2),
            home_team=home_team_name,
            away_team=away_team_name,
            home_player_stats=home_stats,
            away_player_stats=away_stats,
            motm_player_ids=motm_ids,
        )

        events.append(MatchEvent(
            minute=90,
            event_type=EventType.FULL_TIME,
            detail=f"Full time: {result.scoreline()}",
        ))
        # Stable sort keeps kick-off first and full time last within a minute
        events.sort(key=lambda e: e.minute)
        result.events = events
        result.log_text = f"{result.scoreline()} (xG: {result.home_xg}-{result.away_xg})"

        logger.info(f"Match {match_id}: {result.log_text}")
        return result

    # ── Team Rating Calculation ──────────────────────────────────────────

    def category_of(self, position: str) -> str | None:
        """Role category of a position: attack, midfield, defense or goalkeeper."""
        return self.position_categories.get(position)

    def _calculate_team_ratings(self, lineup: list[LineupPlayer]) -> tuple[float, float]:
        """Average attack and defense blends over the lineup, scaled to team strength.

        Attackers only feed attack, defenders and the goalkeeper only feed
        defense, midfielders feed both. Returns (attack, defense).
        """
        attack_scores: list[float] = []
        defense_scores: list[float] = []

        for player in lineup:
            category = self.category_of(player.position.value)

            if category == "attack":
                attack_scores.append(_blend(player, ATTACKER_ATTACK_BLEND))
            elif category == "midfield":
                attack_scores.append(_blend(player, MIDFIELD_ATTACK_BLEND))
                defense_scores.append(_blend(player, MIDFIELD_DEFENSE_BLEND))
            elif category == "defense":
                defense_scores.append(_blend(player, DEFENDER_DEFENSE_BLEND))
            elif category == "goalkeeper":
                defense_scores.append(float(player.attribute("Goalkeeping")))

        attack = sum(attack_scores) / len(attack_scores) if attack_scores else self.default_line_strength
        defense = sum(defense_scores) / len(defense_scores) if defense_scores else self.default_line_strength
        return attack * self.strength_scale, defense * self.strength_scale

    def _expected_goals(self, attack: float, opponent_defense: float) -> float:
        return max(
            0.0,
            self.base_expected_goals + (attack - opponent_defense) * self.goals_per_strength_point,
        )

    @staticmethod
    def _poisson(rng: np.random.Generator, expected_goals: float) -> int:
        """Knuth's product-of-uniforms Poisson draw."""
        limit = math.exp(-expected_goals)
        draws = 0
        product = 1.0
        while True:
            draws += 1
            product *= rng.random()
            if product <= limit:
                return draws - 1

    # ── Per-Player Stats & Events ────────────────────────────────────────

    def _generate_player_stats(
        self,
        rng: np.random.Generator,
        lineup: list[LineupPlayer],
        club_id: int,
        team_goals: int,
        team_name: str,
        events: list[MatchEvent],
    ) -> list[PlayerMatchStats]:
        """Build the stat lines for one side and append its events."""
        stats = [
            PlayerMatchStats(
                player_id=p.player_id,
                club_id=club_id,
                name=p.name,
                position=p.position.value,
            )
            for p in lineup
        ]

        self._attribute_goals(rng, lineup, stats, club_id, team_goals, team_name, events)

        for player, stat in zip(lineup, stats):
            self._fill_counters(rng, player, stat)
            self._roll_cards(rng, player, stat, club_id, events)
            stat.rating = self._rate(player, stat)
            self._roll_injury(rng, player, stat, club_id, events)

        return stats

    def _attribute_goals(
        self,
        rng: np.random.Generator,
        lineup: list[LineupPlayer],
        stats: list[PlayerMatchStats],
        club_id: int,
        num_goals: int,
        team_name: str,
        events: list[MatchEvent],
    ) -> None:
        """Attribute goals and assists to players, weighted by propensity and skill."""
        if num_goals == 0:
            return

        goal_weights = np.array([
            self._propensity(self.goal_propensity, p.position.value)
            * (p.attribute("Finishing", 1) / 20)
            * (p.overall / 100)
            for p in lineup
        ])
        goal_probs = goal_weights / goal_weights.sum()

        for _ in range(num_goals):
            scorer_idx = int(rng.choice(len(lineup), p=goal_probs))
            scorer = lineup[scorer_idx]
            stats[scorer_idx].goals += 1
            minute = int(rng.integers(1, 91))
            detail = f"{scorer.name} scores for {team_name}"

            if rng.random() < self.assist_probability:
                assist_weights = np.array([
                    0.0 if i == scorer_idx else
                    self._propensity(self.assist_propensity, p.position.value)
                    * ((p.attribute("Passing", 1) + p.attribute("Vision", 1)) / 40)
                    * (p.overall / 100)
                    for i, p in enumerate(lineup)
                ])
                total = assist_weights.sum()
                if total > 0:
                    assister_idx = int(rng.choice(len(lineup), p=assist_weights / total))
                    stats[assister_idx].assists += 1
                    detail += f" (assist: {lineup[assister_idx].name})"

            events.append(MatchEvent(
                minute=minute,
                event_type=EventType.GOAL,
                detail=detail,
                player_id=scorer.player_id,
                club_id=club_id,
            ))

    def _fill_counters(
        self, rng: np.random.Generator, player: LineupPlayer, stat: PlayerMatchStats
    ) -> None:
        """Randomize shots, passes and defensive actions within attribute-scaled ranges."""
        category = self.category_of(player.position.value)

        finishing = player.attribute("Finishing", 1)
        vision = player.attribute("Vision", 1)
        stat.shots = round((finishing + vision) / 2 * rng.uniform(0.1, 1.5))
        if category == "attack":
            stat.shots += int(rng.integers(0, 4))
        elif category == "midfield":
            stat.shots += int(rng.integers(0, 2))
        stat.shots_on_target = round(stat.shots * rng.uniform(0.3, 0.7))
        # Every goal was a shot on target
        stat.shots_on_target = max(stat.shots_on_target, stat.goals)
        stat.shots = max(stat.shots, stat.shots_on_target)

        stat.passes = round(player.attribute("Passing", 1) * rng.uniform(1, 4))
        if category in ("midfield", "defense"):
            stat.passes += 10

        if category == "defense" or player.position.value == "CDM":
            tackling = player.attribute("Tackling", 1)
            marking = player.attribute("Marking", 1)
            stat.tackles_won = round((tackling + marking) / 2 * rng.uniform(0.5, 2))
            stat.defenses = stat.tackles_won
            stat.interceptions = round(vision * rng.uniform(0.2, 1.5))
        elif category == "goalkeeper":
            stat.defenses = round(player.attribute("Goalkeeping", 1) * rng.uniform(0.5, 3))

        discipline = player.attribute("Discipline", 20)
        stat.fouls_committed = min(5, round(int(rng.integers(0, 4)) + (20 - discipline) / 10))

    def _roll_cards(
        self,
        rng: np.random.Generator,
        player: LineupPlayer,
        stat: PlayerMatchStats,
        club_id: int,
        events: list[MatchEvent],
    ) -> None:
        """Yellow with probability rising with fouls and falling with discipline; red only after a yellow."""
        discipline = player.attribute("Discipline", 20)
        yellow_prob = (
            self.yellow_card_base_probability
            + stat.fouls_committed * 0.01
            + (20 - discipline) * 0.005
        )
        if rng.random() >= yellow_prob:
            return

        stat.yellow_cards = 1
        events.append(MatchEvent(
            minute=int(rng.integers(1, 91)),
            event_type=EventType.YELLOW_CARD,
            detail=f"Yellow card for {player.name}",
            player_id=player.player_id,
            club_id=club_id,
        ))

        red_prob = (
            self.red_card_base_probability
            + stat.fouls_committed * 0.005
            + (20 - discipline) * 0.001
        )
        if rng.random() < red_prob:
            stat.red_cards = 1
            events.append(MatchEvent(
                minute=int(rng.integers(1, 91)),
                event_type=EventType.RED_CARD,
                detail=f"Red card for {player.name}",
                player_id=player.player_id,
                club_id=club_id,
            ))

    @staticmethod
    def _rate(player: LineupPlayer, stat: PlayerMatchStats) -> float:
        """Match rating from overall plus contribution bonuses, clamped to 4.0–10.0."""
        rating = (
            6.0
            + (player.overall - 60) / 20
            + stat.goals * 0.8
            + stat.assists * 0.5
            # defenses already holds tackles won (outfield) or saves (goalkeeper)
            + (stat.defenses + stat.interceptions) / 15 * 0.1
            + stat.passes / 50 * 0.05
            + stat.shots_on_target / 5 * 0.05
            - stat.yellow_cards * 0.3
            - stat.red_cards * 1.0
        )
        return max(4.0, min(10.0, round(rating, 1)))

    def _roll_injury(
        self,
        rng: np.random.Generator,
        player: LineupPlayer,
        stat: PlayerMatchStats,
        club_id: int,
        events: list[MatchEvent],
    ) -> None:
        """Low fixed-rate injury roll, more likely for weaker players."""
        injury_prob = self.injury_base_probability + (100 - player.overall) * 0.0005
        if rng.random() >= injury_prob:
            return

        injury_type = str(rng.choice(self.injury_types))
        injury_days = self._roll_injury_severity(rng)
        stat.injured = True
        stat.injury_type = injury_type
        stat.injury_days = injury_days
        events.append(MatchEvent(
            minute=int(rng.integers(1, 91)),
            event_type=EventType.INJURY,
            detail=f"{player.name} suffered a {injury_type} (out for {injury_days} days)",
            player_id=player.player_id,
            club_id=club_id,
        ))

    def _select_motm(self, stats: list[PlayerMatchStats]) -> list[int]:
        ranked = sorted(stats, key=lambda s: (-s.rating, s.player_id))
        chosen = ranked[:max(0, self.motm_count)]
        for stat in chosen:
            stat.is_motm = True
        return [s.player_id for s in chosen]

    # ── Helpers ──────────────────────────────────────────────────────────

    @staticmethod
    def _propensity(table: dict[str, float], position: str) -> float:
        return table.get(position) or MIN_PROPENSITY

    @staticmethod
    def _roll_injury_severity(rng: np.random.Generator) -> int:
        """Roll injury duration based on severity distribution.

        50% minor (1-7 days), 30% medium (8-28), 15% serious (29-90), 5% season-ending.
        """
        roll = rng.random()
        if roll < 0.50:
            return int(rng.integers(1, 8))
        elif roll < 0.80:
            return int(rng.integers(8, 29))
        elif roll < 0.95:
            return int(rng.integers(29, 91))
        else:
            return int(rng.integers(91, 181))

    @staticmethod
    def _insufficient_lineup_result(
        match_id: int,
        home_club_id: int,
        away_club_id: int,
        home_team_name: str,
        away_team_name: str,
        home_count: int,
        away_count: int,
    ) -> MatchResult:
        short = []
        if home_count < LINEUP_SIZE:
            short.append(f"{home_team_name} ({home_count} players)")
        if away_count < LINEUP_SIZE:
            short.append(f"{away_team_name} ({away_count} players)")
        log_text = (
            f"{home_team_name} 0 - 0 {away_team_name}: insufficient lineup for "
            + ", ".join(short)
        )
        logger.warning(f"Match {match_id}: {log_text}")
        return MatchResult(
            match_id=match_id,
            home_club_id=home_club_id,
            away_club_id=away_club_id,
            home_goals=0,
            away_goals=0,
            home_team=home_team_name,
            away_team=away_team_name,
            insufficient_lineup=True,
            log_text=log_text,
        )


def _blend(player: LineupPlayer, weights: tuple[tuple[str, float], ...]) -> float:
    return sum(player.attribute(name) * weight for name, weight in weights)


def _invert_categories(categories: dict[str, list[str]]) -> dict[str, str]:
    """{"attack": ["ST", ...]} → {"ST": "attack", ...}"""
    return {
        position: category
        for category, positions in categories.items()
        for position in positions
    }
