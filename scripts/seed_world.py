#!/usr/bin/env python3
"""seed_world.py — Create a playable save: nations, clubs, squads, leagues.

Generates one national league per nation, random squads on contracts that
run to the end of the first season, then starts a new game on the chosen
date (first season, transfer windows, clock and fixtures).

Usage:
    python scripts/seed_world.py
    python scripts/seed_world.py --nations ENG ESP ITA --clubs-per-nation 10
    python scripts/seed_world.py --db-path data/career.db --save-id career --seed 7
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from matchday.utils.runtime import validate_runtime

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("seed_world")

FIRST_NAMES = [
    "James", "Lucas", "Mateo", "Luca", "Noah", "Hugo", "Leon", "Marco",
    "Oliver", "Diego", "Jan", "Tomas", "Arne", "Rui", "Kai", "Sam",
]
LAST_NAMES = [
    "Smith", "Garcia", "Rossi", "Müller", "Silva", "Dubois", "Jansen", "Novak",
    "Jones", "Lopez", "Bianchi", "Schmidt", "Costa", "Martin", "Visser", "Kowalski",
]
# Starting XI shape followed by bench cover
SQUAD_SHAPE = [
    "GK", "RB", "CB", "CB", "LB", "RM", "CM", "CM", "LM", "ST", "ST",
    "GK", "CB", "RWB", "CDM", "CAM", "LW", "CF",
]


def main() -> int:
    parser = argparse.ArgumentParser(description="matchday — Seed a new save")
    parser.add_argument("--db-path", default="data/save.db", help="SQLite database path")
    parser.add_argument("--save-id", default="default", help="Save identifier")
    parser.add_argument("--rules", default="config/rules.json", help="Path to rules.json")
    parser.add_argument("--nations", nargs="+", default=["ENG", "ESP"], help="Nation codes")
    parser.add_argument("--clubs-per-nation", type=int, default=8)
    parser.add_argument("--squad-size", type=int, default=len(SQUAD_SHAPE))
    parser.add_argument(
        "--start", type=date.fromisoformat, default=date(2025, 8, 1),
        help="First day of the first season (YYYY-MM-DD)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    args = parser.parse_args()

    try:
        validate_runtime("seed_world", rules_path=args.rules)
    except RuntimeError as exc:
        logger.error(str(exc))
        return 1

    import numpy as np

    from matchday.db.repository import ClubRepository, CompetitionRepository, PlayerRepository
    from matchday.db.session import GameContext
    from matchday.engine.game_session import GameSession
    from matchday.errors import GameStateError
    from matchday.models.club import Club
    from matchday.models.competition import Competition, CompetitionType
    from matchday.models.player import ATTRIBUTE_NAMES, Player, Position
    from matchday.models.season import season_end_for

    rng = np.random.default_rng(args.seed)
    context = GameContext.open(args.db_path, save_id=args.save_id)
    contract_end = season_end_for(args.start)

    try:
        with context.session_scope() as session:
            clubs = ClubRepository(session)
            players = PlayerRepository(session)
            competitions = CompetitionRepository(session)

            if clubs.get_all():
                logger.error(f"{args.db_path} already has clubs — pick a fresh database")
                return 1

            club_id = 0
            player_id = 0
            for comp_id, nation in enumerate(args.nations, start=1):
                competitions.add(Competition(
                    id=comp_id, name=f"{nation} League", type=CompetitionType.LEAGUE, nation=nation,
                ))
                for _ in range(args.clubs_per_nation):
                    club_id += 1
                    reputation = int(rng.integers(30, 90))
                    clubs.add(Club(
                        id=club_id,
                        name=f"{nation} United {club_id}",
                        abbreviation=f"{nation[:2]}{club_id}"[:5],
                        nation=nation,
                        reputation=reputation,
                        stadium_capacity=int(rng.integers(8, 60)) * 1000,
                    ))
                    for slot in range(args.squad_size):
                        player_id += 1
                        attributes = {
                            name: int(np.clip(rng.normal(8 + reputation / 10, 3), 1, 20))
                            for name in ATTRIBUTE_NAMES
                        }
                        overall = int(np.clip(np.mean(list(attributes.values())) * 5, 1, 99))
                        players.add(Player(
                            id=player_id,
                            first_name=str(rng.choice(FIRST_NAMES)),
                            last_name=str(rng.choice(LAST_NAMES)),
                            position=Position(SQUAD_SHAPE[slot % len(SQUAD_SHAPE)]),
                            overall=overall,
                            birth_date=date(args.start.year - int(rng.integers(18, 37)), 1, 1)
                            .replace(month=int(rng.integers(1, 13))),
                            nation=nation,
                            attributes=attributes,
                        ))
                        players.add_contract(
                            player_id, club_id, args.start, contract_end,
                            monthly_wage=overall * 1_000,
                        )
                logger.info(f"{nation}: {args.clubs_per_nation} clubs seeded")

        game = GameSession(context, rules_path=args.rules, seed=args.seed)
        try:
            season = game.new_game(args.start)
        except GameStateError as exc:
            logger.error(str(exc))
            return 1

        print()
        print("=" * 60)
        print(f"  Save '{args.save_id}' ready in {args.db_path}")
        print(f"  {club_id} clubs, {player_id} players, {len(args.nations)} leagues")
        print(f"  Season {season.id}: {season.start_date} → {season.end_date}")
        print("=" * 60)
        return 0
    finally:
        context.close()


if __name__ == "__main__":
    raise SystemExit(main())
