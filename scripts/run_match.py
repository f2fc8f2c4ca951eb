#!/usr/bin/env python3
"""run_match.py — Simulate one scheduled fixture outside the day loop.

Usage:
    python scripts/run_match.py --match-id 12
    python scripts/run_match.py --match-id 12 --db-path data/career.db --save-id career
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from matchday.utils.runtime import validate_runtime

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("run_match")


def main() -> int:
    parser = argparse.ArgumentParser(description="matchday — Single Match Sim")
    parser.add_argument("--match-id", type=int, required=True, help="Scheduled match id")
    parser.add_argument("--db-path", default="data/save.db")
    parser.add_argument("--save-id", default="default")
    parser.add_argument("--rules", default="config/rules.json")
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    try:
        validate_runtime("run_match", rules_path=args.rules)
    except RuntimeError as exc:
        logger.error(str(exc))
        return 1

    from matchday.db.session import GameContext
    from matchday.engine.game_session import GameSession
    from matchday.errors import MatchdayError

    context = GameContext.open(args.db_path, save_id=args.save_id)
    try:
        game = GameSession(context, rules_path=args.rules, seed=args.seed)
        try:
            result = game.simulate_match(args.match_id)
        except MatchdayError as exc:
            logger.error(str(exc))
            return 1

        print()
        print("=" * 60)
        print(f"  {result.scoreline()}")
        print(f"  xG: {result.home_xg:.2f} - {result.away_xg:.2f}")
        print("=" * 60)

        if result.insufficient_lineup:
            print(f"  {result.log_text}")
            return 0

        for event in result.goal_events():
            print(f"  {event.minute}' {event.detail}")

        injuries = result.injury_events()
        if injuries:
            print()
            for event in injuries:
                print(f"  {event.minute}' {event.detail}")

        for label, stats in (("HOME", result.home_player_stats), ("AWAY", result.away_player_stats)):
            print()
            print(f"  {label} Ratings:")
            for stat in sorted(stats, key=lambda s: s.rating, reverse=True):
                markers = ""
                if stat.goals > 0:
                    markers += f" G×{stat.goals}"
                if stat.assists > 0:
                    markers += f" A×{stat.assists}"
                if stat.is_motm:
                    markers += " MOTM"
                if stat.injured:
                    markers += f" injured ({stat.injury_type}, {stat.injury_days}d)"
                print(f"    {stat.rating:4.1f}  {stat.name} ({stat.position}){markers}")

        print()
        return 0
    finally:
        context.close()


if __name__ == "__main__":
    raise SystemExit(main())
