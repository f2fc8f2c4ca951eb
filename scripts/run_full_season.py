#!/usr/bin/env python3
"""run_full_season.py — Advance a save day by day until its season closes.

Usage:
    python scripts/run_full_season.py
    python scripts/run_full_season.py --db-path data/career.db --save-id career
    python scripts/run_full_season.py --until 2025-12-31
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from matchday.utils.runtime import validate_runtime

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("season")


def main() -> int:
    parser = argparse.ArgumentParser(description="matchday — Full Season Simulation")
    parser.add_argument("--db-path", default="data/save.db", help="SQLite database path")
    parser.add_argument("--save-id", default="default", help="Save identifier")
    parser.add_argument("--rules", default="config/rules.json", help="Path to rules.json")
    parser.add_argument(
        "--until", type=date.fromisoformat, default=None,
        help="Stop on this date instead of at the end of the season (YYYY-MM-DD)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")
    args = parser.parse_args()

    try:
        validate_runtime("run_full_season", rules_path=args.rules)
    except RuntimeError as exc:
        logger.error(str(exc))
        return 1

    if args.quiet:
        logging.getLogger("matchday").setLevel(logging.WARNING)

    from sqlalchemy import func, select

    from matchday.db.models import MatchDB, PlayerDB, PlayerMatchStatsDB
    from matchday.db.repository import CompetitionRepository
    from matchday.db.session import GameContext
    from matchday.engine.day_loop import club_names
    from matchday.engine.game_session import GameSession
    from matchday.engine.standings import format_table
    from matchday.errors import MatchdayError

    context = GameContext.open(args.db_path, save_id=args.save_id)
    try:
        game = GameSession(context, rules_path=args.rules, seed=args.seed)
        season = game.active_season()
        if season is None:
            logger.error("No active season in this save. Run seed_world.py first.")
            return 1

        start_time = time.time()
        try:
            if args.until is not None:
                results = game.run_until(args.until)
            else:
                results = game.run_season()
        except MatchdayError as exc:
            logger.error(f"Simulation stopped: {exc}")
            return 1
        elapsed = time.time() - start_time

        played = sum(r.summary.matches_played for r in results)
        skipped = sum(len(r.summary.failures) for r in results)

        print()
        print("=" * 60)
        print(f"  Season {season.id}: {len(results)} days in {elapsed:.1f} seconds")
        print(f"  {played} matches played, {skipped} skipped")
        print("=" * 60)

        with context.session_scope() as session:
            competitions = CompetitionRepository(session).get_for_season(season.id)
        for competition in competitions:
            if not competition.keeps_table:
                continue
            table = game.get_standings(competition.id, season.id)
            if not table:
                continue
            with context.session_scope() as session:
                names = club_names(session, [row.club_id for row in table])
            print()
            print(f"  {competition.name}")
            print(format_table(table, names))

        goals = func.sum(PlayerMatchStatsDB.goals)
        with context.session_scope() as session:
            scorers = session.execute(
                select(PlayerDB.first_name, PlayerDB.last_name, goals.label("goals"))
                .join(PlayerMatchStatsDB, PlayerMatchStatsDB.player_id == PlayerDB.id)
                .join(MatchDB, MatchDB.id == PlayerMatchStatsDB.match_id)
                .where(MatchDB.season_id == season.id)
                .group_by(PlayerDB.id)
                .having(goals > 0)
                .order_by(goals.desc(), PlayerDB.id)
                .limit(10)
            ).all()
        if scorers:
            print()
            print("  Top Scorers:")
            for first_name, last_name, count in scorers:
                print(f"     {count:>3} goals — {first_name} {last_name}")

        report = next((r.season_end for r in results if r.season_end is not None), None)
        if report is not None:
            print()
            print(f"  Trophies: {len(report.trophies)}")
            for award, competition_id, player_id in report.awards:
                scope = "season" if competition_id == 0 else f"competition {competition_id}"
                print(f"     {award} ({scope}): player {player_id}")
            print(f"  Retirements: {len(report.retired)} | Free agents: {len(report.released)}")
            print(f"  Next season {report.next_season_id} starts {game.current_date()}")
        elif results and results[-1].season_end_error:
            print()
            print(f"  Season transition rolled back: {results[-1].season_end_error}")
            print("  Run again to retry it.")

        print("=" * 60)
        return 0
    finally:
        context.close()


if __name__ == "__main__":
    raise SystemExit(main())
