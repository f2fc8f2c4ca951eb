"""Standings accumulator — folds played matches into league table snapshots.

One snapshot row is written per club per match-day it plays, so the table
can be replayed over time. The "current" table is each club's latest row.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matchday.db.repository import StandingRepository
from matchday.db.session import GameContext
from matchday.errors import StandingsUpdateError
from matchday.models.competition import Match
from matchday.models.standing import POINTS_FOR_DRAW, POINTS_FOR_WIN, StandingRow

logger = logging.getLogger(__name__)


def fold_result(
    previous: StandingRow | None,
    competition_id: int,
    season_id: int,
    club_id: int,
    match_day: int,
    goals_for: int,
    goals_against: int,
) -> StandingRow:
    """Cumulative row after one more match, starting from ``previous`` (or zero)."""
    won = goals_for > goals_against
    drawn = goals_for == goals_against
    base = previous or StandingRow(
        competition_id=competition_id, season_id=season_id, club_id=club_id, match_day=match_day,
    )
    return StandingRow(
        competition_id=competition_id,
        season_id=season_id,
        club_id=club_id,
        match_day=match_day,
        played=base.played + 1,
        wins=base.wins + int(won),
        draws=base.draws + int(drawn),
        losses=base.losses + int(not won and not drawn),
        goals_for=base.goals_for + goals_for,
        goals_against=base.goals_against + goals_against,
        points=base.points + (POINTS_FOR_WIN if won else POINTS_FOR_DRAW if drawn else 0),
    )


def rank_rows(rows: list[StandingRow]) -> list[StandingRow]:
    """Sort rows into table order and assign 1-based positions."""
    ranked = sorted(rows, key=lambda r: r.sort_key())
    return [row.model_copy(update={"position": i}) for i, row in enumerate(ranked, start=1)]


def apply_match_result(
    session: Session, match: Match, home_score: int, away_score: int
) -> list[StandingRow]:
    """Update both clubs' table rows for a played match and re-rank its match-day.

    Runs inside the caller's transaction so the table is never observed
    half-updated.

    Returns:
        The two new rows (home, away).

    Raises:
        StandingsUpdateError: If the rows cannot be written.
    """
    repo = StandingRepository(session)
    match_day = match.leg_number
    sides = (
        (match.home_club_id, home_score, away_score),
        (match.away_club_id, away_score, home_score),
    )

    try:
        new_rows = []
        for club_id, goals_for, goals_against in sides:
            previous = repo.get_latest_for_club(
                match.competition_id, match.season_id, club_id, before_match_day=match_day
            )
            row = fold_result(
                previous, match.competition_id, match.season_id, club_id,
                match_day, goals_for, goals_against,
            )
            repo.upsert(row)
            new_rows.append(row)

        rerank_match_day(session, match.competition_id, match.season_id, match_day)
    except SQLAlchemyError as exc:
        raise StandingsUpdateError(
            f"Could not update standings for match {match.id}: {exc}"
        ) from exc

    return new_rows


def rerank_match_day(
    session: Session, competition_id: int, season_id: int, match_day: int
) -> None:
    """Persist 1-based positions for every row at one match-day."""
    rows = StandingRepository(session).get_at_match_day(competition_id, season_id, match_day)
    # Rows come back in table order
    for position, db_row in enumerate(rows, start=1):
        db_row.position = position
    session.flush()


def current_standings(
    session: Session, competition_id: int, season_id: int
) -> list[StandingRow]:
    """Each club's latest row, ranked against each other."""
    rows = StandingRepository(session).get_latest_rows(competition_id, season_id)
    return rank_rows(rows)


def get_standings(
    context: GameContext, competition_id: int, season_id: int
) -> list[StandingRow]:
    """Current league table for a competition/season."""
    with context.session_scope() as session:
        return current_standings(session, competition_id, season_id)


def format_table(rows: list[StandingRow], club_names: dict[int, str] | None = None) -> str:
    """Plain-text table for CLI output."""
    names = club_names or {}
    lines = [
        f"{'Pos':>3} {'Club':<24} {'P':>3} {'W':>3} {'D':>3} {'L':>3} "
        f"{'GF':>4} {'GA':>4} {'GD':>4} {'Pts':>4}",
        "-" * 66,
    ]
    for row in rows:
        name = names.get(row.club_id, str(row.club_id))
        lines.append(
            f"{row.position:>3} {name:<24} {row.played:>3} {row.wins:>3} {row.draws:>3} "
            f"{row.losses:>3} {row.goals_for:>4} {row.goals_against:>4} "
            f"{row.goal_difference:>+4} {row.points:>4}"
        )
    return "\n".join(lines)
