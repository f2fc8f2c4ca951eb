"""Lineup selection — stored starting XIs and the AI auto-pick.

A club's lineup for a match is complete once 11 starters are stored. When
a club has not picked one, the 11 highest-overall players under an active
contract on the match date are fielded, captain = best overall.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from matchday.db.repository import MatchRepository, PlayerRepository
from matchday.engine.match_sim import LINEUP_SIZE
from matchday.models.player import LineupPlayer, Position

logger = logging.getLogger(__name__)


def lineup_exists(session: Session, match_id: int, club_id: int) -> bool:
    return MatchRepository(session).count_starters(match_id, club_id) >= LINEUP_SIZE


def save_lineup(
    session: Session,
    match_id: int,
    club_id: int,
    entries: list[tuple[int, Position, bool]],
) -> None:
    """Store a manager-chosen XI as (player_id, position_played, is_captain) entries."""
    MatchRepository(session).replace_lineup(match_id, club_id, entries)


def generate_auto_lineup(
    session: Session, match_id: int, club_id: int, on_date: date
) -> bool:
    """Store the club's best available XI for a match.

    Returns False (and stores nothing) when fewer than 11 players are available.
    """
    players = PlayerRepository(session).get_contracted(club_id, on_date)[:LINEUP_SIZE]
    if len(players) < LINEUP_SIZE:
        logger.warning(
            f"Not enough players ({len(players)}) to form a full lineup "
            f"for club {club_id} in match {match_id}"
        )
        return False

    entries = [(p.id, p.position, i == 0) for i, p in enumerate(players)]
    MatchRepository(session).replace_lineup(match_id, club_id, entries)
    return True


def resolve_lineup(
    session: Session, match_id: int, club_id: int, on_date: date
) -> list[LineupPlayer]:
    """Starters for a match, auto-picking a lineup when the stored one is incomplete.

    May return fewer than 11 players; the match engine turns that into an
    insufficient-lineup result.
    """
    if not lineup_exists(session, match_id, club_id):
        generate_auto_lineup(session, match_id, club_id, on_date)
    return MatchRepository(session).get_starters(match_id, club_id)
