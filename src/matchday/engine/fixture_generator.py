"""Fixture generator — double round-robin scheduling for league seasons.

Uses the circle method to produce balanced home/away fixtures where
every club plays every other club twice (home and away). Rounds are one
week apart, starting on the season start date; the second leg continues
the date sequence with home/away swapped.
"""

from __future__ import annotations

import logging
import random
from datetime import date, timedelta
from typing import Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from matchday.db.repository import (
    ClubRepository,
    CompetitionRepository,
    MatchRepository,
    SeasonRepository,
)
from matchday.db.session import GameContext
from matchday.errors import SeasonNotFoundError
from matchday.models.competition import (
    LEAGUE_STAGE_NAME,
    Competition,
    Match,
)
from matchday.models.season import Season

logger = logging.getLogger(__name__)

T = TypeVar("T")

DAYS_BETWEEN_ROUNDS = 7


def generate_round_robin(
    teams: list[T], shuffle: bool = False
) -> list[list[tuple[T, T]]]:
    """Generate a full round-robin schedule (home & away).

    Args:
        teams: Ordered team identifiers. teams[0] stays fixed in the circle.
        shuffle: Randomize team order before generating fixtures.

    Returns:
        List of rounds, where each round is a list of (home, away) tuples.
        Total rounds = (n-1) * 2 for n teams (n padded to even).

    Raises:
        ValueError: If fewer than 2 teams provided.
    """
    if len(teams) < 2:
        raise ValueError(f"Need at least 2 teams, got {len(teams)}")

    team_list: list[Optional[T]] = list(teams)
    if shuffle:
        random.shuffle(team_list)

    # Pad to even number with a "BYE" sentinel
    if len(team_list) % 2 != 0:
        team_list.append(None)

    n = len(team_list)
    half = n // 2

    # First leg: (n-1) rounds using the circle method
    first_leg: list[list[tuple[T, T]]] = []
    rotation = list(team_list)

    for _ in range(n - 1):
        matchday = []
        for i in range(half):
            home = rotation[i]
            away = rotation[n - 1 - i]
            if home is not None and away is not None:
                matchday.append((home, away))
        first_leg.append(matchday)

        # Rotate: fix position 0, move the last club to position 1
        rotation = [rotation[0]] + [rotation[-1]] + rotation[1:-1]

    # Second leg: same order, home/away reversed
    second_leg = [[(away, home) for home, away in matchday] for matchday in first_leg]

    return first_leg + second_leg


def total_matchdays(num_teams: int) -> int:
    """Total rounds in a double round-robin season."""
    n = num_teams if num_teams % 2 == 0 else num_teams + 1
    return (n - 1) * 2


def round_dates(start_date: date, num_rounds: int) -> list[date]:
    """Kick-off date of each round: weekly from the season start."""
    return [start_date + timedelta(days=DAYS_BETWEEN_ROUNDS * i) for i in range(num_rounds)]


def schedule_competition(
    session: Session,
    competition: Competition,
    season: Season,
    club_ids: list[int],
) -> int:
    """Insert the full double round-robin for one competition.

    Runs inside the caller's transaction. Returns the number of matches
    created; 0 when the competition already has fixtures for the season or
    has fewer than 2 clubs.
    """
    comp_repo = CompetitionRepository(session)
    match_repo = MatchRepository(session)

    comp_repo.link_season(competition.id, season.id)

    if len(club_ids) < 2:
        logger.warning(
            f"Skipping fixtures for {competition.name}: "
            f"only {len(club_ids)} eligible club(s)"
        )
        return 0

    if match_repo.count_for(competition.id, season.id) > 0:
        logger.info(f"Fixtures already exist for {competition.name} in season {season.id}")
        return 0

    stage = comp_repo.get_or_create_stage(
        competition.id, season.id, LEAGUE_STAGE_NAME,
        stage_order=1, stage_type="league", number_of_legs=2,
    )

    rounds = generate_round_robin(club_ids)
    dates = round_dates(season.start_date, len(rounds))

    created = 0
    for round_number, (pairings, match_date) in enumerate(zip(rounds, dates), start=1):
        for home_id, away_id in pairings:
            match_repo.add(Match(
                id=0,
                competition_id=competition.id,
                season_id=season.id,
                stage_id=stage.id,
                home_club_id=home_id,
                away_club_id=away_id,
                match_date=match_date,
                leg_number=round_number,
            ))
            created += 1

    logger.info(
        f"Generated {created} fixtures for {competition.name} "
        f"({len(club_ids)} clubs, {len(rounds)} rounds from {season.start_date})"
    )
    return created


def schedule_season(session: Session, season: Season) -> int:
    """Schedule every national league for a season within one transaction."""
    clubs = ClubRepository(session)
    total = 0
    for competition in CompetitionRepository(session).get_national_leagues():
        club_ids = [c.id for c in clubs.get_by_nation(competition.nation)]
        total += schedule_competition(session, competition, season, club_ids)
    return total


def generate_fixtures(context: GameContext, season_id: int) -> int:
    """Schedule every national league for a season.

    Each competition is written in its own transaction, so a failure or a
    skipped league never leaves another league's calendar half-written.
    Safe to call again: competitions that already have fixtures are skipped.

    Returns:
        Total number of matches created. 0 for an unknown season.
    """
    try:
        with context.session_scope() as session:
            season = SeasonRepository(session, context.save_id).get(season_id)
            competitions = CompetitionRepository(session).get_national_leagues()
    except SeasonNotFoundError as exc:
        logger.warning(f"Fixture generation skipped: {exc}")
        return 0

    total = 0
    for competition in competitions:
        try:
            with context.session_scope() as session:
                club_ids = [c.id for c in ClubRepository(session).get_by_nation(competition.nation)]
                total += schedule_competition(session, competition, season, club_ids)
        except SQLAlchemyError as exc:
            logger.error(f"Fixture generation failed for {competition.name}: {exc}")

    logger.info(f"Season {season_id}: {total} fixtures generated")
    return total
