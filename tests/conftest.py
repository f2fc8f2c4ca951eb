"""Shared fixtures: in-memory saves and a small seeded game world."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import numpy as np
import pytest

from matchday.db.repository import ClubRepository, CompetitionRepository, PlayerRepository
from matchday.db.session import GameContext
from matchday.models.club import Club
from matchday.models.competition import Competition, CompetitionType
from matchday.models.player import ATTRIBUTE_NAMES, Player, Position

RULES_PATH = Path(__file__).parent.parent / "config" / "rules.json"

SQUAD_POSITIONS = [
    Position.GK, Position.RB, Position.CB, Position.CB, Position.LB,
    Position.RM, Position.CM, Position.CM, Position.LM,
    Position.ST, Position.ST,
    # bench
    Position.GK, Position.CB, Position.CM, Position.CF,
]


@dataclass
class World:
    """Ids of everything ``build_world`` created."""
    leagues: dict[str, int] = field(default_factory=dict)  # nation -> competition id
    clubs: dict[str, list[int]] = field(default_factory=dict)  # nation -> club ids
    squads: dict[int, list[int]] = field(default_factory=dict)  # club id -> player ids

    @property
    def all_clubs(self) -> list[int]:
        return [club_id for ids in self.clubs.values() for club_id in ids]


def make_attributes(level: int = 12, **overrides: int) -> dict[str, int]:
    attributes = {name: level for name in ATTRIBUTE_NAMES}
    attributes.update(overrides)
    return attributes


def build_world(
    context: GameContext,
    clubs_per_nation: dict[str, int] | None = None,
    squad_size: int = 11,
    contract_start: date = date(2024, 7, 1),
    contract_end: date = date(2030, 6, 30),
    monthly_wage: int = 10_000,
) -> World:
    """Create nations' clubs, a league per nation and contracted squads."""
    clubs_per_nation = clubs_per_nation or {"ENG": 4}
    world = World()
    club_id = 0
    player_id = 0

    with context.session_scope() as session:
        clubs = ClubRepository(session)
        players = PlayerRepository(session)
        competitions = CompetitionRepository(session)

        for comp_offset, (nation, count) in enumerate(clubs_per_nation.items(), start=1):
            competitions.add(Competition(
                id=comp_offset, name=f"{nation} League", type=CompetitionType.LEAGUE, nation=nation,
            ))
            world.leagues[nation] = comp_offset
            world.clubs[nation] = []

            for _ in range(count):
                club_id += 1
                clubs.add(Club(
                    id=club_id,
                    name=f"{nation} Club {club_id}",
                    abbreviation=f"{nation[:2]}{club_id}",
                    nation=nation,
                    reputation=40 + club_id,
                    stadium_capacity=20_000,
                ))
                world.clubs[nation].append(club_id)
                world.squads[club_id] = []

                for slot in range(squad_size):
                    player_id += 1
                    position = SQUAD_POSITIONS[slot % len(SQUAD_POSITIONS)]
                    players.add(Player(
                        id=player_id,
                        first_name="Player",
                        last_name=str(player_id),
                        position=position,
                        overall=60 + (player_id * 7) % 25,
                        birth_date=date(1998, 3, 1),
                        nation=nation,
                        attributes=make_attributes(10 + (player_id % 6)),
                    ))
                    players.add_contract(player_id, club_id, contract_start, contract_end, monthly_wage)
                    world.squads[club_id].append(player_id)

    return world


@pytest.fixture(autouse=True)
def seed_everything():
    random.seed(42)
    np.random.seed(42)


@pytest.fixture
def context():
    ctx = GameContext.open(":memory:", save_id="test")
    yield ctx
    ctx.close()


@pytest.fixture
def world(context) -> World:
    return build_world(context)
