"""
Persistence layer for tournament data.
No business logic and no scheduling, only read/write interfaces.
"""
from .db import get_connection, init_db, transaction
from .repositories import (
    UserRepository,
    TournamentRepository,
    TeamRepository,
    LeagueRepository,
    FixtureRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "UserRepository",
    "TournamentRepository",
    "TeamRepository",
    "LeagueRepository",
    "FixtureRepository",
]
