"""
Service layer: pure scheduling and standings, plus the orchestrating tournament service.
Only league_service touches persistence.
"""
from .errors import (
    CoreError,
    SchedulerError,
    StandingsError,
    InsufficientParticipants,
    InvalidRoster,
    UnknownTeamReference,
)
from .scheduling import Scheduler, generate_league_schedule
from .standings import StandingsCalculator, compute_standings
from .league_service import (
    TournamentService,
    NotFoundError,
    PermissionDeniedError,
    InvalidRequestError,
    LeagueFullError,
    TeamChangeNotAllowedError,
    FixturesAlreadyExistError,
    MAX_TEAMS_PER_LEAGUE,
)

__all__ = [
    "CoreError",
    "SchedulerError",
    "StandingsError",
    "InsufficientParticipants",
    "InvalidRoster",
    "UnknownTeamReference",
    "Scheduler",
    "generate_league_schedule",
    "StandingsCalculator",
    "compute_standings",
    "TournamentService",
    "NotFoundError",
    "PermissionDeniedError",
    "InvalidRequestError",
    "LeagueFullError",
    "TeamChangeNotAllowedError",
    "FixturesAlreadyExistError",
    "MAX_TEAMS_PER_LEAGUE",
]
