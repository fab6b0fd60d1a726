"""
Errors raised by the scheduling and standings core.
All are terminal for a single call; retrying with the same input gives the same error.
"""
from __future__ import annotations


class CoreError(ValueError):
    """Base for scheduler and standings input errors."""


class SchedulerError(CoreError):
    """Fixture generation rejected its roster."""


class StandingsError(CoreError):
    """Standing table could not be computed from the given results."""


class InsufficientParticipants(SchedulerError):
    """Fewer than two teams: there is nothing to schedule."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"At least 2 teams are required to generate fixtures (got {count})")


class InvalidRoster(SchedulerError, StandingsError):
    """The roster lists the same team id more than once."""

    def __init__(self, duplicate_ids: list[str]) -> None:
        self.duplicate_ids = duplicate_ids
        super().__init__(f"Duplicate team ids in roster: {', '.join(duplicate_ids)}")


class UnknownTeamReference(StandingsError):
    """A match result names a team that is not on the roster."""

    def __init__(self, team_id: str) -> None:
        self.team_id = team_id
        super().__init__(f"Result references team {team_id}, which is not in the league roster")
