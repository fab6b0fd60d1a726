"""
Data models for the tournament backend.
Domain objects only. No persistence or API logic.

Tournament-centric architecture: a tournament owns teams and leagues; teams are
registered into leagues; a league's fixtures are generated once from its roster
and results recorded against them; the standing table is derived on demand.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


# ---------- Scheduling / standings core ----------


@dataclass(frozen=True)
class Team:
    """A roster entry. id is unique within a league roster."""
    id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Match:
    """
    A scheduled pairing (pre-result). home_team_id != away_team_id.
    Byes never appear here; they only exist as empty slots inside the scheduler.
    """
    home_team_id: str
    away_team_id: str
    round: int

    def __post_init__(self) -> None:
        if self.home_team_id == self.away_team_id:
            raise ValueError(f"A team cannot play itself: {self.home_team_id}")


@dataclass
class Round:
    """One round (game week) of a schedule. number is 1-based."""
    number: int
    matches: list[Match] = field(default_factory=list)

    def teams(self) -> list[str]:
        """Team ids playing in this round, in match order (home before away)."""
        ids: list[str] = []
        for m in self.matches:
            ids.append(m.home_team_id)
            ids.append(m.away_team_id)
        return ids


@dataclass(frozen=True)
class MatchResult:
    """A match plus its score. Unplayed results are ignored by the standings."""
    home_team_id: str
    away_team_id: str
    round: int
    home_score: int = 0
    away_score: int = 0
    played: bool = False


@dataclass
class StandingEntry:
    """
    One row of the standing table. Derived from match results, never persisted.
    to_dict keeps the field names the standing-table endpoint has always returned.
    """
    team_id: str
    team_name: str
    points: int = 0
    win: int = 0
    draw: int = 0
    loss: int = 0
    goals_scored: int = 0
    goals_against: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_scored - self.goals_against

    @property
    def played(self) -> int:
        return self.win + self.draw + self.loss

    def to_dict(self) -> dict[str, Any]:
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "total_points": self.points,
            "win": self.win,
            "draw": self.draw,
            "loss": self.loss,
            "goals_scored": self.goals_scored,
            "goals_against": self.goals_against,
            "goal_difference": self.goal_difference,
        }


# ---------- User ----------
@dataclass
class User:
    """An account. password_hash is never returned by to_dict."""
    id: str
    username: str
    password_hash: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Tournament ----------
@dataclass
class Tournament:
    """
    Top-level container owned by one user.
    Private tournaments are only visible to their owner.
    """
    id: str
    owner_id: str
    name: str
    public: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "public": self.public,
            "created_at": self.created_at.isoformat(),
        }


# ---------- TournamentTeam ----------
@dataclass
class TournamentTeam:
    """A team registered to a tournament. Can join any of the tournament's leagues."""
    id: str
    tournament_id: str
    name: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }


# ---------- League ----------
@dataclass
class League:
    """A competition inside a tournament. completed is a manual flag set by the owner."""
    id: str
    tournament_id: str
    name: str
    completed: bool
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tournament_id": self.tournament_id,
            "name": self.name,
            "completed": self.completed,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Fixture ----------
@dataclass
class Fixture:
    """
    A persisted match within a league. Created by fixture generation;
    scores and played flag are edited when a result is recorded.
    position orders matches within a round.
    """
    id: str
    league_id: str
    round: int
    position: int
    home_team_id: str
    home_team_name: str
    away_team_id: str
    away_team_name: str
    home_score: int
    away_score: int
    played: bool
    created_at: datetime

    def as_result(self) -> MatchResult:
        return MatchResult(
            home_team_id=self.home_team_id,
            away_team_id=self.away_team_id,
            round=self.round,
            home_score=self.home_score,
            away_score=self.away_score,
            played=self.played,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "home_team": {"id": self.home_team_id, "name": self.home_team_name},
            "away_team": {"id": self.away_team_id, "name": self.away_team_name},
            "home_score": self.home_score,
            "away_score": self.away_score,
            "played": self.played,
            "round": self.round,
        }
