"""
Tournament/league service: ownership and visibility guards, roster policy,
fixture generation and the standing table.
Scheduling and standings are pure and live in their own modules; this layer
fetches snapshots from the repositories, calls them, and persists the output.
"""
from __future__ import annotations

import logging
import random
import sqlite3
from typing import Any

from tournament_backend.models import Fixture, League, Round, StandingEntry, Tournament, TournamentTeam
from tournament_backend.persistence.db import transaction
from tournament_backend.persistence.repositories import (
    FixtureRepository,
    LeagueRepository,
    TeamRepository,
    TournamentRepository,
)
from tournament_backend.services.errors import InsufficientParticipants
from tournament_backend.services.scheduling import Scheduler, fixture_rows
from tournament_backend.services.standings import StandingsCalculator

logger = logging.getLogger(__name__)

# Roster cap per league. Service policy only: the scheduler has no ceiling.
MAX_TEAMS_PER_LEAGUE = 24

# ---------- Exceptions ----------


class NotFoundError(ValueError):
    """Entity missing, or hidden because the tournament is private."""


class PermissionDeniedError(ValueError):
    """Caller does not own the tournament it is trying to modify."""


class InvalidRequestError(ValueError):
    """Request is well-formed but not acceptable (e.g. nothing to edit, negative score)."""


class LeagueFullError(ValueError):
    """League already holds MAX_TEAMS_PER_LEAGUE teams."""


class TeamChangeNotAllowedError(ValueError):
    """Cannot modify a league roster (or delete a rostered team) once fixtures exist."""


class FixturesAlreadyExistError(ValueError):
    """Fixtures were already generated for this league; reset them first."""


# ---------- TournamentService ----------


class TournamentService:
    """
    Domain logic for tournaments, teams, leagues and fixtures.
    Persistence is delegated to repositories. user_id None means an anonymous reader.
    """

    def __init__(self) -> None:
        self._tournament_repo = TournamentRepository()
        self._team_repo = TeamRepository()
        self._league_repo = LeagueRepository()
        self._fixture_repo = FixtureRepository()
        self._scheduler = Scheduler()
        self._standings = StandingsCalculator()

    # ---------- guards ----------

    def _visible_tournament(self, conn: sqlite3.Connection, tournament_id: str, user_id: str | None) -> Tournament:
        tournament = self._tournament_repo.get(conn, tournament_id)
        if tournament is None or (not tournament.public and tournament.owner_id != user_id):
            raise NotFoundError(
                f"Tournament not found: {tournament_id}. It may not exist or you don't have permission to access it"
            )
        return tournament

    def _owned_tournament(self, conn: sqlite3.Connection, tournament_id: str, user_id: str) -> Tournament:
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        if tournament.owner_id != user_id:
            raise PermissionDeniedError("Only the tournament owner can do this")
        return tournament

    def _league_in(self, conn: sqlite3.Connection, tournament: Tournament, league_id: str) -> League:
        league = self._league_repo.get(conn, league_id)
        if league is None or league.tournament_id != tournament.id:
            raise NotFoundError(f"League not found: {league_id}")
        return league

    def _team_in(self, conn: sqlite3.Connection, tournament: Tournament, team_id: str) -> TournamentTeam:
        team = self._team_repo.get(conn, team_id)
        if team is None or team.tournament_id != tournament.id:
            raise NotFoundError(f"Team not found: {team_id}")
        return team

    def _assert_roster_unlocked(self, conn: sqlite3.Connection, league_id: str) -> None:
        if self._fixture_repo.fixtures_already_exist(conn, league_id):
            raise TeamChangeNotAllowedError(
                "Cannot change the league roster while fixtures exist; reset the fixtures first"
            )

    # ---------- tournaments ----------

    def create_tournament(self, conn: sqlite3.Connection, user_id: str, name: str, public: bool) -> Tournament:
        tournament = self._tournament_repo.create(conn, user_id, name, public)
        logger.info("tournament_created id=%s owner=%s", tournament.id, user_id)
        return tournament

    def get_tournament_information(
        self, conn: sqlite3.Connection, tournament_id: str, user_id: str | None
    ) -> dict[str, Any]:
        """Tournament with its leagues and teams."""
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        out = tournament.to_dict()
        out["leagues"] = [
            {"id": l.id, "name": l.name, "completed": l.completed}
            for l in self._league_repo.list_by_tournament(conn, tournament_id)
        ]
        out["teams"] = [
            {"id": t.id, "name": t.name}
            for t in self._team_repo.list_by_tournament(conn, tournament_id)
        ]
        return out

    def edit_tournament(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        user_id: str,
        name: str | None = None,
        public: bool | None = None,
    ) -> Tournament:
        if name is None and public is None:
            raise InvalidRequestError("Attempted to edit the tournament, but no data was given")
        self._owned_tournament(conn, tournament_id, user_id)
        self._tournament_repo.update(conn, tournament_id, name=name, public=public)
        return self._tournament_repo.get(conn, tournament_id)

    def delete_tournament(self, conn: sqlite3.Connection, tournament_id: str, user_id: str) -> None:
        self._owned_tournament(conn, tournament_id, user_id)
        with transaction(conn):
            self._tournament_repo.delete_cascade(conn, tournament_id)
        logger.info("tournament_deleted id=%s", tournament_id)

    # ---------- teams ----------

    def create_team(self, conn: sqlite3.Connection, tournament_id: str, user_id: str, name: str) -> TournamentTeam:
        self._owned_tournament(conn, tournament_id, user_id)
        return self._team_repo.create(conn, tournament_id, name)

    def get_team(
        self, conn: sqlite3.Connection, tournament_id: str, team_id: str, user_id: str | None
    ) -> TournamentTeam:
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        return self._team_in(conn, tournament, team_id)

    def rename_team(
        self, conn: sqlite3.Connection, tournament_id: str, team_id: str, user_id: str, name: str
    ) -> TournamentTeam:
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._team_in(conn, tournament, team_id)
        self._team_repo.rename(conn, team_id, name)
        return self._team_repo.get(conn, team_id)

    def delete_team(self, conn: sqlite3.Connection, tournament_id: str, team_id: str, user_id: str) -> None:
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._team_in(conn, tournament, team_id)
        with transaction(conn):
            for league_id in self._league_repo.list_league_ids_by_team(conn, team_id):
                self._assert_roster_unlocked(conn, league_id)
            self._team_repo.delete_cascade(conn, team_id)

    # ---------- leagues ----------

    def create_league(
        self, conn: sqlite3.Connection, tournament_id: str, user_id: str, name: str, completed: bool = False
    ) -> League:
        self._owned_tournament(conn, tournament_id, user_id)
        league = self._league_repo.create(conn, tournament_id, name, completed)
        logger.info("league_created id=%s tournament=%s", league.id, tournament_id)
        return league

    def get_league(
        self, conn: sqlite3.Connection, tournament_id: str, league_id: str, user_id: str | None
    ) -> dict[str, Any]:
        """League with its roster in registration order."""
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        league = self._league_in(conn, tournament, league_id)
        out = league.to_dict()
        out["teams"] = [t.to_dict() for t in self._league_repo.fetch_roster(conn, league_id)]
        return out

    def edit_league(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        league_id: str,
        user_id: str,
        name: str,
        completed: bool,
    ) -> League:
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        self._league_repo.update(conn, league_id, name, completed)
        return self._league_repo.get(conn, league_id)

    def delete_league(self, conn: sqlite3.Connection, tournament_id: str, league_id: str, user_id: str) -> None:
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        with transaction(conn):
            self._league_repo.delete_cascade(conn, league_id)
        logger.info("league_deleted id=%s", league_id)

    def add_team_to_league(
        self, conn: sqlite3.Connection, tournament_id: str, league_id: str, team_id: str, user_id: str
    ) -> None:
        """
        Register a tournament team in the league. Capped at MAX_TEAMS_PER_LEAGUE.
        Lock, duplicate and cap checks run in the same write transaction as the insert.
        """
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        self._team_in(conn, tournament, team_id)
        with transaction(conn):
            self._assert_roster_unlocked(conn, league_id)
            if self._league_repo.has_team(conn, league_id, team_id):
                raise InvalidRequestError("The team is already on the league")
            if self._league_repo.count_teams(conn, league_id) >= MAX_TEAMS_PER_LEAGUE:
                raise LeagueFullError(f"The league is full ({MAX_TEAMS_PER_LEAGUE} teams)")
            self._league_repo.add_team(conn, league_id, team_id)

    def remove_team_from_league(
        self, conn: sqlite3.Connection, tournament_id: str, league_id: str, team_id: str, user_id: str
    ) -> None:
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        with transaction(conn):
            self._assert_roster_unlocked(conn, league_id)
            if not self._league_repo.remove_team(conn, league_id, team_id):
                raise NotFoundError(f"Team {team_id} is not on the league")

    # ---------- fixtures ----------

    def generate_fixtures(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        league_id: str,
        user_id: str,
        shuffle_seed: int | None = None,
    ) -> list[Round]:
        """
        Generate and persist the league's round-robin, at most once per league.
        Existence check, roster read and inserts share one write transaction, so two
        concurrent requests cannot both succeed. shuffle_seed pre-orders the roster
        (seeded, reproducible); without it registration order decides the pairings.
        """
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        with transaction(conn):
            if self._fixture_repo.fixtures_already_exist(conn, league_id):
                raise FixturesAlreadyExistError(
                    "Cannot generate fixtures as they may conflict with existing ones"
                )
            roster = self._league_repo.fetch_roster(conn, league_id)
            if len(roster) < 2:
                raise InsufficientParticipants(len(roster))
            if shuffle_seed is not None:
                random.Random(shuffle_seed).shuffle(roster)
            rounds = self._scheduler.generate(roster)
            inserted = self._fixture_repo.create_many(conn, league_id, fixture_rows(rounds))
        logger.info(
            "fixtures_generated league=%s teams=%d rounds=%d fixtures=%d",
            league_id, len(roster), len(rounds), inserted,
        )
        return rounds

    def reset_fixtures(self, conn: sqlite3.Connection, tournament_id: str, league_id: str, user_id: str) -> int:
        """Delete every fixture (and so every result) of the league."""
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        deleted = self._fixture_repo.delete_for_league(conn, league_id)
        if deleted == 0:
            raise InvalidRequestError("The league has no fixtures to reset")
        logger.info("fixtures_reset league=%s deleted=%d", league_id, deleted)
        return deleted

    def list_fixtures(
        self, conn: sqlite3.Connection, tournament_id: str, league_id: str, user_id: str | None
    ) -> list[Fixture]:
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        return self._fixture_repo.list_by_league(conn, league_id)

    def get_fixture(
        self, conn: sqlite3.Connection, tournament_id: str, league_id: str, fixture_id: str, user_id: str | None
    ) -> Fixture:
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        fixture = self._fixture_repo.get(conn, league_id, fixture_id)
        if fixture is None:
            raise NotFoundError(f"Fixture not found: {fixture_id}")
        return fixture

    def record_result(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        league_id: str,
        fixture_id: str,
        user_id: str,
        home_score: int,
        away_score: int,
        played: bool,
    ) -> Fixture:
        """Set a fixture's score and played flag. Clearing played keeps the scores but drops them from the table."""
        if home_score < 0 or away_score < 0:
            raise InvalidRequestError("Scores cannot be negative")
        tournament = self._owned_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        if self._fixture_repo.get(conn, league_id, fixture_id) is None:
            raise NotFoundError(f"Fixture not found: {fixture_id}")
        self._fixture_repo.update_result(conn, fixture_id, home_score, away_score, played)
        logger.info(
            "result_recorded league=%s fixture=%s score=%d-%d played=%s",
            league_id, fixture_id, home_score, away_score, played,
        )
        return self._fixture_repo.get(conn, league_id, fixture_id)

    # ---------- standings ----------

    def standing_table(
        self, conn: sqlite3.Connection, tournament_id: str, league_id: str, user_id: str | None
    ) -> list[StandingEntry]:
        """Ranked table for the league, recomputed from the stored results on every call."""
        tournament = self._visible_tournament(conn, tournament_id, user_id)
        self._league_in(conn, tournament, league_id)
        roster = self._league_repo.fetch_roster(conn, league_id)
        results = self._fixture_repo.fetch_results(conn, league_id)
        return self._standings.compute(results, roster)
