"""
Repository interfaces for tournament data.
No business logic, only read/write operations.

Single-row writes commit immediately. Methods documented as transactional
(create_many, add_team, remove_team, delete_cascade) leave committing to the
caller's transaction().
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from tournament_backend.models import (
    Fixture,
    League,
    MatchResult,
    Team,
    Tournament,
    TournamentTeam,
    User,
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


# ---------- UserRepository ----------


class UserRepository:
    """CRUD for users."""

    def create(self, conn: sqlite3.Connection, username: str, password_hash: str, id: str | None = None) -> User:
        uid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO users (id, username, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (uid, username, password_hash, now),
        )
        conn.commit()
        return User(id=uid, username=username, password_hash=password_hash, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, password_hash, created_at FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        return self._from_row(row) if row else None

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute(
            "SELECT id, username, password_hash, created_at FROM users WHERE username = ?",
            (username,),
        ).fetchone()
        return self._from_row(row) if row else None

    @staticmethod
    def _from_row(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            created_at=_parse_datetime(row["created_at"]),
        )


# ---------- TournamentRepository ----------


class TournamentRepository:
    """CRUD for tournaments. No business logic."""

    _COLS = "id, owner_id, name, public, created_at"

    def create(self, conn: sqlite3.Connection, owner_id: str, name: str, public: bool, id: str | None = None) -> Tournament:
        tid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO tournaments (id, owner_id, name, public, created_at) VALUES (?, ?, ?, ?, ?)",
            (tid, owner_id, name, int(public), now),
        )
        conn.commit()
        return Tournament(id=tid, owner_id=owner_id, name=name, public=public, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, tournament_id: str) -> Tournament | None:
        row = conn.execute(
            f"SELECT {self._COLS} FROM tournaments WHERE id = ?",
            (tournament_id,),
        ).fetchone()
        if row is None:
            return None
        return Tournament(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            public=bool(row["public"]),
            created_at=_parse_datetime(row["created_at"]),
        )

    def update(self, conn: sqlite3.Connection, tournament_id: str, name: str | None = None, public: bool | None = None) -> None:
        sets: list[str] = []
        args: list[Any] = []
        if name is not None:
            sets.append("name = ?")
            args.append(name)
        if public is not None:
            sets.append("public = ?")
            args.append(int(public))
        if not sets:
            return
        args.append(tournament_id)
        conn.execute(f"UPDATE tournaments SET {', '.join(sets)} WHERE id = ?", tuple(args))
        conn.commit()

    def delete_cascade(self, conn: sqlite3.Connection, tournament_id: str) -> None:
        """Transactional: delete the tournament with its leagues, rosters, fixtures and teams."""
        league_ids = "SELECT id FROM leagues WHERE tournament_id = ?"
        conn.execute(f"DELETE FROM fixtures WHERE league_id IN ({league_ids})", (tournament_id,))
        conn.execute(f"DELETE FROM league_teams WHERE league_id IN ({league_ids})", (tournament_id,))
        conn.execute("DELETE FROM leagues WHERE tournament_id = ?", (tournament_id,))
        conn.execute("DELETE FROM teams WHERE tournament_id = ?", (tournament_id,))
        conn.execute("DELETE FROM tournaments WHERE id = ?", (tournament_id,))


# ---------- TeamRepository ----------


class TeamRepository:
    """CRUD for teams registered to a tournament."""

    def create(self, conn: sqlite3.Connection, tournament_id: str, name: str, id: str | None = None) -> TournamentTeam:
        tid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO teams (id, tournament_id, name, created_at) VALUES (?, ?, ?, ?)",
            (tid, tournament_id, name, now),
        )
        conn.commit()
        return TournamentTeam(id=tid, tournament_id=tournament_id, name=name, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, team_id: str) -> TournamentTeam | None:
        row = conn.execute(
            "SELECT id, tournament_id, name, created_at FROM teams WHERE id = ?",
            (team_id,),
        ).fetchone()
        return self._from_row(row) if row else None

    def list_by_tournament(self, conn: sqlite3.Connection, tournament_id: str) -> list[TournamentTeam]:
        rows = conn.execute(
            "SELECT id, tournament_id, name, created_at FROM teams WHERE tournament_id = ? ORDER BY created_at, id",
            (tournament_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def rename(self, conn: sqlite3.Connection, team_id: str, name: str) -> None:
        conn.execute("UPDATE teams SET name = ? WHERE id = ?", (name, team_id))
        conn.commit()

    def delete_cascade(self, conn: sqlite3.Connection, team_id: str) -> None:
        """Transactional: drop the team from every league roster, then the team itself."""
        conn.execute("DELETE FROM league_teams WHERE team_id = ?", (team_id,))
        conn.execute("DELETE FROM teams WHERE id = ?", (team_id,))

    @staticmethod
    def _from_row(row: sqlite3.Row) -> TournamentTeam:
        return TournamentTeam(
            id=row["id"],
            tournament_id=row["tournament_id"],
            name=row["name"],
            created_at=_parse_datetime(row["created_at"]),
        )


# ---------- LeagueRepository ----------


class LeagueRepository:
    """CRUD for leagues and their rosters. No business logic."""

    _COLS = "id, tournament_id, name, completed, created_at"

    def create(self, conn: sqlite3.Connection, tournament_id: str, name: str, completed: bool = False, id: str | None = None) -> League:
        lid = id or str(uuid.uuid4())
        now = _now_iso()
        conn.execute(
            "INSERT INTO leagues (id, tournament_id, name, completed, created_at) VALUES (?, ?, ?, ?, ?)",
            (lid, tournament_id, name, int(completed), now),
        )
        conn.commit()
        return League(id=lid, tournament_id=tournament_id, name=name, completed=completed, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute(
            f"SELECT {self._COLS} FROM leagues WHERE id = ?",
            (league_id,),
        ).fetchone()
        return self._from_row(row) if row else None

    def list_by_tournament(self, conn: sqlite3.Connection, tournament_id: str) -> list[League]:
        rows = conn.execute(
            f"SELECT {self._COLS} FROM leagues WHERE tournament_id = ? ORDER BY created_at, id",
            (tournament_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def update(self, conn: sqlite3.Connection, league_id: str, name: str, completed: bool) -> None:
        conn.execute(
            "UPDATE leagues SET name = ?, completed = ? WHERE id = ?",
            (name, int(completed), league_id),
        )
        conn.commit()

    def delete_cascade(self, conn: sqlite3.Connection, league_id: str) -> None:
        """Transactional: delete the league with its roster and fixtures."""
        conn.execute("DELETE FROM fixtures WHERE league_id = ?", (league_id,))
        conn.execute("DELETE FROM league_teams WHERE league_id = ?", (league_id,))
        conn.execute("DELETE FROM leagues WHERE id = ?", (league_id,))

    # ---------- roster ----------

    def add_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> None:
        """
        Transactional: append team to the roster. Does not commit.
        Raises sqlite3.IntegrityError if already registered.
        """
        row = conn.execute(
            "SELECT COALESCE(MAX(seq), 0) AS seq FROM league_teams WHERE league_id = ?",
            (league_id,),
        ).fetchone()
        conn.execute(
            "INSERT INTO league_teams (league_id, team_id, seq, joined_at) VALUES (?, ?, ?, ?)",
            (league_id, team_id, row["seq"] + 1, _now_iso()),
        )

    def remove_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        """Transactional: does not commit. False if the team was not on the roster."""
        cur = conn.execute(
            "DELETE FROM league_teams WHERE league_id = ? AND team_id = ?",
            (league_id, team_id),
        )
        return cur.rowcount > 0

    def count_teams(self, conn: sqlite3.Connection, league_id: str) -> int:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM league_teams WHERE league_id = ?",
            (league_id,),
        ).fetchone()
        return int(row["n"])

    def has_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM league_teams WHERE league_id = ? AND team_id = ?",
            (league_id, team_id),
        ).fetchone()
        return row is not None

    def fetch_roster(self, conn: sqlite3.Connection, league_id: str) -> list[Team]:
        """Teams on the league roster, in registration order."""
        rows = conn.execute(
            """SELECT t.id, t.name
               FROM league_teams lt
               JOIN teams t ON t.id = lt.team_id
               WHERE lt.league_id = ?
               ORDER BY lt.seq""",
            (league_id,),
        ).fetchall()
        return [Team(id=r["id"], name=r["name"]) for r in rows]

    def list_league_ids_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT league_id FROM league_teams WHERE team_id = ?",
            (team_id,),
        ).fetchall()
        return [r["league_id"] for r in rows]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> League:
        return League(
            id=row["id"],
            tournament_id=row["tournament_id"],
            name=row["name"],
            completed=bool(row["completed"]),
            created_at=_parse_datetime(row["created_at"]),
        )


# ---------- FixtureRepository ----------


class FixtureRepository:
    """CRUD for fixtures. No business logic."""

    _SELECT = """
        SELECT f.id, f.league_id, f.round, f.position,
               f.home_team_id, home.name AS home_team_name,
               f.away_team_id, away.name AS away_team_name,
               f.home_score, f.away_score, f.played, f.created_at
        FROM fixtures f
        JOIN teams home ON home.id = f.home_team_id
        JOIN teams away ON away.id = f.away_team_id
    """

    def create_many(self, conn: sqlite3.Connection, league_id: str, rows: Iterable[dict[str, Any]]) -> int:
        """
        Transactional: insert generated fixture rows ({round, position, home_team_id, away_team_id}).
        Does not commit. Returns the number of rows inserted.
        """
        now = _now_iso()
        params = [
            (str(uuid.uuid4()), league_id, r["round"], r["position"], r["home_team_id"], r["away_team_id"], now)
            for r in rows
        ]
        conn.executemany(
            """INSERT INTO fixtures (
                id, league_id, round, position, home_team_id, away_team_id,
                home_score, away_score, played, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, 0, 0, 0, ?)""",
            params,
        )
        return len(params)

    def fixtures_already_exist(self, conn: sqlite3.Connection, league_id: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM fixtures WHERE league_id = ? LIMIT 1",
            (league_id,),
        ).fetchone()
        return row is not None

    def get(self, conn: sqlite3.Connection, league_id: str, fixture_id: str) -> Fixture | None:
        row = conn.execute(
            self._SELECT + " WHERE f.league_id = ? AND f.id = ?",
            (league_id, fixture_id),
        ).fetchone()
        return self._from_row(row) if row else None

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Fixture]:
        rows = conn.execute(
            self._SELECT + " WHERE f.league_id = ? ORDER BY f.round, f.position",
            (league_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def fetch_results(self, conn: sqlite3.Connection, league_id: str) -> list[MatchResult]:
        """All fixtures of the league as results, played or not, in schedule order."""
        return [f.as_result() for f in self.list_by_league(conn, league_id)]

    def update_result(
        self,
        conn: sqlite3.Connection,
        fixture_id: str,
        home_score: int,
        away_score: int,
        played: bool,
    ) -> None:
        conn.execute(
            "UPDATE fixtures SET home_score = ?, away_score = ?, played = ? WHERE id = ?",
            (home_score, away_score, int(played), fixture_id),
        )
        conn.commit()

    def delete_for_league(self, conn: sqlite3.Connection, league_id: str) -> int:
        cur = conn.execute("DELETE FROM fixtures WHERE league_id = ?", (league_id,))
        conn.commit()
        return cur.rowcount

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Fixture:
        return Fixture(
            id=row["id"],
            league_id=row["league_id"],
            round=row["round"],
            position=row["position"],
            home_team_id=row["home_team_id"],
            home_team_name=row["home_team_name"],
            away_team_id=row["away_team_id"],
            away_team_name=row["away_team_name"],
            home_score=row["home_score"],
            away_score=row["away_score"],
            played=bool(row["played"]),
            created_at=_parse_datetime(row["created_at"]),
        )
