"""
SQLite schema for tournament entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_users_username ON users(username);
    """


def tournaments_schema() -> str:
    """public = 0 means only the owner can read it."""
    return """
    CREATE TABLE IF NOT EXISTS tournaments (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        public INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        FOREIGN KEY (owner_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_tournaments_owner ON tournaments(owner_id);
    """


def teams_schema() -> str:
    """Teams belong to a tournament and may join any of its leagues."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        tournament_id TEXT NOT NULL,
        name TEXT NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (tournament_id) REFERENCES tournaments(id) ON DELETE CASCADE
    );
    CREATE INDEX IF NOT EXISTS ix_teams_tournament ON teams(tournament_id);
    """


def leagues_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        tournament_id TEXT NOT NULL,
        name TEXT NOT NULL,
        completed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (tournament_id) REFERENCES tournaments(id) ON DELETE CASCADE
    );
    CREATE INDEX IF NOT EXISTS ix_leagues_tournament ON leagues(tournament_id);
    """


def league_teams_schema() -> str:
    """Roster join. seq keeps registration order, which is the roster order fed to the scheduler."""
    return """
    CREATE TABLE IF NOT EXISTS league_teams (
        league_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        seq INTEGER NOT NULL,
        joined_at TEXT NOT NULL,
        PRIMARY KEY (league_id, team_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE,
        FOREIGN KEY (team_id) REFERENCES teams(id) ON DELETE CASCADE
    );
    CREATE INDEX IF NOT EXISTS ix_league_teams_league ON league_teams(league_id, seq);
    """


def fixtures_schema() -> str:
    """One row per match. A pair of teams meets at most once per league."""
    return """
    CREATE TABLE IF NOT EXISTS fixtures (
        id TEXT PRIMARY KEY,
        league_id TEXT NOT NULL,
        round INTEGER NOT NULL,
        position INTEGER NOT NULL,
        home_team_id TEXT NOT NULL,
        away_team_id TEXT NOT NULL,
        home_score INTEGER NOT NULL DEFAULT 0,
        away_score INTEGER NOT NULL DEFAULT 0,
        played INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id) ON DELETE CASCADE,
        FOREIGN KEY (home_team_id) REFERENCES teams(id),
        FOREIGN KEY (away_team_id) REFERENCES teams(id),
        CHECK (home_team_id <> away_team_id)
    );
    CREATE INDEX IF NOT EXISTS ix_fixtures_league_round ON fixtures(league_id, round, position);
    CREATE UNIQUE INDEX IF NOT EXISTS ix_fixtures_league_pair ON fixtures(league_id, home_team_id, away_team_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Order: users, tournaments, teams, leagues, league_teams, fixtures."""
    return "\n".join([
        users_schema(),
        tournaments_schema(),
        teams_schema(),
        leagues_schema(),
        league_teams_schema(),
        fixtures_schema(),
    ])
