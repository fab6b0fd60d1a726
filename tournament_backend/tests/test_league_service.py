"""
Tests for the tournament service: ownership and visibility guards, roster policy,
one-shot fixture generation, result recording and the standing table.
"""
from __future__ import annotations

import sqlite3
import threading
from itertools import combinations

import pytest

from tournament_backend.persistence.db import get_connection, get_db_path, init_db, set_db_path, transaction
from tournament_backend.persistence.repositories import FixtureRepository, LeagueRepository, UserRepository
from tournament_backend.services.errors import InsufficientParticipants
from tournament_backend.services.league_service import (
    MAX_TEAMS_PER_LEAGUE,
    FixturesAlreadyExistError,
    InvalidRequestError,
    LeagueFullError,
    NotFoundError,
    PermissionDeniedError,
    TeamChangeNotAllowedError,
    TournamentService,
)

OWNER = "owner-1"
OTHER = "other-1"


@pytest.fixture
def db_conn(tmp_path):
    """Temporary DB with schema and two users."""
    db_path = tmp_path / "tournament_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    users = UserRepository()
    users.create(conn, "owner", "x", id=OWNER)
    users.create(conn, "other", "x", id=OTHER)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def service():
    return TournamentService()


def _league_with_teams(service: TournamentService, conn: sqlite3.Connection, n: int, public: bool = True):
    """Tournament + league + n rostered teams. Returns (tournament_id, league_id, team_ids)."""
    tournament = service.create_tournament(conn, OWNER, "Cup", public)
    league = service.create_league(conn, tournament.id, OWNER, "Premier")
    team_ids = []
    for i in range(n):
        team = service.create_team(conn, tournament.id, OWNER, f"Team {i + 1}")
        service.add_team_to_league(conn, tournament.id, league.id, team.id, OWNER)
        team_ids.append(team.id)
    return tournament.id, league.id, team_ids


# ---------- tournaments ----------


def test_tournament_information_lists_leagues_and_teams(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 2)
    info = service.get_tournament_information(db_conn, tid, None)
    assert info["name"] == "Cup"
    assert [l["id"] for l in info["leagues"]] == [lid]
    assert sorted(t["id"] for t in info["teams"]) == sorted(team_ids)


def test_private_tournament_hidden_from_others(db_conn, service):
    tournament = service.create_tournament(db_conn, OWNER, "Secret", public=False)
    assert service.get_tournament_information(db_conn, tournament.id, OWNER)["id"] == tournament.id
    with pytest.raises(NotFoundError):
        service.get_tournament_information(db_conn, tournament.id, OTHER)
    with pytest.raises(NotFoundError):
        service.get_tournament_information(db_conn, tournament.id, None)


def test_edit_tournament(db_conn, service):
    tournament = service.create_tournament(db_conn, OWNER, "Cup", public=True)
    edited = service.edit_tournament(db_conn, tournament.id, OWNER, public=False)
    assert edited.public is False
    assert edited.name == "Cup"
    edited = service.edit_tournament(db_conn, tournament.id, OWNER, name="Shield")
    assert edited.name == "Shield"


def test_edit_tournament_without_data(db_conn, service):
    tournament = service.create_tournament(db_conn, OWNER, "Cup", public=True)
    with pytest.raises(InvalidRequestError):
        service.edit_tournament(db_conn, tournament.id, OWNER)


def test_only_owner_can_modify(db_conn, service):
    tournament = service.create_tournament(db_conn, OWNER, "Cup", public=True)
    with pytest.raises(PermissionDeniedError):
        service.create_league(db_conn, tournament.id, OTHER, "Hijack")
    with pytest.raises(PermissionDeniedError):
        service.edit_tournament(db_conn, tournament.id, OTHER, name="Mine")
    with pytest.raises(PermissionDeniedError):
        service.delete_tournament(db_conn, tournament.id, OTHER)


def test_delete_tournament_removes_everything(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 4)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    service.delete_tournament(db_conn, tid, OWNER)
    with pytest.raises(NotFoundError):
        service.get_tournament_information(db_conn, tid, OWNER)
    assert FixtureRepository().list_by_league(db_conn, lid) == []


# ---------- roster ----------


def test_roster_in_registration_order(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 3)
    league = service.get_league(db_conn, tid, lid, None)
    assert [t["id"] for t in league["teams"]] == team_ids


def test_add_team_twice_rejected(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 1)
    with pytest.raises(InvalidRequestError):
        service.add_team_to_league(db_conn, tid, lid, team_ids[0], OWNER)


def test_team_from_other_tournament_rejected(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 1)
    other = service.create_tournament(db_conn, OWNER, "Other", public=True)
    stranger = service.create_team(db_conn, other.id, OWNER, "Stranger")
    with pytest.raises(NotFoundError):
        service.add_team_to_league(db_conn, tid, lid, stranger.id, OWNER)


def test_league_capacity(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, MAX_TEAMS_PER_LEAGUE)
    extra = service.create_team(db_conn, tid, OWNER, "One too many")
    with pytest.raises(LeagueFullError):
        service.add_team_to_league(db_conn, tid, lid, extra.id, OWNER)


def test_remove_team_from_league(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 3)
    service.remove_team_from_league(db_conn, tid, lid, team_ids[1], OWNER)
    league = service.get_league(db_conn, tid, lid, None)
    assert [t["id"] for t in league["teams"]] == [team_ids[0], team_ids[2]]
    with pytest.raises(NotFoundError):
        service.remove_team_from_league(db_conn, tid, lid, team_ids[1], OWNER)


def test_roster_locked_once_fixtures_exist(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 4)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    late = service.create_team(db_conn, tid, OWNER, "Late")
    with pytest.raises(TeamChangeNotAllowedError):
        service.add_team_to_league(db_conn, tid, lid, late.id, OWNER)
    with pytest.raises(TeamChangeNotAllowedError):
        service.remove_team_from_league(db_conn, tid, lid, team_ids[0], OWNER)
    with pytest.raises(TeamChangeNotAllowedError):
        service.delete_team(db_conn, tid, team_ids[0], OWNER)
    # unrostered teams can still be deleted
    service.delete_team(db_conn, tid, late.id, OWNER)


# ---------- fixtures ----------


def test_generate_fixtures_persists_round_robin(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 4)
    rounds = service.generate_fixtures(db_conn, tid, lid, OWNER)
    assert len(rounds) == 3
    fixtures = service.list_fixtures(db_conn, tid, lid, None)
    assert len(fixtures) == 6
    assert [f.round for f in fixtures] == [1, 1, 2, 2, 3, 3]
    pairs = {frozenset((f.home_team_id, f.away_team_id)) for f in fixtures}
    assert pairs == {frozenset(p) for p in combinations(team_ids, 2)}
    assert all(not f.played for f in fixtures)
    # registration order decides round 1: first half at home against second half
    assert (fixtures[0].home_team_id, fixtures[0].away_team_id) == (team_ids[0], team_ids[2])


def test_generate_fixtures_only_once(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 4)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    with pytest.raises(FixturesAlreadyExistError):
        service.generate_fixtures(db_conn, tid, lid, OWNER)
    assert len(service.list_fixtures(db_conn, tid, lid, None)) == 6


def test_generate_fixtures_needs_two_teams(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 1)
    with pytest.raises(InsufficientParticipants):
        service.generate_fixtures(db_conn, tid, lid, OWNER)
    assert service.list_fixtures(db_conn, tid, lid, None) == []


def test_generate_fixtures_odd_roster(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 5)
    rounds = service.generate_fixtures(db_conn, tid, lid, OWNER)
    assert len(rounds) == 5
    assert len(service.list_fixtures(db_conn, tid, lid, None)) == 10


def test_shuffle_seed_is_reproducible(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 6)
    first = service.generate_fixtures(db_conn, tid, lid, OWNER, shuffle_seed=7)
    service.reset_fixtures(db_conn, tid, lid, OWNER)
    second = service.generate_fixtures(db_conn, tid, lid, OWNER, shuffle_seed=7)
    assert first == second


def test_reset_fixtures(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 4)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    assert service.reset_fixtures(db_conn, tid, lid, OWNER) == 6
    assert service.list_fixtures(db_conn, tid, lid, None) == []
    with pytest.raises(InvalidRequestError):
        service.reset_fixtures(db_conn, tid, lid, OWNER)
    # roster unlocked again
    extra = service.create_team(db_conn, tid, OWNER, "Extra")
    service.add_team_to_league(db_conn, tid, lid, extra.id, OWNER)


def test_other_user_cannot_generate(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 4)
    with pytest.raises(PermissionDeniedError):
        service.generate_fixtures(db_conn, tid, lid, OTHER)


def test_league_from_other_tournament_not_found(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 2)
    other = service.create_tournament(db_conn, OWNER, "Other", public=True)
    with pytest.raises(NotFoundError):
        service.generate_fixtures(db_conn, other.id, lid, OWNER)


# ---------- results and standings ----------


def test_record_result_and_standings(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 4)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    first = service.list_fixtures(db_conn, tid, lid, None)[0]
    updated = service.record_result(db_conn, tid, lid, first.id, OWNER, 3, 1, True)
    assert (updated.home_score, updated.away_score, updated.played) == (3, 1, True)

    table = service.standing_table(db_conn, tid, lid, None)
    assert len(table) == 4
    assert table[0].team_id == first.home_team_id
    assert table[0].points == 3
    assert table[-1].team_id == first.away_team_id
    assert table[-1].loss == 1


def test_unplayed_result_not_counted(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 2)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    fixture = service.list_fixtures(db_conn, tid, lid, None)[0]
    service.record_result(db_conn, tid, lid, fixture.id, OWNER, 2, 0, False)
    table = service.standing_table(db_conn, tid, lid, None)
    assert all(e.points == 0 and e.goals_scored == 0 for e in table)


def test_standings_before_any_fixture(db_conn, service):
    tid, lid, team_ids = _league_with_teams(service, db_conn, 3)
    table = service.standing_table(db_conn, tid, lid, None)
    assert [e.team_id for e in table] == team_ids


def test_record_result_negative_score(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 2)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    fixture = service.list_fixtures(db_conn, tid, lid, None)[0]
    with pytest.raises(InvalidRequestError):
        service.record_result(db_conn, tid, lid, fixture.id, OWNER, -1, 0, True)


def test_get_unknown_fixture(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 2)
    with pytest.raises(NotFoundError):
        service.get_fixture(db_conn, tid, lid, "missing", None)


# ---------- concurrency ----------


def _attempt_from_second_connection(action) -> str:
    """Run action on a fresh connection that fails fast instead of waiting for the write lock."""
    other = sqlite3.connect(str(get_db_path()), timeout=0.05)
    other.row_factory = sqlite3.Row
    other.execute("PRAGMA foreign_keys = ON")
    try:
        action(other)
        return "done"
    except sqlite3.OperationalError:
        return "locked"
    finally:
        other.close()


def test_league_cap_holds_against_concurrent_add(db_conn, service, monkeypatch):
    """A second add landing between the cap check and the insert must wait for the first."""
    tid, lid, _ = _league_with_teams(service, db_conn, MAX_TEAMS_PER_LEAGUE - 1)
    last = service.create_team(db_conn, tid, OWNER, "Last")
    rival = service.create_team(db_conn, tid, OWNER, "Rival")
    outcomes: list[str] = []
    count_teams = LeagueRepository.count_teams

    def count_then_race(self, conn, league_id):
        n = count_teams(self, conn, league_id)
        if conn is db_conn and not outcomes:
            outcomes.append(_attempt_from_second_connection(
                lambda other: TournamentService().add_team_to_league(other, tid, lid, rival.id, OWNER)
            ))
        return n

    monkeypatch.setattr(LeagueRepository, "count_teams", count_then_race)
    service.add_team_to_league(db_conn, tid, lid, last.id, OWNER)
    monkeypatch.undo()

    assert outcomes == ["locked"]
    assert LeagueRepository().count_teams(db_conn, lid) == MAX_TEAMS_PER_LEAGUE
    with pytest.raises(LeagueFullError):
        service.add_team_to_league(db_conn, tid, lid, rival.id, OWNER)


def test_generation_waits_for_pending_roster_change(db_conn, service, monkeypatch):
    """Fixtures generated during a roster change must cover the team being added."""
    tid, lid, _ = _league_with_teams(service, db_conn, 4)
    fifth = service.create_team(db_conn, tid, OWNER, "Fifth")
    outcomes: list[str] = []
    fixtures_already_exist = FixtureRepository.fixtures_already_exist

    def check_then_race(self, conn, league_id):
        exists = fixtures_already_exist(self, conn, league_id)
        if conn is db_conn and not outcomes:
            outcomes.append(_attempt_from_second_connection(
                lambda other: TournamentService().generate_fixtures(other, tid, lid, OWNER)
            ))
        return exists

    monkeypatch.setattr(FixtureRepository, "fixtures_already_exist", check_then_race)
    service.add_team_to_league(db_conn, tid, lid, fifth.id, OWNER)
    monkeypatch.undo()

    assert outcomes == ["locked"]
    assert service.list_fixtures(db_conn, tid, lid, None) == []
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    assert len(service.list_fixtures(db_conn, tid, lid, None)) == 10


def test_concurrent_generation_only_one_wins(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 6)
    workers = 4
    barrier = threading.Barrier(workers)
    outcomes: list[str] = []

    def generate() -> None:
        conn = get_connection()
        try:
            barrier.wait()
            TournamentService().generate_fixtures(conn, tid, lid, OWNER)
            outcomes.append("ok")
        except FixturesAlreadyExistError:
            outcomes.append("exists")
        finally:
            conn.close()

    threads = [threading.Thread(target=generate) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["exists"] * (workers - 1) + ["ok"]
    assert len(FixtureRepository().list_by_league(db_conn, lid)) == 15


# ---------- transactions ----------


def test_transaction_refuses_pending_changes(db_conn):
    db_conn.execute(
        "INSERT INTO users (id, username, password_hash, created_at) VALUES ('u3', 'pending', 'x', '2024-01-01T00:00:00+00:00')"
    )
    assert db_conn.in_transaction
    with pytest.raises(RuntimeError):
        with transaction(db_conn):
            pass
    db_conn.rollback()
    assert UserRepository().get(db_conn, "u3") is None


def test_transaction_rolls_back_on_error(db_conn):
    with pytest.raises(ValueError):
        with transaction(db_conn):
            db_conn.execute(
                "INSERT INTO users (id, username, password_hash, created_at) VALUES ('u4', 'gone', 'x', '2024-01-01T00:00:00+00:00')"
            )
            raise ValueError("abort")
    assert UserRepository().get(db_conn, "u4") is None


def test_fetch_results_follow_schedule_order(db_conn, service):
    tid, lid, _ = _league_with_teams(service, db_conn, 4)
    service.generate_fixtures(db_conn, tid, lid, OWNER)
    fixtures = service.list_fixtures(db_conn, tid, lid, None)
    results = FixtureRepository().fetch_results(db_conn, lid)
    assert results == [f.as_result() for f in fixtures]
    assert [r.round for r in results] == [1, 1, 2, 2, 3, 3]
