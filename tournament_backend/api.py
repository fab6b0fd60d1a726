"""
REST API for the tournament backend.
Thin wrappers around the tournament service and persistence.
"""
from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from tournament_backend.auth import create_access_token, decode_token, hash_password, verify_password
from tournament_backend.models import Round
from tournament_backend.persistence import UserRepository, get_connection, init_db
from tournament_backend.persistence.db import get_db_path
from tournament_backend.services.league_service import (
    FixturesAlreadyExistError,
    NotFoundError,
    PermissionDeniedError,
    TournamentService,
)

logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def service_call() -> Generator[sqlite3.Connection, None, None]:
    """
    Yield a DB connection and translate domain errors into HTTP errors.
    404 not found/hidden, 403 not owner, 409 fixtures already exist, 400 any other domain error.
    """
    with db_conn() as conn:
        try:
            yield conn
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except PermissionDeniedError as e:
            raise HTTPException(status_code=403, detail=str(e))
        except FixturesAlreadyExistError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except sqlite3.IntegrityError as e:
            logger.warning("integrity_error detail=%s", e)
            raise HTTPException(status_code=400, detail="Operation conflicts with existing data")


# ---------- Startup: logging and DB ----------
def _configure_logging() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    _configure_logging()
    init_db(db_path=get_db_path())
    logger.info("database_ready path=%s", get_db_path())
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title="Tournament API",
    description="Tournaments, leagues, round-robin fixtures and standing tables",
    version="0.1.0",
    lifespan=lifespan,
)

service = TournamentService()
security = HTTPBearer(auto_error=False)


# ---------- Request/Response models ----------


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    username: str
    password: str


class CreateTournamentRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=20)
    public: bool = True


class EditTournamentRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=20)
    public: bool | None = None


class TeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=40)


class LeagueRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=20)
    completed: bool = False


class GenerateFixturesRequest(BaseModel):
    shuffle_seed: int | None = Field(None, description="Shuffle the roster with this seed before pairing")


class EditFixtureRequest(BaseModel):
    home_score: int = Field(..., ge=0, le=255)
    away_score: int = Field(..., ge=0, le=255)
    played: bool


def _get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> str | None:
    """Return user_id from JWT or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def _require_user_id(user_id: str | None = Depends(_get_current_user_id)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Login required")
    return user_id


def _rounds_to_dict(rounds: list[Round]) -> list[dict[str, Any]]:
    return [
        {
            "round": r.number,
            "matches": [{"home_team_id": m.home_team_id, "away_team_id": m.away_team_id} for m in r.matches],
        }
        for r in rounds
    ]


# ---------- Auth ----------


@app.post("/signup")
def signup(req: SignupRequest) -> dict[str, Any]:
    """Create account. Passwords hashed, never stored plain."""
    with db_conn() as conn:
        user_repo = UserRepository()
        if user_repo.get_by_username(conn, req.username):
            raise HTTPException(status_code=400, detail="Username already taken")
        user = user_repo.create(conn, req.username, hash_password(req.password))
        token = create_access_token(user.id)
        return {"user_id": user.id, "username": user.username, "token": token}


@app.post("/login")
def login(req: LoginRequest) -> dict[str, Any]:
    """Returns JWT token."""
    with db_conn() as conn:
        user = UserRepository().get_by_username(conn, req.username)
        if user is None or not verify_password(req.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid username or password")
        token = create_access_token(user.id)
        return {"user_id": user.id, "username": user.username, "token": token}


# ---------- Tournaments ----------


@app.post("/tournaments", status_code=201)
def create_tournament(req: CreateTournamentRequest, user_id: str = Depends(_require_user_id)) -> dict[str, Any]:
    with service_call() as conn:
        return service.create_tournament(conn, user_id, req.name, req.public).to_dict()


@app.get("/tournaments/{tournament_id}")
def get_tournament(tournament_id: str, user_id: str | None = Depends(_get_current_user_id)) -> dict[str, Any]:
    """Tournament information with its leagues and teams. Private tournaments: owner only."""
    with service_call() as conn:
        return service.get_tournament_information(conn, tournament_id, user_id)


@app.put("/tournaments/{tournament_id}")
def edit_tournament(
    tournament_id: str, req: EditTournamentRequest, user_id: str = Depends(_require_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        return service.edit_tournament(conn, tournament_id, user_id, name=req.name, public=req.public).to_dict()


@app.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: str, user_id: str = Depends(_require_user_id)) -> Response:
    with service_call() as conn:
        service.delete_tournament(conn, tournament_id, user_id)
    return Response(status_code=204)


# ---------- Teams ----------


@app.post("/tournaments/{tournament_id}/teams", status_code=201)
def create_team(tournament_id: str, req: TeamRequest, user_id: str = Depends(_require_user_id)) -> dict[str, Any]:
    with service_call() as conn:
        return service.create_team(conn, tournament_id, user_id, req.name).to_dict()


@app.get("/tournaments/{tournament_id}/teams/{team_id}")
def get_team(
    tournament_id: str, team_id: str, user_id: str | None = Depends(_get_current_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        return service.get_team(conn, tournament_id, team_id, user_id).to_dict()


@app.put("/tournaments/{tournament_id}/teams/{team_id}")
def edit_team(
    tournament_id: str, team_id: str, req: TeamRequest, user_id: str = Depends(_require_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        return service.rename_team(conn, tournament_id, team_id, user_id, req.name).to_dict()


@app.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
def delete_team(tournament_id: str, team_id: str, user_id: str = Depends(_require_user_id)) -> Response:
    with service_call() as conn:
        service.delete_team(conn, tournament_id, team_id, user_id)
    return Response(status_code=204)


# ---------- Leagues ----------


@app.post("/tournaments/{tournament_id}/leagues", status_code=201)
def create_league(tournament_id: str, req: LeagueRequest, user_id: str = Depends(_require_user_id)) -> dict[str, Any]:
    with service_call() as conn:
        return service.create_league(conn, tournament_id, user_id, req.name, req.completed).to_dict()


@app.get("/tournaments/{tournament_id}/leagues/{league_id}")
def get_league(
    tournament_id: str, league_id: str, user_id: str | None = Depends(_get_current_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        return service.get_league(conn, tournament_id, league_id, user_id)


@app.put("/tournaments/{tournament_id}/leagues/{league_id}")
def edit_league(
    tournament_id: str, league_id: str, req: LeagueRequest, user_id: str = Depends(_require_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        return service.edit_league(conn, tournament_id, league_id, user_id, req.name, req.completed).to_dict()


@app.delete("/tournaments/{tournament_id}/leagues/{league_id}", status_code=204)
def delete_league(tournament_id: str, league_id: str, user_id: str = Depends(_require_user_id)) -> Response:
    with service_call() as conn:
        service.delete_league(conn, tournament_id, league_id, user_id)
    return Response(status_code=204)


@app.post("/tournaments/{tournament_id}/leagues/{league_id}/teams/{team_id}")
def league_add_team(
    tournament_id: str, league_id: str, team_id: str, user_id: str = Depends(_require_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        service.add_team_to_league(conn, tournament_id, league_id, team_id, user_id)
        return {"league_id": league_id, "team_id": team_id, "added": True}


@app.delete("/tournaments/{tournament_id}/leagues/{league_id}/teams/{team_id}", status_code=204)
def league_remove_team(
    tournament_id: str, league_id: str, team_id: str, user_id: str = Depends(_require_user_id)
) -> Response:
    with service_call() as conn:
        service.remove_team_from_league(conn, tournament_id, league_id, team_id, user_id)
    return Response(status_code=204)


# ---------- Fixtures ----------


@app.post("/tournaments/{tournament_id}/leagues/{league_id}/fixtures", status_code=201)
def generate_fixtures(
    tournament_id: str,
    league_id: str,
    req: GenerateFixturesRequest | None = None,
    user_id: str = Depends(_require_user_id),
) -> dict[str, Any]:
    """Generate the league's round-robin once. 409 if fixtures already exist."""
    seed = req.shuffle_seed if req else None
    with service_call() as conn:
        try:
            rounds = service.generate_fixtures(conn, tournament_id, league_id, user_id, shuffle_seed=seed)
        except (ValueError, sqlite3.IntegrityError):
            raise
        except Exception:
            logger.exception("fixture_generation_failed league=%s", league_id)
            raise
        return {
            "league_id": league_id,
            "total_rounds": len(rounds),
            "total_fixtures": sum(len(r.matches) for r in rounds),
            "rounds": _rounds_to_dict(rounds),
        }


@app.get("/tournaments/{tournament_id}/leagues/{league_id}/fixtures")
def get_league_fixtures(
    tournament_id: str, league_id: str, user_id: str | None = Depends(_get_current_user_id)
) -> dict[str, Any]:
    """All fixtures ordered by round."""
    with service_call() as conn:
        fixtures = service.list_fixtures(conn, tournament_id, league_id, user_id)
        return {"league_id": league_id, "fixtures": [f.to_dict() for f in fixtures]}


@app.delete("/tournaments/{tournament_id}/leagues/{league_id}/fixtures")
def delete_fixtures_from_league(
    tournament_id: str, league_id: str, user_id: str = Depends(_require_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        deleted = service.reset_fixtures(conn, tournament_id, league_id, user_id)
        return {"league_id": league_id, "deleted": deleted}


@app.get("/tournaments/{tournament_id}/leagues/{league_id}/fixtures/{fixture_id}")
def get_fixture(
    tournament_id: str, league_id: str, fixture_id: str, user_id: str | None = Depends(_get_current_user_id)
) -> dict[str, Any]:
    with service_call() as conn:
        return service.get_fixture(conn, tournament_id, league_id, fixture_id, user_id).to_dict()


@app.put("/tournaments/{tournament_id}/leagues/{league_id}/fixtures/{fixture_id}")
def edit_fixture(
    tournament_id: str,
    league_id: str,
    fixture_id: str,
    req: EditFixtureRequest,
    user_id: str = Depends(_require_user_id),
) -> dict[str, Any]:
    """Record a result: scores and played flag."""
    with service_call() as conn:
        fixture = service.record_result(
            conn, tournament_id, league_id, fixture_id, user_id,
            req.home_score, req.away_score, req.played,
        )
        return fixture.to_dict()


# ---------- Standings ----------


@app.get("/tournaments/{tournament_id}/leagues/{league_id}/standing-table")
def get_league_standing_table(
    tournament_id: str, league_id: str, user_id: str | None = Depends(_get_current_user_id)
) -> dict[str, Any]:
    """Ranked by points, goal difference, goals scored, then fewest goals against."""
    with service_call() as conn:
        table = service.standing_table(conn, tournament_id, league_id, user_id)
        return {"league_id": league_id, "standings": [e.to_dict() for e in table]}


# ---------- Run with: uvicorn tournament_backend.api:app --reload ----------
