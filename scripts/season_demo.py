#!/usr/bin/env python3
"""
Season demo: Create tournament → Register teams → Generate fixtures → Record results → Standing table.
Run from project root: python3 scripts/season_demo.py
"""
from __future__ import annotations

import random
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tournament_backend.auth import hash_password
from tournament_backend.persistence import UserRepository, get_connection, init_db
from tournament_backend.persistence.db import set_db_path
from tournament_backend.services import TournamentService

TEAM_NAMES = ["Rovers", "United", "Athletic", "Wanderers", "Albion"]


def main() -> None:
    # Use data/season_demo.db for demo (distinct from app.db)
    db_path = PROJECT_ROOT / "data" / "season_demo.db"
    set_db_path(db_path)
    init_db(db_path=db_path)

    conn = get_connection()
    try:
        user_repo = UserRepository()
        service = TournamentService()

        # 1. Ensure user exists
        user_id = "season-demo-user"
        if user_repo.get(conn, user_id) is None:
            user_repo.create(conn, "season-demo", hash_password("season-demo"), id=user_id)
            print(f"Created user: {user_id}")

        # 2. Tournament, league and an odd number of teams (one bye per round)
        tournament = service.create_tournament(conn, user_id, "Demo Cup", public=True)
        league = service.create_league(conn, tournament.id, user_id, "Division 1")
        for name in TEAM_NAMES:
            team = service.create_team(conn, tournament.id, user_id, name)
            service.add_team_to_league(conn, tournament.id, league.id, team.id, user_id)
        print(f"Created tournament {tournament.name} with league {league.name} ({len(TEAM_NAMES)} teams)")

        # 3. Fixtures
        rounds = service.generate_fixtures(conn, tournament.id, league.id, user_id)
        fixtures = service.list_fixtures(conn, tournament.id, league.id, user_id)
        print(f"Generated {len(fixtures)} fixtures over {len(rounds)} rounds")
        for f in fixtures:
            print(f"  R{f.round}: {f.home_team_name} vs {f.away_team_name}")

        # 4. Play the first two rounds with seeded scores
        rng = random.Random(2024)
        for f in fixtures:
            if f.round > 2:
                break
            home, away = rng.randint(0, 4), rng.randint(0, 4)
            service.record_result(conn, tournament.id, league.id, f.id, user_id, home, away, True)
            print(f"  Result R{f.round}: {f.home_team_name} {home}-{away} {f.away_team_name}")

        # 5. Standing table
        table = service.standing_table(conn, tournament.id, league.id, user_id)
        print("\nPos  Team          P  W  D  L  GF  GA  GD  Pts")
        for pos, e in enumerate(table, start=1):
            print(
                f"{pos:>3}  {e.team_name:<12} {e.played:>2} {e.win:>2} {e.draw:>2} {e.loss:>2}"
                f" {e.goals_scored:>3} {e.goals_against:>3} {e.goal_difference:>3} {e.points:>4}"
            )

        print("\nSeason demo complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
