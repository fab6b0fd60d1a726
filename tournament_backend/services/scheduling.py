"""
Deterministic round-robin fixture generation for leagues (Berger table).

Round-robin is used so every team plays every other team exactly once; a league
lasts N-1 rounds (N even) or N rounds (N odd). Each team plays at most one match
per round.

Bye handling: when the number of teams is odd, an empty slot is added to the
working columns. Whoever is paired with the empty slot sits the round out and no
match is emitted for it. The empty slot is None rather than a placeholder team,
so no real team id can ever be mistaken for the bye.

Uses the circle method on two columns: column A (first half of the roster) plays
at home against column B (second half) index by index. After each round the head
of column B moves to A[1] and the tail of column A moves to the end of B; A[0]
never moves. Same roster ordering yields the same fixtures, so callers that want
random pairings shuffle the roster before calling.
"""
from __future__ import annotations

from collections import Counter
from typing import Any, Optional, Sequence

from tournament_backend.models import Match, Round, Team
from tournament_backend.services.errors import InsufficientParticipants, InvalidRoster

Slot = Optional[Team]


def _validate_roster(teams: Sequence[Team]) -> None:
    if len(teams) < 2:
        raise InsufficientParticipants(len(teams))
    counts = Counter(t.id for t in teams)
    duplicates = [tid for tid, n in counts.items() if n > 1]
    if duplicates:
        raise InvalidRoster(duplicates)


def _rotate(column_a: list[Slot], column_b: list[Slot]) -> None:
    column_a.insert(1, column_b.pop(0))
    column_b.append(column_a.pop())


class Scheduler:
    """Stateless Berger-table generator. Safe to share between requests."""

    def generate(self, teams: Sequence[Team]) -> list[Round]:
        """
        Return every round of a single round-robin over teams.
        Raises InsufficientParticipants (< 2 teams) or InvalidRoster (duplicate ids).
        """
        _validate_roster(teams)
        slots: list[Slot] = list(teams)
        if len(slots) % 2 == 1:
            slots.append(None)
        matches_per_round = len(slots) // 2
        number_of_rounds = len(slots) - 1

        column_a = slots[:matches_per_round]
        column_b = slots[matches_per_round:]

        rounds: list[Round] = []
        for number in range(1, number_of_rounds + 1):
            game_week = Round(number=number)
            for home, away in zip(column_a, column_b):
                if home is None or away is None:
                    continue
                game_week.matches.append(Match(home.id, away.id, number))
            rounds.append(game_week)
            _rotate(column_a, column_b)
        return rounds


def fixture_rows(rounds: Sequence[Round]) -> list[dict[str, Any]]:
    """
    Flatten rounds into fixture rows: { "round", "position", "home_team_id", "away_team_id" }.
    position is the match's index within its round.
    """
    return [
        {
            "round": r.number,
            "position": position,
            "home_team_id": m.home_team_id,
            "away_team_id": m.away_team_id,
        }
        for r in rounds
        for position, m in enumerate(r.matches)
    ]


def generate_league_schedule(teams: Sequence[Team]) -> list[dict[str, Any]]:
    """Fixture rows for a full round-robin over teams. Raises the same errors as Scheduler.generate."""
    return fixture_rows(Scheduler().generate(teams))
