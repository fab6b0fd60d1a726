"""
Standing table computed from match results.

Deterministic, in-process fold over the league's results: no SQL aggregation.
Win = 3 points, draw = 1, loss = 0. Only played results count.

Ranking: points, then goal difference, then goals scored (all descending), then
goals against (ascending). Teams still level after all four keys keep their
roster order; there is no head-to-head or alphabetical tie-break.
"""
from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from tournament_backend.models import MatchResult, StandingEntry, Team
from tournament_backend.services.errors import InvalidRoster, UnknownTeamReference

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1


def _record(entry: StandingEntry, scored: int, conceded: int) -> None:
    entry.goals_scored += scored
    entry.goals_against += conceded
    if scored > conceded:
        entry.win += 1
        entry.points += POINTS_FOR_WIN
    elif scored == conceded:
        entry.draw += 1
        entry.points += POINTS_FOR_DRAW
    else:
        entry.loss += 1


def _ranking_key(entry: StandingEntry) -> tuple[int, int, int, int]:
    return (-entry.points, -entry.goal_difference, -entry.goals_scored, entry.goals_against)


class StandingsCalculator:
    """Stateless: every call folds the given results from scratch."""

    def compute(self, results: Iterable[MatchResult], roster: Sequence[Team]) -> list[StandingEntry]:
        """
        Return one ranked StandingEntry per roster team (zero rows for teams that have not played).
        Raises UnknownTeamReference if a result names a team outside the roster,
        InvalidRoster if the roster repeats a team id.
        """
        counts = Counter(t.id for t in roster)
        duplicates = [tid for tid, n in counts.items() if n > 1]
        if duplicates:
            raise InvalidRoster(duplicates)

        table = {t.id: StandingEntry(team_id=t.id, team_name=t.name) for t in roster}
        for result in results:
            for tid in (result.home_team_id, result.away_team_id):
                if tid not in table:
                    raise UnknownTeamReference(tid)
            if not result.played:
                continue
            _record(table[result.home_team_id], result.home_score, result.away_score)
            _record(table[result.away_team_id], result.away_score, result.home_score)

        # dicts keep insertion order, and sorted() is stable: full ties stay in roster order
        return sorted(table.values(), key=_ranking_key)


def compute_standings(results: Iterable[MatchResult], roster: Sequence[Team]) -> list[StandingEntry]:
    """Module-level shortcut for StandingsCalculator().compute."""
    return StandingsCalculator().compute(results, roster)
