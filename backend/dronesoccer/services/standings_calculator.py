"""
Group standings arithmetic.

Pure functions over plain rows. apply_effect/reverse_effect work on anything
carrying the standing counters (StandingRow here, GroupStanding rows in the
persistent service), so live completion, result edits and full recompute all
go through the same effect.

Points: win 3, draw 1, loss 0.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

POINTS_WIN = 3
POINTS_DRAW = 1
POINTS_LOSS = 0

COUNTER_FIELDS = ("played", "won", "drawn", "lost", "goals_for", "goals_against", "points")


@dataclass
class StandingRow:
    team_id: int
    team_name: str = ""
    group_id: Optional[int] = None
    group_name: str = ""
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


@dataclass(frozen=True)
class StandingEffect:
    """Counter deltas one completed match adds to one team."""

    team_id: int
    played: int = 1
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0


@dataclass(frozen=True)
class CompletedMatch:
    match_id: int
    team_a_id: int
    team_b_id: int
    score_a: int
    score_b: int
    winner_team_id: Optional[int]


@dataclass
class RecomputeResult:
    rows: Dict[int, StandingRow]
    matches_replayed: int = 0
    fallback_match_ids: List[int] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Effects
# -----------------------------------------------------------------------------


def outcome_effect(
    team_a_id: int,
    team_b_id: int,
    score_a: int,
    score_b: int,
    winner_team_id: Optional[int],
) -> Tuple[StandingEffect, StandingEffect]:
    """Effects of one result on both teams. winner_team_id None means draw."""
    if winner_team_id is None:
        return (
            StandingEffect(team_a_id, drawn=1, goals_for=score_a, goals_against=score_b, points=POINTS_DRAW),
            StandingEffect(team_b_id, drawn=1, goals_for=score_b, goals_against=score_a, points=POINTS_DRAW),
        )

    a_won = winner_team_id == team_a_id
    return (
        StandingEffect(
            team_a_id,
            won=1 if a_won else 0,
            lost=0 if a_won else 1,
            goals_for=score_a,
            goals_against=score_b,
            points=POINTS_WIN if a_won else POINTS_LOSS,
        ),
        StandingEffect(
            team_b_id,
            won=0 if a_won else 1,
            lost=1 if a_won else 0,
            goals_for=score_b,
            goals_against=score_a,
            points=POINTS_LOSS if a_won else POINTS_WIN,
        ),
    )


def apply_effect(row, effect: StandingEffect, sign: int = 1) -> None:
    for name in COUNTER_FIELDS:
        setattr(row, name, getattr(row, name) + sign * getattr(effect, name))


def reverse_effect(row, effect: StandingEffect) -> None:
    apply_effect(row, effect, sign=-1)


def reset_row(row) -> None:
    for name in COUNTER_FIELDS:
        setattr(row, name, 0)


def winner_by_score(match: CompletedMatch) -> Optional[int]:
    if match.score_a > match.score_b:
        return match.team_a_id
    if match.score_b > match.score_a:
        return match.team_b_id
    return None


def resolve_winner(match: CompletedMatch) -> Tuple[Optional[int], bool]:
    """
    Winner to replay for a completed match, plus whether the score fallback was used.

    The stored winner is authoritative (it may come from fouls or a referee).
    A winner naming neither team falls back to the score.
    """
    if match.winner_team_id is None or match.winner_team_id in (match.team_a_id, match.team_b_id):
        return match.winner_team_id, False
    return winner_by_score(match), True


# -----------------------------------------------------------------------------
# Recompute / ranking
# -----------------------------------------------------------------------------


def recompute(rows: Iterable, matches: Sequence[CompletedMatch]) -> RecomputeResult:
    """
    Zero every row, then replay every completed match.

    rows may be StandingRow or any object with team_id and the counters; they
    are updated in place. Teams missing from rows get a new StandingRow.
    """
    by_team: Dict[int, object] = {}
    for row in rows:
        reset_row(row)
        by_team[row.team_id] = row

    result = RecomputeResult(rows=by_team)
    for match in matches:
        winner, fell_back = resolve_winner(match)
        if fell_back:
            logger.warning(
                "Match %s: stored winner %s is not a participant, using score %d-%d",
                match.match_id,
                match.winner_team_id,
                match.score_a,
                match.score_b,
            )
            result.fallback_match_ids.append(match.match_id)

        for effect in outcome_effect(match.team_a_id, match.team_b_id, match.score_a, match.score_b, winner):
            if effect.team_id not in by_team:
                by_team[effect.team_id] = StandingRow(team_id=effect.team_id)
            apply_effect(by_team[effect.team_id], effect)
        result.matches_replayed += 1

    return result


def ranking_key(row: StandingRow) -> Tuple:
    return (-row.points, -row.goal_difference, -row.goals_for, row.team_name)


def rank_standings(rows: Iterable[StandingRow]) -> List[Tuple[int, StandingRow]]:
    """(rank, row) pairs; rank is the 1-based position after sorting."""
    ordered = sorted(rows, key=ranking_key)
    return [(index + 1, row) for index, row in enumerate(ordered)]


def overall_leaderboard(groups: Dict[str, Sequence[StandingRow]]) -> List[Dict]:
    """
    Cross-group order: every group winner, then every runner-up, and so on.

    Teams sharing a group position are ordered by the ranking keys, then group
    name, then team name.
    """
    entries = []
    for group_name, rows in groups.items():
        for position, row in rank_standings(rows):
            entries.append((position, group_name, row))

    entries.sort(
        key=lambda e: (e[0], -e[2].points, -e[2].goal_difference, -e[2].goals_for, e[1], e[2].team_name)
    )
    return [
        {
            "overall_rank": index + 1,
            "group_position": position,
            "group_name": group_name,
            "team_id": row.team_id,
            "team_name": row.team_name,
            "played": row.played,
            "won": row.won,
            "drawn": row.drawn,
            "lost": row.lost,
            "goals_for": row.goals_for,
            "goals_against": row.goals_against,
            "goal_difference": row.goal_difference,
            "points": row.points,
        }
        for index, (position, group_name, row) in enumerate(entries)
    ]
