"""
Group standings persistence.

apply_match_result / reverse_match_result / initialize_group_standings only
stage changes on the session; callers own the commit. recompute_group_standings
is a public operation with its own transaction.
"""

import logging
from typing import Dict, List

from sqlmodel import Session, select

from dronesoccer.models.group import TeamGroup
from dronesoccer.models.group_standing import GroupStanding
from dronesoccer.models.match import Match
from dronesoccer.models.team import Team
from dronesoccer.models.tournament import Tournament
from dronesoccer.services.errors import NotFoundError
from dronesoccer.services.match_state import STATUS_COMPLETED
from dronesoccer.services.standings_calculator import (
    COUNTER_FIELDS,
    CompletedMatch,
    StandingRow,
    apply_effect,
    outcome_effect,
    overall_leaderboard,
    rank_standings,
    recompute,
    resolve_winner,
    reverse_effect,
)

logger = logging.getLogger(__name__)


def _completed(match: Match) -> CompletedMatch:
    return CompletedMatch(
        match_id=match.id,
        team_a_id=match.team_a_id,
        team_b_id=match.team_b_id,
        score_a=match.score_a,
        score_b=match.score_b,
        winner_team_id=match.winner_team_id,
    )


def _get_or_create_standing(session: Session, match: Match, team_id: int) -> GroupStanding:
    standing = session.exec(
        select(GroupStanding).where(
            GroupStanding.group_id == match.group_id,
            GroupStanding.team_id == team_id,
        )
    ).first()
    if standing is None:
        standing = GroupStanding(tournament_id=match.tournament_id, group_id=match.group_id, team_id=team_id)
        session.add(standing)
    return standing


def initialize_group_standings(session: Session, group: TeamGroup) -> int:
    """Create a zeroed row for every team in the group that has none. Returns rows created."""
    existing = {
        s.team_id
        for s in session.exec(select(GroupStanding).where(GroupStanding.group_id == group.id)).all()
    }
    teams = session.exec(select(Team).where(Team.group_id == group.id)).all()
    created = 0
    for team in teams:
        if team.id in existing:
            continue
        session.add(GroupStanding(tournament_id=group.tournament_id, group_id=group.id, team_id=team.id))
        created += 1
    return created


def _match_effects(match: Match):
    winner, fell_back = resolve_winner(_completed(match))
    if fell_back:
        logger.warning("Match %s: winner %s is not a participant, using score", match.id, match.winner_team_id)
    return outcome_effect(match.team_a_id, match.team_b_id, match.score_a, match.score_b, winner)


def apply_match_result(session: Session, match: Match) -> bool:
    """Add a completed group match to its teams' standings. Non-group matches are ignored."""
    if match.group_id is None or match.team_a_id is None or match.team_b_id is None:
        return False
    for effect in _match_effects(match):
        standing = _get_or_create_standing(session, match, effect.team_id)
        apply_effect(standing, effect)
        session.add(standing)
    return True


def reverse_match_result(session: Session, match: Match) -> bool:
    """Subtract exactly what apply_match_result added for the match's current result."""
    if match.group_id is None or match.team_a_id is None or match.team_b_id is None:
        return False
    for effect in _match_effects(match):
        standing = _get_or_create_standing(session, match, effect.team_id)
        reverse_effect(standing, effect)
        session.add(standing)
    return True


def recompute_group_standings(session: Session, group_id: int) -> Dict:
    """
    Rebuild a group's standings from its completed matches.

    Zeroes every row, replays every completed group match, commits once.
    """
    group = session.get(TeamGroup, group_id)
    if not group:
        raise NotFoundError(f"Group {group_id} not found")

    try:
        initialize_group_standings(session, group)
        session.flush()

        rows = session.exec(select(GroupStanding).where(GroupStanding.group_id == group_id)).all()
        matches = session.exec(
            select(Match)
            .where(Match.group_id == group_id, Match.status == STATUS_COMPLETED)
            .order_by(Match.id)
        ).all()
        replayable = [m for m in matches if m.team_a_id is not None and m.team_b_id is not None]

        result = recompute(rows, [_completed(m) for m in replayable])

        for team_id, row in result.rows.items():
            if not isinstance(row, GroupStanding):
                # Team played in the group without a standing row
                standing = GroupStanding(tournament_id=group.tournament_id, group_id=group_id, team_id=team_id)
                for name in COUNTER_FIELDS:
                    setattr(standing, name, getattr(row, name))
                session.add(standing)
            else:
                session.add(row)

        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Recompute of group %s failed, transaction rolled back", group_id)
        raise

    logger.info(
        "Group %s standings recomputed from %d matches (%d score fallbacks)",
        group_id,
        result.matches_replayed,
        len(result.fallback_match_ids),
    )
    return {
        "group_id": group_id,
        "matches_replayed": result.matches_replayed,
        "fallback_match_ids": result.fallback_match_ids,
    }


def _standing_rows(session: Session, group: TeamGroup) -> List[StandingRow]:
    rows = session.exec(
        select(GroupStanding, Team)
        .join(Team, Team.id == GroupStanding.team_id)
        .where(GroupStanding.group_id == group.id)
    ).all()
    return [
        StandingRow(
            team_id=team.id,
            team_name=team.name,
            group_id=group.id,
            group_name=group.group_name,
            played=s.played,
            won=s.won,
            drawn=s.drawn,
            lost=s.lost,
            goals_for=s.goals_for,
            goals_against=s.goals_against,
            points=s.points,
        )
        for s, team in rows
    ]


def get_group_standings(session: Session, group_id: int) -> List[Dict]:
    group = session.get(TeamGroup, group_id)
    if not group:
        raise NotFoundError(f"Group {group_id} not found")

    return [
        {
            "rank": rank,
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
        for rank, row in rank_standings(_standing_rows(session, group))
    ]


def get_overall_leaderboard(session: Session, tournament_id: int) -> List[Dict]:
    if not session.get(Tournament, tournament_id):
        raise NotFoundError(f"Tournament {tournament_id} not found")

    groups = session.exec(
        select(TeamGroup).where(TeamGroup.tournament_id == tournament_id).order_by(TeamGroup.group_name)
    ).all()
    return overall_leaderboard({g.group_name: _standing_rows(session, g) for g in groups})
