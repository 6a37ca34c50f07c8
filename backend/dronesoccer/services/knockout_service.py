"""
Knockout bracket persistence.

generate_knockout inserts one Match per plan node, then one BracketNode per
match with next_match_id resolved from plan keys, in a single transaction.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from dronesoccer.models.bracket_node import BracketNode
from dronesoccer.models.match import Match
from dronesoccer.models.team import Team
from dronesoccer.models.tournament import Tournament
from dronesoccer.services.bracket_builder import STAGE_THIRD_PLACE, build_bracket
from dronesoccer.services.errors import ConflictError, NotFoundError, ScheduleValidationError
from dronesoccer.services.match_state import STATUS_PENDING
from dronesoccer.services.schedule_rules import (
    DEFAULT_MATCH_DURATION_MINUTES,
    DEFAULT_MATCH_INTERVAL_MINUTES,
    validate_bracket_size,
)
from dronesoccer.services.standings_service import get_overall_leaderboard

logger = logging.getLogger(__name__)

MATCH_TYPE_KNOCKOUT = "knockout"


def _load_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError(f"Tournament {tournament_id} not found")
    return tournament


def _knockout_matches(session: Session, tournament_id: int) -> List[Match]:
    return session.exec(
        select(Match)
        .where(Match.tournament_id == tournament_id, Match.match_type == MATCH_TYPE_KNOCKOUT)
        .order_by(Match.round_number, Match.position_in_round, Match.id)
    ).all()


def _seeds_from_leaderboard(session: Session, tournament_id: int, team_count: Optional[int]) -> List[int]:
    if team_count is None:
        raise ScheduleValidationError(["either team_ids or team_count is required"])
    errors = validate_bracket_size(team_count)
    if errors:
        raise ScheduleValidationError(errors)

    leaderboard = get_overall_leaderboard(session, tournament_id)
    if len(leaderboard) < team_count:
        raise ScheduleValidationError(
            [f"leaderboard has {len(leaderboard)} teams, {team_count} needed for the knockout"]
        )
    return [entry["team_id"] for entry in leaderboard[:team_count]]


def _validate_team_ids(session: Session, tournament_id: int, team_ids: Sequence[int]) -> None:
    known = {
        t.id for t in session.exec(select(Team).where(Team.tournament_id == tournament_id)).all()
    }
    unknown = [team_id for team_id in team_ids if team_id not in known]
    if unknown:
        raise ScheduleValidationError([f"teams not in this tournament: {unknown}"])


def generate_knockout(
    session: Session,
    tournament_id: int,
    start_at: datetime,
    duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES,
    interval_minutes: int = DEFAULT_MATCH_INTERVAL_MINUTES,
    team_ids: Optional[Sequence[int]] = None,
    team_count: Optional[int] = None,
    include_third_place: bool = True,
    seeded: bool = True,
) -> Dict:
    """
    Build and persist a knockout bracket.

    team_ids is the seed order (seed 1 first). Without team_ids the top
    team_count entries of the overall group leaderboard are seeded.

    Raises:
        ScheduleValidationError: bad size, timing or team list
        NotFoundError: unknown tournament
        ConflictError: the tournament already has a bracket, or a knockout code is taken
    """
    _load_tournament(session, tournament_id)

    if team_ids is None:
        team_ids = _seeds_from_leaderboard(session, tournament_id, team_count)
    else:
        _validate_team_ids(session, tournament_id, team_ids)

    plan = build_bracket(
        list(team_ids),
        start_at,
        duration_minutes,
        interval_minutes,
        include_third_place=include_third_place,
        seeded=seeded,
    )

    if _knockout_matches(session, tournament_id):
        raise ConflictError(f"Tournament {tournament_id} already has a knockout bracket")

    taken = set(session.exec(select(Match.match_code).where(Match.tournament_id == tournament_id)).all())
    clashes = sorted(taken & {planned.match_code for planned in plan.matches})
    if clashes:
        raise ConflictError(f"Match codes already in use: {', '.join(clashes)}")

    try:
        match_ids: Dict[int, int] = {}
        created: Dict[int, Match] = {}
        for planned in plan.matches:
            match = Match(
                tournament_id=tournament_id,
                group_id=None,
                match_code=planned.match_code,
                match_type=MATCH_TYPE_KNOCKOUT,
                tournament_stage=planned.stage,
                round_number=planned.round_number,
                position_in_round=planned.position_in_round,
                team_a_id=planned.team_a_id,
                team_b_id=planned.team_b_id,
                scheduled_at=planned.scheduled_at,
                duration_minutes=planned.duration_minutes,
                status=STATUS_PENDING,
            )
            session.add(match)
            created[planned.key] = match
        session.flush()

        for key, match in created.items():
            match_ids[key] = match.id

        for planned in plan.matches:
            session.add(
                BracketNode(
                    tournament_id=tournament_id,
                    match_id=match_ids[planned.key],
                    round_number=planned.round_number,
                    position_in_round=planned.position_in_round,
                    next_match_id=match_ids[planned.next_key] if planned.next_key is not None else None,
                    is_third_place=planned.is_third_place,
                )
            )
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Knockout generation for tournament %s failed, transaction rolled back", tournament_id)
        raise

    logger.info(
        "Tournament %s: knockout bracket with %d teams, %d matches",
        tournament_id,
        plan.size,
        len(plan.matches),
    )
    return get_bracket(session, tournament_id)


def _match_view(match: Match, node: Optional[BracketNode]) -> Dict:
    return {
        "id": match.id,
        "match_code": match.match_code,
        "stage": match.tournament_stage,
        "round_number": match.round_number,
        "position_in_round": match.position_in_round,
        "team_a_id": match.team_a_id,
        "team_b_id": match.team_b_id,
        "score_a": match.score_a,
        "score_b": match.score_b,
        "status": match.status,
        "winner_team_id": match.winner_team_id,
        "win_reason": match.win_reason,
        "scheduled_at": match.scheduled_at.isoformat() if match.scheduled_at else None,
        "next_match_id": node.next_match_id if node else None,
    }


def get_bracket(session: Session, tournament_id: int) -> Dict:
    """Bracket grouped by round, third-place match separate."""
    _load_tournament(session, tournament_id)

    nodes = {
        n.match_id: n
        for n in session.exec(select(BracketNode).where(BracketNode.tournament_id == tournament_id)).all()
    }
    rounds: Dict[int, Dict] = {}
    third_place = None
    for match in _knockout_matches(session, tournament_id):
        node = nodes.get(match.id)
        if match.tournament_stage == STAGE_THIRD_PLACE or (node and node.is_third_place):
            third_place = _match_view(match, node)
            continue
        entry = rounds.setdefault(
            match.round_number,
            {"round_number": match.round_number, "stage": match.tournament_stage, "matches": []},
        )
        entry["matches"].append(_match_view(match, node))

    return {
        "tournament_id": tournament_id,
        "rounds": [rounds[r] for r in sorted(rounds)],
        "third_place": third_place,
    }


def delete_knockout(session: Session, tournament_id: int) -> int:
    """Discard the bracket while every knockout match is pending. Returns matches deleted."""
    _load_tournament(session, tournament_id)
    matches = _knockout_matches(session, tournament_id)
    started = [m.match_code for m in matches if m.status != STATUS_PENDING]
    if started:
        raise ConflictError(f"Cannot discard bracket: matches already started ({', '.join(started)})")

    try:
        for node in session.exec(select(BracketNode).where(BracketNode.tournament_id == tournament_id)).all():
            session.delete(node)
        session.flush()
        for match in matches:
            session.delete(match)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Discarding bracket of tournament %s failed, transaction rolled back", tournament_id)
        raise

    logger.info("Tournament %s: discarded knockout bracket (%d matches)", tournament_id, len(matches))
    return len(matches)
