"""
Match progression: start, live score, completion, cancellation, result edits
and bracket advancement.

Completion updates standings (group matches) or fills the next bracket slot
(knockout matches) in the same transaction as the status change.

Advancement only writes a winner into an empty slot, or a slot that already
holds that winner, so repeating it changes nothing. A slot held by a different
team is left alone and logged.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from sqlmodel import Session, select

from dronesoccer.models.bracket_node import BracketNode
from dronesoccer.models.match import Match
from dronesoccer.models.match_result_audit import MatchResultAudit
from dronesoccer.models.tournament import Tournament
from dronesoccer.services.bracket_builder import STAGE_SEMI_FINAL, slot_for_position
from dronesoccer.services.errors import ConflictError, NotFoundError, ScheduleValidationError, SchedulingError
from dronesoccer.services.match_state import (
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    validate_transition,
)
from dronesoccer.services.outcome_rules import MatchResult, determine_outcome
from dronesoccer.services.standings_service import apply_match_result, reverse_match_result

logger = logging.getLogger(__name__)


def _load_match(session: Session, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")
    return match


def _validate_counts(**values: Optional[int]) -> None:
    errors = [f"{name} cannot be negative" for name, value in values.items() if value is not None and value < 0]
    if errors:
        raise ScheduleValidationError(errors)


def _set_counts(
    match: Match,
    score_a: Optional[int],
    score_b: Optional[int],
    fouls_a: Optional[int],
    fouls_b: Optional[int],
) -> None:
    if score_a is not None:
        match.score_a = score_a
    if score_b is not None:
        match.score_b = score_b
    if fouls_a is not None:
        match.fouls_a = fouls_a
    if fouls_b is not None:
        match.fouls_b = fouls_b


def _decide(match: Match, referee_winner_id: Optional[int]) -> None:
    outcome = determine_outcome(
        MatchResult(
            team_a_id=match.team_a_id,
            team_b_id=match.team_b_id,
            score_a=match.score_a,
            score_b=match.score_b,
            fouls_a=match.fouls_a,
            fouls_b=match.fouls_b,
        ),
        referee_winner_id=referee_winner_id,
    )
    match.winner_team_id = outcome.winner_team_id
    match.win_reason = outcome.win_reason
    match.referee_decision = referee_winner_id is not None


def _result_snapshot(match: Match) -> Dict:
    return {
        "score_a": match.score_a,
        "score_b": match.score_b,
        "fouls_a": match.fouls_a,
        "fouls_b": match.fouls_b,
        "winner_team_id": match.winner_team_id,
        "win_reason": match.win_reason,
        "referee_decision": match.referee_decision,
    }


# -----------------------------------------------------------------------------
# Status operations
# -----------------------------------------------------------------------------


def start_match(session: Session, match_id: int) -> Match:
    """pending -> active. Both teams must be known."""
    match = _load_match(session, match_id)
    validate_transition(match.status, STATUS_ACTIVE)
    if match.team_a_id is None or match.team_b_id is None:
        raise ConflictError(f"Match {match.match_code} teams are not resolved yet")

    match.status = STATUS_ACTIVE
    match.started_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Match %s started", match.match_code)
    return match


def update_live_score(
    session: Session,
    match_id: int,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None,
    fouls_a: Optional[int] = None,
    fouls_b: Optional[int] = None,
) -> Match:
    """Overwrite score / foul counters of an active match."""
    match = _load_match(session, match_id)
    if match.status != STATUS_ACTIVE:
        raise ConflictError(f"Match {match.match_code} is {match.status}; scores change only while active")
    _validate_counts(score_a=score_a, score_b=score_b, fouls_a=fouls_a, fouls_b=fouls_b)

    _set_counts(match, score_a, score_b, fouls_a, fouls_b)
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


def cancel_match(session: Session, match_id: int) -> Match:
    match = _load_match(session, match_id)
    validate_transition(match.status, STATUS_CANCELLED)
    match.status = STATUS_CANCELLED
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Match %s cancelled", match.match_code)
    return match


def complete_match(
    session: Session,
    match_id: int,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None,
    fouls_a: Optional[int] = None,
    fouls_b: Optional[int] = None,
    referee_winner_id: Optional[int] = None,
) -> Dict:
    """
    active -> completed.

    Final counters may be passed in; otherwise the live values stand. Group
    matches update standings, knockout matches advance the winner. One commit.
    """
    match = _load_match(session, match_id)
    validate_transition(match.status, STATUS_COMPLETED)
    _validate_counts(score_a=score_a, score_b=score_b, fouls_a=fouls_a, fouls_b=fouls_b)

    try:
        _set_counts(match, score_a, score_b, fouls_a, fouls_b)
        _decide(match, referee_winner_id)
        match.status = STATUS_COMPLETED
        match.completed_at = datetime.utcnow()
        session.add(match)

        advanced = 0
        if match.group_id is not None:
            apply_match_result(session, match)
        else:
            advanced = _propagate(session, match)

        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Completing match %s failed, transaction rolled back", match_id)
        raise

    session.refresh(match)
    logger.info(
        "Match %s completed %d-%d (%s), winner %s",
        match.match_code,
        match.score_a,
        match.score_b,
        match.win_reason,
        match.winner_team_id,
    )
    return {"match": match, "advanced_count": advanced}


def edit_match_result(
    session: Session,
    match_id: int,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None,
    fouls_a: Optional[int] = None,
    fouls_b: Optional[int] = None,
    referee_winner_id: Optional[int] = None,
    note: Optional[str] = None,
    clear_referee_decision: bool = False,
) -> Match:
    """
    Correct the result of a completed match.

    Standings: the previous result is reversed, the corrected one applied.
    Bracket slots already filled downstream are not touched.

    A referee decision stands through edits that name no winner; pass
    clear_referee_decision to hand the match back to the automatic rules.
    """
    match = _load_match(session, match_id)
    if match.status != STATUS_COMPLETED:
        raise ConflictError(f"Match {match.match_code} is {match.status}; only completed results can be edited")
    _validate_counts(score_a=score_a, score_b=score_b, fouls_a=fouls_a, fouls_b=fouls_b)

    try:
        previous = _result_snapshot(match)
        if match.group_id is not None:
            reverse_match_result(session, match)

        _set_counts(match, score_a, score_b, fouls_a, fouls_b)
        if referee_winner_id is None and match.referee_decision and not clear_referee_decision:
            referee_winner_id = match.winner_team_id
        _decide(match, referee_winner_id)
        session.add(match)

        if match.group_id is not None:
            apply_match_result(session, match)

        session.add(
            MatchResultAudit(
                match_id=match.id,
                previous_result=previous,
                new_result=_result_snapshot(match),
                note=note,
            )
        )
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Editing result of match %s failed, transaction rolled back", match_id)
        raise

    session.refresh(match)
    if match.group_id is None and previous["winner_team_id"] != match.winner_team_id:
        logger.warning(
            "Match %s winner changed from %s to %s; downstream bracket slots were not updated",
            match.match_code,
            previous["winner_team_id"],
            match.winner_team_id,
        )
    return match


# -----------------------------------------------------------------------------
# Advancement
# -----------------------------------------------------------------------------


def _fill_slot(match: Match, slot: str, team_id: int, source_code: str) -> int:
    current = getattr(match, slot)
    if current == team_id:
        return 0
    if current is not None:
        logger.warning(
            "Match %s %s already holds team %s; not overwriting with %s from %s",
            match.match_code,
            slot,
            current,
            team_id,
            source_code,
        )
        return 0
    setattr(match, slot, team_id)
    return 1


def _propagate(session: Session, match: Match) -> int:
    """
    Stage advancement for one completed knockout match. No commit.

    Returns the number of slots filled.
    """
    if match.status != STATUS_COMPLETED or match.winner_team_id is None:
        return 0

    node = session.exec(select(BracketNode).where(BracketNode.match_id == match.id)).first()
    if node is None or node.is_third_place:
        return 0

    filled = 0
    if node.next_match_id is not None:
        next_match = session.get(Match, node.next_match_id)
        if next_match is None:
            raise SchedulingError(
                f"Match {match.match_code} links to next match {node.next_match_id}, which does not exist"
            )
        count = _fill_slot(next_match, slot_for_position(node.position_in_round), match.winner_team_id, match.match_code)
        if count:
            session.add(next_match)
        filled += count

    if match.tournament_stage == STAGE_SEMI_FINAL:
        filled += _propagate_semi_final_loser(session, match, node)

    return filled


def _propagate_semi_final_loser(session: Session, match: Match, node: BracketNode) -> int:
    third_place_node = session.exec(
        select(BracketNode).where(
            BracketNode.tournament_id == match.tournament_id,
            BracketNode.is_third_place == True,  # noqa: E712
        )
    ).first()
    if third_place_node is None:
        return 0

    loser_id = match.team_b_id if match.winner_team_id == match.team_a_id else match.team_a_id
    third_place = session.get(Match, third_place_node.match_id)
    if third_place is None:
        raise SchedulingError(f"Third-place match {third_place_node.match_id} does not exist")

    count = _fill_slot(third_place, slot_for_position(node.position_in_round), loser_id, match.match_code)
    if count:
        session.add(third_place)
    return count


def apply_advancement_for_completed_match(session: Session, match_id: int) -> int:
    """Advance one completed knockout match. Idempotent. Returns slots filled."""
    match = _load_match(session, match_id)
    if match.status != STATUS_COMPLETED:
        raise ConflictError(f"Match {match.match_code} is {match.status}; only completed matches advance")

    try:
        filled = _propagate(session, match)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Advancement for match %s failed, transaction rolled back", match_id)
        raise
    return filled


def resolve_all_advancements(session: Session, tournament_id: int) -> Dict:
    """
    Advance every completed knockout match of a tournament, by round then position.

    Idempotent: a second call fills nothing.
    """
    if not session.get(Tournament, tournament_id):
        raise NotFoundError(f"Tournament {tournament_id} not found")

    def unresolved() -> int:
        matches = session.exec(
            select(Match).where(Match.tournament_id == tournament_id, Match.group_id == None)  # noqa: E711
        ).all()
        return sum(1 for m in matches if m.team_a_id is None or m.team_b_id is None)

    unknown_before = unresolved()
    completed = session.exec(
        select(Match)
        .where(
            Match.tournament_id == tournament_id,
            Match.group_id == None,  # noqa: E711
            Match.status == STATUS_COMPLETED,
            Match.winner_team_id.is_not(None),
        )
        .order_by(Match.round_number, Match.position_in_round, Match.id)
    ).all()

    try:
        teams_advanced = 0
        for match in completed:
            teams_advanced += _propagate(session, match)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Bulk advancement for tournament %s failed, transaction rolled back", tournament_id)
        raise

    unknown_after = unresolved()
    logger.info(
        "Tournament %s: advanced %d slots from %d completed matches", tournament_id, teams_advanced, len(completed)
    )
    return {
        "matches_processed": len(completed),
        "teams_advanced": teams_advanced,
        "unknown_before": unknown_before,
        "unknown_after": unknown_after,
    }
