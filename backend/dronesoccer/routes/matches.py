"""
Match runtime: status changes, live scoring, completion and result edits.
Completion updates standings (group) or fills the next bracket slot (knockout).
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session, select

from dronesoccer.database import get_session
from dronesoccer.models.match import Match
from dronesoccer.services.errors import EngineError
from dronesoccer.services.progression_service import (
    apply_advancement_for_completed_match,
    cancel_match,
    complete_match,
    edit_match_result,
    start_match,
    update_live_score,
)
from dronesoccer.utils.guards import require_match, require_tournament
from dronesoccer.utils.http_errors import to_http_exception

router = APIRouter()


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    group_id: Optional[int]
    match_code: str
    match_type: str
    tournament_stage: Optional[str]
    round_number: int
    position_in_round: int
    team_a_id: Optional[int]
    team_b_id: Optional[int]
    score_a: int
    score_b: int
    fouls_a: int
    fouls_b: int
    status: str
    winner_team_id: Optional[int]
    win_reason: Optional[str]
    referee_decision: bool
    scheduled_at: Optional[datetime]
    duration_minutes: int
    started_at: Optional[datetime]
    completed_at: Optional[datetime]


class ScoreUpdate(BaseModel):
    score_a: Optional[int] = Field(default=None, ge=0)
    score_b: Optional[int] = Field(default=None, ge=0)
    fouls_a: Optional[int] = Field(default=None, ge=0)
    fouls_b: Optional[int] = Field(default=None, ge=0)


class MatchEnd(ScoreUpdate):
    # Referee decision: names the winner directly
    winner_team_id: Optional[int] = None


class ResultEdit(MatchEnd):
    note: Optional[str] = None
    clear_referee_decision: bool = False


class MatchEndResponse(BaseModel):
    match: MatchResponse
    advanced_count: int = 0


class AdvanceResponse(BaseModel):
    match_id: int
    advanced_count: int


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    group_id: Optional[int] = None,
    match_type: Optional[str] = None,
    status: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Matches in playing order (scheduled time, then code)."""
    require_tournament(session, tournament_id)
    query = select(Match).where(Match.tournament_id == tournament_id)
    if group_id is not None:
        query = query.where(Match.group_id == group_id)
    if match_type is not None:
        query = query.where(Match.match_type == match_type)
    if status is not None:
        query = query.where(Match.status == status)
    return session.exec(query.order_by(Match.scheduled_at, Match.match_code)).all()


@router.get("/tournaments/{tournament_id}/matches/{match_id}", response_model=MatchResponse)
def get_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    return require_match(session, match_id, tournament_id)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchResponse)
def start(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    require_match(session, match_id, tournament_id)
    try:
        return start_match(session, match_id)
    except EngineError as e:
        raise to_http_exception(e)


@router.patch("/tournaments/{tournament_id}/matches/{match_id}/score", response_model=MatchResponse)
def update_score(tournament_id: int, match_id: int, payload: ScoreUpdate, session: Session = Depends(get_session)):
    require_match(session, match_id, tournament_id)
    try:
        return update_live_score(session, match_id, **payload.model_dump())
    except EngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/end", response_model=MatchEndResponse)
def end(tournament_id: int, match_id: int, payload: MatchEnd, session: Session = Depends(get_session)):
    """Complete an active match; winner_team_id marks a referee decision."""
    require_match(session, match_id, tournament_id)
    values = payload.model_dump()
    referee_winner_id = values.pop("winner_team_id")
    try:
        result = complete_match(session, match_id, referee_winner_id=referee_winner_id, **values)
    except EngineError as e:
        raise to_http_exception(e)
    return MatchEndResponse(
        match=MatchResponse.model_validate(result["match"]), advanced_count=result["advanced_count"]
    )


@router.post("/tournaments/{tournament_id}/matches/{match_id}/cancel", response_model=MatchResponse)
def cancel(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    require_match(session, match_id, tournament_id)
    try:
        return cancel_match(session, match_id)
    except EngineError as e:
        raise to_http_exception(e)


@router.put("/tournaments/{tournament_id}/matches/{match_id}/result", response_model=MatchResponse)
def edit_result(tournament_id: int, match_id: int, payload: ResultEdit, session: Session = Depends(get_session)):
    """Correct a completed result. Standings follow; bracket slots already filled do not."""
    require_match(session, match_id, tournament_id)
    values = payload.model_dump()
    referee_winner_id = values.pop("winner_team_id")
    try:
        return edit_match_result(session, match_id, referee_winner_id=referee_winner_id, **values)
    except EngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/advance", response_model=AdvanceResponse)
def advance(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    require_match(session, match_id, tournament_id)
    try:
        count = apply_advancement_for_completed_match(session, match_id)
    except EngineError as e:
        raise to_http_exception(e)
    return AdvanceResponse(match_id=match_id, advanced_count=count)
