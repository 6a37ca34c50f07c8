from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from dronesoccer.database import get_session
from dronesoccer.services.errors import EngineError
from dronesoccer.services.standings_service import (
    get_group_standings,
    get_overall_leaderboard,
    recompute_group_standings,
)
from dronesoccer.utils.guards import require_group
from dronesoccer.utils.http_errors import to_http_exception

router = APIRouter()


class StandingResponse(BaseModel):
    rank: int
    team_id: int
    team_name: str
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int


class LeaderboardEntry(BaseModel):
    overall_rank: int
    group_position: int
    group_name: str
    team_id: int
    team_name: str
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int


class RecomputeResponse(BaseModel):
    group_id: int
    matches_replayed: int
    fallback_match_ids: List[int]


@router.get("/tournaments/{tournament_id}/groups/{group_id}/standings", response_model=List[StandingResponse])
def group_standings(tournament_id: int, group_id: int, session: Session = Depends(get_session)):
    """Ranked by points, goal difference, goals for, then name."""
    require_group(session, group_id, tournament_id)
    try:
        return get_group_standings(session, group_id)
    except EngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/groups/{group_id}/standings/recompute", response_model=RecomputeResponse)
def recompute(tournament_id: int, group_id: int, session: Session = Depends(get_session)):
    require_group(session, group_id, tournament_id)
    try:
        return recompute_group_standings(session, group_id)
    except EngineError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}/standings", response_model=List[LeaderboardEntry])
def overall_leaderboard(tournament_id: int, session: Session = Depends(get_session)):
    """Group winners first, then runners-up, and so on."""
    try:
        return get_overall_leaderboard(session, tournament_id)
    except EngineError as e:
        raise to_http_exception(e)
