from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from dronesoccer.database import get_session
from dronesoccer.services.errors import EngineError
from dronesoccer.services.knockout_service import delete_knockout, generate_knockout, get_bracket
from dronesoccer.services.progression_service import resolve_all_advancements
from dronesoccer.services.schedule_rules import DEFAULT_MATCH_DURATION_MINUTES, DEFAULT_MATCH_INTERVAL_MINUTES
from dronesoccer.utils.guards import require_tournament
from dronesoccer.utils.http_errors import to_http_exception

router = APIRouter()


class KnockoutGenerateRequest(BaseModel):
    """
    team_ids: seed order, seed 1 first.
    team_count: seed the top N of the overall group leaderboard instead.
    """

    start_at: Optional[datetime] = None
    duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES
    interval_minutes: int = DEFAULT_MATCH_INTERVAL_MINUTES
    team_ids: Optional[List[int]] = None
    team_count: Optional[int] = None
    include_third_place: bool = True
    seeded: bool = True


@router.post("/tournaments/{tournament_id}/knockout", status_code=201)
def generate(
    tournament_id: int, request: KnockoutGenerateRequest, session: Session = Depends(get_session)
) -> Dict[str, Any]:
    require_tournament(session, tournament_id)
    try:
        return generate_knockout(session, tournament_id, **request.model_dump())
    except EngineError as e:
        raise to_http_exception(e)


@router.get("/tournaments/{tournament_id}/knockout")
def bracket(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        return get_bracket(session, tournament_id)
    except EngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/knockout/advance")
def auto_advance(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Advance every completed knockout match. Safe to repeat."""
    try:
        return resolve_all_advancements(session, tournament_id)
    except EngineError as e:
        raise to_http_exception(e)


@router.delete("/tournaments/{tournament_id}/knockout")
def discard(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    try:
        deleted = delete_knockout(session, tournament_id)
    except EngineError as e:
        raise to_http_exception(e)
    return {"tournament_id": tournament_id, "matches_deleted": deleted}
