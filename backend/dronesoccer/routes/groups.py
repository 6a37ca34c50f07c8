from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, func, select

from dronesoccer.database import get_session
from dronesoccer.models.group import TeamGroup
from dronesoccer.models.match import Match
from dronesoccer.models.team import Team
from dronesoccer.services.bracket_builder import is_knockout_code_prefix
from dronesoccer.services.errors import EngineError
from dronesoccer.services.group_schedule_service import (
    assign_team_to_group,
    delete_group,
    delete_group_schedule,
    generate_group_schedule,
    preview_group_schedule,
)
from dronesoccer.services.schedule_rules import (
    DEFAULT_MATCH_DURATION_MINUTES,
    DEFAULT_MATCH_INTERVAL_MINUTES,
    MAX_GROUP_TEAMS,
    MIN_GROUP_TEAMS,
)
from dronesoccer.utils.guards import require_group, require_tournament
from dronesoccer.utils.http_errors import to_http_exception

router = APIRouter()


class GroupCreate(BaseModel):
    group_name: str
    max_teams: int = 4

    @field_validator("group_name")
    @classmethod
    def validate_group_name(cls, v):
        v = (v or "").strip()
        if not v:
            raise ValueError("group_name is required")
        if is_knockout_code_prefix(v):
            raise ValueError(f"group_name '{v}' is reserved for knockout match codes")
        return v

    @field_validator("max_teams")
    @classmethod
    def validate_max_teams(cls, v):
        if not (MIN_GROUP_TEAMS <= v <= MAX_GROUP_TEAMS):
            raise ValueError(f"max_teams must be between {MIN_GROUP_TEAMS} and {MAX_GROUP_TEAMS}")
        return v


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    group_name: str
    max_teams: int
    team_count: int = 0
    match_count: int = 0


class GroupTeamAdd(BaseModel):
    team_id: int


class GroupScheduleRequest(BaseModel):
    """Start time is validated by the service so every violated rule is reported together."""

    start_at: Optional[datetime] = None
    duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES
    interval_minutes: int = DEFAULT_MATCH_INTERVAL_MINUTES
    optimize: bool = True
    custom_order: Optional[List[Tuple[int, int]]] = None


def _group_response(session: Session, group: TeamGroup) -> GroupResponse:
    team_count = session.exec(select(func.count()).select_from(Team).where(Team.group_id == group.id)).one()
    match_count = session.exec(select(func.count()).select_from(Match).where(Match.group_id == group.id)).one()
    return GroupResponse(
        id=group.id,
        tournament_id=group.tournament_id,
        group_name=group.group_name,
        max_teams=group.max_teams,
        team_count=team_count,
        match_count=match_count,
    )


@router.get("/tournaments/{tournament_id}/groups", response_model=List[GroupResponse])
def list_groups(tournament_id: int, session: Session = Depends(get_session)):
    require_tournament(session, tournament_id)
    groups = session.exec(
        select(TeamGroup).where(TeamGroup.tournament_id == tournament_id).order_by(TeamGroup.group_name)
    ).all()
    return [_group_response(session, g) for g in groups]


@router.post("/tournaments/{tournament_id}/groups", response_model=GroupResponse, status_code=201)
def create_group(tournament_id: int, group_data: GroupCreate, session: Session = Depends(get_session)):
    require_tournament(session, tournament_id)
    existing = session.exec(
        select(TeamGroup).where(TeamGroup.tournament_id == tournament_id, TeamGroup.group_name == group_data.group_name)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Group '{group_data.group_name}' already exists")

    group = TeamGroup(tournament_id=tournament_id, **group_data.model_dump())
    session.add(group)
    session.commit()
    session.refresh(group)
    return _group_response(session, group)


@router.post("/tournaments/{tournament_id}/groups/{group_id}/teams", response_model=GroupResponse)
def add_team_to_group(
    tournament_id: int, group_id: int, payload: GroupTeamAdd, session: Session = Depends(get_session)
):
    group = require_group(session, group_id, tournament_id)
    try:
        assign_team_to_group(session, group_id, payload.team_id)
    except EngineError as e:
        raise to_http_exception(e)
    return _group_response(session, group)


@router.post("/tournaments/{tournament_id}/groups/{group_id}/matches/preview")
def preview_group_matches(
    tournament_id: int,
    group_id: int,
    request: GroupScheduleRequest,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Round robin as it would be generated, with statistics and side balance. Writes nothing."""
    require_group(session, group_id, tournament_id)
    try:
        return preview_group_schedule(
            session,
            group_id,
            request.start_at,
            duration_minutes=request.duration_minutes,
            interval_minutes=request.interval_minutes,
            optimize=request.optimize,
            custom_order=request.custom_order,
        )
    except EngineError as e:
        raise to_http_exception(e)


@router.post("/tournaments/{tournament_id}/groups/{group_id}/matches/generate", status_code=201)
def generate_group_matches(
    tournament_id: int,
    group_id: int,
    request: GroupScheduleRequest,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """
    Generate and store the group's round robin.

    409 if the group already has matches.
    """
    require_group(session, group_id, tournament_id)
    try:
        return generate_group_schedule(
            session,
            group_id,
            request.start_at,
            duration_minutes=request.duration_minutes,
            interval_minutes=request.interval_minutes,
            optimize=request.optimize,
            custom_order=request.custom_order,
        )
    except EngineError as e:
        raise to_http_exception(e)


@router.delete("/tournaments/{tournament_id}/groups/{group_id}/matches")
def delete_group_matches(tournament_id: int, group_id: int, session: Session = Depends(get_session)):
    require_group(session, group_id, tournament_id)
    try:
        deleted = delete_group_schedule(session, group_id)
    except EngineError as e:
        raise to_http_exception(e)
    return {"group_id": group_id, "matches_deleted": deleted}


@router.delete("/tournaments/{tournament_id}/groups/{group_id}", status_code=204)
def remove_group(tournament_id: int, group_id: int, session: Session = Depends(get_session)):
    require_group(session, group_id, tournament_id)
    try:
        delete_group(session, group_id)
    except EngineError as e:
        raise to_http_exception(e)
    return Response(status_code=204)
