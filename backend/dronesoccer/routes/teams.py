from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from dronesoccer.database import get_session
from dronesoccer.models.team import Team
from dronesoccer.services.errors import EngineError
from dronesoccer.services.group_schedule_service import assign_team_to_group, delete_team
from dronesoccer.utils.guards import require_group, require_team, require_tournament
from dronesoccer.utils.http_errors import to_http_exception

router = APIRouter()


class TeamCreate(BaseModel):
    name: str
    group_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    group_id: Optional[int]
    name: str
    created_at: datetime


@router.get("/tournaments/{tournament_id}/teams", response_model=List[TeamResponse])
def list_teams(tournament_id: int, group_id: Optional[int] = None, session: Session = Depends(get_session)):
    require_tournament(session, tournament_id)
    query = select(Team).where(Team.tournament_id == tournament_id)
    if group_id is not None:
        query = query.where(Team.group_id == group_id)
    return session.exec(query.order_by(Team.id)).all()


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(tournament_id: int, team_data: TeamCreate, session: Session = Depends(get_session)):
    """Create a team, optionally placing it straight into a group."""
    require_tournament(session, tournament_id)
    if team_data.group_id is not None:
        require_group(session, team_data.group_id, tournament_id)

    existing = session.exec(
        select(Team).where(Team.tournament_id == tournament_id, Team.name == team_data.name)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Team '{team_data.name}' already exists in this tournament")

    team = Team(tournament_id=tournament_id, name=team_data.name)
    session.add(team)
    session.commit()
    session.refresh(team)

    if team_data.group_id is not None:
        try:
            team = assign_team_to_group(session, team_data.group_id, team.id)
        except EngineError as e:
            session.delete(team)
            session.commit()
            raise to_http_exception(e)
    return team


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
def remove_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """Delete a team with its group matches and standing, while those matches are pending."""
    require_team(session, team_id, tournament_id)
    try:
        delete_team(session, team_id)
    except EngineError as e:
        raise to_http_exception(e)
    return Response(status_code=204)
