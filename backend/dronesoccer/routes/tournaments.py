import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlmodel import Session, select

from dronesoccer.database import get_session
from dronesoccer.models.bracket_node import BracketNode
from dronesoccer.models.group import TeamGroup
from dronesoccer.models.group_standing import GroupStanding
from dronesoccer.models.match import Match
from dronesoccer.models.match_result_audit import MatchResultAudit
from dronesoccer.models.team import Team
from dronesoccer.models.tournament import Tournament
from dronesoccer.services.match_state import STATUS_PENDING
from dronesoccer.utils.guards import require_tournament

logger = logging.getLogger(__name__)

router = APIRouter()

TOURNAMENT_TYPES = ("group", "knockout", "mixed")
TOURNAMENT_STATUSES = ("pending", "active", "completed")


class TournamentCreate(BaseModel):
    name: str
    tournament_type: str = "group"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("tournament_type")
    @classmethod
    def validate_type(cls, v):
        if v not in TOURNAMENT_TYPES:
            raise ValueError(f"tournament_type must be one of {', '.join(TOURNAMENT_TYPES)}")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TOURNAMENT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(TOURNAMENT_STATUSES)}")
        return v


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    tournament_type: str
    status: str
    start_date: Optional[date]
    end_date: Optional[date]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    return require_tournament(session, tournament_id)


@router.put("/tournaments/{tournament_id}/status", response_model=TournamentResponse)
def set_tournament_status(
    tournament_id: int, payload: TournamentStatusUpdate, session: Session = Depends(get_session)
):
    """Move a tournament forward: pending -> active -> completed."""
    tournament = require_tournament(session, tournament_id)
    if TOURNAMENT_STATUSES.index(payload.status) < TOURNAMENT_STATUSES.index(tournament.status):
        raise HTTPException(
            status_code=409, detail=f"Cannot move tournament from {tournament.status} back to {payload.status}"
        )
    tournament.status = payload.status
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a tournament and everything in it, while no match has started."""
    tournament = require_tournament(session, tournament_id)

    matches = session.exec(select(Match).where(Match.tournament_id == tournament_id)).all()
    started = [m.match_code for m in matches if m.status != STATUS_PENDING]
    if started:
        raise HTTPException(
            status_code=409, detail=f"Cannot delete tournament: matches already started ({', '.join(started)})"
        )

    try:
        match_ids = [m.id for m in matches]
        if match_ids:
            for audit in session.exec(select(MatchResultAudit).where(MatchResultAudit.match_id.in_(match_ids))).all():
                session.delete(audit)
        for model in (BracketNode, GroupStanding):
            for row in session.exec(select(model).where(model.tournament_id == tournament_id)).all():
                session.delete(row)
        session.flush()
        for match in matches:
            session.delete(match)
        session.flush()
        for model in (Team, TeamGroup):
            for row in session.exec(select(model).where(model.tournament_id == tournament_id)).all():
                session.delete(row)
        session.flush()
        session.delete(tournament)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Deleting tournament %s failed, transaction rolled back", tournament_id)
        raise HTTPException(status_code=500, detail="Tournament delete failed")

    return Response(status_code=204)
