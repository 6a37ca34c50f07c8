"""
Lookup guards for routes.

Each guard loads a row by id and raises 404 when it is missing or belongs to
another tournament.
"""

from typing import Optional

from fastapi import HTTPException
from sqlmodel import Session

from dronesoccer.models.group import TeamGroup
from dronesoccer.models.match import Match
from dronesoccer.models.team import Team
from dronesoccer.models.tournament import Tournament


def require_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def require_group(session: Session, group_id: int, tournament_id: Optional[int] = None) -> TeamGroup:
    group = session.get(TeamGroup, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    if tournament_id is not None and group.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail=f"Group {group_id} does not belong to tournament {tournament_id}")
    return group


def require_team(session: Session, team_id: int, tournament_id: Optional[int] = None) -> Team:
    team = session.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    if tournament_id is not None and team.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail=f"Team {team_id} does not belong to tournament {tournament_id}")
    return team


def require_match(session: Session, match_id: int, tournament_id: Optional[int] = None) -> Match:
    """
    Load a match, optionally scoped to a tournament.

    Raises:
        HTTPException 404: match not found or in another tournament
    """
    match = session.get(Match, match_id)
    if not match or (tournament_id is not None and match.tournament_id != tournament_id):
        raise HTTPException(status_code=404, detail="Match not found")
    return match
