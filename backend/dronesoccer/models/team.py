from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from dronesoccer.models.group import TeamGroup
    from dronesoccer.models.match import Match
    from dronesoccer.models.tournament import Tournament


class Team(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_team_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    group_id: Optional[int] = Field(default=None, foreign_key="teamgroup.id", index=True)
    name: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")
    group: Optional["TeamGroup"] = Relationship(back_populates="teams")
    matches_as_team_a: List["Match"] = Relationship(
        back_populates="team_a", sa_relationship_kwargs={"foreign_keys": "Match.team_a_id"}
    )
    matches_as_team_b: List["Match"] = Relationship(
        back_populates="team_b", sa_relationship_kwargs={"foreign_keys": "Match.team_b_id"}
    )
