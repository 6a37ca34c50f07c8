from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from dronesoccer.models.team import Team
    from dronesoccer.models.tournament import Tournament


class TeamGroup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "group_name", name="uq_tournament_group_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    group_name: str  # Label used in match codes ("A" -> A01, A02, ...)
    max_teams: int = Field(default=4)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="groups")
    teams: List["Team"] = Relationship(back_populates="group")
