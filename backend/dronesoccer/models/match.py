from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from dronesoccer.models.team import Team
    from dronesoccer.models.tournament import Tournament


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("tournament_id", "match_code", name="uq_tournament_match_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    group_id: Optional[int] = Field(default=None, foreign_key="teamgroup.id", index=True)
    match_code: str  # "A01" for group play, "QF01" / "SF02" / "F01" / "TP01" for knockout
    match_type: str = Field(default="group")  # "group" | "knockout"
    tournament_stage: Optional[str] = Field(default=None)  # "quarter_final" | "semi_final" | "final" | "third_place" | ...
    round_number: int = Field(default=1)
    position_in_round: int = Field(default=1)

    # Team slots (nullable until resolved by advancement)
    team_a_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team_b_id: Optional[int] = Field(default=None, foreign_key="team.id")

    score_a: int = Field(default=0)
    score_b: int = Field(default=0)
    fouls_a: int = Field(default=0)
    fouls_b: int = Field(default=0)

    status: str = Field(default="pending")  # "pending" | "active" | "completed" | "cancelled"
    winner_team_id: Optional[int] = Field(default=None, foreign_key="team.id")
    win_reason: Optional[str] = Field(default=None)  # "score" | "fouls" | "referee" | "draw"
    referee_decision: bool = Field(default=False)

    scheduled_at: Optional[datetime] = Field(default=None)
    duration_minutes: int = Field(default=10)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
    team_a: Optional["Team"] = Relationship(
        back_populates="matches_as_team_a", sa_relationship_kwargs={"foreign_keys": "Match.team_a_id"}
    )
    team_b: Optional["Team"] = Relationship(
        back_populates="matches_as_team_b", sa_relationship_kwargs={"foreign_keys": "Match.team_b_id"}
    )
