from typing import Optional

from sqlmodel import Field, SQLModel


class BracketNode(SQLModel, table=True):
    """Position of a knockout match in the bracket tree.

    next_match_id points at the match this node's winner feeds into. The
    third-place node carries is_third_place=True and no next_match_id; it is
    filled from semi-final losers, not through the tree.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    match_id: int = Field(foreign_key="match.id", unique=True)
    round_number: int
    position_in_round: int
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    is_third_place: bool = Field(default=False)
