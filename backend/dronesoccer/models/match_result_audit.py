from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class MatchResultAudit(SQLModel, table=True):
    """One row per administrative edit of a completed match result."""

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    previous_result: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    new_result: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    note: Optional[str] = Field(default=None)
    edited_at: datetime = Field(default_factory=datetime.utcnow)
