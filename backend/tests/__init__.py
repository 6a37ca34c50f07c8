# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from dronesoccer.models import (  # noqa: F401
    BracketNode,
    GroupStanding,
    Match,
    MatchResultAudit,
    Team,
    TeamGroup,
    Tournament,
)
