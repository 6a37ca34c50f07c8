from dronesoccer.models.bracket_node import BracketNode
from dronesoccer.models.group import TeamGroup
from dronesoccer.models.group_standing import GroupStanding
from dronesoccer.models.match import Match
from dronesoccer.models.match_result_audit import MatchResultAudit
from dronesoccer.models.team import Team
from dronesoccer.models.tournament import Tournament

__all__ = [
    "Tournament",
    "TeamGroup",
    "Team",
    "Match",
    "BracketNode",
    "GroupStanding",
    "MatchResultAudit",
]
