"""
Match outcome rules.

Automatic winner determination is an ordered tuple of independent rules.
Each rule looks at the result and returns an Outcome or None ("no decision");
the first decision wins. A referee decision bypasses the rules.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from dronesoccer.services.errors import ScheduleValidationError

WIN_REASON_SCORE = "score"
WIN_REASON_FOULS = "fouls"
WIN_REASON_REFEREE = "referee"
WIN_REASON_DRAW = "draw"


@dataclass(frozen=True)
class MatchResult:
    team_a_id: int
    team_b_id: int
    score_a: int = 0
    score_b: int = 0
    fouls_a: int = 0
    fouls_b: int = 0


@dataclass(frozen=True)
class Outcome:
    winner_team_id: Optional[int]
    win_reason: str

    @property
    def is_draw(self) -> bool:
        return self.winner_team_id is None


def decide_by_score(result: MatchResult) -> Optional[Outcome]:
    if result.score_a > result.score_b:
        return Outcome(result.team_a_id, WIN_REASON_SCORE)
    if result.score_b > result.score_a:
        return Outcome(result.team_b_id, WIN_REASON_SCORE)
    return None


def decide_by_fouls(result: MatchResult) -> Optional[Outcome]:
    # Fewer fouls wins
    if result.fouls_a < result.fouls_b:
        return Outcome(result.team_a_id, WIN_REASON_FOULS)
    if result.fouls_b < result.fouls_a:
        return Outcome(result.team_b_id, WIN_REASON_FOULS)
    return None


def decide_draw(result: MatchResult) -> Optional[Outcome]:
    return Outcome(None, WIN_REASON_DRAW)


AUTOMATIC_RULES: Tuple[Callable[[MatchResult], Optional[Outcome]], ...] = (
    decide_by_score,
    decide_by_fouls,
    decide_draw,
)


def determine_outcome(result: MatchResult, referee_winner_id: Optional[int] = None) -> Outcome:
    """
    Decide the outcome of a finished match.

    Raises:
        ScheduleValidationError: referee winner is not one of the two teams
    """
    if referee_winner_id is not None:
        if referee_winner_id not in (result.team_a_id, result.team_b_id):
            raise ScheduleValidationError(
                [f"winner {referee_winner_id} is not a participant of this match"]
            )
        return Outcome(referee_winner_id, WIN_REASON_REFEREE)

    for rule in AUTOMATIC_RULES:
        outcome = rule(result)
        if outcome is not None:
            return outcome
    return Outcome(None, WIN_REASON_DRAW)
