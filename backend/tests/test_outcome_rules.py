"""
Tests for winner determination and the match status machine.
"""

import pytest

from dronesoccer.services.errors import ConflictError, ScheduleValidationError
from dronesoccer.services.match_state import can_transition, validate_transition
from dronesoccer.services.outcome_rules import (
    AUTOMATIC_RULES,
    MatchResult,
    decide_by_fouls,
    decide_by_score,
    determine_outcome,
)


class TestOutcomeRules:
    def test_higher_score_wins(self):
        outcome = determine_outcome(MatchResult(1, 2, score_a=3, score_b=1, fouls_a=5, fouls_b=0))
        assert outcome.winner_team_id == 1
        assert outcome.win_reason == "score"

    def test_tie_fewer_fouls_wins(self):
        outcome = determine_outcome(MatchResult(1, 2, score_a=2, score_b=2, fouls_a=3, fouls_b=1))
        assert outcome.winner_team_id == 2
        assert outcome.win_reason == "fouls"

    def test_tie_on_both_is_draw(self):
        outcome = determine_outcome(MatchResult(1, 2, score_a=1, score_b=1, fouls_a=2, fouls_b=2))
        assert outcome.is_draw
        assert outcome.win_reason == "draw"

    def test_referee_overrides_score(self):
        outcome = determine_outcome(MatchResult(1, 2, score_a=0, score_b=4), referee_winner_id=1)
        assert outcome.winner_team_id == 1
        assert outcome.win_reason == "referee"

    def test_referee_must_name_participant(self):
        with pytest.raises(ScheduleValidationError):
            determine_outcome(MatchResult(1, 2), referee_winner_id=3)

    def test_rules_are_independent(self):
        tied = MatchResult(1, 2, score_a=1, score_b=1, fouls_a=0, fouls_b=1)
        assert decide_by_score(tied) is None
        assert decide_by_fouls(tied).winner_team_id == 1
        assert len(AUTOMATIC_RULES) == 3


class TestMatchState:
    def test_forward_transitions(self):
        validate_transition("pending", "active")
        validate_transition("active", "completed")
        validate_transition("pending", "cancelled")
        validate_transition("active", "cancelled")

    @pytest.mark.parametrize(
        "current,new",
        [
            ("pending", "completed"),
            ("active", "pending"),
            ("completed", "active"),
            ("completed", "cancelled"),
            ("cancelled", "pending"),
            ("pending", "finished"),
        ],
    )
    def test_rejected_transitions(self, current, new):
        assert not can_transition(current, new)
        with pytest.raises(ConflictError):
            validate_transition(current, new)
