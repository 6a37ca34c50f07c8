"""
Tests for standings arithmetic: effects, reverse, recompute, ranking and the
overall leaderboard.
"""

from dronesoccer.services.standings_calculator import (
    CompletedMatch,
    StandingRow,
    apply_effect,
    outcome_effect,
    overall_leaderboard,
    rank_standings,
    recompute,
    reverse_effect,
)


def _rows(*names: str) -> list[StandingRow]:
    return [StandingRow(team_id=i + 1, team_name=name) for i, name in enumerate(names)]


def _counters(row: StandingRow) -> tuple:
    return (row.played, row.won, row.drawn, row.lost, row.goals_for, row.goals_against, row.points)


class TestEffects:
    def test_decisive_points_sum_to_three(self):
        a, b = outcome_effect(1, 2, 3, 1, winner_team_id=1)
        assert (a.won, a.lost, a.points) == (1, 0, 3)
        assert (b.won, b.lost, b.points) == (0, 1, 0)
        assert a.points + b.points == 3
        assert (a.goals_for, a.goals_against, b.goals_for, b.goals_against) == (3, 1, 1, 3)

    def test_draw_points_sum_to_two(self):
        a, b = outcome_effect(1, 2, 2, 2, winner_team_id=None)
        assert a.drawn == b.drawn == 1
        assert a.points + b.points == 2

    def test_fouls_winner_with_level_score(self):
        a, b = outcome_effect(1, 2, 1, 1, winner_team_id=2)
        assert b.points == 3 and a.lost == 1

    def test_reverse_undoes_apply(self):
        row = StandingRow(team_id=1, played=2, won=1, lost=1, goals_for=4, goals_against=3, points=3)
        before = _counters(row)
        effect, _ = outcome_effect(1, 2, 5, 0, winner_team_id=1)
        apply_effect(row, effect)
        assert row.points == 6
        reverse_effect(row, effect)
        assert _counters(row) == before


class TestRecompute:
    def test_replays_completed_matches(self):
        rows = _rows("Team-1", "Team-2")
        rows[0].points = 99
        result = recompute(rows, [CompletedMatch(1, 1, 2, 2, 0, 1), CompletedMatch(2, 2, 1, 1, 1, None)])
        assert result.matches_replayed == 2
        assert _counters(rows[0]) == (2, 1, 1, 0, 3, 1, 4)
        assert _counters(rows[1]) == (2, 0, 1, 1, 1, 3, 1)

    def test_winner_not_participant_falls_back_to_score(self):
        rows = _rows("Team-1", "Team-2")
        result = recompute(rows, [CompletedMatch(7, 1, 2, 0, 2, winner_team_id=99)])
        assert result.fallback_match_ids == [7]
        assert rows[1].points == 3

    def test_stored_winner_beats_score(self):
        # Referee decision: team 1 wins despite the score
        rows = _rows("Team-1", "Team-2")
        recompute(rows, [CompletedMatch(1, 1, 2, 0, 3, winner_team_id=1)])
        assert rows[0].points == 3 and rows[1].points == 0

    def test_incremental_equals_recompute(self):
        matches = [
            CompletedMatch(1, 1, 2, 3, 1, 1),
            CompletedMatch(2, 3, 1, 0, 0, None),
            CompletedMatch(3, 2, 3, 2, 1, 2),
        ]
        live = {r.team_id: r for r in _rows("Team-1", "Team-2", "Team-3")}
        for m in matches:
            for effect in outcome_effect(m.team_a_id, m.team_b_id, m.score_a, m.score_b, m.winner_team_id):
                apply_effect(live[effect.team_id], effect)

        # Edit match 1 to 1-1 draw: reverse old effect, apply new
        for effect in outcome_effect(1, 2, 3, 1, 1):
            reverse_effect(live[effect.team_id], effect)
        for effect in outcome_effect(1, 2, 1, 1, None):
            apply_effect(live[effect.team_id], effect)

        fresh = _rows("Team-1", "Team-2", "Team-3")
        recompute(fresh, [CompletedMatch(1, 1, 2, 1, 1, None)] + matches[1:])
        assert [_counters(live[r.team_id]) for r in fresh] == [_counters(r) for r in fresh]


class TestRanking:
    def test_ordering_keys(self):
        rows = [
            StandingRow(1, "Delta", points=6, goals_for=5, goals_against=2),
            StandingRow(2, "Alpha", points=6, goals_for=6, goals_against=3),
            StandingRow(3, "Charlie", points=6, goals_for=4, goals_against=1),
            StandingRow(4, "Bravo", points=7),
            StandingRow(5, "Echo", points=6, goals_for=5, goals_against=2),
        ]
        ranked = rank_standings(rows)
        assert [(rank, row.team_name) for rank, row in ranked] == [
            (1, "Bravo"),
            (2, "Alpha"),
            (3, "Delta"),
            (4, "Echo"),
            (5, "Charlie"),
        ]

    def test_overall_leaderboard_by_group_position(self):
        groups = {
            "B": [StandingRow(3, "B-top", points=9), StandingRow(4, "B-second", points=6)],
            "A": [StandingRow(1, "A-top", points=7), StandingRow(2, "A-second", points=6, goals_for=3)],
        }
        board = overall_leaderboard(groups)
        assert [e["team_name"] for e in board] == ["B-top", "A-top", "A-second", "B-second"]
        assert [e["overall_rank"] for e in board] == [1, 2, 3, 4]
        assert [e["group_position"] for e in board] == [1, 1, 2, 2]
