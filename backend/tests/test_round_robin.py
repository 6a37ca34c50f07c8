"""
Tests for the group round robin scheduler: completeness, round packing,
back-to-back reduction, slot codes/times, custom order and validation.
"""

from datetime import datetime, timedelta

import pytest

from dronesoccer.services.errors import ScheduleValidationError
from dronesoccer.services.round_robin import (
    Pairing,
    Participant,
    analyze_side_balance,
    build_group_schedule,
    canonical_pairings,
    circle_method_rounds,
    count_back_to_back,
    find_back_to_back,
    schedule_statistics,
)

START = datetime(2026, 5, 2, 9, 0)


def _participants(n: int) -> list[Participant]:
    return [Participant(team_id=100 + i, name=f"Team-{i}") for i in range(1, n + 1)]


def _schedule(n: int, **kwargs):
    return build_group_schedule(_participants(n), "A", START, 10, 30, **kwargs)


class TestCircleMethod:
    def test_four_positions(self):
        assert circle_method_rounds(4) == [
            [(0, 3), (1, 2)],
            [(0, 1), (2, 3)],
            [(0, 2), (1, 3)],
        ]

    def test_odd_count_drops_bye(self):
        rounds = circle_method_rounds(3)
        assert rounds == [[(1, 2)], [(0, 1)], [(0, 2)]]

    def test_covers_every_pair_once(self):
        for n in range(2, 9):
            pairs = [p for r in circle_method_rounds(n) for p in r]
            assert len(pairs) == len(set(pairs)) == n * (n - 1) // 2


class TestCompleteness:
    @pytest.mark.parametrize("n", range(2, 9))
    def test_every_pair_exactly_once(self, n):
        schedule = _schedule(n)
        assert len(schedule.matches) == n * (n - 1) // 2
        keys = [frozenset((m.team_a_id, m.team_b_id)) for m in schedule.matches]
        assert len(set(keys)) == len(keys)
        assert set(keys) == {p.pair_key for p in canonical_pairings([p.team_id for p in _participants(n)])}

    @pytest.mark.parametrize("n", range(2, 9))
    def test_no_team_twice_in_a_round(self, n):
        schedule = _schedule(n)
        by_round = {}
        for m in schedule.matches:
            by_round.setdefault(m.round_number, []).extend([m.team_a_id, m.team_b_id])
        for teams in by_round.values():
            assert len(teams) == len(set(teams))

    @pytest.mark.parametrize("n", range(2, 9))
    def test_rounds_are_full(self, n):
        schedule = _schedule(n)
        expected_rounds = n - 1 if n % 2 == 0 else n
        assert schedule.round_count == expected_rounds
        per_round = {}
        for m in schedule.matches:
            per_round[m.round_number] = per_round.get(m.round_number, 0) + 1
        assert set(per_round.values()) == {n // 2}


class TestBackToBack:
    @pytest.mark.parametrize("n", [2, 6, 7, 8])
    def test_zero_back_to_back(self, n):
        schedule = _schedule(n)
        assert schedule.back_to_back == 0
        assert find_back_to_back(schedule.matches) == []

    @pytest.mark.parametrize("n", [3, 4])
    def test_unavoidable_minimum(self, n):
        assert _schedule(n).back_to_back == 2

    @pytest.mark.parametrize("n", range(2, 9))
    def test_never_worse_than_naive(self, n):
        schedule = _schedule(n)
        assert schedule.back_to_back <= schedule.back_to_back_naive

    def test_naive_counts(self):
        assert _schedule(4).back_to_back_naive == 4
        assert _schedule(5).back_to_back_naive == 7

    def test_scan_reports_team_and_previous_match(self):
        matches = [Pairing(1, 2), Pairing(2, 3), Pairing(4, 5)]
        found = find_back_to_back(matches)
        assert len(found) == 1
        assert found[0].match_index == 1
        assert found[0].team_id == 2
        assert found[0].previous_index == 0
        assert count_back_to_back(matches) == 1


class TestSlots:
    def test_codes_and_times(self):
        schedule = _schedule(4)
        assert [m.match_code for m in schedule.matches] == ["A01", "A02", "A03", "A04", "A05", "A06"]
        for index, m in enumerate(schedule.matches):
            assert m.scheduled_at == START + timedelta(minutes=30 * index)
            assert m.duration_minutes == 10
            assert m.sequence == index + 1

    def test_positions_restart_each_round(self):
        schedule = _schedule(4)
        assert [(m.round_number, m.position_in_round) for m in schedule.matches] == [
            (1, 1), (1, 2), (2, 1), (2, 2), (3, 1), (3, 2),
        ]

    def test_side_balance_four_teams(self):
        schedule = _schedule(4)
        balance = analyze_side_balance(schedule.matches, [p.team_id for p in _participants(4)])
        assert balance["is_balanced"]
        assert all(entry["total"] == 3 for entry in balance["teams"].values())


class TestModes:
    def test_unoptimized_keeps_canonical_order(self):
        schedule = _schedule(4, optimize=False)
        assert [(m.team_a_id, m.team_b_id) for m in schedule.matches] == [
            (101, 102), (101, 103), (101, 104), (102, 103), (102, 104), (103, 104),
        ]
        assert not schedule.optimized
        assert schedule.back_to_back == schedule.back_to_back_naive

    def test_custom_order(self):
        order = [(101, 102), (103, 104), (104, 101), (102, 103), (101, 103), (102, 104)]
        schedule = _schedule(4, custom_order=order)
        assert [(m.team_a_id, m.team_b_id) for m in schedule.matches] == order
        assert [m.round_number for m in schedule.matches] == [1, 1, 2, 2, 3, 3]

    def test_custom_order_missing_pair(self):
        with pytest.raises(ScheduleValidationError) as exc:
            _schedule(3, custom_order=[(101, 102), (102, 103)])
        assert any("missing" in e for e in exc.value.errors)

    def test_custom_order_rejects_unknown_and_duplicate(self):
        order = [(101, 102), (102, 101), (101, 999), (101, 103), (102, 103)]
        with pytest.raises(ScheduleValidationError) as exc:
            _schedule(3, custom_order=order)
        assert len(exc.value.errors) == 2


class TestValidation:
    @pytest.mark.parametrize("n", [0, 1, 9])
    def test_group_size_bounds(self, n):
        with pytest.raises(ScheduleValidationError):
            _schedule(n)

    def test_duplicate_participants(self):
        participants = [Participant(1), Participant(2), Participant(1)]
        with pytest.raises(ScheduleValidationError):
            build_group_schedule(participants, "A", START, 10, 30)

    def test_reports_every_violation(self):
        with pytest.raises(ScheduleValidationError) as exc:
            build_group_schedule(_participants(4), "A", START, 0, 5)
        assert len(exc.value.errors) == 2

    def test_missing_timing_is_reported(self):
        with pytest.raises(ScheduleValidationError) as exc:
            build_group_schedule(_participants(4), "A", START, None, None)
        assert exc.value.errors == ["match duration is required", "match interval is required"]


class TestStatistics:
    def test_span_and_totals(self):
        stats = schedule_statistics(4, START, 10, 30)
        assert stats["total_matches"] == 6
        assert stats["matches_per_team"] == 3
        assert stats["estimated_duration_minutes"] == 160
        assert stats["end_at"] == (START + timedelta(minutes=160)).isoformat()
        assert stats["average_rest_minutes"] is None

    def test_average_rest_from_matches(self):
        schedule = _schedule(2)
        stats = schedule_statistics(2, START, 10, 30, schedule.matches)
        # One match each, nothing to rest between
        assert stats["average_rest_minutes"] is None

        four = _schedule(4)
        rest = schedule_statistics(4, START, 10, 30, four.matches)["average_rest_minutes"]
        assert rest is not None and rest >= 20
