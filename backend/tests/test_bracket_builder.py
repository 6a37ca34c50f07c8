"""
Tests for the knockout bracket builder: seeding table, stage labels, codes,
links, third place and scheduling.
"""

from datetime import datetime, timedelta

import pytest

from dronesoccer.services.bracket_builder import (
    STANDARD_SEEDING,
    build_bracket,
    code_prefix,
    seed_pairs,
    slot_for_position,
    stage_for_round,
)
from dronesoccer.services.errors import ScheduleValidationError

START = datetime(2026, 5, 3, 10, 0)


def _teams(n: int) -> list[int]:
    """Team ids where team id 1000 + s is seed s."""
    return [1000 + s for s in range(1, n + 1)]


def _build(n: int, **kwargs):
    return build_bracket(_teams(n), START, 10, 30, **kwargs)


class TestSeedingTable:
    def test_sizes(self):
        assert seed_pairs(2) == [(1, 2)]
        assert seed_pairs(4) == [(1, 4), (2, 3)]
        assert seed_pairs(8) == [(1, 8), (4, 5), (3, 6), (2, 7)]
        assert seed_pairs(16)[:3] == [(1, 16), (8, 9), (4, 13)]

    def test_every_seed_once(self):
        for n, pairs in STANDARD_SEEDING.items():
            seeds = [s for p in pairs for s in p]
            assert sorted(seeds) == list(range(1, n + 1))
            assert all(a + b == n + 1 for a, b in pairs)

    def test_fallback_pairs_outside_table(self):
        assert seed_pairs(64)[0] == (1, 64)
        assert seed_pairs(64)[-1] == (32, 33)

    @pytest.mark.parametrize("n", [2, 4, 8, 16, 32])
    def test_round_one_matches_table(self, n):
        plan = _build(n)
        actual = [(m.team_a_id - 1000, m.team_b_id - 1000) for m in plan.round(1)]
        assert actual == STANDARD_SEEDING[n]

    def test_unseeded_pairs_consecutive_entries(self):
        plan = _build(8, seeded=False)
        actual = [(m.team_a_id - 1000, m.team_b_id - 1000) for m in plan.round(1)]
        assert actual == [(1, 2), (3, 4), (5, 6), (7, 8)]


class TestStages:
    def test_stage_labels(self):
        assert stage_for_round(3, 3) == "final"
        assert stage_for_round(2, 3) == "semi_final"
        assert stage_for_round(1, 3) == "quarter_final"
        assert stage_for_round(1, 4) == "round_of_16"
        assert stage_for_round(1, 5) == "round_of_32"

    def test_prefixes(self):
        assert code_prefix("final") == "F"
        assert code_prefix("semi_final") == "SF"
        assert code_prefix("quarter_final") == "QF"
        assert code_prefix("round_of_16") == "R16-"
        assert code_prefix("round_of_32") == "R32-"
        assert code_prefix("third_place") == "TP"
        with pytest.raises(ValueError):
            code_prefix("group")

    def test_codes_restart_per_round(self):
        plan = _build(8)
        codes = [m.match_code for m in plan.matches]
        assert codes == ["QF01", "QF02", "QF03", "QF04", "SF01", "SF02", "F01", "TP01"]

    def test_large_bracket_codes_unique(self):
        plan = _build(32)
        codes = [m.match_code for m in plan.matches]
        assert len(codes) == len(set(codes))
        assert plan.round(1)[0].match_code == "R32-01"
        assert plan.round(2)[0].match_code == "R16-01"


class TestStructure:
    @pytest.mark.parametrize("n", [2, 4, 8, 16, 32])
    def test_node_counts(self, n):
        with_third = _build(n, include_third_place=True)
        without = _build(n, include_third_place=False)
        assert len(without.matches) == n - 1
        assert len(with_third.matches) == n - 1 + (1 if n >= 4 else 0)

    @pytest.mark.parametrize("n", [2, 4, 8, 16])
    def test_single_root(self, n):
        plan = _build(n)
        roots = [m for m in plan.tree_nodes if m.next_key is None]
        assert len(roots) == 1
        assert roots[0].stage == "final"

    def test_links_follow_position(self):
        plan = _build(8)
        semi_1, semi_2 = plan.round(2)
        qf = plan.round(1)
        assert [m.next_key for m in qf] == [semi_1.key, semi_1.key, semi_2.key, semi_2.key]
        assert semi_1.next_key == semi_2.next_key == plan.final.key

    def test_later_rounds_are_placeholders(self):
        plan = _build(8)
        for m in plan.round(2) + plan.round(3):
            assert m.team_a_id is None and m.team_b_id is None

    def test_third_place_outside_graph(self):
        plan = _build(4)
        third = plan.by_key(plan.third_place_key)
        assert third.is_third_place
        assert third.stage == "third_place"
        assert third.next_key is None
        assert all(m.next_key != third.key for m in plan.matches)

    def test_two_teams_no_third_place(self):
        plan = _build(2, include_third_place=True)
        assert plan.third_place_key is None
        assert [m.match_code for m in plan.matches] == ["F01"]

    def test_slot_parity(self):
        assert slot_for_position(1) == "team_a_id"
        assert slot_for_position(2) == "team_b_id"
        assert slot_for_position(3) == "team_a_id"


class TestSchedule:
    def test_sequential_slots_third_place_before_final(self):
        plan = _build(8)
        times = {m.match_code: m.scheduled_at for m in plan.matches}
        for p in range(4):
            assert times[f"QF0{p + 1}"] == START + timedelta(minutes=30 * p)
        assert times["SF01"] == START + timedelta(minutes=120)
        assert times["SF02"] == START + timedelta(minutes=150)
        assert times["TP01"] == START + timedelta(minutes=180)
        assert times["F01"] == START + timedelta(minutes=210)

    def test_final_without_third_place(self):
        plan = _build(4, include_third_place=False)
        assert plan.final.scheduled_at == START + timedelta(minutes=60)


class TestValidation:
    @pytest.mark.parametrize("n", [0, 1, 3, 6, 12, 128])
    def test_rejects_bad_sizes(self, n):
        with pytest.raises(ScheduleValidationError):
            _build(n)

    def test_rejects_duplicates(self):
        with pytest.raises(ScheduleValidationError):
            build_bracket([1, 2, 3, 1], START, 10, 30)

    def test_rejects_bad_interval(self):
        with pytest.raises(ScheduleValidationError) as exc:
            build_bracket([1, 2], START, 10, 200)
        assert len(exc.value.errors) == 1

    def test_rejects_missing_duration(self):
        with pytest.raises(ScheduleValidationError) as exc:
            build_bracket([1, 2], START, None, 30)
        assert exc.value.errors == ["match duration is required"]
