"""
Knockout Bracket Builder

Pure functions, no database access. Builds a single-elimination plan for a
power-of-two team count: seeded round-1 pairs, placeholder nodes for later
rounds, next-match links, an optional third-place node and start times.

Plan nodes carry integer keys. The persistence layer inserts one Match per
node and maps keys to match ids.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from dronesoccer.services.errors import ScheduleValidationError
from dronesoccer.services.schedule_rules import validate_bracket_size, validate_timing

logger = logging.getLogger(__name__)

STAGE_FINAL = "final"
STAGE_SEMI_FINAL = "semi_final"
STAGE_QUARTER_FINAL = "quarter_final"
STAGE_ROUND_OF_16 = "round_of_16"
STAGE_THIRD_PLACE = "third_place"

# Bracket positions for seeds, in round-1 match order.
# Top seeds land in opposite halves so they can only meet in the final.
STANDARD_SEEDING: Dict[int, List[Tuple[int, int]]] = {
    2: [(1, 2)],
    4: [(1, 4), (2, 3)],
    8: [(1, 8), (4, 5), (3, 6), (2, 7)],
    16: [(1, 16), (8, 9), (4, 13), (5, 12), (6, 11), (3, 14), (7, 10), (2, 15)],
    32: [
        (1, 32), (16, 17), (8, 25), (9, 24), (4, 29), (13, 20), (5, 28), (12, 21),
        (6, 27), (11, 22), (3, 30), (14, 19), (7, 26), (10, 23), (15, 18), (2, 31),
    ],
}


@dataclass
class PlannedMatch:
    key: int
    round_number: int
    position_in_round: int
    stage: str
    match_code: str
    scheduled_at: Optional[datetime] = None
    duration_minutes: int = 0
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    next_key: Optional[int] = None
    is_third_place: bool = False


@dataclass
class BracketPlan:
    size: int
    round_count: int
    matches: List[PlannedMatch] = field(default_factory=list)
    third_place_key: Optional[int] = None

    @property
    def tree_nodes(self) -> List[PlannedMatch]:
        return [m for m in self.matches if not m.is_third_place]

    @property
    def final(self) -> PlannedMatch:
        return next(m for m in self.tree_nodes if m.next_key is None)

    def by_key(self, key: int) -> PlannedMatch:
        for m in self.matches:
            if m.key == key:
                return m
        raise KeyError(key)

    def round(self, round_number: int) -> List[PlannedMatch]:
        return sorted(
            (m for m in self.tree_nodes if m.round_number == round_number),
            key=lambda m: m.position_in_round,
        )


# -----------------------------------------------------------------------------
# Seeding / labels
# -----------------------------------------------------------------------------


def seed_pairs(size: int) -> List[Tuple[int, int]]:
    """Round-1 seed pairs for a bracket of `size` teams (1-based seeds)."""
    if size in STANDARD_SEEDING:
        return list(STANDARD_SEEDING[size])
    return [(i, size + 1 - i) for i in range(1, size // 2 + 1)]


def stage_for_round(round_number: int, round_count: int) -> str:
    remaining = round_count - round_number + 1
    if remaining == 1:
        return STAGE_FINAL
    if remaining == 2:
        return STAGE_SEMI_FINAL
    if remaining == 3:
        return STAGE_QUARTER_FINAL
    if remaining == 4:
        return STAGE_ROUND_OF_16
    return f"round_of_{2 ** remaining}"


def code_prefix(stage: str) -> str:
    if stage == STAGE_FINAL:
        return "F"
    if stage == STAGE_SEMI_FINAL:
        return "SF"
    if stage == STAGE_QUARTER_FINAL:
        return "QF"
    if stage == STAGE_THIRD_PLACE:
        return "TP"
    if stage.startswith("round_of_"):
        return f"R{stage[len('round_of_'):]}-"
    raise ValueError(f"Unknown stage: {stage}")


def is_knockout_code_prefix(label: str) -> bool:
    """True when group codes built from label would collide with knockout codes."""
    fixed = {code_prefix(stage) for stage in (STAGE_FINAL, STAGE_SEMI_FINAL, STAGE_QUARTER_FINAL, STAGE_THIRD_PLACE)}
    return label in fixed or re.fullmatch(r"R\d+-", label) is not None


def next_position(position_in_round: int) -> int:
    """Position of the next-round match a winner feeds into."""
    return (position_in_round + 1) // 2


def slot_for_position(position_in_round: int) -> str:
    """Odd positions feed side A of the next match, even positions side B."""
    return "team_a_id" if position_in_round % 2 == 1 else "team_b_id"


def round_count_for(size: int) -> int:
    return size.bit_length() - 1


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------


def build_bracket(
    team_ids: Sequence[int],
    start_at: datetime,
    duration_minutes: int,
    interval_minutes: int,
    include_third_place: bool = True,
    seeded: bool = True,
) -> BracketPlan:
    """
    Build a single-elimination plan.

    team_ids[0] is seed 1 when seeded; unseeded lists pair consecutive
    entries. The third-place node is only added for 4 or more teams.

    Raises:
        ScheduleValidationError: size not a power of two in range, duplicate
            teams, or bad timing
    """
    size = len(team_ids)
    errors = validate_bracket_size(size)
    if len(set(team_ids)) != size:
        errors.append("knockout teams must be unique")
    errors.extend(validate_timing(start_at, duration_minutes, interval_minutes))
    if errors:
        raise ScheduleValidationError(errors)

    round_count = round_count_for(size)
    plan = BracketPlan(size=size, round_count=round_count)

    # Tree nodes, keyed in round/position order
    keys: Dict[Tuple[int, int], int] = {}
    next_key = 1
    for round_number in range(1, round_count + 1):
        stage = stage_for_round(round_number, round_count)
        prefix = code_prefix(stage)
        for position in range(1, size // (2 ** round_number) + 1):
            node = PlannedMatch(
                key=next_key,
                round_number=round_number,
                position_in_round=position,
                stage=stage,
                match_code=f"{prefix}{position:02d}",
                duration_minutes=duration_minutes,
            )
            keys[(round_number, position)] = next_key
            plan.matches.append(node)
            next_key += 1

    # Round-1 participants
    if seeded:
        pairs = [(team_ids[a - 1], team_ids[b - 1]) for a, b in seed_pairs(size)]
    else:
        pairs = [(team_ids[i], team_ids[i + 1]) for i in range(0, size, 2)]
    for node, (team_a_id, team_b_id) in zip(plan.round(1), pairs):
        node.team_a_id = team_a_id
        node.team_b_id = team_b_id

    # Links
    for node in plan.tree_nodes:
        if node.round_number < round_count:
            node.next_key = keys[(node.round_number + 1, next_position(node.position_in_round))]

    if include_third_place and size >= 4:
        third_place = PlannedMatch(
            key=next_key,
            round_number=round_count,
            position_in_round=1,
            stage=STAGE_THIRD_PLACE,
            match_code=f"{code_prefix(STAGE_THIRD_PLACE)}01",
            duration_minutes=duration_minutes,
            is_third_place=True,
        )
        plan.matches.append(third_place)
        plan.third_place_key = third_place.key

    _assign_times(plan, start_at, interval_minutes)

    logger.info(
        "Bracket: %d teams, %d rounds, %d matches (third place: %s)",
        size,
        round_count,
        len(plan.matches),
        plan.third_place_key is not None,
    )
    return plan


def _assign_times(plan: BracketPlan, start_at: datetime, interval_minutes: int) -> None:
    """Sequential slots: every round before the final, then third place, then the final."""
    play_order: List[PlannedMatch] = []
    for round_number in range(1, plan.round_count):
        play_order.extend(plan.round(round_number))
    if plan.third_place_key is not None:
        play_order.append(plan.by_key(plan.third_place_key))
    play_order.append(plan.final)

    for index, node in enumerate(play_order):
        node.scheduled_at = start_at + timedelta(minutes=index * interval_minutes)
