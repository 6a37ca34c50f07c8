"""
Group Round Robin Scheduler

Pure functions, no database access. Input is an ordered participant list,
output is an ordered list of ScheduledMatch with slot codes and start times.

Pipeline (optimized mode):
1. Canonical pairings: every (i, j) with i < j in participant order
2. Pool ordered by circle-method rotation round
3. Greedy round packing: no participant twice in the same round
4. Round sequencing: first match of a round avoids the teams of the
   previous match whenever the round allows it
5. Side balancing, slot codes, start times

The back-to-back reduction is a heuristic. With 3 or 4 participants some
back-to-back play is unavoidable (every ordering has at least 2).
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from dronesoccer.services.errors import ScheduleValidationError, SchedulingError
from dronesoccer.services.schedule_rules import rr_match_count, validate_group_size, validate_timing

logger = logging.getLogger(__name__)

BYE = -1


# -----------------------------------------------------------------------------
# Data Models
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Participant:
    team_id: int
    name: str = ""


@dataclass(frozen=True)
class Pairing:
    team_a_id: int
    team_b_id: int
    round_number: int = 0

    @property
    def teams(self) -> Tuple[int, int]:
        return (self.team_a_id, self.team_b_id)

    @property
    def pair_key(self) -> frozenset:
        return frozenset(self.teams)


@dataclass
class ScheduledMatch:
    sequence: int  # 1-based position in the group's playing order
    match_code: str
    round_number: int
    position_in_round: int
    team_a_id: int
    team_b_id: int
    scheduled_at: datetime
    duration_minutes: int


@dataclass(frozen=True)
class BackToBack:
    match_index: int  # 0-based index in the ordered list
    team_id: int
    previous_index: int


@dataclass
class GroupSchedule:
    group_label: str
    matches: List[ScheduledMatch]
    round_count: int
    optimized: bool
    back_to_back_naive: int
    back_to_back: int

    def to_dict(self) -> Dict:
        return {
            "group_label": self.group_label,
            "round_count": self.round_count,
            "optimized": self.optimized,
            "back_to_back": {
                "before_optimization": self.back_to_back_naive,
                "after_optimization": self.back_to_back,
            },
            "matches": [
                {
                    "sequence": m.sequence,
                    "match_code": m.match_code,
                    "round_number": m.round_number,
                    "position_in_round": m.position_in_round,
                    "team_a_id": m.team_a_id,
                    "team_b_id": m.team_b_id,
                    "scheduled_at": m.scheduled_at.isoformat(),
                    "duration_minutes": m.duration_minutes,
                }
                for m in self.matches
            ],
        }


# -----------------------------------------------------------------------------
# Pairing generation
# -----------------------------------------------------------------------------


def canonical_pairings(team_ids: Sequence[int]) -> List[Pairing]:
    """All unordered pairs (i < j) in participant order. This is the naive playing order."""
    return [Pairing(team_a_id=a, team_b_id=b) for i, a in enumerate(team_ids) for b in team_ids[i + 1:]]


def circle_method_rounds(count: int) -> List[List[Tuple[int, int]]]:
    """
    Circle-method rounds over participant indices 0..count-1.

    Position 0 is fixed, the others rotate. Odd counts get a BYE position;
    pairs against the BYE are dropped. Returns (low_index, high_index) tuples.
    """
    positions = list(range(count))
    if count % 2 == 1:
        positions.append(BYE)
    total = len(positions)

    rounds: List[List[Tuple[int, int]]] = []
    for round_idx in range(total - 1):
        arrangement = [positions[0]]
        for i in range(1, total):
            arrangement.append(positions[((i - 1 + round_idx) % (total - 1)) + 1])

        round_pairs: List[Tuple[int, int]] = []
        for i in range(total // 2):
            a, b = arrangement[i], arrangement[total - 1 - i]
            if a == BYE or b == BYE:
                continue
            round_pairs.append((min(a, b), max(a, b)))
        rounds.append(round_pairs)
    return rounds


def order_by_rotation(team_ids: Sequence[int], pairings: Sequence[Pairing]) -> List[Pairing]:
    """Sort pairings by the circle-method round (then slot) each pair falls in."""
    index = {team_id: i for i, team_id in enumerate(team_ids)}
    rank: Dict[Tuple[int, int], Tuple[int, int]] = {}
    for round_idx, round_pairs in enumerate(circle_method_rounds(len(team_ids))):
        for slot, pair in enumerate(round_pairs):
            rank[pair] = (round_idx, slot)

    def sort_key(pairing: Pairing) -> Tuple[int, int]:
        a, b = index[pairing.team_a_id], index[pairing.team_b_id]
        return rank[(min(a, b), max(a, b))]

    return sorted(pairings, key=sort_key)


# -----------------------------------------------------------------------------
# Round packing and sequencing
# -----------------------------------------------------------------------------


def pack_rounds(pool: Sequence[Pairing]) -> List[List[Pairing]]:
    """
    Greedy round packing.

    Scan the remaining pool in order and take every pairing whose teams are
    not yet used in the round under construction. Close the round when the
    scan ends, repeat until the pool is empty.
    """
    remaining = list(pool)
    rounds: List[List[Pairing]] = []

    while remaining:
        round_number = len(rounds) + 1
        used = set()
        current: List[Pairing] = []
        leftover: List[Pairing] = []

        for pairing in remaining:
            if pairing.team_a_id in used or pairing.team_b_id in used:
                leftover.append(pairing)
                continue
            current.append(replace(pairing, round_number=round_number))
            used.update(pairing.teams)

        if not current:
            raise SchedulingError(
                f"Round packing could not place any of {len(remaining)} remaining matches in round {round_number}"
            )

        rounds.append(current)
        remaining = leftover

    return rounds


def sequence_rounds(rounds: Sequence[Sequence[Pairing]]) -> List[Pairing]:
    """
    Concatenate rounds in formation order.

    Matches inside one round are disjoint, so only round boundaries can put a
    team on back to back. Open each round with its first match that shares no
    team with the previous match, if there is one.
    """
    ordered: List[Pairing] = []
    for round_pairings in rounds:
        pending = list(round_pairings)
        if ordered:
            last_teams = set(ordered[-1].teams)
            for i, pairing in enumerate(pending):
                if last_teams.isdisjoint(pairing.teams):
                    pending.insert(0, pending.pop(i))
                    break
        ordered.extend(pending)
    return ordered


def split_into_rounds(ordered: Sequence[Pairing]) -> List[Pairing]:
    """Number rounds for an externally fixed order: a round ends when a team would repeat."""
    result: List[Pairing] = []
    used = set()
    round_number = 1
    for pairing in ordered:
        if pairing.team_a_id in used or pairing.team_b_id in used:
            round_number += 1
            used = set()
        used.update(pairing.teams)
        result.append(replace(pairing, round_number=round_number))
    return result


def balance_sides(ordered: Sequence[Pairing]) -> List[Pairing]:
    """Orient each pair so no team is listed first much more often than second."""
    first_listed: Dict[int, int] = {}
    balanced: List[Pairing] = []
    for index, pairing in enumerate(ordered):
        a, b = pairing.team_a_id, pairing.team_b_id
        count_a, count_b = first_listed.get(a, 0), first_listed.get(b, 0)
        if count_b < count_a or (count_a == count_b and index % 2 == 1):
            a, b = b, a
        first_listed[a] = first_listed.get(a, 0) + 1
        balanced.append(replace(pairing, team_a_id=a, team_b_id=b))
    return balanced


def apply_custom_order(team_ids: Sequence[int], order: Sequence[Tuple[int, int]]) -> List[Pairing]:
    """
    Use a caller-supplied playing order.

    The order must contain every pairing of the group exactly once; sides are
    taken as given.
    """
    known = set(team_ids)
    expected = {p.pair_key for p in canonical_pairings(team_ids)}
    seen = set()
    errors: List[str] = []
    result: List[Pairing] = []

    for index, (team_a_id, team_b_id) in enumerate(order, start=1):
        if team_a_id not in known or team_b_id not in known:
            errors.append(f"entry {index}: teams {team_a_id} vs {team_b_id} are not both in this group")
            continue
        if team_a_id == team_b_id:
            errors.append(f"entry {index}: a team cannot play itself ({team_a_id})")
            continue
        key = frozenset((team_a_id, team_b_id))
        if key in seen:
            errors.append(f"entry {index}: pairing {team_a_id} vs {team_b_id} appears more than once")
            continue
        seen.add(key)
        result.append(Pairing(team_a_id=team_a_id, team_b_id=team_b_id))

    missing = expected - seen
    if missing:
        errors.append(f"custom order is missing {len(missing)} of {len(expected)} pairings")

    if errors:
        raise ScheduleValidationError(errors)
    return result


# -----------------------------------------------------------------------------
# Verification / analysis
# -----------------------------------------------------------------------------


def find_back_to_back(matches: Sequence) -> List[BackToBack]:
    """
    Report every team whose previous match is the immediately preceding one.

    Works on anything with team_a_id / team_b_id (Pairing, ScheduledMatch,
    Match rows). Not enforced at generation time.
    """
    last_index: Dict[int, int] = {}
    found: List[BackToBack] = []
    for index, match in enumerate(matches):
        teams = (match.team_a_id, match.team_b_id)
        for team_id in teams:
            previous = last_index.get(team_id)
            if previous is not None and previous == index - 1:
                found.append(BackToBack(match_index=index, team_id=team_id, previous_index=previous))
        for team_id in teams:
            last_index[team_id] = index
    return found


def count_back_to_back(matches: Sequence) -> int:
    return len(find_back_to_back(matches))


def analyze_side_balance(matches: Sequence, team_ids: Sequence[int]) -> Dict:
    """Count how often each team is listed as side A / side B."""
    stats = {team_id: {"side_a": 0, "side_b": 0} for team_id in team_ids}
    for match in matches:
        if match.team_a_id in stats:
            stats[match.team_a_id]["side_a"] += 1
        if match.team_b_id in stats:
            stats[match.team_b_id]["side_b"] += 1

    for entry in stats.values():
        entry["total"] = entry["side_a"] + entry["side_b"]
        entry["difference"] = abs(entry["side_a"] - entry["side_b"])

    max_difference = max((s["difference"] for s in stats.values()), default=0)
    return {
        "teams": stats,
        "max_difference": max_difference,
        "is_balanced": max_difference <= 1,
    }


def average_rest_minutes(matches: Sequence[ScheduledMatch]) -> Optional[float]:
    """
    Mean idle time between the end of a team's match and the start of its next one.

    None when no team plays twice.
    """
    last_end: Dict[int, datetime] = {}
    gaps: List[float] = []
    for match in sorted(matches, key=lambda m: m.scheduled_at):
        end_at = match.scheduled_at + timedelta(minutes=match.duration_minutes)
        for team_id in (match.team_a_id, match.team_b_id):
            if team_id in last_end:
                gaps.append((match.scheduled_at - last_end[team_id]).total_seconds() / 60)
            last_end[team_id] = end_at
    if not gaps:
        return None
    return round(sum(gaps) / len(gaps), 1)


def schedule_statistics(
    team_count: int,
    start_at: datetime,
    duration_minutes: int,
    interval_minutes: int,
    matches: Optional[Sequence[ScheduledMatch]] = None,
) -> Dict:
    """Totals and time span of a group schedule. Rest time needs the generated matches."""
    total = rr_match_count(team_count)
    span_minutes = (total - 1) * interval_minutes + duration_minutes if total else 0
    return {
        "team_count": team_count,
        "total_matches": total,
        "matches_per_team": max(team_count - 1, 0),
        "estimated_duration_minutes": span_minutes,
        "start_at": start_at.isoformat(),
        "end_at": (start_at + timedelta(minutes=span_minutes)).isoformat(),
        "average_rest_minutes": average_rest_minutes(matches) if matches else None,
    }


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------


def assign_slots(
    ordered: Sequence[Pairing],
    group_label: str,
    start_at: datetime,
    duration_minutes: int,
    interval_minutes: int,
) -> List[ScheduledMatch]:
    """Sequential start times (start + index * interval) and <label><NN> codes."""
    matches: List[ScheduledMatch] = []
    position_counter: Dict[int, int] = {}
    for index, pairing in enumerate(ordered):
        position_counter[pairing.round_number] = position_counter.get(pairing.round_number, 0) + 1
        matches.append(
            ScheduledMatch(
                sequence=index + 1,
                match_code=f"{group_label}{index + 1:02d}",
                round_number=pairing.round_number,
                position_in_round=position_counter[pairing.round_number],
                team_a_id=pairing.team_a_id,
                team_b_id=pairing.team_b_id,
                scheduled_at=start_at + timedelta(minutes=index * interval_minutes),
                duration_minutes=duration_minutes,
            )
        )
    return matches


def build_group_schedule(
    participants: Sequence[Participant],
    group_label: str,
    start_at: datetime,
    duration_minutes: int,
    interval_minutes: int,
    optimize: bool = True,
    custom_order: Optional[Sequence[Tuple[int, int]]] = None,
) -> GroupSchedule:
    """
    Generate the complete round robin for one group.

    Raises:
        ScheduleValidationError: participant count outside 2..8, duplicate
            participants, bad timing, or an invalid custom order
        SchedulingError: packing failed to place the remaining matches
    """
    team_ids = [p.team_id for p in participants]

    errors = validate_group_size(len(team_ids))
    if len(set(team_ids)) != len(team_ids):
        errors.append("participants must be unique")
    errors.extend(validate_timing(start_at, duration_minutes, interval_minutes))
    if errors:
        raise ScheduleValidationError(errors)

    naive = canonical_pairings(team_ids)

    if custom_order is not None:
        ordered = split_into_rounds(apply_custom_order(team_ids, custom_order))
        optimized = False
    elif optimize:
        rounds = pack_rounds(order_by_rotation(team_ids, naive))
        ordered = balance_sides(sequence_rounds(rounds))
        optimized = True
    else:
        ordered = split_into_rounds(naive)
        optimized = False

    if len(ordered) != rr_match_count(len(team_ids)):
        raise SchedulingError(
            f"Expected {rr_match_count(len(team_ids))} matches for {len(team_ids)} teams, produced {len(ordered)}"
        )

    matches = assign_slots(ordered, group_label, start_at, duration_minutes, interval_minutes)
    schedule = GroupSchedule(
        group_label=group_label,
        matches=matches,
        round_count=max((p.round_number for p in ordered), default=0),
        optimized=optimized,
        back_to_back_naive=count_back_to_back(naive),
        back_to_back=count_back_to_back(matches),
    )

    logger.info(
        "Group %s: %d teams -> %d matches in %d rounds (back-to-back %d, naive %d)",
        group_label,
        len(team_ids),
        len(matches),
        schedule.round_count,
        schedule.back_to_back,
        schedule.back_to_back_naive,
    )
    if schedule.back_to_back:
        for b2b in find_back_to_back(matches):
            logger.warning(
                "Group %s: team %s plays back-to-back in %s",
                group_label,
                b2b.team_id,
                matches[b2b.match_index].match_code,
            )
    return schedule
