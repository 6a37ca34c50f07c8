"""
Scheduling Rules (Single Source of Truth)

Bounds and defaults for group round robin and knockout generation. All
durations and intervals are minutes.
"""

from datetime import datetime
from typing import List, Optional

# =============================================================================
# Round robin
# =============================================================================

MIN_GROUP_TEAMS = 2
MAX_GROUP_TEAMS = 8

# =============================================================================
# Timing (minutes)
# =============================================================================

MIN_MATCH_DURATION_MINUTES = 1
MAX_MATCH_DURATION_MINUTES = 60
DEFAULT_MATCH_DURATION_MINUTES = 10

MIN_MATCH_INTERVAL_MINUTES = 10
MAX_MATCH_INTERVAL_MINUTES = 120
DEFAULT_MATCH_INTERVAL_MINUTES = 30

# =============================================================================
# Knockout
# =============================================================================

MIN_BRACKET_TEAMS = 2
MAX_BRACKET_TEAMS = 64


def rr_match_count(team_count: int) -> int:
    """Round robin match count: C(n, 2) = n*(n-1)/2"""
    if team_count < 2:
        return 0
    return (team_count * (team_count - 1)) // 2


def is_power_of_two(n: int) -> bool:
    return n >= 1 and (n & (n - 1)) == 0


def validate_timing(
    start_at: Optional[datetime],
    duration_minutes: Optional[int],
    interval_minutes: Optional[int],
) -> List[str]:
    """Return violated timing rules (empty list when valid)."""
    errors: List[str] = []

    if start_at is None:
        errors.append("start time is required")

    if duration_minutes is None:
        errors.append("match duration is required")
    elif not (MIN_MATCH_DURATION_MINUTES <= duration_minutes <= MAX_MATCH_DURATION_MINUTES):
        errors.append(
            f"match duration must be between {MIN_MATCH_DURATION_MINUTES} and "
            f"{MAX_MATCH_DURATION_MINUTES} minutes, got {duration_minutes}"
        )

    if interval_minutes is None:
        errors.append("match interval is required")
    elif not (MIN_MATCH_INTERVAL_MINUTES <= interval_minutes <= MAX_MATCH_INTERVAL_MINUTES):
        errors.append(
            f"match interval must be between {MIN_MATCH_INTERVAL_MINUTES} and "
            f"{MAX_MATCH_INTERVAL_MINUTES} minutes, got {interval_minutes}"
        )

    return errors


def validate_group_schedule_config(
    group_id: Optional[int],
    start_at: Optional[datetime],
    duration_minutes: Optional[int],
    interval_minutes: Optional[int],
) -> List[str]:
    """
    Validate a group match generation request before anything is generated.

    Returns the full list of violated rules so the caller can report all of
    them at once.
    """
    errors: List[str] = []
    if not group_id:
        errors.append("group id is required")
    errors.extend(validate_timing(start_at, duration_minutes, interval_minutes))
    return errors


def validate_group_size(team_count: int) -> List[str]:
    if team_count < MIN_GROUP_TEAMS:
        return [f"round robin needs at least {MIN_GROUP_TEAMS} teams, got {team_count}"]
    if team_count > MAX_GROUP_TEAMS:
        return [f"round robin supports at most {MAX_GROUP_TEAMS} teams, got {team_count}"]
    return []


def validate_bracket_size(team_count: int) -> List[str]:
    if team_count < MIN_BRACKET_TEAMS or not is_power_of_two(team_count):
        return [f"knockout team count must be a power of two (2, 4, 8, 16, ...), got {team_count}"]
    if team_count > MAX_BRACKET_TEAMS:
        return [f"knockout supports at most {MAX_BRACKET_TEAMS} teams, got {team_count}"]
    return []
