"""
Group round robin persistence.

Generation runs the pure scheduler and inserts every match plus zeroed
standings in one transaction. Removal (schedule, group, team) cascades only
while every affected match is still pending.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from dronesoccer.models.group import TeamGroup
from dronesoccer.models.group_standing import GroupStanding
from dronesoccer.models.match import Match
from dronesoccer.models.team import Team
from dronesoccer.services.errors import ConflictError, NotFoundError, ScheduleValidationError
from dronesoccer.services.match_state import STATUS_PENDING
from dronesoccer.services.round_robin import (
    GroupSchedule,
    Participant,
    analyze_side_balance,
    build_group_schedule,
    schedule_statistics,
)
from dronesoccer.services.schedule_rules import (
    DEFAULT_MATCH_DURATION_MINUTES,
    DEFAULT_MATCH_INTERVAL_MINUTES,
    MAX_GROUP_TEAMS,
    validate_group_schedule_config,
)
from dronesoccer.services.standings_service import initialize_group_standings

logger = logging.getLogger(__name__)

MATCH_TYPE_GROUP = "group"


def _load_group(session: Session, group_id: int) -> TeamGroup:
    group = session.get(TeamGroup, group_id)
    if not group:
        raise NotFoundError(f"Group {group_id} not found")
    return group


def _group_participants(session: Session, group: TeamGroup) -> List[Participant]:
    teams = session.exec(select(Team).where(Team.group_id == group.id).order_by(Team.id)).all()
    return [Participant(team_id=t.id, name=t.name) for t in teams]


def _group_matches(session: Session, group_id: int) -> List[Match]:
    return session.exec(select(Match).where(Match.group_id == group_id).order_by(Match.id)).all()


def _build(
    session: Session,
    group_id: Optional[int],
    start_at: Optional[datetime],
    duration_minutes: int,
    interval_minutes: int,
    optimize: bool,
    custom_order: Optional[Sequence[Tuple[int, int]]],
) -> Tuple[TeamGroup, List[Participant], GroupSchedule]:
    errors = validate_group_schedule_config(group_id, start_at, duration_minutes, interval_minutes)
    if errors:
        raise ScheduleValidationError(errors)

    group = _load_group(session, group_id)
    participants = _group_participants(session, group)
    schedule = build_group_schedule(
        participants,
        group.group_name,
        start_at,
        duration_minutes,
        interval_minutes,
        optimize=optimize,
        custom_order=custom_order,
    )
    return group, participants, schedule


def preview_group_schedule(
    session: Session,
    group_id: int,
    start_at: datetime,
    duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES,
    interval_minutes: int = DEFAULT_MATCH_INTERVAL_MINUTES,
    optimize: bool = True,
    custom_order: Optional[Sequence[Tuple[int, int]]] = None,
) -> Dict:
    """Generate without writing anything: matches, statistics, side balance."""
    group, participants, schedule = _build(
        session, group_id, start_at, duration_minutes, interval_minutes, optimize, custom_order
    )
    team_ids = [p.team_id for p in participants]
    preview = schedule.to_dict()
    preview["group_id"] = group.id
    preview["statistics"] = schedule_statistics(
        len(team_ids), start_at, duration_minutes, interval_minutes, schedule.matches
    )
    preview["side_balance"] = analyze_side_balance(schedule.matches, team_ids)
    return preview


def generate_group_schedule(
    session: Session,
    group_id: int,
    start_at: datetime,
    duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES,
    interval_minutes: int = DEFAULT_MATCH_INTERVAL_MINUTES,
    optimize: bool = True,
    custom_order: Optional[Sequence[Tuple[int, int]]] = None,
) -> Dict:
    """
    Generate and persist a group's round robin.

    Raises:
        ScheduleValidationError: bad config, group size or custom order
        NotFoundError: unknown group
        ConflictError: the group already has matches, or its match codes are taken
    """
    group, participants, schedule = _build(
        session, group_id, start_at, duration_minutes, interval_minutes, optimize, custom_order
    )

    if _group_matches(session, group.id):
        raise ConflictError(f"Group {group.group_name} already has matches; delete them first")

    taken = set(session.exec(select(Match.match_code).where(Match.tournament_id == group.tournament_id)).all())
    clashes = sorted(taken & {planned.match_code for planned in schedule.matches})
    if clashes:
        raise ConflictError(f"Match codes already in use: {', '.join(clashes)}")

    try:
        for planned in schedule.matches:
            session.add(
                Match(
                    tournament_id=group.tournament_id,
                    group_id=group.id,
                    match_code=planned.match_code,
                    match_type=MATCH_TYPE_GROUP,
                    tournament_stage=None,
                    round_number=planned.round_number,
                    position_in_round=planned.position_in_round,
                    team_a_id=planned.team_a_id,
                    team_b_id=planned.team_b_id,
                    scheduled_at=planned.scheduled_at,
                    duration_minutes=planned.duration_minutes,
                    status=STATUS_PENDING,
                )
            )
        standings_created = initialize_group_standings(session, group)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Group %s schedule generation failed, transaction rolled back", group_id)
        raise

    logger.info(
        "Group %s: persisted %d matches, %d standing rows",
        group.group_name,
        len(schedule.matches),
        standings_created,
    )
    result = schedule.to_dict()
    result["group_id"] = group.id
    result["matches_created"] = len(schedule.matches)
    return result


def _ensure_all_pending(matches: Sequence[Match], what: str) -> None:
    started = [m.match_code for m in matches if m.status != STATUS_PENDING]
    if started:
        raise ConflictError(f"Cannot remove {what}: matches already started ({', '.join(started)})")


def _delete_group_matches_and_standings(session: Session, group_id: int) -> int:
    matches = _group_matches(session, group_id)
    for match in matches:
        session.delete(match)
    for standing in session.exec(select(GroupStanding).where(GroupStanding.group_id == group_id)).all():
        session.delete(standing)
    return len(matches)


def delete_group_schedule(session: Session, group_id: int) -> int:
    """Remove a group's matches and standings while all matches are pending. Returns matches deleted."""
    _load_group(session, group_id)
    _ensure_all_pending(_group_matches(session, group_id), "group schedule")

    try:
        deleted = _delete_group_matches_and_standings(session, group_id)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Deleting schedule of group %s failed, transaction rolled back", group_id)
        raise

    logger.info("Group %s: deleted %d pending matches", group_id, deleted)
    return deleted


def delete_group(session: Session, group_id: int) -> Dict:
    """Remove a group, its pending matches and standings; its teams become unassigned."""
    group = _load_group(session, group_id)
    _ensure_all_pending(_group_matches(session, group_id), "group")

    try:
        matches_deleted = _delete_group_matches_and_standings(session, group_id)
        teams = session.exec(select(Team).where(Team.group_id == group_id)).all()
        for team in teams:
            team.group_id = None
            session.add(team)
        session.delete(group)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Deleting group %s failed, transaction rolled back", group_id)
        raise

    return {"group_id": group_id, "matches_deleted": matches_deleted, "teams_unassigned": len(teams)}


def assign_team_to_group(session: Session, group_id: int, team_id: int) -> Team:
    """
    Put a team into a group.

    Rejected once the group has a schedule, when the group is full, or when
    the team belongs to another tournament.
    """
    group = _load_group(session, group_id)
    team = session.get(Team, team_id)
    if not team:
        raise NotFoundError(f"Team {team_id} not found")
    if team.tournament_id != group.tournament_id:
        raise ScheduleValidationError([f"team {team_id} belongs to another tournament"])
    if team.group_id == group.id:
        return team
    if _group_matches(session, group.id):
        raise ConflictError(f"Group {group.group_name} already has matches; delete them before adding teams")

    current = session.exec(select(Team).where(Team.group_id == group.id)).all()
    capacity = min(group.max_teams, MAX_GROUP_TEAMS)
    if len(current) >= capacity:
        raise ConflictError(f"Group {group.group_name} is full ({capacity} teams)")
    if team.group_id is not None and _group_matches(session, team.group_id):
        raise ConflictError(f"Team {team.name} already has group matches in another group")

    team.group_id = group.id
    session.add(team)
    session.commit()
    session.refresh(team)
    return team


def delete_team(session: Session, team_id: int) -> Dict:
    """
    Remove a team together with its group matches and standing row.

    Only while all of those matches are pending; teams placed in a knockout
    bracket cannot be removed.
    """
    team = session.get(Team, team_id)
    if not team:
        raise NotFoundError(f"Team {team_id} not found")

    matches = session.exec(
        select(Match).where((Match.team_a_id == team_id) | (Match.team_b_id == team_id))
    ).all()
    if any(m.group_id is None for m in matches):
        raise ConflictError(f"Team {team.name} is part of a knockout bracket")
    _ensure_all_pending(matches, "team")

    try:
        for match in matches:
            session.delete(match)
        for standing in session.exec(select(GroupStanding).where(GroupStanding.team_id == team_id)).all():
            session.delete(standing)
        session.delete(team)
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Deleting team %s failed, transaction rolled back", team_id)
        raise

    return {"team_id": team_id, "matches_deleted": len(matches)}
