"""Standings persistence: recompute commits once or not at all."""

from datetime import datetime

import pytest
from sqlmodel import Session, select

from dronesoccer.models.group import TeamGroup
from dronesoccer.models.group_standing import GroupStanding
from dronesoccer.models.match import Match
from dronesoccer.models.team import Team
from dronesoccer.models.tournament import Tournament
from dronesoccer.services import standings_service
from dronesoccer.services.group_schedule_service import generate_group_schedule
from dronesoccer.services.progression_service import complete_match, start_match
from dronesoccer.services.standings_calculator import reset_row


@pytest.fixture
def played_group(session: Session):
    tournament = Tournament(name="Standings Service Test")
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    group = TeamGroup(tournament_id=tournament.id, group_name="A")
    session.add(group)
    session.commit()
    session.refresh(group)

    for i in range(1, 4):
        session.add(Team(tournament_id=tournament.id, name=f"Team-{i}", group_id=group.id))
    session.commit()

    generate_group_schedule(session, group.id, datetime(2026, 5, 2, 9, 0))
    for match in session.exec(select(Match).where(Match.group_id == group.id).order_by(Match.id)).all()[:2]:
        start_match(session, match.id)
        complete_match(session, match.id, score_a=2, score_b=1)
    return group


def _persisted(session: Session, group_id: int) -> dict:
    session.expire_all()
    rows = session.exec(select(GroupStanding).where(GroupStanding.group_id == group_id)).all()
    return {r.team_id: (r.played, r.won, r.drawn, r.lost, r.goals_for, r.goals_against, r.points) for r in rows}


def test_recompute_matches_incremental(played_group, session: Session):
    before = _persisted(session, played_group.id)
    result = standings_service.recompute_group_standings(session, played_group.id)
    assert result["matches_replayed"] == 2
    assert _persisted(session, played_group.id) == before


def test_failed_recompute_leaves_table_untouched(played_group, session: Session, monkeypatch):
    before = _persisted(session, played_group.id)
    assert sum(points for *_, points in before.values()) == 6

    def zero_then_fail(rows, matches):
        for row in rows:
            reset_row(row)
            session.add(row)
        session.flush()
        raise RuntimeError("replay failed")

    monkeypatch.setattr(standings_service, "recompute", zero_then_fail)

    with pytest.raises(RuntimeError):
        standings_service.recompute_group_standings(session, played_group.id)

    assert _persisted(session, played_group.id) == before
