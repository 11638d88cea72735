"""
Tests for workspace lifecycle transitions, event hooks and the dissolution schedule
"""
import asyncio
from datetime import datetime, timedelta

import pytest

from domain.value_objects import WorkspaceStatus
from exceptions import LifecycleError
from models import TeamMember
from services.audit_logger import AuditLogger
from services.lifecycle_service import LifecycleService, scheduled_dissolution
from services.workspace_service import WorkspaceService

ORGANIZER = "organizer-1"


@pytest.fixture
def lifecycle(db_session):
    return LifecycleService(db_session, AuditLogger(db_session))


@pytest.fixture
def finished_workspace(db_session, make_event):
    """Workspace whose event ended two days ago"""
    event = make_event(status="COMPLETED", end_in_days=-2)
    return WorkspaceService(db_session, AuditLogger(db_session)).provision(event.id, ORGANIZER)


def test_status_transitions():
    assert WorkspaceStatus.ACTIVE.can_transition_to(WorkspaceStatus.WINDING_DOWN)
    assert WorkspaceStatus.WINDING_DOWN.can_transition_to(WorkspaceStatus.ACTIVE)
    assert not WorkspaceStatus.DISSOLVED.can_transition_to(WorkspaceStatus.ACTIVE)
    assert not WorkspaceStatus.PROVISIONING.can_transition_to(WorkspaceStatus.DISSOLVED)
    assert WorkspaceStatus.DISSOLVED.allowed_transitions() == []


def test_dissolve_before_event_end_is_rejected(lifecycle, workspace):
    with pytest.raises(LifecycleError):
        lifecycle.dissolve(workspace.id, ORGANIZER)


def test_dissolve_after_event_winds_down(lifecycle, finished_workspace):
    workspace = lifecycle.dissolve(finished_workspace.id, ORGANIZER)

    assert workspace.status == "WINDING_DOWN"
    assert scheduled_dissolution(workspace) == workspace.event.end_date + timedelta(days=30)


def test_dissolve_with_zero_retention_is_immediate(db_session, lifecycle, finished_workspace, add_member):
    add_member(finished_workspace.id, "volunteer-1")

    workspace = lifecycle.dissolve(finished_workspace.id, ORGANIZER, retention_period_days=0)

    assert workspace.status == "DISSOLVED"
    assert workspace.dissolution_reason == "MANUAL"
    statuses = {m.status for m in db_session.query(TeamMember).filter_by(workspace_id=workspace.id)}
    assert statuses == {"INACTIVE"}


def test_wind_down_only_from_active(lifecycle, workspace):
    lifecycle.initiate_wind_down(workspace.id, ORGANIZER)
    with pytest.raises(LifecycleError):
        lifecycle.initiate_wind_down(workspace.id, ORGANIZER)


def test_get_status_reports_days_until_dissolution(lifecycle, finished_workspace):
    lifecycle.dissolve(finished_workspace.id, ORGANIZER, retention_period_days=5)
    now = finished_workspace.event.end_date + timedelta(days=1)

    status = lifecycle.get_status(finished_workspace.id, ORGANIZER, now=now)

    assert status["lifecycle"]["status"] == WorkspaceStatus.WINDING_DOWN
    assert status["lifecycle"]["days_until_dissolution"] == 4
    assert WorkspaceStatus.DISSOLVED in status["lifecycle"]["can_transition_to"]


def test_automatic_dissolution_waits_for_retention(lifecycle, finished_workspace):
    lifecycle.dissolve(finished_workspace.id, ORGANIZER, retention_period_days=3)
    end = finished_workspace.event.end_date

    early = lifecycle.process_automatic_dissolution(now=end + timedelta(days=1))
    assert early["dissolved"] == []
    assert early["pending"] == {finished_workspace.id: 2}

    late = lifecycle.process_automatic_dissolution(now=end + timedelta(days=3, minutes=1))
    assert late["dissolved"] == [finished_workspace.id]
    assert finished_workspace.status == "DISSOLVED"
    assert finished_workspace.dissolution_reason == "RETENTION_EXPIRED"


def test_automatic_dissolution_skips_active_workspaces(lifecycle, workspace):
    result = lifecycle.process_automatic_dissolution(now=datetime.utcnow() + timedelta(days=365))
    assert result["checked"] == 0
    assert workspace.status == "ACTIVE"


def test_event_created_hook_is_idempotent(lifecycle, make_event):
    event = make_event()

    first = lifecycle.on_event_created(event.id)
    second = lifecycle.on_event_created(event.id)

    assert first.id == second.id
    assert first.status == "ACTIVE"


def test_event_completed_starts_wind_down(lifecycle, workspace):
    result = lifecycle.on_event_status_changed(workspace.event_id, "COMPLETED", "ONGOING")

    assert result["action"] == "wind_down"
    assert result["previous_status"] == "ACTIVE"
    assert result["status"] == "WINDING_DOWN"


def test_cancellation_dissolves_and_reversal_reactivates(db_session, lifecycle, workspace, add_member):
    add_member(workspace.id, "volunteer-1")

    cancelled = lifecycle.on_event_status_changed(workspace.event_id, "CANCELLED", "PUBLISHED")
    assert cancelled["action"] == "dissolved"
    assert workspace.dissolution_reason == "EVENT_CANCELLED"

    restored = lifecycle.on_event_status_changed(workspace.event_id, "PUBLISHED", "CANCELLED")
    assert restored["action"] == "reactivated"
    assert workspace.status == "ACTIVE"
    active = {m.user_id for m in db_session.query(TeamMember).filter_by(workspace_id=workspace.id, status="ACTIVE")}
    assert active == {ORGANIZER, "volunteer-1"}


def test_manual_dissolution_is_not_reactivated(lifecycle, finished_workspace):
    lifecycle.dissolve(finished_workspace.id, ORGANIZER, retention_period_days=0)

    result = lifecycle.on_event_status_changed(finished_workspace.event_id, "PUBLISHED", "CANCELLED")

    assert result["action"] == "none"
    assert finished_workspace.status == "DISSOLVED"


def test_lifecycle_status_without_workspace(lifecycle, make_event):
    event = make_event()
    status = lifecycle.lifecycle_status(event.id)
    assert status["has_workspace"] is False
    assert status["can_provision"] is True


def test_scheduler_run_once_uses_its_own_session(monkeypatch, db_session, finished_workspace):
    """The scheduler opens a session through get_db and broadcasts dissolved workspaces"""
    from services import lifecycle_scheduler

    LifecycleService(db_session, AuditLogger(db_session)).dissolve(
        finished_workspace.id, ORGANIZER, retention_period_days=1)

    def fake_get_db():
        yield db_session

    sent = []

    async def fake_status(workspace, previous_status=None):
        sent.append((workspace.id, previous_status))

    monkeypatch.setattr(lifecycle_scheduler, "get_db", fake_get_db)
    monkeypatch.setattr(lifecycle_scheduler.broadcaster, "workspace_status", fake_status)
    monkeypatch.setattr(db_session, "close", lambda: None)

    scheduler = lifecycle_scheduler.LifecycleScheduler(interval=60)
    result = asyncio.run(scheduler.run_once(now=datetime.utcnow() + timedelta(days=2)))

    assert result["dissolved"] == [finished_workspace.id]
    assert sent == [(finished_workspace.id, "WINDING_DOWN")]
    assert scheduler.get_status()["last_result"] == result
