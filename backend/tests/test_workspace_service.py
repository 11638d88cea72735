"""
Tests for workspace provisioning, retrieval and settings updates
"""
import pytest

from exceptions import AccessDeniedError, ConflictError, NotFoundError
from models import AuditLog, TeamMember, WorkspaceChannel
from services.audit_logger import AuditLogger
from services.workspace_service import WorkspaceService

ORGANIZER = "organizer-1"


@pytest.fixture
def service(db_session):
    return WorkspaceService(db_session, AuditLogger(db_session))


def test_provision_creates_active_workspace_with_owner_and_channels(db_session, service, make_event):
    event = make_event()

    workspace = service.provision(event.id, ORGANIZER)

    assert workspace.status == "ACTIVE"
    assert workspace.name == "Tech Summit Workspace"
    assert workspace.settings["retention_period_days"] == 30

    owner = db_session.query(TeamMember).filter_by(workspace_id=workspace.id).one()
    assert owner.user_id == ORGANIZER
    assert owner.role == "WORKSPACE_OWNER"
    assert "MANAGE_WORKSPACE" in owner.permissions
    assert "INVITE_MEMBERS" in owner.permissions

    names = {c.name for c in db_session.query(WorkspaceChannel).filter_by(workspace_id=workspace.id)}
    assert names == {"general", "announcements", "tasks"}


def test_provision_is_audited(db_session, service, make_event):
    event = make_event()
    workspace = service.provision(event.id, ORGANIZER)

    log = db_session.query(AuditLog).filter_by(action="WORKSPACE_PROVISIONED").one()
    assert log.workspace_id == workspace.id
    assert log.user_id == ORGANIZER
    assert log.details["event_id"] == event.id


def test_provision_unknown_event(service):
    with pytest.raises(NotFoundError):
        service.provision("missing-event", ORGANIZER)


def test_provision_requires_organizer(service, make_event):
    event = make_event()
    with pytest.raises(AccessDeniedError):
        service.provision(event.id, "someone-else")


def test_provision_twice_conflicts(service, make_event):
    event = make_event()
    service.provision(event.id, ORGANIZER)
    with pytest.raises(ConflictError):
        service.provision(event.id, ORGANIZER)


def test_get_workspace_includes_team_channels_and_summary(service, workspace):
    detail = service.get_workspace(workspace.id, ORGANIZER)

    assert detail["id"] == workspace.id
    assert len(detail["team_members"]) == 1
    assert len(detail["channels"]) == 3
    assert detail["task_summary"]["total"] == 0


def test_non_member_access_is_denied_and_audited(db_session, service, workspace):
    with pytest.raises(AccessDeniedError):
        service.get_workspace(workspace.id, "stranger")

    denied = db_session.query(AuditLog).filter_by(action="ACCESS_DENIED").one()
    assert denied.user_id == "stranger"
    assert denied.success is False


def test_update_requires_manage_workspace(service, workspace, add_member):
    add_member(workspace.id, "volunteer-1")

    with pytest.raises(AccessDeniedError):
        service.update(workspace.id, "volunteer-1", name="Renamed")

    updated = service.update(workspace.id, ORGANIZER, name="Renamed", settings={"budget_allocated": 1000})
    assert updated.name == "Renamed"
    assert updated.settings["budget_allocated"] == 1000
    # Settings are merged, not replaced
    assert "retention_period_days" in updated.settings


def test_list_for_user_is_self_only(service, workspace):
    assert [w.id for w in service.list_for_user(ORGANIZER, ORGANIZER)] == [workspace.id]
    with pytest.raises(AccessDeniedError):
        service.list_for_user(ORGANIZER, "someone-else")
