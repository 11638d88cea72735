"""
Tests for channels, messages, broadcasts and message search
"""
import pytest

from exceptions import AccessDeniedError, ConflictError, ValidationError
from models import WorkspaceChannel
from services.audit_logger import AuditLogger
from services.communication_service import CommunicationService, role_channel_name

ORGANIZER = "organizer-1"


@pytest.fixture
def comms(db_session):
    return CommunicationService(db_session, AuditLogger(db_session))


def channel_named(db_session, workspace, name):
    return db_session.query(WorkspaceChannel).filter_by(workspace_id=workspace.id, name=name).one()


def test_channel_names_are_unique(comms, workspace):
    comms.create_channel(workspace.id, ORGANIZER, "logistics")
    with pytest.raises(ConflictError):
        comms.create_channel(workspace.id, ORGANIZER, "logistics")


def test_private_channels_are_hidden_from_non_members(comms, workspace, add_member):
    add_member(workspace.id, "volunteer-1")
    add_member(workspace.id, "lead-1", role="TEAM_LEAD")
    private = comms.create_channel(workspace.id, ORGANIZER, "budget", is_private=True, members=["lead-1"])

    assert "budget" not in [c.name for c in comms.list_channels(workspace.id, "volunteer-1")]
    assert "budget" in [c.name for c in comms.list_channels(workspace.id, "lead-1")]
    assert private.members == ["lead-1", ORGANIZER]
    with pytest.raises(AccessDeniedError):
        comms.post_message(private.id, "volunteer-1", "hello")


def test_announcements_need_manage_channels(db_session, comms, workspace, add_member):
    add_member(workspace.id, "volunteer-1")
    announcements = channel_named(db_session, workspace, "announcements")
    general = channel_named(db_session, workspace, "general")

    with pytest.raises(AccessDeniedError):
        comms.post_message(announcements.id, "volunteer-1", "Free pizza")
    comms.post_message(general.id, "volunteer-1", "Free pizza")

    assert [m.content for m in comms.list_messages(general.id, ORGANIZER)] == ["Free pizza"]


def test_broadcast_to_everyone_uses_announcement_channel(db_session, comms, workspace):
    messages = comms.broadcast(workspace.id, ORGANIZER, "Doors open at 9", priority="URGENT")

    assert len(messages) == 1
    assert messages[0].channel_id == channel_named(db_session, workspace, "announcements").id
    assert messages[0].is_priority is True
    assert messages[0].message_type == "BROADCAST"


def test_broadcast_to_roles_creates_private_role_channels(db_session, comms, workspace, add_member):
    add_member(workspace.id, "lead-1", role="TEAM_LEAD")

    messages = comms.broadcast(workspace.id, ORGANIZER, "Leads meeting", target_roles=["TEAM_LEAD"])

    channel = channel_named(db_session, workspace, role_channel_name("TEAM_LEAD"))
    assert channel.name == "role-team-lead"
    assert channel.is_private is True
    assert channel.members == ["lead-1"]
    assert messages[0].is_priority is False


def test_broadcast_rejects_unknown_priority(comms, workspace):
    with pytest.raises(ValidationError):
        comms.broadcast(workspace.id, ORGANIZER, "Hi", priority="LOW")


def test_search_only_covers_visible_channels(db_session, comms, workspace, add_member):
    add_member(workspace.id, "volunteer-1")
    secret = comms.create_channel(workspace.id, ORGANIZER, "secret", is_private=True)
    comms.post_message(secret.id, ORGANIZER, "Venue contract signed")
    comms.post_message(channel_named(db_session, workspace, "general").id, ORGANIZER, "venue tour at noon")

    assert len(comms.search(workspace.id, ORGANIZER, "venue")["messages"]) == 2
    assert [m.content for m in comms.search(workspace.id, "volunteer-1", "VENUE")["messages"]] == ["venue tour at noon"]

    with pytest.raises(ValidationError):
        comms.search(workspace.id, ORGANIZER, "   ")
