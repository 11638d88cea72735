"""
Tests for workspace templates
"""
import pytest

from exceptions import AccessDeniedError, NotFoundError, ValidationError
from models import AuditLog, WorkspaceChannel, WorkspaceTask
from services.audit_logger import AuditLogger
from services.communication_service import CommunicationService
from services.template_service import TemplateService

ORGANIZER = "organizer-1"

CONFERENCE = {
    "tasks": [
        {"title": "Book venue", "description": "Shortlist three venues", "category": "LOGISTICS", "priority": "HIGH"},
        {"title": "Open registration", "category": "REGISTRATION"},
    ],
    "channels": [
        {"name": "general", "type": "GENERAL"},
        {"name": "speakers", "type": "GENERAL", "description": "Speaker coordination"},
    ],
    "task_categories": ["LOGISTICS", "REGISTRATION"],
}


@pytest.fixture
def templates(db_session):
    return TemplateService(db_session, AuditLogger(db_session))


def test_create_rejects_unknown_task_category(templates):
    with pytest.raises(ValidationError):
        templates.create_template(ORGANIZER, "Broken", structure={"tasks": [{"title": "x", "category": "PARTY"}]})


def test_private_templates_are_visible_to_their_creator_only(templates):
    mine = templates.create_template(ORGANIZER, "Mine", is_public=False)
    templates.create_template("someone-else", "Shared", category="conference")

    assert {t.name for t in templates.list_templates(ORGANIZER)} == {"Mine", "Shared"}
    assert [t.name for t in templates.list_templates("someone-else")] == ["Shared"]
    assert templates.list_templates(ORGANIZER, category="CONFERENCE")[0].name == "Shared"
    with pytest.raises(AccessDeniedError):
        templates.get_template(mine.id, "someone-else")


def test_apply_seeds_tasks_and_missing_channels(db_session, templates, workspace):
    template = templates.create_template(ORGANIZER, "Conference", structure=CONFERENCE)

    result = templates.apply_to_workspace(workspace.id, ORGANIZER, template.id)

    assert result["tasks_created"] == 2
    assert result["channels_created"] == 1
    tasks = db_session.query(WorkspaceTask).filter_by(workspace_id=workspace.id).all()
    assert {t.title for t in tasks} == {"Book venue", "Open registration"}
    assert all(t.tags == ["template"] for t in tasks)
    assert db_session.query(WorkspaceChannel).filter_by(workspace_id=workspace.id, name="speakers").count() == 1
    assert template.usage_count == 1
    assert workspace.template_id == template.id


def test_apply_requires_manage_workspace(templates, workspace, add_member):
    add_member(workspace.id, "lead-1", role="TEAM_LEAD")
    template = templates.create_template(ORGANIZER, "Conference", structure=CONFERENCE)

    with pytest.raises(AccessDeniedError):
        templates.apply_to_workspace(workspace.id, "lead-1", template.id)


def test_create_from_workspace_captures_structure(db_session, templates, workspace, add_member):
    add_member(workspace.id, "lead-1", role="TEAM_LEAD")
    CommunicationService(db_session, AuditLogger(db_session)).create_channel(workspace.id, ORGANIZER, "vendors")
    db_session.add(WorkspaceTask(workspace_id=workspace.id, title="Hire caterer", description="Three quotes",
                                 category="LOGISTICS", creator_id=ORGANIZER, assignee_id="lead-1"))
    db_session.commit()

    template = templates.create_from_workspace(workspace.id, ORGANIZER, "Summit blueprint")

    structure = template.structure
    assert structure["roles"] == ["TEAM_LEAD", "WORKSPACE_OWNER"]
    assert [c["name"] for c in structure["channels"]] == ["vendors"]
    assert structure["tasks"] == [{"title": "Hire caterer", "description": "Three quotes",
                                   "category": "LOGISTICS", "priority": "MEDIUM"}]
    assert template.is_public is False


def test_recommendations_prefer_matching_category(templates, make_event):
    event = make_event(name="Spring Conference")
    popular = templates.create_template(ORGANIZER, "Popular meetup", category="MEETUP")
    popular.usage_count = 3
    templates.create_template(ORGANIZER, "Conference kit", category="CONFERENCE")

    ranked = templates.recommendations(event.id, ORGANIZER)

    assert [r["template"].name for r in ranked] == ["Conference kit", "Popular meetup"]
    assert ranked[0]["score"] == 10.0


# Task templates

@pytest.fixture
def task(db_session, workspace):
    task = WorkspaceTask(workspace_id=workspace.id, title="Print badges", description="Order 300 badges",
                         category="REGISTRATION", priority="HIGH", creator_id=ORGANIZER,
                         assignee_id=ORGANIZER, tags=["print", "template"], progress=40)
    db_session.add(task)
    db_session.commit()
    return task


def test_task_template_copies_blueprint_fields(db_session, templates, workspace, task):
    template = templates.create_task_template(task.id, ORGANIZER, "  Badge run  ", "Yearly")

    assert template.workspace_id == workspace.id
    assert template.name == "Badge run"
    assert (template.title, template.task_description) == ("Print badges", "Order 300 badges")
    assert (template.category, template.priority) == ("REGISTRATION", "HIGH")
    assert template.tags == ["print"]
    assert template.source_task_id == task.id
    assert db_session.query(AuditLog).filter_by(action="TASK_TEMPLATE_CREATED",
                                                resource_id=template.id).count() == 1
    assert [t.id for t in templates.list_task_templates(workspace.id, ORGANIZER)] == [template.id]


def test_task_template_requires_a_name(templates, task):
    with pytest.raises(ValidationError):
        templates.create_task_template(task.id, ORGANIZER, "   ")


def test_task_template_requires_task_creation_rights(templates, workspace, task, add_member):
    add_member(workspace.id, "volunteer-1")

    with pytest.raises(AccessDeniedError):
        templates.create_task_template(task.id, "volunteer-1", "Badge run")
    # Members may still read the workspace's templates
    assert templates.list_task_templates(workspace.id, "volunteer-1") == []


def test_task_templates_are_workspace_private(templates, task):
    templates.create_task_template(task.id, ORGANIZER, "Badge run")

    with pytest.raises(AccessDeniedError):
        templates.list_task_templates(task.workspace_id, "stranger")
    with pytest.raises(NotFoundError):
        templates.create_task_template("missing", ORGANIZER, "Nothing")
