"""
Tests for hiring marketplace specialists into a workspace team
"""
import pytest

from exceptions import AccessDeniedError, ConflictError, LifecycleError, ValidationError
from models import AuditLog, SpecialistIntegration, WorkspaceChannel, WorkspaceTask
from services.audit_logger import AuditLogger
from services.marketplace_integration_service import MarketplaceIntegrationService, vendor_channel_name
from services.task_service import TaskService
from services.team_service import TeamService

ORGANIZER = "organizer-1"
VENDOR = "vendor-7"


@pytest.fixture
def marketplace(db_session):
    return MarketplaceIntegrationService(db_session, AuditLogger(db_session))


@pytest.fixture
def tasks(db_session):
    return TaskService(db_session, AuditLogger(db_session))


@pytest.fixture
def add_task(db_session, workspace):
    def _add(title, category="TECHNICAL", assignee_id=None, status="NOT_STARTED"):
        task = WorkspaceTask(workspace_id=workspace.id, title=title, description=f"{title} details",
                             category=category, creator_id=ORGANIZER, assignee_id=assignee_id, status=status)
        db_session.add(task)
        db_session.commit()
        return task
    return _add


def service(id, category, **extra):
    return {"id": id, "title": f"{category.title()} service", "category": category, **extra}


# Team gaps and recommendations

def test_gaps_list_missing_roles_and_understaffed_areas(marketplace, workspace, add_member, add_task):
    add_member(workspace.id, "coordinator-1", role="EVENT_COORDINATOR")
    for n in range(6):
        add_task(f"Stage cable {n}")

    gaps = marketplace.analyze_team_gaps(workspace.id, ORGANIZER)

    assert gaps["team_size"] == 2
    assert gaps["missing_roles"] == ["MARKETING_LEAD", "VOLUNTEER_MANAGER"]
    assert gaps["understaffed_areas"] == ["TECHNICAL"]
    assert gaps["task_counts"] == {"TECHNICAL": 6}


def test_large_teams_also_need_a_technical_specialist(marketplace, workspace, add_member):
    for n in range(5):
        add_member(workspace.id, f"volunteer-{n}")

    assert "TECHNICAL_SPECIALIST" in marketplace.analyze_team_gaps(workspace.id, ORGANIZER)["missing_roles"]


def test_recommendations_are_scored_and_filtered(marketplace, workspace, add_member, add_task):
    add_member(workspace.id, "coordinator-1", role="EVENT_COORDINATOR")
    add_member(workspace.id, "volunteers-1", role="VOLUNTEER_MANAGER")
    for n in range(6):
        add_task(f"Stage cable {n}")
    candidates = [
        service("mkt", "MARKETING", verified=True, rating=4.8, completion_rate=97),
        service("tech", "TECHNICAL_SUPPORT", rating=4.0),
        service("coord", "EVENT_COORDINATION", verified=True),
        service("food", "CATERING", verified=True, rating=5.0),
    ]

    ranked = marketplace.recommend_services(workspace.id, ORGANIZER, candidates)

    assert [(r["service"]["id"], r["score"]) for r in ranked] == [("mkt", 60), ("tech", 20), ("coord", 15)]
    assert ranked[0]["suggested_role"] == "MARKETING_LEAD"
    assert ranked[0]["reasons"][0] == "Fills missing MARKETING_LEAD role"


def test_preferred_categories_replace_the_team_categories(marketplace, workspace):
    candidates = [service("food", "CATERING"), service("mkt", "MARKETING")]

    ranked = marketplace.recommend_services(workspace.id, ORGANIZER, candidates,
                                            preferred_categories=["CATERING"], limit=5)

    assert [r["service"]["id"] for r in ranked] == ["food"]
    assert ranked[0]["suggested_role"] == "GENERAL_VOLUNTEER"


def test_recommendations_require_membership(marketplace, workspace):
    with pytest.raises(AccessDeniedError):
        marketplace.recommend_services(workspace.id, "stranger", [])


# Integration

def test_limited_specialist_gets_restricted_permissions(db_session, marketplace, workspace):
    specialist = marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Sound & Light Co",
                                                  "AUDIO_VISUAL", booking_reference="bk-12")

    member = specialist.member
    assert member.role == "TECHNICAL_SPECIALIST"
    assert member.effective_permissions == ["VIEW_TASKS", "UPDATE_TASK_PROGRESS"]
    assert specialist.access_level == "LIMITED"
    assert specialist.task_scope == []
    assert db_session.query(AuditLog).filter_by(action="SPECIALIST_INTEGRATED", resource_id=VENDOR).count() == 1


def test_full_access_uses_the_role_defaults(marketplace, workspace):
    specialist = marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Buzz Agency", "MARKETING",
                                                  access_level="FULL", role="TEAM_LEAD")

    assert specialist.member.role == "TEAM_LEAD"
    assert specialist.member.permissions is None
    assert "INVITE_MEMBERS" in specialist.member.effective_permissions


def test_task_specific_scope_defaults_to_open_tasks_of_the_category(marketplace, workspace, add_task):
    open_task = add_task("Rig projector")
    add_task("Test microphones", assignee_id=ORGANIZER)
    add_task("Patch network", status="COMPLETED")
    add_task("Print flyers", category="MARKETING")

    specialist = marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Sound & Light Co",
                                                  "TECHNICAL_SUPPORT", access_level="TASK_SPECIFIC")

    assert specialist.task_scope == [open_task.id]


def test_explicit_scope_must_stay_inside_the_workspace(marketplace, workspace):
    with pytest.raises(ValidationError):
        marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Sound & Light Co",
                                         "TECHNICAL_SUPPORT", access_level="TASK_SPECIFIC",
                                         task_ids=["elsewhere"])


def test_integration_needs_team_management(marketplace, workspace, add_member):
    add_member(workspace.id, "lead-1", role="TEAM_LEAD")

    with pytest.raises(AccessDeniedError):
        marketplace.integrate_specialist(workspace.id, "lead-1", VENDOR, "Buzz Agency", "MARKETING")


def test_existing_member_cannot_be_integrated_again(marketplace, workspace, add_member):
    add_member(workspace.id, VENDOR)

    with pytest.raises(ConflictError):
        marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Buzz Agency", "MARKETING")


def test_integration_requires_an_active_workspace(db_session, marketplace, workspace):
    workspace.status = "WINDING_DOWN"
    db_session.commit()

    with pytest.raises(LifecycleError):
        marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Buzz Agency", "MARKETING")


def test_returning_specialist_keeps_one_integration_row(db_session, marketplace, workspace):
    first = marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Buzz Agency", "MARKETING")
    first.member.status = "INACTIVE"
    db_session.commit()

    again = marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Buzz Agency Ltd", "MARKETING",
                                             access_level="FULL")

    assert again.id == first.id
    assert again.business_name == "Buzz Agency Ltd"
    assert db_session.query(SpecialistIntegration).count() == 1


def test_reinvited_specialist_loses_the_task_scope(db_session, marketplace, workspace, add_task):
    add_task("Rig projector")
    specialist = marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Sound & Light Co",
                                                  "TECHNICAL_SUPPORT", access_level="TASK_SPECIFIC")
    specialist.member.status = "INACTIVE"
    db_session.commit()

    member = TeamService(db_session, AuditLogger(db_session)).invite(workspace.id, ORGANIZER, VENDOR,
                                                                     "GENERAL_VOLUNTEER")

    assert member.specialist is None
    assert db_session.query(SpecialistIntegration).count() == 0


# Task scope

@pytest.fixture
def scoped(marketplace, workspace, add_task):
    """A TASK_SPECIFIC specialist scoped to one technical task"""
    in_scope = add_task("Rig projector")
    out_of_scope = add_task("Print flyers", category="MARKETING")
    marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Sound & Light Co",
                                     "TECHNICAL_SUPPORT", access_level="TASK_SPECIFIC")
    return in_scope, out_of_scope


def test_scoped_specialist_sees_only_scoped_tasks(tasks, workspace, scoped):
    in_scope, out_of_scope = scoped

    assert [t.id for t in tasks.list_tasks(workspace.id, VENDOR)] == [in_scope.id]
    assert tasks.get_task(in_scope.id, VENDOR).id == in_scope.id
    with pytest.raises(AccessDeniedError):
        tasks.get_task(out_of_scope.id, VENDOR)
    with pytest.raises(AccessDeniedError):
        tasks.add_comment(out_of_scope.id, VENDOR, "Can I help?")
    # Other members are unaffected
    assert len(tasks.list_tasks(workspace.id, ORGANIZER)) == 2


def test_scoped_specialist_reports_progress_on_scoped_task(tasks, scoped):
    in_scope, out_of_scope = scoped

    assert tasks.update_progress(in_scope.id, VENDOR, "IN_PROGRESS", 30).progress == 30
    with pytest.raises(AccessDeniedError):
        tasks.update_progress(out_of_scope.id, VENDOR, "IN_PROGRESS", 10)


def test_scope_update_replaces_the_task_list(marketplace, tasks, workspace, scoped):
    in_scope, out_of_scope = scoped

    specialist = marketplace.update_task_scope(workspace.id, ORGANIZER, VENDOR, [out_of_scope.id])

    assert specialist.task_scope == [out_of_scope.id]
    assert [t.id for t in tasks.list_tasks(workspace.id, VENDOR)] == [out_of_scope.id]


def test_task_assigned_to_a_specialist_stays_visible(db_session, tasks, workspace, scoped):
    _, out_of_scope = scoped
    out_of_scope.assignee_id = VENDOR
    db_session.commit()

    assert tasks.get_task(out_of_scope.id, VENDOR).id == out_of_scope.id


# Communication and overview

def test_vendor_channels_are_private_and_created_once(db_session, marketplace, workspace):
    marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Sound & Light Co", "AUDIO_VISUAL")

    created = marketplace.setup_communication(workspace.id, ORGANIZER)

    assert [c.name for c in created] == ["vendor-sound-light-co"]
    assert created[0].is_private is True
    assert created[0].members == [ORGANIZER, VENDOR]
    assert marketplace.setup_communication(workspace.id, ORGANIZER) == []
    assert db_session.query(WorkspaceChannel).filter_by(name="vendor-sound-light-co").count() == 1


def test_vendor_channel_name_falls_back_for_symbols():
    assert vendor_channel_name("***") == "vendor-specialist"


def test_team_access_separates_volunteers_and_professionals(marketplace, workspace, add_member):
    add_member(workspace.id, "volunteer-1")
    marketplace.integrate_specialist(workspace.id, ORGANIZER, VENDOR, "Buzz Agency", "MARKETING",
                                     booking_reference="bk-9")

    overview = marketplace.team_access_overview(workspace.id, "volunteer-1")

    assert {v["user_id"] for v in overview["volunteers"]} == {ORGANIZER, "volunteer-1"}
    assert all(v["access_level"] == "STANDARD" for v in overview["volunteers"])
    [professional] = overview["professionals"]
    assert professional["user_id"] == VENDOR
    assert professional["access_level"] == "PROFESSIONAL"
    assert professional["booking_reference"] == "bk-9"
    assert professional["specialist_access"] == "LIMITED"
