"""
Tests for task CRUD, dependencies, progress and bulk operations
"""
import pytest

from constants import TaskCategory
from exceptions import AccessDeniedError, NotFoundError, ValidationError
from models import AuditLog, WorkspaceTask
from schemas import TaskCreate
from services.audit_logger import AuditLogger
from services.task_service import TaskService

ORGANIZER = "organizer-1"


@pytest.fixture
def tasks(db_session):
    return TaskService(db_session, AuditLogger(db_session))


@pytest.fixture
def new_task(tasks, workspace):
    def _create(title="Book venue", **overrides):
        data = TaskCreate(title=title, description=f"{title} description",
                          category=overrides.pop("category", TaskCategory.LOGISTICS), **overrides)
        return tasks.create_task(workspace.id, ORGANIZER, data)
    return _create


def test_create_task_records_activity_and_audit(db_session, tasks, new_task):
    task = new_task()

    assert task.status == "NOT_STARTED"
    assert task.creator_id == ORGANIZER
    assert [a.action for a in tasks.history(task.id, ORGANIZER)] == ["created"]
    assert db_session.query(AuditLog).filter_by(action="TASK_CREATED", resource_id=task.id).count() == 1


def test_volunteer_cannot_create_tasks(tasks, workspace, add_member):
    add_member(workspace.id, "volunteer-1")
    data = TaskCreate(title="Anything", description="x", category=TaskCategory.SETUP)

    with pytest.raises(AccessDeniedError):
        tasks.create_task(workspace.id, "volunteer-1", data)


def test_assignee_must_be_active_member(new_task):
    with pytest.raises(ValidationError):
        new_task(assignee_id="not-a-member")


def test_update_applies_only_sent_fields(tasks, new_task):
    task = new_task()

    updated = tasks.update_task(task.id, ORGANIZER, {"priority": "HIGH"})

    assert updated.priority == "HIGH"
    assert updated.title == "Book venue"


def test_dependency_rules(tasks, new_task):
    setup = new_task("Set up stage")
    rehearse = new_task("Rehearse")
    show = new_task("Run show")

    tasks.add_dependency(rehearse.id, ORGANIZER, setup.id)
    tasks.add_dependency(show.id, ORGANIZER, rehearse.id)

    with pytest.raises(ValidationError):
        tasks.add_dependency(setup.id, ORGANIZER, setup.id)
    # setup -> show would close the loop show -> rehearse -> setup
    with pytest.raises(ValidationError):
        tasks.add_dependency(setup.id, ORGANIZER, show.id)

    assert [d.depends_on_id for d in tasks.list_dependencies(show.id, ORGANIZER)] == [rehearse.id]


def test_cannot_complete_before_dependencies(tasks, new_task):
    setup = new_task("Set up stage")
    show = new_task("Run show")
    tasks.add_dependency(show.id, ORGANIZER, setup.id)

    with pytest.raises(ValidationError):
        tasks.update_progress(show.id, ORGANIZER, "COMPLETED")

    tasks.update_progress(setup.id, ORGANIZER, "COMPLETED")
    done = tasks.update_progress(show.id, ORGANIZER, "COMPLETED")
    assert done.progress == 100
    assert done.completed_at is not None


def test_remove_dependency(tasks, new_task):
    a = new_task("A")
    b = new_task("B")
    tasks.add_dependency(b.id, ORGANIZER, a.id)

    tasks.remove_dependency(b.id, ORGANIZER, a.id)

    assert tasks.list_dependencies(b.id, ORGANIZER) == []
    with pytest.raises(NotFoundError):
        tasks.remove_dependency(b.id, ORGANIZER, a.id)


def test_progress_by_assignee_without_manage_tasks(tasks, workspace, add_member, new_task):
    add_member(workspace.id, "volunteer-1")
    add_member(workspace.id, "volunteer-2")
    task = new_task(assignee_id="volunteer-1")

    updated = tasks.update_progress(task.id, "volunteer-1", "IN_PROGRESS", 40)
    assert updated.progress == 40

    with pytest.raises(AccessDeniedError):
        tasks.update_progress(task.id, "volunteer-2", "IN_PROGRESS", 60)


def test_bulk_status_updates_every_task(db_session, tasks, workspace, new_task):
    ids = [new_task(f"Task {i}").id for i in range(3)]

    result = tasks.bulk_update_status(workspace.id, ORGANIZER, ids, "IN_PROGRESS")

    assert result["updated"] == 3
    statuses = {t.status for t in db_session.query(WorkspaceTask).filter(WorkspaceTask.id.in_(ids))}
    assert statuses == {"IN_PROGRESS"}


def test_bulk_status_is_all_or_nothing(db_session, tasks, workspace, new_task):
    task = new_task()

    with pytest.raises(NotFoundError):
        tasks.bulk_update_status(workspace.id, ORGANIZER, [task.id, "missing"], "REVIEW")

    db_session.refresh(task)
    assert task.status == "NOT_STARTED"


def test_bulk_complete_allows_dependencies_in_same_batch(tasks, workspace, new_task):
    setup = new_task("Set up stage")
    show = new_task("Run show")
    tasks.add_dependency(show.id, ORGANIZER, setup.id)

    result = tasks.bulk_update_status(workspace.id, ORGANIZER, [setup.id, show.id], "COMPLETED")
    assert result["updated"] == 2


def test_bulk_delete(db_session, tasks, workspace, new_task):
    ids = [new_task("One").id, new_task("Two").id]

    result = tasks.bulk_delete(workspace.id, ORGANIZER, ids)

    assert sorted(result["ids"]) == sorted(ids)
    assert db_session.query(WorkspaceTask).count() == 0


def test_list_filters_and_signature(tasks, workspace, new_task):
    new_task("Print badges", category=TaskCategory.REGISTRATION)
    new_task("Book venue")

    found = tasks.list_tasks(workspace.id, ORGANIZER, category="REGISTRATION")
    assert [t.title for t in found] == ["Print badges"]

    everything = tasks.list_tasks(workspace.id, ORGANIZER)
    sig = tasks.list_signature(workspace.id, everything)
    assert sig == tasks.list_signature(workspace.id, tasks.list_tasks(workspace.id, ORGANIZER))
    assert sig != tasks.list_signature(workspace.id, found, "REGISTRATION")


def test_comments(tasks, new_task):
    task = new_task()
    tasks.add_comment(task.id, ORGANIZER, "Venue confirmed")
    assert [c.content for c in tasks.list_comments(task.id, ORGANIZER)] == ["Venue confirmed"]


def test_task_filter_matches_rows_it_selects(db_session, workspace, new_task):
    from repositories.task_specifications import build_task_filter

    new_task("Print badges", category=TaskCategory.REGISTRATION, priority="HIGH")
    new_task("Book venue", priority="HIGH")
    spec = build_task_filter(workspace.id, category="REGISTRATION", priority="HIGH")

    selected = db_session.query(WorkspaceTask).filter(spec.to_sql_filter()).all()
    checked = [t for t in db_session.query(WorkspaceTask).all() if spec.is_satisfied_by(t)]

    assert [t.title for t in selected] == [t.title for t in checked] == ["Print badges"]
