"""
Task Service

Handles business logic for workspace tasks: CRUD, assignment, progress,
dependencies, comments, history and the bulk operations behind the
client's optimistic mutations.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set
from sqlalchemy.orm import Session
import logging

from constants import Permission
from domain.value_objects import TaskStatus, WorkspaceStatus
from exceptions import AccessDeniedError, ConflictError, LifecycleError, NotFoundError, ValidationError
from models import TaskComment, TaskDependency, TeamMember, Workspace, WorkspaceTask
from repositories import TaskRepository, TeamMemberRepository
from repositories.task_specifications import build_task_filter
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger, ITaskService
from utils.caching import make_signature
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "category", "priority", "due_date", "tags")


def creates_cycle(graph: Dict[str, Set[str]], task_id: str, depends_on_id: str) -> bool:
    """
    Whether adding the edge task_id -> depends_on_id closes a cycle.

    It does exactly when task_id is already reachable from depends_on_id.

    Args:
        graph: Existing edges task_id -> {depends_on_id}
        task_id: Task gaining a dependency
        depends_on_id: Task it would depend on
    """
    stack = [depends_on_id]
    seen = set()
    while stack:
        current = stack.pop()
        if current == task_id:
            return True
        if current in seen:
            continue
        seen.add(current)
        stack.extend(graph.get(current, ()))
    return False


class TaskService(ITaskService):
    """Service for task-related business logic."""

    def __init__(self, db: Session, audit: IAuditLogger):
        """
        Initialize TaskService.

        Args:
            db: Database session
            audit: Audit trail collaborator
        """
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.task_repo = TaskRepository(db)
        self.member_repo = TeamMemberRepository(db)

    # Helpers

    def _get_task(self, task_id: str) -> WorkspaceTask:
        task = self.task_repo.get_by_id(task_id)
        if not task:
            raise NotFoundError("Task", task_id)
        return task

    def _require_writable(self, workspace: Workspace):
        if not WorkspaceStatus.from_string(workspace.status).is_accessible():
            raise LifecycleError(workspace.id, workspace.status,
                                 f"Workspace is {workspace.status}; tasks can no longer be changed")

    def _check_assignee(self, workspace_id: str, assignee_id: Optional[str]):
        if assignee_id and not self.member_repo.get_active_member(workspace_id, assignee_id):
            raise ValidationError("Assignee is not an active member of this workspace",
                                  {"assignee_id": assignee_id})

    def _can_manage(self, member: TeamMember, task: WorkspaceTask) -> bool:
        return self.access.has_permission(member, Permission.MANAGE_TASKS) or task.creator_id == member.user_id

    def _require_manage(self, task: WorkspaceTask, user_id: str) -> TeamMember:
        member = self.access.require_member(task.workspace_id, user_id)
        if not self._can_manage(member, task):
            self.access.require_permission(task.workspace_id, user_id, Permission.MANAGE_TASKS)
        return member

    def _check_dependencies_done(self, tasks: Iterable[WorkspaceTask], completing: Set[str]):
        """
        A task can only complete once everything it depends on is completed
        (or is being completed in the same operation).
        """
        for task in tasks:
            blocking = [
                dep.depends_on_id for dep in self.task_repo.list_dependencies(task.id)
                if dep.depends_on_id not in completing
                and dep.depends_on.status != TaskStatus.COMPLETED.value
            ]
            if blocking:
                raise ValidationError(
                    f"Task '{task.title}' has unfinished dependencies",
                    {"task_id": task.id, "blocking": blocking},
                )

    @staticmethod
    def _apply_status(task: WorkspaceTask, status: TaskStatus, progress: Optional[int] = None,
                      now: Optional[datetime] = None):
        current_progress = task.progress if progress is None else progress
        task.status = status.value
        task.progress = status.implied_progress(current_progress)
        if status == TaskStatus.COMPLETED:
            task.completed_at = task.completed_at or now or datetime.utcnow()
        else:
            task.completed_at = None

    # CRUD

    @log_operation("Create task")
    def create_task(self, workspace_id: str, user_id: str, data: Any) -> WorkspaceTask:
        """
        Create a task.

        Args:
            workspace_id: Workspace UUID
            user_id: Creator
            data: TaskCreate payload

        Raises:
            LifecycleError: If the workspace is not active
            ValidationError: If the assignee is not an active member
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.CREATE_TASKS, Permission.MANAGE_TASKS)
        if workspace.status != WorkspaceStatus.ACTIVE.value:
            raise LifecycleError(workspace_id, workspace.status, "Tasks can only be created in an active workspace")
        self._check_assignee(workspace_id, data.assignee_id)

        with transaction(self.db, "Create task"):
            task = self.task_repo.create(WorkspaceTask(
                workspace_id=workspace_id,
                title=data.title,
                description=data.description,
                category=data.category.value if hasattr(data.category, "value") else data.category,
                priority=data.priority.value if hasattr(data.priority, "value") else data.priority,
                status=TaskStatus.NOT_STARTED.value,
                assignee_id=data.assignee_id,
                creator_id=user_id,
                due_date=data.due_date,
                progress=0,
                tags=list(data.tags or []),
            ))
            self.task_repo.record_activity(task.id, user_id, "created", {"title": task.title})
            self.audit.log("TASK_CREATED", "task", workspace_id=workspace_id,
                           user_id=user_id, resource_id=task.id)
        return task

    def get_task(self, task_id: str, user_id: str) -> WorkspaceTask:
        task = self._get_task(task_id)
        self.access.require_task_access(task, user_id)
        return task

    def list_tasks(self, workspace_id: str, user_id: str, status: Optional[str] = None,
                   assignee_id: Optional[str] = None, category: Optional[str] = None,
                   priority: Optional[str] = None, q: Optional[str] = None) -> List[WorkspaceTask]:
        """
        Tasks of a workspace, newest first, filtered by any combination of
        status, assignee, category and priority. A search text narrows the
        result to tasks whose title or description contains it. A
        task-scoped specialist only sees the tasks they may access.

        Raises:
            ValidationError: If status is not a valid TaskStatus
        """
        self.access.get_workspace(workspace_id)
        member = self.access.require_member(workspace_id, user_id)
        if status:
            try:
                TaskStatus.from_string(status)
            except ValueError as e:
                raise ValidationError(str(e), {"status": status}) from e

        tasks = self.task_repo.list_matching(build_task_filter(workspace_id, status, assignee_id, category, priority))
        if q:
            matches = {t.id for t in self.task_repo.search(workspace_id, q, limit=500)}
            tasks = [t for t in tasks if t.id in matches]
        scope = self.access.task_scope(member)
        if scope is not None:
            tasks = [t for t in tasks if t.id in scope or t.assignee_id == user_id]
        return tasks

    def list_signature(self, workspace_id: str, tasks: List[WorkspaceTask], *filters: Any) -> str:
        """ETag for a task list: changes whenever a listed task or the filters change"""
        latest = max((t.updated_at for t in tasks if t.updated_at), default=None)
        return make_signature(workspace_id, len(tasks), latest, ",".join(t.id for t in tasks), *filters)

    @log_operation("Update task")
    def update_task(self, task_id: str, user_id: str, changes: Dict[str, Any]) -> WorkspaceTask:
        """
        Apply a partial update. Only the task creator or a member with
        MANAGE_TASKS may edit a task.

        Args:
            task_id: Task UUID
            user_id: Caller
            changes: Fields that were sent (title, description, category,
                priority, status, due_date, tags)
        """
        task = self._get_task(task_id)
        workspace = self.access.get_workspace(task.workspace_id)
        self._require_manage(task, user_id)
        self._require_writable(workspace)

        with transaction(self.db, "Update task"):
            changed = {}
            for field in EDITABLE_FIELDS:
                if field in changes:
                    value = changes[field]
                    if value is None and field != "due_date":
                        continue
                    if hasattr(value, "value"):
                        value = value.value
                    if getattr(task, field) != value:
                        setattr(task, field, value)
                        changed[field] = value if field != "due_date" else str(value)

            if changes.get("status") is not None:
                status = TaskStatus(changes["status"])
                if status.value != task.status:
                    if status == TaskStatus.COMPLETED:
                        self._check_dependencies_done([task], set())
                    changed["status"] = {"from": task.status, "to": status.value}
                    self._apply_status(task, status)

            if changed:
                task.updated_at = datetime.utcnow()
                self.task_repo.update(task)
                self.task_repo.record_activity(task.id, user_id, "updated", {"changes": changed})
        return task

    @log_operation("Delete task")
    def delete_task(self, task_id: str, user_id: str) -> Dict[str, Any]:
        task = self._get_task(task_id)
        workspace = self.access.get_workspace(task.workspace_id)
        self._require_manage(task, user_id)
        self._require_writable(workspace)

        workspace_id = task.workspace_id
        with transaction(self.db, "Delete task"):
            self.task_repo.delete(task)
            self.audit.log("TASK_DELETED", "task", workspace_id=workspace_id,
                           user_id=user_id, resource_id=task_id)
        return {"workspace_id": workspace_id, "task_id": task_id, "deleted": True}

    # Assignment and progress

    @log_operation("Assign task")
    def assign(self, task_id: str, user_id: str, assignee_id: Optional[str]) -> WorkspaceTask:
        """
        Assign (or with None, unassign) a task.

        Raises:
            ValidationError: If the assignee is not an active member
        """
        task = self._get_task(task_id)
        workspace = self.access.get_workspace(task.workspace_id)
        self.access.require_permission(task.workspace_id, user_id, Permission.MANAGE_TASKS)
        self._require_writable(workspace)
        self._check_assignee(task.workspace_id, assignee_id)

        with transaction(self.db, "Assign task"):
            previous = task.assignee_id
            task.assignee_id = assignee_id
            task.updated_at = datetime.utcnow()
            self.task_repo.update(task)
            self.task_repo.record_activity(task.id, user_id, "assigned", {"from": previous, "to": assignee_id})
        return task

    @log_operation("Update task progress")
    def update_progress(self, task_id: str, user_id: str, status: str,
                        progress: Optional[int] = None) -> WorkspaceTask:
        """
        Report progress on a task.

        Allowed for the assignee, for members with MANAGE_TASKS and for a
        task-scoped specialist on a task in their scope.
        COMPLETED forces progress to 100 and NOT_STARTED to 0.

        Raises:
            AccessDeniedError: If the caller is neither the assignee nor a task manager
            ValidationError: If completing a task whose dependencies are unfinished
        """
        task = self._get_task(task_id)
        workspace = self.access.get_workspace(task.workspace_id)
        member = self.access.require_task_access(task, user_id)
        scoped = task.id in (self.access.task_scope(member) or ()) and \
            self.access.has_permission(member, Permission.UPDATE_TASK_PROGRESS)
        if task.assignee_id != user_id and not scoped and \
                not self.access.has_permission(member, Permission.MANAGE_TASKS):
            raise AccessDeniedError("Only the assignee or a task manager can update progress",
                                    workspace_id=task.workspace_id)
        self._require_writable(workspace)

        new_status = TaskStatus(status)
        if new_status == TaskStatus.COMPLETED:
            self._check_dependencies_done([task], set())

        with transaction(self.db, "Update task progress"):
            previous = task.status
            self._apply_status(task, new_status, progress)
            task.updated_at = datetime.utcnow()
            self.task_repo.update(task)
            self.task_repo.record_activity(task.id, user_id, "progress", {
                "from": previous, "to": task.status, "progress": task.progress,
            })
        return task

    # Dependencies

    def list_dependencies(self, task_id: str, user_id: str) -> List[TaskDependency]:
        task = self._get_task(task_id)
        self.access.require_task_access(task, user_id)
        return self.task_repo.list_dependencies(task_id)

    @log_operation("Add task dependency")
    def add_dependency(self, task_id: str, user_id: str, depends_on_id: str) -> TaskDependency:
        """
        Make a task depend on another task of the same workspace.

        Raises:
            ValidationError: Self-dependency, cross-workspace dependency or a cycle
            ConflictError: If the dependency already exists
        """
        task = self._get_task(task_id)
        self._require_manage(task, user_id)
        if depends_on_id == task_id:
            raise ValidationError("A task cannot depend on itself")

        other = self.task_repo.get_by_id(depends_on_id)
        if not other:
            raise NotFoundError("Task", depends_on_id, "Dependency task not found")
        if other.workspace_id != task.workspace_id:
            raise ValidationError("Dependencies must be tasks of the same workspace")
        if self.task_repo.get_dependency(task_id, depends_on_id):
            raise ConflictError("TaskDependency", "Dependency already exists")
        if creates_cycle(self.task_repo.dependency_graph(task.workspace_id), task_id, depends_on_id):
            raise ValidationError("Dependency would create a cycle",
                                  {"task_id": task_id, "depends_on_id": depends_on_id})

        with transaction(self.db, "Add task dependency"):
            dependency = self.task_repo.add_dependency(task_id, depends_on_id)
            self.task_repo.record_activity(task_id, user_id, "dependency_added", {"depends_on_id": depends_on_id})
        return dependency

    def remove_dependency(self, task_id: str, user_id: str, depends_on_id: str) -> None:
        task = self._get_task(task_id)
        self._require_manage(task, user_id)
        dependency = self.task_repo.get_dependency(task_id, depends_on_id)
        if not dependency:
            raise NotFoundError("TaskDependency", depends_on_id, "Dependency not found")

        with transaction(self.db, "Remove task dependency"):
            self.db.delete(dependency)
            self.task_repo.record_activity(task_id, user_id, "dependency_removed", {"depends_on_id": depends_on_id})

    # Comments and history

    def list_comments(self, task_id: str, user_id: str) -> List[TaskComment]:
        task = self._get_task(task_id)
        self.access.require_task_access(task, user_id)
        return self.task_repo.list_comments(task_id)

    def add_comment(self, task_id: str, user_id: str, content: str) -> TaskComment:
        task = self._get_task(task_id)
        workspace = self.access.get_workspace(task.workspace_id)
        self.access.require_task_access(task, user_id)
        self._require_writable(workspace)

        with transaction(self.db, "Add comment"):
            comment = self.task_repo.add_comment(task_id, user_id, content)
            self.task_repo.record_activity(task_id, user_id, "commented", {"comment_id": comment.id})
        return comment

    def history(self, task_id: str, user_id: str):
        task = self._get_task(task_id)
        self.access.require_task_access(task, user_id)
        return self.task_repo.list_activity(task_id)

    # Bulk operations

    def _load_all(self, workspace_id: str, task_ids: List[str]) -> List[WorkspaceTask]:
        """
        Load every requested task or fail without touching any of them.

        Raises:
            NotFoundError: If any id is not a task of the workspace
        """
        wanted = list(dict.fromkeys(task_ids))
        tasks = self.task_repo.get_in_workspace(workspace_id, wanted)
        if len(tasks) != len(wanted):
            found = {t.id for t in tasks}
            missing = [task_id for task_id in wanted if task_id not in found]
            raise NotFoundError("Task", ",".join(missing),
                                f"Tasks not found in workspace: {', '.join(missing)}")
        return tasks

    @log_operation("Bulk update task status")
    def bulk_update_status(self, workspace_id: str, user_id: str, task_ids: List[str],
                           status: str) -> Dict[str, Any]:
        """
        Set the same status on several tasks. All-or-nothing.

        Returns:
            Dictionary with updated count and ids
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_TASKS)
        self._require_writable(workspace)

        new_status = TaskStatus(status)
        tasks = self._load_all(workspace_id, task_ids)
        if new_status == TaskStatus.COMPLETED:
            self._check_dependencies_done(tasks, {t.id for t in tasks})

        now = datetime.utcnow()
        with transaction(self.db, "Bulk update task status"):
            for task in tasks:
                if task.status == new_status.value:
                    continue
                previous = task.status
                self._apply_status(task, new_status, now=now)
                task.updated_at = now
                self.task_repo.record_activity(task.id, user_id, "status_changed",
                                               {"from": previous, "to": new_status.value, "bulk": True})
            self.db.flush()
            self.audit.log("TASK_BULK_STATUS", "task", workspace_id=workspace_id, user_id=user_id,
                           details={"task_ids": [t.id for t in tasks], "status": new_status.value})
        return {"updated": len(tasks), "ids": [t.id for t in tasks]}

    @log_operation("Bulk delete tasks")
    def bulk_delete(self, workspace_id: str, user_id: str, task_ids: List[str]) -> Dict[str, Any]:
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_TASKS)
        self._require_writable(workspace)
        tasks = self._load_all(workspace_id, task_ids)

        ids = [t.id for t in tasks]
        with transaction(self.db, "Bulk delete tasks"):
            for task in tasks:
                self.db.delete(task)
            self.db.flush()
            self.audit.log("TASK_BULK_DELETE", "task", workspace_id=workspace_id, user_id=user_id,
                           details={"task_ids": ids})
        return {"updated": len(ids), "ids": ids}
