"""
Task-specific Specifications

Concrete specifications for querying workspace tasks.
"""

from typing import Iterable, Optional
from models import WorkspaceTask
from domain.value_objects import TaskStatus
from .specifications import AlwaysSpecification, Specification


class TasksByWorkspaceSpec(Specification[WorkspaceTask]):
    """Tasks belonging to one workspace."""

    def __init__(self, workspace_id: str):
        self.workspace_id = workspace_id

    def is_satisfied_by(self, task: WorkspaceTask) -> bool:
        return task.workspace_id == self.workspace_id

    def to_sql_filter(self):
        return WorkspaceTask.workspace_id == self.workspace_id


class TasksByStatusSpec(Specification[WorkspaceTask]):
    """Tasks in a specific status."""

    def __init__(self, status: str):
        self.status = TaskStatus(status).value

    def is_satisfied_by(self, task: WorkspaceTask) -> bool:
        return task.status == self.status

    def to_sql_filter(self):
        return WorkspaceTask.status == self.status


class TasksByAssigneeSpec(Specification[WorkspaceTask]):
    """Tasks assigned to a user."""

    def __init__(self, assignee_id: str):
        self.assignee_id = assignee_id

    def is_satisfied_by(self, task: WorkspaceTask) -> bool:
        return task.assignee_id == self.assignee_id

    def to_sql_filter(self):
        return WorkspaceTask.assignee_id == self.assignee_id


class TasksByCategorySpec(Specification[WorkspaceTask]):
    def __init__(self, category: str):
        self.category = category

    def is_satisfied_by(self, task: WorkspaceTask) -> bool:
        return task.category == self.category

    def to_sql_filter(self):
        return WorkspaceTask.category == self.category


class TasksByPrioritySpec(Specification[WorkspaceTask]):
    def __init__(self, priority: str):
        self.priority = priority

    def is_satisfied_by(self, task: WorkspaceTask) -> bool:
        return task.priority == self.priority

    def to_sql_filter(self):
        return WorkspaceTask.priority == self.priority


class TasksByIdsSpec(Specification[WorkspaceTask]):
    def __init__(self, task_ids: Iterable[str]):
        self.task_ids = set(task_ids)

    def is_satisfied_by(self, task: WorkspaceTask) -> bool:
        return task.id in self.task_ids

    def to_sql_filter(self):
        return WorkspaceTask.id.in_(self.task_ids)


def build_task_filter(
    workspace_id: str,
    status: Optional[str] = None,
    assignee_id: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
) -> Specification[WorkspaceTask]:
    """
    Combine the optional list filters into one specification.

    Args:
        workspace_id: Workspace to scope the search to (required)
        status, assignee_id, category, priority: Optional equality filters

    Returns:
        Specification combining every filter that was given
    """
    spec = AlwaysSpecification() & TasksByWorkspaceSpec(workspace_id)
    if status:
        spec = spec & TasksByStatusSpec(status)
    if assignee_id:
        spec = spec & TasksByAssigneeSpec(assignee_id)
    if category:
        spec = spec & TasksByCategorySpec(category)
    if priority:
        spec = spec & TasksByPrioritySpec(priority)
    return spec
