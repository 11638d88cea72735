"""
Task repository for task-specific data access operations.

Covers tasks and the rows hanging off them: dependencies, comments and the
activity history.
"""

from typing import Dict, List, Optional, Set
from sqlalchemy.orm import Session
from sqlalchemy import func

from models import WorkspaceTask, TaskDependency, TaskComment, TaskActivity
from domain.value_objects import TaskStatus
from .base_repository import BaseRepository
from .specifications import Specification
from .task_specifications import TasksByIdsSpec, TasksByWorkspaceSpec


class TaskRepository(BaseRepository[WorkspaceTask]):
    """Repository for WorkspaceTask model operations."""

    def __init__(self, db: Session):
        super().__init__(db, WorkspaceTask)

    def list_matching(self, spec: Specification[WorkspaceTask]) -> List[WorkspaceTask]:
        """Tasks matching a specification, newest first."""
        return self.find(spec, order_by=self.model.created_at.desc())

    def get_in_workspace(self, workspace_id: str, task_ids: List[str]) -> List[WorkspaceTask]:
        """
        Load the given tasks, restricted to one workspace.

        Ids that do not exist or belong to another workspace are simply absent
        from the result; callers compare lengths to detect them.
        """
        if not task_ids:
            return []
        return self.find(TasksByWorkspaceSpec(workspace_id) & TasksByIdsSpec(task_ids))

    def count_by_status(self, workspace_id: Optional[str] = None) -> Dict[str, int]:
        query = self.db.query(self.model.status, func.count(self.model.id))
        if workspace_id:
            query = query.filter(self.model.workspace_id == workspace_id)
        rows = query.group_by(self.model.status).all()
        counts = {status.value: 0 for status in TaskStatus}
        counts.update({status: count for status, count in rows})
        return counts

    def list_pending_for_assignee(self, workspace_id: str, assignee_id: str) -> List[WorkspaceTask]:
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.assignee_id == assignee_id,
            self.model.status != TaskStatus.COMPLETED.value,
        ).all()

    def search(self, workspace_id: str, text: str, limit: int = 50) -> List[WorkspaceTask]:
        like = f"%{text.lower()}%"
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            func.lower(self.model.title).like(like) | func.lower(self.model.description).like(like),
        ).order_by(self.model.updated_at.desc()).limit(limit).all()

    def max_updated_at(self, workspace_id: str):
        return self.db.query(func.max(self.model.updated_at)).filter(
            self.model.workspace_id == workspace_id
        ).scalar()

    # Dependencies

    def list_dependencies(self, task_id: str) -> List[TaskDependency]:
        return self.db.query(TaskDependency).filter(
            TaskDependency.task_id == task_id
        ).order_by(TaskDependency.created_at).all()

    def get_dependency(self, task_id: str, depends_on_id: str) -> Optional[TaskDependency]:
        return self.db.query(TaskDependency).filter(
            TaskDependency.task_id == task_id,
            TaskDependency.depends_on_id == depends_on_id,
        ).first()

    def dependency_graph(self, workspace_id: str) -> Dict[str, Set[str]]:
        """
        Edges task_id -> {depends_on_id} for every task in a workspace.

        Returns:
            Adjacency map used for cycle detection
        """
        rows = self.db.query(TaskDependency.task_id, TaskDependency.depends_on_id).join(
            WorkspaceTask, WorkspaceTask.id == TaskDependency.task_id
        ).filter(WorkspaceTask.workspace_id == workspace_id).all()
        graph: Dict[str, Set[str]] = {}
        for task_id, depends_on_id in rows:
            graph.setdefault(task_id, set()).add(depends_on_id)
        return graph

    def add_dependency(self, task_id: str, depends_on_id: str) -> TaskDependency:
        dependency = TaskDependency(task_id=task_id, depends_on_id=depends_on_id)
        self.db.add(dependency)
        self.db.flush()
        return dependency

    # Comments and history

    def list_comments(self, task_id: str) -> List[TaskComment]:
        return self.db.query(TaskComment).filter(
            TaskComment.task_id == task_id
        ).order_by(TaskComment.created_at).all()

    def add_comment(self, task_id: str, author_id: str, content: str) -> TaskComment:
        comment = TaskComment(task_id=task_id, author_id=author_id, content=content)
        self.db.add(comment)
        self.db.flush()
        return comment

    def list_activity(self, task_id: str) -> List[TaskActivity]:
        return self.db.query(TaskActivity).filter(
            TaskActivity.task_id == task_id
        ).order_by(TaskActivity.created_at).all()

    def recent_activity(self, workspace_id: str, limit: int = 10) -> List[TaskActivity]:
        return self.db.query(TaskActivity).join(
            WorkspaceTask, WorkspaceTask.id == TaskActivity.task_id
        ).filter(
            WorkspaceTask.workspace_id == workspace_id
        ).order_by(TaskActivity.created_at.desc()).limit(limit).all()

    def record_activity(self, task_id: str, actor_id: str, action: str, details: Optional[dict] = None) -> TaskActivity:
        activity = TaskActivity(task_id=task_id, actor_id=actor_id, action=action, details=details or {})
        self.db.add(activity)
        self.db.flush()
        return activity
