"""
Domain Value Objects

Value objects are immutable types that represent descriptive aspects of the domain.
They have no conceptual identity and are compared by their values, not by ID.

Examples:
- WorkspaceStatus: Lifecycle state of a workspace with its allowed transitions
- TaskStatus: Progress state of a task
"""

from .task_status import TaskStatus
from .workspace_status import WorkspaceStatus

__all__ = ["TaskStatus", "WorkspaceStatus"]
