"""
Service Interfaces

Abstract base classes for the service layer following Dependency Inversion Principle.
This allows for dependency injection and easier testing/mocking.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, List, Optional


class IAuditLogger(ABC):
    """
    Records security-relevant actions taken inside a workspace.

    Injected into the services that need an audit trail; tests can pass an
    in-memory recorder instead of the database-backed implementation.
    """

    @abstractmethod
    def log(
        self,
        action: str,
        resource: str,
        workspace_id: Optional[str] = None,
        user_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        success: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record one action.

        Args:
            action: Verb such as WORKSPACE_DISSOLVED or MEMBER_INVITED
            resource: Kind of record acted on (workspace, task, member, ...)
            workspace_id: Owning workspace, if any
            user_id: Acting user, None for system actions
            resource_id: Id of the record acted on
            success: False for denied or failed attempts
            details: Free-form context
        """
        pass


class IWorkspaceService(ABC):
    """
    Abstract interface for workspace management.
    """

    @abstractmethod
    def provision(self, event_id: str, user_id: str) -> Any:
        """
        Create the workspace for an event.

        Raises:
            NotFoundError: If the event does not exist
            AccessDeniedError: If the caller is not the organizer
            ConflictError: If the event already has a workspace
        """
        pass

    @abstractmethod
    def get_workspace(self, workspace_id: str, user_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update(self, workspace_id: str, user_id: str, name: Optional[str] = None,
               description: Optional[str] = None, settings: Optional[Dict[str, Any]] = None) -> Any:
        pass


class ILifecycleService(ABC):
    """
    Abstract interface for workspace lifecycle transitions.
    """

    @abstractmethod
    def dissolve(self, workspace_id: str, user_id: str, retention_period_days: Optional[int] = None) -> Any:
        """
        Move a workspace towards dissolution after its event is over.

        Raises:
            LifecycleError: If the event is still running or the transition is not allowed
        """
        pass

    @abstractmethod
    def get_status(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        pass

    @abstractmethod
    def process_automatic_dissolution(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        pass


class ITaskService(ABC):
    """
    Abstract interface for task management.
    """

    @abstractmethod
    def create_task(self, workspace_id: str, user_id: str, data: Any) -> Any:
        pass

    @abstractmethod
    def list_tasks(self, workspace_id: str, user_id: str, **filters: Any) -> List[Any]:
        pass

    @abstractmethod
    def bulk_update_status(self, workspace_id: str, user_id: str, task_ids: List[str], status: str) -> Dict[str, Any]:
        """
        Change the status of several tasks at once.

        All-or-nothing: if any id is not a task of the workspace nothing is
        changed and NotFoundError is raised.
        """
        pass

    @abstractmethod
    def add_dependency(self, task_id: str, user_id: str, depends_on_id: str) -> Any:
        """
        Raises:
            ValidationError: If the dependency points at the task itself or closes a cycle
        """
        pass


class IMarketplaceConfigService(ABC):
    """
    Abstract interface for marketplace configuration.
    """

    @abstractmethod
    def get_config(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    def calculate_commission(self, category: str, amount: float) -> Dict[str, Any]:
        pass

    @abstractmethod
    def validate_config(self) -> Dict[str, Any]:
        pass
