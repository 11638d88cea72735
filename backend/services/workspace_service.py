"""
Workspace Service

Provisioning, retrieval and settings of event workspaces, plus the
analytics, dashboard and health views built on top of them.

Lifecycle transitions (wind-down, dissolution) live in LifecycleService.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from config.app_config import app_config
from constants import MemberStatus, Permission, WorkspaceDefaults, WorkspaceRole
from domain.value_objects import WorkspaceStatus
from exceptions import AccessDeniedError, ConflictError, LifecycleError, NotFoundError
from models import Event, TeamMember, Workspace, WorkspaceChannel
from repositories import (
    ChannelRepository,
    EventRepository,
    TaskRepository,
    TeamMemberRepository,
    WorkspaceRepository,
)
from services.access_control import WorkspaceAccess
from services.analytics_service import AnalyticsService
from services.interfaces import IAuditLogger, IWorkspaceService
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)


class WorkspaceService(IWorkspaceService):
    """Service for workspace-related business logic."""

    def __init__(self, db: Session, audit: IAuditLogger):
        """
        Initialize WorkspaceService.

        Args:
            db: Database session
            audit: Audit trail collaborator
        """
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.event_repo = EventRepository(db)
        self.workspace_repo = WorkspaceRepository(db)
        self.member_repo = TeamMemberRepository(db)
        self.channel_repo = ChannelRepository(db)
        self.task_repo = TaskRepository(db)
        self.analytics_service = AnalyticsService(db)

    # Provisioning

    @log_operation("Provision workspace")
    def provision(self, event_id: str, user_id: str) -> Workspace:
        """
        Create the workspace for an event on behalf of its organizer.

        Raises:
            NotFoundError: If the event does not exist
            AccessDeniedError: If the caller is not the event organizer
            ConflictError: If the event already has a workspace
        """
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event", event_id)
        if event.organizer_id != user_id:
            raise AccessDeniedError("Only the event organizer can provision its workspace")
        if self.workspace_repo.get_by_event_id(event_id):
            raise ConflictError("Workspace", "Workspace already exists for this event")

        with transaction(self.db, "Provision workspace"):
            workspace = self.create_for_event(event, actor_id=user_id)
        return workspace

    def create_for_event(self, event: Event, actor_id: Optional[str] = None) -> Workspace:
        """
        Build the workspace, owner membership and default channels.

        Runs inside the caller's transaction; does not commit.

        Args:
            event: Event the workspace belongs to
            actor_id: User triggering provisioning, None for automatic provisioning
        """
        settings = WorkspaceDefaults.settings()
        settings['retention_period_days'] = app_config.default_retention_days

        workspace = self.workspace_repo.create(Workspace(
            event_id=event.id,
            name=f"{event.name} Workspace",
            description=f"Collaborative workspace for {event.name}",
            status=WorkspaceStatus.PROVISIONING.value,
            settings=settings,
        ))

        self.member_repo.create(TeamMember(
            workspace_id=workspace.id,
            user_id=event.organizer_id,
            role=WorkspaceRole.WORKSPACE_OWNER.value,
            permissions=[p.value for p in Permission],
            status=MemberStatus.ACTIVE.value,
            invited_by=actor_id or event.organizer_id,
        ))

        self.channel_repo.create_all(
            WorkspaceChannel(
                workspace_id=workspace.id,
                name=channel['name'],
                type=channel['type'],
                description=channel['description'],
                is_private=False,
            )
            for channel in WorkspaceDefaults.DEFAULT_CHANNELS
        )

        workspace.status = WorkspaceStatus.ACTIVE.value
        self.workspace_repo.update(workspace)

        self.audit.log(
            "WORKSPACE_PROVISIONED", "workspace",
            workspace_id=workspace.id, user_id=actor_id, resource_id=workspace.id,
            details={"event_id": event.id, "automatic": actor_id is None},
        )
        logger.info(f"Provisioned workspace {workspace.id} for event {event.id}")
        return workspace

    # Retrieval

    def get_workspace(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Workspace detail for a member: team, channels and task summary.

        Raises:
            NotFoundError: If the workspace does not exist
            AccessDeniedError: If the caller is not an active member
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return self.describe(workspace, now)

    def describe(self, workspace: Workspace, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Serializable detail view of a workspace (no access checks)"""
        return {
            "id": workspace.id,
            "event_id": workspace.event_id,
            "name": workspace.name,
            "description": workspace.description,
            "status": workspace.status,
            "settings": workspace.settings or {},
            "template_id": workspace.template_id,
            "dissolved_at": workspace.dissolved_at,
            "created_at": workspace.created_at,
            "updated_at": workspace.updated_at,
            "event": workspace.event,
            "team_members": self.member_repo.list_members(workspace.id, status=MemberStatus.ACTIVE.value),
            "channels": self.channel_repo.list_for_workspace(workspace.id),
            "task_summary": self.analytics_service.task_summary(workspace.id, now),
        }

    def get_by_event(self, event_id: str, user_id: str) -> Dict[str, Any]:
        workspace = self.workspace_repo.get_by_event_id(event_id)
        if not workspace:
            raise NotFoundError("Workspace", message="Workspace not found for this event")
        return self.get_workspace(workspace.id, user_id)

    def list_for_user(self, user_id: str, caller_id: str) -> List[Workspace]:
        """
        Workspaces where the user is an active member.

        Raises:
            AccessDeniedError: If a caller asks for another user's workspaces
        """
        if user_id != caller_id:
            raise AccessDeniedError("Access denied: cannot list another user's workspaces")
        return self.workspace_repo.list_for_user(user_id)

    # Updates

    @log_operation("Update workspace")
    def update(self, workspace_id: str, user_id: str, name: Optional[str] = None,
               description: Optional[str] = None, settings: Optional[Dict[str, Any]] = None) -> Workspace:
        """
        Update name, description and settings (merged into the current settings).

        Raises:
            LifecycleError: If the workspace is dissolved
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)
        if workspace.status == WorkspaceStatus.DISSOLVED.value:
            raise LifecycleError(workspace_id, workspace.status, "Cannot update a dissolved workspace")

        with transaction(self.db, "Update workspace"):
            changed = []
            if name is not None:
                workspace.name = name
                changed.append("name")
            if description is not None:
                workspace.description = description
                changed.append("description")
            if settings is not None:
                merged = dict(workspace.settings or {})
                merged.update(settings)
                workspace.settings = merged
                changed.append("settings")
            self.workspace_repo.update(workspace)
            self.audit.log(
                "WORKSPACE_UPDATED", "workspace",
                workspace_id=workspace_id, user_id=user_id, resource_id=workspace_id,
                details={"fields": changed},
            )
        return workspace

    # Analytics

    def analytics(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.VIEW_ANALYTICS)
        return self.analytics_service.workspace_analytics(workspace, now)

    def health(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return self.analytics_service.workspace_health(workspace, now)

    def dashboard(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Member-facing overview: the caller's open tasks, recent activity,
        channels and workspace health.
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return {
            "workspace": workspace,
            "task_summary": self.analytics_service.task_summary(workspace_id, now),
            "my_tasks": self.task_repo.list_pending_for_assignee(workspace_id, user_id),
            "recent_activity": self.task_repo.recent_activity(workspace_id),
            "channels": self.channel_repo.list_for_workspace(workspace_id),
            "health": self.analytics_service.workspace_health(workspace, now),
        }

    def platform_stats(self) -> Dict[str, Any]:
        return {
            "workspaces_by_status": self.workspace_repo.count_by_status(),
            "tasks_by_status": self.task_repo.count_by_status(),
            "active_members": self.member_repo.count_active(),
        }
