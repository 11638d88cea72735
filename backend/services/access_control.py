"""
Workspace Access Control

Membership and permission checks shared by every workspace service.
"""

from typing import Optional, Set
from sqlalchemy.orm import Session
import logging

from constants import Permission, SpecialistAccessLevel
from exceptions import AccessDeniedError, NotFoundError
from models import TeamMember, Workspace, WorkspaceTask
from repositories import TeamMemberRepository, WorkspaceRepository
from services.interfaces import IAuditLogger

logger = logging.getLogger(__name__)


class WorkspaceAccess:
    """
    Resolves workspaces and verifies the caller's membership and permissions.

    Denied attempts are written to the audit trail and committed straight
    away; checks run before any write, so nothing else is pending in the
    session at that point.
    """

    def __init__(self, db: Session, audit: Optional[IAuditLogger] = None):
        self.db = db
        self.audit = audit
        self.workspace_repo = WorkspaceRepository(db)
        self.member_repo = TeamMemberRepository(db)

    def get_workspace(self, workspace_id: str) -> Workspace:
        workspace = self.workspace_repo.get_with_event(workspace_id)
        if not workspace:
            raise NotFoundError("Workspace", workspace_id)
        return workspace

    def require_member(self, workspace_id: str, user_id: str) -> TeamMember:
        """
        Active membership of a user in a workspace.

        Raises:
            AccessDeniedError: If the user has no active membership
        """
        member = self.member_repo.get_active_member(workspace_id, user_id)
        if not member:
            self._denied(workspace_id, user_id, None)
            raise AccessDeniedError(
                "Access denied: User is not a member of this workspace",
                workspace_id=workspace_id,
            )
        return member

    def require_permission(self, workspace_id: str, user_id: str, *permissions: Permission) -> TeamMember:
        """
        Verify that a member holds at least one of the given permissions.

        Args:
            workspace_id: Workspace UUID
            user_id: Calling user
            *permissions: Accepted permissions, any one is enough

        Returns:
            The caller's TeamMember row

        Raises:
            AccessDeniedError: If the user is not an active member or lacks every permission
        """
        member = self.require_member(workspace_id, user_id)
        granted = set(member.effective_permissions)
        if any(Permission(p).value in granted for p in permissions):
            return member

        wanted = " or ".join(Permission(p).value for p in permissions)
        self._denied(workspace_id, user_id, wanted)
        raise AccessDeniedError(
            f"Access denied: User does not have {wanted} permission",
            workspace_id=workspace_id,
            permission=wanted,
        )

    def task_scope(self, member: TeamMember) -> Optional[Set[str]]:
        """Task ids a TASK_SPECIFIC specialist is confined to, None for everyone else"""
        specialist = member.specialist
        if specialist is None or specialist.access_level != SpecialistAccessLevel.TASK_SPECIFIC.value:
            return None
        return set(specialist.task_scope or [])

    def require_task_access(self, task: WorkspaceTask, user_id: str) -> TeamMember:
        """
        Membership check for one task. Specialists with task-specific access
        reach only the tasks in their scope and those assigned to them.

        Raises:
            AccessDeniedError: If the user is not a member or the task is out of scope
        """
        member = self.require_member(task.workspace_id, user_id)
        scope = self.task_scope(member)
        if scope is not None and task.id not in scope and task.assignee_id != user_id:
            self._denied(task.workspace_id, user_id, "TASK_SCOPE")
            raise AccessDeniedError(
                "Access denied: Task is outside the specialist's scope",
                workspace_id=task.workspace_id,
            )
        return member

    def has_permission(self, member: TeamMember, permission: Permission) -> bool:
        return Permission(permission).value in member.effective_permissions

    def _denied(self, workspace_id: str, user_id: str, permission: Optional[str]):
        logger.warning(f"Access denied for user {user_id} on workspace {workspace_id} "
                       f"(permission={permission or 'membership'})")
        if self.audit is None:
            return
        self.audit.log(
            "ACCESS_DENIED", "workspace",
            workspace_id=workspace_id, user_id=user_id, resource_id=workspace_id,
            success=False, details={"permission": permission},
        )
        self.db.commit()
