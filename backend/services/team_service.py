"""
Team Service

Membership management: invitations, role changes, early departures and
peer recognition.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from constants import MemberStatus, Permission, WorkspaceRole
from domain.value_objects import WorkspaceStatus
from exceptions import ConflictError, LifecycleError, NotFoundError, ValidationError
from models import Recognition, TeamMember
from repositories import RecognitionRepository, TaskRepository, TeamMemberRepository
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)

REASSIGNMENT_NOTE = "\n\n[REASSIGNED: Originally assigned to departing team member, reassigned to {manager_id}]"


class TeamService:
    """Service for team membership business logic."""

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.member_repo = TeamMemberRepository(db)
        self.task_repo = TaskRepository(db)
        self.recognition_repo = RecognitionRepository(db)

    def list_members(self, workspace_id: str, user_id: str, status: Optional[str] = None) -> List[TeamMember]:
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return self.member_repo.list_members(workspace_id, status=status)

    @log_operation("Invite team member")
    def invite(self, workspace_id: str, user_id: str, invitee_id: str, role: str,
               permissions: Optional[List[str]] = None) -> TeamMember:
        """
        Add a user to the workspace team.

        A previously departed member is re-activated with the new role.
        Granting an explicit permission list needs MANAGE_PERMISSIONS.

        Raises:
            LifecycleError: If the workspace is not active
            ConflictError: If the user is already an active or pending member
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(
            workspace_id, user_id, Permission.INVITE_MEMBERS, Permission.MANAGE_TEAM
        )
        if workspace.status != WorkspaceStatus.ACTIVE.value:
            raise LifecycleError(workspace_id, workspace.status, "Can only invite members to an active workspace")
        role = WorkspaceRole(role).value
        if permissions is not None:
            self.access.require_permission(workspace_id, user_id, Permission.MANAGE_PERMISSIONS)

        existing = self.member_repo.get_member(workspace_id, invitee_id)
        if existing and existing.status != MemberStatus.INACTIVE.value:
            raise ConflictError("TeamMember", "User is already a member of this workspace")

        with transaction(self.db, "Invite team member"):
            if existing:
                member = existing
                member.role = role
                member.permissions = [Permission(p).value for p in permissions] if permissions is not None else None
                member.status = MemberStatus.ACTIVE.value
                member.invited_by = user_id
                member.joined_at = datetime.utcnow()
                member.left_at = None
                # Rejoins as a regular member, without a specialist's task scope
                member.specialist = None
                self.member_repo.update(member)
            else:
                member = self.member_repo.create(TeamMember(
                    workspace_id=workspace_id,
                    user_id=invitee_id,
                    role=role,
                    permissions=[Permission(p).value for p in permissions] if permissions is not None else None,
                    status=MemberStatus.ACTIVE.value,
                    invited_by=user_id,
                ))
            self.audit.log(
                "MEMBER_INVITED", "member",
                workspace_id=workspace_id, user_id=user_id, resource_id=invitee_id,
                details={"role": role, "rejoined": existing is not None},
            )
        return member

    @log_operation("Update member role")
    def update_role(self, workspace_id: str, user_id: str, target_user_id: str, role: str,
                    permissions: Optional[List[str]] = None) -> TeamMember:
        """
        Change a member's role. Without an explicit list the member falls
        back to the defaults of the new role.

        Raises:
            ValidationError: If a member tries to change their own role
            NotFoundError: If the target is not an active member
        """
        self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_TEAM)
        if target_user_id == user_id:
            raise ValidationError("Cannot change your own role")
        if permissions is not None:
            self.access.require_permission(workspace_id, user_id, Permission.MANAGE_PERMISSIONS)

        member = self.member_repo.get_active_member(workspace_id, target_user_id)
        if not member:
            raise NotFoundError("TeamMember", target_user_id, "Team member not found")

        with transaction(self.db, "Update member role"):
            previous = member.role
            member.role = WorkspaceRole(role).value
            member.permissions = [Permission(p).value for p in permissions] if permissions is not None else None
            self.member_repo.update(member)
            self.audit.log(
                "MEMBER_ROLE_CHANGED", "member",
                workspace_id=workspace_id, user_id=user_id, resource_id=target_user_id,
                details={"from": previous, "to": member.role, "custom_permissions": permissions is not None},
            )
        return member

    @log_operation("Early departure")
    def handle_early_departure(self, workspace_id: str, departing_user_id: str, manager_id: str,
                               now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Remove a member before the event ends and hand their open work to the manager.

        The departing member is marked INACTIVE; every task of theirs that is
        not COMPLETED is reassigned to the manager with a note appended to
        its description.

        Returns:
            Dictionary with user_id, manager_id and reassigned_task_ids

        Raises:
            NotFoundError: If the departing member is not active, or the manager is not in the workspace
        """
        now = now or datetime.utcnow()
        self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, manager_id, Permission.MANAGE_TEAM)

        member = self.member_repo.get_active_member(workspace_id, departing_user_id)
        if not member:
            raise NotFoundError("TeamMember", departing_user_id, "Team member not found or already inactive")
        if departing_user_id == manager_id:
            raise ValidationError("Use a different manager to hand over your own tasks")
        if not self.member_repo.get_active_member(workspace_id, manager_id):
            raise NotFoundError("TeamMember", manager_id, "Manager not found in workspace")

        reassigned = []
        with transaction(self.db, "Early departure"):
            member.status = MemberStatus.INACTIVE.value
            member.left_at = now
            self.member_repo.update(member)

            for task in self.task_repo.list_pending_for_assignee(workspace_id, departing_user_id):
                task.assignee_id = manager_id
                task.description = (task.description or "") + REASSIGNMENT_NOTE.format(manager_id=manager_id)
                self.task_repo.record_activity(task.id, manager_id, "reassigned", {
                    "from": departing_user_id, "to": manager_id, "reason": "early_departure",
                })
                reassigned.append(task.id)

            self.audit.log(
                "MEMBER_DEPARTED", "member",
                workspace_id=workspace_id, user_id=manager_id, resource_id=departing_user_id,
                details={"reassigned_tasks": len(reassigned)},
            )

        logger.info(f"Member {departing_user_id} left workspace {workspace_id}, "
                    f"{len(reassigned)} task(s) reassigned to {manager_id}")
        return {"user_id": departing_user_id, "manager_id": manager_id, "reassigned_task_ids": reassigned}

    # Recognition

    def list_recognitions(self, workspace_id: str, user_id: str,
                          recipient_id: Optional[str] = None) -> List[Recognition]:
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return self.recognition_repo.list_for_workspace(workspace_id, recipient_id)

    def give_recognition(self, workspace_id: str, user_id: str, recipient_id: str,
                         badge: str, message: Optional[str] = None) -> Recognition:
        """
        Raises:
            ValidationError: If a member recognizes themselves
            NotFoundError: If the recipient is not an active member
        """
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        if recipient_id == user_id:
            raise ValidationError("Cannot give recognition to yourself")
        if not self.member_repo.get_active_member(workspace_id, recipient_id):
            raise NotFoundError("TeamMember", recipient_id, "Recipient is not a member of this workspace")

        with transaction(self.db, "Give recognition"):
            recognition = self.recognition_repo.create(Recognition(
                workspace_id=workspace_id,
                recipient_id=recipient_id,
                giver_id=user_id,
                badge=badge,
                message=message,
            ))
        return recognition
