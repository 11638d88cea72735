"""
Marketplace Integration Service

The workspace side of the marketplace: which hired services would close
the gaps of a team, and how a booked specialist joins the workspace as an
external member with restricted, optionally task-scoped, access.

Service listings and bookings live with the marketplace itself; callers
pass the candidate services in.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging
import re

from constants import (
    ChannelType,
    MarketplaceMatching,
    MemberStatus,
    Permission,
    ServiceCategory,
    SpecialistAccessLevel,
    WorkspaceRole,
)
from domain.value_objects import TaskStatus, WorkspaceStatus
from exceptions import ConflictError, LifecycleError, NotFoundError, ValidationError
from models import SpecialistIntegration, TeamMember, WorkspaceChannel, WorkspaceTask
from repositories import ChannelRepository, SpecialistRepository, TaskRepository, TeamMemberRepository
from repositories.task_specifications import TasksByWorkspaceSpec
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)

# Restricted grant for LIMITED and TASK_SPECIFIC specialists
RESTRICTED_PERMISSIONS = [Permission.VIEW_TASKS.value, Permission.UPDATE_TASK_PROGRESS.value]


def vendor_channel_name(business_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", business_name.lower()).strip("-")
    return f"vendor-{slug or 'specialist'}"


class MarketplaceIntegrationService:
    """Team gap analysis, specialist recommendations and integration."""

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.member_repo = TeamMemberRepository(db)
        self.task_repo = TaskRepository(db)
        self.specialist_repo = SpecialistRepository(db)
        self.channel_repo = ChannelRepository(db)

    # Recommendations

    def analyze_team_gaps(self, workspace_id: str, user_id: str) -> Dict[str, Any]:
        """
        Roles a team lacks and task categories it cannot staff.

        The ideal team has an event coordinator, a marketing lead and a
        volunteer manager, plus a technical specialist once it grows past
        five members. A task category is understaffed when it holds more
        than five tasks and fewer than two members hold its role.
        """
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)

        members = self.member_repo.list_members(workspace_id, status=MemberStatus.ACTIVE.value)
        role_counts = Counter(m.role for m in members)
        ideal = [WorkspaceRole.EVENT_COORDINATOR, WorkspaceRole.MARKETING_LEAD, WorkspaceRole.VOLUNTEER_MANAGER]
        if len(members) > MarketplaceMatching.TECHNICAL_TEAM_SIZE:
            ideal.append(WorkspaceRole.TECHNICAL_SPECIALIST)
        missing_roles = [role.value for role in ideal if role_counts[role.value] == 0]

        task_counts = Counter(t.category for t in self.task_repo.find(TasksByWorkspaceSpec(workspace_id)))
        understaffed = []
        for category, count in sorted(task_counts.items()):
            if count <= MarketplaceMatching.UNDERSTAFFED_TASK_COUNT:
                continue
            role = MarketplaceMatching.role_for(MarketplaceMatching.service_category_for(category))
            if role_counts[role.value] < MarketplaceMatching.UNDERSTAFFED_MIN_MEMBERS:
                understaffed.append(category)

        return {
            "workspace_id": workspace_id,
            "team_size": len(members),
            "role_counts": dict(role_counts),
            "task_counts": dict(task_counts),
            "missing_roles": missing_roles,
            "understaffed_areas": understaffed,
        }

    def recommend_services(self, workspace_id: str, user_id: str, candidates: List[Dict[str, Any]],
                           limit: int = MarketplaceMatching.DEFAULT_LIMIT,
                           preferred_categories: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """
        Rank marketplace services for a workspace team.

        Only services in team-building categories (or in the preferred
        categories, if given) are considered. Scoring:
        - +30 the service's role is missing from the team
        - +20 the service covers an understaffed task category
        - +15 verified vendor
        - +10 rating of 4.5 or more
        - +5  completion rate of 95% or more

        Args:
            candidates: Service dicts with id, title, category, vendor_name,
                verified, rating and completion_rate
            limit: Maximum number of recommendations
            preferred_categories: ServiceCategory values to consider instead of the defaults

        Returns:
            Recommendations sorted by score, highest first
        """
        gaps = self.analyze_team_gaps(workspace_id, user_id)
        allowed = {ServiceCategory(c).value for c in preferred_categories} if preferred_categories else \
            {c.value for c in MarketplaceMatching.TEAM_CATEGORIES}
        understaffed_services = {MarketplaceMatching.service_category_for(a).value for a in gaps["understaffed_areas"]}

        recommendations = []
        for service in candidates:
            category = ServiceCategory(service["category"])
            if category.value not in allowed:
                continue
            role = MarketplaceMatching.role_for(category)
            score, reasons = 0, []
            if role.value in gaps["missing_roles"]:
                score += MarketplaceMatching.MISSING_ROLE_SCORE
                reasons.append(f"Fills missing {role.value} role")
            if category.value in understaffed_services:
                score += MarketplaceMatching.UNDERSTAFFED_SCORE
                reasons.append("Supports an understaffed area")
            if service.get("verified"):
                score += MarketplaceMatching.VERIFIED_VENDOR_SCORE
                reasons.append("Verified vendor")
            if (service.get("rating") or 0) >= MarketplaceMatching.HIGH_RATING:
                score += MarketplaceMatching.HIGH_RATING_SCORE
                reasons.append("Highly rated")
            if (service.get("completion_rate") or 0) >= MarketplaceMatching.RELIABLE_COMPLETION_RATE:
                score += MarketplaceMatching.RELIABLE_VENDOR_SCORE
                reasons.append("Reliable completion record")
            recommendations.append({
                "service": service,
                "score": score,
                "reasons": reasons,
                "suggested_role": role.value,
            })

        recommendations.sort(key=lambda r: r["score"], reverse=True)
        return recommendations[:limit]

    # Integration

    def _task_scope(self, workspace_id: str, category: ServiceCategory,
                    task_ids: Optional[List[str]]) -> List[str]:
        """Explicit task ids, or the open unassigned tasks of the service's task category"""
        if task_ids is not None:
            tasks = self.task_repo.find(TasksByWorkspaceSpec(workspace_id))
            known = {t.id for t in tasks}
            unknown = [task_id for task_id in task_ids if task_id not in known]
            if unknown:
                raise ValidationError("Tasks do not belong to this workspace", {"task_ids": unknown})
            return list(dict.fromkeys(task_ids))

        task_category = MarketplaceMatching.task_category_for(category).value
        return [
            t.id for t in self.task_repo.find(TasksByWorkspaceSpec(workspace_id), order_by=WorkspaceTask.created_at)
            if t.category == task_category and t.assignee_id is None and t.status != TaskStatus.COMPLETED.value
        ]

    @log_operation("Integrate specialist")
    def integrate_specialist(self, workspace_id: str, user_id: str, specialist_user_id: str,
                             business_name: str, service_category: str,
                             access_level: str = SpecialistAccessLevel.LIMITED.value,
                             role: Optional[str] = None, task_ids: Optional[List[str]] = None,
                             booking_reference: Optional[str] = None) -> SpecialistIntegration:
        """
        Bring a hired specialist into the workspace team.

        The member gets the given role or the one mapped from the service
        category. FULL access grants that role's defaults; LIMITED and
        TASK_SPECIFIC grant only VIEW_TASKS and UPDATE_TASK_PROGRESS, and
        TASK_SPECIFIC confines the member to task_ids (by default the open
        unassigned tasks of the service's task category).

        Raises:
            LifecycleError: If the workspace is not active
            ConflictError: If the user is already an active or pending member
            ValidationError: If a scoped task belongs to another workspace
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_TEAM, Permission.MANAGE_WORKSPACE)
        if workspace.status != WorkspaceStatus.ACTIVE.value:
            raise LifecycleError(workspace_id, workspace.status, "Specialists can only join an active workspace")
        if not business_name or not business_name.strip():
            raise ValidationError("Business name is required", {"business_name": business_name})

        category = ServiceCategory(service_category)
        level = SpecialistAccessLevel(access_level)
        member_role = WorkspaceRole(role).value if role else MarketplaceMatching.role_for(category).value
        permissions = None if level == SpecialistAccessLevel.FULL else list(RESTRICTED_PERMISSIONS)
        scope = self._task_scope(workspace_id, category, task_ids) if level == SpecialistAccessLevel.TASK_SPECIFIC else []

        existing = self.member_repo.get_member(workspace_id, specialist_user_id)
        if existing and existing.status != MemberStatus.INACTIVE.value:
            raise ConflictError("TeamMember", "User is already a member of this workspace")

        with transaction(self.db, "Integrate specialist"):
            if existing:
                member = existing
                member.role = member_role
                member.permissions = permissions
                member.status = MemberStatus.ACTIVE.value
                member.invited_by = user_id
                member.joined_at = datetime.utcnow()
                member.left_at = None
            else:
                member = self.member_repo.create(TeamMember(
                    workspace_id=workspace_id,
                    user_id=specialist_user_id,
                    role=member_role,
                    permissions=permissions,
                    status=MemberStatus.ACTIVE.value,
                    invited_by=user_id,
                ))
            # A returning specialist keeps their row, one per membership
            specialist = member.specialist or SpecialistIntegration(workspace_id=workspace_id,
                                                                    user_id=specialist_user_id)
            specialist.business_name = business_name.strip()
            specialist.service_category = category.value
            specialist.access_level = level.value
            specialist.task_scope = scope
            specialist.booking_reference = booking_reference
            specialist.integrated_by = user_id
            specialist.integrated_at = datetime.utcnow()
            member.specialist = specialist
            self.db.flush()
            self.audit.log(
                "SPECIALIST_INTEGRATED", "member",
                workspace_id=workspace_id, user_id=user_id, resource_id=specialist_user_id,
                details={"role": member_role, "access_level": level.value,
                         "service_category": category.value, "scoped_tasks": len(scope)},
            )

        logger.info(f"Integrated {business_name} ({specialist_user_id}) into workspace {workspace_id} "
                    f"as {member_role} with {level.value} access")
        return member.specialist

    def list_specialists(self, workspace_id: str, user_id: str) -> List[SpecialistIntegration]:
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return self.specialist_repo.list_for_workspace(workspace_id)

    @log_operation("Update specialist task scope")
    def update_task_scope(self, workspace_id: str, user_id: str, specialist_user_id: str,
                          task_ids: List[str]) -> SpecialistIntegration:
        """
        Replace the task scope of a specialist, switching them to
        TASK_SPECIFIC access if they were not already.
        """
        self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_TEAM, Permission.MANAGE_WORKSPACE)
        member = self.member_repo.get_active_member(workspace_id, specialist_user_id)
        if not member or member.specialist is None:
            raise NotFoundError("Specialist", specialist_user_id, "Specialist not found in this workspace")
        specialist = member.specialist
        scope = self._task_scope(workspace_id, ServiceCategory(specialist.service_category), task_ids)

        with transaction(self.db, "Update specialist task scope"):
            previous = specialist.access_level
            specialist.access_level = SpecialistAccessLevel.TASK_SPECIFIC.value
            specialist.task_scope = scope
            if previous == SpecialistAccessLevel.FULL.value:
                member.permissions = list(RESTRICTED_PERMISSIONS)
            self.db.flush()
            self.audit.log(
                "SPECIALIST_SCOPE_CHANGED", "member",
                workspace_id=workspace_id, user_id=user_id, resource_id=specialist_user_id,
                details={"from": previous, "scoped_tasks": len(scope)},
            )
        return specialist

    @log_operation("Set up specialist channels")
    def setup_communication(self, workspace_id: str, user_id: str) -> List[WorkspaceChannel]:
        """
        Give every active specialist a private channel with the event
        organizer, named vendor-<business name>. Existing channels are kept.

        Returns:
            The channels created by this call
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_CHANNELS, Permission.MANAGE_WORKSPACE)
        if not WorkspaceStatus.from_string(workspace.status).is_accessible():
            raise LifecycleError(workspace_id, workspace.status, "Channels cannot be created in this workspace")

        organizer_id = workspace.event.organizer_id if workspace.event else user_id
        created = []
        with transaction(self.db, "Set up specialist channels"):
            for specialist in self.specialist_repo.list_for_workspace(workspace_id):
                name = vendor_channel_name(specialist.business_name)
                if self.channel_repo.get_by_name(workspace_id, name):
                    continue
                channel = self.channel_repo.create(WorkspaceChannel(
                    workspace_id=workspace_id,
                    name=name,
                    type=ChannelType.GENERAL.value,
                    description=f"Coordination with {specialist.business_name}",
                    is_private=True,
                    members=list(dict.fromkeys([organizer_id, specialist.user_id])),
                ))
                created.append(channel)
            if created:
                self.audit.log("CHANNEL_CREATED", "channel", workspace_id=workspace_id, user_id=user_id,
                               details={"names": [c.name for c in created], "purpose": "specialist"})
        return created

    def team_access_overview(self, workspace_id: str, user_id: str) -> Dict[str, Any]:
        """Volunteers and hired professionals side by side, with what each may do"""
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)

        volunteers, professionals = [], []
        for member in self.member_repo.list_members(workspace_id, status=MemberStatus.ACTIVE.value):
            entry = {
                "user_id": member.user_id,
                "role": member.role,
                "permissions": member.effective_permissions,
            }
            specialist = member.specialist
            if specialist is None:
                volunteers.append({**entry, "access_level": "STANDARD"})
                continue
            professionals.append({
                **entry,
                "access_level": "PROFESSIONAL",
                "business_name": specialist.business_name,
                "service_category": specialist.service_category,
                "specialist_access": specialist.access_level,
                "task_scope": list(specialist.task_scope or []),
                "booking_reference": specialist.booking_reference,
            })
        return {"workspace_id": workspace_id, "volunteers": volunteers, "professionals": professionals}
