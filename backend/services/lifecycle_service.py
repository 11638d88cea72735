"""
Workspace Lifecycle Service

Drives workspaces through PROVISIONING -> ACTIVE -> WINDING_DOWN -> DISSOLVED
in response to event changes, manual requests and the retention schedule.
"""

import math
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import logging

from config.app_config import app_config
from constants import EventStatus, MemberStatus, Permission
from domain.value_objects import WorkspaceStatus
from exceptions import LifecycleError, NotFoundError
from models import Event, Workspace
from repositories import EventRepository, TeamMemberRepository, WorkspaceRepository
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger, ILifecycleService
from services.workspace_service import WorkspaceService
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)

FINISHED_EVENT_STATUSES = (EventStatus.COMPLETED.value, EventStatus.CANCELLED.value)


def retention_days(workspace: Workspace) -> int:
    """Retention period stored in the workspace settings, 0 included"""
    value = (workspace.settings or {}).get('retention_period_days')
    return app_config.default_retention_days if value is None else int(value)


def event_has_finished(event: Event, now: datetime) -> bool:
    return event.status in FINISHED_EVENT_STATUSES or event.end_date < now


def scheduled_dissolution(workspace: Workspace) -> Optional[datetime]:
    """
    When a winding-down workspace will be dissolved: the event end date plus
    the retention period. None for workspaces in any other state.
    """
    if workspace.status != WorkspaceStatus.WINDING_DOWN.value or workspace.event is None:
        return None
    return workspace.event.end_date + timedelta(days=retention_days(workspace))


def days_until(moment: datetime, now: datetime) -> int:
    return max(0, math.ceil((moment - now).total_seconds() / 86400))


class LifecycleService(ILifecycleService):
    """
    Service for workspace lifecycle transitions.
    """

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.event_repo = EventRepository(db)
        self.workspace_repo = WorkspaceRepository(db)
        self.member_repo = TeamMemberRepository(db)
        self.workspaces = WorkspaceService(db, audit)

    def _transition(self, workspace: Workspace, target: WorkspaceStatus):
        current = WorkspaceStatus.from_string(workspace.status)
        if not current.can_transition_to(target):
            raise LifecycleError(
                workspace.id, workspace.status,
                f"Invalid status transition from {current.value} to {target.value}",
            )
        workspace.status = target.value

    def dissolve_now(self, workspace: Workspace, reason: str, now: Optional[datetime] = None,
                     actor_id: Optional[str] = None) -> int:
        """
        Revoke every membership and mark the workspace DISSOLVED.

        Runs inside the caller's transaction. Member left_at and the
        workspace dissolved_at share one timestamp so a later reactivation
        can tell which members were removed by the dissolution.

        Returns:
            Number of memberships revoked
        """
        now = now or datetime.utcnow()
        revoked = self.member_repo.deactivate_all(workspace.id, when=now)
        self._transition(workspace, WorkspaceStatus.DISSOLVED)
        workspace.dissolved_at = now
        workspace.dissolution_reason = reason
        self.workspace_repo.update(workspace)
        self.audit.log(
            "WORKSPACE_DISSOLVED", "workspace",
            workspace_id=workspace.id, user_id=actor_id, resource_id=workspace.id,
            details={"reason": reason, "revoked_members": revoked},
        )
        logger.info(f"Dissolved workspace {workspace.id} ({reason}), revoked {revoked} member(s)")
        return revoked

    # Manual transitions

    @log_operation("Dissolve workspace")
    def dissolve(self, workspace_id: str, user_id: str, retention_period_days: Optional[int] = None,
                 now: Optional[datetime] = None) -> Workspace:
        """
        Start dissolution of a workspace whose event is over.

        The workspace moves to WINDING_DOWN; the scheduled pass dissolves it
        once the retention period has elapsed. A retention of 0 dissolves it
        immediately.

        Raises:
            LifecycleError: If the event is still running or the workspace is not active
        """
        now = now or datetime.utcnow()
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)

        if not event_has_finished(workspace.event, now):
            raise LifecycleError(
                workspace_id, workspace.status,
                "Cannot dissolve workspace before event completion or cancellation",
            )
        if workspace.status not in (WorkspaceStatus.ACTIVE.value, WorkspaceStatus.WINDING_DOWN.value):
            raise LifecycleError(
                workspace_id, workspace.status,
                f"Cannot dissolve a workspace in {workspace.status} state",
            )

        with transaction(self.db, "Dissolve workspace"):
            if retention_period_days is not None:
                settings = dict(workspace.settings or {})
                settings['retention_period_days'] = retention_period_days
                workspace.settings = settings

            if workspace.status == WorkspaceStatus.ACTIVE.value:
                self._transition(workspace, WorkspaceStatus.WINDING_DOWN)
            self.workspace_repo.update(workspace)
            self.audit.log(
                "WORKSPACE_WIND_DOWN", "workspace",
                workspace_id=workspace_id, user_id=user_id, resource_id=workspace_id,
                details={"retention_period_days": retention_days(workspace)},
            )

            if retention_days(workspace) == 0:
                self.dissolve_now(workspace, "MANUAL", now, actor_id=user_id)
        return workspace

    @log_operation("Initiate wind-down")
    def initiate_wind_down(self, workspace_id: str, user_id: str) -> Workspace:
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)
        if workspace.status != WorkspaceStatus.ACTIVE.value:
            raise LifecycleError(workspace_id, workspace.status,
                                 "Can only initiate wind-down for active workspaces")

        with transaction(self.db, "Initiate wind-down"):
            self._transition(workspace, WorkspaceStatus.WINDING_DOWN)
            self.workspace_repo.update(workspace)
            self.audit.log("WORKSPACE_WIND_DOWN", "workspace", workspace_id=workspace_id,
                           user_id=user_id, resource_id=workspace_id)
        return workspace

    def get_status(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Workspace detail plus lifecycle information.

        Returns:
            Dictionary with workspace and lifecycle keys
        """
        now = now or datetime.utcnow()
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)

        status = WorkspaceStatus.from_string(workspace.status)
        scheduled = scheduled_dissolution(workspace)
        return {
            "workspace": self.workspaces.describe(workspace, now),
            "lifecycle": {
                "status": status,
                "can_transition_to": status.allowed_transitions(),
                "retention_period_days": retention_days(workspace),
                "scheduled_dissolution": scheduled,
                "days_until_dissolution": days_until(scheduled, now) if scheduled else None,
                "event_status": workspace.event.status,
                "event_end_date": workspace.event.end_date,
            },
        }

    # Event hooks

    @log_operation("Event created")
    def on_event_created(self, event_id: str) -> Workspace:
        """
        Provision the workspace of a new event. Idempotent: an existing
        workspace is returned unchanged.
        """
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event", event_id)

        existing = self.workspace_repo.get_by_event_id(event_id)
        if existing:
            logger.debug(f"Event {event_id} already has workspace {existing.id}")
            return existing

        with transaction(self.db, "Auto-provision workspace"):
            workspace = self.workspaces.create_for_event(event)
        return workspace

    @log_operation("Event status changed")
    def on_event_status_changed(self, event_id: str, new_status: str, old_status: str,
                                now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        React to an event status change.

        - COMPLETED: an active workspace starts winding down
        - CANCELLED: members are revoked and the workspace is dissolved
        - leaving CANCELLED: a workspace dissolved by the cancellation is reactivated

        Returns:
            Dictionary with workspace_id, previous_status, status and action
        """
        now = now or datetime.utcnow()
        new_status = EventStatus(new_status).value
        old_status = EventStatus(old_status).value

        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event", event_id)
        workspace = self.workspace_repo.get_by_event_id(event_id)

        result = {
            "workspace_id": workspace.id if workspace else None,
            "previous_status": workspace.status if workspace else None,
            "status": workspace.status if workspace else None,
            "action": "none",
        }

        with transaction(self.db, "Event status change"):
            event.status = new_status
            self.event_repo.update(event)
            if workspace is None:
                logger.info(f"Event {event_id} has no workspace, status change {old_status} -> {new_status} ignored")
                return result

            if new_status == EventStatus.COMPLETED.value and old_status != EventStatus.COMPLETED.value:
                if workspace.status == WorkspaceStatus.ACTIVE.value:
                    self._transition(workspace, WorkspaceStatus.WINDING_DOWN)
                    self.workspace_repo.update(workspace)
                    self.audit.log("WORKSPACE_WIND_DOWN", "workspace", workspace_id=workspace.id,
                                   resource_id=workspace.id, details={"trigger": "event_completed"})
                    result["action"] = "wind_down"

            elif new_status == EventStatus.CANCELLED.value:
                if workspace.status != WorkspaceStatus.DISSOLVED.value:
                    self.dissolve_now(workspace, "EVENT_CANCELLED", now)
                    result["action"] = "dissolved"

            elif old_status == EventStatus.CANCELLED.value:
                if self._reactivate(workspace):
                    result["action"] = "reactivated"

        result["status"] = workspace.status
        return result

    def _reactivate(self, workspace: Workspace) -> bool:
        """
        Undo a dissolution caused by event cancellation.

        This is the one way out of DISSOLVED: it only applies to workspaces
        whose dissolution_reason is EVENT_CANCELLED, and only members removed
        by that dissolution are restored.
        """
        if workspace.status != WorkspaceStatus.DISSOLVED.value or workspace.dissolution_reason != "EVENT_CANCELLED":
            logger.info(f"Workspace {workspace.id} ({workspace.status}) not eligible for reactivation")
            return False

        restored = 0
        for member in self.member_repo.list_members(workspace.id, status=MemberStatus.INACTIVE.value):
            if member.left_at == workspace.dissolved_at:
                member.status = MemberStatus.ACTIVE.value
                member.left_at = None
                restored += 1

        workspace.status = WorkspaceStatus.ACTIVE.value
        workspace.dissolved_at = None
        workspace.dissolution_reason = None
        self.workspace_repo.update(workspace)
        self.audit.log("WORKSPACE_REACTIVATED", "workspace", workspace_id=workspace.id,
                       resource_id=workspace.id, details={"restored_members": restored})
        logger.info(f"Reactivated workspace {workspace.id}, restored {restored} member(s)")
        return True

    def lifecycle_status(self, event_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        What can happen next to an event's workspace.

        Raises:
            NotFoundError: If the event does not exist
        """
        if not self.event_repo.exists(event_id):
            raise NotFoundError("Event", event_id)
        workspace = self.workspace_repo.get_by_event_id(event_id)
        if workspace is None:
            return {
                "has_workspace": False,
                "can_provision": True,
                "can_wind_down": False,
                "can_dissolve": False,
            }

        status = workspace.status
        return {
            "has_workspace": True,
            "workspace_id": workspace.id,
            "workspace_status": status,
            "can_provision": False,
            "can_wind_down": status == WorkspaceStatus.ACTIVE.value,
            "can_dissolve": status in (WorkspaceStatus.ACTIVE.value, WorkspaceStatus.WINDING_DOWN.value),
            "scheduled_dissolution": scheduled_dissolution(workspace),
        }

    # Scheduled dissolution

    def process_automatic_dissolution(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Dissolve winding-down workspaces whose retention period has elapsed.

        Each workspace is handled in its own transaction; a failure is logged
        and the pass moves on to the next workspace.

        Returns:
            Dictionary with checked, dissolved, pending (days remaining) and failed
        """
        now = now or datetime.utcnow()
        result = {"checked": 0, "dissolved": [], "pending": {}, "failed": []}

        for workspace in self.workspace_repo.list_by_status(WorkspaceStatus.WINDING_DOWN):
            if workspace.event is None or not event_has_finished(workspace.event, now):
                continue
            result["checked"] += 1

            due = scheduled_dissolution(workspace)
            if now < due:
                result["pending"][workspace.id] = days_until(due, now)
                logger.debug(f"Workspace {workspace.id} dissolves in {result['pending'][workspace.id]} day(s)")
                continue

            try:
                with transaction(self.db, "Automatic dissolution"):
                    self.dissolve_now(workspace, "RETENTION_EXPIRED", now)
                result["dissolved"].append(workspace.id)
            except Exception as e:
                logger.error(f"Failed to dissolve workspace {workspace.id}: {e}", exc_info=True)
                result["failed"].append(workspace.id)

        if result["dissolved"] or result["failed"]:
            logger.info(f"Dissolution pass: {len(result['dissolved'])} dissolved, "
                        f"{len(result['failed'])} failed, {len(result['pending'])} pending")
        return result
