"""
Security Service

Audit trail access, compliance reporting and emergency access revocation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from constants import Permission, WorkspaceRole
from models import TeamMember
from repositories import AuditLogRepository
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger
from services.lifecycle_service import LifecycleService
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)

RECENT_AUDIT_EVENTS = 20
REPORT_AUDIT_WINDOW = 100
MAX_SESSION_TIMEOUT_MINUTES = 480


def security_recommendations(policies: Dict[str, Any], failed_events: int) -> List[str]:
    recommendations = []
    if not policies.get("mfa_required"):
        recommendations.append("Enable multi-factor authentication for enhanced security")
    timeout = policies.get("session_timeout")
    if not timeout or timeout > MAX_SESSION_TIMEOUT_MINUTES:
        recommendations.append("Set session timeout to 8 hours or less")
    if not policies.get("ip_whitelist"):
        recommendations.append("Consider implementing IP whitelisting for sensitive workspaces")
    if failed_events > 0:
        recommendations.append("Review and strengthen access controls due to recent denied access attempts")

    if not recommendations:
        recommendations.append("Security configuration meets recommended standards")
    return recommendations


class SecurityService:
    """Service for workspace security operations."""

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.audit_repo = AuditLogRepository(db)
        self.lifecycle = LifecycleService(db, audit)

    def _require_auditor(self, workspace_id: str, user_id: str) -> TeamMember:
        """Workspace owners and members with MANAGE_WORKSPACE may read the audit trail."""
        self.access.get_workspace(workspace_id)
        member = self.access.require_member(workspace_id, user_id)
        if member.role == WorkspaceRole.WORKSPACE_OWNER.value:
            return member
        return self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)

    def audit_logs(self, workspace_id: str, user_id: str, limit: int = 100, offset: int = 0,
                   action: Optional[str] = None, resource: Optional[str] = None,
                   start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Dict[str, Any]:
        self._require_auditor(workspace_id, user_id)
        return self.audit_repo.list_for_workspace(
            workspace_id, limit=limit, offset=offset,
            action=action, resource=resource, start_date=start_date, end_date=end_date,
        )

    def audit_stats(self, workspace_id: str, user_id: str, start_date: Optional[datetime] = None,
                    end_date: Optional[datetime] = None) -> Dict[str, Any]:
        self._require_auditor(workspace_id, user_id)
        stats = self.audit_repo.stats(workspace_id, start_date=start_date, end_date=end_date)
        # System actions carry no user id
        stats["by_user"] = {(uid or "system"): count for uid, count in stats["by_user"].items()}
        return stats

    def compliance_report(self, workspace_id: str, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Summarize the workspace's security posture.

        Security metrics are drawn from the most recent audit events; failed
        events (denied access attempts) count as security incidents.
        """
        self._require_auditor(workspace_id, user_id)
        workspace = self.access.get_workspace(workspace_id)
        page = self.audit_repo.list_for_workspace(workspace_id, limit=REPORT_AUDIT_WINDOW)
        recent = page["logs"]
        incidents = [log for log in recent if not log.success]
        policies = (workspace.settings or {}).get("security_policies") or {}

        return {
            "workspace_id": workspace_id,
            "report_generated_at": now or datetime.utcnow(),
            "compliance_status": {
                "gdpr_compliant": True,
                "ccpa_compliant": True,
                "encryption_enabled": True,
                "audit_logging_enabled": True,
            },
            "security_metrics": {
                "total_audit_events": page["total"],
                "security_incident_count": len(incidents),
                "last_incident_at": incidents[0].created_at if incidents else None,
            },
            "active_policies": policies,
            "recent_audit_events": recent[:RECENT_AUDIT_EVENTS],
            "recommendations": security_recommendations(policies, len(incidents)),
        }

    @log_operation("Emergency revoke")
    def emergency_revoke(self, workspace_id: str, user_id: str, reason: str,
                         now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Revoke every membership and dissolve the workspace immediately.

        Raises:
            AccessDeniedError: Without MANAGE_WORKSPACE
            LifecycleError: If the workspace is already dissolved
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)

        with transaction(self.db, "Emergency revoke"):
            revoked = self.lifecycle.dissolve_now(workspace, "EMERGENCY_REVOKE", now, actor_id=user_id)
            self.audit.log("EMERGENCY_REVOKE", "workspace", workspace_id=workspace_id, user_id=user_id,
                           resource_id=workspace_id, details={"reason": reason, "revoked_members": revoked})

        logger.warning(f"Emergency revocation of workspace {workspace_id} by {user_id}: {reason}")
        return {"workspace_id": workspace_id, "revoked_members": revoked, "status": workspace.status}
