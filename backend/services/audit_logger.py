"""
Audit Logger

Writes the workspace audit trail to the audit_logs table.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from models import AuditLog
from services.interfaces import IAuditLogger

logger = logging.getLogger(__name__)


class AuditLogger(IAuditLogger):
    """
    Database-backed audit logger.

    Rows are added to the caller's session and flushed; they are committed
    together with the change they describe. A failed attempt that never
    reaches a commit is still visible in the application log.
    """

    def __init__(self, db: Session):
        self.db = db

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
        entry = AuditLog(
            workspace_id=workspace_id,
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            success=success,
            details=details or {},
        )
        self.db.add(entry)
        self.db.flush()

        level = logging.INFO if success else logging.WARNING
        logger.log(level, f"AUDIT {action} {resource}:{resource_id} by {user_id or 'system'} "
                          f"(workspace={workspace_id}, success={success})")


class InMemoryAuditLogger(IAuditLogger):
    """Audit logger that keeps entries in a list, used by tests and scripts"""

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def log(self, action, resource, workspace_id=None, user_id=None,
            resource_id=None, success=True, details=None) -> None:
        self.entries.append({
            "action": action,
            "resource": resource,
            "workspace_id": workspace_id,
            "user_id": user_id,
            "resource_id": resource_id,
            "success": success,
            "details": details or {},
        })

    def actions(self) -> List[str]:
        return [entry["action"] for entry in self.entries]
