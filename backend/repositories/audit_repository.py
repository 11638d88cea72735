"""
Audit log repository.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session, Query
from sqlalchemy import func

from models import AuditLog
from .base_repository import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog model operations."""

    def __init__(self, db: Session):
        super().__init__(db, AuditLog)

    def _filtered(
        self,
        workspace_id: str,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Query:
        query = self.query().filter(self.model.workspace_id == workspace_id)
        if action:
            query = query.filter(self.model.action == action)
        if resource:
            query = query.filter(self.model.resource == resource)
        if start_date:
            query = query.filter(self.model.created_at >= start_date)
        if end_date:
            query = query.filter(self.model.created_at <= end_date)
        return query

    def list_for_workspace(
        self,
        workspace_id: str,
        limit: int = 100,
        offset: int = 0,
        **filters: Any,
    ) -> Dict[str, Any]:
        """
        Page through a workspace's audit trail, newest first.

        Args:
            workspace_id: Workspace UUID
            limit: Page size
            offset: Rows to skip
            **filters: action, resource, start_date, end_date

        Returns:
            Dictionary with logs, total, limit and offset
        """
        query = self._filtered(workspace_id, **filters)
        total = query.count()
        logs = query.order_by(self.model.created_at.desc()).offset(offset).limit(limit).all()
        return {"logs": logs, "total": total, "limit": limit, "offset": offset}

    def stats(
        self,
        workspace_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        base = self._filtered(workspace_id, start_date=start_date, end_date=end_date)
        total = base.count()
        failed = base.filter(self.model.success.is_(False)).count()

        by_action = dict(
            self._filtered(workspace_id, start_date=start_date, end_date=end_date)
            .with_entities(self.model.action, func.count(self.model.id))
            .group_by(self.model.action).all()
        )
        by_user = dict(
            self._filtered(workspace_id, start_date=start_date, end_date=end_date)
            .with_entities(self.model.user_id, func.count(self.model.id))
            .group_by(self.model.user_id).all()
        )
        return {
            "total_events": total,
            "failed_events": failed,
            "by_action": by_action,
            "by_user": by_user,
        }
