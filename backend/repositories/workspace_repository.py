"""
Workspace and event repositories.
"""

from typing import Dict, List, Optional
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func

from models import Event, Workspace, TeamMember
from domain.value_objects import WorkspaceStatus
from .base_repository import BaseRepository


class EventRepository(BaseRepository[Event]):
    """Repository for Event model operations."""

    def __init__(self, db: Session):
        super().__init__(db, Event)

    def list_by_organizer(self, organizer_id: str) -> List[Event]:
        return self.query().filter(
            self.model.organizer_id == organizer_id
        ).order_by(self.model.start_date.desc()).all()


class WorkspaceRepository(BaseRepository[Workspace]):
    """Repository for Workspace model operations."""

    def __init__(self, db: Session):
        super().__init__(db, Workspace)

    def get_by_event_id(self, event_id: str) -> Optional[Workspace]:
        return self.query().filter(self.model.event_id == event_id).first()

    def get_with_event(self, workspace_id: str) -> Optional[Workspace]:
        """
        Get a workspace with its event eagerly loaded.

        Args:
            workspace_id: Workspace UUID

        Returns:
            Workspace instance or None if not found
        """
        return self.query().options(
            joinedload(self.model.event)
        ).filter(self.model.id == workspace_id).first()

    def list_by_status(self, status: WorkspaceStatus) -> List[Workspace]:
        return self.query().options(
            joinedload(self.model.event)
        ).filter(self.model.status == WorkspaceStatus(status).value).all()

    def list_for_user(self, user_id: str) -> List[Workspace]:
        """
        Workspaces where the user holds an ACTIVE membership.

        Returns:
            Workspaces ordered newest first
        """
        return self.query().join(
            TeamMember, TeamMember.workspace_id == self.model.id
        ).filter(
            TeamMember.user_id == user_id,
            TeamMember.status == 'ACTIVE',
        ).options(
            joinedload(self.model.event)
        ).order_by(self.model.created_at.desc()).all()

    def count_by_status(self) -> Dict[str, int]:
        rows = self.db.query(
            self.model.status, func.count(self.model.id)
        ).group_by(self.model.status).all()
        counts = {status.value: 0 for status in WorkspaceStatus}
        counts.update({status: count for status, count in rows})
        return counts
