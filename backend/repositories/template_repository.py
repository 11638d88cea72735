"""
Workspace template repository.
"""

from typing import List, Optional
from sqlalchemy.orm import Session

from models import TaskTemplate, WorkspaceTemplate
from .base_repository import BaseRepository


class TemplateRepository(BaseRepository[WorkspaceTemplate]):
    """Repository for WorkspaceTemplate model operations."""

    def __init__(self, db: Session):
        super().__init__(db, WorkspaceTemplate)

    def list_visible(self, user_id: Optional[str] = None, category: Optional[str] = None) -> List[WorkspaceTemplate]:
        """
        Public templates plus the caller's own private ones, most used first.
        """
        query = self.query()
        if user_id:
            query = query.filter((self.model.is_public.is_(True)) | (self.model.created_by == user_id))
        else:
            query = query.filter(self.model.is_public.is_(True))
        if category:
            query = query.filter(self.model.category == category)
        return query.order_by(self.model.usage_count.desc(), self.model.created_at.desc()).all()


class TaskTemplateRepository(BaseRepository[TaskTemplate]):
    def __init__(self, db: Session):
        super().__init__(db, TaskTemplate)

    def list_for_workspace(self, workspace_id: str) -> List[TaskTemplate]:
        return self.query().filter(
            self.model.workspace_id == workspace_id,
        ).order_by(self.model.usage_count.desc(), self.model.created_at.desc()).all()
