"""
Expense repository.
"""

from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from constants import ExpenseStatus
from models import Expense
from .base_repository import BaseRepository


class ExpenseRepository(BaseRepository[Expense]):
    """Repository for Expense model operations."""

    def __init__(self, db: Session):
        super().__init__(db, Expense)

    def list_for_workspace(self, workspace_id: str, status: Optional[str] = None) -> List[Expense]:
        query = self.query().filter(self.model.workspace_id == workspace_id)
        if status:
            query = query.filter(self.model.status == status)
        return query.order_by(self.model.created_at.desc()).all()

    def get_in_workspace(self, workspace_id: str, expense_ids: List[str]) -> List[Expense]:
        if not expense_ids:
            return []
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.id.in_(expense_ids),
        ).all()

    def totals_by_status(self, workspace_id: str) -> Dict[str, float]:
        rows = self.db.query(
            self.model.status, func.coalesce(func.sum(self.model.amount), 0.0)
        ).filter(self.model.workspace_id == workspace_id).group_by(self.model.status).all()
        totals = {status.value: 0.0 for status in ExpenseStatus}
        totals.update({status: float(total) for status, total in rows})
        return totals
