"""
Expense Service

Expense submissions and the bulk review used by the client's optimistic
expense status mutation.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from constants import ExpenseStatus, Permission
from domain.value_objects import WorkspaceStatus
from exceptions import LifecycleError, NotFoundError, ValidationError
from models import Expense
from repositories import ExpenseRepository
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger
from utils.transaction import transaction

logger = logging.getLogger(__name__)


class ExpenseService:
    """Service for workspace expenses."""

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.expense_repo = ExpenseRepository(db)

    def list_expenses(self, workspace_id: str, user_id: str, status: Optional[str] = None) -> List[Expense]:
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        if status:
            try:
                status = ExpenseStatus(status.upper()).value
            except ValueError as e:
                raise ValidationError(f"Invalid expense status: {status}", {"status": status}) from e
        return self.expense_repo.list_for_workspace(workspace_id, status)

    def submit(self, workspace_id: str, user_id: str, description: str, amount: float,
               category: str = "GENERAL") -> Expense:
        """
        Record an expense for review. Any active member may submit.

        Raises:
            LifecycleError: If the workspace is dissolved
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        if not WorkspaceStatus.from_string(workspace.status).is_accessible():
            raise LifecycleError(workspace_id, workspace.status, "Expenses cannot be added to this workspace")

        with transaction(self.db, "Submit expense"):
            expense = self.expense_repo.create(Expense(
                workspace_id=workspace_id,
                description=description,
                amount=amount,
                category=category,
                status=ExpenseStatus.PENDING.value,
                submitted_by=user_id,
            ))
            self.audit.log("EXPENSE_SUBMITTED", "expense", workspace_id=workspace_id,
                           user_id=user_id, resource_id=expense.id, details={"amount": amount})
        return expense

    def bulk_update_status(self, workspace_id: str, user_id: str, expense_ids: List[str],
                           status: str) -> Dict[str, Any]:
        """
        Review several expenses at once. All-or-nothing like the task
        variant: any unknown id fails the whole call.

        Raises:
            NotFoundError: If an id is not an expense of the workspace
        """
        self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)
        new_status = ExpenseStatus(status).value

        wanted = list(dict.fromkeys(expense_ids))
        expenses = self.expense_repo.get_in_workspace(workspace_id, wanted)
        if len(expenses) != len(wanted):
            found = {e.id for e in expenses}
            missing = [expense_id for expense_id in wanted if expense_id not in found]
            raise NotFoundError("Expense", ",".join(missing),
                                f"Expenses not found in workspace: {', '.join(missing)}")

        with transaction(self.db, "Bulk update expense status"):
            for expense in expenses:
                expense.status = new_status
                expense.reviewed_by = user_id
            self.db.flush()
            self.audit.log("EXPENSE_BULK_STATUS", "expense", workspace_id=workspace_id, user_id=user_id,
                           details={"expense_ids": wanted, "status": new_status})
        logger.info(f"{len(expenses)} expense(s) in workspace {workspace_id} set to {new_status}")
        return {"updated": len(expenses), "ids": [e.id for e in expenses]}
