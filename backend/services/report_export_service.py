"""
Workspace Report Export Service

Builds an Excel workbook with a workspace's tasks, team and expenses.
Each sheet holds an Excel TABLE so the data can be filtered and picked up
by spreadsheet automation without reformatting.
"""
import io
import logging
from datetime import datetime
from typing import Any, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from sqlalchemy.orm import Session

from constants import Permission
from models import WorkspaceTask
from repositories import ExpenseRepository, TaskRepository, TeamMemberRepository
from repositories.task_specifications import TasksByWorkspaceSpec
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class ReportExportService:
    """
    Exports workspace data to an in-memory .xlsx file.

    Sheets:
    - Tasks: Title, Category, Priority, Status, Progress, Assignee, DueDate, CompletedAt
    - Team: UserId, Role, Status, JoinedAt, LeftAt
    - Expenses: Description, Category, Amount, Status, SubmittedBy, CreatedAt
    """

    TASK_HEADERS = ['Title', 'Category', 'Priority', 'Status', 'Progress', 'Assignee', 'DueDate', 'CompletedAt']
    TEAM_HEADERS = ['UserId', 'Role', 'Status', 'JoinedAt', 'LeftAt']
    EXPENSE_HEADERS = ['Description', 'Category', 'Amount', 'Status', 'SubmittedBy', 'CreatedAt']

    MAX_COLUMN_WIDTH = 50

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.task_repo = TaskRepository(db)
        self.member_repo = TeamMemberRepository(db)
        self.expense_repo = ExpenseRepository(db)

    def export_filename(self, workspace_name: str, now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.utcnow()).strftime('%Y%m%d')
        safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in workspace_name).strip("_") or "workspace"
        return f"{safe}_report_{stamp}.xlsx"

    def export_workspace(self, workspace_id: str, user_id: str) -> bytes:
        """
        Export a workspace report.

        Args:
            workspace_id: Workspace UUID
            user_id: Calling user, needs VIEW_ANALYTICS

        Returns:
            The workbook as .xlsx bytes
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.VIEW_ANALYTICS)

        tasks = self.task_repo.find(TasksByWorkspaceSpec(workspace_id), order_by=WorkspaceTask.created_at)
        members = self.member_repo.list_members(workspace_id)
        expenses = self.expense_repo.list_for_workspace(workspace_id)

        wb = Workbook()
        ws = wb.active
        self._write_sheet(ws, "Tasks", self.TASK_HEADERS, [
            [t.title, t.category, t.priority, t.status, t.progress, t.assignee_id or '',
             t.due_date, t.completed_at]
            for t in tasks
        ])
        self._write_sheet(wb.create_sheet(), "Team", self.TEAM_HEADERS, [
            [m.user_id, m.role, m.status, m.joined_at, m.left_at]
            for m in members
        ])
        self._write_sheet(wb.create_sheet(), "Expenses", self.EXPENSE_HEADERS, [
            [e.description, e.category, float(e.amount), e.status, e.submitted_by, e.created_at]
            for e in expenses
        ])

        buffer = io.BytesIO()
        wb.save(buffer)

        self.audit.log("WORKSPACE_EXPORTED", "workspace", workspace_id=workspace_id, user_id=user_id,
                       resource_id=workspace_id,
                       details={"tasks": len(tasks), "members": len(members), "expenses": len(expenses)})
        self.db.commit()
        logger.info(f"Exported workspace {workspace.id}: {len(tasks)} task(s), "
                    f"{len(members)} member(s), {len(expenses)} expense(s)")
        return buffer.getvalue()

    def _write_sheet(self, ws, title: str, headers: Sequence[str], rows: List[List[Any]]):
        ws.title = title

        for col_idx, header in enumerate(headers, start=1):
            ws.cell(row=1, column=col_idx, value=header).font = Font(bold=True)

        widths = [len(h) + 2 for h in headers]
        for row_idx, row in enumerate(rows, start=2):
            for col_idx, value in enumerate(row, start=1):
                ws.cell(row=row_idx, column=col_idx, value=value)
                widths[col_idx - 1] = max(widths[col_idx - 1], len(str(value or '')) + 2)

        # A table needs at least one data row
        if rows:
            last_col_letter = get_column_letter(len(headers))
            table = Table(displayName=f"{title}Table", ref=f"A1:{last_col_letter}{len(rows) + 1}")
            table.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium2",
                showFirstColumn=False,
                showLastColumn=False,
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(table)

        for col_idx, width in enumerate(widths, start=1):
            ws.column_dimensions[get_column_letter(col_idx)].width = min(width, self.MAX_COLUMN_WIDTH)
