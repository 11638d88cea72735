"""
Tests for the workspace Excel report
"""
import io
from datetime import datetime

import pytest
from openpyxl import load_workbook

from exceptions import AccessDeniedError
from models import AuditLog, WorkspaceTask
from services.audit_logger import AuditLogger
from services.expense_service import ExpenseService
from services.report_export_service import ReportExportService

ORGANIZER = "organizer-1"


@pytest.fixture
def exporter(db_session):
    return ReportExportService(db_session, AuditLogger(db_session))


def test_export_writes_three_sheets_with_headers(db_session, exporter, workspace):
    db_session.add(WorkspaceTask(workspace_id=workspace.id, title="Book venue", description="Call venues",
                                 category="LOGISTICS", priority="HIGH", creator_id=ORGANIZER,
                                 assignee_id=ORGANIZER))
    db_session.commit()
    ExpenseService(db_session, AuditLogger(db_session)).submit(workspace.id, ORGANIZER, "Deposit", 250.0, "VENUE")

    wb = load_workbook(io.BytesIO(exporter.export_workspace(workspace.id, ORGANIZER)))

    assert wb.sheetnames == ["Tasks", "Team", "Expenses"]
    tasks = list(wb["Tasks"].iter_rows(values_only=True))
    assert list(tasks[0]) == ReportExportService.TASK_HEADERS
    assert tasks[1][:5] == ("Book venue", "LOGISTICS", "HIGH", "NOT_STARTED", 0)
    team = list(wb["Team"].iter_rows(values_only=True))
    assert team[1][:3] == (ORGANIZER, "WORKSPACE_OWNER", "ACTIVE")
    expenses = list(wb["Expenses"].iter_rows(values_only=True))
    assert expenses[1][:4] == ("Deposit", "VENUE", 250.0, "PENDING")
    assert "TasksTable" in wb["Tasks"].tables


def test_empty_sheets_keep_headers_without_table(exporter, workspace):
    wb = load_workbook(io.BytesIO(exporter.export_workspace(workspace.id, ORGANIZER)))

    rows = list(wb["Expenses"].iter_rows(values_only=True))
    assert rows == [tuple(ReportExportService.EXPENSE_HEADERS)]
    assert len(wb["Expenses"].tables) == 0


def test_export_is_audited(db_session, exporter, workspace):
    exporter.export_workspace(workspace.id, ORGANIZER)

    log = db_session.query(AuditLog).filter_by(action="WORKSPACE_EXPORTED").one()
    assert log.details == {"tasks": 0, "members": 1, "expenses": 0}


def test_export_requires_view_analytics(exporter, workspace, add_member):
    add_member(workspace.id, "volunteer-1")
    with pytest.raises(AccessDeniedError):
        exporter.export_workspace(workspace.id, "volunteer-1")


def test_export_filename_is_sanitized(exporter):
    name = exporter.export_filename("Tech Summit / 2026", now=datetime(2026, 3, 1))
    assert name == "Tech_Summit___2026_report_20260301.xlsx"
