"""
Workspace API endpoints

Provisioning, detail, settings, lifecycle transitions, analytics,
report export and expenses.
"""
from fastapi import APIRouter, Depends, Response
from typing import List, Optional
import logging

from constants import HTTPStatus
from dependencies import (
    get_current_user_id,
    get_expense_service,
    get_lifecycle_service,
    get_report_export_service,
    get_template_service,
    get_workspace_service,
)
from schemas import (
    ApplyTemplateRequest,
    BulkExpenseStatusRequest,
    BulkResult,
    DissolveRequest,
    Expense,
    ExpenseCreate,
    ProvisionRequest,
    TemplateApplication,
    Workspace,
    WorkspaceAnalytics,
    WorkspaceDashboard,
    WorkspaceDetail,
    WorkspaceHealth,
    WorkspaceStatusResponse,
    WorkspaceUpdate,
)
from services.event_broadcaster import broadcaster
from services.expense_service import ExpenseService
from services.lifecycle_service import LifecycleService
from services.report_export_service import XLSX_MEDIA_TYPE, ReportExportService
from services.template_service import TemplateService
from services.workspace_service import WorkspaceService
from utils.error_handlers import handle_api_errors

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/provision", response_model=Workspace, status_code=HTTPStatus.CREATED)
@handle_api_errors("Provision workspace")
async def provision_workspace(
    request: ProvisionRequest,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """
    Provision the workspace of an event. Only the event organizer may call this.

    Returns:
        The new workspace (ACTIVE, organizer as owner, default channels)
    """
    workspace = service.provision(request.event_id, user_id)
    await broadcaster.workspace_status(workspace)
    return workspace


@router.get("/user/{user_id}", response_model=List[Workspace])
@handle_api_errors("List user workspaces")
def list_user_workspaces(
    user_id: str,
    caller_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.list_for_user(user_id, caller_id)


@router.get("/event/{event_id}", response_model=WorkspaceDetail)
@handle_api_errors("Get workspace by event")
def get_workspace_by_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.get_by_event(event_id, user_id)


@router.get("/{workspace_id}", response_model=WorkspaceDetail)
@handle_api_errors("Get workspace")
def get_workspace(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    """Workspace with team, channels and task summary (members only)"""
    return service.get_workspace(workspace_id, user_id)


@router.put("/{workspace_id}", response_model=Workspace)
@handle_api_errors("Update workspace")
def update_workspace(
    workspace_id: str,
    request: WorkspaceUpdate,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.update(workspace_id, user_id, name=request.name,
                          description=request.description, settings=request.settings)


@router.post("/{workspace_id}/dissolve", response_model=Workspace)
@handle_api_errors("Dissolve workspace")
async def dissolve_workspace(
    workspace_id: str,
    request: Optional[DissolveRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """
    Start dissolution after the event is over.

    The workspace winds down for the retention period; a retention of 0
    dissolves it immediately.
    """
    retention = request.retention_period_days if request else None
    workspace = service.dissolve(workspace_id, user_id, retention)
    await broadcaster.workspace_status(workspace)
    return workspace


@router.post("/{workspace_id}/wind-down", response_model=Workspace)
@handle_api_errors("Wind down workspace")
async def wind_down_workspace(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    workspace = service.initiate_wind_down(workspace_id, user_id)
    await broadcaster.workspace_status(workspace, "ACTIVE")
    return workspace


@router.post("/{workspace_id}/apply-template", response_model=TemplateApplication)
@handle_api_errors("Apply template")
def apply_template(
    workspace_id: str,
    request: ApplyTemplateRequest,
    user_id: str = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    return service.apply_to_workspace(workspace_id, user_id, request.template_id)


@router.get("/{workspace_id}/analytics", response_model=WorkspaceAnalytics)
@handle_api_errors("Get workspace analytics")
def get_workspace_analytics(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.analytics(workspace_id, user_id)


@router.get("/{workspace_id}/dashboard", response_model=WorkspaceDashboard)
@handle_api_errors("Get workspace dashboard")
def get_workspace_dashboard(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.dashboard(workspace_id, user_id)


@router.get("/{workspace_id}/health", response_model=WorkspaceHealth)
@handle_api_errors("Get workspace health")
def get_workspace_health(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: WorkspaceService = Depends(get_workspace_service),
):
    return service.health(workspace_id, user_id)


@router.get("/{workspace_id}/status", response_model=WorkspaceStatusResponse)
@handle_api_errors("Get workspace status")
def get_workspace_status(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: LifecycleService = Depends(get_lifecycle_service),
):
    return service.get_status(workspace_id, user_id)


@router.post("/{workspace_id}/export")
@handle_api_errors("Export workspace")
def export_workspace(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ReportExportService = Depends(get_report_export_service),
):
    """Download tasks, team and expenses as an Excel workbook"""
    content = service.export_workspace(workspace_id, user_id)
    filename = service.export_filename(service.access.get_workspace(workspace_id).name)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Expenses

@router.get("/{workspace_id}/expenses", response_model=List[Expense])
@handle_api_errors("List expenses")
def list_expenses(
    workspace_id: str,
    status: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return service.list_expenses(workspace_id, user_id, status)


@router.post("/{workspace_id}/expenses", response_model=Expense, status_code=HTTPStatus.CREATED)
@handle_api_errors("Submit expense")
def submit_expense(
    workspace_id: str,
    request: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    return service.submit(workspace_id, user_id, request.description, request.amount, request.category)


@router.post("/{workspace_id}/expenses/bulk-status", response_model=BulkResult)
@handle_api_errors("Bulk update expense status")
def bulk_update_expense_status(
    workspace_id: str,
    request: BulkExpenseStatusRequest,
    user_id: str = Depends(get_current_user_id),
    service: ExpenseService = Depends(get_expense_service),
):
    """All-or-nothing status change for several expenses"""
    return service.bulk_update_status(workspace_id, user_id, request.expense_ids, request.status.value)
