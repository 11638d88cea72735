"""
Security and compliance API endpoints
"""
from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import Optional

from constants import Pagination
from dependencies import get_current_user_id, get_security_service
from schemas import (
    AuditLogPage,
    AuditStats,
    ComplianceReport,
    EmergencyRevokeRequest,
    EmergencyRevokeResult,
)
from services.event_broadcaster import broadcaster
from services.security_service import SecurityService
from utils.error_handlers import handle_api_errors

router = APIRouter()


@router.get("/{workspace_id}/audit-logs", response_model=AuditLogPage)
@handle_api_errors("Get audit logs")
def get_audit_logs(
    workspace_id: str,
    limit: int = Query(Pagination.DEFAULT_LIMIT, ge=1, le=Pagination.MAX_LIMIT),
    offset: int = Query(0, ge=0),
    action: Optional[str] = None,
    resource: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user_id: str = Depends(get_current_user_id),
    service: SecurityService = Depends(get_security_service),
):
    """Newest first. Owners and members with MANAGE_WORKSPACE only."""
    return service.audit_logs(workspace_id, user_id, limit=limit, offset=offset, action=action,
                              resource=resource, start_date=start_date, end_date=end_date)


@router.get("/{workspace_id}/audit-stats", response_model=AuditStats)
@handle_api_errors("Get audit stats")
def get_audit_stats(
    workspace_id: str,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user_id: str = Depends(get_current_user_id),
    service: SecurityService = Depends(get_security_service),
):
    return service.audit_stats(workspace_id, user_id, start_date=start_date, end_date=end_date)


@router.get("/{workspace_id}/compliance-report", response_model=ComplianceReport)
@handle_api_errors("Get compliance report")
def get_compliance_report(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: SecurityService = Depends(get_security_service),
):
    return service.compliance_report(workspace_id, user_id)


@router.post("/{workspace_id}/emergency-revoke", response_model=EmergencyRevokeResult)
@handle_api_errors("Emergency revoke")
async def emergency_revoke(
    workspace_id: str,
    request: EmergencyRevokeRequest,
    user_id: str = Depends(get_current_user_id),
    service: SecurityService = Depends(get_security_service),
):
    result = service.emergency_revoke(workspace_id, user_id, request.reason)
    await broadcaster.workspace_status(service.access.get_workspace(workspace_id))
    return result
