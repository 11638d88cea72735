"""
Dependency injection providers for FastAPI.

This module provides factory functions for creating the audit logger and the
service instances, following the Dependency Inversion Principle. Services
receive their audit collaborator here, so tests can override a single
provider to swap in an in-memory recorder.
"""

from typing import Optional
from sqlalchemy.orm import Session
from fastapi import Depends, Header, HTTPException

from constants import HTTPStatus
from database import get_db
from services.audit_logger import AuditLogger
from services.communication_service import CommunicationService
from services.expense_service import ExpenseService
from services.interfaces import (
    IAuditLogger,
    ILifecycleService,
    IMarketplaceConfigService,
    ITaskService,
    IWorkspaceService,
)
from services.lifecycle_service import LifecycleService
from services.marketplace_config_service import MarketplaceConfigService
from services.marketplace_integration_service import MarketplaceIntegrationService
from services.report_export_service import ReportExportService
from services.security_service import SecurityService
from services.task_service import TaskService
from services.team_service import TeamService
from services.template_service import TemplateService
from services.workspace_service import WorkspaceService
from utils.logging_utils import set_logging_context


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Caller identity, set by the upstream auth gateway in X-User-Id.

    Raises:
        HTTPException: 401 when the header is missing or blank
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Missing X-User-Id header")
    user_id = x_user_id.strip()
    set_logging_context(user_id=user_id)
    return user_id


def get_audit_logger(db: Session = Depends(get_db)) -> IAuditLogger:
    """
    Factory function for the audit trail collaborator.

    Args:
        db: Database session (injected)

    Returns:
        IAuditLogger: Database-backed audit logger
    """
    return AuditLogger(db)


def get_workspace_service(db: Session = Depends(get_db),
                          audit: IAuditLogger = Depends(get_audit_logger)) -> IWorkspaceService:
    return WorkspaceService(db, audit)


def get_lifecycle_service(db: Session = Depends(get_db),
                          audit: IAuditLogger = Depends(get_audit_logger)) -> ILifecycleService:
    return LifecycleService(db, audit)


def get_team_service(db: Session = Depends(get_db),
                     audit: IAuditLogger = Depends(get_audit_logger)) -> TeamService:
    return TeamService(db, audit)


def get_task_service(db: Session = Depends(get_db),
                     audit: IAuditLogger = Depends(get_audit_logger)) -> ITaskService:
    """
    Factory function for creating TaskService instances.

    Args:
        db: Database session (injected)
        audit: Audit logger (injected)

    Returns:
        ITaskService: Task service implementation
    """
    return TaskService(db, audit)


def get_expense_service(db: Session = Depends(get_db),
                        audit: IAuditLogger = Depends(get_audit_logger)) -> ExpenseService:
    return ExpenseService(db, audit)


def get_communication_service(db: Session = Depends(get_db),
                              audit: IAuditLogger = Depends(get_audit_logger)) -> CommunicationService:
    return CommunicationService(db, audit)


def get_template_service(db: Session = Depends(get_db),
                         audit: IAuditLogger = Depends(get_audit_logger)) -> TemplateService:
    return TemplateService(db, audit)


def get_marketplace_config_service(db: Session = Depends(get_db),
                                   audit: IAuditLogger = Depends(get_audit_logger)) -> IMarketplaceConfigService:
    """
    Factory function for creating MarketplaceConfigService instances.

    Note: The configuration is read from the database on every request, so
    an update is visible to the next call without a restart.
    """
    return MarketplaceConfigService(db, audit)


def get_marketplace_integration_service(db: Session = Depends(get_db),
                                        audit: IAuditLogger = Depends(get_audit_logger)) -> MarketplaceIntegrationService:
    return MarketplaceIntegrationService(db, audit)


def get_security_service(db: Session = Depends(get_db),
                         audit: IAuditLogger = Depends(get_audit_logger)) -> SecurityService:
    return SecurityService(db, audit)


def get_report_export_service(db: Session = Depends(get_db),
                              audit: IAuditLogger = Depends(get_audit_logger)) -> ReportExportService:
    return ReportExportService(db, audit)
