"""
Service metadata endpoints: health, permission catalogue, roles and platform stats
"""
from datetime import datetime
from fastapi import APIRouter, Depends
from typing import List

from constants import Permission, WorkspaceRole
from dependencies import get_workspace_service
from schemas import HealthCheck, PermissionInfo, PlatformStats, RoleInfo
from services.workspace_service import WorkspaceService
from utils.error_handlers import handle_api_errors

SERVICE_NAME = "Workspace Hub API"
SERVICE_VERSION = "1.0.0"

router = APIRouter()


@router.get("/health", response_model=HealthCheck)
def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": datetime.utcnow(),
    }


@router.get("/permissions", response_model=List[PermissionInfo])
def list_permissions():
    return [{"permission": p.value, "description": Permission.describe(p)} for p in Permission]


@router.get("/roles", response_model=List[RoleInfo])
def list_roles():
    """Workspace roles with the permissions they grant by default"""
    return [{"role": r.value, "permissions": WorkspaceRole.default_permissions(r)} for r in WorkspaceRole]


@router.get("/stats", response_model=PlatformStats)
@handle_api_errors("Get platform stats")
def platform_stats(service: WorkspaceService = Depends(get_workspace_service)):
    return service.platform_stats()
