"""
Team API endpoints
"""
from fastapi import APIRouter, Depends
from typing import List, Optional

from constants import HTTPStatus
from dependencies import get_current_user_id, get_team_service
from schemas import (
    DepartureResult,
    InviteRequest,
    Recognition,
    RecognitionCreate,
    RoleUpdateRequest,
    TeamMember,
)
from services.event_broadcaster import broadcaster
from services.team_service import TeamService
from utils.error_handlers import handle_api_errors

router = APIRouter()


def _permission_values(permissions):
    return [p.value for p in permissions] if permissions is not None else None


@router.get("/{workspace_id}/members", response_model=List[TeamMember])
@handle_api_errors("List team members")
def list_members(
    workspace_id: str,
    status: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    return service.list_members(workspace_id, user_id, status)


@router.post("/{workspace_id}/invite", response_model=TeamMember, status_code=HTTPStatus.CREATED)
@handle_api_errors("Invite team member")
async def invite_member(
    workspace_id: str,
    request: InviteRequest,
    user_id: str = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Add a user to the workspace team.

    Requires INVITE_MEMBERS or MANAGE_TEAM; granting explicit permissions
    also requires MANAGE_PERMISSIONS.
    """
    member = service.invite(workspace_id, user_id, request.user_id, request.role.value,
                            _permission_values(request.permissions))
    await broadcaster.member_changed(member)
    return member


@router.put("/{workspace_id}/members/{member_user_id}/role", response_model=TeamMember)
@handle_api_errors("Update member role")
async def update_member_role(
    workspace_id: str,
    member_user_id: str,
    request: RoleUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    member = service.update_role(workspace_id, user_id, member_user_id, request.role.value,
                                 _permission_values(request.permissions))
    await broadcaster.member_changed(member)
    return member


@router.post("/{workspace_id}/members/{member_user_id}/depart", response_model=DepartureResult)
@handle_api_errors("Handle early departure")
async def depart_member(
    workspace_id: str,
    member_user_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    """
    Revoke a member who leaves early; their pending tasks go to the caller.
    """
    result = service.handle_early_departure(workspace_id, member_user_id, user_id)
    await broadcaster.member_departed(workspace_id, member_user_id, result["reassigned_task_ids"])
    return result


@router.get("/{workspace_id}/recognitions", response_model=List[Recognition])
@handle_api_errors("List recognitions")
def list_recognitions(
    workspace_id: str,
    recipient_id: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    return service.list_recognitions(workspace_id, user_id, recipient_id)


@router.post("/{workspace_id}/recognitions", response_model=Recognition, status_code=HTTPStatus.CREATED)
@handle_api_errors("Give recognition")
def give_recognition(
    workspace_id: str,
    request: RecognitionCreate,
    user_id: str = Depends(get_current_user_id),
    service: TeamService = Depends(get_team_service),
):
    return service.give_recognition(workspace_id, user_id, request.recipient_id, request.badge, request.message)
