"""
Workspace template API endpoints
"""
from fastapi import APIRouter, Depends
from typing import List, Optional

from constants import HTTPStatus
from dependencies import get_current_user_id, get_template_service
from schemas import Template, TemplateCreate, TemplateFromWorkspace, TemplateRecommendation
from services.template_service import TemplateService
from utils.error_handlers import handle_api_errors

router = APIRouter()


@router.get("/", response_model=List[Template])
@handle_api_errors("List templates")
def list_templates(
    category: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    """Public templates plus the caller's private ones, most used first"""
    return service.list_templates(user_id, category)


@router.post("/", response_model=Template, status_code=HTTPStatus.CREATED)
@handle_api_errors("Create template")
def create_template(
    request: TemplateCreate,
    user_id: str = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    return service.create_template(user_id, request.name, request.description, request.category,
                                   request.structure, request.is_public)


@router.get("/recommendations/{event_id}", response_model=List[TemplateRecommendation])
@handle_api_errors("Get template recommendations")
def template_recommendations(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    return service.recommendations(event_id, user_id)


@router.post("/from-workspace/{workspace_id}", response_model=Template, status_code=HTTPStatus.CREATED)
@handle_api_errors("Create template from workspace")
def create_template_from_workspace(
    workspace_id: str,
    request: TemplateFromWorkspace,
    user_id: str = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    return service.create_from_workspace(workspace_id, user_id, request.name, request.description,
                                         request.category, request.is_public)


@router.get("/{template_id}", response_model=Template)
@handle_api_errors("Get template")
def get_template(
    template_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TemplateService = Depends(get_template_service),
):
    return service.get_template(template_id, user_id)
