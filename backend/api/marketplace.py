"""
Marketplace API endpoints

Platform-wide payment settings, commission quotes and vendor verification
requirements, plus the workspace side of hiring: specialist
recommendations and the integration of hired specialists into a team.
"""
from fastapi import APIRouter, Depends, Query
from typing import List

from constants import HTTPStatus
from dependencies import get_current_user_id, get_marketplace_config_service, get_marketplace_integration_service
from schemas import (
    Channel,
    CommissionQuote,
    ConfigValidation,
    MarketplaceConfig,
    MarketplaceConfigUpdate,
    RecommendationRequest,
    ServiceRecommendation,
    Specialist,
    SpecialistIntegrate,
    SpecialistScopeUpdate,
    TeamAccessOverview,
    TeamGaps,
    VerificationRequirement,
)
from services.event_broadcaster import broadcaster
from services.marketplace_config_service import MarketplaceConfigService
from services.marketplace_integration_service import MarketplaceIntegrationService
from utils.error_handlers import handle_api_errors

router = APIRouter()


@router.get("/config", response_model=MarketplaceConfig)
@handle_api_errors("Get marketplace config")
def get_marketplace_config(service: MarketplaceConfigService = Depends(get_marketplace_config_service)):
    return service.get_config()


@router.put("/config", response_model=MarketplaceConfig)
@handle_api_errors("Update marketplace config")
def update_marketplace_config(
    request: MarketplaceConfigUpdate,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceConfigService = Depends(get_marketplace_config_service),
):
    """
    Merge the given fields over the current configuration.

    The merged result must validate (fee rate within 0..1, non-negative
    payout settings, default currency among the supported ones) or the
    update is rejected with 400.
    """
    return service.update_config(request.model_dump(exclude_unset=True), user_id)


@router.get("/config/validate", response_model=ConfigValidation)
@handle_api_errors("Validate marketplace config")
def validate_marketplace_config(service: MarketplaceConfigService = Depends(get_marketplace_config_service)):
    return service.validate_config()


@router.get("/config/commission", response_model=CommissionQuote)
@handle_api_errors("Calculate commission")
def calculate_commission(
    category: str = Query(..., min_length=1),
    amount: float = Query(...),
    service: MarketplaceConfigService = Depends(get_marketplace_config_service),
):
    return service.calculate_commission(category, amount)


@router.get("/config/verification/{category}", response_model=VerificationRequirement)
@handle_api_errors("Get verification requirements")
def get_verification_requirements(
    category: str,
    service: MarketplaceConfigService = Depends(get_marketplace_config_service),
):
    return service.get_verification_requirements(category)


# Hired specialists inside a workspace

@router.get("/workspace/{workspace_id}/team-gaps", response_model=TeamGaps)
@handle_api_errors("Analyze team gaps")
def team_gaps(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    return service.analyze_team_gaps(workspace_id, user_id)


@router.post("/workspace/{workspace_id}/recommendations", response_model=List[ServiceRecommendation])
@handle_api_errors("Recommend specialists")
def recommend_specialists(
    workspace_id: str,
    request: RecommendationRequest,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    """Rank the given marketplace services by how well they fill the team's gaps"""
    return service.recommend_services(
        workspace_id, user_id,
        [c.model_dump() for c in request.candidates],
        limit=request.limit,
        preferred_categories=[c.value for c in request.preferred_categories] if request.preferred_categories else None,
    )


@router.get("/workspace/{workspace_id}/specialists", response_model=List[Specialist])
@handle_api_errors("List specialists")
def list_specialists(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    return service.list_specialists(workspace_id, user_id)


@router.post("/workspace/{workspace_id}/specialists", response_model=Specialist, status_code=HTTPStatus.CREATED)
@handle_api_errors("Integrate specialist")
async def integrate_specialist(
    workspace_id: str,
    request: SpecialistIntegrate,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    specialist = service.integrate_specialist(
        workspace_id, user_id, request.specialist_user_id, request.business_name,
        request.service_category.value, request.access_level.value,
        role=request.role.value if request.role else None,
        task_ids=request.task_ids,
        booking_reference=request.booking_reference,
    )
    await broadcaster.member_changed(specialist.member)
    return specialist


@router.put("/workspace/{workspace_id}/specialists/{specialist_user_id}/scope", response_model=Specialist)
@handle_api_errors("Update specialist task scope")
def update_specialist_scope(
    workspace_id: str,
    specialist_user_id: str,
    request: SpecialistScopeUpdate,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    return service.update_task_scope(workspace_id, user_id, specialist_user_id, request.task_ids)


@router.post("/workspace/{workspace_id}/specialists/channels", response_model=List[Channel],
             status_code=HTTPStatus.CREATED)
@handle_api_errors("Set up specialist channels")
def setup_specialist_channels(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    return service.setup_communication(workspace_id, user_id)


@router.get("/workspace/{workspace_id}/team-access", response_model=TeamAccessOverview)
@handle_api_errors("Get team access overview")
def team_access(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: MarketplaceIntegrationService = Depends(get_marketplace_integration_service),
):
    return service.team_access_overview(workspace_id, user_id)
