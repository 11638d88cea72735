"""
Lifecycle API endpoints

Hooks called by the event system when an event is created or changes
status, plus the manual trigger for the scheduled dissolution pass.
These are system calls and carry no X-User-Id.
"""
from fastapi import APIRouter, Depends
import logging

from constants import HTTPStatus
from dependencies import get_lifecycle_service
from domain.value_objects import WorkspaceStatus
from schemas import DissolutionRun, EventStatusChange, EventStatusResult, LifecycleStatus, Workspace
from services.event_broadcaster import broadcaster
from services.lifecycle_scheduler import get_scheduler
from services.lifecycle_service import LifecycleService
from utils.error_handlers import handle_api_errors

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/events/{event_id}/created", response_model=Workspace, status_code=HTTPStatus.CREATED)
@handle_api_errors("Event created hook")
async def event_created(
    event_id: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    """Provision the event's workspace; an existing one is returned as is"""
    workspace = service.on_event_created(event_id)
    await broadcaster.workspace_status(workspace)
    return workspace


@router.post("/events/{event_id}/status", response_model=EventStatusResult)
@handle_api_errors("Event status hook")
async def event_status_changed(
    event_id: str,
    request: EventStatusChange,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    result = service.on_event_status_changed(event_id, request.new_status.value, request.old_status.value)
    if result["action"] != "none":
        workspace = service.workspace_repo.get_by_id(result["workspace_id"])
        await broadcaster.workspace_status(workspace, result["previous_status"])
    return result


@router.get("/events/{event_id}", response_model=LifecycleStatus)
@handle_api_errors("Get lifecycle status")
def get_lifecycle_status(
    event_id: str,
    service: LifecycleService = Depends(get_lifecycle_service),
):
    return service.lifecycle_status(event_id)


@router.post("/process-dissolutions", response_model=DissolutionRun)
@handle_api_errors("Process dissolutions")
async def process_dissolutions(service: LifecycleService = Depends(get_lifecycle_service)):
    """Run the scheduled dissolution pass now"""
    result = service.process_automatic_dissolution()
    for workspace_id in result["dissolved"]:
        workspace = service.workspace_repo.get_by_id(workspace_id)
        await broadcaster.workspace_status(workspace, WorkspaceStatus.WINDING_DOWN.value)
    logger.info(f"Manual dissolution pass: {len(result['dissolved'])} dissolved")
    return result


@router.get("/scheduler")
def get_scheduler_status():
    return get_scheduler().get_status()
