"""
Communication API endpoints: channels, messages, broadcasts and search
"""
from fastapi import APIRouter, Depends, Query
from datetime import datetime
from typing import List, Optional

from constants import HTTPStatus, Pagination
from dependencies import get_communication_service, get_current_user_id
from schemas import (
    BroadcastRequest,
    Channel,
    ChannelCreate,
    ChannelMessage,
    MessageCreate,
    MessageSearchResult,
)
from services.communication_service import CommunicationService
from services.event_broadcaster import broadcaster
from utils.error_handlers import handle_api_errors

router = APIRouter()


@router.get("/{workspace_id}/channels", response_model=List[Channel])
@handle_api_errors("List channels")
def list_channels(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    service: CommunicationService = Depends(get_communication_service),
):
    return service.list_channels(workspace_id, user_id)


@router.post("/{workspace_id}/channels", response_model=Channel, status_code=HTTPStatus.CREATED)
@handle_api_errors("Create channel")
def create_channel(
    workspace_id: str,
    request: ChannelCreate,
    user_id: str = Depends(get_current_user_id),
    service: CommunicationService = Depends(get_communication_service),
):
    """Channel names are unique per workspace (409 on a duplicate)"""
    return service.create_channel(workspace_id, user_id, request.name, request.type.value,
                                  request.description, request.is_private, request.members)


@router.get("/channels/{channel_id}/messages", response_model=List[ChannelMessage])
@handle_api_errors("List messages")
def list_messages(
    channel_id: str,
    limit: int = Query(Pagination.DEFAULT_LIMIT, ge=1, le=Pagination.MAX_LIMIT),
    before: Optional[datetime] = None,
    user_id: str = Depends(get_current_user_id),
    service: CommunicationService = Depends(get_communication_service),
):
    return service.list_messages(channel_id, user_id, limit=limit, before=before)


@router.post("/channels/{channel_id}/messages", response_model=ChannelMessage, status_code=HTTPStatus.CREATED)
@handle_api_errors("Post message")
async def post_message(
    channel_id: str,
    request: MessageCreate,
    user_id: str = Depends(get_current_user_id),
    service: CommunicationService = Depends(get_communication_service),
):
    message = service.post_message(channel_id, user_id, request.content, request.message_type, request.is_priority)
    await broadcaster.message_posted(message.channel.workspace_id, message)
    return message


@router.post("/{workspace_id}/broadcast", response_model=List[ChannelMessage], status_code=HTTPStatus.CREATED)
@handle_api_errors("Broadcast message")
async def broadcast_message(
    workspace_id: str,
    request: BroadcastRequest,
    user_id: str = Depends(get_current_user_id),
    service: CommunicationService = Depends(get_communication_service),
):
    """
    Announce to the whole team, or to each target role through its role
    channel. Requires MANAGE_CHANNELS.
    """
    roles = [r.value for r in request.target_roles] if request.target_roles else None
    messages = service.broadcast(workspace_id, user_id, request.content, roles, request.priority)
    for message in messages:
        await broadcaster.message_posted(workspace_id, message)
    return messages


@router.get("/{workspace_id}/search", response_model=MessageSearchResult)
@handle_api_errors("Search messages")
def search_messages(
    workspace_id: str,
    q: str = Query(..., min_length=1),
    limit: int = Query(Pagination.DEFAULT_LIMIT, ge=1, le=Pagination.MAX_LIMIT),
    user_id: str = Depends(get_current_user_id),
    service: CommunicationService = Depends(get_communication_service),
):
    return service.search(workspace_id, user_id, q, limit=limit)
