"""
WebSocket push of workspace events

Every connection gets its own bounded send queue drained by a sender task,
so a broadcast only enqueues. When a queue is full the message is dropped
for that client and logged.

Clients may subscribe to specific workspaces; a connection without any
subscription receives every workspace event.
"""
from fastapi import WebSocket, WebSocketDisconnect
from typing import Dict, Optional, Set
import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

from constants import WebSocketConfig

logger = logging.getLogger(__name__)


@dataclass
class _Client:
    client_id: str
    queue: asyncio.Queue
    connected_at: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    workspaces: Set[str] = field(default_factory=set)
    sender: Optional[asyncio.Task] = None

    def wants(self, workspace_id: Optional[str]) -> bool:
        return not self.workspaces or workspace_id is None or workspace_id in self.workspaces


class ConnectionManager:
    """
    Tracks connected clients and fans workspace events out to them.

    Event types:
    - task.created / task.updated / task.deleted / task.bulk_status / task.bulk_deleted
    - channel.message
    - team.member
    - workspace.status
    - error
    """

    def __init__(self):
        self.clients: Dict[WebSocket, _Client] = {}

    async def connect(self, websocket: WebSocket, client_id: str = None):
        await websocket.accept()
        client = _Client(
            client_id=client_id or f"client-{id(websocket)}",
            queue=asyncio.Queue(maxsize=WebSocketConfig.SEND_QUEUE_SIZE),
        )
        client.sender = asyncio.create_task(self._drain(websocket, client.queue))
        self.clients[websocket] = client

        logger.info(f"WebSocket client {client.client_id} connected ({len(self.clients)} open)")

        await websocket.send_json({
            "type": "connection",
            "status": "connected",
            "message": "Connected to Workspace Hub WebSocket"
        })

    def disconnect(self, websocket: WebSocket):
        client = self.clients.pop(websocket, None)
        if client is None:
            return
        if client.sender is not None:
            client.sender.cancel()
        logger.info(f"WebSocket client {client.client_id} disconnected ({len(self.clients)} open)")

    def subscribe(self, websocket: WebSocket, workspace_id: str):
        if websocket in self.clients:
            self.clients[websocket].workspaces.add(workspace_id)

    def unsubscribe(self, websocket: WebSocket, workspace_id: str):
        if websocket in self.clients:
            self.clients[websocket].workspaces.discard(workspace_id)

    async def _drain(self, websocket: WebSocket, queue: asyncio.Queue):
        """Send queued messages one at a time until the socket fails or the task is cancelled"""
        try:
            while True:
                text = await queue.get()
                try:
                    await websocket.send_text(text)
                except Exception as e:
                    # disconnect() cleans up once the receive loop notices
                    logger.warning(f"Failed to send to client: {e}")
                    return
        except asyncio.CancelledError:
            pass

    async def broadcast(self, message: dict, workspace_id: str = None, exclude: Set[WebSocket] = None):
        """
        Queue a message for every client interested in workspace_id.

        Args:
            message: JSON-serializable dict with at least a "type"
            workspace_id: Workspace the event belongs to, None for global events
            exclude: Connections to skip
        """
        message_type = message.get('type')
        if not self.clients:
            logger.debug(f"No clients connected for {message_type}")
            return

        message.setdefault('timestamp', datetime.utcnow().isoformat())
        if workspace_id:
            message.setdefault('workspace_id', workspace_id)
        text = json.dumps(message, default=str)

        queued, dropped = 0, 0
        for websocket, client in list(self.clients.items()):
            if (exclude and websocket in exclude) or not client.wants(workspace_id):
                continue
            try:
                client.queue.put_nowait(text)
                queued += 1
            except asyncio.QueueFull:
                dropped += 1
                logger.warning(f"Send queue full for {client.client_id}, dropping {message_type}")

        logger.debug(f"Queued {message_type} to {queued} clients, dropped {dropped}")

    async def _push(self, workspace_id: Optional[str], message_type: str, data: dict):
        await self.broadcast({"type": message_type, "data": data}, workspace_id=workspace_id)

    async def send_task_update(self, workspace_id: str, task_id: str, action: str, data: dict = None):
        """
        Args:
            action: created | updated | deleted | assigned | progress
            data: Task fields for client cache updates
        """
        await self._push(workspace_id, f"task.{action}", {"task_id": task_id, **(data or {})})

    async def send_tasks_bulk_update(self, workspace_id: str, task_ids: list, status: str = None, deleted: bool = False):
        await self._push(workspace_id, "task.bulk_deleted" if deleted else "task.bulk_status",
                         {"task_ids": list(task_ids), "status": status})

    async def send_channel_message(self, workspace_id: str, channel_id: str, message_data: dict):
        await self._push(workspace_id, "channel.message", {"channel_id": channel_id, **message_data})

    async def send_member_update(self, workspace_id: str, user_id: str, status: str, role: str = None):
        await self._push(workspace_id, "team.member", {"user_id": user_id, "status": status, "role": role})

    async def send_workspace_status(self, workspace_id: str, status: str, previous_status: str = None):
        await self._push(workspace_id, "workspace.status", {"status": status, "previous_status": previous_status})

    async def send_error(self, error_type: str, error_message: str, context: dict = None):
        """
        Args:
            error_type: e.g. "dissolution_failed"
            context: workspace_id and other identifiers, if any
        """
        context = context or {}
        await self._push(context.get("workspace_id"), "error", {
            "error_type": error_type,
            "error_message": error_message,
            "context": context,
        })


manager = ConnectionManager()


async def _handle_client_message(websocket: WebSocket, message: dict):
    message_type = message.get("type")
    workspace_id = message.get("workspace_id")

    if message_type == "ping":
        await websocket.send_json({"type": "pong"})
    elif message_type in ("subscribe", "unsubscribe") and workspace_id:
        if message_type == "subscribe":
            manager.subscribe(websocket, workspace_id)
        else:
            manager.unsubscribe(websocket, workspace_id)
        await websocket.send_json({"type": f"{message_type}d", "workspace_id": workspace_id})
    else:
        logger.warning(f"Unhandled client message type: {message_type}")


async def websocket_endpoint(websocket: WebSocket):
    """
    Serve one client: keepalive pings and workspace subscriptions in,
    workspace events out.
    """
    await manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON from client: {data}")
                continue
            if isinstance(message, dict):
                await _handle_client_message(websocket, message)

    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected normally")
    except Exception as e:
        logger.error(f"WebSocket error: {type(e).__name__}: {e}")
    finally:
        manager.disconnect(websocket)
