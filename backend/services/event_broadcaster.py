"""
Event Broadcasting Service

Helpers for routes and background jobs to push committed workspace changes
to WebSocket clients.
"""
from services.websocket import manager
from models import WorkspaceTask, ChannelMessage, TeamMember, Workspace
import logging

logger = logging.getLogger(__name__)


def _task_payload(task: WorkspaceTask) -> dict:
    return {
        "title": task.title,
        "status": task.status,
        "priority": task.priority,
        "category": task.category,
        "assignee_id": task.assignee_id,
        "progress": task.progress,
        "updated_at": task.updated_at.isoformat() if task.updated_at else None,
    }


class EventBroadcaster:
    """
    Translates model instances into WebSocket messages.

    Call only after the session has been committed so clients never see a
    change that is later rolled back.
    """

    def __init__(self, connection_manager=None):
        self.manager = connection_manager or manager

    async def task_changed(self, task: WorkspaceTask, action: str):
        """
        Broadcast a single task change

        Args:
            task: Task model instance
            action: created | updated | assigned | progress
        """
        await self.manager.send_task_update(task.workspace_id, task.id, action, _task_payload(task))
        logger.debug(f"Task {task.id} {action} broadcast (workspace {task.workspace_id})")

    async def task_deleted(self, workspace_id: str, task_id: str):
        await self.manager.send_task_update(workspace_id, task_id, "deleted")

    async def tasks_bulk_status(self, workspace_id: str, task_ids: list, status: str):
        await self.manager.send_tasks_bulk_update(workspace_id, task_ids, status=status)

    async def tasks_bulk_deleted(self, workspace_id: str, task_ids: list):
        await self.manager.send_tasks_bulk_update(workspace_id, task_ids, deleted=True)

    async def message_posted(self, workspace_id: str, message: ChannelMessage):
        """
        Broadcast a channel message

        Args:
            workspace_id: Workspace of the channel
            message: Committed ChannelMessage
        """
        await self.manager.send_channel_message(workspace_id, message.channel_id, {
            "id": message.id,
            "sender_id": message.sender_id,
            "content": message.content,
            "message_type": message.message_type,
            "is_priority": bool(message.is_priority),
            "created_at": message.created_at.isoformat() if message.created_at else None,
        })

    async def member_changed(self, member: TeamMember):
        await self.manager.send_member_update(member.workspace_id, member.user_id, member.status, member.role)

    async def member_departed(self, workspace_id: str, user_id: str, reassigned_task_ids: list):
        await self.manager.send_member_update(workspace_id, user_id, "INACTIVE")
        if reassigned_task_ids:
            await self.manager.send_tasks_bulk_update(workspace_id, reassigned_task_ids)

    async def workspace_status(self, workspace: Workspace, previous_status: str = None):
        """
        Broadcast a lifecycle transition, skipped when the status did not change
        """
        if previous_status is not None and previous_status == workspace.status:
            return
        await self.manager.send_workspace_status(workspace.id, workspace.status, previous_status)
        logger.info(f"Workspace {workspace.id} status: {previous_status} -> {workspace.status}")


# Shared instance used by the API routes and the lifecycle scheduler
broadcaster = EventBroadcaster()
