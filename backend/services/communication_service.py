"""
Communication Service

Workspace channels, messages and role-targeted broadcasts.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from constants import ChannelType, Permission, WorkspaceRole
from domain.value_objects import WorkspaceStatus
from exceptions import AccessDeniedError, ConflictError, LifecycleError, NotFoundError, ValidationError
from models import ChannelMessage, TeamMember, WorkspaceChannel
from repositories import ChannelRepository, TeamMemberRepository
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger
from utils.transaction import transaction

logger = logging.getLogger(__name__)

BROADCAST_PRIORITIES = ("NORMAL", "HIGH", "URGENT")


def role_channel_name(role: str) -> str:
    """Channel used for broadcasts to one role, e.g. role-team-lead"""
    return "role-" + WorkspaceRole(role).value.lower().replace("_", "-")


class CommunicationService:
    """Service for workspace channels and messaging."""

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.channel_repo = ChannelRepository(db)
        self.member_repo = TeamMemberRepository(db)

    def _can_see(self, channel: WorkspaceChannel, member: TeamMember) -> bool:
        if not channel.is_private:
            return True
        return member.user_id in (channel.members or []) or self.access.has_permission(member, Permission.MANAGE_CHANNELS)

    def _channel_for(self, channel_id: str, user_id: str):
        channel = self.channel_repo.get_by_id(channel_id)
        if not channel:
            raise NotFoundError("Channel", channel_id)
        member = self.access.require_member(channel.workspace_id, user_id)
        if not self._can_see(channel, member):
            raise AccessDeniedError("Access denied: private channel", workspace_id=channel.workspace_id)
        return channel, member

    def list_channels(self, workspace_id: str, user_id: str) -> List[WorkspaceChannel]:
        """Channels visible to the caller; private ones only for their members."""
        self.access.get_workspace(workspace_id)
        member = self.access.require_member(workspace_id, user_id)
        return [c for c in self.channel_repo.list_for_workspace(workspace_id) if self._can_see(c, member)]

    def create_channel(self, workspace_id: str, user_id: str, name: str, channel_type: str = ChannelType.GENERAL.value,
                       description: Optional[str] = None, is_private: bool = False,
                       members: Optional[List[str]] = None) -> WorkspaceChannel:
        """
        Raises:
            ConflictError: If the workspace already has a channel with that name
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_CHANNELS)
        if not WorkspaceStatus.from_string(workspace.status).is_accessible():
            raise LifecycleError(workspace_id, workspace.status, "Channels cannot be created in this workspace")
        if self.channel_repo.get_by_name(workspace_id, name):
            raise ConflictError("Channel", "Channel name already exists in this workspace")

        channel_members = list(dict.fromkeys((members or []) + [user_id])) if is_private else []
        with transaction(self.db, "Create channel"):
            channel = self.channel_repo.create(WorkspaceChannel(
                workspace_id=workspace_id,
                name=name,
                type=ChannelType(channel_type).value,
                description=description,
                is_private=is_private,
                members=channel_members,
            ))
            self.audit.log("CHANNEL_CREATED", "channel", workspace_id=workspace_id,
                           user_id=user_id, resource_id=channel.id, details={"name": name})
        return channel

    def list_messages(self, channel_id: str, user_id: str, limit: int = 50, before=None) -> List[ChannelMessage]:
        self._channel_for(channel_id, user_id)
        return self.channel_repo.list_messages(channel_id, limit=limit, before=before)

    def post_message(self, channel_id: str, user_id: str, content: str, message_type: str = "TEXT",
                     is_priority: bool = False) -> ChannelMessage:
        """
        Post to a channel. Announcement channels accept posts only from
        members with MANAGE_CHANNELS.

        Raises:
            AccessDeniedError: Private channel or announcement without permission
            LifecycleError: If the workspace is dissolved
        """
        channel, member = self._channel_for(channel_id, user_id)
        workspace = self.access.get_workspace(channel.workspace_id)
        if not WorkspaceStatus.from_string(workspace.status).is_accessible():
            raise LifecycleError(workspace.id, workspace.status, "Workspace is read-only")
        if channel.type == ChannelType.ANNOUNCEMENT.value:
            self.access.require_permission(channel.workspace_id, user_id, Permission.MANAGE_CHANNELS)

        with transaction(self.db, "Post message"):
            message = self.channel_repo.add_message(channel_id, user_id, content, message_type, is_priority)
        return message

    def broadcast(self, workspace_id: str, user_id: str, content: str,
                  target_roles: Optional[List[str]] = None, priority: str = "NORMAL") -> List[ChannelMessage]:
        """
        Send an announcement to the whole team or to specific roles.

        Without target roles the message goes to the announcement channel.
        With target roles each role gets the message in its role channel;
        missing channels are created on the fly.

        Returns:
            The messages that were posted, one per target channel
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_CHANNELS)
        if workspace.status != WorkspaceStatus.ACTIVE.value:
            raise LifecycleError(workspace_id, workspace.status, "Broadcasts require an active workspace")
        if priority not in BROADCAST_PRIORITIES:
            raise ValidationError(f"Invalid priority: {priority}", {"priority": priority})
        is_priority = priority != "NORMAL"

        messages = []
        with transaction(self.db, "Broadcast message"):
            if not target_roles:
                channel = self.channel_repo.get_first_of_type(workspace_id, ChannelType.ANNOUNCEMENT.value)
                if channel is None:
                    channel = self.channel_repo.get_by_name(workspace_id, "announcements") or self.channel_repo.create(
                        WorkspaceChannel(
                            workspace_id=workspace_id,
                            name="announcements",
                            type=ChannelType.ANNOUNCEMENT.value,
                            description="Important announcements and updates",
                        )
                    )
                messages.append(self.channel_repo.add_message(channel.id, user_id, content, "BROADCAST", is_priority))
            else:
                for role in dict.fromkeys(WorkspaceRole(r).value for r in target_roles):
                    channel = self._role_channel(workspace_id, role)
                    messages.append(self.channel_repo.add_message(channel.id, user_id, content, "BROADCAST", is_priority))

            self.audit.log("MESSAGE_BROADCAST", "channel", workspace_id=workspace_id, user_id=user_id, details={
                "target_roles": list(target_roles or ["ALL"]), "priority": priority,
            })
        logger.info(f"Broadcast in workspace {workspace_id} to {len(messages)} channel(s), priority {priority}")
        return messages

    def _role_channel(self, workspace_id: str, role: str) -> WorkspaceChannel:
        name = role_channel_name(role)
        members = [m.user_id for m in self.member_repo.list_by_role(workspace_id, role)]
        channel = self.channel_repo.get_by_name(workspace_id, name)
        if channel is None:
            return self.channel_repo.create(WorkspaceChannel(
                workspace_id=workspace_id,
                name=name,
                type=ChannelType.ROLE_BASED.value,
                description=f"Channel for {role.replace('_', ' ').title()} members",
                is_private=True,
                members=members,
            ))
        # Keep the channel membership in line with the current role holders
        channel.members = list(dict.fromkeys(list(channel.members or []) + members))
        return channel

    def search(self, workspace_id: str, user_id: str, query: str, limit: int = 50) -> Dict[str, Any]:
        """Message search across the channels the caller can see."""
        if not query or not query.strip():
            raise ValidationError("Search query cannot be empty")
        channel_ids = [c.id for c in self.list_channels(workspace_id, user_id)]
        return {
            "query": query,
            "messages": self.channel_repo.search_messages(channel_ids, query.strip(), limit=limit),
        }
