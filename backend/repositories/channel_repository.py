"""
Channel repository covering workspace channels and their messages.
"""

from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func

from models import WorkspaceChannel, ChannelMessage
from .base_repository import BaseRepository


class ChannelRepository(BaseRepository[WorkspaceChannel]):
    """Repository for WorkspaceChannel model operations."""

    def __init__(self, db: Session):
        super().__init__(db, WorkspaceChannel)

    def list_for_workspace(self, workspace_id: str) -> List[WorkspaceChannel]:
        return self.query().filter(
            self.model.workspace_id == workspace_id
        ).order_by(self.model.created_at).all()

    def get_by_name(self, workspace_id: str, name: str) -> Optional[WorkspaceChannel]:
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.name == name,
        ).first()

    def get_first_of_type(self, workspace_id: str, channel_type: str) -> Optional[WorkspaceChannel]:
        return self.query().filter(
            self.model.workspace_id == workspace_id,
            self.model.type == channel_type,
        ).order_by(self.model.created_at).first()

    def list_messages(self, channel_id: str, limit: int = 50, before=None) -> List[ChannelMessage]:
        """
        Most recent messages in a channel, returned oldest first.

        Args:
            channel_id: Channel UUID
            limit: Maximum number of messages
            before: Optional datetime cursor for paging backwards
        """
        query = self.db.query(ChannelMessage).filter(ChannelMessage.channel_id == channel_id)
        if before is not None:
            query = query.filter(ChannelMessage.created_at < before)
        messages = query.order_by(ChannelMessage.created_at.desc()).limit(limit).all()
        return list(reversed(messages))

    def add_message(self, channel_id: str, sender_id: str, content: str,
                    message_type: str = 'TEXT', is_priority: bool = False) -> ChannelMessage:
        message = ChannelMessage(
            channel_id=channel_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            is_priority=is_priority,
        )
        self.db.add(message)
        self.db.flush()
        return message

    def search_messages(self, channel_ids: List[str], text: str, limit: int = 50) -> List[ChannelMessage]:
        if not channel_ids:
            return []
        like = f"%{text.lower()}%"
        return self.db.query(ChannelMessage).filter(
            ChannelMessage.channel_id.in_(channel_ids),
            func.lower(ChannelMessage.content).like(like),
        ).order_by(ChannelMessage.created_at.desc()).limit(limit).all()
