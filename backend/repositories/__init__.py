"""
Repository layer for data access abstraction.

This package contains repository classes that encapsulate database queries
and provide a clean interface for data access operations.
"""

from .base_repository import BaseRepository
from .workspace_repository import EventRepository, WorkspaceRepository
from .team_repository import TeamMemberRepository, RecognitionRepository, SpecialistRepository
from .task_repository import TaskRepository
from .channel_repository import ChannelRepository
from .audit_repository import AuditLogRepository
from .template_repository import TaskTemplateRepository, TemplateRepository
from .expense_repository import ExpenseRepository

__all__ = [
    "BaseRepository",
    "EventRepository",
    "WorkspaceRepository",
    "TeamMemberRepository",
    "RecognitionRepository",
    "SpecialistRepository",
    "TaskRepository",
    "ChannelRepository",
    "AuditLogRepository",
    "TemplateRepository",
    "TaskTemplateRepository",
    "ExpenseRepository",
]
