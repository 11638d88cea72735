from sqlalchemy import Column, String, Integer, Float, Boolean, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint, Index, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
from database import Base
import uuid

from constants import WorkspaceRole


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Event(Base):
    """
    The event a workspace is provisioned for.

    Events are owned by the wider platform; this service only needs enough of
    them to drive the workspace lifecycle (organizer, dates, status).
    """
    __tablename__ = 'events'

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    organizer_id = Column(String, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default='DRAFT')  # EventStatus value
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    workspace = relationship("Workspace", back_populates="event", uselist=False)

    __table_args__ = (
        CheckConstraint("name != ''"),
        Index('idx_events_organizer', 'organizer_id'),
    )


class Workspace(Base):
    """
    Collaboration space for one event.

    Workspace Status:
    - PROVISIONING: Being created, default channels not yet in place
    - ACTIVE: Normal operation
    - WINDING_DOWN: Event over, waiting out the retention period
    - DISSOLVED: Members revoked, read-only archive
    """
    __tablename__ = 'workspaces'

    id = Column(String, primary_key=True, default=generate_uuid)
    event_id = Column(String, ForeignKey('events.id'), nullable=False, unique=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    status = Column(String, nullable=False, default='PROVISIONING')
    settings = Column(JSON, nullable=False, default=dict)
    template_id = Column(String, ForeignKey('workspace_templates.id'), nullable=True)
    dissolved_at = Column(DateTime, nullable=True)
    dissolution_reason = Column(String, nullable=True)  # RETENTION_EXPIRED, MANUAL, EVENT_CANCELLED, EMERGENCY_REVOKE
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    event = relationship("Event", back_populates="workspace")
    members = relationship("TeamMember", back_populates="workspace", cascade="all, delete")
    tasks = relationship("WorkspaceTask", back_populates="workspace", cascade="all, delete")
    channels = relationship("WorkspaceChannel", back_populates="workspace", cascade="all, delete")
    expenses = relationship("Expense", back_populates="workspace", cascade="all, delete")

    __table_args__ = (
        CheckConstraint("status IN ('PROVISIONING', 'ACTIVE', 'WINDING_DOWN', 'DISSOLVED')"),
        Index('idx_workspaces_status', 'status'),
    )


class TeamMember(Base):
    __tablename__ = 'team_members'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    user_id = Column(String, nullable=False)
    role = Column(String, nullable=False)  # WorkspaceRole value
    permissions = Column(JSON, nullable=True)  # None means role defaults
    status = Column(String, nullable=False, default='ACTIVE')
    invited_by = Column(String, nullable=True)
    joined_at = Column(DateTime, default=datetime.utcnow)
    left_at = Column(DateTime, nullable=True)

    workspace = relationship("Workspace", back_populates="members")
    specialist = relationship("SpecialistIntegration", back_populates="member", uselist=False,
                              cascade="all, delete-orphan")

    @property
    def effective_permissions(self) -> list[str]:
        """Explicit permissions if set, otherwise the defaults of the role"""
        if self.permissions is not None:
            return list(self.permissions)
        return WorkspaceRole.default_permissions(self.role)

    __table_args__ = (
        UniqueConstraint('workspace_id', 'user_id', name='uq_team_member'),
        CheckConstraint("status IN ('PENDING', 'ACTIVE', 'INACTIVE')"),
        Index('idx_team_members_user', 'user_id'),
    )


class SpecialistIntegration(Base):
    """
    A hired marketplace specialist working inside a workspace as an
    external team member.

    task_scope lists the task ids a TASK_SPECIFIC specialist may see; it is
    ignored for the other access levels.
    """
    __tablename__ = 'specialist_integrations'

    id = Column(String, primary_key=True, default=generate_uuid)
    member_id = Column(String, ForeignKey('team_members.id'), nullable=False, unique=True)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    user_id = Column(String, nullable=False)
    business_name = Column(String, nullable=False)
    service_category = Column(String, nullable=False)
    access_level = Column(String, nullable=False, default='LIMITED')
    task_scope = Column(JSON, nullable=False, default=list)
    booking_reference = Column(String, nullable=True)
    integrated_by = Column(String, nullable=False)
    integrated_at = Column(DateTime, default=datetime.utcnow)

    member = relationship("TeamMember", back_populates="specialist")

    __table_args__ = (
        CheckConstraint("access_level IN ('FULL', 'LIMITED', 'TASK_SPECIFIC')"),
        Index('idx_specialists_workspace', 'workspace_id'),
    )


class WorkspaceTask(Base):
    """
    A unit of work inside a workspace.

    assignee_id and creator_id hold platform user ids, the same ids carried
    in the X-User-Id header, not TeamMember row ids.
    """
    __tablename__ = 'workspace_tasks'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default='')
    category = Column(String, nullable=False)
    priority = Column(String, nullable=False, default='MEDIUM')
    status = Column(String, nullable=False, default='NOT_STARTED')
    assignee_id = Column(String, nullable=True)
    creator_id = Column(String, nullable=False)
    due_date = Column(DateTime, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    tags = Column(JSON, nullable=False, default=list)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    workspace = relationship("Workspace", back_populates="tasks")
    comments = relationship("TaskComment", back_populates="task", cascade="all, delete",
                            order_by="TaskComment.created_at")
    activities = relationship("TaskActivity", back_populates="task", cascade="all, delete",
                              order_by="TaskActivity.created_at")
    dependencies = relationship("TaskDependency", foreign_keys="TaskDependency.task_id",
                                back_populates="task", cascade="all, delete")
    dependents = relationship("TaskDependency", foreign_keys="TaskDependency.depends_on_id",
                              back_populates="depends_on", cascade="all, delete")

    __table_args__ = (
        CheckConstraint("title != ''"),
        CheckConstraint("progress >= 0 AND progress <= 100"),
        Index('idx_tasks_workspace_status', 'workspace_id', 'status'),
        Index('idx_tasks_assignee', 'assignee_id'),
    )


class TaskDependency(Base):
    __tablename__ = 'task_dependencies'

    id = Column(String, primary_key=True, default=generate_uuid)
    task_id = Column(String, ForeignKey('workspace_tasks.id'), nullable=False)
    depends_on_id = Column(String, ForeignKey('workspace_tasks.id'), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("WorkspaceTask", foreign_keys=[task_id], back_populates="dependencies")
    depends_on = relationship("WorkspaceTask", foreign_keys=[depends_on_id], back_populates="dependents")

    __table_args__ = (
        UniqueConstraint('task_id', 'depends_on_id', name='uq_task_dependency'),
        CheckConstraint("task_id != depends_on_id"),
    )


class TaskComment(Base):
    __tablename__ = 'task_comments'

    id = Column(String, primary_key=True, default=generate_uuid)
    task_id = Column(String, ForeignKey('workspace_tasks.id'), nullable=False)
    author_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("WorkspaceTask", back_populates="comments")


class TaskActivity(Base):
    """History entry for a task (created, assigned, status_changed, ...)"""
    __tablename__ = 'task_activities'

    id = Column(String, primary_key=True, default=generate_uuid)
    task_id = Column(String, ForeignKey('workspace_tasks.id'), nullable=False)
    actor_id = Column(String, nullable=False)
    action = Column(String, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    task = relationship("WorkspaceTask", back_populates="activities")

    __table_args__ = (
        Index('idx_task_activities_task', 'task_id', 'created_at'),
    )


class WorkspaceTemplate(Base):
    """
    Reusable workspace structure.

    structure holds {roles, task_categories, channels, tasks, settings}.
    """
    __tablename__ = 'workspace_templates'

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String, nullable=False, default='GENERAL')
    structure = Column(JSON, nullable=False, default=dict)
    usage_count = Column(Integer, nullable=False, default=0)
    is_public = Column(Boolean, default=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("name != ''"),
    )


class TaskTemplate(Base):
    """Task blueprint captured from an existing task, reusable within its workspace"""
    __tablename__ = 'task_templates'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    title = Column(String, nullable=False)
    task_description = Column(Text, nullable=False, default='')
    category = Column(String, nullable=False)
    priority = Column(String, nullable=False, default='MEDIUM')
    tags = Column(JSON, nullable=False, default=list)
    source_task_id = Column(String, nullable=True)
    usage_count = Column(Integer, nullable=False, default=0)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("name != ''"),
        Index('idx_task_templates_workspace', 'workspace_id'),
    )


class WorkspaceChannel(Base):
    __tablename__ = 'workspace_channels'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default='GENERAL')  # ChannelType value
    description = Column(Text)
    is_private = Column(Boolean, default=False)
    members = Column(JSON, nullable=False, default=list)  # user ids, only consulted for private channels
    created_at = Column(DateTime, default=datetime.utcnow)

    workspace = relationship("Workspace", back_populates="channels")
    messages = relationship("ChannelMessage", back_populates="channel", cascade="all, delete")

    __table_args__ = (
        UniqueConstraint('workspace_id', 'name', name='uq_channel_name'),
    )


class ChannelMessage(Base):
    __tablename__ = 'channel_messages'

    id = Column(String, primary_key=True, default=generate_uuid)
    channel_id = Column(String, ForeignKey('workspace_channels.id'), nullable=False)
    sender_id = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(String, nullable=False, default='TEXT')  # TEXT, BROADCAST, SYSTEM
    is_priority = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    channel = relationship("WorkspaceChannel", back_populates="messages")

    __table_args__ = (
        Index('idx_messages_channel_created', 'channel_id', 'created_at'),
    )


class Expense(Base):
    __tablename__ = 'expenses'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False, default='GENERAL')
    status = Column(String, nullable=False, default='PENDING')
    submitted_by = Column(String, nullable=False)
    reviewed_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    workspace = relationship("Workspace", back_populates="expenses")

    __table_args__ = (
        CheckConstraint("amount >= 0"),
        Index('idx_expenses_workspace_status', 'workspace_id', 'status'),
    )


class Recognition(Base):
    __tablename__ = 'recognitions'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, ForeignKey('workspaces.id'), nullable=False)
    recipient_id = Column(String, nullable=False)
    giver_id = Column(String, nullable=False)
    badge = Column(String, nullable=False)
    message = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class AuditLog(Base):
    """Append-only record of workspace actions, written by AuditLogger"""
    __tablename__ = 'audit_logs'

    id = Column(String, primary_key=True, default=generate_uuid)
    workspace_id = Column(String, nullable=True)
    user_id = Column(String, nullable=True)
    action = Column(String, nullable=False)
    resource = Column(String, nullable=False)
    resource_id = Column(String, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_audit_workspace_created', 'workspace_id', 'created_at'),
    )


class MarketplaceConfigRecord(Base):
    """Stored overrides for the marketplace configuration (single 'default' row)"""
    __tablename__ = 'marketplace_config'

    id = Column(String, primary_key=True, default='default')
    config = Column(JSON, nullable=False, default=dict)
    active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
