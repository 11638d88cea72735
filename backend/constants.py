"""
Application-wide constants and configuration keys.

This module centralizes all magic strings and numbers used throughout the application
to improve maintainability and reduce duplication.
"""
from enum import Enum


class EventStatus(str, Enum):
    """Status of the event a workspace belongs to"""

    DRAFT = 'DRAFT'
    PUBLISHED = 'PUBLISHED'
    ONGOING = 'ONGOING'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class MemberStatus(str, Enum):
    """Team membership status"""

    PENDING = 'PENDING'
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class TaskCategory(str, Enum):
    SETUP = 'SETUP'
    MARKETING = 'MARKETING'
    LOGISTICS = 'LOGISTICS'
    TECHNICAL = 'TECHNICAL'
    REGISTRATION = 'REGISTRATION'
    POST_EVENT = 'POST_EVENT'


class TaskPriority(str, Enum):
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    URGENT = 'URGENT'


class ChannelType(str, Enum):
    GENERAL = 'GENERAL'
    ANNOUNCEMENT = 'ANNOUNCEMENT'
    ROLE_BASED = 'ROLE_BASED'
    TASK_SPECIFIC = 'TASK_SPECIFIC'


class ExpenseStatus(str, Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'
    REIMBURSED = 'REIMBURSED'


class Permission(str, Enum):
    """
    Workspace permissions.

    Stored on TeamMember.permissions as plain strings; a member without an
    explicit list falls back to the defaults of their role.
    """

    MANAGE_WORKSPACE = 'MANAGE_WORKSPACE'
    MANAGE_TEAM = 'MANAGE_TEAM'
    MANAGE_TASKS = 'MANAGE_TASKS'
    MANAGE_CHANNELS = 'MANAGE_CHANNELS'
    VIEW_ANALYTICS = 'VIEW_ANALYTICS'
    MANAGE_PERMISSIONS = 'MANAGE_PERMISSIONS'
    INVITE_MEMBERS = 'INVITE_MEMBERS'
    CREATE_TASKS = 'CREATE_TASKS'
    VIEW_TASKS = 'VIEW_TASKS'
    UPDATE_TASK_PROGRESS = 'UPDATE_TASK_PROGRESS'

    @classmethod
    def describe(cls, permission: 'Permission') -> str:
        """Get human-readable description for UI display"""
        descriptions = {
            cls.MANAGE_WORKSPACE: "Update settings, apply templates, dissolve the workspace",
            cls.MANAGE_TEAM: "Change roles and handle member departures",
            cls.MANAGE_TASKS: "Create, edit, assign and delete any task",
            cls.MANAGE_CHANNELS: "Create channels and send broadcasts",
            cls.VIEW_ANALYTICS: "View analytics, health and exports",
            cls.MANAGE_PERMISSIONS: "Grant custom permissions to members",
            cls.INVITE_MEMBERS: "Invite new team members",
            cls.CREATE_TASKS: "Create new tasks",
            cls.VIEW_TASKS: "View workspace tasks",
            cls.UPDATE_TASK_PROGRESS: "Report progress on assigned tasks",
        }
        return descriptions.get(permission, permission.value)


class WorkspaceRole(str, Enum):
    """Roles a team member can hold inside a workspace"""

    WORKSPACE_OWNER = 'WORKSPACE_OWNER'
    TEAM_LEAD = 'TEAM_LEAD'
    EVENT_COORDINATOR = 'EVENT_COORDINATOR'
    VOLUNTEER_MANAGER = 'VOLUNTEER_MANAGER'
    TECHNICAL_SPECIALIST = 'TECHNICAL_SPECIALIST'
    MARKETING_LEAD = 'MARKETING_LEAD'
    GENERAL_VOLUNTEER = 'GENERAL_VOLUNTEER'

    @classmethod
    def default_permissions(cls, role: 'WorkspaceRole') -> list[str]:
        """Get the default permission list granted to a role"""
        return [p.value for p in ROLE_PERMISSIONS.get(WorkspaceRole(role), [])]


ROLE_PERMISSIONS = {
    WorkspaceRole.WORKSPACE_OWNER: [
        Permission.MANAGE_WORKSPACE,
        Permission.MANAGE_TEAM,
        Permission.MANAGE_TASKS,
        Permission.MANAGE_CHANNELS,
        Permission.VIEW_ANALYTICS,
        Permission.MANAGE_PERMISSIONS,
    ],
    WorkspaceRole.TEAM_LEAD: [
        Permission.MANAGE_TASKS,
        Permission.MANAGE_CHANNELS,
        Permission.VIEW_ANALYTICS,
        Permission.INVITE_MEMBERS,
    ],
    WorkspaceRole.EVENT_COORDINATOR: [
        Permission.MANAGE_TASKS,
        Permission.VIEW_ANALYTICS,
        Permission.CREATE_TASKS,
    ],
    WorkspaceRole.VOLUNTEER_MANAGER: [
        Permission.MANAGE_TASKS,
        Permission.CREATE_TASKS,
        Permission.INVITE_MEMBERS,
    ],
    WorkspaceRole.TECHNICAL_SPECIALIST: [
        Permission.CREATE_TASKS,
        Permission.MANAGE_TASKS,
    ],
    WorkspaceRole.MARKETING_LEAD: [
        Permission.CREATE_TASKS,
        Permission.MANAGE_TASKS,
        Permission.MANAGE_CHANNELS,
    ],
    WorkspaceRole.GENERAL_VOLUNTEER: [
        Permission.VIEW_TASKS,
        Permission.UPDATE_TASK_PROGRESS,
    ],
}


class WorkspaceDefaults:
    """Defaults applied when a workspace is provisioned"""

    RETENTION_PERIOD_DAYS = 30
    TASK_CATEGORIES = [c.value for c in TaskCategory]
    DEFAULT_CHANNELS = [
        {'name': 'general', 'type': ChannelType.GENERAL.value,
         'description': 'General team discussions'},
        {'name': 'announcements', 'type': ChannelType.ANNOUNCEMENT.value,
         'description': 'Important announcements and updates'},
        {'name': 'tasks', 'type': ChannelType.TASK_SPECIFIC.value,
         'description': 'Task-related discussions'},
    ]

    @classmethod
    def settings(cls) -> dict:
        """Fresh copy of the default workspace settings"""
        return {
            'auto_invite_organizer': True,
            'default_channels': [c['name'] for c in cls.DEFAULT_CHANNELS],
            'task_categories': list(cls.TASK_CATEGORIES),
            'retention_period_days': cls.RETENTION_PERIOD_DAYS,
            'allow_external_members': False,
        }


class ServiceCategory(str, Enum):
    """Marketplace service categories a hired specialist can be booked under"""

    EVENT_COORDINATION = 'EVENT_COORDINATION'
    MARKETING = 'MARKETING'
    TECHNICAL_SUPPORT = 'TECHNICAL_SUPPORT'
    VOLUNTEER_MANAGEMENT = 'VOLUNTEER_MANAGEMENT'
    LOGISTICS = 'LOGISTICS'
    AUDIO_VISUAL = 'AUDIO_VISUAL'
    VENUE = 'VENUE'
    CATERING = 'CATERING'
    PHOTOGRAPHY = 'PHOTOGRAPHY'
    OTHER = 'OTHER'


class SpecialistAccessLevel(str, Enum):
    """
    How much of a workspace an integrated specialist sees.

    FULL gets the defaults of the mapped role, LIMITED can view tasks and
    report progress, TASK_SPECIFIC is further confined to a task scope.
    """

    FULL = 'FULL'
    LIMITED = 'LIMITED'
    TASK_SPECIFIC = 'TASK_SPECIFIC'


class MarketplaceMatching:
    """Weights and mappings for specialist recommendations"""

    MISSING_ROLE_SCORE = 30
    UNDERSTAFFED_SCORE = 20
    VERIFIED_VENDOR_SCORE = 15
    HIGH_RATING_SCORE = 10
    RELIABLE_VENDOR_SCORE = 5
    HIGH_RATING = 4.5
    RELIABLE_COMPLETION_RATE = 95
    DEFAULT_LIMIT = 10

    # A category counts as understaffed above this many tasks with fewer
    # than UNDERSTAFFED_MIN_MEMBERS holding its role
    UNDERSTAFFED_TASK_COUNT = 5
    UNDERSTAFFED_MIN_MEMBERS = 2
    TECHNICAL_TEAM_SIZE = 5

    TEAM_CATEGORIES = [
        ServiceCategory.EVENT_COORDINATION,
        ServiceCategory.MARKETING,
        ServiceCategory.TECHNICAL_SUPPORT,
        ServiceCategory.VOLUNTEER_MANAGEMENT,
        ServiceCategory.LOGISTICS,
    ]
    SERVICE_ROLES = {
        ServiceCategory.EVENT_COORDINATION: WorkspaceRole.EVENT_COORDINATOR,
        ServiceCategory.MARKETING: WorkspaceRole.MARKETING_LEAD,
        ServiceCategory.TECHNICAL_SUPPORT: WorkspaceRole.TECHNICAL_SPECIALIST,
        ServiceCategory.VOLUNTEER_MANAGEMENT: WorkspaceRole.VOLUNTEER_MANAGER,
        ServiceCategory.LOGISTICS: WorkspaceRole.EVENT_COORDINATOR,
        ServiceCategory.AUDIO_VISUAL: WorkspaceRole.TECHNICAL_SPECIALIST,
        ServiceCategory.VENUE: WorkspaceRole.EVENT_COORDINATOR,
    }
    SERVICE_TASK_CATEGORIES = {
        ServiceCategory.EVENT_COORDINATION: TaskCategory.SETUP,
        ServiceCategory.MARKETING: TaskCategory.MARKETING,
        ServiceCategory.TECHNICAL_SUPPORT: TaskCategory.TECHNICAL,
        ServiceCategory.VOLUNTEER_MANAGEMENT: TaskCategory.SETUP,
        ServiceCategory.LOGISTICS: TaskCategory.LOGISTICS,
    }
    TASK_SERVICE_CATEGORIES = {
        TaskCategory.MARKETING: ServiceCategory.MARKETING,
        TaskCategory.TECHNICAL: ServiceCategory.TECHNICAL_SUPPORT,
        TaskCategory.LOGISTICS: ServiceCategory.LOGISTICS,
        TaskCategory.SETUP: ServiceCategory.EVENT_COORDINATION,
        TaskCategory.REGISTRATION: ServiceCategory.EVENT_COORDINATION,
        TaskCategory.POST_EVENT: ServiceCategory.EVENT_COORDINATION,
    }

    @classmethod
    def role_for(cls, category: 'ServiceCategory') -> WorkspaceRole:
        return cls.SERVICE_ROLES.get(ServiceCategory(category), WorkspaceRole.GENERAL_VOLUNTEER)

    @classmethod
    def task_category_for(cls, category: 'ServiceCategory') -> TaskCategory:
        return cls.SERVICE_TASK_CATEGORIES.get(ServiceCategory(category), TaskCategory.SETUP)

    @classmethod
    def service_category_for(cls, category: str) -> ServiceCategory:
        try:
            return cls.TASK_SERVICE_CATEGORIES.get(TaskCategory(category), ServiceCategory.OTHER)
        except ValueError:
            return ServiceCategory.OTHER


class HealthThresholds:
    """Thresholds for workspace health indicators (good / warning / critical)"""

    COMPLETION_RATE_GOOD = 0.6
    COMPLETION_RATE_WARNING = 0.3
    OVERDUE_RATIO_WARNING = 0.1
    OVERDUE_RATIO_CRITICAL = 0.25
    ENGAGEMENT_GOOD = 0.7
    ENGAGEMENT_WARNING = 0.4
    BUDGET_UTILIZATION_WARNING = 0.85
    BUDGET_UTILIZATION_CRITICAL = 1.0


class ServerConfig:
    """Server configuration constants"""

    HOST = "0.0.0.0"
    PORT = 8000


class WebSocketConfig:
    """WebSocket configuration constants"""

    SEND_QUEUE_SIZE = 1000


class Pagination:
    DEFAULT_LIMIT = 50
    MAX_LIMIT = 500


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # Client Errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409

    # Server Errors
    INTERNAL_SERVER_ERROR = 500
