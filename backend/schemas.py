from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Any, Literal, Dict
from datetime import datetime

from constants import (
    ChannelType,
    EventStatus,
    ExpenseStatus,
    Permission,
    ServiceCategory,
    SpecialistAccessLevel,
    TaskCategory,
    TaskPriority,
    WorkspaceRole,
)
from domain.value_objects import TaskStatus, WorkspaceStatus


# Event Schemas
class EventSummary(BaseModel):
    id: str
    name: str
    organizer_id: str
    start_date: datetime
    end_date: datetime
    status: str

    class Config:
        from_attributes = True


# Team Schemas
class TeamMember(BaseModel):
    id: str
    workspace_id: str
    user_id: str
    role: str
    permissions: Optional[List[str]] = None
    effective_permissions: List[str] = []
    status: str
    invited_by: Optional[str] = None
    joined_at: Optional[datetime] = None
    left_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InviteRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    role: WorkspaceRole = WorkspaceRole.GENERAL_VOLUNTEER
    permissions: Optional[List[Permission]] = None


class RoleUpdateRequest(BaseModel):
    role: WorkspaceRole
    permissions: Optional[List[Permission]] = None


class DepartureResult(BaseModel):
    """Outcome of an early departure"""
    user_id: str
    manager_id: str
    reassigned_task_ids: List[str] = []


class RecognitionCreate(BaseModel):
    recipient_id: str = Field(..., min_length=1)
    badge: str = Field(..., min_length=1, max_length=64)
    message: Optional[str] = None


class Recognition(BaseModel):
    id: str
    workspace_id: str
    recipient_id: str
    giver_id: str
    badge: str
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# Channel Schemas
class ChannelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)
    type: ChannelType = ChannelType.GENERAL
    description: Optional[str] = None
    is_private: bool = False
    members: List[str] = []

    @field_validator('name')
    @classmethod
    def normalize_name(cls, v: str) -> str:
        """Channel names are lowercase with dashes instead of spaces"""
        name = '-'.join(v.strip().lower().split())
        if not name:
            raise ValueError('Channel name cannot be blank')
        return name


class Channel(BaseModel):
    id: str
    workspace_id: str
    name: str
    type: str
    description: Optional[str] = None
    is_private: bool = False
    members: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=10_000)
    message_type: Literal['TEXT', 'SYSTEM'] = 'TEXT'
    is_priority: bool = False


class ChannelMessage(BaseModel):
    id: str
    channel_id: str
    sender_id: str
    content: str
    message_type: str
    is_priority: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class BroadcastRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=10_000)
    target_roles: Optional[List[WorkspaceRole]] = None
    priority: Literal['NORMAL', 'HIGH', 'URGENT'] = 'NORMAL'


class MessageSearchResult(BaseModel):
    query: str
    messages: List[ChannelMessage] = []


# Task Schemas
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: TaskCategory
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    tags: List[str] = []


class TaskUpdate(BaseModel):
    """Partial task update; only fields that were sent are applied"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    priority: Optional[TaskPriority] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None


class Task(BaseModel):
    id: str
    workspace_id: str
    title: str
    description: str
    category: str
    priority: str
    status: str
    assignee_id: Optional[str] = None
    creator_id: str
    due_date: Optional[datetime] = None
    progress: int = 0
    tags: List[str] = []
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssignRequest(BaseModel):
    assignee_id: Optional[str] = None  # None unassigns


class ProgressUpdate(BaseModel):
    status: TaskStatus
    progress: Optional[int] = Field(None, ge=0, le=100)


class DependencyCreate(BaseModel):
    depends_on_id: str = Field(..., min_length=1)


class TaskDependency(BaseModel):
    id: str
    task_id: str
    depends_on_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5_000)


class TaskComment(BaseModel):
    id: str
    task_id: str
    author_id: str
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class TaskActivity(BaseModel):
    id: str
    task_id: str
    actor_id: str
    action: str
    details: Dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True


class BulkStatusRequest(BaseModel):
    task_ids: List[str] = Field(..., min_length=1)
    status: TaskStatus


class BulkDeleteRequest(BaseModel):
    task_ids: List[str] = Field(..., min_length=1)


class BulkResult(BaseModel):
    updated: int
    ids: List[str] = []


# Expense Schemas
class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    category: str = 'GENERAL'


class Expense(BaseModel):
    id: str
    workspace_id: str
    description: str
    amount: float
    category: str
    status: str
    submitted_by: str
    reviewed_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BulkExpenseStatusRequest(BaseModel):
    expense_ids: List[str] = Field(..., min_length=1)
    status: ExpenseStatus


# Workspace Schemas
class ProvisionRequest(BaseModel):
    event_id: str = Field(..., min_length=1)


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None


class DissolveRequest(BaseModel):
    retention_period_days: Optional[int] = Field(None, ge=0, le=3650)


class ApplyTemplateRequest(BaseModel):
    template_id: str = Field(..., min_length=1)


class TemplateApplication(BaseModel):
    workspace_id: str
    template_id: str
    tasks_created: int = 0
    channels_created: int = 0


class TaskSummary(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0


class Workspace(BaseModel):
    id: str
    event_id: str
    name: str
    description: Optional[str] = None
    status: str
    settings: Dict[str, Any] = {}
    template_id: Optional[str] = None
    dissolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    event: Optional[EventSummary] = None

    class Config:
        from_attributes = True


class WorkspaceDetail(Workspace):
    """Workspace with team, channels and task summary (members only)"""
    team_members: List[TeamMember] = []
    channels: List[Channel] = []
    task_summary: TaskSummary = TaskSummary()


class LifecycleInfo(BaseModel):
    status: WorkspaceStatus
    can_transition_to: List[WorkspaceStatus] = []
    retention_period_days: int
    scheduled_dissolution: Optional[datetime] = None
    days_until_dissolution: Optional[int] = None
    event_status: str
    event_end_date: datetime


class WorkspaceStatusResponse(BaseModel):
    workspace: WorkspaceDetail
    lifecycle: LifecycleInfo


# Analytics Schemas
HealthLevel = Literal['good', 'warning', 'critical']


class TaskMetrics(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    review: int = 0
    todo: int = 0
    blocked: int = 0
    overdue: int = 0
    completion_rate: float = 0.0
    avg_completion_time_hours: Optional[float] = None


class TopPerformer(BaseModel):
    user_id: str
    completed_tasks: int


class TeamMetrics(BaseModel):
    total_members: int = 0
    active_members: int = 0
    tasks_per_member: float = 0.0
    top_performers: List[TopPerformer] = []


class BudgetMetrics(BaseModel):
    total_allocated: float = 0.0
    total_spent: float = 0.0
    pending_requests: int = 0
    utilization_rate: float = 0.0


class HealthIndicators(BaseModel):
    task_velocity: HealthLevel = 'good'
    team_engagement: HealthLevel = 'good'
    budget_health: HealthLevel = 'good'
    overdue_risk: HealthLevel = 'good'


class WorkspaceHealth(BaseModel):
    score: int
    indicators: HealthIndicators


class Trends(BaseModel):
    tasks_completed_last_week: int = 0
    tasks_completed_this_week: int = 0
    week_over_week_change: float = 0.0


class WorkspaceAnalytics(BaseModel):
    workspace: Dict[str, Any]
    tasks: TaskMetrics
    team: TeamMetrics
    budget: BudgetMetrics
    health: WorkspaceHealth
    trends: Trends


class WorkspaceDashboard(BaseModel):
    workspace: Workspace
    task_summary: TaskSummary
    my_tasks: List[Task] = []
    recent_activity: List[TaskActivity] = []
    channels: List[Channel] = []
    health: WorkspaceHealth


# Template Schemas
class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = 'GENERAL'
    structure: Dict[str, Any] = {}
    is_public: bool = True


class TemplateFromWorkspace(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: str = 'GENERAL'
    is_public: bool = False


class Template(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: str
    structure: Dict[str, Any] = {}
    usage_count: int = 0
    is_public: bool = True
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TemplateRecommendation(BaseModel):
    template: Template
    score: float
    reason: str


class TaskTemplateCreate(BaseModel):
    # Blank names are rejected by the service with a 400
    name: str = Field(..., max_length=200)
    description: Optional[str] = None


class TaskTemplate(BaseModel):
    id: str
    workspace_id: str
    name: str
    description: Optional[str] = None
    title: str
    task_description: str = ''
    category: str
    priority: str
    tags: List[str] = []
    source_task_id: Optional[str] = None
    usage_count: int = 0
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class TaskFromTemplate(BaseModel):
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None


# Marketplace Schemas
class CommissionTier(BaseModel):
    threshold: float = Field(..., ge=0)
    rate: float = Field(..., ge=0, le=1)


class CommissionRule(BaseModel):
    base_rate: float = Field(..., ge=0, le=1)
    tiered_rates: List[CommissionTier] = []
    minimum_fee: Optional[float] = None
    maximum_fee: Optional[float] = None


class VerificationRequirement(BaseModel):
    business_license: bool = False
    insurance_certificate: bool = False
    tax_documents: bool = False
    identity_verification: bool = False
    portfolio_required: bool = False
    minimum_experience: Optional[int] = None  # years
    background_check: Optional[bool] = None


class MarketplaceConfig(BaseModel):
    platform_fee_rate: float
    auto_payout_enabled: bool
    payout_delay_days: int
    escrow_enabled: bool
    minimum_payout_amount: float
    supported_currencies: List[str]
    default_currency: str
    payment_timeout_minutes: int
    verification_requirements: Dict[str, VerificationRequirement]
    commission_structure: Dict[str, CommissionRule]


class MarketplaceConfigUpdate(BaseModel):
    """Partial marketplace config; unset fields keep their current value"""
    platform_fee_rate: Optional[float] = None
    auto_payout_enabled: Optional[bool] = None
    payout_delay_days: Optional[int] = None
    escrow_enabled: Optional[bool] = None
    minimum_payout_amount: Optional[float] = None
    supported_currencies: Optional[List[str]] = None
    default_currency: Optional[str] = None
    payment_timeout_minutes: Optional[int] = None
    verification_requirements: Optional[Dict[str, VerificationRequirement]] = None
    commission_structure: Optional[Dict[str, CommissionRule]] = None


class ConfigValidation(BaseModel):
    valid: bool
    errors: List[str] = []
    warnings: List[str] = []


class CommissionQuote(BaseModel):
    category: str
    amount: float
    rate: float
    fee: float
    vendor_payout: float


class ServiceCandidate(BaseModel):
    """A marketplace service offered for recommendation"""
    id: str
    title: str
    category: ServiceCategory
    vendor_name: Optional[str] = None
    verified: bool = False
    rating: Optional[float] = Field(None, ge=0, le=5)
    completion_rate: Optional[float] = Field(None, ge=0, le=100)


class RecommendationRequest(BaseModel):
    candidates: List[ServiceCandidate]
    limit: int = Field(10, ge=1, le=50)
    preferred_categories: Optional[List[ServiceCategory]] = None


class ServiceRecommendation(BaseModel):
    service: ServiceCandidate
    score: int
    reasons: List[str]
    suggested_role: WorkspaceRole


class TeamGaps(BaseModel):
    workspace_id: str
    team_size: int
    role_counts: Dict[str, int]
    task_counts: Dict[str, int]
    missing_roles: List[str]
    understaffed_areas: List[str]


class SpecialistIntegrate(BaseModel):
    specialist_user_id: str = Field(..., min_length=1)
    business_name: str = Field(..., min_length=1, max_length=200)
    service_category: ServiceCategory
    access_level: SpecialistAccessLevel = SpecialistAccessLevel.LIMITED
    role: Optional[WorkspaceRole] = None
    task_ids: Optional[List[str]] = None
    booking_reference: Optional[str] = None


class SpecialistScopeUpdate(BaseModel):
    task_ids: List[str]


class Specialist(BaseModel):
    id: str
    member_id: str
    workspace_id: str
    user_id: str
    business_name: str
    service_category: str
    access_level: str
    task_scope: List[str] = []
    booking_reference: Optional[str] = None
    integrated_by: str
    integrated_at: datetime

    class Config:
        from_attributes = True


class TeamAccessEntry(BaseModel):
    user_id: str
    role: str
    permissions: List[str]
    access_level: Literal['STANDARD', 'PROFESSIONAL']
    business_name: Optional[str] = None
    service_category: Optional[str] = None
    specialist_access: Optional[str] = None
    task_scope: Optional[List[str]] = None
    booking_reference: Optional[str] = None


class TeamAccessOverview(BaseModel):
    workspace_id: str
    volunteers: List[TeamAccessEntry]
    professionals: List[TeamAccessEntry]


# Security Schemas
class AuditLog(BaseModel):
    id: str
    workspace_id: Optional[str] = None
    user_id: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[str] = None
    success: bool = True
    details: Dict[str, Any] = {}
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogPage(BaseModel):
    logs: List[AuditLog] = []
    total: int
    limit: int
    offset: int


class AuditStats(BaseModel):
    total_events: int = 0
    failed_events: int = 0
    by_action: Dict[str, int] = {}
    by_user: Dict[str, int] = {}


class EmergencyRevokeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1_000)


class ComplianceStatus(BaseModel):
    gdpr_compliant: bool
    ccpa_compliant: bool
    encryption_enabled: bool
    audit_logging_enabled: bool


class SecurityMetrics(BaseModel):
    total_audit_events: int = 0
    security_incident_count: int = 0
    last_incident_at: Optional[datetime] = None


class ComplianceReport(BaseModel):
    workspace_id: str
    report_generated_at: datetime
    compliance_status: ComplianceStatus
    security_metrics: SecurityMetrics
    active_policies: Dict[str, Any] = {}
    recent_audit_events: List[AuditLog] = []
    recommendations: List[str] = []


class EmergencyRevokeResult(BaseModel):
    workspace_id: str
    revoked_members: int
    status: WorkspaceStatus


# Lifecycle Schemas
class EventStatusChange(BaseModel):
    new_status: EventStatus
    old_status: EventStatus


class EventStatusResult(BaseModel):
    workspace_id: Optional[str] = None
    previous_status: Optional[WorkspaceStatus] = None
    status: Optional[WorkspaceStatus] = None
    action: Literal["none", "wind_down", "dissolved", "reactivated"]


class LifecycleStatus(BaseModel):
    has_workspace: bool
    workspace_id: Optional[str] = None
    workspace_status: Optional[WorkspaceStatus] = None
    can_provision: bool
    can_wind_down: bool
    can_dissolve: bool
    scheduled_dissolution: Optional[datetime] = None


class DissolutionRun(BaseModel):
    """Result of one scheduled dissolution pass"""
    checked: int = 0
    dissolved: List[str] = []
    pending: Dict[str, int] = {}  # workspace_id -> days remaining
    failed: List[str] = []


# Meta Schemas
class HealthCheck(BaseModel):
    status: str
    service: str
    version: str
    timestamp: datetime


class PermissionInfo(BaseModel):
    permission: str
    description: str


class RoleInfo(BaseModel):
    role: str
    permissions: List[str]


class PlatformStats(BaseModel):
    workspaces_by_status: Dict[str, int]
    tasks_by_status: Dict[str, int]
    active_members: int

