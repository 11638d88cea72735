"""
Template Service

Reusable workspace templates: creation (from scratch or captured from an
existing workspace), application to a workspace and recommendations; plus
workspace-scoped task templates captured from existing tasks.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from constants import ChannelType, MemberStatus, Permission, TaskCategory, TaskPriority, WorkspaceDefaults
from domain.value_objects import TaskStatus, WorkspaceStatus
from exceptions import AccessDeniedError, LifecycleError, NotFoundError, ValidationError
from models import TaskTemplate, WorkspaceChannel, WorkspaceTask, WorkspaceTemplate
from repositories import (
    ChannelRepository,
    EventRepository,
    TaskRepository,
    TeamMemberRepository,
    TaskTemplateRepository,
    TemplateRepository,
)
from repositories.task_specifications import TasksByWorkspaceSpec
from services.access_control import WorkspaceAccess
from services.interfaces import IAuditLogger
from utils.logging_utils import log_operation
from utils.transaction import transaction

logger = logging.getLogger(__name__)

CATEGORY_MATCH_BONUS = 10
MAX_RECOMMENDATIONS = 5


class TemplateService:
    """Service for workspace templates."""

    def __init__(self, db: Session, audit: IAuditLogger):
        self.db = db
        self.audit = audit
        self.access = WorkspaceAccess(db, audit)
        self.template_repo = TemplateRepository(db)
        self.event_repo = EventRepository(db)
        self.member_repo = TeamMemberRepository(db)
        self.task_repo = TaskRepository(db)
        self.channel_repo = ChannelRepository(db)
        self.task_template_repo = TaskTemplateRepository(db)

    def list_templates(self, user_id: str, category: Optional[str] = None) -> List[WorkspaceTemplate]:
        return self.template_repo.list_visible(user_id, category)

    def get_template(self, template_id: str, user_id: str) -> WorkspaceTemplate:
        template = self.template_repo.get_by_id(template_id)
        if not template:
            raise NotFoundError("Template", template_id)
        if not template.is_public and template.created_by != user_id:
            raise AccessDeniedError("Access denied: private template")
        return template

    def create_template(self, user_id: str, name: str, description: Optional[str] = None,
                        category: str = "GENERAL", structure: Optional[Dict[str, Any]] = None,
                        is_public: bool = True) -> WorkspaceTemplate:
        """
        Raises:
            ValidationError: If structure.tasks holds an unknown category
        """
        structure = dict(structure or {})
        for task in structure.get("tasks", []):
            if task.get("category") not in TaskCategory.__members__:
                raise ValidationError(f"Invalid task category in template: {task.get('category')}")

        with transaction(self.db, "Create template"):
            template = self.template_repo.create(WorkspaceTemplate(
                name=name,
                description=description,
                category=category.upper(),
                structure=structure,
                is_public=is_public,
                created_by=user_id,
            ))
        return template

    @log_operation("Create template from workspace")
    def create_from_workspace(self, workspace_id: str, user_id: str, name: str,
                              description: Optional[str] = None, category: str = "GENERAL",
                              is_public: bool = False) -> WorkspaceTemplate:
        """
        Capture a workspace's structure as a template: the roles its team
        uses, its task categories, its custom channels and its tasks (as
        unassigned blueprints).
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)

        members = self.member_repo.list_members(workspace_id, status=MemberStatus.ACTIVE.value)
        tasks = self.task_repo.find(TasksByWorkspaceSpec(workspace_id), order_by=WorkspaceTask.created_at)
        default_names = {c["name"] for c in WorkspaceDefaults.DEFAULT_CHANNELS}
        structure = {
            "roles": sorted({m.role for m in members}),
            "task_categories": sorted({t.category for t in tasks}),
            "channels": [
                {"name": c.name, "type": c.type, "description": c.description}
                for c in self.channel_repo.list_for_workspace(workspace_id)
                if c.name not in default_names and c.type != ChannelType.ROLE_BASED.value
            ],
            "tasks": [
                {"title": t.title, "description": t.description, "category": t.category, "priority": t.priority}
                for t in tasks
            ],
            "settings": {"retention_period_days": (workspace.settings or {}).get("retention_period_days")},
        }

        with transaction(self.db, "Create template from workspace"):
            template = self.template_repo.create(WorkspaceTemplate(
                name=name,
                description=description or f"Created from {workspace.name}",
                category=category.upper(),
                structure=structure,
                is_public=is_public,
                created_by=user_id,
            ))
            self.audit.log("TEMPLATE_CREATED", "template", workspace_id=workspace_id,
                           user_id=user_id, resource_id=template.id)
        return template

    @log_operation("Apply template")
    def apply_to_workspace(self, workspace_id: str, user_id: str, template_id: str) -> Dict[str, Any]:
        """
        Seed a workspace from a template.

        Creates the template's tasks, adds channels the workspace does not
        have yet, merges its task categories into the workspace settings and
        bumps the template's usage count.

        Returns:
            Dictionary with workspace_id, template_id, tasks_created and channels_created
        """
        workspace = self.access.get_workspace(workspace_id)
        self.access.require_permission(workspace_id, user_id, Permission.MANAGE_WORKSPACE)
        if workspace.status != WorkspaceStatus.ACTIVE.value:
            raise LifecycleError(workspace_id, workspace.status, "Templates can only be applied to active workspaces")
        template = self.get_template(template_id, user_id)
        structure = template.structure or {}

        tasks_created = 0
        channels_created = 0
        with transaction(self.db, "Apply template"):
            for blueprint in structure.get("tasks", []):
                self.task_repo.create(WorkspaceTask(
                    workspace_id=workspace_id,
                    title=blueprint["title"],
                    description=blueprint.get("description") or "",
                    category=TaskCategory(blueprint.get("category", TaskCategory.SETUP.value)).value,
                    priority=TaskPriority(blueprint.get("priority", TaskPriority.MEDIUM.value)).value,
                    status=TaskStatus.NOT_STARTED.value,
                    creator_id=user_id,
                    tags=["template"],
                ))
                tasks_created += 1

            for spec in structure.get("channels", []):
                if self.channel_repo.get_by_name(workspace_id, spec["name"]):
                    continue
                self.channel_repo.create(WorkspaceChannel(
                    workspace_id=workspace_id,
                    name=spec["name"],
                    type=ChannelType(spec.get("type", ChannelType.GENERAL.value)).value,
                    description=spec.get("description"),
                ))
                channels_created += 1

            settings = dict(workspace.settings or {})
            categories = list(settings.get("task_categories", []))
            for category in structure.get("task_categories", []):
                if category not in categories:
                    categories.append(category)
            settings["task_categories"] = categories
            workspace.settings = settings
            workspace.template_id = template.id
            template.usage_count = (template.usage_count or 0) + 1
            self.db.flush()

            self.audit.log("TEMPLATE_APPLIED", "workspace", workspace_id=workspace_id, user_id=user_id,
                           resource_id=template.id,
                           details={"tasks_created": tasks_created, "channels_created": channels_created})

        logger.info(f"Applied template {template.id} to workspace {workspace_id}: "
                    f"{tasks_created} task(s), {channels_created} channel(s)")
        return {
            "workspace_id": workspace_id,
            "template_id": template.id,
            "tasks_created": tasks_created,
            "channels_created": channels_created,
        }

    def recommendations(self, event_id: str, user_id: str) -> List[Dict[str, Any]]:
        """
        Templates ranked for an event: usage count plus a bonus when the
        template category appears in the event name.
        """
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event", event_id)

        event_name = (event.name or "").lower()
        scored = []
        for template in self.template_repo.list_visible(user_id):
            category_match = template.category.lower() in event_name and template.category != "GENERAL"
            score = (template.usage_count or 0) + (CATEGORY_MATCH_BONUS if category_match else 0)
            reason = (f"Matches the {template.category.lower()} event type" if category_match
                      else f"Used by {template.usage_count or 0} workspace(s)")
            scored.append({"template": template, "score": float(score), "reason": reason})

        scored.sort(key=lambda item: item["score"], reverse=True)
        return scored[:MAX_RECOMMENDATIONS]

    # Task templates

    def list_task_templates(self, workspace_id: str, user_id: str) -> List[TaskTemplate]:
        self.access.get_workspace(workspace_id)
        self.access.require_member(workspace_id, user_id)
        return self.task_template_repo.list_for_workspace(workspace_id)

    def get_task_template(self, template_id: str, user_id: str) -> TaskTemplate:
        template = self.task_template_repo.get_by_id(template_id)
        if not template:
            raise NotFoundError("TaskTemplate", template_id)
        self.access.require_member(template.workspace_id, user_id)
        return template

    @log_operation("Create task template")
    def create_task_template(self, task_id: str, user_id: str, name: str,
                             description: Optional[str] = None) -> TaskTemplate:
        """
        Capture a task as a reusable blueprint for its workspace.

        The title, description, category, priority and tags are copied;
        assignee, due date and progress are left behind.

        Raises:
            ValidationError: If the name is blank
            AccessDeniedError: If the caller cannot see the task or create tasks
        """
        if not name or not name.strip():
            raise ValidationError("Template name is required", {"name": name})
        task = self.task_repo.get_by_id(task_id)
        if not task:
            raise NotFoundError("Task", task_id)
        self.access.require_task_access(task, user_id)
        self.access.require_permission(task.workspace_id, user_id, Permission.CREATE_TASKS, Permission.MANAGE_TASKS)

        with transaction(self.db, "Create task template"):
            template = self.task_template_repo.create(TaskTemplate(
                workspace_id=task.workspace_id,
                name=name.strip(),
                description=description,
                title=task.title,
                task_description=task.description or "",
                category=task.category,
                priority=task.priority,
                tags=[t for t in (task.tags or []) if t != "template"],
                source_task_id=task.id,
                created_by=user_id,
            ))
            self.audit.log("TASK_TEMPLATE_CREATED", "task_template", workspace_id=task.workspace_id,
                           user_id=user_id, resource_id=template.id, details={"source_task_id": task.id})
        return template

    def record_task_template_use(self, template: TaskTemplate) -> None:
        with transaction(self.db, "Record task template use"):
            template.usage_count = (template.usage_count or 0) + 1
            self.db.flush()
