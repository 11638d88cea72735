"""
Task API endpoints

Routes that change tasks broadcast the change over the WebSocket after the
service has committed.
"""
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging

from constants import HTTPStatus
from dependencies import get_current_user_id, get_task_service, get_template_service
from schemas import (
    AssignRequest,
    BulkDeleteRequest,
    BulkResult,
    BulkStatusRequest,
    CommentCreate,
    DependencyCreate,
    ProgressUpdate,
    Task,
    TaskActivity,
    TaskComment,
    TaskCreate,
    TaskDependency,
    TaskFromTemplate,
    TaskTemplate,
    TaskTemplateCreate,
    TaskUpdate,
)
from services.event_broadcaster import broadcaster
from services.task_service import TaskService
from services.template_service import TemplateService
from utils.caching import cache_headers, maybe_304
from utils.error_handlers import handle_api_errors

logger = logging.getLogger(__name__)

router = APIRouter()


# Workspace-scoped routes

@router.get("/workspace/{workspace_id}", response_model=List[Task])
@handle_api_errors("List tasks")
def list_tasks(
    workspace_id: str,
    request: Request,
    status: Optional[str] = None,
    assignee_id: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    q: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    """
    List the tasks of a workspace.

    This endpoint supports conditional requests: the response carries an
    ETag and a matching If-None-Match yields 304 Not Modified.
    """
    tasks = service.list_tasks(workspace_id, user_id, status=status, assignee_id=assignee_id,
                               category=category, priority=priority, q=q)
    etag = service.list_signature(workspace_id, tasks, status, assignee_id, category, priority, q)

    if (resp := maybe_304(request, etag)):
        return resp

    return JSONResponse(
        content=[Task.model_validate(t).model_dump(mode='json') for t in tasks],
        headers=cache_headers(etag),
    )


@router.post("/workspace/{workspace_id}/bulk-status", response_model=BulkResult)
@handle_api_errors("Bulk update task status")
async def bulk_update_status(
    workspace_id: str,
    request: BulkStatusRequest,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    """All-or-nothing: an unknown id fails the call and nothing changes"""
    result = service.bulk_update_status(workspace_id, user_id, request.task_ids, request.status.value)
    await broadcaster.tasks_bulk_status(workspace_id, result["ids"], request.status.value)
    return result


@router.post("/workspace/{workspace_id}/bulk-delete", response_model=BulkResult)
@handle_api_errors("Bulk delete tasks")
async def bulk_delete(
    workspace_id: str,
    request: BulkDeleteRequest,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    result = service.bulk_delete(workspace_id, user_id, request.task_ids)
    await broadcaster.tasks_bulk_deleted(workspace_id, result["ids"])
    return result


@router.post("/{workspace_id}", response_model=Task, status_code=HTTPStatus.CREATED)
@handle_api_errors("Create task")
async def create_task(
    workspace_id: str,
    request: TaskCreate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    task = service.create_task(workspace_id, user_id, request)
    await broadcaster.task_changed(task, "created")
    return task


# Single task routes

@router.get("/{task_id}", response_model=Task)
@handle_api_errors("Get task")
def get_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    return service.get_task(task_id, user_id)


@router.put("/{task_id}", response_model=Task)
@handle_api_errors("Update task")
async def update_task(
    task_id: str,
    request: TaskUpdate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    task = service.update_task(task_id, user_id, request.model_dump(exclude_unset=True))
    await broadcaster.task_changed(task, "updated")
    return task


@router.delete("/{task_id}")
@handle_api_errors("Delete task")
async def delete_task(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    result = service.delete_task(task_id, user_id)
    await broadcaster.task_deleted(result["workspace_id"], task_id)
    return result


@router.post("/{task_id}/assign", response_model=Task)
@handle_api_errors("Assign task")
async def assign_task(
    task_id: str,
    request: AssignRequest,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    task = service.assign(task_id, user_id, request.assignee_id)
    await broadcaster.task_changed(task, "assigned")
    return task


@router.post("/{task_id}/progress", response_model=Task)
@handle_api_errors("Update task progress")
async def update_progress(
    task_id: str,
    request: ProgressUpdate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    task = service.update_progress(task_id, user_id, request.status.value, request.progress)
    await broadcaster.task_changed(task, "progress")
    return task


@router.get("/{task_id}/dependencies", response_model=List[TaskDependency])
@handle_api_errors("List task dependencies")
def list_dependencies(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    return service.list_dependencies(task_id, user_id)


@router.post("/{task_id}/dependencies", response_model=TaskDependency, status_code=HTTPStatus.CREATED)
@handle_api_errors("Add task dependency")
def add_dependency(
    task_id: str,
    request: DependencyCreate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    return service.add_dependency(task_id, user_id, request.depends_on_id)


@router.delete("/{task_id}/dependencies/{depends_on_id}", status_code=HTTPStatus.NO_CONTENT)
@handle_api_errors("Remove task dependency")
def remove_dependency(
    task_id: str,
    depends_on_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    service.remove_dependency(task_id, user_id, depends_on_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.get("/{task_id}/comments", response_model=List[TaskComment])
@handle_api_errors("List task comments")
def list_comments(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    return service.list_comments(task_id, user_id)


@router.post("/{task_id}/comments", response_model=TaskComment, status_code=HTTPStatus.CREATED)
@handle_api_errors("Add task comment")
def add_comment(
    task_id: str,
    request: CommentCreate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    return service.add_comment(task_id, user_id, request.content)


@router.get("/{task_id}/history", response_model=List[TaskActivity])
@handle_api_errors("Get task history")
def task_history(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
):
    return service.history(task_id, user_id)


# Task templates

@router.get("/workspace/{workspace_id}/templates", response_model=List[TaskTemplate])
@handle_api_errors("List task templates")
def list_task_templates(
    workspace_id: str,
    user_id: str = Depends(get_current_user_id),
    templates: TemplateService = Depends(get_template_service),
):
    return templates.list_task_templates(workspace_id, user_id)


@router.post("/{task_id}/template", response_model=TaskTemplate, status_code=HTTPStatus.CREATED)
@handle_api_errors("Create task template")
def create_task_template(
    task_id: str,
    request: TaskTemplateCreate,
    user_id: str = Depends(get_current_user_id),
    templates: TemplateService = Depends(get_template_service),
):
    """Capture a task as a template of its workspace; the name must not be blank"""
    return templates.create_task_template(task_id, user_id, request.name, request.description)


@router.post("/templates/{template_id}/tasks", response_model=Task, status_code=HTTPStatus.CREATED)
@handle_api_errors("Create task from template")
async def create_task_from_template(
    template_id: str,
    request: TaskFromTemplate,
    user_id: str = Depends(get_current_user_id),
    service: TaskService = Depends(get_task_service),
    templates: TemplateService = Depends(get_template_service),
):
    template = templates.get_task_template(template_id, user_id)
    task = service.create_task(template.workspace_id, user_id, TaskCreate(
        title=template.title,
        description=template.task_description or template.title,
        category=template.category,
        priority=template.priority,
        assignee_id=request.assignee_id,
        due_date=request.due_date,
        tags=list(template.tags or []),
    ))
    templates.record_task_template_use(template)
    await broadcaster.task_changed(task, "created")
    return task
