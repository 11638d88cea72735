"""
Client-side repositories

Each repository wraps the API client calls for one feature and returns a
ServiceResult instead of raising: API and transport errors are caught at
this boundary and logged.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Generic, List, Optional, TypeVar

import httpx

from client.api_client import ApiError, WorkspaceApiClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def ok(cls, data: T = None) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, status_code: Optional[int] = None) -> "ServiceResult[T]":
        return cls(success=False, error=error, status_code=status_code)


class ClientRepository:
    def __init__(self, api: WorkspaceApiClient):
        self.api = api

    async def _call(self, operation: str, call: Awaitable[Any]) -> ServiceResult:
        try:
            return ServiceResult.ok(await call)
        except ApiError as e:
            logger.warning(f"{operation} failed: {e}")
            return ServiceResult.fail(str(e.detail), e.status_code)
        except httpx.HTTPError as e:
            logger.error(f"{operation} failed: {e}")
            return ServiceResult.fail(f"Network error: {e}")


class TaskRepository(ClientRepository):
    async def list(self, workspace_id: str, **filters) -> ServiceResult[List[Dict[str, Any]]]:
        result = await self._call("List tasks", self.api.list_tasks(workspace_id, **filters))
        if result.success:
            result.data = result.data[0] or []
        return result

    async def get(self, task_id: str) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Get task", self.api.get_task(task_id))

    async def create(self, workspace_id: str, payload: Dict[str, Any]) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Create task", self.api.create_task(workspace_id, payload))

    async def update(self, task_id: str, changes: Dict[str, Any]) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Update task", self.api.update_task(task_id, changes))

    async def delete(self, task_id: str) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Delete task", self.api.delete_task(task_id))

    async def bulk_update_status(self, workspace_id: str, task_ids: List[str], status: str) -> ServiceResult:
        return await self._call("Bulk update tasks",
                                self.api.bulk_update_task_status(workspace_id, task_ids, status))


class ExpenseRepository(ClientRepository):
    async def list(self, workspace_id: str, status: Optional[str] = None) -> ServiceResult[List[Dict[str, Any]]]:
        return await self._call("List expenses", self.api.list_expenses(workspace_id, status))

    async def submit(self, workspace_id: str, description: str, amount: float,
                     category: str = "GENERAL") -> ServiceResult[Dict[str, Any]]:
        payload = {"description": description, "amount": amount, "category": category}
        return await self._call("Submit expense", self.api.submit_expense(workspace_id, payload))

    async def bulk_update_status(self, workspace_id: str, expense_ids: List[str], status: str) -> ServiceResult:
        return await self._call("Bulk update expenses",
                                self.api.bulk_update_expense_status(workspace_id, expense_ids, status))


class WorkspaceRepository(ClientRepository):
    async def provision(self, event_id: str) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Provision workspace", self.api.provision_workspace(event_id))

    async def get(self, workspace_id: str) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Get workspace", self.api.get_workspace(workspace_id))

    async def list_for_user(self, user_id: str) -> ServiceResult[List[Dict[str, Any]]]:
        return await self._call("List workspaces", self.api.list_user_workspaces(user_id))

    async def status(self, workspace_id: str) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Get workspace status", self.api.get_workspace_status(workspace_id))

    async def dissolve(self, workspace_id: str, retention_period_days: Optional[int] = None) -> ServiceResult:
        return await self._call("Dissolve workspace",
                                self.api.dissolve_workspace(workspace_id, retention_period_days))

    async def analytics(self, workspace_id: str) -> ServiceResult[Dict[str, Any]]:
        return await self._call("Get analytics", self.api.get_analytics(workspace_id))

    async def export(self, workspace_id: str) -> ServiceResult[bytes]:
        return await self._call("Export workspace", self.api.export_workspace(workspace_id))
