"""
Async HTTP client for the Workspace Hub API
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ApiError(Exception):
    """Non-2xx response from the API"""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class WorkspaceApiClient:
    """
    Thin wrapper over httpx.AsyncClient for the /api routes.

    Every request carries the X-User-Id header. List calls accept an ETag
    and return (None, etag) when the server answers 304 Not Modified.
    """

    def __init__(self, base_url: str, user_id: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.user_id = user_id
        self._client = httpx.AsyncClient(base_url=base_url.rstrip('/'), timeout=timeout, transport=transport)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def request(self, method: str, path: str, *, params: Optional[dict] = None,
                      json: Any = None, headers: Optional[dict] = None) -> httpx.Response:
        request_headers = dict(headers or {})
        if self.user_id:
            request_headers["X-User-Id"] = self.user_id
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        response = await self._client.request(method, f"/api{path}", params=params, json=json,
                                              headers=request_headers)
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            # Proxies may answer with JSON that is not an object
            detail = body.get("detail", response.text) if isinstance(body, dict) else response.text
            logger.debug(f"{method} {path} -> {response.status_code}: {detail}")
            raise ApiError(response.status_code, detail)
        return response

    async def _get_list(self, path: str, etag: Optional[str] = None,
                        params: Optional[dict] = None) -> Tuple[Optional[List[dict]], Optional[str]]:
        headers = {"If-None-Match": etag} if etag else None
        response = await self.request("GET", path, params=params, headers=headers)
        if response.status_code == 304:
            return None, etag
        return response.json(), response.headers.get("ETag")

    # Meta

    async def health(self) -> Dict[str, Any]:
        return (await self.request("GET", "/health")).json()

    # Workspaces

    async def provision_workspace(self, event_id: str) -> Dict[str, Any]:
        return (await self.request("POST", "/workspace/provision", json={"event_id": event_id})).json()

    async def get_workspace(self, workspace_id: str) -> Dict[str, Any]:
        return (await self.request("GET", f"/workspace/{workspace_id}")).json()

    async def list_user_workspaces(self, user_id: str) -> List[Dict[str, Any]]:
        return (await self.request("GET", f"/workspace/user/{user_id}")).json()

    async def get_workspace_status(self, workspace_id: str) -> Dict[str, Any]:
        return (await self.request("GET", f"/workspace/{workspace_id}/status")).json()

    async def dissolve_workspace(self, workspace_id: str, retention_period_days: Optional[int] = None) -> Dict[str, Any]:
        body = {"retention_period_days": retention_period_days} if retention_period_days is not None else None
        return (await self.request("POST", f"/workspace/{workspace_id}/dissolve", json=body)).json()

    async def get_analytics(self, workspace_id: str) -> Dict[str, Any]:
        return (await self.request("GET", f"/workspace/{workspace_id}/analytics")).json()

    async def export_workspace(self, workspace_id: str) -> bytes:
        return (await self.request("POST", f"/workspace/{workspace_id}/export")).content

    # Tasks

    async def list_tasks(self, workspace_id: str, etag: Optional[str] = None, **filters):
        """
        Returns:
            (tasks, etag), with tasks None when the cached copy is still current
        """
        return await self._get_list(f"/task/workspace/{workspace_id}", etag=etag, params=filters)

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        return (await self.request("GET", f"/task/{task_id}")).json()

    async def create_task(self, workspace_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("POST", f"/task/{workspace_id}", json=payload)).json()

    async def update_task(self, task_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("PUT", f"/task/{task_id}", json=changes)).json()

    async def delete_task(self, task_id: str) -> Dict[str, Any]:
        return (await self.request("DELETE", f"/task/{task_id}")).json()

    async def bulk_update_task_status(self, workspace_id: str, task_ids: List[str], status: str) -> Dict[str, Any]:
        body = {"task_ids": list(task_ids), "status": status}
        return (await self.request("POST", f"/task/workspace/{workspace_id}/bulk-status", json=body)).json()

    async def bulk_delete_tasks(self, workspace_id: str, task_ids: List[str]) -> Dict[str, Any]:
        body = {"task_ids": list(task_ids)}
        return (await self.request("POST", f"/task/workspace/{workspace_id}/bulk-delete", json=body)).json()

    # Expenses

    async def list_expenses(self, workspace_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        return (await self.request("GET", f"/workspace/{workspace_id}/expenses", params={"status": status})).json()

    async def submit_expense(self, workspace_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.request("POST", f"/workspace/{workspace_id}/expenses", json=payload)).json()

    async def bulk_update_expense_status(self, workspace_id: str, expense_ids: List[str], status: str) -> Dict[str, Any]:
        body = {"expense_ids": list(expense_ids), "status": status}
        return (await self.request("POST", f"/workspace/{workspace_id}/expenses/bulk-status", json=body)).json()
