"""
Query hooks for one workspace

WorkspaceQueries wires the API client, the query cache, the mutation
helpers and the notifier together the way the workspace screens use them:
cached task and expense lists, optimistic bulk status changes and deletes,
task creation with invalidation, and a debounced task search.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from client.api_client import WorkspaceApiClient
from client.debounce import DEFAULT_DELAY, Debouncer
from client.mutation import Mutation
from client.notifier import Notifier
from client.optimistic import MutationOutcome, OptimisticMutation
from client.query_cache import QueryCache

logger = logging.getLogger(__name__)


def task_keys(workspace_id: str):
    return ("tasks", workspace_id)


def expense_keys(workspace_id: str):
    return ("expenses", workspace_id)


class WorkspaceQueries:
    def __init__(self, api: WorkspaceApiClient, workspace_id: str, cache: Optional[QueryCache] = None,
                 notifier: Optional[Notifier] = None, search_delay: float = DEFAULT_DELAY):
        self.api = api
        self.workspace_id = workspace_id
        self.cache = cache or QueryCache()
        self.notifier = notifier or Notifier()
        self.tasks_key = task_keys(workspace_id)
        self.expenses_key = expense_keys(workspace_id)

        self.task_status_mutation = OptimisticMutation(
            self.cache, self.tasks_key,
            lambda ids, status: self.api.bulk_update_task_status(workspace_id, ids, status),
            field="status", notifier=self.notifier,
            error_message="Failed to update tasks", success_message="Tasks updated",
        )
        self.task_delete_mutation = OptimisticMutation(
            self.cache, self.tasks_key,
            lambda ids: self.api.bulk_delete_tasks(workspace_id, ids),
            delete=True, notifier=self.notifier,
            error_message="Failed to delete tasks", success_message="Tasks deleted",
        )
        self.expense_status_mutation = OptimisticMutation(
            self.cache, self.expenses_key,
            lambda ids, status: self.api.bulk_update_expense_status(workspace_id, ids, status),
            field="status", notifier=self.notifier,
            error_message="Failed to update expenses", success_message="Expenses updated",
        )
        self.create_task_mutation = Mutation(
            lambda payload: self.api.create_task(workspace_id, payload),
            on_success=lambda task, payload, context: self.notifier.success("Task created", task.get("title")),
            cache=self.cache, invalidate_keys=[self.tasks_key],
            notifier=self.notifier, error_message="Failed to create task",
        )

        self.search_results: List[Dict[str, Any]] = []
        self._search_task: Optional[asyncio.Task] = None
        self._search = Debouncer(search_delay, initial="", on_change=self._on_search_term)

    # Queries

    async def tasks(self, stale_time: Optional[float] = None) -> List[Dict[str, Any]]:
        return await self.cache.fetch_query(self.tasks_key, self._fetch_tasks, stale_time)

    async def _fetch_tasks(self):
        entry = self.cache.get_entry(self.tasks_key)
        tasks, etag = await self.api.list_tasks(self.workspace_id, etag=entry.etag if entry else None)
        if tasks is None:
            logger.debug(f"Tasks of {self.workspace_id} not modified")
            return entry.data
        self.cache.set_etag(self.tasks_key, etag)
        return tasks

    async def expenses(self, stale_time: Optional[float] = None) -> List[Dict[str, Any]]:
        return await self.cache.fetch_query(
            self.expenses_key, lambda: self.api.list_expenses(self.workspace_id), stale_time
        )

    # Mutations

    async def bulk_update_task_status(self, task_ids: Iterable[str], status: str) -> MutationOutcome:
        return await self.task_status_mutation.perform(task_ids, status)

    async def delete_tasks(self, task_ids: Iterable[str]) -> MutationOutcome:
        return await self.task_delete_mutation.perform(task_ids)

    async def expense_status(self, expense_ids: Iterable[str], status: str) -> MutationOutcome:
        return await self.expense_status_mutation.perform(expense_ids, status)

    async def create_task(self, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.create_task_mutation.mutate(payload)

    # Search

    @property
    def search_term(self) -> str:
        return self._search.value

    def search_tasks(self, term: str):
        """Debounced: only the last term typed within the delay is searched"""
        self._search.set(term.strip())

    def _on_search_term(self, term: str):
        if self._search_task is not None and not self._search_task.done():
            self._search_task.cancel()
        self._search_task = asyncio.ensure_future(self._run_search(term))

    async def _run_search(self, term: str):
        if not term:
            self.search_results = []
            return self.search_results

        async def fetch():
            tasks, _ = await self.api.list_tasks(self.workspace_id, q=term)
            return tasks or []

        # A cancelled first fetch leaves no cached value behind
        self.search_results = await self.cache.fetch_query(self.tasks_key + ("search", term), fetch) or []
        return self.search_results

    async def wait_for_search(self) -> List[Dict[str, Any]]:
        """Apply any pending term now and wait for its results"""
        self._search.flush()
        if self._search_task is not None:
            await self._search_task
        return self.search_results
