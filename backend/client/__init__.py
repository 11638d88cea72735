"""
Client core for the Workspace Hub API.

Query cache, mutations (plain and optimistic), debouncing, repositories
returning ServiceResult, and per-workspace query hooks.
"""

from .api_client import ApiError, WorkspaceApiClient
from .debounce import Debouncer
from .hooks import WorkspaceQueries
from .mutation import Mutation
from .notifier import Notifier
from .optimistic import MutationOutcome, OptimisticMutation
from .query_cache import QueryCache
from .repository import ExpenseRepository, ServiceResult, TaskRepository, WorkspaceRepository

__all__ = [
    "ApiError",
    "WorkspaceApiClient",
    "Debouncer",
    "WorkspaceQueries",
    "Mutation",
    "Notifier",
    "MutationOutcome",
    "OptimisticMutation",
    "QueryCache",
    "ExpenseRepository",
    "ServiceResult",
    "TaskRepository",
    "WorkspaceRepository",
]
