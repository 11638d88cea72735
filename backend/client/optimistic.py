"""
Optimistic Mutation Wrapper

Applies a change to the cached collection before the server confirms it:

1. Cancel an in-flight fetch of the key, snapshot the cached collection and
   apply the change locally (set a field on the selected items, or remove
   them).
2. Make the remote call.
3. On failure, restore the snapshot and report the error to the notifier.
4. Either way, mark the key stale so the next read refetches.

Each wrapper keeps one snapshot, the most recent. Overlapping calls on the
same key are not coordinated; when they overlap the last rollback wins.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, FrozenSet, Hashable, Iterable, Optional

from client.notifier import Notifier
from client.query_cache import QueryCache

logger = logging.getLogger(__name__)

_NO_SNAPSHOT = object()


@dataclass
class MutationOutcome:
    success: bool
    ids: FrozenSet[Hashable] = field(default_factory=frozenset)
    data: Any = None
    error: Optional[Exception] = None


class OptimisticMutation:
    """
    Optimistic update or delete over a cached list of dict items.

    Exactly one of `field` (update mode) or `delete=True` must be given.
    In update mode the remote call is `remote_call(ids, new_value)`; in
    delete mode it is `remote_call(ids)`. ids are passed as a sorted list.
    """

    def __init__(
        self,
        cache: QueryCache,
        key,
        remote_call: Callable[..., Awaitable[Any]],
        field: Optional[str] = None,
        delete: bool = False,
        id_field: str = "id",
        notifier: Optional[Notifier] = None,
        error_message: str = "Update failed",
        success_message: Optional[str] = None,
    ):
        if delete == (field is not None):
            raise ValueError("OptimisticMutation needs either a field to set or delete=True")
        self.cache = cache
        self.key = key
        self.remote_call = remote_call
        self.field = field
        self.delete = delete
        self.id_field = id_field
        self.notifier = notifier
        self.error_message = error_message
        self.success_message = success_message

        self.is_pending = False
        self._snapshot = _NO_SNAPSHOT

    def apply_local(self, items, ids: FrozenSet[Hashable], new_value: Any = None):
        """The collection as it looks once the change has been applied"""
        if items is None:
            return None
        if self.delete:
            return [item for item in items if item.get(self.id_field) not in ids]
        return [
            {**item, self.field: new_value} if item.get(self.id_field) in ids else item
            for item in items
        ]

    def rollback(self) -> bool:
        """Restore the last snapshot, if there is one"""
        if self._snapshot is _NO_SNAPSHOT:
            return False
        self.cache.set_query_data(self.key, self._snapshot)
        self._snapshot = _NO_SNAPSHOT
        return True

    async def perform(self, ids: Iterable[Hashable], new_value: Any = None) -> MutationOutcome:
        ids = frozenset(ids)
        self.is_pending = True
        try:
            await self.cache.cancel_queries(self.key, exact=True)

            previous = self.cache.get_query_data(self.key)
            if previous is not None:
                self._snapshot = copy.deepcopy(previous)
                self.cache.set_query_data(self.key, self.apply_local(previous, ids, new_value))
            else:
                self._snapshot = _NO_SNAPSHOT

            try:
                if self.delete:
                    data = await self.remote_call(sorted(ids))
                else:
                    data = await self.remote_call(sorted(ids), new_value)
            except Exception as e:
                logger.warning(f"{self.error_message} ({len(ids)} item(s)), rolling back: {e}")
                self.rollback()
                if self.notifier:
                    self.notifier.error(self.error_message, str(e))
                return MutationOutcome(success=False, ids=ids, error=e)

            self._snapshot = _NO_SNAPSHOT
            if self.notifier and self.success_message:
                self.notifier.success(self.success_message)
            return MutationOutcome(success=True, ids=ids, data=data)
        finally:
            self.cache.invalidate(self.key)
            self.is_pending = False
