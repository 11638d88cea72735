"""
Mutation - a remote write with pending/error state

Callbacks run in this order: on_mutate, the mutation function, then
on_success or on_error, and finally on_settled. Callbacks may be plain
functions or coroutines. on_mutate's return value is the context passed to
the later callbacks.
"""
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from client.notifier import Notifier
from client.query_cache import QueryCache

logger = logging.getLogger(__name__)


async def maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class Mutation:
    def __init__(
        self,
        mutation_fn: Callable[[Any], Awaitable[Any]],
        on_mutate: Optional[Callable] = None,
        on_success: Optional[Callable] = None,
        on_error: Optional[Callable] = None,
        on_settled: Optional[Callable] = None,
        cache: Optional[QueryCache] = None,
        invalidate_keys: Iterable = (),
        notifier: Optional[Notifier] = None,
        error_message: str = "Request failed",
    ):
        self.mutation_fn = mutation_fn
        self.on_mutate = on_mutate
        self.on_success = on_success
        self.on_error = on_error
        self.on_settled = on_settled
        self.cache = cache
        self.invalidate_keys = list(invalidate_keys)
        self.notifier = notifier
        self.error_message = error_message

        self.is_pending = False
        self.error: Optional[Exception] = None
        self.data: Any = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def reset(self):
        self.is_pending = False
        self.error = None
        self.data = None

    async def mutate_async(self, variables: Any = None) -> Any:
        """
        Run the mutation.

        Raises:
            Whatever the mutation function (or on_mutate) raised, after the
            error callbacks have run
        """
        self.is_pending = True
        self.error = None
        context = None
        try:
            if self.on_mutate:
                context = await maybe_await(self.on_mutate(variables))
            data = await self.mutation_fn(variables)
        except Exception as e:
            self.error = e
            logger.warning(f"{self.error_message}: {e}")
            if self.on_error:
                await maybe_await(self.on_error(e, variables, context))
            if self.notifier:
                self.notifier.error(self.error_message, str(e))
            if self.on_settled:
                await maybe_await(self.on_settled(None, e, variables, context))
            raise
        else:
            self.data = data
            if self.cache is not None:
                for key in self.invalidate_keys:
                    self.cache.invalidate(key)
            if self.on_success:
                await maybe_await(self.on_success(data, variables, context))
            if self.on_settled:
                await maybe_await(self.on_settled(data, None, variables, context))
            return data
        finally:
            self.is_pending = False

    async def mutate(self, variables: Any = None) -> Any:
        """
        Run the mutation without raising; the error is left on self.error.

        Returns:
            The mutation result, or None if it failed
        """
        try:
            return await self.mutate_async(variables)
        except Exception:
            return None
