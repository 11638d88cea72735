"""
Tests for the client core: query cache, mutations, optimistic updates,
debouncing and the HTTP layer
"""
import asyncio

import httpx
import pytest

from client import (
    Debouncer,
    Mutation,
    Notifier,
    OptimisticMutation,
    QueryCache,
    TaskRepository,
    WorkspaceApiClient,
    WorkspaceQueries,
)

TASKS = [
    {"id": "t1", "title": "Book venue", "status": "NOT_STARTED"},
    {"id": "t2", "title": "Hire caterer", "status": "NOT_STARTED"},
]


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def api_with(handler, user_id="organizer-1"):
    return WorkspaceApiClient("http://testserver", user_id=user_id, transport=httpx.MockTransport(handler))


# Debouncer

def test_debouncer_applies_only_last_value():
    changes = []

    async def run():
        debouncer = Debouncer(0.05, initial="", on_change=changes.append)
        for term in ("v", "ve", "venue"):
            debouncer.set(term)
            await asyncio.sleep(0.01)
        assert debouncer.value == ""
        await asyncio.sleep(0.1)
        return debouncer

    debouncer = asyncio.run(run())

    assert debouncer.value == "venue"
    assert changes == ["venue"]
    assert not debouncer.has_pending


def test_debouncer_cancel_and_unchanged_value():
    changes = []

    async def run():
        debouncer = Debouncer(10, initial="a", on_change=changes.append)
        debouncer.set("b")
        debouncer.cancel()
        debouncer.set("a")
        debouncer.flush()
        return debouncer

    debouncer = asyncio.run(run())
    assert debouncer.value == "a"
    assert changes == []


# Query cache

def test_concurrent_fetches_share_one_request():
    calls = []

    async def fetcher():
        calls.append(1)
        await asyncio.sleep(0.01)
        return TASKS

    async def run():
        cache = QueryCache()
        first, second = await asyncio.gather(
            cache.fetch_query(("tasks", "ws"), fetcher),
            cache.fetch_query(("tasks", "ws"), fetcher),
        )
        return cache, first, second

    cache, first, second = asyncio.run(run())

    assert len(calls) == 1
    assert first == second == TASKS
    assert not cache.is_fetching(("tasks", "ws"))


def test_staleness_follows_stale_time_and_invalidation():
    clock = FakeClock()
    cache = QueryCache(clock=clock)
    cache.set_query_data(("tasks", "ws"), TASKS)

    assert not cache.is_stale(("tasks", "ws"))
    clock.now = 10
    assert cache.is_stale(("tasks", "ws"), stale_time=5)
    assert not cache.is_stale(("tasks", "ws"), stale_time=30)

    assert cache.invalidate("tasks") == 1
    assert cache.is_stale(("tasks", "ws"))
    assert cache.get_query_data(("tasks", "ws")) == TASKS


def test_cancelled_fetch_leaves_cached_data():
    async def slow():
        await asyncio.sleep(10)
        return []

    async def run():
        cache = QueryCache()
        cache.set_query_data(("tasks", "ws"), TASKS)
        cache.invalidate(("tasks", "ws"))
        waiter = asyncio.ensure_future(cache.fetch_query(("tasks", "ws"), slow))
        await asyncio.sleep(0)
        cancelled = await cache.cancel_queries(("tasks",))
        return cancelled, await waiter, cache

    cancelled, result, cache = asyncio.run(run())

    assert cancelled == 1
    assert result == TASKS
    assert not cache.is_fetching(("tasks", "ws"))


def test_subscribers_see_writes_until_unsubscribed():
    seen = []
    cache = QueryCache()
    unsubscribe = cache.subscribe(lambda key, entry: seen.append((key, entry.stale)))

    cache.set_query_data("profile", {"name": "Ada"})
    cache.set_query_data("profile", lambda previous: {**previous, "role": "TEAM_LEAD"})
    unsubscribe()
    cache.invalidate("profile")

    assert seen == [(("profile",), False), (("profile",), False)]
    assert cache.get_query_data("profile") == {"name": "Ada", "role": "TEAM_LEAD"}


def test_exact_cancel_spares_longer_keys():
    async def slow():
        await asyncio.sleep(10)
        return []

    async def run():
        cache = QueryCache()
        list_fetch = asyncio.ensure_future(cache.fetch_query(("tasks", "ws"), slow))
        search_fetch = asyncio.ensure_future(cache.fetch_query(("tasks", "ws", "search", "venue"), slow))
        await asyncio.sleep(0)
        cancelled = await cache.cancel_queries(("tasks", "ws"), exact=True)
        still_running = cache.is_fetching(("tasks", "ws", "search", "venue"))
        await cache.cancel_queries("tasks")
        await asyncio.gather(list_fetch, search_fetch)
        return cancelled, still_running

    cancelled, still_running = asyncio.run(run())

    assert cancelled == 1
    assert still_running


# Mutations

def test_mutation_callback_order_on_success():
    order = []
    cache = QueryCache()
    cache.set_query_data(("tasks", "ws"), TASKS)

    async def create(payload):
        order.append("mutate_fn")
        return {"id": "t3", **payload}

    mutation = Mutation(
        create,
        on_mutate=lambda payload: order.append("on_mutate") or "context",
        on_success=lambda data, payload, context: order.append(("on_success", context)),
        on_settled=lambda data, error, payload, context: order.append(("on_settled", error)),
        cache=cache, invalidate_keys=[("tasks", "ws")],
    )

    data = asyncio.run(mutation.mutate_async({"title": "Print badges"}))

    assert data["id"] == "t3"
    assert order == ["on_mutate", "mutate_fn", ("on_success", "context"), ("on_settled", None)]
    assert cache.is_stale(("tasks", "ws"))
    assert not mutation.is_pending


def test_mutation_failure_reports_to_notifier():
    notifier = Notifier()
    errors = []

    async def fail(_):
        raise RuntimeError("server down")

    mutation = Mutation(fail, on_error=lambda e, variables, context: errors.append(str(e)),
                        notifier=notifier, error_message="Failed to create task")

    assert asyncio.run(mutation.mutate({"title": "x"})) is None
    assert mutation.is_error
    assert errors == ["server down"]
    assert [(n.title, n.description) for n in notifier.errors()] == [("Failed to create task", "server down")]

    with pytest.raises(RuntimeError):
        asyncio.run(mutation.mutate_async({"title": "x"}))


# Optimistic updates

def test_optimistic_delete_rolls_back_on_failure():
    cache = QueryCache()
    notifier = Notifier()
    cache.set_query_data(("tasks", "ws"), TASKS)
    seen_during_call = []

    async def remote_delete(ids):
        seen_during_call.append([t["id"] for t in cache.get_query_data(("tasks", "ws"))])
        raise RuntimeError("403: Access denied")

    mutation = OptimisticMutation(cache, ("tasks", "ws"), remote_delete, delete=True,
                                  notifier=notifier, error_message="Failed to delete tasks")

    outcome = asyncio.run(mutation.perform(["t1"]))

    assert seen_during_call == [["t2"]]
    assert outcome.success is False
    assert cache.get_query_data(("tasks", "ws")) == TASKS
    assert cache.is_stale(("tasks", "ws"))
    assert notifier.errors()[0].title == "Failed to delete tasks"
    assert not mutation.is_pending


def test_optimistic_update_keeps_change_on_success():
    cache = QueryCache()
    cache.set_query_data(("tasks", "ws"), TASKS)
    calls = []

    async def remote_status(ids, status):
        calls.append((ids, status))
        return {"updated": len(ids), "ids": ids}

    mutation = OptimisticMutation(cache, ("tasks", "ws"), remote_status, field="status")
    outcome = asyncio.run(mutation.perform({"t2", "t1"}, "COMPLETED"))

    assert outcome.success is True
    assert calls == [(["t1", "t2"], "COMPLETED")]
    assert {t["status"] for t in cache.get_query_data(("tasks", "ws"))} == {"COMPLETED"}
    # The original list was not modified in place
    assert TASKS[0]["status"] == "NOT_STARTED"
    assert cache.is_stale(("tasks", "ws"))


def test_optimistic_mutation_needs_exactly_one_mode():
    with pytest.raises(ValueError):
        OptimisticMutation(QueryCache(), "tasks", lambda ids: None)
    with pytest.raises(ValueError):
        OptimisticMutation(QueryCache(), "tasks", lambda ids: None, field="status", delete=True)


# HTTP layer

def test_repository_turns_errors_into_results():
    def handler(request):
        if request.url.path.endswith("/missing"):
            return httpx.Response(404, json={"detail": "Task not found: missing"})
        raise httpx.ConnectError("connection refused", request=request)

    async def run():
        async with api_with(handler) as api:
            repo = TaskRepository(api)
            return await repo.get("missing"), await repo.get("t1")

    not_found, offline = asyncio.run(run())

    assert not_found.success is False
    assert not_found.status_code == 404
    assert not_found.error == "Task not found: missing"
    assert offline.error.startswith("Network error")


def test_api_client_sends_identity_and_drops_empty_params():
    seen = {}

    def handler(request):
        seen["user"] = request.headers.get("X-User-Id")
        seen["query"] = dict(request.url.params)
        return httpx.Response(200, json=[])

    async def run():
        async with api_with(handler) as api:
            return await api.list_expenses("ws-1")

    assert asyncio.run(run()) == []
    assert seen == {"user": "organizer-1", "query": {}}


def test_workspace_queries_revalidate_with_etag():
    requests = []

    def handler(request):
        requests.append(request.headers.get("If-None-Match"))
        if request.headers.get("If-None-Match") == '"v1"':
            return httpx.Response(304, headers={"ETag": '"v1"'})
        return httpx.Response(200, json=TASKS, headers={"ETag": '"v1"'})

    async def run():
        async with api_with(handler) as api:
            queries = WorkspaceQueries(api, "ws-1")
            first = await queries.tasks()
            cached = await queries.tasks()
            queries.cache.invalidate(queries.tasks_key)
            revalidated = await queries.tasks()
            return first, cached, revalidated

    first, cached, revalidated = asyncio.run(run())

    assert first == cached == revalidated == TASKS
    assert requests == [None, '"v1"']


def test_debounced_search_only_queries_last_term():
    terms = []

    def handler(request):
        terms.append(request.url.params.get("q"))
        return httpx.Response(200, json=[TASKS[0]])

    async def run():
        async with api_with(handler) as api:
            queries = WorkspaceQueries(api, "ws-1", search_delay=10)
            for term in ("v", "ve", "venue "):
                queries.search_tasks(term)
            return await queries.wait_for_search(), queries.search_term

    results, term = asyncio.run(run())

    assert terms == ["venue"]
    assert term == "venue"
    assert results == [TASKS[0]]


def test_failed_bulk_status_restores_cached_tasks():
    def handler(request):
        if request.url.path.endswith("/bulk-status"):
            return httpx.Response(404, json={"detail": "Tasks not found in workspace: t9"})
        return httpx.Response(200, json=TASKS, headers={"ETag": '"v1"'})

    async def run():
        async with api_with(handler) as api:
            queries = WorkspaceQueries(api, "ws-1")
            await queries.tasks()
            outcome = await queries.bulk_update_task_status(["t1", "t9"], "COMPLETED")
            return queries, outcome

    queries, outcome = asyncio.run(run())

    assert outcome.success is False
    assert outcome.error.status_code == 404
    assert queries.cache.get_query_data(queries.tasks_key) == TASKS
    assert queries.notifier.errors()[0].description == "404: Tasks not found in workspace: t9"


def test_bulk_status_during_search_keeps_search_results():
    async def handler(request):
        if request.url.path.endswith("/bulk-status"):
            return httpx.Response(200, json={"updated": 1, "ids": ["t1"]})
        if request.url.params.get("q"):
            await asyncio.sleep(0.05)
            return httpx.Response(200, json=[TASKS[0]])
        return httpx.Response(200, json=TASKS, headers={"ETag": '"v1"'})

    async def run():
        async with api_with(handler) as api:
            queries = WorkspaceQueries(api, "ws-1", search_delay=10)
            await queries.tasks()
            queries.search_tasks("venue")
            search = asyncio.ensure_future(queries.wait_for_search())
            await asyncio.sleep(0.01)
            outcome = await queries.bulk_update_task_status(["t1"], "COMPLETED")
            return outcome, await search

    outcome, results = asyncio.run(run())

    assert outcome.success is True
    assert results == [TASKS[0]]


def test_non_object_error_body_still_becomes_a_result():
    def handler(request):
        return httpx.Response(400, json=["bad"])

    async def run():
        async with api_with(handler) as api:
            return await TaskRepository(api).get("t1")

    result = asyncio.run(run())

    assert result.success is False
    assert result.status_code == 400
    assert result.error == '["bad"]'
