"""
MutationExecutor: one endpoint call per mutation, cache effects on
success only, eager removal on delete.

Uses the simulator backend through real bindings.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.bindings import ResourceBinding
from src.adapters.simulator_backend import SimulatorBackend
from src.domain.errors import NetworkError, NotFoundError, ValidationError
from src.domain.mutations import Mutation, MutationExecutor
from src.domain.query_cache import CacheKey, EntryState, QueryCache
from src.domain.records import CLIENT, SERVICE, SESSION, Client

CLIENTS = CacheKey("client")


@pytest.fixture
def backend():
    return SimulatorBackend()


@pytest.fixture
def cache():
    return QueryCache()


@pytest.fixture
def bindings(backend):
    return {spec.name: ResourceBinding(spec, backend) for spec in (CLIENT, SERVICE, SESSION)}


@pytest.fixture
def executor(cache, bindings):
    return MutationExecutor(cache, bindings)


@pytest.mark.asyncio
async def test_create_returns_server_record(executor, backend):
    outcome = await executor.execute(Mutation("create", "client", {"nom": "Alice", "email": "a@x.com"}))
    assert outcome.ok
    assert isinstance(outcome.record, Client)
    assert outcome.record.id == "c1"
    assert backend.count("POST") == 1


@pytest.mark.asyncio
async def test_exactly_one_call_even_on_failure(executor, backend):
    backend.fail_next(NetworkError("offline"))
    outcome = await executor.execute(Mutation("create", "client", {"nom": "Alice"}))
    assert outcome.status == "error"
    assert isinstance(outcome.error, NetworkError)
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_failure_leaves_cache_untouched(executor, backend, cache, bindings):
    backend.seed("client", nom="Alice")
    cache.subscribe(CLIENTS, lambda s: None)
    before = await cache.load(CLIENTS, bindings["client"].list_records)

    outcome = await executor.execute(Mutation("delete", "client", record_id="c404"))

    assert isinstance(outcome.error, NotFoundError)
    assert cache.peek(CLIENTS) is before
    assert backend.count("GET") == 1


@pytest.mark.asyncio
async def test_local_validation_error_makes_no_call(executor, backend):
    outcome = await executor.execute(Mutation("create", "session", {"tarif_horaire": 40}))
    assert isinstance(outcome.error, ValidationError)
    assert backend.requests == []


@pytest.mark.asyncio
async def test_success_invalidates_list_of_that_resource_only(executor, backend, cache, bindings):
    cache.subscribe(CLIENTS, lambda s: None)
    await cache.load(CLIENTS, bindings["client"].list_records)
    await cache.load(CacheKey("service"), bindings["service"].list_records)

    backend.hold("GET")
    await executor.execute(Mutation("create", "client", {"nom": "Alice"}))

    assert cache.peek(CLIENTS).status == "loading"
    assert cache.peek(CacheKey("service")).stale is False
    backend.release()
    state = await cache.load(CLIENTS, bindings["client"].list_records)
    assert [c.nom for c in state.data] == ["Alice"]


@pytest.mark.asyncio
@pytest.mark.parametrize("resource", ["client", "service", "session"])
async def test_update_invalidates_list_and_item_for_every_resource(
    resource, executor, backend, cache, bindings
):
    fields = {
        "client": {"nom": "Alice"},
        "service": {"debut_session": "2026-03-01T09:00:00Z", "tarif_horaire": 30, "client_id": "c1"},
        "session": {"debut_session": "2026-03-01T09:00:00Z", "tarif_horaire": 30, "client_id": "c1"},
    }[resource]
    record_id = backend.seed(resource, **fields)["id"]
    binding = bindings[resource]
    await cache.load(CacheKey(resource), binding.list_records)
    await cache.load(CacheKey(resource, record_id), lambda: binding.get_record(record_id))

    outcome = await executor.execute(
        Mutation("update", resource, {"montant_total": 99, "email": "b@x.com"}, record_id)
    )

    assert outcome.ok
    assert cache.peek(CacheKey(resource)).stale is True
    assert cache.peek(CacheKey(resource, record_id)).stale is True


@pytest.mark.asyncio
async def test_delete_removes_row_before_refetch_completes(executor, backend, cache, bindings):
    backend.seed("client", nom="Alice")
    seen: list[EntryState] = []
    cache.subscribe(CLIENTS, seen.append)
    await cache.load(CLIENTS, bindings["client"].list_records)
    seen.clear()

    backend.hold("GET")
    outcome = await executor.execute(Mutation("delete", "client", record_id="c1"))

    assert outcome.ok
    assert outcome.record is None
    assert seen[0].status == "loaded"
    assert seen[0].data == []
    assert cache.peek(CLIENTS).status == "loading"
    assert cache.peek(CLIENTS).data == []

    backend.release()
    state = await cache.load(CLIENTS, bindings["client"].list_records)
    assert state.status == "loaded"
    assert state.data == []


@pytest.mark.asyncio
async def test_create_session_with_datetime_fields(executor, backend):
    start = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)
    outcome = await executor.execute(Mutation("create", "session", {
        "debut_session": start,
        "fin_session": start + timedelta(hours=2),
        "tarif_horaire": 50.0,
        "client_id": "c1",
    }))

    assert outcome.ok
    assert outcome.record.debut_session == start
    assert outcome.record.fin_session == start + timedelta(hours=2)
    assert backend.requests[0].body["debutSession"] == "2024-01-01T09:30:00Z"


@pytest.mark.asyncio
async def test_update_session_with_datetime_field(executor, backend):
    backend.seed("session", debut_session="2024-01-01T09:00:00Z", tarif_horaire=50, client_id="c1")
    end = datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)

    outcome = await executor.execute(Mutation("update", "session", {"fin_session": end}, "s1"))

    assert outcome.ok
    assert backend.requests[-1].body == {"finSession": "2024-01-01T11:00:00Z"}


@pytest.mark.asyncio
async def test_pending_tracking(executor, backend):
    backend.seed("client", nom="Alice")
    backend.hold("DELETE")
    task = asyncio.ensure_future(executor.execute(Mutation("delete", "client", record_id="c1")))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert executor.is_pending("client")
    assert executor.is_pending("client", "c1")
    assert not executor.is_pending("client", "c2")
    assert not executor.is_pending("session")

    backend.release()
    await task
    assert not executor.is_pending("client")


@pytest.mark.asyncio
async def test_cancelling_caller_does_not_cancel_mutation(executor, backend, cache, bindings):
    backend.seed("client", nom="Alice")
    await cache.load(CLIENTS, bindings["client"].list_records)
    backend.hold("DELETE")

    caller = asyncio.ensure_future(executor.execute(Mutation("delete", "client", record_id="c1")))
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    backend.release()
    for _ in range(5):
        await asyncio.sleep(0)
    assert cache.peek(CLIENTS).data == []
    assert not executor.is_pending("client")


@pytest.mark.asyncio
async def test_unknown_resource_is_a_programming_error(executor):
    with pytest.raises(ValueError):
        await executor.execute(Mutation("create", "invoice", {"x": 1}))


@pytest.mark.asyncio
async def test_update_without_id_is_a_programming_error(executor):
    with pytest.raises(ValueError):
        await executor.execute(Mutation("update", "client", {"nom": "x"}))
