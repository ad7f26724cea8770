"""
Composition root for the admin front-end's data layer.

Wires one QueryCache and one MutationExecutor over a Transport and
exposes a ResourceHandle per resource type:

  admin.clients   -> /api/client
  admin.services  -> /api/service
  admin.sessions  -> /api/session

A View holds a handle: it watches cached reads, submits mutations and
checks is_pending() to keep its submit control disabled meanwhile.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable

from src.adapters.bindings import ResourceBinding
from src.adapters.ports import Transport
from src.domain.mutations import Mutation, MutationExecutor, MutationRecord
from src.domain.query_cache import DEFAULT_GRACE_SECONDS, CacheKey, EntryState, QueryCache
from src.domain.records import CLIENT, SERVICE, SESSION

log = logging.getLogger(__name__)


@dataclass
class AdminConfig:
    transport: Transport
    grace_seconds: float = DEFAULT_GRACE_SECONDS


class ResourceHandle:
    """Reads through the cache and writes through the executor for one resource."""

    def __init__(self, binding: ResourceBinding, cache: QueryCache, executor: MutationExecutor):
        self._binding = binding
        self._cache = cache
        self._executor = executor
        self.name = binding.spec.name
        self.list_key = CacheKey(self.name)

    def item_key(self, record_id: str) -> CacheKey:
        return CacheKey(self.name, record_id)

    # -- reads ---------------------------------------------------------------

    def list_state(self) -> EntryState:
        """Cached list state right now; starts a fetch if needed."""
        return self._cache.get_or_fetch(self.list_key, self._binding.list_records)

    async def fetch_list(self) -> EntryState:
        return await self._cache.load(self.list_key, self._binding.list_records)

    async def fetch(self, record_id: str) -> EntryState:
        return await self._cache.load(
            self.item_key(record_id), partial(self._binding.get_record, record_id)
        )

    def watch(
        self,
        callback: Callable[[EntryState], None],
        record_id: str | None = None,
    ) -> Callable[[], None]:
        """Subscribe to the list (or one record) and make sure it is loaded."""
        if record_id is None:
            key, fetcher = self.list_key, self._binding.list_records
        else:
            key, fetcher = self.item_key(record_id), partial(self._binding.get_record, record_id)
        unsubscribe = self._cache.subscribe(key, callback)
        self._cache.get_or_fetch(key, fetcher)
        return unsubscribe

    def invalidate(self) -> int:
        """Mark every cached read of this resource stale."""
        return self._cache.invalidate(lambda key: key.resource == self.name)

    # -- writes --------------------------------------------------------------

    async def create(self, **fields) -> MutationRecord:
        return await self._executor.execute(Mutation("create", self.name, payload=fields))

    async def update(self, record_id: str, **changes) -> MutationRecord:
        return await self._executor.execute(
            Mutation("update", self.name, payload=changes, record_id=record_id)
        )

    async def delete(self, record_id: str) -> MutationRecord:
        return await self._executor.execute(Mutation("delete", self.name, record_id=record_id))

    def is_pending(self, record_id: str | None = None) -> bool:
        return self._executor.is_pending(self.name, record_id)


class AdminClient:
    """
    Owns the process-wide cache.  Create one per process, pass it around,
    and close() it on shutdown.
    """

    def __init__(self, config: AdminConfig):
        self._cfg = config
        self.cache = QueryCache(grace_seconds=config.grace_seconds)
        bindings = {
            spec.name: ResourceBinding(spec, config.transport)
            for spec in (CLIENT, SERVICE, SESSION)
        }
        self.executor = MutationExecutor(self.cache, bindings)
        self.clients = ResourceHandle(bindings["client"], self.cache, self.executor)
        self.services = ResourceHandle(bindings["service"], self.cache, self.executor)
        self.sessions = ResourceHandle(bindings["session"], self.cache, self.executor)

    def resource(self, name: str) -> ResourceHandle:
        handles = {"client": self.clients, "service": self.services, "session": self.sessions}
        try:
            return handles[name]
        except KeyError:
            raise ValueError(f"Unknown resource: {name!r}") from None

    async def close(self) -> None:
        await self.cache.close()
        log.debug("Admin client closed")
