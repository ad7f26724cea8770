"""
QueryCache: single source of truth for remote read results.

One entry per CacheKey.  An entry moves through
uninitialized -> loading -> loaded | failed, and back to loading when it
is refreshed.  All writes to an entry go through this class, so the
transitions of a key are totally ordered.

Rules:
  - at most one fetch per key is current at any time; concurrent callers
    share it instead of issuing their own
  - a fetch superseded by an invalidation is discarded when it settles
  - invalidating a key nobody is watching only marks it stale; the next
    subscription or get_or_fetch refreshes it
  - failures are stored, never retried on their own
  - an entry with no subscribers is evicted after a grace period

The cache must be used from inside a running asyncio event loop.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Literal

from src.domain.errors import ApiError, NotFoundError

log = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 60.0

Status = Literal["uninitialized", "loading", "loaded", "failed"]
Fetcher = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class CacheKey:
    """(resource type, optional identifier, optional query parameters)."""

    resource: str
    record_id: str | None = None
    params: tuple = ()

    @property
    def is_list(self) -> bool:
        return self.record_id is None


@dataclass(frozen=True)
class EntryState:
    """Immutable snapshot of one entry, handed to subscribers."""

    status: Status = "uninitialized"
    data: Any = None                    # kept while a refresh is loading
    error: ApiError | None = None
    fetched_at: datetime | None = None
    stale: bool = False


UNINITIALIZED = EntryState()

Callback = Callable[[EntryState], None]


class _Entry:

    def __init__(self, key: CacheKey):
        self.key = key
        self.state = UNINITIALIZED
        self.fetcher: Fetcher | None = None
        self.subscribers: dict[int, Callback] = {}
        self.task: asyncio.Task | None = None
        self.generation = 0
        self.waiters = 0                # load() calls awaiting this entry
        self.evict_handle: asyncio.TimerHandle | None = None


def _record_id(record: Any) -> Any:
    if isinstance(record, dict):
        return record.get("id")
    return getattr(record, "id", None)


class QueryCache:
    """
    Process-wide cache of read results.

    Create one per process and pass it to whatever needs it.
    """

    def __init__(self, grace_seconds: float = DEFAULT_GRACE_SECONDS):
        self._grace = grace_seconds
        self._entries: dict[CacheKey, _Entry] = {}
        self._tasks: set[asyncio.Task] = set()
        self._tokens = itertools.count(1)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, key: CacheKey) -> EntryState:
        """Current state without side effects."""
        entry = self._entries.get(key)
        return entry.state if entry else UNINITIALIZED

    # -- reads ---------------------------------------------------------------

    def get_or_fetch(self, key: CacheKey, fetcher: Fetcher) -> EntryState:
        """
        Return the cached state now and start a fetch if the entry needs one.

        An entry needs a fetch when it is uninitialized, failed or stale and
        no fetch is already running for it.
        """
        entry = self._entry(key)
        entry.fetcher = fetcher
        if self._needs_fetch(entry):
            self._start_fetch(entry)
        elif not entry.subscribers and entry.task is None:
            self._schedule_eviction(entry)
        return entry.state

    async def load(self, key: CacheKey, fetcher: Fetcher) -> EntryState:
        """Like get_or_fetch, but wait until the entry has settled."""
        self.get_or_fetch(key, fetcher)
        entry = self._entries[key]
        entry.waiters += 1
        try:
            while entry.task is not None:
                await asyncio.shield(entry.task)
        finally:
            entry.waiters -= 1
        return entry.state

    # -- subscriptions -------------------------------------------------------

    def subscribe(self, key: CacheKey, callback: Callback) -> Callable[[], None]:
        """
        Call callback on every transition of key.  Returns unsubscribe.

        Subscribing to a stale or failed entry whose fetcher is known
        refreshes it.  Unsubscribing does not cancel a running fetch.
        """
        entry = self._entry(key)
        self._cancel_eviction(entry)
        token = next(self._tokens)
        entry.subscribers[token] = callback
        if entry.fetcher is not None and self._needs_fetch(entry):
            self._start_fetch(entry)

        def unsubscribe() -> None:
            if entry.subscribers.pop(token, None) is None:
                return
            if not entry.subscribers:
                self._schedule_eviction(entry)

        return unsubscribe

    # -- writes --------------------------------------------------------------

    def invalidate(self, predicate: Callable[[CacheKey], bool]) -> int:
        """
        Mark every matching entry stale.

        Entries someone is watching or waiting on are refetched right away;
        the others are refreshed lazily.  Returns the number of entries hit.
        """
        hit = 0
        for entry in list(self._entries.values()):
            if not predicate(entry.key):
                continue
            hit += 1
            active = entry.subscribers or entry.waiters
            if active and entry.fetcher is not None:
                self._start_fetch(entry)
            else:
                # Anything still in flight for this entry is now outdated.
                self._supersede(entry)
                self._transition(entry, replace(entry.state, stale=True))
        if hit:
            log.debug("Invalidated %d cache entr%s", hit, "y" if hit == 1 else "ies")
        return hit

    def remove_record(self, resource: str, record_id: str) -> None:
        """
        Drop a deleted record from every cached list of its resource.

        Item entries for the record become failed with NotFoundError.
        """
        for entry in list(self._entries.values()):
            key = entry.key
            if key.resource != resource:
                continue
            if key.is_list and isinstance(entry.state.data, list):
                remaining = [r for r in entry.state.data if _record_id(r) != record_id]
                if len(remaining) != len(entry.state.data):
                    self._transition(entry, replace(entry.state, data=remaining))
            elif key.record_id == record_id:
                self._supersede(entry)
                self._transition(entry, EntryState(
                    status="failed",
                    error=NotFoundError(f"{resource} {record_id} was deleted"),
                ))

    async def close(self) -> None:
        """Cancel pending fetches and eviction timers, then drop every entry."""
        for entry in self._entries.values():
            self._cancel_eviction(entry)
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._entries.clear()

    # -- internals -----------------------------------------------------------

    def _entry(self, key: CacheKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry(key)
        return entry

    @staticmethod
    def _needs_fetch(entry: _Entry) -> bool:
        if entry.task is not None:
            return False
        return entry.state.status in ("uninitialized", "failed") or entry.state.stale

    def _start_fetch(self, entry: _Entry) -> None:
        self._cancel_eviction(entry)
        entry.generation += 1
        self._transition(entry, replace(entry.state, status="loading", error=None, stale=False))
        task = asyncio.get_running_loop().create_task(
            self._fetch(entry, entry.generation, entry.fetcher)
        )
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _supersede(self, entry: _Entry) -> None:
        """Orphan the running fetch, if any; its result will be discarded."""
        entry.generation += 1
        entry.task = None
        # _fetch will not schedule eviction for an orphaned generation.
        if not entry.subscribers and entry.evict_handle is None:
            self._schedule_eviction(entry)

    async def _fetch(self, entry: _Entry, generation: int, fetcher: Fetcher) -> None:
        try:
            data = await fetcher()
        except ApiError as exc:
            log.warning("Fetch failed for %s: %r", entry.key, exc)
            outcome = replace(entry.state, status="failed", error=exc)
        except Exception as exc:
            log.exception("Unexpected error while fetching %s", entry.key)
            outcome = replace(entry.state, status="failed", error=ApiError(str(exc)))
        else:
            outcome = EntryState(
                status="loaded",
                data=data,
                fetched_at=datetime.now(timezone.utc),
            )

        if generation != entry.generation:
            log.debug("Discarding superseded response for %s", entry.key)
            return

        entry.task = None
        self._transition(entry, outcome)
        if not entry.subscribers:
            self._schedule_eviction(entry)

    def _transition(self, entry: _Entry, state: EntryState) -> None:
        log.debug("%s: %s -> %s", entry.key, entry.state.status, state.status)
        entry.state = state
        for callback in list(entry.subscribers.values()):
            try:
                callback(state)
            except Exception:
                log.exception("Subscriber callback failed for %s", entry.key)

    def _schedule_eviction(self, entry: _Entry) -> None:
        self._cancel_eviction(entry)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._maybe_evict(entry)
            return
        entry.evict_handle = loop.call_later(self._grace, self._maybe_evict, entry)

    @staticmethod
    def _cancel_eviction(entry: _Entry) -> None:
        if entry.evict_handle is not None:
            entry.evict_handle.cancel()
            entry.evict_handle = None

    def _maybe_evict(self, entry: _Entry) -> None:
        entry.evict_handle = None
        if entry.subscribers or entry.waiters or entry.task is not None:
            return
        if self._entries.get(entry.key) is entry:
            del self._entries[entry.key]
            log.debug("Evicted %s", entry.key)
