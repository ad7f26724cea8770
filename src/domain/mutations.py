"""
MutationExecutor: one Create/Update/Delete against the API, then
cache invalidation.

Every successful mutation invalidates the list queries of its resource
and the item query of the affected record, whatever the resource.  A
Delete also removes the record from cached lists before that refetch
lands.  A failed mutation leaves the cache untouched.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from src.domain.endpoint import ResourceEndpoint
from src.domain.errors import ApiError
from src.domain.query_cache import CacheKey, QueryCache

log = logging.getLogger(__name__)

MutationKind = Literal["create", "update", "delete"]


@dataclass(frozen=True)
class Mutation:
    kind: MutationKind
    resource: str                 # "client", "service", "session"
    payload: dict | None = None   # create: fields, update: changed fields
    record_id: str | None = None  # update / delete


@dataclass
class MutationRecord:
    """Outcome of one mutation.  Never persisted."""

    mutation: Mutation
    status: Literal["pending", "success", "error"] = "pending"
    record: Any = None            # server representation, None for delete
    error: ApiError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class MutationExecutor:
    """
    Runs mutations for every resource and applies their cache effects.

    Exactly one endpoint call per execute(); retrying is up to the caller.
    Two mutations on the same record are not sequenced here: callers
    should check is_pending() and hold back duplicate submissions.
    """

    def __init__(self, cache: QueryCache, endpoints: Mapping[str, ResourceEndpoint]):
        self._cache = cache
        self._endpoints = dict(endpoints)
        self._in_flight: list[MutationRecord] = []
        self._tasks: set[asyncio.Task] = set()

    def is_pending(self, resource: str, record_id: str | None = None) -> bool:
        return any(
            r.mutation.resource == resource
            and (record_id is None or r.mutation.record_id == record_id)
            for r in self._in_flight
        )

    async def execute(self, mutation: Mutation) -> MutationRecord:
        """
        Run a mutation and return its outcome.  Never raises ApiError.

        The work runs in its own task: cancelling the caller does not
        cancel the mutation, and its cache effects still apply.
        """
        if mutation.resource not in self._endpoints:
            raise ValueError(f"Unknown resource: {mutation.resource!r}")
        if mutation.kind in ("update", "delete") and not mutation.record_id:
            raise ValueError(f"{mutation.kind} needs a record_id")

        outcome = MutationRecord(mutation)
        self._in_flight.append(outcome)
        task = asyncio.get_running_loop().create_task(self._run(outcome))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return await asyncio.shield(task)

    async def _run(self, outcome: MutationRecord) -> MutationRecord:
        mutation = outcome.mutation
        endpoint = self._endpoints[mutation.resource]
        try:
            if mutation.kind == "create":
                result = await endpoint.create_record(mutation.payload or {})
            elif mutation.kind == "update":
                result = await endpoint.update_record(mutation.record_id, mutation.payload or {})
            else:
                await endpoint.delete_record(mutation.record_id)
                result = None
        except ApiError as exc:
            outcome.status = "error"
            outcome.error = exc
            log.warning(
                "%s %s %s failed: %r",
                mutation.kind, mutation.resource, mutation.record_id or "", exc,
            )
            return outcome
        except Exception as exc:
            log.exception("Unexpected error during %s %s", mutation.kind, mutation.resource)
            outcome.status = "error"
            outcome.error = ApiError(str(exc))
            return outcome
        finally:
            self._in_flight.remove(outcome)

        outcome.status = "success"
        outcome.record = result
        record_id = mutation.record_id or _id_of(result)
        log.info("%s %s %s ok", mutation.kind, mutation.resource, record_id or "")
        self._apply(mutation)
        return outcome

    def _apply(self, mutation: Mutation) -> None:
        resource, record_id = mutation.resource, mutation.record_id
        if mutation.kind == "delete":
            self._cache.remove_record(resource, record_id)

        def affected(key: CacheKey) -> bool:
            if key.resource != resource:
                return False
            return key.is_list or (record_id is not None and key.record_id == record_id)

        self._cache.invalidate(affected)


def _id_of(record: Any) -> str | None:
    return getattr(record, "id", None)
