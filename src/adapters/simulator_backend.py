import asyncio
import copy
from datetime import datetime, timezone
from typing import Any

from .ports import RequestDescriptor, Transport
from src.domain.errors import ApiError, HttpError, NotFoundError, ValidationError
from src.domain.records import READ_ONLY_FIELDS, RESOURCES, format_timestamp


def _now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


class SimulatorBackend(Transport):
    """
    In-memory fake of the admin REST API. No mocking framework needed.

    Test helpers:
        seed()        - insert a record directly, as if created earlier
        fail_next()   - make the next request raise the given ApiError
        hold()        - park requests of one method until release()
        requests      - every RequestDescriptor received, in order
    """

    def __init__(self):
        self._tables: dict[str, dict[str, dict]] = {name: {} for name in RESOURCES}
        self._counters: dict[str, int] = {name: 0 for name in RESOURCES}
        self._failures: list[ApiError] = []
        self._held_methods: set[str] = set()
        self._gate = asyncio.Event()
        self._gate.set()
        self.requests: list[RequestDescriptor] = []

    # -- test helpers --------------------------------------------------------

    def seed(self, resource: str, **fields: Any) -> dict:
        """Test helper: store a record and return its JSON."""
        return copy.deepcopy(self._insert(resource, fields))

    def fail_next(self, error: ApiError) -> None:
        """Test helper: the next request raises error instead of being served."""
        self._failures.append(error)

    def hold(self, method: str) -> None:
        """Test helper: requests with this method wait until release()."""
        self._held_methods.add(method)
        self._gate.clear()

    def release(self) -> None:
        self._held_methods.clear()
        self._gate.set()

    def count(self, method: str, path: str | None = None) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and (path is None or r.path == path)
        )

    # -- Transport -----------------------------------------------------------

    async def send(self, request: RequestDescriptor) -> Any:
        self.requests.append(request)
        if request.method in self._held_methods:
            await self._gate.wait()
        else:
            # Yield like a real network call would.
            await asyncio.sleep(0)
        if self._failures:
            raise self._failures.pop(0)
        return copy.deepcopy(self._handle(request))

    def _handle(self, request: RequestDescriptor) -> Any:
        parts = request.path.strip("/").split("/")
        if len(parts) not in (2, 3) or parts[0] != "api" or parts[1] not in self._tables:
            raise NotFoundError(f"no route for {request.path}")
        resource = parts[1]
        record_id = parts[2] if len(parts) == 3 else None
        table = self._tables[resource]

        if record_id is None:
            if request.method == "GET":
                return [self._render(resource, r) for r in table.values()]
            if request.method == "POST":
                return self._render(resource, self._insert(resource, request.body or {}))
            raise HttpError(405, f"{request.method} not allowed on {request.path}")

        if record_id not in table:
            raise NotFoundError(f"{resource} {record_id} not found")
        if request.method == "GET":
            return self._render(resource, table[record_id])
        if request.method == "PUT":
            record = table[record_id]
            record.update(self._writable(resource, request.body or {}))
            record["updatedAt"] = _now()
            if RESOURCES[resource].update_returns_record:
                return self._render(resource, record)
            return None
        if request.method == "DELETE":
            del table[record_id]
            return None
        raise HttpError(405, f"{request.method} not allowed on {request.path}")

    def _insert(self, resource: str, fields: dict) -> dict:
        spec = RESOURCES[resource]
        body = self._writable(resource, fields)
        missing = [
            spec.fields[name] for name in spec.required
            if body.get(spec.fields[name]) in (None, "")
        ]
        if missing:
            raise ValidationError(f"missing field(s): {', '.join(missing)}")

        self._counters[resource] += 1
        record_id = f"{resource[0]}{self._counters[resource]}"
        stamp = _now()
        record = {"id": record_id, **body, "createdAt": stamp, "updatedAt": stamp}
        self._tables[resource][record_id] = record
        return record

    @staticmethod
    def _writable(resource: str, fields: dict) -> dict:
        body = RESOURCES[resource].to_wire(fields)
        for name in READ_ONLY_FIELDS:
            body.pop(name, None)
        return body

    def _render(self, resource: str, record: dict) -> dict:
        if resource != "client":
            return record
        sessions = [
            {"id": s["id"], "montantTotal": s.get("montantTotal", 0)}
            for s in self._tables["session"].values()
            if s.get("clientId") == record["id"]
        ]
        return {**record, "sessions": sessions}
