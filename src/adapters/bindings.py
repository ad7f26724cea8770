"""
Generic resource binding: turns CRUD intents into RequestDescriptors for
one ResourceSpec and parses what comes back.

The same class serves clients, services and sessions; only the spec
differs.
"""

import logging
from typing import Any

from src.adapters.ports import RequestDescriptor, Transport
from src.domain.endpoint import ResourceEndpoint
from src.domain.errors import HttpError, ValidationError
from src.domain.records import ResourceSpec

log = logging.getLogger(__name__)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ResourceBinding(ResourceEndpoint):
    """Adapter: a ResourceEndpoint over any Transport."""

    def __init__(self, spec: ResourceSpec, transport: Transport):
        self.spec = spec
        self._transport = transport

    # -- request descriptors (pure) ------------------------------------------

    def list_request(self) -> RequestDescriptor:
        return RequestDescriptor("GET", self.spec.path)

    def get_request(self, record_id: str) -> RequestDescriptor:
        return RequestDescriptor("GET", self.spec.item_path(record_id))

    def create_request(self, payload: dict) -> RequestDescriptor:
        body = self.spec.to_wire(payload)
        missing = [
            name for name in self.spec.required
            if _blank(body.get(self.spec.fields[name]))
        ]
        if missing:
            raise ValidationError(f"{self.spec.name}: missing required field(s): {', '.join(missing)}")
        return RequestDescriptor("POST", self.spec.path, body)

    def update_request(self, record_id: str, changes: dict) -> RequestDescriptor:
        body = self.spec.to_wire(changes)
        if not body:
            raise ValidationError(f"{self.spec.name} {record_id}: nothing to update")
        return RequestDescriptor("PUT", self.spec.item_path(record_id), body)

    def delete_request(self, record_id: str) -> RequestDescriptor:
        return RequestDescriptor("DELETE", self.spec.item_path(record_id))

    # -- ResourceEndpoint ------------------------------------------------------

    async def list_records(self) -> list[Any]:
        data = await self._transport.send(self.list_request())
        if not isinstance(data, list):
            raise HttpError(200, f"{self.spec.name}: expected a list, got {type(data).__name__}")
        return [self._parse(item) for item in data]

    async def get_record(self, record_id: str) -> Any:
        return self._parse(await self._transport.send(self.get_request(record_id)))

    async def create_record(self, payload: dict) -> Any:
        return self._parse(await self._transport.send(self.create_request(payload)))

    async def update_record(self, record_id: str, changes: dict) -> Any | None:
        data = await self._transport.send(self.update_request(record_id, changes))
        if not self.spec.update_returns_record or not data:
            return None
        return self._parse(data)

    async def delete_record(self, record_id: str) -> None:
        await self._transport.send(self.delete_request(record_id))

    def _parse(self, data: Any) -> Any:
        try:
            return self.spec.parse(data)
        except (KeyError, TypeError, ValueError) as exc:
            log.debug("%s: unparseable payload %r", self.spec.name, data)
            raise HttpError(200, f"{self.spec.name}: malformed record ({exc})") from exc
