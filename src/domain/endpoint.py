"""
ResourceEndpoint port: CRUD for one resource type.

Implementations know nothing about caching; the QueryCache and the
MutationExecutor wrap them.
"""

from abc import ABC, abstractmethod
from typing import Any

from src.domain.records import ResourceSpec


class ResourceEndpoint(ABC):
    """
    Port: read and write records of a single resource type.

    Every method performs at most one remote call and raises an
    ApiError subtype on failure.
    """

    spec: ResourceSpec

    @abstractmethod
    async def list_records(self) -> list[Any]:
        """All records, in the order the server returned them."""
        ...

    @abstractmethod
    async def get_record(self, record_id: str) -> Any:
        """One record.  Raises NotFoundError for an unknown identifier."""
        ...

    @abstractmethod
    async def create_record(self, payload: dict) -> Any:
        """Create a record and return the server's representation of it."""
        ...

    @abstractmethod
    async def update_record(self, record_id: str, changes: dict) -> Any | None:
        """
        Apply changes to a record.

        Returns the updated record when the resource's API sends it back,
        None otherwise (spec.update_returns_record tells which).
        """
        ...

    @abstractmethod
    async def delete_record(self, record_id: str) -> None:
        """Remove a record."""
        ...
