from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal


@dataclass(frozen=True)
class RequestDescriptor:
    """One REST call, independent of how it is sent."""

    method: Literal["GET", "POST", "PUT", "DELETE"]
    path: str                 # "/api/client/c1"
    body: dict | None = None


class Transport(ABC):
    """
    Port: how requests reach the admin REST API.

    Bindings depend ONLY on this interface.
    They don't know or care whether a request goes over HTTP
    or into an in-memory simulator.
    """

    @abstractmethod
    async def send(self, request: RequestDescriptor) -> Any:
        """
        Send one request and return the decoded JSON body (None when empty).

        Raises NetworkError, HttpError, NotFoundError or ValidationError.
        """
        ...
