import asyncio
import logging
import threading
from typing import Any

import requests

from .ports import RequestDescriptor, Transport
from src.domain.errors import HttpError, NetworkError, error_for_status

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3000"


def _server_message(resp: requests.Response) -> str:
    """Pull a human-readable message out of an error body, if there is one."""
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or "")
    return ""


class HttpTransport(Transport):
    """
    Adapter: real HTTP client for the admin REST API.

    Requests run in worker threads; requests.Session is not thread-safe,
    so they take turns on it.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._lock = threading.Lock()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
                "Cache-Control": "no-cache",
            }
        )

    async def send(self, request: RequestDescriptor) -> Any:
        # requests blocks; keep the event loop free while it does.
        return await asyncio.to_thread(self._send, request)

    def _send(self, request: RequestDescriptor) -> Any:
        url = f"{self.base_url}{request.path}"
        try:
            with self._lock:
                resp = self.session.request(
                    request.method, url, json=request.body, timeout=self.timeout,
                )
        except requests.RequestException as exc:
            raise NetworkError(f"{request.method} {url}: {exc}") from exc

        log.debug("%s %s -> %d", request.method, url, resp.status_code)
        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, _server_message(resp))
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise HttpError(resp.status_code, f"{request.method} {url}: body is not JSON") from exc

    def close(self) -> None:
        with self._lock:
            self.session.close()
