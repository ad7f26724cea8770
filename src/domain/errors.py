"""
Error taxonomy for everything that talks to the remote admin API.

Transports and bindings raise these.  The QueryCache and MutationExecutor
catch them at their boundary and hand them to callers as data.
"""


class ApiError(Exception):
    """Base class for any failure of a single resource operation."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NetworkError(ApiError):
    """No response was received (connection refused, DNS, timeout...)."""


class HttpError(ApiError):
    """The server answered with a non-success status."""

    def __init__(self, status: int, message: str = ""):
        super().__init__(message or f"HTTP {status}")
        self.status = status

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class NotFoundError(HttpError):
    """The identifier does not exist on the server (404)."""

    def __init__(self, message: str = ""):
        super().__init__(404, message or "not found")


class ValidationError(HttpError):
    """The payload was rejected, either by the server or by a presence check."""

    def __init__(self, message: str = "", status: int = 400):
        super().__init__(status, message or "invalid payload")


def error_for_status(status: int, message: str = "") -> HttpError:
    """Build the most specific HttpError subtype for a status code."""
    if status == 404:
        return NotFoundError(message)
    if status in (400, 422):
        return ValidationError(message, status=status)
    return HttpError(status, message)
