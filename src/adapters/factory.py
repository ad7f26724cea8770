import os

from .ports import Transport


def create_transport(kind: str | None = None) -> Transport:
    """
    Factory: create the right transport based on config.

    The kind can be passed explicitly or read from the
    ADMIN_TRANSPORT env var. Defaults to "http".
    """
    kind = kind or os.environ.get("ADMIN_TRANSPORT", "http")

    if kind == "http":
        from .http_transport import DEFAULT_BASE_URL, HttpTransport

        return HttpTransport(
            base_url=os.environ.get("ADMIN_API_BASE_URL", DEFAULT_BASE_URL),
            timeout=float(os.environ.get("ADMIN_API_TIMEOUT", "10")),
        )

    if kind == "simulator":
        from .simulator_backend import SimulatorBackend

        return SimulatorBackend()

    raise ValueError(f"Unknown transport: {kind!r}")
