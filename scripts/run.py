"""
Live dashboard for the admin API.

Watches the client list, prints the dashboard figures whenever the cached
list changes, and marks the list stale every POLL_INTERVAL seconds so
changes made elsewhere show up.

Usage:
    source .env && python scripts/run.py

Environment variables (all optional):
    ADMIN_TRANSPORT       - "http" or "simulator" (default: http)
    ADMIN_API_BASE_URL    - REST API base URL (default: http://localhost:3000)
    ADMIN_API_TIMEOUT     - per-request timeout in seconds (default: 10)
    CACHE_GRACE_SECONDS   - cache eviction grace period (default: 60)
    POLL_INTERVAL         - seconds between refreshes (default: 30)
"""

import asyncio
import logging
import os
import sys

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.adapters.factory import create_transport
from src.admin import AdminClient, AdminConfig
from src.dashboard import summarize
from src.domain.query_cache import EntryState

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def on_clients(state: EntryState) -> None:
    if state.status == "loading":
        log.info("Refreshing clients …")
    elif state.status == "failed":
        log.error("Could not load clients: %s", state.error)
    elif state.status == "loaded":
        summary = summarize(state.data)
        log.info(
            "Clients: %d  Sessions: %d  Revenue: %.2f €",
            summary.total_clients, summary.total_sessions, summary.total_revenue,
        )


async def main() -> None:
    poll_interval = int(os.environ.get("POLL_INTERVAL", "30"))
    grace = float(os.environ.get("CACHE_GRACE_SECONDS", "60"))

    admin = AdminClient(AdminConfig(transport=create_transport(), grace_seconds=grace))
    unsubscribe = admin.clients.watch(on_clients)

    log.info("Dashboard started - interval=%ds", poll_interval)
    try:
        while True:
            await asyncio.sleep(poll_interval)
            admin.clients.invalidate()
    finally:
        unsubscribe()
        await admin.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Dashboard stopped.")
