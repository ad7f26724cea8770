"""
Dashboard figures computed from the cached client list.

Only simple aggregation: counts and the sum of session amounts embedded
in each client.
"""

import logging
from dataclasses import dataclass

from src.admin import AdminClient
from src.domain.records import Client

log = logging.getLogger(__name__)


@dataclass
class DashboardSummary:
    total_clients: int
    total_sessions: int
    total_revenue: float   # euros, rounded to cents


def summarize(clients: list[Client]) -> DashboardSummary:
    total_sessions = sum(len(c.sessions) for c in clients)
    total_revenue = sum(s.montant_total or 0.0 for c in clients for s in c.sessions)
    return DashboardSummary(
        total_clients=len(clients),
        total_sessions=total_sessions,
        total_revenue=round(total_revenue, 2),
    )


async def refresh_dashboard(admin: AdminClient) -> DashboardSummary | None:
    """
    Load clients through the cache and summarize them.

    Returns None when the client list could not be fetched; the error
    stays on the cache entry for whoever displays it.
    """
    state = await admin.clients.fetch_list()
    if state.status != "loaded":
        log.error("Dashboard: could not load clients: %r", state.error)
        return None

    summary = summarize(state.data)
    log.info(
        "Dashboard: %d client(s), %d session(s), %.2f EUR",
        summary.total_clients, summary.total_sessions, summary.total_revenue,
    )
    return summary
