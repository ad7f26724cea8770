"""
Adapter contract tests for Transport: both simulator and real.

The same contract is verified against:
  - SimulatorBackend  (always runs, no server needed)
  - HttpTransport     (skipped if ADMIN_API_BASE_URL is not set)
"""

import os

import pytest

from src.adapters.factory import create_transport
from src.adapters.http_transport import HttpTransport
from src.adapters.simulator_backend import SimulatorBackend

from tests.contracts.transport_contract import TransportContract

# ---------------------------------------------------------------------------
# Simulator: always runs
# ---------------------------------------------------------------------------


class TestSimulatorTransportContract(TransportContract):

    def create_transport(self):
        return SimulatorBackend()

    @pytest.mark.asyncio
    async def test_client_embeds_its_sessions(self):
        sim = SimulatorBackend()
        client = sim.seed("client", nom="Alice")
        sim.seed("session", debut_session="2026-03-01T09:00:00Z", tarif_horaire=50,
                 montant_total=100, client_id=client["id"])
        sim.seed("session", debut_session="2026-03-02T09:00:00Z", tarif_horaire=50,
                 montant_total=25.5, client_id="someone-else")

        from src.adapters.ports import RequestDescriptor
        body = await sim.send(RequestDescriptor("GET", f"/api/client/{client['id']}"))
        assert [s["montantTotal"] for s in body["sessions"]] == [100]

    @pytest.mark.asyncio
    async def test_fail_next_raises_once(self):
        from src.adapters.ports import RequestDescriptor
        from src.domain.errors import NetworkError
        sim = SimulatorBackend()
        sim.fail_next(NetworkError("offline"))
        with pytest.raises(NetworkError):
            await sim.send(RequestDescriptor("GET", "/api/client"))
        assert await sim.send(RequestDescriptor("GET", "/api/client")) == []

    @pytest.mark.asyncio
    async def test_unknown_route_is_not_found(self):
        from src.adapters.ports import RequestDescriptor
        from src.domain.errors import NotFoundError
        with pytest.raises(NotFoundError):
            await SimulatorBackend().send(RequestDescriptor("GET", "/api/invoice"))


# ---------------------------------------------------------------------------
# Real admin API: skipped without a base URL
# ---------------------------------------------------------------------------

BASE_URL = os.environ.get("ADMIN_API_BASE_URL", "")


@pytest.mark.skipif(not BASE_URL, reason="ADMIN_API_BASE_URL not set")
class TestHttpTransportContract(TransportContract):

    def create_transport(self):
        return HttpTransport(base_url=BASE_URL)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def test_factory_simulator():
    assert isinstance(create_transport("simulator"), SimulatorBackend)


def test_factory_http_reads_base_url(monkeypatch):
    monkeypatch.setenv("ADMIN_API_BASE_URL", "http://api.example.test/")
    monkeypatch.setenv("ADMIN_API_TIMEOUT", "2.5")
    transport = create_transport("http")
    assert isinstance(transport, HttpTransport)
    assert transport.base_url == "http://api.example.test"
    assert transport.timeout == 2.5


def test_factory_defaults_to_http(monkeypatch):
    monkeypatch.delenv("ADMIN_TRANSPORT", raising=False)
    assert isinstance(create_transport(), HttpTransport)


def test_factory_unknown_kind():
    with pytest.raises(ValueError):
        create_transport("carrier-pigeon")
