import asyncio
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from party_manager.main import create_app
from party_manager.services.proxy import PlayerHandle, ProxyHost, ServerHandle
from party_manager.services.registry import PartyRegistry


class FakeProxyHost(ProxyHost):
    """Прокси в памяти: известные серверы, подключённые игроки и отправленные запросы."""

    def __init__(self, servers=("lobby", "survival"), connected=()):
        self.servers = set(servers)
        self.connected: set[UUID] = set(connected)
        self.failing: set[UUID] = set()
        self.requests: list[tuple[UUID, str]] = []
        self.server_gate: asyncio.Event | None = None
        self.closed = False

    async def find_server(self, alias):
        if self.server_gate is not None:
            await self.server_gate.wait()
        if alias not in self.servers:
            return None
        return ServerHandle(alias=alias)

    async def find_connected_player(self, player_id):
        if player_id not in self.connected:
            return None
        return PlayerHandle(player_id=player_id, host=self)

    async def request_connection(self, player_id, server):
        if player_id in self.failing:
            raise RuntimeError(f"connection of {player_id} refused")
        self.requests.append((player_id, server.alias))

    async def aclose(self):
        self.closed = True


@pytest.fixture
def proxy_host():
    return FakeProxyHost()


@pytest.fixture
def registry(proxy_host):
    return PartyRegistry(proxy_host)


@pytest.fixture
def client(proxy_host):
    app = create_app(proxy_host=proxy_host)
    with TestClient(app) as test_client:
        yield test_client
