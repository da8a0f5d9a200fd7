import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from urllib.parse import quote
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)


class ProxyHostError(Exception):
    """Прокси недоступен или ответил неожиданным статусом."""


@dataclass(frozen=True)
class ServerHandle:
    alias: str


@dataclass(frozen=True)
class PlayerHandle:
    """Подключённый к прокси игрок."""

    player_id: UUID
    host: "ProxyHost" = field(repr=False, compare=False)

    async def request_connection(self, server: ServerHandle) -> None:
        """Просит прокси перевести игрока на `server`, не дожидаясь самого перехода."""

        await self.host.request_connection(self.player_id, server)


class ProxyHost(ABC):
    """Примитивы прокси, которые нужны реестру пати."""

    @abstractmethod
    async def find_server(self, alias: str) -> ServerHandle | None:
        ...

    @abstractmethod
    async def find_connected_player(self, player_id: UUID) -> PlayerHandle | None:
        ...

    @abstractmethod
    async def request_connection(self, player_id: UUID, server: ServerHandle) -> None:
        ...

    async def aclose(self) -> None:
        return None


class HttpProxyHost(ProxyHost):
    """
    Клиент HTTP-моста прокси.

    Ожидаемые эндпоинты:
        GET  /servers/{alias}         - 200 если сервер зарегистрирован, 404 если нет.
        GET  /players/{uuid}          - {"connected": bool}, 404 если игрок неизвестен.
        POST /players/{uuid}/connect  - {"server": alias}, прокси ставит переход в очередь.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def _get(self, path: str) -> httpx.Response | None:
        try:
            response = await self.client.get(path)
        except httpx.HTTPError as exc:
            raise ProxyHostError(f"Proxy request GET {path} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.is_error:
            raise ProxyHostError(
                f"Proxy answered {response.status_code} to GET {path}"
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        """Тело ответа прокси как словарь; пустое тело считается `{}`."""

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise ProxyHostError(
                f"Proxy answered non-JSON body to {response.request.method} {response.request.url.path}"
            ) from exc
        if not isinstance(data, dict):
            raise ProxyHostError(
                f"Proxy answered unexpected JSON to {response.request.method} {response.request.url.path}"
            )
        return data

    async def find_server(self, alias: str) -> ServerHandle | None:
        # алиас уходит одним сегментом пути; "." и ".." сегментом быть не могут
        if alias.strip() in ("", ".", ".."):
            return None
        segment = quote(alias, safe="")
        response = await self._get(f"/servers/{segment}")
        if response is None:
            return None
        data = self._json(response)
        return ServerHandle(alias=data.get("name") or alias)

    async def find_connected_player(self, player_id: UUID) -> PlayerHandle | None:
        response = await self._get(f"/players/{player_id}")
        if response is None:
            return None
        data = self._json(response)
        if not data.get("connected", False):
            return None
        return PlayerHandle(player_id=player_id, host=self)

    async def request_connection(self, player_id: UUID, server: ServerHandle) -> None:
        path = f"/players/{player_id}/connect"
        try:
            response = await self.client.post(path, json={"server": server.alias})
        except httpx.HTTPError as exc:
            raise ProxyHostError(f"Proxy request POST {path} failed: {exc}") from exc
        if response.is_error:
            raise ProxyHostError(
                f"Proxy refused connection of {player_id} to {server.alias}: {response.status_code}"
            )
        logger.debug("Connection request for %s to %s accepted", player_id, server.alias)

    async def aclose(self) -> None:
        await self.client.aclose()
