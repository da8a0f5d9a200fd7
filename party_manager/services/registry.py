import asyncio
import logging
from uuid import UUID

from party_manager.services.errors import (
    Outcome,
    PartyErrorCode,
    PartyStateError,
)
from party_manager.services.party import Party, PartySnapshot
from party_manager.services.proxy import ProxyHost, ProxyHostError, ServerHandle
from party_manager.utils.decorators import log_call

logger = logging.getLogger(__name__)


class PartyRegistry:
    """
    Реестр всех пати процесса и обратный индекс игрок -> пати.

    Единственный владелец объектов `Party` и индекса `_member_of`.
    Каждая операция выполняется целиком под одним `asyncio.Lock`,
    поэтому другие запросы никогда не видят частично применённых изменений.
    """

    def __init__(self, proxy_host: ProxyHost, default_server_alias: str | None = None) -> None:
        self.proxy_host = proxy_host
        self.default_server_alias = default_server_alias
        self._parties: dict[UUID, Party] = {}
        self._member_of: dict[UUID, UUID] = {}
        self._lock = asyncio.Lock()

    # ---------- helpers (вызываются только под self._lock) ----------

    def _party_of(self, player_id: UUID) -> Party | None:
        party_id = self._member_of.get(player_id)
        if party_id is None:
            return None
        return self._parties.get(party_id)

    def _led_party(self, caller_id: UUID) -> Party | Outcome:
        """Пати, где `caller_id` лидер, либо `Outcome` с ошибкой."""

        party = self._party_of(caller_id)
        if party is None:
            return Outcome.failure(
                PartyErrorCode.NOT_IN_PARTY,
                f"Player {caller_id} not in any Party",
            )
        if party.leader != caller_id:
            return Outcome.failure(
                PartyErrorCode.NOT_LEADER,
                f"Player {caller_id} is not the Leader",
            )
        return party

    def _drop_party(self, party: Party) -> None:
        for member in party.members:
            self._member_of.pop(member, None)
        self._parties.pop(party.id, None)

    # ---------- операции ----------

    @log_call()
    async def register_party(self, leader_id: UUID, name: str | None = None) -> Outcome[UUID]:
        """Функция `register_party` создаёт пати с единственным участником-лидером.

        Параметры:
            leader_id (UUID): Идентификатор будущего лидера.
            name (str | None): Отображаемое имя пати. Значение по умолчанию: None.

        Возвращает:
            Outcome[UUID]: Идентификатор новой пати либо ALREADY_IN_PARTY / ALREADY_LEADS.
        """
        async with self._lock:
            if leader_id in self._member_of:
                return Outcome.failure(
                    PartyErrorCode.ALREADY_IN_PARTY,
                    f"Leader {leader_id} already part of a party",
                )
            if any(p.leader == leader_id for p in self._parties.values()):
                return Outcome.failure(
                    PartyErrorCode.ALREADY_LEADS,
                    f"Leader {leader_id} already registered a party",
                )
            party = Party.create(leader_id, name)
            self._parties[party.id] = party
            self._member_of[leader_id] = party.id

        logger.info("Party %s registered by %s", party.id, leader_id)
        return Outcome.success(party.id)

    @log_call()
    async def join_party(self, party_id: UUID, player_id: UUID) -> Outcome[None]:
        """Функция `join_party` добавляет игрока в пати; участник и индекс меняются вместе.

        Параметры:
            party_id (UUID): Идентификатор пати.
            player_id (UUID): Идентификатор игрока.

        Возвращает:
            Outcome[None]: Успех либо PARTY_NOT_FOUND / ALREADY_IN_PARTY.
        """
        async with self._lock:
            party = self._parties.get(party_id)
            if party is None:
                return Outcome.failure(
                    PartyErrorCode.PARTY_NOT_FOUND,
                    f"Party {party_id} does not exist",
                )
            if player_id in self._member_of:
                return Outcome.failure(
                    PartyErrorCode.ALREADY_IN_PARTY,
                    f"Player {player_id} already in a party",
                )
            try:
                party.add_member(player_id)
            except PartyStateError as exc:
                return Outcome.from_error(exc)
            self._member_of[player_id] = party_id

        logger.info("Player %s joined party %s", player_id, party_id)
        return Outcome.success()

    @log_call()
    async def leave_party(self, player_id: UUID) -> Outcome[None]:
        """Выход игрока из пати. Пустая пати удаляется, лидерство переходит по правилу `Party`."""
        async with self._lock:
            party = self._party_of(player_id)
            if party is None:
                return Outcome.failure(
                    PartyErrorCode.NOT_IN_PARTY,
                    f"Player {player_id} not in any Party",
                )
            previous_leader = party.leader
            try:
                party.remove_member(player_id)
            except PartyStateError as exc:
                return Outcome.from_error(exc)
            del self._member_of[player_id]

            dissolved = len(party) == 0
            if dissolved:
                del self._parties[party.id]

        if dissolved:
            logger.info("Player %s left party %s, party dissolved", player_id, party.id)
        elif previous_leader != party.leader:
            logger.info(
                "Leader %s left party %s, leadership passed to %s",
                player_id,
                party.id,
                party.leader,
            )
        else:
            logger.info("Player %s left party %s", player_id, party.id)
        return Outcome.success()

    @log_call()
    async def unregister_party(self, caller_id: UUID) -> Outcome[None]:
        """Функция `unregister_party` распускает пати лидера и освобождает всех участников.

        Параметры:
            caller_id (UUID): Игрок, выполняющий операцию; должен быть лидером.

        Возвращает:
            Outcome[None]: Успех либо NOT_IN_PARTY / NOT_LEADER.
        """
        async with self._lock:
            party = self._led_party(caller_id)
            if isinstance(party, Outcome):
                return party
            self._drop_party(party)

        logger.info("Party %s unregistered by %s (%d members released)", party.id, caller_id, len(party))
        return Outcome.success()

    @log_call()
    async def transfer_leadership(self, caller_id: UUID, new_leader_id: UUID) -> Outcome[None]:
        """Функция `transfer_leadership` передаёт лидерство другому участнику той же пати.

        Параметры:
            caller_id (UUID): Текущий лидер.
            new_leader_id (UUID): Участник, который станет лидером.

        Возвращает:
            Outcome[None]: Успех либо NOT_IN_PARTY / NOT_LEADER / INVALID_MEMBER.
        """
        async with self._lock:
            party = self._led_party(caller_id)
            if isinstance(party, Outcome):
                return party
            try:
                party.set_leader(new_leader_id)
            except PartyStateError as exc:
                return Outcome.from_error(exc)

        logger.info("Party %s leadership transferred from %s to %s", party.id, caller_id, new_leader_id)
        return Outcome.success()

    @log_call()
    async def rename_party(self, caller_id: UUID, name: str | None) -> Outcome[None]:
        """Меняет отображаемое имя пати; доступно только лидеру."""
        async with self._lock:
            party = self._led_party(caller_id)
            if isinstance(party, Outcome):
                return party
            party.rename(name)

        logger.info("Party %s renamed to %r", party.id, party.name)
        return Outcome.success()

    @log_call()
    async def party_info(self, player_id: UUID) -> Outcome[PartySnapshot]:
        """Функция `party_info` возвращает копию состояния пати игрока.

        Параметры:
            player_id (UUID): Идентификатор игрока.

        Возвращает:
            Outcome[PartySnapshot]: Снимок пати либо NOT_IN_PARTY.
        """
        async with self._lock:
            party = self._party_of(player_id)
            if party is None:
                return Outcome.failure(
                    PartyErrorCode.NOT_IN_PARTY,
                    f"Player {player_id} not in any Party",
                )
            return Outcome.success(party.snapshot())

    async def snapshots(self) -> list[PartySnapshot]:
        async with self._lock:
            return [party.snapshot() for party in self._parties.values()]

    @log_call()
    async def relocate_party(self, caller_id: UUID, server_alias: str | None = None) -> Outcome[int]:
        """
        Переводит всех подключённых участников пати на сервер `server_alias`.

        Под блокировкой только проверяются права и снимается список участников,
        обращения к прокси идут уже без неё. Ошибка перевода отдельного
        участника пропускается.

        Параметры:
            caller_id (UUID): Лидер пати.
            server_alias (str | None): Алиас целевого сервера. Значение по умолчанию: None.

        Возвращает:
            Outcome[int]: Сколько запросов на подключение отправлено.
        """
        async with self._lock:
            party = self._led_party(caller_id)
            if isinstance(party, Outcome):
                return party
            snapshot = party.snapshot()

        alias = server_alias or self.default_server_alias
        if not alias:
            return Outcome.failure(
                PartyErrorCode.INVALID_ARGUMENT,
                "Missing parameter: serverAlias",
            )

        try:
            server = await self.proxy_host.find_server(alias)
        except ProxyHostError as exc:
            logger.warning("Could not resolve server %s: %s", alias, exc)
            return Outcome.failure(PartyErrorCode.PROXY_UNAVAILABLE, str(exc))
        if server is None:
            return Outcome.failure(
                PartyErrorCode.SERVER_NOT_FOUND,
                f"Server {alias} doesn't exist",
            )

        results = await asyncio.gather(
            *(self._relocate_member(member, server) for member in snapshot.members),
            return_exceptions=True,
        )
        requested = 0
        for member, result in zip(snapshot.members, results):
            if isinstance(result, BaseException):
                logger.warning("Relocation of %s to %s skipped: %s", member, server.alias, result)
            elif result:
                requested += 1

        logger.info(
            "Party %s relocation to %s: %d/%d members requested",
            snapshot.id,
            server.alias,
            requested,
            len(snapshot.members),
        )
        return Outcome.success(requested)

    async def _relocate_member(self, player_id: UUID, server: ServerHandle) -> bool:
        player = await self.proxy_host.find_connected_player(player_id)
        if player is None:
            return False
        await player.request_connection(server)
        return True
