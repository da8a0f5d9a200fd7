import uuid
from dataclasses import dataclass
from uuid import UUID

from party_manager.services.errors import PartyErrorCode, PartyStateError


@dataclass(frozen=True)
class PartySnapshot:
    """Неизменяемая копия состояния пати, которую отдают наружу."""

    id: UUID
    name: str | None
    leader: UUID
    members: tuple[UUID, ...]


class Party:
    """
    Состав и лидер одной пати.

    Инварианты: лидер всегда среди участников, участники без повторов,
    порядок вступления сохраняется. Собственной блокировки нет,
    доступ сериализует владелец (`PartyRegistry`).
    """

    def __init__(self, leader_id: UUID, name: str | None = None) -> None:
        self._id = uuid.uuid4()
        self.name = _normalize_name(name)
        self._members: list[UUID] = [leader_id]
        self._leader = leader_id

    @classmethod
    def create(cls, leader_id: UUID, name: str | None = None) -> "Party":
        return cls(leader_id, name)

    @property
    def id(self) -> UUID:
        return self._id

    @property
    def leader(self) -> UUID:
        return self._leader

    @property
    def members(self) -> tuple[UUID, ...]:
        return tuple(self._members)

    def __contains__(self, player_id: UUID) -> bool:
        return player_id in self._members

    def __len__(self) -> int:
        return len(self._members)

    def set_leader(self, player_id: UUID) -> None:
        if player_id not in self._members:
            raise PartyStateError(
                PartyErrorCode.INVALID_MEMBER,
                f"Player {player_id} is not a member of party {self._id}",
            )
        self._leader = player_id

    def add_member(self, player_id: UUID) -> None:
        if player_id in self._members:
            raise PartyStateError(
                PartyErrorCode.DUPLICATE_MEMBER,
                f"Player {player_id} is already a member of party {self._id}",
            )
        self._members.append(player_id)

    def remove_member(self, player_id: UUID) -> None:
        """
        Удаляет участника.

        Если ушёл лидер и кто-то остался, лидером становится первый
        оставшийся по порядку вступления. Если не осталось никого,
        лидер продолжает указывать на ушедшего: пати удаляет реестр.
        """
        if player_id not in self._members:
            raise PartyStateError(
                PartyErrorCode.UNKNOWN_MEMBER,
                f"Player {player_id} does not exist in member list of party {self._id}",
            )
        self._members.remove(player_id)
        if self._leader == player_id and self._members:
            self._leader = self._members[0]

    def rename(self, name: str | None) -> None:
        self.name = _normalize_name(name)

    def snapshot(self) -> PartySnapshot:
        return PartySnapshot(
            id=self._id,
            name=self.name,
            leader=self._leader,
            members=tuple(self._members),
        )

    def __repr__(self) -> str:
        return f"Party(id={self._id}, leader={self._leader}, members={len(self._members)})"


def _normalize_name(name: str | None) -> str | None:
    if name is None:
        return None
    name = name.strip()
    return name or None
