from pydantic import BaseModel

from party_manager.services.party import PartySnapshot


class MessageResponse(BaseModel):
    """Класс `MessageResponse` наследуется от BaseModel и описывает успешный ответ."""

    message: str


class RegisterPartyResponse(MessageResponse):
    partyUUID: str


class RelocatePartyResponse(MessageResponse):
    requested: int


class ErrorResponse(BaseModel):
    error: str


class PartyInfoResponse(BaseModel):
    """Класс `PartyInfoResponse` наследуется от BaseModel и описывает состав пати."""

    uuid: str
    leader: str
    name: str | None = None
    members: list[str]

    @classmethod
    def from_snapshot(cls, snapshot: PartySnapshot) -> "PartyInfoResponse":
        return cls(
            uuid=str(snapshot.id),
            leader=str(snapshot.leader),
            name=snapshot.name,
            members=[str(member) for member in snapshot.members],
        )


class ServerStatusResponse(BaseModel):
    uptime: str
    parties: int
    players: int
    timestamp: str
