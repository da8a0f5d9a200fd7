from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Категории ошибок, по которым HTTP-слой выбирает статус ответа."""

    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    UNAUTHORIZED = "Unauthorized"
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_A_MEMBER = "NotAMember"
    UNAVAILABLE = "Unavailable"

    @property
    def strict_status(self) -> int:
        return _STRICT_STATUS[self]


_STRICT_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_A_MEMBER: 400,
    ErrorKind.UNAVAILABLE: 503,
}


class PartyErrorCode(str, Enum):
    """Тег конкретной ошибки операции над пати."""

    PARTY_NOT_FOUND = "PartyNotFound"
    SERVER_NOT_FOUND = "ServerNotFound"
    ALREADY_IN_PARTY = "AlreadyInParty"
    ALREADY_LEADS = "AlreadyLeads"
    DUPLICATE_MEMBER = "DuplicateMember"
    NOT_LEADER = "NotLeader"
    NOT_IN_PARTY = "NotInParty"
    INVALID_MEMBER = "InvalidMember"
    UNKNOWN_MEMBER = "UnknownMember"
    INVALID_ARGUMENT = "InvalidArgument"
    PROXY_UNAVAILABLE = "ProxyUnavailable"

    @property
    def kind(self) -> ErrorKind:
        return _KINDS[self]


_KINDS = {
    PartyErrorCode.PARTY_NOT_FOUND: ErrorKind.NOT_FOUND,
    PartyErrorCode.SERVER_NOT_FOUND: ErrorKind.NOT_FOUND,
    PartyErrorCode.ALREADY_IN_PARTY: ErrorKind.CONFLICT,
    PartyErrorCode.ALREADY_LEADS: ErrorKind.CONFLICT,
    PartyErrorCode.DUPLICATE_MEMBER: ErrorKind.CONFLICT,
    PartyErrorCode.NOT_LEADER: ErrorKind.UNAUTHORIZED,
    PartyErrorCode.NOT_IN_PARTY: ErrorKind.NOT_A_MEMBER,
    PartyErrorCode.INVALID_MEMBER: ErrorKind.NOT_A_MEMBER,
    PartyErrorCode.UNKNOWN_MEMBER: ErrorKind.NOT_A_MEMBER,
    PartyErrorCode.INVALID_ARGUMENT: ErrorKind.INVALID_ARGUMENT,
    PartyErrorCode.PROXY_UNAVAILABLE: ErrorKind.UNAVAILABLE,
}


class PartyStateError(ValueError):
    """Нарушение локального инварианта пати (см. `services.party.Party`)."""

    def __init__(self, code: PartyErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Результат операции реестра: либо значение, либо код ошибки с сообщением.

    Реестр не бросает исключений на ошибках валидации, а возвращает
    `Outcome.failure(...)`. HTTP-слой смотрит только на `error`.
    """

    value: T | None = None
    error: PartyErrorCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, code: PartyErrorCode, message: str) -> "Outcome[T]":
        return cls(error=code, message=message)

    @classmethod
    def from_error(cls, exc: PartyStateError) -> "Outcome[T]":
        return cls(error=exc.code, message=exc.message)
