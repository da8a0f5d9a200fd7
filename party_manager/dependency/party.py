from uuid import UUID

from fastapi import Query, Request

from party_manager.services.registry import PartyRegistry


class InvalidParameter(Exception):
    """Отсутствующий или некорректный query-параметр запроса."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PartyDeps:
    """Класс `PartyDeps` собирает зависимости FastAPI для роутов пати."""

    @staticmethod
    async def get_registry(request: Request) -> PartyRegistry:
        """Функция `get_registry` возвращает реестр пати приложения.

        Параметры:
            request (Request): Входящий HTTP-запрос.

        Возвращает:
            PartyRegistry: Реестр, созданный в lifespan приложения.
        """

        return request.app.state.party_registry


def parse_uuid(name: str, value: str | None) -> UUID:
    """Разбирает текстовый UUID; при ошибке бросает `InvalidParameter`."""

    if value is None or not value.strip():
        raise InvalidParameter(f"Missing parameter: {name}")
    try:
        return UUID(value.strip())
    except ValueError:
        raise InvalidParameter(f"Invalid UUID for parameter {name}: {value}") from None


def uuid_query(name: str):
    """
    Фабрика зависимостей для обязательного UUID в query-строке.

    Пример:
        player_id: UUID = Depends(uuid_query("playerUUID"))
    """

    async def dependency(value: str | None = Query(None, alias=name)) -> UUID:
        return parse_uuid(name, value)

    dependency.__name__ = f"uuid_query_{name}"
    return dependency
