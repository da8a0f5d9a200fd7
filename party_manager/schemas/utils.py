from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Класс `HealthResponse` наследуется от BaseModel и описывает структуру приложения."""

    health: str
