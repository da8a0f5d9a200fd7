from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Класс `Settings` наследуется от BaseSettings и описывает настройки сервиса.

    Значения читаются из переменных окружения с префиксом `PARTY_`
    и из файла `configs/.env`, если он существует.
    """

    api_prefix: str = ""
    api_host: str = "0.0.0.0"
    api_port: int = 7000

    proxy_api_url: str = "http://127.0.0.1:8081"
    proxy_timeout: float = 5.0
    default_server_alias: str | None = None

    strict_status_codes: bool = False

    log_level: str = "INFO"
    log_file: str | None = None
    trace_log_file: str | None = None
    slow_request_threshold: float = 1.0

    model_config = SettingsConfigDict(
        env_prefix="PARTY_",
        env_file="configs/.env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("api_prefix")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Префикс роутеров хранится без завершающего `/`."""

        return value.rstrip("/")

    @field_validator("default_server_alias", "log_file", "trace_log_file")
    @classmethod
    def empty_to_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


settings = Settings()
