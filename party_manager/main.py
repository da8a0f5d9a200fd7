import logging
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from party_manager.api.v1 import routers
from party_manager.dependency.party import InvalidParameter
from party_manager.middleware.http_middleware import log_http_request_time
from party_manager.schemas.config import settings
from party_manager.services.proxy import HttpProxyHost, ProxyHost
from party_manager.services.registry import PartyRegistry

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Функция `setup_logging` настраивает корневой логгер по `settings`.

    Параметры:
        Отсутствуют.

    Возвращает:
        None: Функция не возвращает значение.
    """

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        os.makedirs(os.path.dirname(settings.log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=handlers,
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)


async def invalid_parameter_handler(request: Request, exc: InvalidParameter) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message})


def create_app(proxy_host: ProxyHost | None = None) -> FastAPI:
    """
    Функция `create_app` собирает приложение.

    Параметры:
        proxy_host (ProxyHost | None): Реализация примитивов прокси. По умолчанию
            при старте создаётся `HttpProxyHost` на `settings.proxy_api_url`.

    Возвращает:
        FastAPI: Приложение с подключёнными роутерами.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        host = proxy_host
        if host is None:
            host = HttpProxyHost(settings.proxy_api_url, timeout=settings.proxy_timeout)
        app.state.proxy_host = host
        app.state.party_registry = PartyRegistry(
            host,
            default_server_alias=settings.default_server_alias,
        )
        logger.info("Party registry ready, proxy host: %s", type(host).__name__)
        yield
        await host.aclose()

    app = FastAPI(title="Party Manager", lifespan=lifespan)

    app.middleware("http")(log_http_request_time)
    app.add_exception_handler(InvalidParameter, invalid_parameter_handler)

    for router in routers:
        app.include_router(router)

    return app


app = create_app()


def run() -> None:
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)


if __name__ == "__main__":
    run()
