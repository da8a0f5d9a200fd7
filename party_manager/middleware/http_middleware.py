import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request

from party_manager.schemas.config import settings

logger = logging.getLogger("party_manager.http")

async def log_http_request_time(
    request: Request,
    call_next: Callable[[Request], Awaitable],
):
    """Функция `log_http_request_time` логирует медленные HTTP-запросы.

    Параметры:
        request (Request): Входящий HTTP-запрос.
        call_next (Callable[[Request], Awaitable]): Следующий обработчик цепочки.

    Возвращает:
        Any: Ответ следующего обработчика.
    """

    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = time.perf_counter() - start_time
    if process_time > settings.slow_request_threshold:
        logger.warning(
            f"Долгий HTTP-запрос: {request.method} {request.url.path}: {process_time:.3f} сек",
        )
    return response
