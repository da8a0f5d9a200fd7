import functools
import inspect
import logging
import os
import time
import traceback
from typing import Any, Callable

from party_manager.schemas.config import settings


def setup_call_logger(file_path: str | None = None) -> logging.Logger:
    """
    Создаёт/возвращает логгер для call-трейсов.
    Если задан `file_path`, трейсы дополнительно пишутся в файл.
    """
    logger = logging.getLogger("call-trace")
    if logger.handlers or not file_path:
        return logger

    logger.setLevel(logging.DEBUG)
    os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
    fh = logging.FileHandler(file_path, encoding="utf-8")
    fmt = "%(asctime)s | %(levelname)s | %(message)s"
    fh.setFormatter(logging.Formatter(fmt))
    logger.addHandler(fh)
    return logger


def log_call(file_path: str | None = settings.trace_log_file) -> Callable:
    """
    Декоратор.  Пример:
        @log_call()
        async def join_party(self, party_id, player_id):
            ...

    Если функция вернула `Outcome` с ошибкой, пишется строка FAIL с кодом.
    """
    logger = setup_call_logger(file_path)

    def decorator(fn: Callable) -> Callable:
        is_async = inspect.iscoroutinefunction(fn)

        @functools.wraps(fn)
        async def async_wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            _log_start(logger, fn, args, kwargs)
            try:
                result = await fn(*args, **kwargs)
            except Exception as exc:
                _log_error(logger, fn, t0, exc)
                raise
            _log_result(logger, fn, t0, result)
            return result

        @functools.wraps(fn)
        def sync_wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            _log_start(logger, fn, args, kwargs)
            try:
                result = fn(*args, **kwargs)
            except Exception as exc:
                _log_error(logger, fn, t0, exc)
                raise
            _log_result(logger, fn, t0, result)
            return result

        return async_wrapper if is_async else sync_wrapper

    return decorator


def _short(v: Any, limit: int = 120) -> str:
    s = repr(v)
    return s if len(s) <= limit else s[:limit] + "…"


def _call_id(fn: Callable) -> str:
    return f"{fn.__module__}.{fn.__qualname__}"


def _log_start(logger: logging.Logger, fn: Callable, args, kwargs) -> None:
    logger.debug(
        "CALL %s | args=%s kwargs=%s",
        _call_id(fn),
        [_short(a) for a in args],
        {k: _short(v) for k, v in kwargs.items()},
    )


def _log_result(logger: logging.Logger, fn: Callable, t0: float, result: Any) -> None:
    dt = (time.perf_counter() - t0) * 1000
    error = getattr(result, "error", None)
    if error is not None:
        logger.debug(
            "FAIL %s | %.1f ms | %s: %s",
            _call_id(fn),
            dt,
            error.value,
            getattr(result, "message", ""),
        )
        return
    logger.debug("OK   %s | %.1f ms | result=%s", _call_id(fn), dt, _short(result, 80))


def _log_error(logger: logging.Logger, fn: Callable, t0: float, exc: Exception) -> None:
    dt = (time.perf_counter() - t0) * 1000
    logger.error(
        "ERR  %s | %.1f ms | %s\n%s",
        _call_id(fn),
        dt,
        exc,
        traceback.format_exc(limit=6),
    )
