"""Shared logging helpers for Python sidecar services."""

from __future__ import annotations

import functools
import logging
import os
import time
from typing import Any, Awaitable, Callable, Iterable, TypeVar

R = TypeVar("R")

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_DEFAULT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
_VALID_LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}
# httpx/httpcore log every request at INFO; upstream chatter stays out of
# service logs unless the service itself runs at DEBUG.
_NOISY_LIBRARY_LOGGERS = ("httpx", "httpcore")


def _is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _TRUTHY_VALUES


def resolve_level(
    *,
    default_level: str = "INFO",
    log_level_env: str = "LOG_LEVEL",
    debug_env: str = "DEBUG",
) -> int:
    """Pick a logging level from LOG_LEVEL, then DEBUG, then the default."""
    configured = os.getenv(log_level_env, "").strip().lower()
    if configured:
        return _VALID_LEVEL_NAMES.get(configured, logging.INFO)

    if _is_truthy(os.getenv(debug_env)):
        return logging.DEBUG

    return _VALID_LEVEL_NAMES.get(default_level.strip().lower(), logging.INFO)


def configure_service_logger(
    service_name: str,
    *,
    default_level: str = "INFO",
    log_level_env: str = "LOG_LEVEL",
    debug_env: str = "DEBUG",
    fmt: str = _DEFAULT_FORMAT,
    quiet_loggers: Iterable[str] = _NOISY_LIBRARY_LOGGERS,
) -> logging.Logger:
    """Configure and return a named service logger.

    Module loggers inside the service should be children of this one
    (``logging.getLogger(f"{service_name}.spotify")``) so they inherit the
    configured level.
    """
    level = resolve_level(
        default_level=default_level,
        log_level_env=log_level_env,
        debug_env=debug_env,
    )
    logging.basicConfig(level=level, format=fmt)
    logger = logging.getLogger(service_name)
    logger.setLevel(level)

    library_level = level if level <= logging.DEBUG else logging.WARNING
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(library_level)
    return logger


def log_timing(
    logger: logging.Logger,
    operation: str,
    *,
    level: int = logging.DEBUG,
) -> Callable[[Callable[..., Awaitable[R]]], Callable[..., Awaitable[R]]]:
    """Decorator that logs how long a coroutine function took."""

    def decorator(func: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> R:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception:
                logger.exception(
                    "%s failed after %.2fms",
                    operation,
                    (time.perf_counter() - start) * 1000.0,
                )
                raise
            logger.log(level, "%s completed in %.2fms", operation, (time.perf_counter() - start) * 1000.0)
            return result

        return wrapper

    return decorator
