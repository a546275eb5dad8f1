"""
jsonb_store.observability.logging

Structured logging for applications embedding the store.

Responsibilities:
- Configure `structlog` on top of stdlib logging, rendering JSON or console lines.
- Stamp every event with the service/env and, for store loggers, the emitting component.
- Provide `get_logger`, the only logging entry point the store itself uses.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Literal

import structlog

from jsonb_store.settings import StoreSettings

LogFormat = Literal["json", "console"]

_STORE_LOGGER_PREFIX = "jsonb_store."


def configure_logging(
    *,
    service_name: str,
    level: str,
    env: str = "dev",
    log_format: LogFormat = "json",
) -> None:
    """
    Route structlog through stdlib logging with the store's processor chain.

    The store never calls this; an application opts in once at startup
    (usually via `configure_logging_from_settings`).
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if log_format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_store_fields(service_name, env),
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging_from_settings(settings: StoreSettings) -> None:
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        env=settings.env,
        log_format=settings.log_format,
    )


def _add_store_fields(service_name: str, env: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("env", env)
        # "jsonb_store.async_repository" -> component "async_repository"
        logger_name = event_dict.get("logger") or ""
        if logger_name.startswith(_STORE_LOGGER_PREFIX):
            event_dict.setdefault("component", logger_name[len(_STORE_LOGGER_PREFIX) :])
        return event_dict

    return processor


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name, **initial_values)
