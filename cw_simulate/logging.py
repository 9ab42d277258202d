from __future__ import annotations

"""
Structured logging setup for cosmwasm-simulate.

Configures **structlog** + the stdlib ``logging`` package so that engine
events (``get_logger``) and leaf-module records (``logging.getLogger``) go
through the same processor chain and renderer:

- JSON renderer by default, console renderer for interactive CLI sessions.
- Call context (contract, kind, account) bound via contextvars is merged into
  every event emitted while a call is running.

Quick start
-----------
    from cw_simulate.logging import setup_logging, get_logger

    setup_logging(level="INFO", log_format="console")
    log = get_logger(__name__)
    log.info("contract_loaded", address="counter")
"""

import logging
from typing import Any, Dict, Iterable, Optional

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import JSONRenderer

SERVICE_NAME = "cosmwasm-simulate"


def _base_processors(service_name: str, include_stacktrace: bool) -> Iterable:
    yield structlog.stdlib.add_log_level
    yield structlog.processors.TimeStamper(fmt="iso", utc=True)
    yield merge_contextvars
    yield structlog.processors.StackInfoRenderer()
    if include_stacktrace:
        yield structlog.processors.format_exc_info
    yield structlog.processors.UnicodeDecoder()

    def _ensure_service(_: logging.Logger, __: str, ev: Dict[str, Any]) -> Dict[str, Any]:
        ev.setdefault("service", service_name)
        return ev

    yield _ensure_service


def setup_logging(
    *,
    service_name: str = SERVICE_NAME,
    level: Optional[str | int] = None,
    log_format: Optional[str] = None,
    include_stacktrace: Optional[bool] = None,
) -> None:
    """
    Configure structlog + stdlib logging. Call once at process start.

    ``level`` and ``log_format`` default to the values in
    :class:`cw_simulate.config.Settings` (``CWSIM_LOG_LEVEL`` / ``CWSIM_LOG_FORMAT``).
    Stack traces are included for JSON output unless told otherwise.
    """
    if level is None or log_format is None:
        from .config import get_settings

        settings = get_settings()
        level = level or settings.log_level
        log_format = log_format or settings.log_format

    if isinstance(level, str):
        level = level.upper()
    log_format = log_format.lower()
    if include_stacktrace is None:
        include_stacktrace = log_format == "json"

    processors = list(_base_processors(service_name, include_stacktrace))

    if log_format == "console":
        renderer = structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)
    else:
        renderer = JSONRenderer(sort_keys=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    # structlog events and stdlib records share one handler and renderer
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                *processors,
            ],
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = [handler]
        lg.propagate = False
        lg.setLevel(level)

    logging.getLogger("httpcore").setLevel("WARNING")
    logging.getLogger("httpx").setLevel("WARNING")


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Return a structlog logger; name the underlying stdlib logger if provided.

    The name is handed to the stdlib logger factory, so the proxy stays lazy
    and module-level loggers pick up the configuration installed later by
    :func:`setup_logging`.
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def bind_call_context(**kv: Any) -> None:
    """Bind call-scoped pairs (contract, kind, account, depth) into contextvars."""
    structlog.contextvars.bind_contextvars(**kv)


def clear_call_context(*keys: str) -> None:
    """Clear specific keys from contextvars, or clear all if no keys provided."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


__all__ = [
    "setup_logging",
    "get_logger",
    "bind_call_context",
    "clear_call_context",
]
