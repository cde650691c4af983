from __future__ import annotations

import logging
import sys
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from typing import Any, cast

import structlog
from opentelemetry import trace
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars
from structlog.stdlib import ProcessorFormatter

PreProcessor = Callable[
    [Any, str, MutableMapping[str, Any]],
    Mapping[str, Any] | str | bytes | bytearray | tuple[Any, ...],
]

_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


class ContextFilter(logging.Filter):
    def __init__(self, context: dict[str, Any] | None = None):
        super().__init__()
        self.context = context or {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


def _drop_private_keys(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if not str(k).startswith("_")}


def _otel_enricher(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    span = trace.get_current_span()
    ctx = span.get_span_context() if span else None
    if ctx and ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"
    return event_dict


class LoggerFactory:
    _instance: LoggerFactory | None = None
    _configured: bool = False

    def __new__(cls) -> LoggerFactory:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def configure(
        self,
        level: str = "INFO",
        fmt: str = "json",
        enable_console: bool = True,
        context: dict[str, Any] | None = None,
        force: bool = False,
    ) -> None:
        if self._configured and not force:
            return

        log_level = getattr(logging, level.upper(), logging.INFO)
        renderer = (
            structlog.processors.JSONRenderer()
            if fmt == "json"
            else structlog.dev.ConsoleRenderer()
        )
        pre_chain_raw = [
            merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="@timestamp"),
        ]
        pre_chain: Sequence[PreProcessor] = cast(Sequence[PreProcessor], pre_chain_raw)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", key="@timestamp"),
                _drop_private_keys,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                _otel_enricher,
                ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        for handler in list(root_logger.handlers):
            if getattr(handler, "_infrachat", False):
                root_logger.removeHandler(handler)

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(
                ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
            )
            console_handler.addFilter(ContextFilter(context))
            console_handler._infrachat = True  # type: ignore[attr-defined]
            root_logger.addHandler(console_handler)

        if context:
            bind_contextvars(**context)

        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        self._configured = True

    def get_logger(self, name: str) -> structlog.stdlib.BoundLogger:
        if not self._configured:
            self.configure()
        return structlog.get_logger(name)

    def add_context(self, **kwargs: Any) -> None:
        bind_contextvars(**kwargs)

    def clear_context(self) -> None:
        clear_contextvars()


_factory = LoggerFactory()


def configure_logging(
    level: str = "INFO",
    fmt: str = "json",
    enable_console: bool = True,
    context: dict[str, Any] | None = None,
) -> None:
    _factory.configure(
        level=level,
        fmt=fmt,
        enable_console=enable_console,
        context=context,
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return _factory.get_logger(name)


def add_context(**kwargs: Any) -> None:
    _factory.add_context(**kwargs)


def clear_context() -> None:
    _factory.clear_context()


__all__ = [
    "configure_logging",
    "get_logger",
    "add_context",
    "clear_context",
    "LoggerFactory",
]
