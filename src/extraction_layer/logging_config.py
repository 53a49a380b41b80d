"""Structured logging configuration using structlog.

JSON lines in production, colored console output everywhere else.
Run-scoped fields (run id, provider, model) are carried through
contextvars so every event emitted during a run is tagged with them.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from extraction_layer.config import Settings

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "redis")


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp every log event with the application name."""
    event_dict["app"] = "llm-extraction-layer"
    return event_dict


def _select_renderer(environment: str) -> tuple[list[Any], Any]:
    if environment.lower() == "production":
        return (
            [structlog.processors.format_exc_info],
            structlog.processors.JSONRenderer(),
        )
    return (
        [],
        structlog.dev.ConsoleRenderer(colors=True),
    )


def configure_logging(
    log_level: Optional[str] = None,
    environment: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Configure structlog on top of the stdlib logging tree.

    Args:
        log_level: Logging level name; falls back to ``settings.LOG_LEVEL``
        environment: "production" selects JSON output; falls back to
            ``settings.ENVIRONMENT``
        settings: Settings used for the fallbacks above
    """
    if settings is None:
        settings = Settings()
    log_level = log_level or settings.LOG_LEVEL
    environment = environment or settings.ENVIRONMENT
    level = getattr(logging, log_level.upper(), logging.INFO)

    extra_processors, renderer = _select_renderer(environment)
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        *extra_processors,
    ]

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )
    handler.setLevel(level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.get_logger(__name__).info(
        "Logging configured",
        log_level=log_level,
        environment=environment,
    )


def bind_run_context(**fields: Any) -> None:
    """Attach run-scoped fields to every subsequent log event in this context."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()
