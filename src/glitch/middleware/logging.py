"""structlog setup shared by the API process and the in-process sweeps."""

import logging

import structlog

from glitch.config import Settings

# Chatty third-party loggers; SQL echo is controlled by the engine instead.
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def _service_fields(environment: str) -> structlog.types.Processor:
    def add(_logger: object, _method: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", "glitch-api")
        event_dict.setdefault("env", environment)
        return event_dict

    return add


def setup_logging(settings: Settings) -> None:
    """JSON lines when deployed, colored console output locally."""
    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _service_fields(settings.environment),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
