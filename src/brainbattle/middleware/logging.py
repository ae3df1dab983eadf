"""structlog setup: one event per line, keyed by event name."""

import logging

import structlog

from brainbattle.config import Settings

# Chatty at INFO; held at WARNING unless the service itself logs below that
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "anthropic")


def setup_logging(settings: Settings) -> None:
    """JSON lines when ``BB_LOG_FORMAT=json``, the coloured console renderer otherwise.

    Request ids bound by ``RequestIdMiddleware`` ride along through the contextvars merge.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
