"""structlog configuration."""

import logging
import sys

import structlog
from structlog.stdlib import BoundLogger

from chatgate.config.models import LoggingConfig

# Chatty third-party loggers capped at WARNING unless running at DEBUG
NOISY_LOGGERS = ("aiohttp.access", "aiosqlite", "httpx", "LiteLLM", "strands")


def _shared_processors() -> list[structlog.typing.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _renderer(log_format: str) -> structlog.typing.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(config: LoggingConfig) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Args:
        config: Logging configuration specifying level and format.
    """
    log_level = getattr(logging, config.level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    third_party_level = log_level if log_level <= logging.DEBUG else max(log_level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    shared_processors = _shared_processors()
    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(config.format),
            ],
        )
    )


def get_logger(name: str | None = None, **context: object) -> BoundLogger:
    """Get a logger, optionally bound to initial key/value context.

    Args:
        name: Logger name, typically a component name or __name__.
        **context: Key/value pairs attached to every entry.

    Returns:
        A bound logger instance.
    """
    logger: BoundLogger = structlog.stdlib.get_logger(name)
    if context:
        return logger.bind(**context)
    return logger
