"""Structured logging configuration using structlog with async context propagation."""

import logging
import os

import structlog

# Chatty third-party loggers: per-request INFO lines from the subgraph and RPC clients
_NOISY_LOGGERS = ("httpx", "httpcore", "web3", "urllib3")


def setup_logging(log_level: str = "INFO", log_format: str | None = None) -> None:
    """Configure structlog and route it through stdlib logging.

    Values bound with structlog.contextvars (creator and chain_id during a
    reconcile cycle) are merged into every event the cycle emits, across
    the coroutines it awaits.

    Args:
        log_level: Root level name.
        log_format: "json" for machine-readable output or "console" for
            development. Defaults to the LOG_FORMAT environment variable,
            then "console".
    """
    fmt = (log_format or os.environ.get("LOG_FORMAT", "console")).lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        final: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
