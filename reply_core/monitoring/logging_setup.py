"""
Logging setup for the reply engine.

Modules log through the standard library (one logger per module). This module
routes those records through structlog processors so that console and file
output share one format, and binds the conversation id of the turn being
handled into every record emitted during that turn.
"""

import logging
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional

import structlog

from reply_core.config.config_manager import LoggingConfig, LogLevel


def _shared_processors():
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _build_formatter(log_format: str) -> structlog.stdlib.ProcessorFormatter:
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def configure_logging(config: Optional[LoggingConfig] = None, debug: bool = False) -> logging.Logger:
    """
    Configure the root logger from a LoggingConfig.

    Args:
        config: Logging configuration. If None, uses defaults.
        debug: Force DEBUG level regardless of the configured level

    Returns:
        The configured root logger
    """
    config = config or LoggingConfig()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()

    # Replace handlers installed by an earlier call
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = _build_formatter(config.format)

    if config.enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if config.file_path:
        log_path = Path(config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    level = LogLevel.DEBUG if debug else config.level
    root.setLevel(getattr(logging, level.value))

    return root


@contextmanager
def conversation_context(conversation_id: str) -> Iterator[None]:
    """Tag every log record emitted inside the block with the conversation id."""
    with structlog.contextvars.bound_contextvars(conversation_id=conversation_id):
        yield
