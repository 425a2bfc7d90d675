# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

This module provides structured logging setup for eLibrary.
Logs are formatted as JSON in production and as colored console output
in development for better readability.

Partial provisioning failures are emitted on the dedicated
``elibrary.provisioning.partial`` logger so operators can route them to a
reconciliation queue independently of ordinary errors.

Example:
    >>> from elibrary.utils.logging import setup_logging, bind_context
    >>> from elibrary.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> bind_context(operator_id="op-1")
    >>> logging.getLogger(__name__).info("Batch of %d rows started", 42)
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from elibrary.core.config.settings import Settings


PARTIAL_PROVISIONING_LOGGER = "elibrary.provisioning.partial"

_HANDLER_NAME = "elibrary"


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Records from standard library loggers are rendered by structlog, so
    values bound with ``bind_context`` appear on every line:
    - Development: Colored console output with pretty formatting
    - Production: JSON output for log aggregation

    Calling it again replaces the handler installed by the previous call.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.debug:
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderer = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.set_name(_HANDLER_NAME)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    # Set specific log levels for noisy libraries
    for logger_name in [
        "httpx",
        "httpcore",
        "sqlalchemy",
        "asyncio",
    ]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("elibrary").setLevel(log_level)
    # Partial provisioning stays visible at ERROR whatever the log level
    logging.getLogger(PARTIAL_PROVISIONING_LOGGER).setLevel(
        min(log_level, logging.ERROR)
    )


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Used to attach the operator and batch identifiers to every line logged
    while a provisioning request is being processed.

    Args:
        **kwargs: Key-value pairs to bind to the logging context.

    Example:
        >>> bind_context(operator_id="op-1", institution_id="inst-9")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables.

    Should be called at the end of request processing to prevent
    context leakage between requests.
    """
    structlog.contextvars.clear_contextvars()
