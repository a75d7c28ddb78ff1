"""
Logging — structlog configuration for hosts that embed bazaar.

Modules log through `structlog.get_logger()` with event-style names
(`purchase_committed`, `confirmation_resolved`) and keyword context.
Nothing is configured on import; call configure_logging() once at startup.
"""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """
    Install the processor chain: level, ISO timestamp, JSON or console.

    Example:
        configure_logging("DEBUG")
        configure_logging(settings.log_level, json=settings.log_json)
    """
    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[level.upper()]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


__all__ = ("configure_logging",)
