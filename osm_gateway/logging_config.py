"""Logging setup driven by ObservabilityConfig.

Components log through ``logging.getLogger(__name__)`` and attach their
context with ``extra={...}``. The plain formatter keeps the message only;
in structured mode structlog renders each record, extra fields included,
as one JSON object per line.
"""

from __future__ import annotations

import logging
from typing import Optional

import structlog

from .config import ObservabilityConfig, get_config


def structured_formatter() -> logging.Formatter:
    """Formatter rendering stdlib records as JSON through structlog."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="time"),
            structlog.stdlib.ExtraAdder(),
            structlog.processors.format_exc_info,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ],
    )


def configure_logging(config: Optional[ObservabilityConfig] = None) -> logging.Handler:
    """Install a stream handler on the root logger.

    Calling it again replaces the handler installed by a previous call.

    Args:
        config: Logging configuration; defaults to the application config.

    Returns:
        The installed handler.
    """
    config = config or get_config().observability
    root = logging.getLogger()

    for handler in list(root.handlers):
        if getattr(handler, "_osm_gateway", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._osm_gateway = True  # type: ignore[attr-defined]
    if config.structured:
        handler.setFormatter(structured_formatter())
    else:
        handler.setFormatter(logging.Formatter(config.format))

    root.addHandler(handler)
    root.setLevel(config.level.upper())
    return handler
