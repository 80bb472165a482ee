"""structlog configuration shared by the API and the tool pipeline."""

from __future__ import annotations

import logging
from typing import Any

import structlog


def configure_logging(service_name: str, level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    get_logger(service_name).info("logging_configured", level=level.upper())


def get_logger(name: str, **bindings: Any) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name, **bindings)
