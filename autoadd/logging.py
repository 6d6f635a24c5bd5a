# autoadd/logging.py
"""
Structured logging for the auto-add engine.

Every module asks for its logger through get_logger(); configure_logging()
is called once by whatever process hosts the engine (CLI, worker, tests).
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog


def add_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Tag events with the engine component (last part of the logger name)."""
    logger_name = event_dict.get("logger", "")
    if logger_name.startswith("autoadd."):
        event_dict["component"] = logger_name.split(".", 1)[1]
    return event_dict


def configure_logging(log_level: str = "info", json_output: bool = False, stream: Optional[Any] = None) -> None:
    """Configure structlog on top of the standard library logger."""
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_component,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
