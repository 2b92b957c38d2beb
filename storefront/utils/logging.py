"""Structured logging configuration

structlog renders application events as JSON; uvicorn's own loggers go
through python-json-logger so both streams share the service fields.
"""

import logging
import os
import sys
import structlog
from pythonjsonlogger import jsonlogger

SERVICE_NAME = "storefront-interactions"


def add_service_context(logger, method_name: str, event_dict: dict) -> dict:
    """structlog processor tagging every event with service and environment"""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("environment", os.getenv("ENVIRONMENT", "development"))
    return event_dict


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            add_service_context,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Structured logger for a module (pass __name__)"""
    return structlog.get_logger(name)


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter for uvicorn records, using the same field names as structlog events"""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        add_service_context(None, record.levelname.lower(), log_record)
        log_record["level"] = record.levelname.lower()
        log_record["logger"] = record.name


def configure_uvicorn_logging(level: str = "INFO") -> None:
    """Route uvicorn access and error logs through ServiceJsonFormatter"""

    formatter = ServiceJsonFormatter(
        "%(message)s",
        rename_fields={"message": "event"},
        timestamp=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    for name in ("uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.setLevel(level.upper())
        uvicorn_logger.propagate = False
