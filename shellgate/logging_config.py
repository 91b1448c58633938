"""
Logging configuration for the ShellGate service.

Probe traffic (health checks, metrics scrapes) is dropped from the uvicorn
access log. Service log lines carry the worker thread name, since every
command runs on its own worker thread.
"""

import logging
import logging.config
from typing import Any, Dict

PROBE_PATHS = ("/healthz", "/health", "/metrics")


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health check and metrics scrape access logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        message = record.getMessage()
        return not ("GET" in message and any(f"{path} " in message for path in PROBE_PATHS))


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """dictConfig for uvicorn and the shellgate loggers at the given level."""
    level = level.upper()

    def logger(handler: str) -> Dict[str, Any]:
        return {"handlers": [handler], "level": level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check_filter": {"()": HealthCheckFilter},
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
            "service": {
                "format": "%(asctime)s - %(name)s [%(threadName)s] - %(levelname)s - %(message)s",
            },
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "service": {
                "class": "logging.StreamHandler",
                "formatter": "service",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check_filter"],
            },
        },
        "loggers": {
            "uvicorn": logger("default"),
            "uvicorn.error": logger("default"),
            "uvicorn.access": logger("access"),
            "shellgate": logger("service"),
        },
        "root": {"level": level, "handlers": ["default"]},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(level))
