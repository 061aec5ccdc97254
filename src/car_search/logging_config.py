"""Logging configuration helpers."""

from __future__ import annotations

import logging
import logging.config
from typing import Any

from car_search.config import get_settings


def get_logging_config() -> dict[str, Any]:
    """
    Get logging configuration based on settings.

    Returns:
        Logging configuration dictionary
    """
    settings = get_settings()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": (
                    "%(asctime)s | %(levelname)s | %(name)s | "
                    "query_id=%(query_id)s | %(message)s"
                ),
            },
        },
        "filters": {
            "query_id": {
                "()": "car_search.logging_config.QueryIdFilter",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "filters": ["query_id"],
            },
        },
        "loggers": {
            # httpx пишет каждый poll-запрос на INFO
            "httpx": {"level": "WARNING"},
        },
        "root": {
            "level": settings.log_level,
            "handlers": ["console"],
        },
    }


class QueryIdFilter(logging.Filter):
    """Ensure `query_id` key is always available in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "query_id"):
            record.query_id = "-"
        return True


def configure_logging(config: dict[str, Any] | None = None) -> None:
    """
    Apply logging configuration. Later calls replace the earlier one.

    Args:
        config: Optional logging configuration dict. If None, uses config from settings.
    """
    if config is None:
        config = get_logging_config()
    logging.config.dictConfig(config)
