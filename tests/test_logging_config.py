"""Tests for logging configuration."""

from __future__ import annotations

import logging

from car_search.logging_config import QueryIdFilter, get_logging_config


def test_logging_config_quiets_httpx() -> None:
    config = get_logging_config()

    assert config["loggers"]["httpx"]["level"] == "WARNING"
    assert "query_id=%(query_id)s" in config["formatters"]["standard"]["format"]


def test_query_id_filter_sets_default() -> None:
    record = logging.LogRecord("car_search", logging.INFO, __file__, 1, "msg", None, None)
    tagged = logging.LogRecord("car_search", logging.INFO, __file__, 1, "msg", None, None)
    tagged.query_id = "r1"

    assert QueryIdFilter().filter(record) is True
    QueryIdFilter().filter(tagged)

    assert record.query_id == "-"
    assert tagged.query_id == "r1"
