"""Unit tests for ragline.utils.logging."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from ragline.config.settings import Settings
from ragline.utils.logging import configure_logging


@pytest.fixture
def stream():
    """Capture log output; put the default configuration back afterwards."""
    buffer = io.StringIO()
    yield buffer
    structlog.reset_defaults()
    configure_logging()


def _lines(buffer: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestJsonOutput:
    def test_events_carry_short_logger_name(self, stream) -> None:
        configure_logging(Settings(_env_file=None, log_format="json"), stream=stream)

        structlog.get_logger(logger_name="ragline.services.search_service").info(
            "search_completed", hits=3
        )

        [record] = _lines(stream)
        assert record["event"] == "search_completed"
        assert record["logger"] == "services.search_service"
        assert record["level"] == "info"
        assert record["hits"] == 3
        assert "timestamp" in record

    def test_production_env_implies_json(self, stream) -> None:
        configure_logging(Settings(_env_file=None, app_env="production"), stream=stream)

        structlog.get_logger(logger_name="ragline.main").warning("app_startup")

        assert _lines(stream)[0]["event"] == "app_startup"

    def test_stdlib_records_share_the_format(self, stream) -> None:
        configure_logging(Settings(_env_file=None, log_format="json"), stream=stream)

        logging.getLogger("uvicorn.error").warning("port %d in use", 8000)

        [record] = _lines(stream)
        assert record["event"] == "port 8000 in use"
        assert record["logger"] == "uvicorn.error"
        assert record["level"] == "warning"


class TestConsoleOutput:
    def test_level_filters_events(self, stream) -> None:
        configure_logging(Settings(_env_file=None, log_level="WARNING"), stream=stream)
        log = structlog.get_logger(logger_name="ragline.cli.sync")

        log.info("sync_checked")
        log.warning("sync_drift_found")

        output = stream.getvalue()
        assert "sync_checked" not in output
        assert "sync_drift_found" in output
        assert "cli.sync" in output

    def test_unknown_level_falls_back_to_info(self, stream) -> None:
        configure_logging(Settings(_env_file=None, log_level="chatty"), stream=stream)

        structlog.get_logger(logger_name="ragline.x").info("visible")

        assert "visible" in stream.getvalue()

    def test_chatty_libraries_quieted(self, stream) -> None:
        configure_logging(Settings(_env_file=None), stream=stream)

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("chromadb").level == logging.WARNING
