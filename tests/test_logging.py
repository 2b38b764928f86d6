"""
Unit tests for logging helpers and metrics.

Tests for:
- Session/platform logging context
- Structlog processors
- Logging setup and metrics exposition
"""

import logging

import pytest
import structlog
from loguru import logger as loguru_logger

from postcrop.core.logging import (
    add_context_fields,
    filter_sensitive_data,
    get_logger,
    platform_ctx,
    session_id_ctx,
    setup_logging,
    setup_loguru,
    with_logging_context,
)
from postcrop.observability.metrics import get_metrics_response, get_test_metrics, track_processing_time


class TestLoggingContext:
    """Test context variables used by the log processors."""

    def test_context_set_and_restored(self):
        with with_logging_context("session-1", "instagram"):
            assert session_id_ctx.get() == "session-1"
            assert platform_ctx.get() == "instagram"

        assert session_id_ctx.get() is None
        assert platform_ctx.get() is None

    def test_nested_context(self):
        with with_logging_context("outer"):
            with with_logging_context("outer", "facebook"):
                assert platform_ctx.get() == "facebook"
            assert platform_ctx.get() is None
            assert session_id_ctx.get() == "outer"

    def test_context_fields_added(self):
        with with_logging_context("session-2", "twitter"):
            event = add_context_fields(None, "info", {"event": "x"})

        assert event["session_id"] == "session-2"
        assert event["platform"] == "twitter"
        assert event["app"] == "Postcrop"

    def test_explicit_platform_kept(self):
        with with_logging_context("session-3", "twitter"):
            event = add_context_fields(None, "info", {"event": "x", "platform": "youtube"})

        assert event["platform"] == "youtube"


class TestSensitiveDataFilter:
    """Test redaction of credentials."""

    def test_nested_redaction(self):
        event = filter_sensitive_data(None, "info", {
            "event": "fetch",
            "headers": {"Authorization": "Bearer x", "Accept": "image/png"},
            "access_token": "abc",
        })

        assert event["access_token"] == "[REDACTED]"
        assert event["headers"]["Authorization"] == "[REDACTED]"
        assert event["headers"]["Accept"] == "image/png"


class TestMetrics:
    """Test metrics collection helpers."""

    def test_processing_time_records_failure_by_default(self):
        collector = get_test_metrics()

        with track_processing_time("facebook", collector):
            pass

        assert collector.registry.get_sample_value(
            "postcrop_rasterizations_total", {"platform": "facebook", "success": "false"}
        ) == 1.0

    def test_processing_time_records_output_size(self):
        collector = get_test_metrics()

        with track_processing_time("facebook", collector) as outcome:
            outcome["success"] = True
            outcome["output_bytes"] = 2048

        assert collector.registry.get_sample_value(
            "postcrop_raster_output_bytes_count", {"platform": "facebook"}
        ) == 1.0

    def test_exposition(self):
        collector = get_test_metrics()
        collector.track_cache_operation("miss")

        payload = collector.get_metrics()

        assert 'postcrop_cache_operations_total{status="miss"} 1.0' in payload
        assert "postcrop_info" in payload

    def test_metrics_response(self):
        payload, content_type = get_metrics_response()

        assert "postcrop_info" in payload
        assert content_type.startswith("text/plain")


@pytest.fixture
def configured_logging():
    root_handlers = logging.getLogger().handlers[:]
    setup_logging()
    yield
    structlog.reset_defaults()
    loguru_logger.remove()
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in root_handlers:
        root.addHandler(handler)


class TestSetupLogging:
    """Test logging initialisation."""

    def test_structured_event_rendered(self, capsys, configured_logging):
        get_logger("tests").info("Crop states reset", platform="instagram", access_token="abc")

        out = capsys.readouterr().out
        assert "Crop states reset" in out
        assert "abc" not in out

    def test_loguru_file_sink(self, tmp_path, monkeypatch):
        from postcrop.core.config import settings

        log_file = tmp_path / "postcrop.log"
        monkeypatch.setattr(settings.app, "log_file", str(log_file))

        setup_loguru()
        loguru_logger.warning("Rasterization failed")
        loguru_logger.info("not persisted")
        loguru_logger.remove()

        content = log_file.read_text()
        assert "Rasterization failed" in content
        assert "not persisted" not in content
