"""Tests for the observability module.

Tests for metrics collection, timed operations and logging configuration.
"""
import logging
import time
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

import pytest

from gemma_embed.config import GemmaEmbedConfig
from gemma_embed.observability import (
    ROOT_LOGGER_NAME,
    MetricsCollector,
    configure_logging,
    timed_operation,
)


@pytest.fixture
def package_logger():
    """Yield the package logger and restore its handlers afterwards."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in saved_handlers:
            handler.close()
    logger.handlers = saved_handlers
    logger.setLevel(saved_level)


class TestMetricsCollector:
    """Tests for MetricsCollector class."""

    @pytest.fixture
    def metrics_collector(self):
        return MetricsCollector()

    def test_record_successful_operation(self, metrics_collector):
        """Test recording a successful operation."""
        metrics_collector.record_operation("embed", 100.0, True)

        metrics = metrics_collector.get_metrics()
        assert metrics["embed"]["count"] == 1
        assert metrics["embed"]["success_count"] == 1
        assert metrics["embed"]["error_count"] == 0
        assert metrics["embed"]["avg_duration_ms"] == 100.0
        assert metrics["embed"]["last_error"] is None

    def test_record_failed_operation(self, metrics_collector):
        """Test recording a failed operation with error."""
        metrics_collector.record_operation("rerank", 50.0, False, "Reranking failed: oom")

        metrics = metrics_collector.get_metrics()
        assert metrics["rerank"]["error_count"] == 1
        assert metrics["rerank"]["success_rate"] == 0
        assert metrics["rerank"]["last_error"] == "Reranking failed: oom"
        assert metrics["rerank"]["last_error_time"] is not None

    def test_multiple_operations_aggregated(self, metrics_collector):
        metrics_collector.record_operation("embed", 100.0, True)
        metrics_collector.record_operation("embed", 200.0, True)
        metrics_collector.record_operation("embed", 300.0, False, "Error")

        metrics = metrics_collector.get_metrics()
        assert metrics["embed"]["count"] == 3
        assert metrics["embed"]["success_count"] == 2
        assert metrics["embed"]["avg_duration_ms"] == 200.0
        assert metrics["embed"]["min_duration_ms"] == 100.0
        assert metrics["embed"]["max_duration_ms"] == 300.0

    def test_get_summary(self, metrics_collector):
        metrics_collector.record_operation("embed", 100.0, True)
        metrics_collector.record_operation("rerank", 200.0, False, "Error")

        summary = metrics_collector.get_summary()
        assert summary["total_operations"] == 2
        assert summary["total_success"] == 1
        assert summary["total_errors"] == 1
        assert summary["overall_success_rate"] == 0.5
        assert set(summary["operations_tracked"]) == {"embed", "rerank"}
        assert summary["uptime_seconds"] >= 0

    def test_empty_summary(self, metrics_collector):
        summary = metrics_collector.get_summary()
        assert summary["total_operations"] == 0
        assert summary["overall_success_rate"] == 1.0

    def test_reset_metrics(self, metrics_collector):
        metrics_collector.record_operation("embed", 100.0, True)
        assert len(metrics_collector.get_metrics()) == 1

        metrics_collector.reset()
        assert metrics_collector.get_metrics() == {}


class TestTimedOperation:
    """Tests for timed_operation context manager."""

    def test_records_success(self):
        collector = MetricsCollector()
        with patch("gemma_embed.observability.metrics", collector):
            with timed_operation("embed", batch_size=2) as op:
                time.sleep(0.01)
                op["result_count"] = 2

        metrics = collector.get_metrics()
        assert metrics["embed"]["success_count"] == 1
        assert metrics["embed"]["avg_duration_ms"] >= 10

    def test_yields_correlation_id(self):
        collector = MetricsCollector()
        with patch("gemma_embed.observability.metrics", collector):
            with timed_operation("embed") as op:
                assert len(op["correlation_id"]) == 8

    def test_records_failure_and_reraises(self):
        collector = MetricsCollector()
        with patch("gemma_embed.observability.metrics", collector):
            with pytest.raises(ValueError, match="Test error"):
                with timed_operation("rerank"):
                    raise ValueError("Test error")

        metrics = collector.get_metrics()
        assert metrics["rerank"]["error_count"] == 1
        assert "Test error" in metrics["rerank"]["last_error"]

    def test_logs_start_and_end_at_debug(self, caplog):
        collector = MetricsCollector()
        with caplog.at_level(logging.DEBUG, logger="gemma_embed.observability"):
            with patch("gemma_embed.observability.metrics", collector):
                with timed_operation("embed", batch_size=3) as op:
                    op["result_count"] = 3

        messages = [r.getMessage() for r in caplog.records]
        assert any("START embed (batch_size=3)" in m for m in messages)
        assert any("END embed" in m and "[OK]" in m and "result_count=3" in m for m in messages)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_sets_level(self, package_logger):
        configure_logging(level=logging.DEBUG, console=False)
        assert package_logger.level == logging.DEBUG

    def test_level_defaults_to_configured_log_level(self, package_logger, monkeypatch):
        monkeypatch.setattr(
            "gemma_embed.observability.config", GemmaEmbedConfig(log_level="WARNING")
        )
        configure_logging(console=False)
        assert package_logger.level == logging.WARNING

    def test_returns_package_logger(self, package_logger):
        assert configure_logging(console=False) is package_logger

    def test_creates_log_directory_and_file(self, package_logger, tmp_path):
        log_dir = tmp_path / "logs"
        configure_logging(log_dir=log_dir, console=False)

        assert log_dir.is_dir()
        handlers = [h for h in package_logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].baseFilename == str(log_dir / "gemma_embed.log")

    def test_writes_formatted_records(self, package_logger, tmp_path):
        configure_logging(log_dir=tmp_path, console=False)
        logging.getLogger("gemma_embed.services.embedder").info("model ready")
        for handler in package_logger.handlers:
            handler.flush()

        content = (tmp_path / "gemma_embed.log").read_text(encoding="utf-8")
        assert "[INFO] gemma_embed.services.embedder - model ready" in content

    def test_console_handler_added_once(self, package_logger):
        configure_logging()
        configure_logging()
        console_handlers = [
            h
            for h in package_logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, RotatingFileHandler)
        ]
        assert len(console_handlers) == 1
