"""
Tests for logger functionality.
"""

import pytest
from pathlib import Path
from swipedeck.logger import StructuredLogger, get_logger, reset_logger


class TestStructuredLogger:
    """Test structured logging functionality."""

    def test_logger_creation(self, tmp_path):
        """Logger should be created with default settings."""
        logger = StructuredLogger(
            name="test",
            level="INFO",
            log_dir=tmp_path,
            enable_console=False,
        )

        assert logger.logger.name == "test"
        assert logger.metrics["swipes_submitted"] == 0

    def test_log_methods(self, tmp_path):
        """All log level methods should work."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        # Should not raise exceptions
        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")
        logger.critical("Critical message")

    def test_log_with_context(self, tmp_path):
        """Logging with context should include extra data."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        # Should not raise exceptions
        logger.info("Message with context", url="https://example.com", count=5)

    def test_metrics_tracking(self, tmp_path):
        """Metrics should be tracked correctly."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        # Track swipes
        logger.record_swipe_enqueued()
        logger.record_swipe_enqueued()
        logger.record_swipe_submitted(is_match=True)
        logger.record_swipe_failure("SwipeSubmitFailed")
        logger.record_swipe_rejected("BackpressureRejected")

        # Track fetches
        logger.record_fetch_attempt()
        logger.record_fetch_attempt()
        logger.record_fetch_failure("CandidateFetchFailed")
        logger.record_fetch_discarded()
        logger.record_location_fallback("LocationTimeout")

        metrics = logger.get_metrics()

        assert metrics["swipes_enqueued"] == 2
        assert metrics["swipes_submitted"] == 1
        assert metrics["swipes_failed"] == 1
        assert metrics["swipes_rejected"] == 1
        assert metrics["matches"] == 1
        assert metrics["fetches_attempted"] == 2
        assert metrics["fetches_failed"] == 1
        assert metrics["fetches_discarded"] == 1
        assert metrics["location_fallbacks"] == 1
        assert metrics["errors_by_type"]["SwipeSubmitFailed"] == 1
        assert metrics["errors_by_type"]["BackpressureRejected"] == 1
        assert metrics["errors_by_type"]["LocationTimeout"] == 1

    def test_success_rate_calculation(self, tmp_path):
        """Success rate should be calculated correctly."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        # 3 resolved swipes, 2 delivered = 66.7% success rate
        logger.record_swipe_submitted()
        logger.record_swipe_submitted()
        logger.record_swipe_failure("SwipeSubmitFailed")

        metrics = logger.get_metrics()

        assert metrics["swipe_success_rate"] == pytest.approx(0.667, rel=0.01)

    def test_success_rate_without_swipes(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)

        assert logger.get_metrics()["swipe_success_rate"] == 0.0

    def test_get_metrics_returns_copy(self, tmp_path):
        logger = StructuredLogger(name="test", log_dir=tmp_path, enable_console=False)
        logger.record_fetch_failure("CandidateFetchFailed")

        metrics = logger.get_metrics()
        metrics["errors_by_type"]["CandidateFetchFailed"] = 99

        assert logger.metrics["errors_by_type"]["CandidateFetchFailed"] == 1

    def test_log_file_creation(self, tmp_path):
        """Log file should be created in specified directory."""
        logger = StructuredLogger(
            name="test",
            log_dir=tmp_path,
            enable_console=False,
        )

        logger.info("Test message", candidate_id="t1")

        # Check that a log file was created
        log_files = list(tmp_path.glob("swipedeck_*.log"))
        assert len(log_files) == 1

        # Check that message was written
        log_content = log_files[0].read_text()
        assert "Test message" in log_content
        assert '"candidate_id": "t1"' in log_content

    def test_no_handlers_is_silent(self, tmp_path):
        """A logger with every output disabled still accepts calls."""
        logger = StructuredLogger(name="silent", enable_file=False, enable_console=False)

        logger.warning("Nobody hears this", when=tmp_path)

        assert list(tmp_path.glob("*.log")) == []


class TestGlobalLogger:
    """Test global logger singleton."""

    def test_get_logger_singleton(self, tmp_path):
        """get_logger should return same instance."""
        reset_logger()  # Start fresh

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger2 = get_logger()

        assert logger1 is logger2

    def test_reset_logger(self, tmp_path):
        """reset_logger should create new instance."""
        reset_logger()

        logger1 = get_logger(log_dir=tmp_path, enable_console=False)
        logger1.record_swipe_enqueued()

        reset_logger()

        logger2 = get_logger(log_dir=tmp_path, enable_console=False)

        # Should be different instance with fresh metrics
        assert logger2.metrics["swipes_enqueued"] == 0
