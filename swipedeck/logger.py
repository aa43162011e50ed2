"""
Structured logging system for swipedeck.

Provides centralized logging with console and file outputs, log levels,
and metrics tracking for monitoring a discovery session.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks swipe, fetch and location metrics for a session.
    """

    def __init__(
        self,
        name: str = "swipedeck",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers

        self.metrics = {
            "swipes_enqueued": 0,
            "swipes_submitted": 0,
            "swipes_failed": 0,
            "swipes_rejected": 0,
            "matches": 0,
            "fetches_attempted": 0,
            "fetches_failed": 0,
            "fetches_discarded": 0,
            "location_fallbacks": 0,
            "errors_by_type": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"swipedeck_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_swipe_enqueued(self):
        self.metrics["swipes_enqueued"] += 1

    def record_swipe_rejected(self, reason: str):
        """Record a swipe refused by the dispatcher (backpressure, empty deck)."""
        self.metrics["swipes_rejected"] += 1
        self._record_error(reason)

    def record_swipe_submitted(self, is_match: bool = False):
        self.metrics["swipes_submitted"] += 1
        if is_match:
            self.metrics["matches"] += 1

    def record_swipe_failure(self, error_type: str):
        self.metrics["swipes_failed"] += 1
        self._record_error(error_type)

    def record_fetch_attempt(self):
        self.metrics["fetches_attempted"] += 1

    def record_fetch_failure(self, error_type: str):
        self.metrics["fetches_failed"] += 1
        self._record_error(error_type)

    def record_fetch_discarded(self):
        """Record a fetch dropped because its generation went stale."""
        self.metrics["fetches_discarded"] += 1

    def record_location_fallback(self, error_type: str):
        self.metrics["location_fallbacks"] += 1
        self._record_error(error_type)

    def _record_error(self, error_type: str):
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics with derived rates."""
        metrics_copy = dict(self.metrics)
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])

        resolved = metrics_copy["swipes_submitted"] + metrics_copy["swipes_failed"]
        metrics_copy["swipe_success_rate"] = (
            round(metrics_copy["swipes_submitted"] / resolved, 3) if resolved else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Discovery Session Metrics ===")
        self.info(
            f"Swipes: {metrics['swipes_submitted']} submitted, "
            f"{metrics['swipes_failed']} failed, {metrics['swipes_rejected']} rejected "
            f"({metrics['swipe_success_rate'] * 100:.1f}% success)"
        )
        self.info(f"Matches: {metrics['matches']}")
        self.info(
            f"Fetches: {metrics['fetches_attempted']} attempted, "
            f"{metrics['fetches_failed']} failed, {metrics['fetches_discarded']} discarded"
        )
        self.info(f"Location fallbacks: {metrics['location_fallbacks']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "swipedeck",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
