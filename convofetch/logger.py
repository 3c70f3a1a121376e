"""
Structured logging system for convofetch.

Provides centralized logging with console and file outputs, log levels,
and run metrics (fetch outcomes, retries, flushed batches) used for the
progress lines and the end-of-run summary.
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
    Tracks metrics for monitoring fetch progress.

    Metrics are plain counters. They are only updated from the event loop
    thread, so no locking is required.
    """

    def __init__(
        self,
        name: str = "convofetch",
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
        self.logger.propagate = False

        self.metrics = {
            "api_calls": 0,
            "fetches_attempted": 0,
            "fetches_succeeded": 0,
            "fetches_failed": 0,
            "retries": 0,
            "errors_by_type": {},
            "batches_flushed": 0,
            "rows_written": 0,
            "failed_flushes": 0,
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

            log_file = log_dir / f"convofetch_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

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

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_api_call(self):
        """Increment API call counter."""
        self.metrics["api_calls"] += 1

    def record_fetch_attempt(self):
        """Record the start of one logical fetch."""
        self.metrics["fetches_attempted"] += 1

    def record_fetch_success(self) -> int:
        """Record a successful fetch and return the running success count."""
        self.metrics["fetches_succeeded"] += 1
        return self.metrics["fetches_succeeded"]

    def record_fetch_failure(self, error_type: str):
        """Record a terminal fetch failure."""
        self.metrics["fetches_failed"] += 1

        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def record_retry(self):
        """Record one scheduled retry."""
        self.metrics["retries"] += 1

    def record_flush(self, rows: int):
        """Record a batch written to the output table."""
        self.metrics["batches_flushed"] += 1
        self.metrics["rows_written"] += rows

    def record_flush_failure(self):
        """Record a batch that could not be written."""
        self.metrics["failed_flushes"] += 1

    def get_metrics(self) -> dict:
        """Return current metrics, including the overall success rate."""
        metrics_copy = self.metrics.copy()
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        attempts = metrics_copy["fetches_attempted"]
        if attempts > 0:
            metrics_copy["success_rate"] = round(
                metrics_copy["fetches_succeeded"] / attempts, 3
            )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        total_attempts = metrics["fetches_attempted"]
        total_successes = metrics["fetches_succeeded"]
        overall_rate = 0
        if total_attempts > 0:
            overall_rate = round(total_successes / total_attempts * 100, 1)

        self.info("=== Fetch Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']} ({metrics['retries']} retries)")
        self.info(f"Fetches: {total_successes}/{total_attempts} ({overall_rate}% success)")
        self.info(
            f"Batches: {metrics['batches_flushed']} written, "
            f"{metrics['failed_flushes']} failed, {metrics['rows_written']} rows"
        )

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "convofetch",
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
