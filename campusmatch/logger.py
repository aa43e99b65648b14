"""
Structured logging system for campusmatch.

Provides centralized logging with console and file outputs and metrics
tracking for monitoring likes, crushes, matches and contention.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json

from . import config


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring matching activity.
    """

    def __init__(
        self,
        name: str = "campusmatch",
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
        self.logger.handlers.clear()

        self.metrics = {
            "likes_recorded": 0,
            "dislikes_recorded": 0,
            "crushes_sent": 0,
            "matches_created": 0,
            "matches_by_channel": {},
            "rejections_by_reason": {},
            "contention_retries": 0,
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

            log_file = log_dir / f"campusmatch_{datetime.now().strftime('%Y%m%d')}.log"
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

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_like(self):
        self.metrics["likes_recorded"] += 1

    def record_dislike(self):
        self.metrics["dislikes_recorded"] += 1

    def record_crush(self):
        self.metrics["crushes_sent"] += 1

    def record_match(self, channel: str):
        """Record a newly created match for a channel."""
        self.metrics["matches_created"] += 1
        by_channel = self.metrics["matches_by_channel"]
        by_channel[channel] = by_channel.get(channel, 0) + 1

    def record_rejection(self, reason: str):
        """Record a validation or quota rejection."""
        rejections = self.metrics["rejections_by_reason"]
        rejections[reason] = rejections.get(reason, 0) + 1

    def record_contention_retry(self):
        self.metrics["contention_retries"] += 1

    def record_error(self, error_type: str):
        """Record a collaborator failure."""
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        metrics_copy = self.metrics.copy()
        if metrics_copy["likes_recorded"] > 0:
            direct = metrics_copy["matches_by_channel"].get("direct", 0)
            metrics_copy["like_match_rate"] = round(
                direct / metrics_copy["likes_recorded"], 3
            )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Matching Session Metrics ===")
        self.info(f"Likes: {metrics['likes_recorded']}  Dislikes: {metrics['dislikes_recorded']}")
        self.info(f"Crushes sent: {metrics['crushes_sent']}")
        self.info(f"Matches created: {metrics['matches_created']}")

        if metrics["matches_by_channel"]:
            self.info("Matches by channel:")
            for channel, count in metrics["matches_by_channel"].items():
                self.info(f"  {channel}: {count}")

        if metrics["rejections_by_reason"]:
            self.info("Rejections:")
            for reason, count in metrics["rejections_by_reason"].items():
                self.info(f"  {reason}: {count}")

        self.info(f"Contention retries: {metrics['contention_retries']}")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "campusmatch",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    File logging is enabled only when a log directory is configured
    (CAMPUSMATCH_LOG_DIR) or passed explicitly.

    Args:
        name: Logger name
        level: Log level (default: CAMPUSMATCH_LOG_LEVEL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        if "log_dir" not in kwargs and config.LOG_DIR:
            kwargs["log_dir"] = Path(config.LOG_DIR)
        kwargs.setdefault("enable_file", kwargs.get("log_dir") is not None)
        _global_logger = StructuredLogger(name=name, level=level or config.LOG_LEVEL, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
