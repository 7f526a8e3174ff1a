"""Utility modules for PulseWatch."""

from pulsewatch.utils.logger import get_logger, setup_logging
from pulsewatch.utils.retry import retry_with_backoff
from pulsewatch.utils.timeutils import utcnow

__all__ = ["get_logger", "setup_logging", "retry_with_backoff", "utcnow"]
