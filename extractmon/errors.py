"""Exceptions raised by the monitoring engine."""


class MonitoringError(Exception):
    """Base exception for extraction monitoring errors."""


class StoreError(MonitoringError):
    """Raised when the metrics store cannot be read or written."""


class JobTimeoutError(MonitoringError):
    """Raised when a scheduled job exceeds its wall-clock budget."""
