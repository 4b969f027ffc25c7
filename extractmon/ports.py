"""Port definition for the document store backing the monitoring engine."""

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .models import AlertRecord, MetricWindow, NotificationRecord, RawApiUsageEvent, RawExtractionEvent


class MetricsStore(Protocol):
    """
    Store interface that adapters can implement for any backend.

    Implementations raise ``StoreError`` when the backend is unreachable or a
    read/write fails. Range reads are half-open: ``start <= t < end``.
    """

    def ping(self) -> bool:
        """Return True when the backend answers."""

    def release(self) -> None:
        """Give back any connection held by the calling thread."""

    def add_extraction_event(self, event: RawExtractionEvent) -> None:
        """Append one raw extraction event."""

    def add_api_usage_event(self, event: RawApiUsageEvent) -> None:
        """Append one raw inference usage event."""

    def fetch_extraction_events(self, start: datetime, end: datetime) -> Sequence[RawExtractionEvent]:
        """Return extraction events with ``start <= timestamp < end``."""

    def fetch_api_usage_events(self, start: datetime, end: datetime) -> Sequence[RawApiUsageEvent]:
        """Return usage events with ``start <= timestamp < end``."""

    def get_metric_window(self, window_start: datetime) -> Optional[MetricWindow]:
        """Return the stored window keyed by ``window_start``, if any."""

    def insert_metric_window(self, window: MetricWindow) -> bool:
        """Store a window; return False if one with the same start already exists."""

    def fetch_metric_windows(self, start: datetime) -> Sequence[MetricWindow]:
        """Return windows with ``window_start >= start``, newest first."""

    def has_alert_since(self, rule_name: str, since: datetime) -> bool:
        """Return True if ``rule_name`` fired at or after ``since``."""

    def insert_alert(self, alert: AlertRecord) -> AlertRecord:
        """Store an alert and return it with its assigned id."""

    def fetch_alerts(self, start: datetime, limit: Optional[int] = None) -> Sequence[AlertRecord]:
        """Return alerts triggered at or after ``start``, newest first."""

    def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        """Store a notification and return it with its assigned id."""

    def fetch_notifications(self, start: datetime) -> Sequence[NotificationRecord]:
        """Return notifications created at or after ``start``, oldest first."""

    def delete_extraction_events_before(self, cutoff: datetime) -> int:
        """Bulk-delete extraction events older than ``cutoff``; return the count."""

    def delete_api_usage_events_before(self, cutoff: datetime) -> int:
        """Bulk-delete usage events older than ``cutoff``; return the count."""

    def delete_metric_windows_before(self, cutoff: datetime) -> int:
        """Bulk-delete windows starting before ``cutoff``; return the count."""
