"""In-process store adapter, used by tests and single-process runs."""

import threading
from dataclasses import replace
from datetime import datetime
from itertools import count
from typing import Dict, List, Optional, Sequence

from ..models import AlertRecord, MetricWindow, NotificationRecord, RawApiUsageEvent, RawExtractionEvent


class InMemoryMetricsStore:
    """Keeps every collection in a list guarded by one lock."""

    def __init__(self):
        self.extraction_events: List[RawExtractionEvent] = []
        self.api_usage_events: List[RawApiUsageEvent] = []
        self.metric_windows: Dict[datetime, MetricWindow] = {}
        self.alerts: List[AlertRecord] = []
        self.notifications: List[NotificationRecord] = []
        self._ids = count(1)
        self._lock = threading.Lock()

    def ping(self) -> bool:
        return True

    def release(self) -> None:
        pass

    def add_extraction_event(self, event: RawExtractionEvent) -> None:
        with self._lock:
            self.extraction_events.append(event)

    def add_api_usage_event(self, event: RawApiUsageEvent) -> None:
        with self._lock:
            self.api_usage_events.append(event)

    def fetch_extraction_events(self, start: datetime, end: datetime) -> Sequence[RawExtractionEvent]:
        with self._lock:
            return [event for event in self.extraction_events if start <= event.timestamp < end]

    def fetch_api_usage_events(self, start: datetime, end: datetime) -> Sequence[RawApiUsageEvent]:
        with self._lock:
            return [event for event in self.api_usage_events if start <= event.timestamp < end]

    def get_metric_window(self, window_start: datetime) -> Optional[MetricWindow]:
        with self._lock:
            return self.metric_windows.get(window_start)

    def insert_metric_window(self, window: MetricWindow) -> bool:
        with self._lock:
            if window.window_start in self.metric_windows:
                return False
            self.metric_windows[window.window_start] = window
            return True

    def fetch_metric_windows(self, start: datetime) -> Sequence[MetricWindow]:
        with self._lock:
            windows = [window for key, window in self.metric_windows.items() if key >= start]
        return sorted(windows, key=lambda window: window.window_start, reverse=True)

    def has_alert_since(self, rule_name: str, since: datetime) -> bool:
        with self._lock:
            return any(alert.rule_name == rule_name and alert.triggered_at >= since for alert in self.alerts)

    def insert_alert(self, alert: AlertRecord) -> AlertRecord:
        with self._lock:
            stored = replace(alert, id=str(next(self._ids)))
            self.alerts.append(stored)
        return stored

    def fetch_alerts(self, start: datetime, limit: Optional[int] = None) -> Sequence[AlertRecord]:
        with self._lock:
            matching = [alert for alert in self.alerts if alert.triggered_at >= start]
        matching.sort(key=lambda alert: alert.triggered_at, reverse=True)
        return matching if limit is None else matching[:limit]

    def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        with self._lock:
            stored = replace(notification, id=str(next(self._ids)))
            self.notifications.append(stored)
        return stored

    def fetch_notifications(self, start: datetime) -> Sequence[NotificationRecord]:
        with self._lock:
            matching = [item for item in self.notifications if item.created_at >= start]
        return sorted(matching, key=lambda item: item.created_at)

    def delete_extraction_events_before(self, cutoff: datetime) -> int:
        with self._lock:
            kept = [event for event in self.extraction_events if event.timestamp >= cutoff]
            deleted = len(self.extraction_events) - len(kept)
            self.extraction_events = kept
        return deleted

    def delete_api_usage_events_before(self, cutoff: datetime) -> int:
        with self._lock:
            kept = [event for event in self.api_usage_events if event.timestamp >= cutoff]
            deleted = len(self.api_usage_events) - len(kept)
            self.api_usage_events = kept
        return deleted

    def delete_metric_windows_before(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [key for key in self.metric_windows if key < cutoff]
            for key in expired:
                del self.metric_windows[key]
        return len(expired)
