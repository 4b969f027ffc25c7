"""extractmon - health monitoring for the photo metadata extraction pipeline."""

from .aggregator import WindowAggregator
from .alerting import AlertEvaluator, NotificationDispatcher
from .analytics import compute_metric_window, summarize_alerts, summarize_windows
from .query import AnalyticsQueryService
from .recorder import EventRecorder
from .retention import RetentionManager
from .rules import DEFAULT_ALERT_RULES, AlertRule, Condition
from .service import MonitoringService, build_service

__all__ = [
    "MonitoringService",
    "build_service",
    "EventRecorder",
    "WindowAggregator",
    "AlertEvaluator",
    "NotificationDispatcher",
    "AnalyticsQueryService",
    "RetentionManager",
    "AlertRule",
    "Condition",
    "DEFAULT_ALERT_RULES",
    "compute_metric_window",
    "summarize_windows",
    "summarize_alerts",
]

__version__ = "0.1.0"
