"""Alert evaluation with per-rule cooldowns, and notification enqueueing."""

from datetime import datetime
from typing import Callable, List, Optional, Sequence

import structlog

from .errors import StoreError
from .models import AlertRecord, MetricWindow, NotificationRecord, ensure_utc, utc_now
from .ports import MetricsStore
from .rules import DEFAULT_ALERT_RULES, AlertRule, rule_matches

logger = structlog.get_logger(__name__)

SEVERITY_LOG_LEVELS = {
    "critical": "error",
    "high": "error",
    "medium": "warning",
    "low": "info",
}


class NotificationDispatcher:
    """Enqueues one unsent notification per new alert; delivery happens elsewhere."""

    def __init__(self, store: MetricsStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def dispatch(self, alert: AlertRecord) -> Optional[NotificationRecord]:
        notification = NotificationRecord(
            alert_rule_name=alert.rule_name,
            severity=alert.severity,
            message=alert.message,
            created_at=self.clock(),
            snapshot=alert.snapshot,
            sent=False,
        )
        try:
            stored = self.store.insert_notification(notification)
        except StoreError as exc:
            # The alert itself stays; a lost notification is only logged.
            logger.error("notification_enqueue_failed", rule_name=alert.rule_name, error=str(exc))
            return None

        logger.info(
            "notification_queued",
            rule_name=alert.rule_name,
            severity=alert.severity,
            success_rate_pct=alert.snapshot.success_rate_pct,
            total_extractions=alert.snapshot.total_extractions,
        )
        return stored


class AlertEvaluator:
    """
    Evaluates every rule against one window and records non-suppressed alerts.

    The cooldown check and the alert insert are two separate store calls, so
    two evaluator runs overlapping in time may both fire the same rule. That
    double alert is accepted; no lock is taken.
    """

    def __init__(
        self,
        store: MetricsStore,
        dispatcher: NotificationDispatcher,
        rules: Sequence[AlertRule] = DEFAULT_ALERT_RULES,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.rules = tuple(rules)
        self.clock = clock

    def evaluate(self, window: MetricWindow, now: Optional[datetime] = None) -> List[AlertRecord]:
        """Return the alerts created for ``window``."""
        now = ensure_utc(now or self.clock())
        created: List[AlertRecord] = []
        for rule in self.rules:
            if not rule_matches(rule, window):
                continue
            alert = self._fire(rule, window, now)
            if alert is not None:
                created.append(alert)
        return created

    def _fire(self, rule: AlertRule, window: MetricWindow, now: datetime) -> Optional[AlertRecord]:
        try:
            if self.store.has_alert_since(rule.name, now - rule.cooldown):
                logger.debug("alert_suppressed", rule_name=rule.name, cooldown=str(rule.cooldown))
                return None
            alert = self.store.insert_alert(
                AlertRecord(
                    rule_name=rule.name,
                    severity=rule.severity,
                    message=rule.message,
                    triggered_at=now,
                    snapshot=window,
                )
            )
        except StoreError as exc:
            logger.error("alert_rule_failed", rule_name=rule.name, error=str(exc))
            return None

        log_method = getattr(logger, SEVERITY_LOG_LEVELS.get(rule.severity, "info"))
        log_method(
            "alert_triggered",
            rule_name=rule.name,
            severity=rule.severity,
            alert_message=rule.message,
            window_start=window.window_start.isoformat(),
            total_extractions=window.total_extractions,
            success_rate_pct=window.success_rate_pct,
        )
        self.dispatcher.dispatch(alert)
        return alert
