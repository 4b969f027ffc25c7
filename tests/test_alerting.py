from datetime import datetime, timedelta, timezone

from extractmon.adapters import InMemoryMetricsStore
from extractmon.alerting import AlertEvaluator, NotificationDispatcher
from extractmon.errors import StoreError
from extractmon.models import ApiUsageSummary, MetricWindow
from extractmon.rules import AlertRule, Condition

NOW = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


class NotificationFailingStore(InMemoryMetricsStore):
    def insert_notification(self, notification):
        raise StoreError("notifications unavailable")


class CooldownFailingStore(InMemoryMetricsStore):
    def has_alert_since(self, rule_name, since):
        if rule_name == "no_extractions":
            raise StoreError("query failed")
        return super().has_alert_since(rule_name, since)


def _window(total=0, success=0, cost=0.0, start=NOW - timedelta(minutes=5)):
    return MetricWindow(
        window_start=start,
        window_end=start + timedelta(minutes=5),
        total_extractions=total,
        success_count=success,
        failure_count=total - success,
        success_rate_pct=success / total * 100 if total else 0.0,
        avg_processing_time_ms=0.0,
        api_usage=ApiUsageSummary(estimated_cost=cost),
        error_breakdown={},
    )


def _evaluator(store):
    return AlertEvaluator(store, NotificationDispatcher(store, clock=lambda: NOW))


def test_evaluate_creates_alert_and_unsent_notification():
    store = InMemoryMetricsStore()

    alerts = _evaluator(store).evaluate(_window(), NOW)

    assert [alert.rule_name for alert in alerts] == ["no_extractions"]
    assert alerts[0].severity == "medium"
    assert alerts[0].status == "active"
    assert alerts[0].triggered_at == NOW
    assert alerts[0].id is not None
    assert len(store.notifications) == 1
    notification = store.notifications[0]
    assert notification.alert_rule_name == "no_extractions"
    assert notification.sent is False
    assert notification.snapshot == alerts[0].snapshot


def test_evaluate_fires_every_matching_rule_on_same_window():
    store = InMemoryMetricsStore()
    window = _window(total=10, success=2, cost=12.0)

    alerts = _evaluator(store).evaluate(window, NOW)

    assert [alert.rule_name for alert in alerts] == ["high_failure_rate", "high_api_cost"]
    assert all(alert.snapshot is window for alert in alerts)


def test_evaluate_within_cooldown_creates_one_alert():
    store = InMemoryMetricsStore()
    evaluator = _evaluator(store)

    evaluator.evaluate(_window(), NOW)
    second = evaluator.evaluate(_window(), NOW + timedelta(minutes=29))

    assert second == []
    assert len(store.alerts) == 1
    assert len(store.notifications) == 1


def test_evaluate_after_cooldown_creates_second_alert():
    store = InMemoryMetricsStore()
    evaluator = _evaluator(store)

    evaluator.evaluate(_window(), NOW)
    second = evaluator.evaluate(_window(), NOW + timedelta(minutes=31))

    assert [alert.rule_name for alert in second] == ["no_extractions"]
    assert len(store.alerts) == 2


def test_cooldown_is_tracked_per_rule():
    store = InMemoryMetricsStore()
    evaluator = _evaluator(store)

    evaluator.evaluate(_window(total=10, success=2, cost=12.0), NOW)
    later = evaluator.evaluate(_window(total=10, success=2, cost=12.0), NOW + timedelta(minutes=11))

    assert [alert.rule_name for alert in later] == ["high_api_cost"]


def test_notification_failure_keeps_alert():
    store = NotificationFailingStore()

    alerts = _evaluator(store).evaluate(_window(), NOW)

    assert len(alerts) == 1
    assert len(store.alerts) == 1
    assert store.notifications == []


def test_store_failure_on_one_rule_does_not_stop_others():
    store = CooldownFailingStore()
    rules = (
        AlertRule("no_extractions", "medium", "none", timedelta(minutes=30), (Condition("total_extractions", "==", 0),)),
        AlertRule("always", "low", "always", timedelta(minutes=1), (Condition("total_extractions", ">=", 0),)),
    )
    evaluator = AlertEvaluator(store, NotificationDispatcher(store), rules=rules)

    alerts = evaluator.evaluate(_window(), NOW)

    assert [alert.rule_name for alert in alerts] == ["always"]
