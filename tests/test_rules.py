from datetime import datetime, timedelta, timezone

import pytest

from extractmon.models import ApiUsageSummary, MetricWindow
from extractmon.rules import DEFAULT_ALERT_RULES, Condition, condition_holds, metric_value, rule_matches

START = datetime(2026, 1, 8, 11, 55, tzinfo=timezone.utc)
RULES = {rule.name: rule for rule in DEFAULT_ALERT_RULES}


def _window(total=10, success=10, processing=1000.0, cost=0.0, errors=None):
    return MetricWindow(
        window_start=START,
        window_end=START + timedelta(minutes=5),
        total_extractions=total,
        success_count=success,
        failure_count=total - success,
        success_rate_pct=success / total * 100 if total else 0.0,
        avg_processing_time_ms=processing,
        api_usage=ApiUsageSummary(request_count=1, estimated_cost=cost),
        error_breakdown=errors or {},
    )


def test_default_rules_are_ordered_and_configured():
    assert [rule.name for rule in DEFAULT_ALERT_RULES] == [
        "high_failure_rate",
        "no_extractions",
        "high_api_cost",
        "slow_processing",
        "high_image_errors",
        "high_ai_service_errors",
    ]
    assert [(rule.severity, rule.cooldown) for rule in DEFAULT_ALERT_RULES] == [
        ("high", timedelta(minutes=15)),
        ("medium", timedelta(minutes=30)),
        ("high", timedelta(minutes=10)),
        ("medium", timedelta(minutes=20)),
        ("medium", timedelta(minutes=15)),
        ("high", timedelta(minutes=10)),
    ]


@pytest.mark.parametrize(
    "rule_name, window, expected",
    [
        ("high_failure_rate", _window(total=6, success=4), True),
        ("high_failure_rate", _window(total=5, success=0), False),
        ("high_failure_rate", _window(total=10, success=7), False),
        ("no_extractions", _window(total=0, success=0), True),
        ("no_extractions", _window(total=1, success=1), False),
        ("high_api_cost", _window(cost=10.01), True),
        ("high_api_cost", _window(cost=10.0), False),
        ("slow_processing", _window(processing=30001), True),
        ("slow_processing", _window(processing=30000), False),
        ("high_image_errors", _window(errors={"image_processing": 4}), True),
        ("high_image_errors", _window(errors={"image_processing": 3}), False),
        ("high_ai_service_errors", _window(errors={"ai_service": 6}), True),
        ("high_ai_service_errors", _window(errors={"ai_service": 5}), False),
        ("high_ai_service_errors", _window(errors={}), False),
    ],
)
def test_rule_thresholds(rule_name, window, expected):
    assert rule_matches(RULES[rule_name], window) is expected


def test_metric_value_resolves_dotted_paths():
    window = _window(cost=2.5, errors={"parsing": 2})

    assert metric_value(window, "total_extractions") == 10
    assert metric_value(window, "api_usage.estimated_cost") == 2.5
    assert metric_value(window, "error_breakdown.parsing") == 2
    assert metric_value(window, "error_breakdown.ai_service") == 0


def test_condition_operators():
    window = _window(total=4, success=4)

    assert condition_holds(Condition("total_extractions", ">=", 4), window)
    assert condition_holds(Condition("total_extractions", "<=", 4), window)
    assert not condition_holds(Condition("total_extractions", "<", 4), window)
