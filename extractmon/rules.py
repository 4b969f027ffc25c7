"""Alert rules expressed as data and the generic evaluator that reads them."""

import operator
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Tuple

from .models import ERROR_AI_SERVICE, ERROR_IMAGE_PROCESSING, MetricWindow

OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
}


@dataclass(frozen=True)
class Condition:
    """
    A threshold test against one window field.

    ``metric`` is a dotted path: an attribute of ``MetricWindow`` optionally
    followed by a key (``error_breakdown.ai_service``) or a nested attribute
    (``api_usage.estimated_cost``).
    """

    metric: str
    op: str
    threshold: float


@dataclass(frozen=True)
class AlertRule:
    """An alert fires when every condition holds, at most once per cooldown."""

    name: str
    severity: str
    message: str
    cooldown: timedelta
    conditions: Tuple[Condition, ...]


DEFAULT_ALERT_RULES: Tuple[AlertRule, ...] = (
    AlertRule(
        name="high_failure_rate",
        severity="high",
        message="High failure rate detected in metadata extraction",
        cooldown=timedelta(minutes=15),
        conditions=(
            Condition("total_extractions", ">", 5),
            Condition("success_rate_pct", "<", 70),
        ),
    ),
    AlertRule(
        name="no_extractions",
        severity="medium",
        message="No metadata extractions processed in the last window",
        cooldown=timedelta(minutes=30),
        conditions=(Condition("total_extractions", "==", 0),),
    ),
    AlertRule(
        name="high_api_cost",
        severity="high",
        message="High API costs detected for metadata extraction",
        cooldown=timedelta(minutes=10),
        conditions=(Condition("api_usage.estimated_cost", ">", 10),),
    ),
    AlertRule(
        name="slow_processing",
        severity="medium",
        message="Slow metadata extraction processing detected",
        cooldown=timedelta(minutes=20),
        conditions=(Condition("avg_processing_time_ms", ">", 30000),),
    ),
    AlertRule(
        name="high_image_errors",
        severity="medium",
        message="High number of image processing errors",
        cooldown=timedelta(minutes=15),
        conditions=(Condition(f"error_breakdown.{ERROR_IMAGE_PROCESSING}", ">", 3),),
    ),
    AlertRule(
        name="high_ai_service_errors",
        severity="high",
        message="High number of AI service errors - possible API quota issues",
        cooldown=timedelta(minutes=10),
        conditions=(Condition(f"error_breakdown.{ERROR_AI_SERVICE}", ">", 5),),
    ),
)


def metric_value(window: MetricWindow, metric: str) -> float:
    """Resolve a dotted metric path against a window; missing keys read as 0."""
    value = window
    for part in metric.split("."):
        if isinstance(value, dict):
            value = value.get(part, 0)
        else:
            value = getattr(value, part)
    return value


def condition_holds(condition: Condition, window: MetricWindow) -> bool:
    compare = OPERATORS[condition.op]
    return compare(metric_value(window, condition.metric), condition.threshold)


def rule_matches(rule: AlertRule, window: MetricWindow) -> bool:
    return all(condition_holds(condition, window) for condition in rule.conditions)
