"""Pure analytics functions over raw events and stored windows."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Optional, Sequence

from .models import (
    ALERT_STATUS_ACTIVE,
    CATEGORIES,
    ERROR_AI_SERVICE,
    ERROR_IMAGE_PROCESSING,
    ERROR_KINDS,
    ERROR_PARSING,
    ERROR_UNKNOWN,
    OUTCOME_SUCCESS,
    OUTCOMES,
    SEVERITIES,
    AlertRecord,
    ApiUsageSummary,
    MetricWindow,
    RawApiUsageEvent,
    RawExtractionEvent,
)

ERROR_BREAKDOWN_KEYS = {
    ERROR_IMAGE_PROCESSING: "imageProcessingErrors",
    ERROR_AI_SERVICE: "aiServiceErrors",
    ERROR_PARSING: "parsingErrors",
    ERROR_UNKNOWN: "unknownErrors",
}


def compute_metric_window(
    extraction_events: Iterable[RawExtractionEvent],
    usage_events: Iterable[RawApiUsageEvent],
    window_start: datetime,
    window_end: datetime,
) -> MetricWindow:
    """
    Roll raw events up into one window.

    Events with a missing or unrecognised outcome or category are left out of
    every count, as are usage events without numeric tokens and cost.
    """
    extractions = [event for event in extraction_events if _is_valid_extraction(event)]
    usages = [event for event in usage_events if _is_valid_usage(event)]

    total_extractions = len(extractions)
    success_count = sum(1 for event in extractions if event.outcome == OUTCOME_SUCCESS)
    failure_count = total_extractions - success_count
    success_rate = success_count / total_extractions * 100 if total_extractions > 0 else 0.0

    processing_times = [
        event.processing_time_ms for event in extractions if _is_number(event.processing_time_ms)
    ]
    avg_processing_time = sum(processing_times) / len(processing_times) if processing_times else 0.0

    counts_by_category = {category: 0 for category in CATEGORIES}
    error_breakdown = {kind: 0 for kind in ERROR_KINDS}
    for event in extractions:
        counts_by_category[event.category] += 1
        if event.outcome != OUTCOME_SUCCESS:
            kind = event.error_kind if event.error_kind in ERROR_KINDS else ERROR_UNKNOWN
            error_breakdown[kind] += 1

    return MetricWindow(
        window_start=window_start,
        window_end=window_end,
        total_extractions=total_extractions,
        success_count=success_count,
        failure_count=failure_count,
        success_rate_pct=success_rate,
        avg_processing_time_ms=avg_processing_time,
        counts_by_category=counts_by_category,
        api_usage=compute_api_usage(usages),
        error_breakdown=error_breakdown,
    )


def compute_api_usage(events: Sequence[RawApiUsageEvent]) -> ApiUsageSummary:
    """Sum and average inference usage events."""
    request_count = len(events)
    if request_count == 0:
        return ApiUsageSummary()

    total_tokens = sum(int(event.tokens_used) for event in events)
    estimated_cost = sum(float(event.estimated_cost) for event in events)
    response_times = [event.response_time_ms for event in events if _is_number(event.response_time_ms)]

    return ApiUsageSummary(
        request_count=request_count,
        total_tokens=total_tokens,
        avg_tokens_per_request=total_tokens / request_count,
        estimated_cost=estimated_cost,
        avg_response_time_ms=sum(response_times) / len(response_times) if response_times else 0.0,
    )


def summarize_windows(
    windows: Iterable[MetricWindow],
    alerts: Iterable[AlertRecord],
    time_range: str,
    start_date: datetime,
    end_date: datetime,
    recent_alert_count: int = 5,
) -> Dict:
    """
    Combine stored windows into one dashboard summary.

    Totals are sums of the per-window fields; raw events are never re-read.
    """
    windows_list = sorted(windows, key=lambda window: window.window_start)

    total_extractions = sum(window.total_extractions for window in windows_list)
    total_successful = sum(window.success_count for window in windows_list)
    total_failed = sum(window.failure_count for window in windows_list)
    success_rate = total_successful / total_extractions * 100 if total_extractions > 0 else 0.0

    total_requests = sum(window.api_usage.request_count for window in windows_list)
    total_tokens = sum(window.api_usage.total_tokens for window in windows_list)
    total_cost = sum(window.api_usage.estimated_cost for window in windows_list)

    avg_processing_time = (
        sum(window.avg_processing_time_ms for window in windows_list) / len(windows_list)
        if windows_list
        else 0
    )

    return {
        "timeRange": time_range,
        "period": {
            "start": start_date.isoformat(),
            "end": end_date.isoformat(),
        },
        "summary": {
            "totalExtractions": total_extractions,
            "successfulExtractions": total_successful,
            "failedExtractions": total_failed,
            "successRate": _round_half_up(success_rate, 2),
            "exerciseExtractions": _sum_category(windows_list, "exercise"),
            "dietExtractions": _sum_category(windows_list, "diet"),
        },
        "apiUsage": {
            "totalRequests": total_requests,
            "totalTokensUsed": total_tokens,
            "averageTokensPerRequest": (
                int(_round_half_up(total_tokens / total_requests)) if total_requests > 0 else 0
            ),
            "estimatedCost": _round_half_up(total_cost, 2),
        },
        "errorBreakdown": {
            key: sum(window.error_count(kind) for window in windows_list)
            for kind, key in ERROR_BREAKDOWN_KEYS.items()
        },
        "performance": {
            "averageProcessingTime": int(_round_half_up(avg_processing_time)),
        },
        "alerts": summarize_alerts(alerts, recent_count=recent_alert_count),
        "timeSeries": [window.to_dict() for window in windows_list],
    }


def summarize_alerts(
    alerts: Iterable[AlertRecord],
    recent_count: Optional[int] = None,
    include_active: bool = False,
) -> Dict:
    """Bucket alerts by severity; ``alerts`` is expected newest first."""
    alerts_list = list(alerts)
    summary: Dict = {"total": len(alerts_list)}
    for severity in SEVERITIES:
        summary[severity] = sum(1 for alert in alerts_list if alert.severity == severity)
    if include_active:
        summary["active"] = sum(1 for alert in alerts_list if alert.status == ALERT_STATUS_ACTIVE)

    recent = alerts_list if recent_count is None else alerts_list[:recent_count]
    summary["recent"] = [alert.to_dict() for alert in recent]
    return summary


def _sum_category(windows: Sequence[MetricWindow], category: str) -> int:
    return sum(window.counts_by_category.get(category, 0) for window in windows)


def _is_valid_extraction(event: RawExtractionEvent) -> bool:
    return (
        event.outcome in OUTCOMES
        and event.category in CATEGORIES
        and isinstance(event.timestamp, datetime)
    )


def _is_valid_usage(event: RawApiUsageEvent) -> bool:
    return (
        _is_number(event.tokens_used)
        and _is_number(event.estimated_cost)
        and isinstance(event.timestamp, datetime)
    )


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


def _round_half_up(value: float, digits: int = 0) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
