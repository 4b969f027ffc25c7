"""Core domain models used by the monitoring engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

CATEGORY_EXERCISE = "exercise"
CATEGORY_DIET = "diet"
CATEGORIES = (CATEGORY_EXERCISE, CATEGORY_DIET)

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"
OUTCOMES = (OUTCOME_SUCCESS, OUTCOME_FAILURE)

ERROR_IMAGE_PROCESSING = "image_processing"
ERROR_AI_SERVICE = "ai_service"
ERROR_PARSING = "parsing"
ERROR_UNKNOWN = "unknown"
ERROR_KINDS = (ERROR_IMAGE_PROCESSING, ERROR_AI_SERVICE, ERROR_PARSING, ERROR_UNKNOWN)

SEVERITIES = ("critical", "high", "medium", "low")

ALERT_STATUS_ACTIVE = "active"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class RawExtractionEvent:
    """One metadata extraction attempt reported by the pipeline."""

    certification_id: str
    category: str
    outcome: str
    timestamp: datetime
    error_kind: Optional[str] = None
    processing_time_ms: Optional[float] = None


@dataclass(frozen=True)
class RawApiUsageEvent:
    """One call made to the external inference service."""

    certification_id: str
    request_kind: str
    tokens_used: int
    response_time_ms: float
    estimated_cost: float
    timestamp: datetime


@dataclass(frozen=True)
class ApiUsageSummary:
    """Inference service usage rolled up over one window."""

    request_count: int = 0
    total_tokens: int = 0
    avg_tokens_per_request: float = 0.0
    estimated_cost: float = 0.0
    avg_response_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestCount": self.request_count,
            "totalTokens": self.total_tokens,
            "avgTokensPerRequest": self.avg_tokens_per_request,
            "estimatedCost": self.estimated_cost,
            "avgResponseTimeMs": self.avg_response_time_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiUsageSummary":
        return cls(
            request_count=int(data.get("requestCount", 0)),
            total_tokens=int(data.get("totalTokens", 0)),
            avg_tokens_per_request=float(data.get("avgTokensPerRequest", 0.0)),
            estimated_cost=float(data.get("estimatedCost", 0.0)),
            avg_response_time_ms=float(data.get("avgResponseTimeMs", 0.0)),
        )


@dataclass(frozen=True)
class MetricWindow:
    """
    Statistics for one fixed-size window of raw events.

    Windows are keyed by ``window_start`` and are never rewritten once stored.
    """

    window_start: datetime
    window_end: datetime
    total_extractions: int
    success_count: int
    failure_count: int
    success_rate_pct: float
    avg_processing_time_ms: float
    counts_by_category: Dict[str, int] = field(default_factory=dict)
    api_usage: ApiUsageSummary = field(default_factory=ApiUsageSummary)
    error_breakdown: Dict[str, int] = field(default_factory=dict)

    def error_count(self, kind: str) -> int:
        return self.error_breakdown.get(kind, 0)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape used by dashboards."""
        return {
            "windowStart": self.window_start.isoformat(),
            "windowEnd": self.window_end.isoformat(),
            "totalExtractions": self.total_extractions,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "successRatePct": self.success_rate_pct,
            "avgProcessingTimeMs": self.avg_processing_time_ms,
            "countsByCategory": dict(self.counts_by_category),
            "apiUsage": self.api_usage.to_dict(),
            "errorBreakdown": dict(self.error_breakdown),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricWindow":
        return cls(
            window_start=datetime.fromisoformat(data["windowStart"]),
            window_end=datetime.fromisoformat(data["windowEnd"]),
            total_extractions=int(data["totalExtractions"]),
            success_count=int(data["successCount"]),
            failure_count=int(data["failureCount"]),
            success_rate_pct=float(data["successRatePct"]),
            avg_processing_time_ms=float(data["avgProcessingTimeMs"]),
            counts_by_category=dict(data.get("countsByCategory") or {}),
            api_usage=ApiUsageSummary.from_dict(data.get("apiUsage") or {}),
            error_breakdown=dict(data.get("errorBreakdown") or {}),
        )


@dataclass(frozen=True)
class AlertRecord:
    """A fired alert rule together with the window that triggered it."""

    rule_name: str
    severity: str
    message: str
    triggered_at: datetime
    snapshot: MetricWindow
    status: str = ALERT_STATUS_ACTIVE
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ruleName": self.rule_name,
            "severity": self.severity,
            "message": self.message,
            "triggeredAt": self.triggered_at.isoformat(),
            "snapshot": self.snapshot.to_dict(),
            "status": self.status,
        }


@dataclass(frozen=True)
class NotificationRecord:
    """Pending delivery of an alert; ``sent`` is owned by the delivery side."""

    alert_rule_name: str
    severity: str
    message: str
    created_at: datetime
    snapshot: MetricWindow
    sent: bool = False
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "alertRuleName": self.alert_rule_name,
            "severity": self.severity,
            "message": self.message,
            "createdAt": self.created_at.isoformat(),
            "snapshot": self.snapshot.to_dict(),
            "sent": self.sent,
        }
