"""Read-only dashboard queries over stored windows and alerts."""

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

import structlog

from .analytics import summarize_alerts, summarize_windows
from .models import ensure_utc, utc_now
from .ports import MetricsStore

logger = structlog.get_logger(__name__)

TIME_RANGES: Dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}
DEFAULT_TIME_RANGE = "24h"


def resolve_time_range(time_range: Optional[str]) -> Tuple[str, timedelta]:
    """Map a range label to its duration; anything unrecognised means 24h."""
    if time_range in TIME_RANGES:
        return time_range, TIME_RANGES[time_range]
    return DEFAULT_TIME_RANGE, TIME_RANGES[DEFAULT_TIME_RANGE]


class AnalyticsQueryService:
    """Facade over the store that builds dashboard payloads."""

    def __init__(
        self,
        store: MetricsStore,
        recent_alert_limit: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.recent_alert_limit = recent_alert_limit
        self.clock = clock

    def query(self, time_range: Optional[str] = None, now: Optional[datetime] = None) -> Dict:
        """
        Summarize the windows and alerts of the requested range.

        Store errors propagate to the caller.
        """
        now = ensure_utc(now or self.clock())
        label, duration = resolve_time_range(time_range)
        start = now - duration

        windows = self.store.fetch_metric_windows(start)
        alerts = self.store.fetch_alerts(start, limit=self.recent_alert_limit)
        result = summarize_windows(windows, alerts, time_range=label, start_date=start, end_date=now)

        logger.info(
            "analytics_retrieved",
            time_range=label,
            requested_time_range=time_range,
            window_count=len(windows),
            total_extractions=result["summary"]["totalExtractions"],
            alert_count=result["alerts"]["total"],
        )
        return result

    def alert_summary(self, now: Optional[datetime] = None) -> Dict:
        """Severity and status counts of the alerts raised in the last 24 hours."""
        now = ensure_utc(now or self.clock())
        alerts = self.store.fetch_alerts(now - TIME_RANGES["24h"])
        summary = summarize_alerts(alerts, recent_count=self.recent_alert_limit, include_active=True)
        summary["period"] = {
            "start": (now - TIME_RANGES["24h"]).isoformat(),
            "end": now.isoformat(),
        }
        return summary
