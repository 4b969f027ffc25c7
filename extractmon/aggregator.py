"""Scheduled rollup of raw events into fixed-size metric windows."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import structlog

from .analytics import compute_metric_window
from .errors import StoreError
from .models import MetricWindow, ensure_utc, utc_now
from .ports import MetricsStore

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_SIZE = timedelta(minutes=5)
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def window_bounds(now: datetime, window_size: timedelta = DEFAULT_WINDOW_SIZE) -> Tuple[datetime, datetime]:
    """
    Return ``(start, end)`` of the trailing window for a tick at ``now``.

    ``end`` is ``now`` floored to the window grid, so two deliveries of the
    same scheduled tick produce the same ``start`` key.
    """
    now = ensure_utc(now)
    elapsed = now - EPOCH
    window_end = now - (elapsed % window_size)
    return window_end - window_size, window_end


class WindowAggregator:
    """Computes and stores one window per invocation, at most once per key."""

    def __init__(
        self,
        store: MetricsStore,
        window_size: timedelta = DEFAULT_WINDOW_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.window_size = window_size
        self.clock = clock

    def run(self, now: Optional[datetime] = None) -> Optional[MetricWindow]:
        """
        Aggregate the trailing window and store it.

        Returns the window stored under this tick's key. A redelivered tick
        gets the window already stored, so alerts can be evaluated again on
        it; cooldowns keep that from firing twice. Returns None when the
        store failed. Nothing partial is written on failure and the missed
        interval is not retried.
        """
        window_start, window_end = window_bounds(now or self.clock(), self.window_size)
        log = logger.bind(window_start=window_start.isoformat(), window_end=window_end.isoformat())

        try:
            existing = self.store.get_metric_window(window_start)
            if existing is not None:
                log.info("metric_window_exists")
                return existing
            extraction_events = self.store.fetch_extraction_events(window_start, window_end)
            usage_events = self.store.fetch_api_usage_events(window_start, window_end)
        except StoreError as exc:
            log.error("metric_window_read_failed", error=str(exc))
            return None

        window = compute_metric_window(extraction_events, usage_events, window_start, window_end)

        try:
            if not self.store.insert_metric_window(window):
                log.info("metric_window_exists")
                return self.store.get_metric_window(window_start)
        except StoreError as exc:
            log.error("metric_window_write_failed", error=str(exc))
            return None

        log.info(
            "metric_window_stored",
            total_extractions=window.total_extractions,
            success_rate_pct=window.success_rate_pct,
            api_requests=window.api_usage.request_count,
            estimated_cost=window.api_usage.estimated_cost,
        )
        return window
