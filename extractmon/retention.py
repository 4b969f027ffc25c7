"""Daily deletion of raw events and windows past their retention horizons."""

from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

import structlog

from .errors import StoreError
from .models import ensure_utc, utc_now
from .ports import MetricsStore

logger = structlog.get_logger(__name__)

RAW_RETENTION = timedelta(days=30)
ROLLUP_RETENTION = timedelta(days=90)


class RetentionManager:
    """Runs three independent bulk deletions; one failing does not stop the others."""

    def __init__(
        self,
        store: MetricsStore,
        raw_retention: timedelta = RAW_RETENTION,
        rollup_retention: timedelta = ROLLUP_RETENTION,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.raw_retention = raw_retention
        self.rollup_retention = rollup_retention
        self.clock = clock

    def run(self, now: Optional[datetime] = None) -> Dict:
        """
        Delete expired records.

        Returns deleted counts per collection; a collection whose batch failed
        is listed under ``failed`` instead.
        """
        now = ensure_utc(now or self.clock())
        raw_cutoff = now - self.raw_retention
        rollup_cutoff = now - self.rollup_retention

        logger.info(
            "retention_started",
            raw_cutoff=raw_cutoff.isoformat(),
            rollup_cutoff=rollup_cutoff.isoformat(),
        )

        batches = (
            ("raw_extraction_events", self.store.delete_extraction_events_before, raw_cutoff),
            ("raw_api_usage_events", self.store.delete_api_usage_events_before, raw_cutoff),
            ("metric_windows", self.store.delete_metric_windows_before, rollup_cutoff),
        )

        deleted: Dict[str, int] = {}
        failed = []
        for collection, delete, cutoff in batches:
            try:
                deleted[collection] = delete(cutoff)
            except StoreError as exc:
                logger.error("retention_batch_failed", collection=collection, error=str(exc))
                failed.append(collection)
                continue
            if deleted[collection]:
                logger.info("retention_batch_deleted", collection=collection, deleted=deleted[collection])

        logger.info("retention_completed", deleted=deleted, failed=failed)
        return {"deleted": deleted, "failed": failed}
