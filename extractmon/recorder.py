"""Records raw extraction and inference usage events as the pipeline reports them."""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

import structlog

from .errors import StoreError
from .models import OUTCOME_FAILURE, OUTCOME_SUCCESS, RawApiUsageEvent, RawExtractionEvent, utc_now
from .ports import MetricsStore

logger = structlog.get_logger(__name__)


class EventRecorder:
    """
    Synchronous write path used by the extraction pipeline.

    Every call logs a structured event and appends the raw record to the store.
    A store failure is logged and swallowed so that monitoring never breaks an
    extraction; the lost event only shows up as a gap in the rollups.
    """

    def __init__(self, store: MetricsStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def log_extraction_start(self, certification_id: str, category: str, photo_url: str) -> None:
        logger.info(
            "metadata_extraction_start",
            certification_id=certification_id,
            category=category,
            photo_url=photo_url,
        )

    def record_extraction_success(
        self,
        certification_id: str,
        category: str,
        processing_time_ms: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> RawExtractionEvent:
        event = RawExtractionEvent(
            certification_id=certification_id,
            category=category,
            outcome=OUTCOME_SUCCESS,
            timestamp=self.clock(),
            processing_time_ms=processing_time_ms,
        )
        logger.info(
            "metadata_extraction_success",
            certification_id=certification_id,
            category=category,
            processing_time_ms=processing_time_ms,
            metadata=metadata,
        )
        self._store_extraction(event)
        return event

    def record_extraction_failure(
        self,
        certification_id: str,
        category: str,
        error_kind: Optional[str],
        error_message: str = "",
        processing_time_ms: Optional[float] = None,
    ) -> RawExtractionEvent:
        event = RawExtractionEvent(
            certification_id=certification_id,
            category=category,
            outcome=OUTCOME_FAILURE,
            timestamp=self.clock(),
            error_kind=error_kind,
            processing_time_ms=processing_time_ms,
        )
        logger.error(
            "metadata_extraction_failure",
            certification_id=certification_id,
            category=category,
            error_kind=error_kind,
            error_message=error_message,
            processing_time_ms=processing_time_ms,
        )
        self._store_extraction(event)
        return event

    def record_api_usage(
        self,
        certification_id: str,
        request_kind: str,
        tokens_used: int,
        response_time_ms: float,
        estimated_cost: float,
    ) -> RawApiUsageEvent:
        event = RawApiUsageEvent(
            certification_id=certification_id,
            request_kind=request_kind,
            tokens_used=tokens_used,
            response_time_ms=response_time_ms,
            estimated_cost=estimated_cost,
            timestamp=self.clock(),
        )
        logger.info(
            "api_usage",
            certification_id=certification_id,
            request_kind=request_kind,
            tokens_used=tokens_used,
            response_time_ms=response_time_ms,
            estimated_cost=estimated_cost,
        )
        try:
            self.store.add_api_usage_event(event)
        except StoreError as exc:
            logger.error("api_usage_store_failed", certification_id=certification_id, error=str(exc))
        return event

    def log_image_processing(
        self,
        certification_id: str,
        original_size_bytes: int,
        processed_size_bytes: int,
        processing_time_ms: float,
    ) -> None:
        compression_ratio = processed_size_bytes / original_size_bytes if original_size_bytes else 0.0
        logger.info(
            "image_processing",
            certification_id=certification_id,
            original_size_bytes=original_size_bytes,
            processed_size_bytes=processed_size_bytes,
            processing_time_ms=processing_time_ms,
            compression_ratio=compression_ratio,
        )

    def _store_extraction(self, event: RawExtractionEvent) -> None:
        try:
            self.store.add_extraction_event(event)
        except StoreError as exc:
            logger.error(
                "extraction_event_store_failed",
                certification_id=event.certification_id,
                outcome=event.outcome,
                error=str(exc),
            )
