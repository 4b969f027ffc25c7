from datetime import datetime, timezone

from extractmon.adapters import InMemoryMetricsStore
from extractmon.errors import StoreError
from extractmon.recorder import EventRecorder

NOW = datetime(2026, 1, 8, 11, 57, tzinfo=timezone.utc)


class ReadOnlyStore(InMemoryMetricsStore):
    def add_extraction_event(self, event):
        raise StoreError("write rejected")

    def add_api_usage_event(self, event):
        raise StoreError("write rejected")


def test_recorder_appends_raw_events():
    store = InMemoryMetricsStore()
    recorder = EventRecorder(store, clock=lambda: NOW)

    recorder.log_extraction_start("cert-1", "exercise", "https://example.com/photo.jpg")
    recorder.record_extraction_success("cert-1", "exercise", 1500, metadata={"exerciseType": "running"})
    recorder.record_extraction_failure("cert-2", "diet", "image_processing", "decode failed", 800)
    recorder.record_api_usage("cert-1", "exercise", 350, 1200.0, 0.0042)
    recorder.log_image_processing("cert-1", 2_000_000, 500_000, 300)

    success, failure = store.extraction_events
    assert success.outcome == "success"
    assert success.processing_time_ms == 1500
    assert success.error_kind is None
    assert success.timestamp == NOW
    assert failure.outcome == "failure"
    assert failure.error_kind == "image_processing"
    assert failure.category == "diet"

    (usage,) = store.api_usage_events
    assert usage.tokens_used == 350
    assert usage.estimated_cost == 0.0042
    assert usage.timestamp == NOW


def test_recorder_store_failure_does_not_raise():
    recorder = EventRecorder(ReadOnlyStore(), clock=lambda: NOW)

    event = recorder.record_extraction_failure("cert-1", "diet", None)
    usage = recorder.record_api_usage("cert-1", "diet", 10, 100.0, 0.001)

    assert event.outcome == "failure"
    assert usage.tokens_used == 10
