import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import QueuePool

from extractmon.adapters import SQLAlchemyMetricsStore, create_schema
from extractmon.adapters import schema
from extractmon.aggregator import WindowAggregator
from extractmon.alerting import AlertEvaluator, NotificationDispatcher
from extractmon.errors import StoreError
from extractmon.models import RawApiUsageEvent, RawExtractionEvent

NOW = datetime(2026, 1, 8, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    create_schema(engine)
    with Session(engine) as db:
        yield db


@pytest.fixture
def store(session):
    return SQLAlchemyMetricsStore(session)


def _extraction(outcome, at, error_kind=None):
    return RawExtractionEvent("cert", "exercise", outcome, at, error_kind=error_kind, processing_time_ms=900.0)


def test_events_round_trip_with_half_open_range(store):
    store.add_extraction_event(_extraction("success", NOW - timedelta(minutes=5)))
    store.add_extraction_event(_extraction("failure", NOW - timedelta(minutes=1), "parsing"))
    store.add_extraction_event(_extraction("success", NOW))
    store.add_api_usage_event(RawApiUsageEvent("cert", "exercise", 42, 300.0, 0.01, NOW - timedelta(minutes=2)))

    events = store.fetch_extraction_events(NOW - timedelta(minutes=5), NOW)
    usage = store.fetch_api_usage_events(NOW - timedelta(minutes=5), NOW)

    assert [event.outcome for event in events] == ["success", "failure"]
    assert events[1].error_kind == "parsing"
    assert events[0].timestamp == NOW - timedelta(minutes=5)
    assert events[0].timestamp.tzinfo is not None
    assert usage[0].tokens_used == 42


def test_malformed_rows_are_skipped(store, session):
    session.execute(
        insert(schema.raw_extraction_events).values(
            certification_id="bad", category=None, outcome="success", timestamp=datetime(2026, 1, 8, 11, 58)
        )
    )
    session.execute(
        insert(schema.raw_api_usage_events).values(
            certification_id="bad", request_kind="diet", tokens_used=None, timestamp=datetime(2026, 1, 8, 11, 58)
        )
    )
    session.commit()
    store.add_extraction_event(_extraction("success", NOW - timedelta(minutes=1)))

    assert len(store.fetch_extraction_events(NOW - timedelta(minutes=5), NOW)) == 1
    assert store.fetch_api_usage_events(NOW - timedelta(minutes=5), NOW) == []


def test_window_insert_is_keyed_by_start(store):
    store.add_extraction_event(_extraction("success", NOW - timedelta(minutes=3)))
    aggregator = WindowAggregator(store)

    window = aggregator.run(NOW)

    assert window is not None
    assert store.insert_metric_window(window) is False
    assert aggregator.run(NOW) == window
    assert store.get_metric_window(window.window_start) == window
    assert store.fetch_metric_windows(NOW - timedelta(hours=1)) == [window]


def test_alerts_and_notifications_persist(store):
    window = WindowAggregator(store).run(NOW)
    evaluator = AlertEvaluator(store, NotificationDispatcher(store, clock=lambda: NOW))

    alerts = evaluator.evaluate(window, NOW)
    repeat = evaluator.evaluate(window, NOW + timedelta(minutes=5))

    assert [alert.rule_name for alert in alerts] == ["no_extractions"]
    assert repeat == []
    stored = store.fetch_alerts(NOW - timedelta(hours=1), limit=10)
    assert [alert.id for alert in stored] == [alerts[0].id]
    assert stored[0].snapshot == window
    (notification,) = store.fetch_notifications(NOW - timedelta(hours=1))
    assert notification.alert_rule_name == "no_extractions"
    assert notification.sent is False


def test_bulk_deletes_return_counts(store):
    store.add_extraction_event(_extraction("success", NOW - timedelta(days=31)))
    store.add_extraction_event(_extraction("success", NOW - timedelta(days=2)))
    store.add_api_usage_event(RawApiUsageEvent("cert", "diet", 1, 1.0, 0.0, NOW - timedelta(days=40)))
    WindowAggregator(store).run(NOW - timedelta(days=91))
    WindowAggregator(store).run(NOW)

    assert store.delete_extraction_events_before(NOW - timedelta(days=30)) == 1
    assert store.delete_api_usage_events_before(NOW - timedelta(days=30)) == 1
    assert store.delete_metric_windows_before(NOW - timedelta(days=90)) == 1
    assert len(store.fetch_metric_windows(NOW - timedelta(days=365))) == 1


def test_errors_are_translated_to_store_error():
    engine = create_engine("sqlite://")
    with Session(engine) as db:
        store = SQLAlchemyMetricsStore(db)

        assert store.ping() is True
        with pytest.raises(StoreError):
            store.fetch_metric_windows(NOW)


def test_alert_and_notification_rows_with_bad_snapshots_are_skipped(store, session):
    window = WindowAggregator(store).run(NOW)
    AlertEvaluator(store, NotificationDispatcher(store, clock=lambda: NOW)).evaluate(window, NOW)
    triggered = datetime(2026, 1, 8, 11, 59)
    for snapshot in (None, {"windowStart": "2026-01-08T11:55:00+00:00"}):
        session.execute(
            insert(schema.alerts).values(
                rule_name="no_extractions",
                severity="high",
                message="broken",
                triggered_at=triggered,
                snapshot=snapshot,
                status="active",
            )
        )
        session.execute(
            insert(schema.notifications).values(
                alert_rule_name="no_extractions",
                severity="high",
                message="broken",
                created_at=triggered,
                snapshot=snapshot,
                sent=False,
            )
        )
    session.commit()

    alerts = store.fetch_alerts(NOW - timedelta(hours=1), limit=10)
    notifications = store.fetch_notifications(NOW - timedelta(hours=1))

    assert [alert.snapshot for alert in alerts] == [window]
    assert [notification.snapshot for notification in notifications] == [window]


def test_reads_hand_back_the_pooled_connection(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'metrics.db'}",
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=1,
        connect_args={"check_same_thread": False},
    )
    create_schema(engine)
    db = scoped_session(sessionmaker(bind=engine))
    store = SQLAlchemyMetricsStore(db)

    assert store.fetch_extraction_events(NOW - timedelta(hours=1), NOW) == []
    assert db.in_transaction() is False

    results = []
    errors = []

    def read_from_other_thread():
        try:
            results.append(store.fetch_alerts(NOW - timedelta(hours=1), limit=10))
        except StoreError as exc:
            errors.append(exc)
        finally:
            store.release()

    worker = threading.Thread(target=read_from_other_thread)
    worker.start()
    worker.join(5)

    assert errors == []
    assert results == [[]]

    store.release()
    assert db.registry.has() is False
    engine.dispose()
