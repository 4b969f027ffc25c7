"""SQLAlchemy store adapter for the monitoring engine."""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete, insert, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import StoreError
from ..models import (
    AlertRecord,
    ApiUsageSummary,
    MetricWindow,
    NotificationRecord,
    RawApiUsageEvent,
    RawExtractionEvent,
)
from . import schema

logger = structlog.get_logger(__name__)


class SQLAlchemyMetricsStore:
    """Maps the monitoring collections onto relational tables."""

    def __init__(self, db: Session):
        self.db = db

    def ping(self) -> bool:
        try:
            self.db.execute(text("SELECT 1"))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("store_ping_failed", error=str(exc))
            return False
        return True

    def release(self) -> None:
        """Return the connection; scoped sessions are discarded for this thread."""
        remove = getattr(self.db, "remove", None)
        if remove is not None:
            remove()
        else:
            self.db.close()

    def add_extraction_event(self, event: RawExtractionEvent) -> None:
        self._write(
            insert(schema.raw_extraction_events).values(
                certification_id=event.certification_id,
                category=event.category,
                outcome=event.outcome,
                error_kind=event.error_kind,
                processing_time_ms=event.processing_time_ms,
                timestamp=_to_db(event.timestamp),
            )
        )

    def add_api_usage_event(self, event: RawApiUsageEvent) -> None:
        self._write(
            insert(schema.raw_api_usage_events).values(
                certification_id=event.certification_id,
                request_kind=event.request_kind,
                tokens_used=event.tokens_used,
                response_time_ms=event.response_time_ms,
                estimated_cost=event.estimated_cost,
                timestamp=_to_db(event.timestamp),
            )
        )

    def fetch_extraction_events(self, start: datetime, end: datetime) -> Sequence[RawExtractionEvent]:
        table = schema.raw_extraction_events
        rows = self._read(
            select(table).where(table.c.timestamp >= _to_db(start), table.c.timestamp < _to_db(end))
        )

        result: list[RawExtractionEvent] = []
        for row in rows:
            if not row.category or not row.outcome or row.timestamp is None:
                logger.warning("malformed_extraction_event_skipped", row_id=row.id)
                continue
            result.append(
                RawExtractionEvent(
                    certification_id=row.certification_id or "",
                    category=row.category,
                    outcome=row.outcome,
                    error_kind=row.error_kind,
                    processing_time_ms=row.processing_time_ms,
                    timestamp=_from_db(row.timestamp),
                )
            )
        return result

    def fetch_api_usage_events(self, start: datetime, end: datetime) -> Sequence[RawApiUsageEvent]:
        table = schema.raw_api_usage_events
        rows = self._read(
            select(table).where(table.c.timestamp >= _to_db(start), table.c.timestamp < _to_db(end))
        )

        result: list[RawApiUsageEvent] = []
        for row in rows:
            if row.tokens_used is None or row.estimated_cost is None or row.timestamp is None:
                logger.warning("malformed_api_usage_event_skipped", row_id=row.id)
                continue
            result.append(
                RawApiUsageEvent(
                    certification_id=row.certification_id or "",
                    request_kind=row.request_kind or "unknown",
                    tokens_used=int(row.tokens_used),
                    response_time_ms=float(row.response_time_ms or 0),
                    estimated_cost=float(row.estimated_cost),
                    timestamp=_from_db(row.timestamp),
                )
            )
        return result

    def get_metric_window(self, window_start: datetime) -> Optional[MetricWindow]:
        table = schema.metric_windows
        rows = self._read(select(table).where(table.c.window_start == _to_db(window_start)).limit(1))
        return _to_window(rows[0]) if rows else None

    def insert_metric_window(self, window: MetricWindow) -> bool:
        statement = insert(schema.metric_windows).values(
            window_start=_to_db(window.window_start),
            window_end=_to_db(window.window_end),
            total_extractions=window.total_extractions,
            success_count=window.success_count,
            failure_count=window.failure_count,
            success_rate_pct=window.success_rate_pct,
            avg_processing_time_ms=window.avg_processing_time_ms,
            counts_by_category=dict(window.counts_by_category),
            api_usage=window.api_usage.to_dict(),
            error_breakdown=dict(window.error_breakdown),
        )
        try:
            self.db.execute(statement)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(str(exc)) from exc
        return True

    def fetch_metric_windows(self, start: datetime) -> Sequence[MetricWindow]:
        table = schema.metric_windows
        rows = self._read(
            select(table).where(table.c.window_start >= _to_db(start)).order_by(table.c.window_start.desc())
        )
        return [_to_window(row) for row in rows]

    def has_alert_since(self, rule_name: str, since: datetime) -> bool:
        table = schema.alerts
        rows = self._read(
            select(table.c.id)
            .where(table.c.rule_name == rule_name, table.c.triggered_at >= _to_db(since))
            .limit(1)
        )
        return bool(rows)

    def insert_alert(self, alert: AlertRecord) -> AlertRecord:
        result = self._write(
            insert(schema.alerts).values(
                rule_name=alert.rule_name,
                severity=alert.severity,
                message=alert.message,
                triggered_at=_to_db(alert.triggered_at),
                snapshot=alert.snapshot.to_dict(),
                status=alert.status,
            )
        )
        return _with_id(alert, result.inserted_primary_key[0])

    def fetch_alerts(self, start: datetime, limit: Optional[int] = None) -> Sequence[AlertRecord]:
        table = schema.alerts
        statement = (
            select(table).where(table.c.triggered_at >= _to_db(start)).order_by(table.c.triggered_at.desc())
        )
        if limit is not None:
            statement = statement.limit(limit)

        result: list[AlertRecord] = []
        for row in self._read(statement):
            snapshot = _parse_snapshot(row, "alerts")
            if snapshot is None:
                continue
            result.append(
                AlertRecord(
                    id=str(row.id),
                    rule_name=row.rule_name,
                    severity=row.severity,
                    message=row.message,
                    triggered_at=_from_db(row.triggered_at),
                    snapshot=snapshot,
                    status=row.status,
                )
            )
        return result

    def insert_notification(self, notification: NotificationRecord) -> NotificationRecord:
        result = self._write(
            insert(schema.notifications).values(
                alert_rule_name=notification.alert_rule_name,
                severity=notification.severity,
                message=notification.message,
                created_at=_to_db(notification.created_at),
                snapshot=notification.snapshot.to_dict(),
                sent=notification.sent,
            )
        )
        return _with_id(notification, result.inserted_primary_key[0])

    def fetch_notifications(self, start: datetime) -> Sequence[NotificationRecord]:
        table = schema.notifications
        rows = self._read(
            select(table).where(table.c.created_at >= _to_db(start)).order_by(table.c.created_at.asc())
        )
        result: list[NotificationRecord] = []
        for row in rows:
            snapshot = _parse_snapshot(row, "notifications")
            if snapshot is None:
                continue
            result.append(
                NotificationRecord(
                    id=str(row.id),
                    alert_rule_name=row.alert_rule_name,
                    severity=row.severity,
                    message=row.message,
                    created_at=_from_db(row.created_at),
                    snapshot=snapshot,
                    sent=bool(row.sent),
                )
            )
        return result

    def delete_extraction_events_before(self, cutoff: datetime) -> int:
        table = schema.raw_extraction_events
        return self._write(delete(table).where(table.c.timestamp < _to_db(cutoff))).rowcount

    def delete_api_usage_events_before(self, cutoff: datetime) -> int:
        table = schema.raw_api_usage_events
        return self._write(delete(table).where(table.c.timestamp < _to_db(cutoff))).rowcount

    def delete_metric_windows_before(self, cutoff: datetime) -> int:
        table = schema.metric_windows
        return self._write(delete(table).where(table.c.window_start < _to_db(cutoff))).rowcount

    def _read(self, statement) -> list:
        try:
            rows = self.db.execute(statement).fetchall()
            # End the read transaction so the pooled connection is returned.
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(str(exc)) from exc
        return rows

    def _write(self, statement):
        try:
            result = self.db.execute(statement)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(str(exc)) from exc
        return result


def _parse_snapshot(row, collection: str) -> Optional[MetricWindow]:
    try:
        return MetricWindow.from_dict(row.snapshot)
    except (KeyError, TypeError, ValueError):
        logger.warning("malformed_snapshot_skipped", collection=collection, row_id=row.id)
        return None


def _to_window(row) -> MetricWindow:
    return MetricWindow(
        window_start=_from_db(row.window_start),
        window_end=_from_db(row.window_end),
        total_extractions=row.total_extractions,
        success_count=row.success_count,
        failure_count=row.failure_count,
        success_rate_pct=row.success_rate_pct,
        avg_processing_time_ms=row.avg_processing_time_ms,
        counts_by_category=dict(row.counts_by_category or {}),
        api_usage=ApiUsageSummary.from_dict(row.api_usage or {}),
        error_breakdown=dict(row.error_breakdown or {}),
    )


def _with_id(record, primary_key):
    return replace(record, id=str(primary_key))


def _to_db(value: datetime) -> datetime:
    """Stored timestamps are naive UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
