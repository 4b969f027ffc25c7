"""Table definitions for the five monitoring collections."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, MetaData, String, Table, UniqueConstraint

metadata = MetaData()

raw_extraction_events = Table(
    "raw_extraction_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("certification_id", String(128)),
    Column("category", String(32)),
    Column("outcome", String(32)),
    Column("error_kind", String(64), nullable=True),
    Column("processing_time_ms", Float, nullable=True),
    Column("timestamp", DateTime, index=True),
)

raw_api_usage_events = Table(
    "raw_api_usage_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("certification_id", String(128)),
    Column("request_kind", String(32)),
    Column("tokens_used", Integer),
    Column("response_time_ms", Float),
    Column("estimated_cost", Float),
    Column("timestamp", DateTime, index=True),
)

metric_windows = Table(
    "metric_windows",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("window_start", DateTime, nullable=False),
    Column("window_end", DateTime, nullable=False),
    Column("total_extractions", Integer, nullable=False),
    Column("success_count", Integer, nullable=False),
    Column("failure_count", Integer, nullable=False),
    Column("success_rate_pct", Float, nullable=False),
    Column("avg_processing_time_ms", Float, nullable=False),
    Column("counts_by_category", JSON),
    Column("api_usage", JSON),
    Column("error_breakdown", JSON),
    UniqueConstraint("window_start", name="uq_metric_windows_window_start"),
)

alerts = Table(
    "alerts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("rule_name", String(64), nullable=False, index=True),
    Column("severity", String(16), nullable=False),
    Column("message", String(512), nullable=False),
    Column("triggered_at", DateTime, nullable=False, index=True),
    Column("snapshot", JSON),
    Column("status", String(16), nullable=False),
)

notifications = Table(
    "notifications",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("alert_rule_name", String(64), nullable=False),
    Column("severity", String(16), nullable=False),
    Column("message", String(512), nullable=False),
    Column("created_at", DateTime, nullable=False, index=True),
    Column("snapshot", JSON),
    Column("sent", Boolean, nullable=False, default=False),
)


def create_schema(engine) -> None:
    metadata.create_all(engine)
