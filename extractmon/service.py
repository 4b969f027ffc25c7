"""Application service wiring the monitoring components around one store."""

from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from .adapters import SQLAlchemyMetricsStore, create_schema
from .aggregator import WindowAggregator
from .alerting import AlertEvaluator, NotificationDispatcher
from .config import MonitoringSettings
from .logging_config import configure_logging
from .models import utc_now
from .ports import MetricsStore
from .query import AnalyticsQueryService
from .recorder import EventRecorder
from .retention import RetentionManager


class MonitoringService:
    """Facade that exposes every component independent of web frameworks and schedulers."""

    def __init__(
        self,
        store: MetricsStore,
        settings: Optional[MonitoringSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.settings = settings or MonitoringSettings()
        self.recorder = EventRecorder(store, clock=clock)
        self.aggregator = WindowAggregator(store, window_size=self.settings.window_size, clock=clock)
        self.dispatcher = NotificationDispatcher(store, clock=clock)
        self.evaluator = AlertEvaluator(store, self.dispatcher, clock=clock)
        self.analytics = AnalyticsQueryService(
            store,
            recent_alert_limit=self.settings.recent_alert_limit,
            clock=clock,
        )
        self.retention = RetentionManager(
            store,
            raw_retention=self.settings.raw_retention,
            rollup_retention=self.settings.rollup_retention,
            clock=clock,
        )

    def get_analytics(self, time_range: Optional[str] = None) -> Dict:
        return self.analytics.query(time_range)

    def get_alert_summary(self) -> Dict:
        return self.analytics.alert_summary()

    def is_healthy(self) -> bool:
        return self.store.ping()

    def release(self) -> None:
        self.store.release()


def build_service(settings: Optional[MonitoringSettings] = None) -> MonitoringService:
    """Create a service backed by the SQL database named in ``settings``."""
    settings = settings or MonitoringSettings()
    configure_logging(settings.log_level, settings.log_json)
    engine = create_engine(settings.database_url)
    create_schema(engine)
    # Thread-local sessions: the HTTP app and timed jobs run on worker threads.
    session = scoped_session(sessionmaker(bind=engine))
    return MonitoringService(SQLAlchemyMetricsStore(session), settings=settings)
