"""Entry points for the external scheduler, each bounded by a wall-clock timeout."""

import threading
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, TypeVar

import structlog

from .errors import JobTimeoutError
from .models import AlertRecord, ensure_utc

if TYPE_CHECKING:
    from .service import MonitoringService

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def run_with_timeout(name: str, func: Callable[[], T], timeout_seconds: float) -> T:
    """
    Run ``func`` on a daemon thread and wait at most ``timeout_seconds``.

    On timeout the worker is abandoned, not cancelled: writes it already
    committed stand, and it does not keep the process alive at exit.
    """
    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = func()
        except BaseException as exc:
            outcome["error"] = exc

    worker = threading.Thread(target=target, name=f"extractmon-{name}", daemon=True)
    worker.start()
    worker.join(timeout_seconds)

    if worker.is_alive():
        logger.error("job_timed_out", job=name, timeout_seconds=timeout_seconds)
        raise JobTimeoutError(f"{name} exceeded {timeout_seconds}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]


def collect_metrics_job(service: "MonitoringService", now: Optional[datetime] = None) -> List[AlertRecord]:
    """Aggregation tick: roll up the trailing window, then evaluate alerts on it."""
    now = ensure_utc(now) if now is not None else None

    def unit() -> List[AlertRecord]:
        try:
            window = service.aggregator.run(now)
            if window is None:
                return []
            return service.evaluator.evaluate(window, now)
        finally:
            service.release()

    try:
        return run_with_timeout("collect-metrics", unit, service.settings.aggregation_timeout_seconds)
    except JobTimeoutError:
        return []


def cleanup_job(service: "MonitoringService", now: Optional[datetime] = None) -> Optional[Dict]:
    """Daily retention tick."""
    now = ensure_utc(now) if now is not None else None

    def unit() -> Dict:
        try:
            return service.retention.run(now)
        finally:
            service.release()

    try:
        return run_with_timeout("cleanup-metrics", unit, service.settings.retention_timeout_seconds)
    except JobTimeoutError:
        return None
