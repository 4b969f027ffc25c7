"""Adapters for integrating extractmon with storage backends."""

from .memory_store import InMemoryMetricsStore
from .schema import create_schema
from .sqlalchemy_store import SQLAlchemyMetricsStore

__all__ = ["InMemoryMetricsStore", "SQLAlchemyMetricsStore", "create_schema"]
