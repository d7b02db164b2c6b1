"""Adapters for integrating CaseWatch with storage backends."""

from .memory import InMemoryCatalog, InMemoryMetricStore
from .sqlalchemy_repo import SQLAlchemyCatalogReader, SQLAlchemyMetricStore

__all__ = [
    "InMemoryCatalog",
    "InMemoryMetricStore",
    "SQLAlchemyCatalogReader",
    "SQLAlchemyMetricStore",
]
