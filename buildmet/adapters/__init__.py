"""Adapters for integrating buildmet with storage and frameworks."""

from .sqlalchemy_repo import SQLAlchemyMetricsRepository

__all__ = ["SQLAlchemyMetricsRepository"]
