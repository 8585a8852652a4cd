"""SQLAlchemy adapter package for the inventory store."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAssetRepository,
    SqlAlchemyComparisonQuery,
    SqlAlchemyObservationRepository,
    SqlAlchemySourceRegistry,
)
from .unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyAssetRepository",
    "SqlAlchemyComparisonQuery",
    "SqlAlchemyObservationRepository",
    "SqlAlchemySourceRegistry",
    "SqlAlchemyUnitOfWork",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
    "shutdown",
    "startup",
]
