"""SQLAlchemy adapter package for cardmerge."""

from __future__ import annotations

from .mappings import (
    CLASS_BY_REFERENCE_KIND,
    REFERENCE_TABLES,
    create_all_tables,
    mapper_registry,
    start_mappers,
)
from .repositories import (
    SqlAlchemyContainerRepository,
    SqlAlchemyDedupLogRepository,
    SqlAlchemyItemRepository,
    SqlAlchemyMigrationLogRepository,
    SqlAlchemyReferenceRepository,
)
from .unit_of_work import SqlAlchemyCatalogUnitOfWork, shutdown, startup

__all__ = [
    "CLASS_BY_REFERENCE_KIND",
    "REFERENCE_TABLES",
    "SqlAlchemyCatalogUnitOfWork",
    "SqlAlchemyContainerRepository",
    "SqlAlchemyDedupLogRepository",
    "SqlAlchemyItemRepository",
    "SqlAlchemyMigrationLogRepository",
    "SqlAlchemyReferenceRepository",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
