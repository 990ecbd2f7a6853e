"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    ContainerRepository,
    DedupLogRepository,
    ItemRepository,
    MigrationLogRepository,
    ReferenceRepository,
    Repository,
)
from .unit_of_work import CatalogRepositories, CatalogUnitOfWork

__all__ = [
    "CatalogRepositories",
    "CatalogUnitOfWork",
    "ContainerRepository",
    "DedupLogRepository",
    "ItemRepository",
    "MigrationLogRepository",
    "ReferenceRepository",
    "Repository",
]
