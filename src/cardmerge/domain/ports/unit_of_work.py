"""Transaction boundary consumed by the consolidation services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from cardmerge.domain.ports.persistence import (
        ContainerRepository,
        DedupLogRepository,
        ItemRepository,
        MigrationLogRepository,
        ReferenceRepository,
    )


@dataclass(slots=True)
class CatalogRepositories:
    """Repositories sharing one transaction during a consolidation batch."""

    items: ItemRepository
    containers: ContainerRepository
    references: ReferenceRepository
    migration_logs: MigrationLogRepository
    dedup_logs: DedupLogRepository


@runtime_checkable
class CatalogUnitOfWork(Protocol):
    """One database transaction over the catalog and its audit logs.

    Nothing is durable until ``commit``; leaving the block without committing
    discards the work.
    """

    @property
    def repositories(self) -> CatalogRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def flush(self) -> None:
        """Send pending statements so later queries in the batch can see them."""
        ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
