"""Ports for persisting catalog and audit aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cardmerge.domain.model import (
    Container,
    DedupLog,
    DedupLogEntry,
    DependentReference,
    Item,
    MigrationLog,
    MigrationLogItem,
    ReferenceKind,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from cardmerge.domain.model import LogStatus


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class ItemRepository(Repository[Item], Protocol):
    """Persistence contract for catalog items."""

    def get(self, item_id: int) -> Item | None: ...

    def get_many(self, item_ids: Collection[int]) -> list[Item]: ...

    def duplicate_candidates(self, container_id: int | None = None) -> list[Item]:
        """Items sharing an identity key with at least one other item, in id order."""
        ...

    def list_by_container(self, container_id: int) -> list[Item]: ...

    def count_by_container(self, container_id: int) -> int: ...

    def remove(self, entity: Item) -> None: ...


@runtime_checkable
class ContainerRepository(Repository[Container], Protocol):
    """Persistence contract for containers."""

    def get(self, container_id: int) -> Container | None: ...

    def recount(self, container: Container) -> int:
        """Refresh and return the cached item count of ``container``."""
        ...


@runtime_checkable
class ReferenceRepository(Repository[DependentReference], Protocol):
    """Persistence contract spanning every dependent-reference table."""

    def for_item(self, kind: ReferenceKind, item_id: int) -> list[DependentReference]: ...

    def referenced_item_ids(self, item_ids: Collection[int]) -> set[int]:
        """Subset of ``item_ids`` targeted by at least one reference of any kind."""
        ...

    def count_for_items(self, item_ids: Collection[int]) -> int: ...

    def remove(self, entity: DependentReference) -> None: ...


@runtime_checkable
class MigrationLogRepository(Repository[MigrationLog], Protocol):
    """Persistence contract for container-move audit logs."""

    def get(self, log_id: int) -> MigrationLog | None: ...

    def add_item(self, entry: MigrationLogItem) -> None: ...

    def items_for(self, log_id: int) -> list[MigrationLogItem]: ...

    def query(
        self,
        *,
        container_id: int | None = None,
        status: LogStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[MigrationLog]: ...


@runtime_checkable
class DedupLogRepository(Repository[DedupLog], Protocol):
    """Persistence contract for deduplication audit logs."""

    def get(self, log_id: int) -> DedupLog | None: ...

    def add_entry(self, entry: DedupLogEntry) -> None: ...

    def entries_for(self, log_id: int) -> list[DedupLogEntry]: ...

    def query(
        self,
        *,
        container_id: int | None = None,
        status: LogStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[DedupLog]: ...
