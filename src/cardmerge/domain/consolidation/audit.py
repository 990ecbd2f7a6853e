"""Read-side queries over migration and deduplication logs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC
from typing import TYPE_CHECKING

from cardmerge.domain.model import LogStatus, OperationKind

from .errors import ValidationError

if TYPE_CHECKING:
    from datetime import datetime

    from cardmerge.domain.model import (
        DedupLog,
        DedupLogEntry,
        MigrationLog,
        MigrationLogItem,
        ReferenceKind,
    )

    from .runner import UnitOfWorkFactory


@dataclass(frozen=True, slots=True)
class LogFilter:
    kind: OperationKind | None = None
    container_id: int | None = None
    status: LogStatus | None = None
    limit: int = 50

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValidationError(f"Log limit must be positive, got {self.limit}")


@dataclass(frozen=True, slots=True)
class LogSummary:
    kind: OperationKind
    log_id: int
    initiator: str
    status: LogStatus
    created_at: datetime
    container_id: int | None = None
    destination_container_id: int | None = None
    moved_count: int = 0
    merged_count: int = 0
    deleted_count: int = 0
    conflict_count: int = 0
    source_archived: bool = False
    rolled_back_at: datetime | None = None
    notes: str | None = None

    @property
    def reversible(self) -> bool:
        return self.kind == OperationKind.CONTAINER_MOVE and self.status != LogStatus.ROLLED_BACK

    @classmethod
    def from_migration(cls, entry: MigrationLog) -> LogSummary:
        return cls(
            kind=OperationKind.CONTAINER_MOVE,
            log_id=entry.require_id(),
            initiator=entry.initiator,
            status=entry.status,
            created_at=entry.created_at,
            container_id=entry.source_container_id,
            destination_container_id=entry.destination_container_id,
            moved_count=entry.moved_item_count,
            conflict_count=entry.conflict_count,
            source_archived=entry.source_archived,
            rolled_back_at=entry.rolled_back_at,
            notes=entry.notes,
        )

    @classmethod
    def from_dedup(cls, entry: DedupLog) -> LogSummary:
        return cls(
            kind=OperationKind.DEDUPLICATE,
            log_id=entry.require_id(),
            initiator=entry.initiator,
            status=entry.status,
            created_at=entry.created_at,
            container_id=entry.container_id,
            moved_count=entry.moved_count,
            merged_count=entry.merged_count,
            deleted_count=entry.deleted_count,
        )


@dataclass(frozen=True, slots=True)
class LogEntryView:
    """One row of a log's detail, flattened across both log kinds."""

    item_id: int
    action: str
    survivor_id: int | None = None
    old_container_id: int | None = None
    new_container_id: int | None = None
    old_flag: bool | None = None
    new_flag: bool | None = None
    conflicted: bool = False
    reference_kind: ReferenceKind | None = None
    reference_id: int | None = None
    detail: str | None = None

    @classmethod
    def from_migration_item(cls, entry: MigrationLogItem) -> LogEntryView:
        return cls(
            item_id=entry.item_id,
            action="moved",
            old_container_id=entry.old_container_id,
            new_container_id=entry.new_container_id,
            old_flag=entry.old_flag,
            new_flag=entry.new_flag,
            conflicted=entry.conflicted,
        )

    @classmethod
    def from_dedup_entry(cls, entry: DedupLogEntry) -> LogEntryView:
        return cls(
            item_id=entry.subject_id,
            action=str(entry.action),
            survivor_id=entry.survivor_id,
            reference_kind=entry.reference_kind,
            reference_id=entry.reference_id,
            detail=entry.detail,
        )


def _sort_key(summary: LogSummary) -> tuple[datetime, int]:
    created = summary.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    return (created, summary.log_id)


def get_logs(unit_of_work_factory: UnitOfWorkFactory, log_filter: LogFilter) -> list[LogSummary]:
    """Return log summaries matching ``log_filter``, newest first."""

    summaries: list[LogSummary] = []
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        if log_filter.kind in (None, OperationKind.CONTAINER_MOVE):
            summaries.extend(
                LogSummary.from_migration(entry)
                for entry in repositories.migration_logs.query(
                    container_id=log_filter.container_id,
                    status=log_filter.status,
                    limit=log_filter.limit,
                )
            )
        if log_filter.kind in (None, OperationKind.DEDUPLICATE):
            summaries.extend(
                LogSummary.from_dedup(entry)
                for entry in repositories.dedup_logs.query(
                    container_id=log_filter.container_id,
                    status=log_filter.status,
                    limit=log_filter.limit,
                )
            )
        uow.rollback()

    summaries.sort(key=_sort_key, reverse=True)
    return summaries[: log_filter.limit]


def get_log_entries(
    unit_of_work_factory: UnitOfWorkFactory, kind: OperationKind, log_id: int
) -> list[LogEntryView]:
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        if kind == OperationKind.CONTAINER_MOVE:
            if repositories.migration_logs.get(log_id) is None:
                raise ValidationError(f"Migration log {log_id} does not exist")
            views = [
                LogEntryView.from_migration_item(entry)
                for entry in repositories.migration_logs.items_for(log_id)
            ]
        else:
            if repositories.dedup_logs.get(log_id) is None:
                raise ValidationError(f"Deduplication log {log_id} does not exist")
            views = [
                LogEntryView.from_dedup_entry(entry)
                for entry in repositories.dedup_logs.entries_for(log_id)
            ]
        uow.rollback()
    return views
