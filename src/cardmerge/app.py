"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from cardmerge.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyCatalogUnitOfWork,
    is_started,
    startup,
)
from cardmerge.config import get_consolidation_config
from cardmerge.domain.consolidation import audit as audit_queries
from cardmerge.domain.consolidation import (
    LogFilter,
    MoveOptions,
    RunContext,
    ValidationError,
    apply_container_move,
    apply_deduplication,
    archive_container,
    preview_container_move,
    preview_deduplication,
    rollback_container_move,
    unarchive_container,
)
from cardmerge.domain.model import OperationKind

if TYPE_CHECKING:
    from cardmerge.domain.consolidation import (
        ApplyResult,
        ArchiveResult,
        DedupPlan,
        LogEntryView,
        LogSummary,
        MovePreview,
        RollbackResult,
        UnitOfWorkFactory,
    )

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Scope:
    """What an operation covers.

    Deduplication reads ``container_id`` (``None`` = whole catalog); a
    container move needs both ``source_id`` and ``destination_id``.
    """

    container_id: int | None = None
    source_id: int | None = None
    destination_id: int | None = None

    def move_pair(self) -> tuple[int, int]:
        if self.source_id is None or self.destination_id is None:
            raise ValidationError("A container move needs both a source and a destination")
        return self.source_id, self.destination_id


def _resolve_factory(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyCatalogUnitOfWork


def preview(
    scope: Scope,
    operation: OperationKind,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> DedupPlan | MovePreview:
    """Build the plan for ``operation`` over ``scope`` without writing anything."""

    factory = _resolve_factory(unit_of_work_factory)
    if operation == OperationKind.CONTAINER_MOVE:
        source_id, destination_id = scope.move_pair()
        return preview_container_move(factory, source_id, destination_id)
    return preview_deduplication(
        factory, RunContext(initiator="preview", container_id=scope.container_id)
    )


def apply(  # noqa: PLR0913
    scope: Scope,
    operation: OperationKind,
    *,
    initiator: str,
    options: MoveOptions | None = None,
    confirmation_token: str | None = None,
    dry_run: bool = False,
    batch_size: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ApplyResult:
    """Apply ``operation`` over ``scope``, batch by batch."""

    config = get_consolidation_config()
    factory = _resolve_factory(unit_of_work_factory)
    context = RunContext(
        initiator=initiator,
        container_id=scope.container_id if operation == OperationKind.DEDUPLICATE else None,
        batch_size=batch_size or config.batch_size,
        dry_run=dry_run,
        max_unscoped_groups=config.max_unscoped_groups,
    )
    log.info(
        "Starting %s: scope=%s, initiator=%s, batch_size=%s, dry_run=%s",
        operation,
        scope,
        initiator,
        context.batch_size,
        dry_run,
    )

    if operation == OperationKind.CONTAINER_MOVE:
        source_id, destination_id = scope.move_pair()
        result = apply_container_move(
            factory,
            context,
            source_id,
            destination_id,
            options=options or MoveOptions(),
            confirmation=confirmation_token,
            conflict_phrase=config.conflict_phrase,
        )
    else:
        result = apply_deduplication(
            factory,
            context,
            confirmation=confirmation_token,
            unscoped_phrase=config.unscoped_phrase,
        )

    log.info(
        "Finished %s: log=%s, processed=%s, merged=%s, moved=%s, deleted=%s, "
        "conflicts=%s, failed=%s",
        operation,
        result.log_id,
        result.processed_count,
        result.merged_count,
        result.moved_count,
        result.deleted_count,
        result.conflict_count,
        not result.succeeded,
    )
    return result


def rollback(
    migration_log_id: int, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> RollbackResult:
    return rollback_container_move(_resolve_factory(unit_of_work_factory), migration_log_id)


def get_logs(
    log_filter: LogFilter | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[LogSummary]:
    factory = _resolve_factory(unit_of_work_factory)
    return audit_queries.get_logs(factory, log_filter or LogFilter())


def get_log_entries(
    operation: OperationKind,
    log_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[LogEntryView]:
    return audit_queries.get_log_entries(
        _resolve_factory(unit_of_work_factory), operation, log_id
    )


def archive(
    container_id: int,
    *,
    confirmation: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ArchiveResult:
    return archive_container(
        _resolve_factory(unit_of_work_factory),
        container_id,
        confirmation=confirmation,
        archive_phrase=get_consolidation_config().archive_phrase,
    )


def unarchive(
    container_id: int, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> ArchiveResult:
    return unarchive_container(_resolve_factory(unit_of_work_factory), container_id)
