"""Move every item of one container into another, reversibly."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from cardmerge.config.consolidation import ARCHIVE_CONFIRM_PHRASE, CONFLICT_CONFIRM_PHRASE
from cardmerge.domain.model import LogStatus, MigrationLog, MigrationLogItem, OperationKind

from .errors import ConflictError, RollbackStateError, TransactionFailure, ValidationError
from .results import ApplyResult, ArchiveResult, FailureDetail, RollbackResult
from .runner import BatchRunner

if TYPE_CHECKING:
    from cardmerge.domain.model import Container, Item
    from cardmerge.domain.ports import CatalogUnitOfWork

    from .context import MoveOptions, RunContext
    from .runner import UnitOfWorkFactory

log = getLogger(__name__)

INSERT_KEYWORDS: Final[tuple[str, ...]] = (
    "insert",
    "inserts",
    "chase",
    "sketch",
    "autograph",
    "signature",
    "printing plate",
    "1/1",
    "variant",
    "parallel",
    "refractor",
)


def suggests_insert_subset(name: str) -> bool:
    """Whether a container name reads like an insert or parallel subset."""

    lowered = name.lower()
    return any(keyword in lowered for keyword in INSERT_KEYWORDS)


@dataclass(frozen=True, slots=True)
class ConflictPair:
    position_key: str
    source_item_id: int
    source_name: str
    destination_item_id: int
    destination_name: str


@dataclass(frozen=True, slots=True)
class MovePreview:
    source_id: int
    source_name: str
    destination_id: int
    destination_name: str
    source_count: int
    destination_count: int
    conflicts: tuple[ConflictPair, ...] = ()
    destination_forces_insert: bool = False
    destination_suggests_insert: bool = False
    destination_canonical: bool = False
    destination_active: bool = True
    source_can_auto_archive: bool = False
    blockers: tuple[str, ...] = ()

    @property
    def conflict_count(self) -> int:
        return len(self.conflicts)

    @property
    def clean_count(self) -> int:
        return self.source_count - self.conflict_count

    @property
    def can_migrate(self) -> bool:
        return not self.blockers

    @property
    def conflicting_item_ids(self) -> frozenset[int]:
        return frozenset(pair.source_item_id for pair in self.conflicts)


def _load_pair(
    uow: CatalogUnitOfWork, source_id: int, destination_id: int
) -> tuple[Container, Container]:
    containers = uow.repositories.containers
    source = containers.get(source_id)
    if source is None:
        raise ValidationError(f"Source container {source_id} does not exist")
    destination = containers.get(destination_id)
    if destination is None:
        raise ValidationError(f"Destination container {destination_id} does not exist")
    return source, destination


def _conflict_pairs(
    source_items: list[Item], destination_items: list[Item]
) -> list[ConflictPair]:
    by_position: dict[str, Item] = {}
    for item in destination_items:
        by_position.setdefault(item.position_key, item)

    pairs: list[ConflictPair] = []
    for item in source_items:
        counterpart = by_position.get(item.position_key)
        if counterpart is None:
            continue
        pairs.append(
            ConflictPair(
                position_key=item.position_key,
                source_item_id=item.require_id(),
                source_name=item.display_name,
                destination_item_id=counterpart.require_id(),
                destination_name=counterpart.display_name,
            )
        )
    return pairs


def build_move_preview(
    uow: CatalogUnitOfWork, source_id: int, destination_id: int
) -> MovePreview:
    """Compute the move plan inside an open unit of work without writing."""

    source, destination = _load_pair(uow, source_id, destination_id)
    blockers: list[str] = []
    if source_id == destination_id:
        blockers.append("source and destination are the same container")
    if not destination.is_active:
        blockers.append(f"destination container {destination.name!r} is archived")

    items = uow.repositories.items
    source_items = items.list_by_container(source_id)
    if source_id == destination_id:
        destination_items: list[Item] = []
        conflicts: list[ConflictPair] = []
    else:
        destination_items = items.list_by_container(destination_id)
        conflicts = _conflict_pairs(source_items, destination_items)

    return MovePreview(
        source_id=source_id,
        source_name=source.name,
        destination_id=destination_id,
        destination_name=destination.name,
        source_count=len(source_items),
        destination_count=items.count_by_container(destination_id),
        conflicts=tuple(conflicts),
        destination_forces_insert=destination.is_insert_subset,
        destination_suggests_insert=suggests_insert_subset(destination.name),
        destination_canonical=destination.is_canonical,
        destination_active=destination.is_active,
        source_can_auto_archive=source.can_auto_archive,
        blockers=tuple(blockers),
    )


def preview_container_move(
    unit_of_work_factory: UnitOfWorkFactory, source_id: int, destination_id: int
) -> MovePreview:
    with unit_of_work_factory() as uow:
        preview = build_move_preview(uow, source_id, destination_id)
        uow.rollback()
    log.info(
        "Move preview %s -> %s: %s item(s), %s conflict(s), blockers=%s",
        preview.source_name,
        preview.destination_name,
        preview.source_count,
        preview.conflict_count,
        list(preview.blockers),
    )
    return preview


@dataclass(slots=True)
class _MoveRun:
    context: RunContext
    options: MoveOptions
    preview: MovePreview
    log_id: int | None = None
    moved: int = 0
    conflicted: int = 0
    source_archived: bool = False

    @property
    def force_insert(self) -> bool:
        return self.preview.destination_forces_insert or self.options.force_insert

    def new_header(self) -> MigrationLog:
        return MigrationLog(
            initiator=self.context.initiator,
            source_container_id=self.preview.source_id,
            destination_container_id=self.preview.destination_id,
            conflict_count=self.preview.conflict_count,
            insert_forced=self.force_insert,
            notes=self.options.notes,
        )

    def begin(self, uow: CatalogUnitOfWork) -> None:
        header = self.new_header()
        uow.repositories.migration_logs.add(header)
        uow.flush()
        self.log_id = header.require_id()

    def handle(self, uow: CatalogUnitOfWork, item_id: int) -> None:
        item = uow.repositories.items.get(item_id)
        if item is None or item.container_id != self.preview.source_id:
            log.warning(
                "Item %s left container %s before the move; skipping",
                item_id,
                self.preview.source_id,
            )
            return

        header = self._header(uow)
        conflicted = item_id in self.preview.conflicting_item_ids
        new_flag = True if self.force_insert else item.is_insert
        uow.repositories.migration_logs.add_item(
            MigrationLogItem(
                migration_log_id=header.require_id(),
                item_id=item_id,
                old_container_id=item.container_id,
                new_container_id=self.preview.destination_id,
                old_flag=item.is_insert,
                new_flag=new_flag,
                conflicted=conflicted,
            )
        )
        item.container_id = self.preview.destination_id
        item.is_insert = new_flag
        header.moved_item_count += 1
        self.moved += 1
        if conflicted:
            self.conflicted += 1

    def finish(self, uow: CatalogUnitOfWork) -> None:
        uow.flush()
        header = self._header(uow)
        preview = self.preview
        source, destination = _load_pair(uow, preview.source_id, preview.destination_id)
        containers = uow.repositories.containers
        remaining = containers.recount(source)
        containers.recount(destination)
        if remaining == 0 and source.can_auto_archive:
            source.is_active = False
            header.source_archived = True
            self.source_archived = True
            log.info("Auto-archived emptied container %s", source.name)
        header.status = (
            LogStatus.COMPLETED_WITH_CONFLICTS if header.conflict_count else LogStatus.COMPLETED
        )

    def _header(self, uow: CatalogUnitOfWork) -> MigrationLog:
        if self.log_id is None:
            raise RuntimeError("Migration log header was not created")
        header = uow.repositories.migration_logs.get(self.log_id)
        if header is None:
            raise RuntimeError(f"Migration log {self.log_id} disappeared mid-run")
        return header


def apply_container_move(
    unit_of_work_factory: UnitOfWorkFactory,
    context: RunContext,
    source_id: int,
    destination_id: int,
    *,
    options: MoveOptions,
    confirmation: str | None = None,
    conflict_phrase: str = CONFLICT_CONFIRM_PHRASE,
) -> ApplyResult:
    """Move all items of ``source_id`` into ``destination_id``.

    Conflicting items (same position key already in the destination) are
    moved too and flagged on their log rows; a run with conflicts needs the
    exact confirmation phrase. Nothing is written when a guard rejects.
    """

    preview = preview_container_move(unit_of_work_factory, source_id, destination_id)
    if not preview.can_migrate:
        raise ValidationError("; ".join(preview.blockers))
    if preview.conflict_count and confirmation != conflict_phrase:
        raise ConflictError(
            f"{preview.conflict_count} item(s) collide with the destination; "
            f"type {conflict_phrase!r} to move them anyway",
            conflict_count=preview.conflict_count,
        )

    with unit_of_work_factory() as uow:
        source_items = uow.repositories.items.list_by_container(source_id)
        units = [item.require_id() for item in source_items]
        uow.rollback()

    log.info(
        "Moving %s item(s) from %s to %s by %s (batch_size=%s, dry_run=%s)",
        len(units),
        preview.source_name,
        preview.destination_name,
        context.initiator,
        context.batch_size,
        context.dry_run,
    )
    run = _MoveRun(context=context, options=options, preview=preview)
    runner = BatchRunner(unit_of_work_factory, context=context)
    try:
        runner.run(units, run.handle, begin=run.begin, finish=run.finish)
    except TransactionFailure as failure:
        return _failed_result(unit_of_work_factory, run, failure)

    log.info(
        "Move finished: moved=%s, conflicts=%s, source_archived=%s",
        run.moved,
        run.conflicted,
        run.source_archived,
    )
    return ApplyResult(
        operation=OperationKind.CONTAINER_MOVE,
        log_id=None if context.dry_run else run.log_id,
        processed_count=run.moved,
        moved_count=run.moved,
        conflict_count=run.conflicted,
        dry_run=context.dry_run,
    )


def _failed_result(
    unit_of_work_factory: UnitOfWorkFactory,
    run: _MoveRun,
    failure: TransactionFailure,
) -> ApplyResult:
    detail = FailureDetail.from_failure(failure)
    if run.context.dry_run:
        return ApplyResult(operation=OperationKind.CONTAINER_MOVE, dry_run=True, failure=detail)
    if failure.committed_batches == 0 or run.log_id is None:
        # the header written by the first batch was rolled back with it
        with unit_of_work_factory() as uow:
            header = run.new_header()
            header.status = LogStatus.FAILED
            uow.repositories.migration_logs.add(header)
            uow.flush()
            log_id = header.require_id()
            uow.commit()
        log.error("Container move failed in its first batch: %s", failure.cause)
        return ApplyResult(operation=OperationKind.CONTAINER_MOVE, log_id=log_id, failure=detail)

    with unit_of_work_factory() as uow:
        header = uow.repositories.migration_logs.get(run.log_id)
        if header is None:
            raise RuntimeError(f"Migration log {run.log_id} missing after partial run")
        header.status = LogStatus.FAILED
        source, destination = _load_pair(uow, run.preview.source_id, run.preview.destination_id)
        uow.repositories.containers.recount(source)
        uow.repositories.containers.recount(destination)
        entries = uow.repositories.migration_logs.items_for(run.log_id)
        conflicted = sum(1 for entry in entries if entry.conflicted)
        result = ApplyResult(
            operation=OperationKind.CONTAINER_MOVE,
            log_id=header.require_id(),
            processed_count=header.moved_item_count,
            moved_count=header.moved_item_count,
            conflict_count=conflicted,
            failure=detail,
        )
        uow.commit()
    log.error("Container move halted at batch %s: %s", failure.batch_index, failure.cause)
    return result


def rollback_container_move(
    unit_of_work_factory: UnitOfWorkFactory, log_id: int
) -> RollbackResult:
    """Replay a migration log in reverse, all in one transaction."""

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        header = repositories.migration_logs.get(log_id)
        if header is None:
            raise RollbackStateError(f"Migration log {log_id} does not exist")
        if header.is_rolled_back:
            raise RollbackStateError(f"Migration log {log_id} was already rolled back")

        entries = repositories.migration_logs.items_for(log_id)
        found = repositories.items.get_many([entry.item_id for entry in entries])
        items = {item.require_id(): item for item in found}
        missing = sorted(entry.item_id for entry in entries if entry.item_id not in items)
        if missing:
            raise RollbackStateError(
                f"Migration log {log_id} cannot be rolled back; items no longer exist: {missing}"
            )

        touched: set[int] = {header.source_container_id, header.destination_container_id}
        for entry in entries:
            item = items[entry.item_id]
            if item.container_id != entry.new_container_id:
                log.warning(
                    "Item %s moved to container %s after log %s; restoring anyway",
                    item.id,
                    item.container_id,
                    log_id,
                )
                touched.add(item.container_id)
            item.container_id = entry.old_container_id
            item.is_insert = entry.old_flag
            touched.add(entry.old_container_id)
        uow.flush()

        reactivated = False
        for container_id in sorted(touched):
            container = repositories.containers.get(container_id)
            if container is None:
                raise RollbackStateError(f"Container {container_id} no longer exists")
            repositories.containers.recount(container)
            is_source = container_id == header.source_container_id
            if is_source and header.source_archived and not container.is_active:
                container.is_active = True
                reactivated = True

        header.mark_rolled_back()
        uow.commit()

    log.info("Rolled back migration log %s: restored %s item(s)", log_id, len(entries))
    return RollbackResult(
        log_id=log_id, restored_count=len(entries), source_reactivated=reactivated
    )


def archive_container(
    unit_of_work_factory: UnitOfWorkFactory,
    container_id: int,
    *,
    confirmation: str | None = None,
    archive_phrase: str = ARCHIVE_CONFIRM_PHRASE,
) -> ArchiveResult:
    with unit_of_work_factory() as uow:
        containers = uow.repositories.containers
        container = containers.get(container_id)
        if container is None:
            raise ValidationError(f"Container {container_id} does not exist")
        if not container.is_active:
            raise ValidationError(f"Container {container.name!r} is already archived")
        if container.is_canonical or container.is_protected:
            raise ValidationError(f"Container {container.name!r} is canonical or protected")

        item_count = containers.recount(container)
        if item_count and confirmation != archive_phrase:
            raise ConflictError(
                f"Container {container.name!r} still holds {item_count} item(s); "
                f"type {archive_phrase!r} to archive it anyway",
                conflict_count=item_count,
            )
        container.is_active = False
        uow.commit()

    log.info("Archived container %s (%s item(s))", container_id, item_count)
    return ArchiveResult(container_id=container_id, is_active=False, item_count=item_count)


def unarchive_container(
    unit_of_work_factory: UnitOfWorkFactory, container_id: int
) -> ArchiveResult:
    with unit_of_work_factory() as uow:
        containers = uow.repositories.containers
        container = containers.get(container_id)
        if container is None:
            raise ValidationError(f"Container {container_id} does not exist")
        if container.is_active:
            raise ValidationError(f"Container {container.name!r} is not archived")
        container.is_active = True
        item_count = containers.recount(container)
        uow.commit()

    log.info("Unarchived container %s", container_id)
    return ArchiveResult(container_id=container_id, is_active=True, item_count=item_count)
