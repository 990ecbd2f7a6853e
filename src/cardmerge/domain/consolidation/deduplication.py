"""Plan and apply catalog deduplication."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from cardmerge.config.consolidation import UNSCOPED_CONFIRM_PHRASE
from cardmerge.domain.model import DedupAction, DedupLog, DedupLogEntry, LogStatus, OperationKind

from .errors import ConflictError, ScaleGuardError, TransactionFailure, ValidationError
from .grouping import group_by_identity
from .migrator import consolidate_group
from .results import ApplyResult, FailureDetail
from .runner import BatchRunner
from .survivor import select_survivor

if TYPE_CHECKING:
    from cardmerge.domain.model import IdentityKey
    from cardmerge.domain.ports import CatalogUnitOfWork

    from .context import RunContext
    from .migrator import GroupOutcome
    from .runner import UnitOfWorkFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DuplicateGroup:
    identity_key: IdentityKey
    member_ids: tuple[int, ...]
    survivor_id: int
    loser_ids: tuple[int, ...]
    referenced_ids: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if len(self.member_ids) < 2:
            raise ValueError(f"Duplicate group {self.identity_key} has fewer than two members")
        if self.survivor_id not in self.member_ids:
            raise ValueError(f"Survivor {self.survivor_id} is not a member of the group")
        if set(self.loser_ids) != set(self.member_ids) - {self.survivor_id}:
            raise ValueError("Losers must be exactly the members other than the survivor")


@dataclass(frozen=True, slots=True)
class DedupPlan:
    container_id: int | None
    groups: tuple[DuplicateGroup, ...] = ()

    @property
    def group_count(self) -> int:
        return len(self.groups)

    @property
    def loser_count(self) -> int:
        return sum(len(group.loser_ids) for group in self.groups)

    @property
    def is_unscoped(self) -> bool:
        return self.container_id is None


def plan_deduplication(uow: CatalogUnitOfWork, container_id: int | None) -> DedupPlan:
    """Group duplicate candidates and choose survivors. Reads only."""

    repositories = uow.repositories
    candidates = repositories.items.duplicate_candidates(container_id)
    identity_groups = group_by_identity(candidates)
    referenced = repositories.references.referenced_item_ids(
        [item.require_id() for item in candidates]
    )

    groups: list[DuplicateGroup] = []
    for identity_group in identity_groups:
        choice = select_survivor(identity_group.members, referenced_ids=referenced)
        groups.append(
            DuplicateGroup(
                identity_key=identity_group.identity_key,
                member_ids=identity_group.member_ids,
                survivor_id=choice.survivor_id,
                loser_ids=choice.loser_ids,
                referenced_ids=tuple(
                    member_id for member_id in identity_group.member_ids if member_id in referenced
                ),
            )
        )
    return DedupPlan(container_id=container_id, groups=tuple(groups))


def preview_deduplication(
    unit_of_work_factory: UnitOfWorkFactory, context: RunContext
) -> DedupPlan:
    with unit_of_work_factory() as uow:
        _require_container(uow, context.container_id)
        plan = plan_deduplication(uow, context.container_id)
        uow.rollback()
    log.info(
        "Deduplication preview (container=%s): %s group(s), %s item(s) to delete",
        context.container_id,
        plan.group_count,
        plan.loser_count,
    )
    return plan


@dataclass(slots=True)
class _DedupRun:
    context: RunContext
    group_count: int
    log_id: int | None = None
    processed: int = 0
    deleted: int = 0
    moved: int = 0
    merged: int = 0
    outcomes: list[GroupOutcome] = field(default_factory=list["GroupOutcome"])

    def new_header(self) -> DedupLog:
        return DedupLog(
            initiator=self.context.initiator,
            container_id=self.context.container_id,
            group_count=self.group_count,
        )

    def begin(self, uow: CatalogUnitOfWork) -> None:
        header = self.new_header()
        uow.repositories.dedup_logs.add(header)
        uow.flush()
        self.log_id = header.require_id()

    def handle(self, uow: CatalogUnitOfWork, group: DuplicateGroup) -> None:
        repositories = uow.repositories
        # members edited since the plan no longer share the key and must not be merged
        current = [
            identity_group
            for identity_group in group_by_identity(repositories.items.get_many(group.member_ids))
            if identity_group.identity_key == group.identity_key
        ]
        if not current:
            log.warning("Group %s no longer has duplicates; skipping", group.identity_key)
            return
        members = current[0].members
        # survivors are re-chosen against the state inside this transaction
        referenced = repositories.references.referenced_item_ids(
            [member.require_id() for member in members]
        )
        choice = select_survivor(members, referenced_ids=referenced)
        outcome = consolidate_group(uow, choice)
        self._record(uow, outcome)

    def finish(self, uow: CatalogUnitOfWork) -> None:
        header = self._header(uow)
        header.status = LogStatus.COMPLETED

    def _header(self, uow: CatalogUnitOfWork) -> DedupLog:
        if self.log_id is None:
            raise RuntimeError("Deduplication log header was not created")
        header = uow.repositories.dedup_logs.get(self.log_id)
        if header is None:
            raise RuntimeError(f"Deduplication log {self.log_id} disappeared mid-run")
        return header

    def _record(self, uow: CatalogUnitOfWork, outcome: GroupOutcome) -> None:
        header = self._header(uow)
        logs = uow.repositories.dedup_logs
        log_id = header.require_id()
        for decision in outcome.decisions:
            detail = None
            if decision.merged_into is not None:
                fields = ", ".join(decision.changed_fields) or "none"
                detail = f"merged into #{decision.merged_into}; fields: {fields}"
            logs.add_entry(
                DedupLogEntry(
                    dedup_log_id=log_id,
                    survivor_id=outcome.survivor_id,
                    subject_id=decision.loser_id,
                    action=decision.action,
                    reference_kind=decision.kind,
                    reference_id=decision.reference_id,
                    detail=detail,
                )
            )
        for loser_id in outcome.deleted_ids:
            changed = outcome.quality_changes.get(loser_id)
            if changed:
                logs.add_entry(
                    DedupLogEntry(
                        dedup_log_id=log_id,
                        survivor_id=outcome.survivor_id,
                        subject_id=loser_id,
                        action=DedupAction.QUALITY_MERGED,
                        detail=", ".join(changed),
                    )
                )
            logs.add_entry(
                DedupLogEntry(
                    dedup_log_id=log_id,
                    survivor_id=outcome.survivor_id,
                    subject_id=loser_id,
                    action=DedupAction.DELETED,
                )
            )

        header.deleted_count += len(outcome.deleted_ids)
        header.moved_count += outcome.moved_count
        header.merged_count += outcome.merged_count
        self.processed += 1
        self.deleted += len(outcome.deleted_ids)
        self.moved += outcome.moved_count
        self.merged += outcome.merged_count
        self.outcomes.append(outcome)


def apply_deduplication(
    unit_of_work_factory: UnitOfWorkFactory,
    context: RunContext,
    *,
    confirmation: str | None = None,
    unscoped_phrase: str = UNSCOPED_CONFIRM_PHRASE,
) -> ApplyResult:
    """Merge every duplicate group in scope onto its survivor.

    Guards run before any write: an unscoped run above the threshold is refused
    outright and any other unscoped run needs the exact confirmation phrase.
    """

    plan = preview_deduplication(unit_of_work_factory, context)
    if plan.is_unscoped:
        if plan.group_count > context.max_unscoped_groups:
            raise ScaleGuardError(
                group_count=plan.group_count, threshold=context.max_unscoped_groups
            )
        if confirmation != unscoped_phrase:
            raise ConflictError(
                f"Catalog-wide deduplication of {plan.group_count} group(s) requires the "
                f"confirmation phrase {unscoped_phrase!r}",
                conflict_count=plan.group_count,
            )

    log.info(
        "Applying deduplication by %s (container=%s, groups=%s, batch_size=%s, dry_run=%s)",
        context.initiator,
        context.container_id,
        plan.group_count,
        context.batch_size,
        context.dry_run,
    )
    run = _DedupRun(context=context, group_count=plan.group_count)
    runner = BatchRunner(unit_of_work_factory, context=context)
    try:
        runner.run(plan.groups, run.handle, begin=run.begin, finish=run.finish)
    except TransactionFailure as failure:
        return _failed_result(unit_of_work_factory, run, failure)

    log.info(
        "Deduplication finished: groups=%s, deleted=%s, moved=%s, merged=%s",
        run.processed,
        run.deleted,
        run.moved,
        run.merged,
    )
    return ApplyResult(
        operation=OperationKind.DEDUPLICATE,
        log_id=None if context.dry_run else run.log_id,
        processed_count=run.processed,
        merged_count=run.merged,
        moved_count=run.moved,
        deleted_count=run.deleted,
        dry_run=context.dry_run,
    )


def _failed_result(
    unit_of_work_factory: UnitOfWorkFactory,
    run: _DedupRun,
    failure: TransactionFailure,
) -> ApplyResult:
    detail = FailureDetail.from_failure(failure)
    if run.context.dry_run:
        return ApplyResult(operation=OperationKind.DEDUPLICATE, dry_run=True, failure=detail)
    if failure.committed_batches == 0 or run.log_id is None:
        # the header written by the first batch was rolled back with it
        with unit_of_work_factory() as uow:
            header = run.new_header()
            header.status = LogStatus.FAILED
            uow.repositories.dedup_logs.add(header)
            uow.flush()
            log_id = header.require_id()
            uow.commit()
        log.error("Deduplication failed in its first batch: %s", failure.cause)
        return ApplyResult(operation=OperationKind.DEDUPLICATE, log_id=log_id, failure=detail)

    with unit_of_work_factory() as uow:
        header = uow.repositories.dedup_logs.get(run.log_id)
        if header is None:
            raise RuntimeError(f"Deduplication log {run.log_id} missing after partial run")
        header.status = LogStatus.FAILED
        result = ApplyResult(
            operation=OperationKind.DEDUPLICATE,
            log_id=header.require_id(),
            processed_count=failure.committed_units,
            merged_count=header.merged_count,
            moved_count=header.moved_count,
            deleted_count=header.deleted_count,
            failure=detail,
        )
        uow.commit()
    log.error("Deduplication halted at batch %s: %s", failure.batch_index, failure.cause)
    return result


def _require_container(uow: CatalogUnitOfWork, container_id: int | None) -> None:
    if container_id is None:
        return
    if uow.repositories.containers.get(container_id) is None:
        raise ValidationError(f"Container {container_id} does not exist")
