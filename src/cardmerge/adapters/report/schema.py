"""Pydantic models describing exported plans, results and log summaries."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from cardmerge.domain.model import LogStatus, OperationKind, ReferenceKind  # noqa: TC001

if TYPE_CHECKING:
    from cardmerge.domain.consolidation import (
        ApplyResult,
        DedupPlan,
        LogEntryView,
        LogSummary,
        MovePreview,
    )


class ReportBaseModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class DuplicateGroupModel(ReportBaseModel):
    container_id: int
    position_key: str
    display_name: str
    variant: str | None = None
    member_ids: list[int] = Field(min_length=2)
    survivor_id: int
    loser_ids: list[int]
    referenced_ids: list[int] = Field(default_factory=list[int])


class DedupPlanDocument(ReportBaseModel):
    kind: Literal["deduplicate"] = "deduplicate"
    container_id: int | None = None
    groups: list[DuplicateGroupModel] = Field(default_factory=list[DuplicateGroupModel])

    @computed_field
    @property
    def group_count(self) -> int:
        return len(self.groups)

    @computed_field
    @property
    def delete_count(self) -> int:
        return sum(len(group.loser_ids) for group in self.groups)

    @classmethod
    def from_plan(cls, plan: DedupPlan) -> DedupPlanDocument:
        groups: list[DuplicateGroupModel] = []
        for group in plan.groups:
            container_id, position_key, display_name, variant = group.identity_key
            groups.append(
                DuplicateGroupModel(
                    container_id=container_id,
                    position_key=position_key,
                    display_name=display_name,
                    variant=variant,
                    member_ids=list(group.member_ids),
                    survivor_id=group.survivor_id,
                    loser_ids=list(group.loser_ids),
                    referenced_ids=list(group.referenced_ids),
                )
            )
        return cls(container_id=plan.container_id, groups=groups)


class ConflictPairModel(ReportBaseModel):
    position_key: str
    source_item_id: int
    source_name: str
    destination_item_id: int
    destination_name: str


class MovePreviewDocument(ReportBaseModel):
    kind: Literal["container_move"] = "container_move"
    source_id: int
    source_name: str
    destination_id: int
    destination_name: str
    source_count: int
    destination_count: int
    conflict_count: int
    clean_count: int
    destination_forces_insert: bool
    destination_suggests_insert: bool
    destination_canonical: bool
    destination_active: bool
    source_can_auto_archive: bool
    can_migrate: bool
    blockers: list[str] = Field(default_factory=list[str])
    conflicts: list[ConflictPairModel] = Field(default_factory=list[ConflictPairModel])

    @classmethod
    def from_preview(cls, preview: MovePreview) -> MovePreviewDocument:
        return cls(
            source_id=preview.source_id,
            source_name=preview.source_name,
            destination_id=preview.destination_id,
            destination_name=preview.destination_name,
            source_count=preview.source_count,
            destination_count=preview.destination_count,
            conflict_count=preview.conflict_count,
            clean_count=preview.clean_count,
            destination_forces_insert=preview.destination_forces_insert,
            destination_suggests_insert=preview.destination_suggests_insert,
            destination_canonical=preview.destination_canonical,
            destination_active=preview.destination_active,
            source_can_auto_archive=preview.source_can_auto_archive,
            can_migrate=preview.can_migrate,
            blockers=list(preview.blockers),
            conflicts=[
                ConflictPairModel(
                    position_key=pair.position_key,
                    source_item_id=pair.source_item_id,
                    source_name=pair.source_name,
                    destination_item_id=pair.destination_item_id,
                    destination_name=pair.destination_name,
                )
                for pair in preview.conflicts
            ],
        )


class FailureModel(ReportBaseModel):
    batch_index: int
    committed_batches: int
    committed_units: int
    unit: str | None = None
    message: str


class ApplyResultDocument(ReportBaseModel):
    operation: OperationKind
    log_id: int | None = None
    processed_count: int = 0
    merged_count: int = 0
    moved_count: int = 0
    conflict_count: int = 0
    deleted_count: int = 0
    dry_run: bool = False
    failure: FailureModel | None = None

    @classmethod
    def from_result(cls, result: ApplyResult) -> ApplyResultDocument:
        failure = None
        if result.failure is not None:
            failure = FailureModel(
                batch_index=result.failure.batch_index,
                committed_batches=result.failure.committed_batches,
                committed_units=result.failure.committed_units,
                unit=result.failure.unit,
                message=result.failure.message,
            )
        return cls(
            operation=result.operation,
            log_id=result.log_id,
            processed_count=result.processed_count,
            merged_count=result.merged_count,
            moved_count=result.moved_count,
            conflict_count=result.conflict_count,
            deleted_count=result.deleted_count,
            dry_run=result.dry_run,
            failure=failure,
        )


class LogSummaryModel(ReportBaseModel):
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

    @classmethod
    def from_summary(cls, summary: LogSummary) -> LogSummaryModel:
        return cls(
            kind=summary.kind,
            log_id=summary.log_id,
            initiator=summary.initiator,
            status=summary.status,
            created_at=summary.created_at,
            container_id=summary.container_id,
            destination_container_id=summary.destination_container_id,
            moved_count=summary.moved_count,
            merged_count=summary.merged_count,
            deleted_count=summary.deleted_count,
            conflict_count=summary.conflict_count,
            source_archived=summary.source_archived,
            rolled_back_at=summary.rolled_back_at,
            notes=summary.notes,
        )


class LogListDocument(ReportBaseModel):
    logs: list[LogSummaryModel] = Field(default_factory=list[LogSummaryModel])


class LogEntryModel(ReportBaseModel):
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
    def from_view(cls, view: LogEntryView) -> LogEntryModel:
        return cls(
            item_id=view.item_id,
            action=view.action,
            survivor_id=view.survivor_id,
            old_container_id=view.old_container_id,
            new_container_id=view.new_container_id,
            old_flag=view.old_flag,
            new_flag=view.new_flag,
            conflicted=view.conflicted,
            reference_kind=view.reference_kind,
            reference_id=view.reference_id,
            detail=view.detail,
        )


class LogEntryListDocument(ReportBaseModel):
    kind: OperationKind
    log_id: int
    entries: list[LogEntryModel] = Field(default_factory=list[LogEntryModel])
