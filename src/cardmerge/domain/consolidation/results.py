"""Outcomes returned by apply and rollback."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cardmerge.domain.model import OperationKind

    from .errors import TransactionFailure


@dataclass(frozen=True, slots=True)
class FailureDetail:
    """Where a halted run stopped; enough to resume with a narrower scope."""

    batch_index: int
    committed_batches: int
    committed_units: int
    unit: str | None
    message: str

    @classmethod
    def from_failure(cls, failure: TransactionFailure) -> FailureDetail:
        return cls(
            batch_index=failure.batch_index,
            committed_batches=failure.committed_batches,
            committed_units=failure.committed_units,
            unit=None if failure.unit is None else repr(failure.unit),
            message=str(failure.cause),
        )


@dataclass(frozen=True, slots=True)
class ApplyResult:
    operation: OperationKind
    log_id: int | None = None
    processed_count: int = 0
    merged_count: int = 0
    moved_count: int = 0
    conflict_count: int = 0
    deleted_count: int = 0
    dry_run: bool = False
    failure: FailureDetail | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None


@dataclass(frozen=True, slots=True)
class RollbackResult:
    log_id: int
    restored_count: int
    source_reactivated: bool


@dataclass(frozen=True, slots=True)
class ArchiveResult:
    container_id: int
    is_active: bool
    item_count: int
