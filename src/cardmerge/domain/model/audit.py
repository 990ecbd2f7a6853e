"""Audit records for container moves and deduplication runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from cardmerge.domain.model.base import Entity
from cardmerge.domain.model.enums import DedupAction, LogStatus, ReferenceKind


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class MigrationLog(Entity):
    """Header for one container move; its items are enough to reverse it."""

    initiator: str
    source_container_id: int
    destination_container_id: int
    moved_item_count: int = 0
    conflict_count: int = 0
    source_archived: bool = False
    insert_forced: bool = False
    notes: str | None = None
    status: LogStatus = LogStatus.APPLYING
    created_at: datetime = field(default_factory=_utcnow)
    rolled_back_at: datetime | None = None

    @property
    def is_rolled_back(self) -> bool:
        return self.status == LogStatus.ROLLED_BACK

    def mark_rolled_back(self, *, at: datetime | None = None) -> None:
        if self.is_rolled_back:
            raise ValueError(f"Migration log {self.id} is already rolled back")
        self.status = LogStatus.ROLLED_BACK
        self.rolled_back_at = at or _utcnow()


@dataclass(eq=False, kw_only=True)
class MigrationLogItem(Entity):
    migration_log_id: int
    item_id: int
    old_container_id: int
    new_container_id: int
    old_flag: bool
    new_flag: bool
    conflicted: bool = False


@dataclass(eq=False, kw_only=True)
class DedupLog(Entity):
    """Terminal summary of a deduplication run. Not reversible."""

    initiator: str
    container_id: int | None = None
    group_count: int = 0
    deleted_count: int = 0
    moved_count: int = 0
    merged_count: int = 0
    status: LogStatus = LogStatus.APPLYING
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class DedupLogEntry(Entity):
    """One survivor-side decision, kept for manual recovery from backups.

    ``subject_id`` is the loser item for item-level actions and the loser's
    item for reference actions; ``reference_id`` names the row touched.
    """

    dedup_log_id: int
    survivor_id: int
    subject_id: int
    action: DedupAction
    reference_kind: ReferenceKind | None = None
    reference_id: int | None = None
    detail: str | None = None
