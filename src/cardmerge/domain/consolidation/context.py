"""Explicit per-run state threaded through every consolidation call."""

from __future__ import annotations

from dataclasses import dataclass

from cardmerge.config.consolidation import DEFAULT_BATCH_SIZE, DEFAULT_MAX_UNSCOPED_GROUPS

from .errors import ValidationError


@dataclass(frozen=True, slots=True)
class RunContext:
    """Who runs what, over which scope, and how.

    ``container_id`` of ``None`` means the whole catalog. It only applies to
    deduplication; container moves carry their own source and destination.
    """

    initiator: str
    container_id: int | None = None
    batch_size: int = DEFAULT_BATCH_SIZE
    dry_run: bool = False
    max_unscoped_groups: int = DEFAULT_MAX_UNSCOPED_GROUPS

    def __post_init__(self) -> None:
        if not self.initiator or not self.initiator.strip():
            raise ValidationError("An initiator identity is required for audit")
        if self.batch_size <= 0:
            raise ValidationError(f"Batch size must be positive, got {self.batch_size}")
        if self.max_unscoped_groups <= 0:
            raise ValidationError(
                f"Unscoped group threshold must be positive, got {self.max_unscoped_groups}"
            )
        if self.container_id is not None and self.container_id <= 0:
            raise ValidationError(f"Invalid container id: {self.container_id}")

    @property
    def is_unscoped(self) -> bool:
        return self.container_id is None


@dataclass(frozen=True, slots=True)
class MoveOptions:
    """Operator choices for a container move."""

    force_insert: bool = False
    notes: str | None = None
