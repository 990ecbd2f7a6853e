"""Errors raised by consolidation runs.

Everything except ``TransactionFailure`` and ``DanglingReferenceError`` is
raised before any transaction opens, so a caller catching those can rely on
the database being untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection


class ConsolidationError(RuntimeError):
    """Base class for consolidation failures."""


class ValidationError(ConsolidationError, ValueError):
    """Scope or options are missing or invalid."""


class ConflictError(ConsolidationError):
    """The run would clobber data and the confirmation phrase is absent or wrong."""

    def __init__(self, message: str, *, conflict_count: int = 0) -> None:
        super().__init__(message)
        self.conflict_count = conflict_count


class ScaleGuardError(ConsolidationError):
    """An unscoped run exceeds the configured group-count threshold."""

    def __init__(self, *, group_count: int, threshold: int) -> None:
        super().__init__(
            f"Refusing catalog-wide run over {group_count} duplicate groups "
            f"(threshold {threshold}); narrow the scope to a single container"
        )
        self.group_count = group_count
        self.threshold = threshold


class RollbackStateError(ConsolidationError):
    """The log cannot be rolled back from its current state."""


class DanglingReferenceError(ConsolidationError):
    """References still point at items scheduled for deletion."""

    def __init__(self, *, item_ids: Collection[int], remaining: int) -> None:
        ids = ", ".join(str(item_id) for item_id in sorted(item_ids))
        super().__init__(f"{remaining} reference(s) still target items [{ids}]")
        self.item_ids = tuple(sorted(item_ids))
        self.remaining = remaining


class TransactionFailure(ConsolidationError):
    """A batch failed; it was rolled back and the run halted.

    ``committed_batches`` and ``committed_units`` mark how far the run got:
    every unit before that position is durable, nothing after it was touched.
    """

    def __init__(
        self,
        *,
        batch_index: int,
        committed_batches: int,
        committed_units: int,
        unit: object | None,
        cause: BaseException,
    ) -> None:
        super().__init__(
            f"Batch {batch_index} failed after {committed_batches} committed batch(es) "
            f"({committed_units} unit(s)); offending unit: {unit!r}; cause: {cause}"
        )
        self.batch_index = batch_index
        self.committed_batches = committed_batches
        self.committed_units = committed_units
        self.unit = unit
        self.cause = cause
