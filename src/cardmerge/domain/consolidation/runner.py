"""Execute units of work in bounded, independently committed batches."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import TransactionFailure

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from cardmerge.domain.ports import CatalogUnitOfWork

    from .context import RunContext

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], CatalogUnitOfWork]
type UnitHandler[T] = Callable[[CatalogUnitOfWork, T], None]
type Hook = Callable[[CatalogUnitOfWork], None]


@dataclass(slots=True)
class BatchProgress:
    """How far a run got. Everything counted here is durable (unless dry-run)."""

    total_units: int
    batch_count: int
    committed_batches: int = 0
    committed_units: int = 0

    @property
    def finished(self) -> bool:
        return self.committed_batches == self.batch_count


def chunked[T](units: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    for start in range(0, len(units), size):
        yield units[start : start + size]


class BatchRunner:
    """Run a handler over units, one transaction per batch.

    A failing batch is rolled back and the run stops; batches committed before
    it stay committed. ``begin`` runs inside the first transaction and
    ``finish`` inside the last one, so header rows are created and finalised
    atomically with the first and last slices of work. In dry-run mode every
    batch shares one transaction that is rolled back at the end.
    """

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory, *, context: RunContext) -> None:
        self._uow_factory = unit_of_work_factory
        self._context = context

    def run[T](
        self,
        units: Sequence[T],
        handler: UnitHandler[T],
        *,
        begin: Hook | None = None,
        finish: Hook | None = None,
    ) -> BatchProgress:
        batches = list(chunked(units, self._context.batch_size)) or [()]
        progress = BatchProgress(total_units=len(units), batch_count=len(batches))
        if self._context.dry_run:
            self._rehearse(batches, handler, begin=begin, finish=finish, progress=progress)
            return progress

        for index, batch in enumerate(batches):
            current: T | None = None
            try:
                with self._uow_factory() as uow:
                    if index == 0 and begin is not None:
                        begin(uow)
                    for unit in batch:
                        current = unit
                        handler(uow, unit)
                    current = None
                    if index == len(batches) - 1 and finish is not None:
                        finish(uow)
                    uow.commit()
            except Exception as exc:
                log.exception(
                    "Batch %s/%s failed; %s batch(es) already committed",
                    index + 1,
                    len(batches),
                    progress.committed_batches,
                )
                raise TransactionFailure(
                    batch_index=index,
                    committed_batches=progress.committed_batches,
                    committed_units=progress.committed_units,
                    unit=current,
                    cause=exc,
                ) from exc
            progress.committed_batches += 1
            progress.committed_units += len(batch)
            log.info(
                "Committed batch %s/%s (%s/%s units)",
                index + 1,
                len(batches),
                progress.committed_units,
                progress.total_units,
            )
        return progress

    def _rehearse[T](
        self,
        batches: list[Sequence[T]],
        handler: UnitHandler[T],
        *,
        begin: Hook | None,
        finish: Hook | None,
        progress: BatchProgress,
    ) -> None:
        current: T | None = None
        index = 0
        try:
            with self._uow_factory() as uow:
                if begin is not None:
                    begin(uow)
                for index, batch in enumerate(batches):
                    for unit in batch:
                        current = unit
                        handler(uow, unit)
                    current = None
                    progress.committed_batches += 1
                    progress.committed_units += len(batch)
                if finish is not None:
                    finish(uow)
                uow.flush()
                uow.rollback()
        except Exception as exc:
            log.exception("Dry-run batch %s/%s failed", index + 1, len(batches))
            raise TransactionFailure(
                batch_index=index,
                committed_batches=0,
                committed_units=0,
                unit=current,
                cause=exc,
            ) from exc
        log.info("Dry run rehearsed %s unit(s); all changes rolled back", progress.total_units)
