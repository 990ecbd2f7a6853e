from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cardmerge.domain.consolidation import BatchRunner, RunContext, TransactionFailure, chunked
from cardmerge.domain.model import Container
from tests.helpers.catalog import FlakyHandler

if TYPE_CHECKING:
    from collections.abc import Callable

    from cardmerge.adapters.sqlalchemy import SqlAlchemyCatalogUnitOfWork
    from cardmerge.domain.ports import CatalogUnitOfWork

    type UowFactory = Callable[[], SqlAlchemyCatalogUnitOfWork]


def _add_container(uow: CatalogUnitOfWork, unit: int) -> None:
    uow.repositories.containers.add(Container(name=f"batch-{unit}"))


def _container_names(factory: UowFactory) -> list[str]:
    names: list[str] = []
    with factory() as uow:
        for container_id in range(1, 20):
            container = uow.repositories.containers.get(container_id)
            if container is not None:
                names.append(container.name)
    return names


def test_chunked_splits_into_fixed_size_batches() -> None:
    assert [list(batch) for batch in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 3)) == []
    with pytest.raises(ValueError, match="positive"):
        list(chunked([1], 0))


def test_runner_commits_each_batch(sqlite_unit_of_work: UowFactory) -> None:
    runner = BatchRunner(sqlite_unit_of_work, context=RunContext(initiator="tester", batch_size=2))

    progress = runner.run([1, 2, 3], _add_container)

    assert progress.batch_count == 2
    assert progress.committed_batches == 2
    assert progress.committed_units == 3
    assert progress.finished
    assert _container_names(sqlite_unit_of_work) == ["batch-1", "batch-2", "batch-3"]


def test_failed_batch_keeps_earlier_batches(sqlite_unit_of_work: UowFactory) -> None:
    runner = BatchRunner(sqlite_unit_of_work, context=RunContext(initiator="tester", batch_size=2))
    handler = FlakyHandler(handler=_add_container, fail_on=4)

    with pytest.raises(TransactionFailure) as excinfo:
        runner.run([1, 2, 3, 4, 5], handler)

    failure = excinfo.value
    assert failure.batch_index == 1
    assert failure.committed_batches == 1
    assert failure.committed_units == 2
    assert failure.unit == 4
    assert isinstance(failure.cause, RuntimeError)
    # batch [3, 4] rolled back as a whole; batch [5] never started
    assert _container_names(sqlite_unit_of_work) == ["batch-1", "batch-2"]
    assert 5 not in handler.seen


def test_hooks_run_in_first_and_last_batch(sqlite_unit_of_work: UowFactory) -> None:
    calls: list[str] = []

    def begin(uow: CatalogUnitOfWork) -> None:
        _ = uow
        calls.append("begin")

    def finish(uow: CatalogUnitOfWork) -> None:
        _ = uow
        calls.append("finish")

    def handler(uow: CatalogUnitOfWork, unit: int) -> None:
        _ = uow
        calls.append(f"unit-{unit}")

    runner = BatchRunner(sqlite_unit_of_work, context=RunContext(initiator="tester", batch_size=2))
    runner.run([1, 2, 3], handler, begin=begin, finish=finish)

    assert calls == ["begin", "unit-1", "unit-2", "unit-3", "finish"]


def test_zero_units_still_runs_hooks_once(sqlite_unit_of_work: UowFactory) -> None:
    calls: list[str] = []
    runner = BatchRunner(sqlite_unit_of_work, context=RunContext(initiator="tester"))

    progress = runner.run(
        [],
        _add_container,
        begin=lambda _uow: calls.append("begin"),
        finish=lambda _uow: calls.append("finish"),
    )

    assert calls == ["begin", "finish"]
    assert progress.batch_count == 1
    assert progress.total_units == 0


def test_dry_run_rolls_everything_back(sqlite_unit_of_work: UowFactory) -> None:
    context = RunContext(initiator="tester", batch_size=2, dry_run=True)
    runner = BatchRunner(sqlite_unit_of_work, context=context)

    progress = runner.run([1, 2, 3], _add_container)

    assert progress.committed_units == 3
    assert _container_names(sqlite_unit_of_work) == []


def test_dry_run_failure_reports_no_committed_work(sqlite_unit_of_work: UowFactory) -> None:
    context = RunContext(initiator="tester", batch_size=2, dry_run=True)
    runner = BatchRunner(sqlite_unit_of_work, context=context)

    with pytest.raises(TransactionFailure) as excinfo:
        runner.run([1, 2, 3], FlakyHandler(handler=_add_container, fail_on=3))

    assert excinfo.value.batch_index == 1
    assert excinfo.value.committed_units == 0
    assert _container_names(sqlite_unit_of_work) == []
