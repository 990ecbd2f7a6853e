from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from cardmerge.config import ARCHIVE_CONFIRM_PHRASE, CONFLICT_CONFIRM_PHRASE
from cardmerge.domain.consolidation import (
    ConflictError,
    MoveOptions,
    RollbackStateError,
    RunContext,
    ValidationError,
    apply_container_move,
    archive_container,
    preview_container_move,
    rollback_container_move,
    suggests_insert_subset,
    unarchive_container,
)
from cardmerge.domain.consolidation import containers as containers_module
from cardmerge.domain.model import LogStatus
from tests.helpers.catalog import add_container, add_item, item_ids_in, snapshot

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine

    from cardmerge.adapters.sqlalchemy import SqlAlchemyCatalogUnitOfWork
    from cardmerge.domain.ports import CatalogUnitOfWork

    type UowFactory = Callable[[], SqlAlchemyCatalogUnitOfWork]


def _seed_overlap(factory: UowFactory, **destination_fields: object) -> tuple[int, int]:
    """Source holds #1-50; destination holds #1-10 and #51-60."""

    with factory() as uow:
        source = add_container(uow, "2021 Topps Update")
        destination = add_container(uow, "2021 Topps", **destination_fields)
        for number in range(1, 51):
            add_item(uow, source, str(number))
        for number in [*range(1, 11), *range(51, 61)]:
            add_item(uow, destination, str(number))
        uow.commit()
    return source.require_id(), destination.require_id()


def _placement(factory: UowFactory) -> dict[int, tuple[int, bool]]:
    placement: dict[int, tuple[int, bool]] = {}
    with factory() as uow:
        for container_id in (1, 2, 3):
            for item in uow.repositories.items.list_by_container(container_id):
                placement[item.require_id()] = (item.container_id, item.is_insert)
    return placement


def _context(**overrides: object) -> RunContext:
    fields: dict[str, object] = {"initiator": "tester"}
    fields.update(overrides)
    return RunContext(**fields)  # type: ignore[arg-type]


def test_preview_reports_conflicts_and_flags(sqlite_unit_of_work: UowFactory) -> None:
    source_id, destination_id = _seed_overlap(sqlite_unit_of_work, is_canonical=True)

    preview = preview_container_move(sqlite_unit_of_work, source_id, destination_id)

    assert preview.source_count == 50
    assert preview.destination_count == 20
    assert preview.conflict_count == 10
    assert preview.clean_count == 40
    assert preview.destination_canonical
    assert not preview.destination_forces_insert
    assert preview.can_migrate
    assert sorted(int(pair.position_key) for pair in preview.conflicts) == list(range(1, 11))
    first = preview.conflicts[0]
    assert first.source_name == first.destination_name == "Player 1"


def test_conflicts_without_phrase_change_nothing(
    sqlite_engine: Engine, sqlite_unit_of_work: UowFactory
) -> None:
    source_id, destination_id = _seed_overlap(sqlite_unit_of_work)
    before = snapshot(sqlite_engine)

    for phrase in (None, "migrate with conflicts"):
        with pytest.raises(ConflictError) as excinfo:
            apply_container_move(
                sqlite_unit_of_work,
                _context(),
                source_id,
                destination_id,
                options=MoveOptions(),
                confirmation=phrase,
            )
        assert excinfo.value.conflict_count == 10

    assert snapshot(sqlite_engine) == before


def test_move_with_phrase_moves_everything_and_archives_source(
    sqlite_unit_of_work: UowFactory,
) -> None:
    source_id, destination_id = _seed_overlap(sqlite_unit_of_work)

    result = apply_container_move(
        sqlite_unit_of_work,
        _context(batch_size=7),
        source_id,
        destination_id,
        options=MoveOptions(notes="fold update set"),
        confirmation=CONFLICT_CONFIRM_PHRASE,
    )

    assert result.succeeded
    assert result.moved_count == 50
    assert result.conflict_count == 10
    assert item_ids_in(sqlite_unit_of_work, source_id) == []
    assert len(item_ids_in(sqlite_unit_of_work, destination_id)) == 70
    assert result.log_id is not None
    with sqlite_unit_of_work() as uow:
        header = uow.repositories.migration_logs.get(result.log_id)
        assert header is not None
        assert header.status == LogStatus.COMPLETED_WITH_CONFLICTS
        assert header.moved_item_count == 50
        assert header.conflict_count == 10
        assert header.source_archived
        assert header.notes == "fold update set"
        entries = uow.repositories.migration_logs.items_for(result.log_id)
        assert len(entries) == 50
        assert sum(entry.conflicted for entry in entries) == 10
        source = uow.repositories.containers.get(source_id)
        destination = uow.repositories.containers.get(destination_id)
        assert source is not None
        assert destination is not None
        assert not source.is_active
        assert source.item_count == 0
        assert destination.item_count == 70


def test_clean_move_completes_without_phrase(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        source = add_container(uow, "Promo box", is_canonical=True)
        destination = add_container(uow, "2022 Bowman")
        add_item(uow, source, "P1")
        add_item(uow, source, "P2")
        uow.commit()

    result = apply_container_move(
        sqlite_unit_of_work,
        _context(),
        source.require_id(),
        destination.require_id(),
        options=MoveOptions(),
    )

    assert result.moved_count == 2
    assert result.conflict_count == 0
    assert result.log_id is not None
    with sqlite_unit_of_work() as uow:
        header = uow.repositories.migration_logs.get(result.log_id)
        assert header is not None
        assert header.status == LogStatus.COMPLETED
        # canonical sources are never auto-archived
        assert not header.source_archived
        kept = uow.repositories.containers.get(source.require_id())
        assert kept is not None
        assert kept.is_active


def test_rollback_restores_placement_flags_and_source(sqlite_unit_of_work: UowFactory) -> None:
    source_id, destination_id = _seed_overlap(sqlite_unit_of_work, is_insert_subset=True)
    before = _placement(sqlite_unit_of_work)

    result = apply_container_move(
        sqlite_unit_of_work,
        _context(batch_size=16),
        source_id,
        destination_id,
        options=MoveOptions(),
        confirmation=CONFLICT_CONFIRM_PHRASE,
    )
    moved = _placement(sqlite_unit_of_work)
    assert all(moved[item_id] == (destination_id, True) for item_id in range(1, 51))

    assert result.log_id is not None
    outcome = rollback_container_move(sqlite_unit_of_work, result.log_id)

    assert outcome.restored_count == 50
    assert outcome.source_reactivated
    assert _placement(sqlite_unit_of_work) == before
    with sqlite_unit_of_work() as uow:
        header = uow.repositories.migration_logs.get(result.log_id)
        assert header is not None
        assert header.status == LogStatus.ROLLED_BACK
        assert header.rolled_back_at is not None
        source = uow.repositories.containers.get(source_id)
        assert source is not None
        assert source.is_active
        assert source.item_count == 50


def test_repeat_rollback_is_rejected(
    sqlite_engine: Engine, sqlite_unit_of_work: UowFactory
) -> None:
    source_id, destination_id = _seed_overlap(sqlite_unit_of_work)
    result = apply_container_move(
        sqlite_unit_of_work,
        _context(),
        source_id,
        destination_id,
        options=MoveOptions(),
        confirmation=CONFLICT_CONFIRM_PHRASE,
    )
    assert result.log_id is not None
    rollback_container_move(sqlite_unit_of_work, result.log_id)
    before = snapshot(sqlite_engine)

    with pytest.raises(RollbackStateError, match="already rolled back"):
        rollback_container_move(sqlite_unit_of_work, result.log_id)
    with pytest.raises(RollbackStateError, match="does not exist"):
        rollback_container_move(sqlite_unit_of_work, 999)

    assert snapshot(sqlite_engine) == before


def test_rollback_rejects_log_with_deleted_items(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        source = add_container(uow, "Odds and ends")
        destination = add_container(uow, "1987 Fleer")
        gone = add_item(uow, source, "5")
        add_item(uow, source, "6")
        uow.commit()
    result = apply_container_move(
        sqlite_unit_of_work,
        _context(),
        source.require_id(),
        destination.require_id(),
        options=MoveOptions(),
    )
    with sqlite_unit_of_work() as uow:
        doomed = uow.repositories.items.get(gone.require_id())
        assert doomed is not None
        uow.repositories.items.remove(doomed)
        uow.commit()

    assert result.log_id is not None
    with pytest.raises(RollbackStateError, match="no longer exist"):
        rollback_container_move(sqlite_unit_of_work, result.log_id)

    with sqlite_unit_of_work() as uow:
        header = uow.repositories.migration_logs.get(result.log_id)
        assert header is not None
        assert header.status == LogStatus.COMPLETED
    assert len(item_ids_in(sqlite_unit_of_work, destination.require_id())) == 1


def test_force_insert_option_flags_moved_items(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        source = add_container(uow, "Loose")
        destination = add_container(uow, "2020 Prizm")
        add_item(uow, source, "1")
        uow.commit()

    result = apply_container_move(
        sqlite_unit_of_work,
        _context(),
        source.require_id(),
        destination.require_id(),
        options=MoveOptions(force_insert=True),
    )

    assert result.moved_count == 1
    assert all(is_insert for _, is_insert in _placement(sqlite_unit_of_work).values())


def test_blocked_moves_are_rejected(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        source = add_container(uow, "Binder")
        archived = add_container(uow, "Retired", is_active=False)
        uow.commit()

    with pytest.raises(ValidationError, match="same container"):
        apply_container_move(
            sqlite_unit_of_work,
            _context(),
            source.require_id(),
            source.require_id(),
            options=MoveOptions(),
        )
    with pytest.raises(ValidationError, match="archived"):
        apply_container_move(
            sqlite_unit_of_work,
            _context(),
            source.require_id(),
            archived.require_id(),
            options=MoveOptions(),
        )
    with pytest.raises(ValidationError, match="does not exist"):
        preview_container_move(sqlite_unit_of_work, source.require_id(), 404)


def test_failed_move_marks_log_failed(
    monkeypatch: pytest.MonkeyPatch, sqlite_unit_of_work: UowFactory
) -> None:
    with sqlite_unit_of_work() as uow:
        source = add_container(uow, "Shoebox")
        destination = add_container(uow, "1991 Score")
        items = [add_item(uow, source, str(number)) for number in range(1, 6)]
        uow.commit()
    doomed = items[3].require_id()
    move_run_cls = containers_module._MoveRun  # noqa: SLF001  # type: ignore[reportPrivateUsage]
    real_handle = move_run_cls.handle

    def flaky_handle(self: object, uow: CatalogUnitOfWork, item_id: int) -> None:
        if item_id == doomed:
            raise RuntimeError("lock timeout")
        real_handle(self, uow, item_id)  # type: ignore[arg-type]

    monkeypatch.setattr(move_run_cls, "handle", flaky_handle)

    result = apply_container_move(
        sqlite_unit_of_work,
        _context(batch_size=2),
        source.require_id(),
        destination.require_id(),
        options=MoveOptions(),
    )

    assert result.failure is not None
    assert result.failure.batch_index == 1
    assert result.failure.committed_units == 2
    assert result.moved_count == 2
    assert len(item_ids_in(sqlite_unit_of_work, source.require_id())) == 3
    assert result.log_id is not None
    with sqlite_unit_of_work() as uow:
        header = uow.repositories.migration_logs.get(result.log_id)
        assert header is not None
        assert header.status == LogStatus.FAILED
        refreshed = uow.repositories.containers.get(destination.require_id())
        assert refreshed is not None
        assert refreshed.item_count == 2


def test_archive_and_unarchive(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        empty = add_container(uow, "Empty binder")
        full = add_container(uow, "Full binder")
        canonical = add_container(uow, "1952 Topps", is_canonical=True)
        add_item(uow, full, "311", "Mickey Mantle")
        uow.commit()

    assert not archive_container(sqlite_unit_of_work, empty.require_id()).is_active
    with pytest.raises(ValidationError, match="already archived"):
        archive_container(sqlite_unit_of_work, empty.require_id())

    with pytest.raises(ConflictError) as excinfo:
        archive_container(sqlite_unit_of_work, full.require_id())
    assert excinfo.value.conflict_count == 1
    archived = archive_container(
        sqlite_unit_of_work, full.require_id(), confirmation=ARCHIVE_CONFIRM_PHRASE
    )
    assert archived.item_count == 1
    # archiving leaves item placement untouched
    assert len(item_ids_in(sqlite_unit_of_work, full.require_id())) == 1

    with pytest.raises(ValidationError, match="canonical or protected"):
        archive_container(sqlite_unit_of_work, canonical.require_id())

    restored = unarchive_container(sqlite_unit_of_work, full.require_id())
    assert restored.is_active
    with pytest.raises(ValidationError, match="not archived"):
        unarchive_container(sqlite_unit_of_work, full.require_id())


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("2021 Topps Chrome Refractors", True),
        ("Printing Plate 1/1", True),
        ("Stadium Club Chase", True),
        ("2021 Topps", False),
    ],
)
def test_insert_subset_detection(name: str, expected: bool) -> None:
    assert suggests_insert_subset(name) is expected


def test_failure_in_first_batch_still_leaves_a_failed_log(
    monkeypatch: pytest.MonkeyPatch, sqlite_unit_of_work: UowFactory
) -> None:
    with sqlite_unit_of_work() as uow:
        source = add_container(uow, "Shoebox")
        destination = add_container(uow, "1991 Score")
        for number in range(1, 4):
            add_item(uow, source, str(number))
        uow.commit()
    move_run_cls = containers_module._MoveRun  # noqa: SLF001  # type: ignore[reportPrivateUsage]

    def broken_handle(self: object, uow: CatalogUnitOfWork, item_id: int) -> None:
        raise RuntimeError("lock timeout")

    monkeypatch.setattr(move_run_cls, "handle", broken_handle)

    result = apply_container_move(
        sqlite_unit_of_work,
        _context(batch_size=2),
        source.require_id(),
        destination.require_id(),
        options=MoveOptions(notes="first pass"),
    )

    assert result.failure is not None
    assert result.failure.committed_batches == 0
    assert result.moved_count == 0
    assert len(item_ids_in(sqlite_unit_of_work, source.require_id())) == 3
    assert result.log_id is not None
    with sqlite_unit_of_work() as uow:
        header = uow.repositories.migration_logs.get(result.log_id)
        assert header is not None
        assert header.status == LogStatus.FAILED
        assert header.source_container_id == source.require_id()
        assert header.notes == "first pass"
        assert uow.repositories.migration_logs.items_for(result.log_id) == []
