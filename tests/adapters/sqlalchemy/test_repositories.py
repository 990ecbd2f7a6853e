"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.orm import Session  # noqa: TC002

from cardmerge.adapters.sqlalchemy.repositories import (
    SqlAlchemyContainerRepository,
    SqlAlchemyDedupLogRepository,
    SqlAlchemyItemRepository,
    SqlAlchemyMigrationLogRepository,
    SqlAlchemyReferenceRepository,
)
from cardmerge.domain.model import (
    Container,
    DedupLog,
    Item,
    Listing,
    LogStatus,
    MigrationLog,
    Ownership,
    PriceCacheEntry,
    ReferenceKind,
    WishlistEntry,
)


def _container(session: Session, name: str = "1989 Score") -> Container:
    container = Container(name=name)
    session.add(container)
    session.flush()
    return container


def _item(session: Session, container: Container, position_key: str, **fields: object) -> Item:
    item = Item(
        container_id=container.require_id(),
        position_key=position_key,
        display_name=str(fields.pop("display_name", f"Player {position_key}")),
        **fields,  # type: ignore[arg-type]
    )
    session.add(item)
    session.flush()
    return item


def test_duplicate_candidates_match_exact_identity(sqlite_session: Session) -> None:
    repository = SqlAlchemyItemRepository(sqlite_session)
    box = _container(sqlite_session)
    other = _container(sqlite_session, "1989 Fleer")
    a = _item(sqlite_session, box, "1")
    b = _item(sqlite_session, box, "1")
    _item(sqlite_session, box, "1", variant="Tiffany")
    c = _item(sqlite_session, box, "2", variant="Glossy")
    d = _item(sqlite_session, box, "2", variant="Glossy")
    _item(sqlite_session, box, "3")
    _item(sqlite_session, other, "1")

    candidates = repository.duplicate_candidates()

    assert [item.id for item in candidates] == [a.id, b.id, c.id, d.id]


def test_duplicate_candidates_can_be_scoped(sqlite_session: Session) -> None:
    repository = SqlAlchemyItemRepository(sqlite_session)
    box = _container(sqlite_session)
    other = _container(sqlite_session, "1989 Fleer")
    _item(sqlite_session, box, "1")
    _item(sqlite_session, box, "1")
    e = _item(sqlite_session, other, "9")
    f = _item(sqlite_session, other, "9")

    scoped = repository.duplicate_candidates(other.require_id())

    assert [item.id for item in scoped] == [e.id, f.id]


def test_get_many_handles_large_id_lists(sqlite_session: Session) -> None:
    repository = SqlAlchemyItemRepository(sqlite_session)
    box = _container(sqlite_session)
    for number in range(1200):
        sqlite_session.add(
            Item(container_id=box.require_id(), position_key=str(number), display_name="x")
        )
    sqlite_session.flush()

    items = repository.get_many(range(1, 1201))

    assert len(items) == 1200
    assert [item.id for item in items[:3]] == [1, 2, 3]
    assert repository.count_by_container(box.require_id()) == 1200


def test_reference_repository_spans_every_table(sqlite_session: Session) -> None:
    repository = SqlAlchemyReferenceRepository(sqlite_session)
    box = _container(sqlite_session)
    owned = _item(sqlite_session, box, "1")
    wished = _item(sqlite_session, box, "2")
    listed = _item(sqlite_session, box, "3")
    priced = _item(sqlite_session, box, "4")
    lonely = _item(sqlite_session, box, "5")
    repository.add(Ownership(item_id=owned.require_id(), user_id=1))
    repository.add(Ownership(item_id=owned.require_id(), user_id=2))
    repository.add(WishlistEntry(item_id=wished.require_id(), user_id=1))
    repository.add(Listing(item_id=listed.require_id(), seller_id=3))
    repository.add(PriceCacheEntry(item_id=priced.require_id()))
    sqlite_session.flush()

    all_ids = [owned.require_id(), wished.require_id(), listed.require_id()]
    all_ids += [priced.require_id(), lonely.require_id()]

    assert repository.referenced_item_ids(all_ids) == set(all_ids) - {lonely.require_id()}
    assert repository.count_for_items(all_ids) == 5
    assert repository.count_for_items([lonely.require_id()]) == 0
    ownerships = repository.for_item(ReferenceKind.OWNERSHIP, owned.require_id())
    assert [ref.kind for ref in ownerships] == [ReferenceKind.OWNERSHIP] * 2
    assert repository.for_item(ReferenceKind.LISTING, owned.require_id()) == []


def test_recount_flushes_pending_moves(sqlite_session: Session) -> None:
    repository = SqlAlchemyContainerRepository(sqlite_session)
    source = _container(sqlite_session, "Source")
    destination = _container(sqlite_session, "Destination")
    item = _item(sqlite_session, source, "1")
    _item(sqlite_session, source, "2")

    item.container_id = destination.require_id()

    assert repository.recount(source) == 1
    assert repository.recount(destination) == 1
    assert source.item_count == 1


def test_migration_log_query_filters_and_orders(sqlite_session: Session) -> None:
    repository = SqlAlchemyMigrationLogRepository(sqlite_session)
    now = datetime.now(tz=UTC)
    older = MigrationLog(
        initiator="a",
        source_container_id=1,
        destination_container_id=2,
        status=LogStatus.COMPLETED,
        created_at=now - timedelta(days=1),
    )
    newer = MigrationLog(
        initiator="b",
        source_container_id=3,
        destination_container_id=1,
        status=LogStatus.ROLLED_BACK,
        created_at=now,
    )
    unrelated = MigrationLog(initiator="c", source_container_id=4, destination_container_id=5)
    for entry in (older, newer, unrelated):
        repository.add(entry)
    sqlite_session.flush()

    touching = repository.query(container_id=1)
    assert [entry.initiator for entry in touching] == ["b", "a"]
    assert [entry.initiator for entry in repository.query(status=LogStatus.COMPLETED)] == ["a"]
    assert len(repository.query(limit=2)) == 2


def test_dedup_log_query_by_container(sqlite_session: Session) -> None:
    repository = SqlAlchemyDedupLogRepository(sqlite_session)
    repository.add(DedupLog(initiator="scoped", container_id=7))
    repository.add(DedupLog(initiator="catalog-wide"))
    sqlite_session.flush()

    assert [entry.initiator for entry in repository.query(container_id=7)] == ["scoped"]
    assert len(repository.query()) == 2
