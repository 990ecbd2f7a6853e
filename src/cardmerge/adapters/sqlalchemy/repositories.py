"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from sqlalchemy import and_, func, or_, select, union

from cardmerge.adapters.sqlalchemy.mappings import (
    CLASS_BY_REFERENCE_KIND,
    REFERENCE_TABLES,
    dedup_log_entry_table,
    dedup_log_table,
    item_table,
    migration_log_item_table,
    migration_log_table,
)
from cardmerge.domain.model import (
    Container,
    DedupLog,
    DedupLogEntry,
    DependentReference,
    Item,
    MigrationLog,
    MigrationLogItem,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Iterator, Sequence

    from sqlalchemy.orm import Session

    from cardmerge.domain.model import LogStatus, ReferenceKind

# Keeps IN (...) lists under SQLite's bound-parameter limit.
_IN_CHUNK_SIZE = 500


def _chunks(ids: Collection[int]) -> Iterator[list[int]]:
    ordered = sorted(set(ids))
    for start in range(0, len(ordered), _IN_CHUNK_SIZE):
        yield ordered[start : start + _IN_CHUNK_SIZE]


class SqlAlchemyRepository[TEntity]:
    """Shared add/get/remove for mapped entities with integer keys."""

    def __init__(self, session: Session, entity_cls: type[TEntity]) -> None:
        self.session = session
        self._entity_cls = entity_cls

    def add(self, entity: TEntity) -> None:
        self.session.add(entity)

    def get(self, entity_id: int) -> TEntity | None:
        return self.session.get(self._entity_cls, entity_id)

    def remove(self, entity: TEntity) -> None:
        self.session.delete(entity)


class SqlAlchemyItemRepository(SqlAlchemyRepository[Item]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Item)

    def get_many(self, item_ids: Collection[int]) -> list[Item]:
        items: list[Item] = []
        for chunk in _chunks(item_ids):
            stmt = select(Item).where(item_table.c.id.in_(chunk)).order_by(item_table.c.id)
            items.extend(self.session.scalars(stmt))
        return items

    def duplicate_candidates(self, container_id: int | None = None) -> list[Item]:
        key_columns = (
            item_table.c.container_id,
            item_table.c.position_key,
            item_table.c.display_name,
            item_table.c.variant,
        )
        groups = select(*key_columns).group_by(*key_columns).having(func.count() >= 2)
        if container_id is not None:
            groups = groups.where(item_table.c.container_id == container_id)
        duplicated = groups.subquery("duplicated")

        stmt = (
            select(Item)
            .join(
                duplicated,
                and_(
                    item_table.c.container_id == duplicated.c.container_id,
                    item_table.c.position_key == duplicated.c.position_key,
                    item_table.c.display_name == duplicated.c.display_name,
                    item_table.c.variant.is_not_distinct_from(duplicated.c.variant),
                ),
            )
            .order_by(item_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_by_container(self, container_id: int) -> list[Item]:
        stmt = (
            select(Item)
            .where(item_table.c.container_id == container_id)
            .order_by(item_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def count_by_container(self, container_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(item_table)
            .where(item_table.c.container_id == container_id)
        )
        return int(self.session.execute(stmt).scalar_one())


class SqlAlchemyContainerRepository(SqlAlchemyRepository[Container]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Container)

    def recount(self, container: Container) -> int:
        self.session.flush()
        stmt = (
            select(func.count())
            .select_from(item_table)
            .where(item_table.c.container_id == container.require_id())
        )
        container.item_count = int(self.session.execute(stmt).scalar_one())
        return container.item_count


class SqlAlchemyReferenceRepository:
    """One repository over every dependent-reference table."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: DependentReference) -> None:
        self.session.add(entity)

    def remove(self, entity: DependentReference) -> None:
        self.session.delete(entity)

    def for_item(self, kind: ReferenceKind, item_id: int) -> list[DependentReference]:
        table = REFERENCE_TABLES[kind]
        stmt = (
            select(CLASS_BY_REFERENCE_KIND[kind])
            .where(table.c.item_id == item_id)
            .order_by(table.c.id)
        )
        return list(self.session.scalars(stmt))

    def referenced_item_ids(self, item_ids: Collection[int]) -> set[int]:
        referenced: set[int] = set()
        for chunk in _chunks(item_ids):
            stmt = union(
                *(
                    select(table.c.item_id).where(table.c.item_id.in_(chunk))
                    for table in REFERENCE_TABLES.values()
                )
            )
            referenced.update(int(row) for row in self.session.scalars(stmt))
        return referenced

    def count_for_items(self, item_ids: Collection[int]) -> int:
        total = 0
        for chunk in _chunks(item_ids):
            for table in REFERENCE_TABLES.values():
                stmt = (
                    select(func.count())
                    .select_from(table)
                    .where(table.c.item_id.in_(chunk))
                )
                total += int(self.session.execute(stmt).scalar_one())
        return total


class SqlAlchemyMigrationLogRepository(SqlAlchemyRepository[MigrationLog]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, MigrationLog)

    def add_item(self, entry: MigrationLogItem) -> None:
        self.session.add(entry)

    def items_for(self, log_id: int) -> list[MigrationLogItem]:
        stmt = (
            select(MigrationLogItem)
            .where(migration_log_item_table.c.migration_log_id == log_id)
            .order_by(migration_log_item_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def query(
        self,
        *,
        container_id: int | None = None,
        status: LogStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[MigrationLog]:
        stmt = select(MigrationLog)
        if container_id is not None:
            stmt = stmt.where(
                or_(
                    migration_log_table.c.source_container_id == container_id,
                    migration_log_table.c.destination_container_id == container_id,
                )
            )
        if status is not None:
            stmt = stmt.where(migration_log_table.c.status == status)
        stmt = stmt.order_by(
            migration_log_table.c.created_at.desc(), migration_log_table.c.id.desc()
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.scalars(stmt).all()


class SqlAlchemyDedupLogRepository(SqlAlchemyRepository[DedupLog]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, DedupLog)

    def add_entry(self, entry: DedupLogEntry) -> None:
        self.session.add(entry)

    def entries_for(self, log_id: int) -> list[DedupLogEntry]:
        stmt = (
            select(DedupLogEntry)
            .where(dedup_log_entry_table.c.dedup_log_id == log_id)
            .order_by(dedup_log_entry_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def query(
        self,
        *,
        container_id: int | None = None,
        status: LogStatus | None = None,
        limit: int | None = None,
    ) -> Sequence[DedupLog]:
        stmt = select(DedupLog)
        if container_id is not None:
            stmt = stmt.where(dedup_log_table.c.container_id == container_id)
        if status is not None:
            stmt = stmt.where(dedup_log_table.c.status == status)
        stmt = stmt.order_by(dedup_log_table.c.created_at.desc(), dedup_log_table.c.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.scalars(stmt).all()


if TYPE_CHECKING:
    from cardmerge.domain.ports.persistence import (
        ContainerRepository,
        DedupLogRepository,
        ItemRepository,
        MigrationLogRepository,
        ReferenceRepository,
    )

    _session_stub = cast("Session", object())
    _item_repo: ItemRepository = SqlAlchemyItemRepository(_session_stub)
    _container_repo: ContainerRepository = SqlAlchemyContainerRepository(_session_stub)
    _reference_repo: ReferenceRepository = SqlAlchemyReferenceRepository(_session_stub)
    _migration_repo: MigrationLogRepository = SqlAlchemyMigrationLogRepository(_session_stub)
    _dedup_repo: DedupLogRepository = SqlAlchemyDedupLogRepository(_session_stub)
