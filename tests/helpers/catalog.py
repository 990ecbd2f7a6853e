"""Seed helpers and fakes for consolidation tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from cardmerge.adapters.sqlalchemy import mapper_registry
from cardmerge.domain.model import (
    Container,
    Item,
    Listing,
    Ownership,
    PendingReviewImage,
    PriceCacheEntry,
    WishlistEntry,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine

    from cardmerge.adapters.sqlalchemy import SqlAlchemyCatalogUnitOfWork
    from cardmerge.domain.model import DependentReference

    type UowFactory = Callable[[], SqlAlchemyCatalogUnitOfWork]


def add_container(uow: SqlAlchemyCatalogUnitOfWork, name: str, **fields: Any) -> Container:
    container = Container(name=name, **fields)
    uow.repositories.containers.add(container)
    uow.flush()
    return container


def add_item(
    uow: SqlAlchemyCatalogUnitOfWork,
    container: Container,
    position_key: str,
    display_name: str | None = None,
    **fields: Any,
) -> Item:
    item = Item(
        container_id=container.require_id(),
        position_key=position_key,
        display_name=display_name or f"Player {position_key}",
        **fields,
    )
    uow.repositories.items.add(item)
    uow.flush()
    return item


def add_reference[TRef: DependentReference](
    uow: SqlAlchemyCatalogUnitOfWork, reference: TRef
) -> TRef:
    uow.repositories.references.add(reference)
    uow.flush()
    return reference


def own(uow: SqlAlchemyCatalogUnitOfWork, item: Item, user_id: int, **fields: Any) -> Ownership:
    return add_reference(uow, Ownership(item_id=item.require_id(), user_id=user_id, **fields))


def wish(
    uow: SqlAlchemyCatalogUnitOfWork, item: Item, user_id: int, **fields: Any
) -> WishlistEntry:
    return add_reference(uow, WishlistEntry(item_id=item.require_id(), user_id=user_id, **fields))


def price(uow: SqlAlchemyCatalogUnitOfWork, item: Item, **fields: Any) -> PriceCacheEntry:
    return add_reference(uow, PriceCacheEntry(item_id=item.require_id(), **fields))


def pending_image(
    uow: SqlAlchemyCatalogUnitOfWork, item: Item, user_id: int, **fields: Any
) -> PendingReviewImage:
    fields.setdefault("front_image", f"front-{item.require_id()}.jpg")
    return add_reference(
        uow, PendingReviewImage(item_id=item.require_id(), user_id=user_id, **fields)
    )


def list_for_sale(
    uow: SqlAlchemyCatalogUnitOfWork, item: Item, seller_id: int, **fields: Any
) -> Listing:
    return add_reference(uow, Listing(item_id=item.require_id(), seller_id=seller_id, **fields))


def item_ids_in(factory: UowFactory, container_id: int) -> list[int]:
    with factory() as uow:
        items = uow.repositories.items.list_by_container(container_id)
        return [item.require_id() for item in items]


def snapshot(engine: Engine) -> dict[str, list[tuple[object, ...]]]:
    """Every row of every mapped table, ordered by primary key."""

    rows: dict[str, list[tuple[object, ...]]] = {}
    with engine.connect() as connection:
        for table in mapper_registry.metadata.sorted_tables:
            stmt = select(table).order_by(*table.primary_key.columns)
            rows[table.name] = [tuple(row) for row in connection.execute(stmt)]
    return rows


@dataclass
class FlakyHandler[T]:
    """Wraps a unit handler and raises once ``fail_on`` is reached."""

    handler: Callable[[Any, T], None]
    fail_on: T
    seen: list[T] = field(default_factory=list)

    def __call__(self, uow: Any, unit: T) -> None:
        self.seen.append(unit)
        if unit == self.fail_on:
            raise RuntimeError(f"boom on {unit!r}")
        self.handler(uow, unit)
