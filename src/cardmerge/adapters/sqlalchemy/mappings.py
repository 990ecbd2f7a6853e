"""SQLAlchemy mapping metadata for the catalog and its audit logs."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    orm,
)
from sqlalchemy.orm import configure_mappers

from cardmerge.domain.model import (
    DEFAULT_CATEGORY,
    Container,
    DedupAction,
    DedupLog,
    DedupLogEntry,
    DependentReference,
    Item,
    Listing,
    LogStatus,
    MigrationLog,
    MigrationLogItem,
    Ownership,
    PendingReviewImage,
    PriceCacheEntry,
    ReferenceKind,
    WishlistEntry,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

MoneyType = Numeric(10, 2, asdecimal=True)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Catalog tables --------------------------------------------------------------

container_table = Table(
    "container",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("year", Integer, nullable=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("is_canonical", Boolean, nullable=False, default=False),
    Column("is_protected", Boolean, nullable=False, default=False),
    Column("is_insert_subset", Boolean, nullable=False, default=False),
    Column("item_count", Integer, nullable=False, default=0),
)

item_table = Table(
    "item",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("container_id", Integer, ForeignKey("container.id"), nullable=False),
    Column("position_key", String, nullable=False),
    Column("display_name", String, nullable=False),
    Column("variant", String, nullable=True),
    Column("is_insert", Boolean, nullable=False, default=False),
    Column("primary_image", String, nullable=True),
    Column("secondary_image", String, nullable=True),
    Column("category", String, nullable=False, default=DEFAULT_CATEGORY),
    Column("value_estimate", MoneyType, nullable=True),
    Column("note", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_item_identity", "container_id", "position_key", "display_name", "variant"),
)

# Dependent references ----------------------------------------------------------
# Foreign keys to item carry no ON DELETE action; consolidation rewrites them.

ownership_table = Table(
    "ownership",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", Integer, ForeignKey("item.id"), nullable=False, index=True),
    Column("user_id", Integer, nullable=False),
    Column("condition", String, nullable=True),
    Column("quantity", Integer, nullable=False, default=1),
    Column("is_for_sale", Boolean, nullable=False, default=False),
    Column("is_favorite", Boolean, nullable=False, default=False),
    Column("personal_value", MoneyType, nullable=True),
    Column("sale_price", MoneyType, nullable=True),
    Column("serial_number", String, nullable=True),
    Column("notes", Text, nullable=True),
    Column("acquired_at", UTCDateTime(), nullable=False),
)

wishlist_entry_table = Table(
    "wishlist_entry",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", Integer, ForeignKey("item.id"), nullable=False, index=True),
    Column("user_id", Integer, nullable=False),
    Column("priority", Integer, nullable=False, default=1),
    Column("max_price", MoneyType, nullable=True),
    Column("added_at", UTCDateTime(), nullable=False),
)

price_cache_entry_table = Table(
    "price_cache_entry",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", Integer, ForeignKey("item.id"), nullable=False, index=True),
    Column("average_price", MoneyType, nullable=True),
    Column("sales_count", Integer, nullable=False, default=0),
    Column("last_fetched_at", UTCDateTime(), nullable=False),
)

pending_review_image_table = Table(
    "pending_review_image",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", Integer, ForeignKey("item.id"), nullable=False, index=True),
    Column("user_id", Integer, nullable=False),
    Column("front_image", String, nullable=False),
    Column("back_image", String, nullable=True),
    Column("status", String, nullable=False, default="pending"),
    Column("submitted_at", UTCDateTime(), nullable=False),
)

listing_table = Table(
    "listing",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", Integer, ForeignKey("item.id"), nullable=False, index=True),
    Column("seller_id", Integer, nullable=False),
    Column("price", MoneyType, nullable=True),
    Column("quantity", Integer, nullable=False, default=1),
    Column("description", Text, nullable=True),
    Column("status", String, nullable=False, default="active"),
    Column("listed_at", UTCDateTime(), nullable=False),
)

# Audit tables -----------------------------------------------------------------

migration_log_table = Table(
    "migration_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("initiator", String, nullable=False),
    Column("source_container_id", Integer, ForeignKey("container.id"), nullable=False),
    Column("destination_container_id", Integer, ForeignKey("container.id"), nullable=False),
    Column("moved_item_count", Integer, nullable=False, default=0),
    Column("conflict_count", Integer, nullable=False, default=0),
    Column("source_archived", Boolean, nullable=False, default=False),
    Column("insert_forced", Boolean, nullable=False, default=False),
    Column("notes", Text, nullable=True),
    Column("status", Enum(LogStatus, native_enum=False, length=32), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("rolled_back_at", UTCDateTime(), nullable=True),
)

# No foreign key on item_id: log rows outlive deleted items.
migration_log_item_table = Table(
    "migration_log_item",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "migration_log_id",
        Integer,
        ForeignKey("migration_log.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("item_id", Integer, nullable=False),
    Column("old_container_id", Integer, nullable=False),
    Column("new_container_id", Integer, nullable=False),
    Column("old_flag", Boolean, nullable=False),
    Column("new_flag", Boolean, nullable=False),
    Column("conflicted", Boolean, nullable=False, default=False),
)

dedup_log_table = Table(
    "dedup_log",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("initiator", String, nullable=False),
    Column("container_id", Integer, ForeignKey("container.id"), nullable=True),
    Column("group_count", Integer, nullable=False, default=0),
    Column("deleted_count", Integer, nullable=False, default=0),
    Column("moved_count", Integer, nullable=False, default=0),
    Column("merged_count", Integer, nullable=False, default=0),
    Column("status", Enum(LogStatus, native_enum=False, length=32), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
)

dedup_log_entry_table = Table(
    "dedup_log_entry",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "dedup_log_id",
        Integer,
        ForeignKey("dedup_log.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("survivor_id", Integer, nullable=False),
    Column("subject_id", Integer, nullable=False),
    Column("action", Enum(DedupAction, native_enum=False, length=32), nullable=False),
    Column(
        "reference_kind", Enum(ReferenceKind, native_enum=False, length=32), nullable=True
    ),
    Column("reference_id", Integer, nullable=True),
    Column("detail", Text, nullable=True),
)

REFERENCE_TABLES: Final[dict[ReferenceKind, Table]] = {
    ReferenceKind.OWNERSHIP: ownership_table,
    ReferenceKind.WISHLIST: wishlist_entry_table,
    ReferenceKind.PRICE_CACHE: price_cache_entry_table,
    ReferenceKind.PENDING_IMAGE: pending_review_image_table,
    ReferenceKind.LISTING: listing_table,
}

CLASS_BY_REFERENCE_KIND: Final[dict[ReferenceKind, type[DependentReference]]] = {
    ReferenceKind.OWNERSHIP: Ownership,
    ReferenceKind.WISHLIST: WishlistEntry,
    ReferenceKind.PRICE_CACHE: PriceCacheEntry,
    ReferenceKind.PENDING_IMAGE: PendingReviewImage,
    ReferenceKind.LISTING: Listing,
}


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Container, container_table)
    mapper_registry.map_imperatively(Item, item_table)

    for kind, reference_cls in CLASS_BY_REFERENCE_KIND.items():
        mapper_registry.map_imperatively(reference_cls, REFERENCE_TABLES[kind])

    mapper_registry.map_imperatively(MigrationLog, migration_log_table)
    mapper_registry.map_imperatively(MigrationLogItem, migration_log_item_table)
    mapper_registry.map_imperatively(DedupLog, dedup_log_table)
    mapper_registry.map_imperatively(DedupLogEntry, dedup_log_entry_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
