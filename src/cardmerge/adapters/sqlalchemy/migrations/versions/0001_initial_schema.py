"""Initial catalog, reference and audit schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-03-02 09:14:00.000000

"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from alembic import op

if TYPE_CHECKING:
    from collections.abc import Sequence

revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_MONEY = sa.Numeric(10, 2)
_STATUS = sa.String(32)
_REFERENCE_TABLES = (
    "ownership",
    "wishlist_entry",
    "price_cache_entry",
    "pending_review_image",
    "listing",
)


def upgrade() -> None:
    op.create_table(
        "container",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_canonical", sa.Boolean(), nullable=False),
        sa.Column("is_protected", sa.Boolean(), nullable=False),
        sa.Column("is_insert_subset", sa.Boolean(), nullable=False),
        sa.Column("item_count", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_container"),
    )

    op.create_table(
        "item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("container_id", sa.Integer(), nullable=False),
        sa.Column("position_key", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("variant", sa.String(), nullable=True),
        sa.Column("is_insert", sa.Boolean(), nullable=False),
        sa.Column("primary_image", sa.String(), nullable=True),
        sa.Column("secondary_image", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("value_estimate", _MONEY, nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["container_id"], ["container.id"], name="fk_item_container_id_container"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_item"),
    )
    op.create_index(
        "ix_item_identity",
        "item",
        ["container_id", "position_key", "display_name", "variant"],
    )

    op.create_table(
        "ownership",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("condition", sa.String(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("is_for_sale", sa.Boolean(), nullable=False),
        sa.Column("is_favorite", sa.Boolean(), nullable=False),
        sa.Column("personal_value", _MONEY, nullable=True),
        sa.Column("sale_price", _MONEY, nullable=True),
        sa.Column("serial_number", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["item.id"], name="fk_ownership_item_id_item"),
        sa.PrimaryKeyConstraint("id", name="pk_ownership"),
    )

    op.create_table(
        "wishlist_entry",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("max_price", _MONEY, nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["item_id"], ["item.id"], name="fk_wishlist_entry_item_id_item"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_wishlist_entry"),
    )

    op.create_table(
        "price_cache_entry",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("average_price", _MONEY, nullable=True),
        sa.Column("sales_count", sa.Integer(), nullable=False),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["item_id"], ["item.id"], name="fk_price_cache_entry_item_id_item"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_price_cache_entry"),
    )

    op.create_table(
        "pending_review_image",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("front_image", sa.String(), nullable=False),
        sa.Column("back_image", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["item_id"], ["item.id"], name="fk_pending_review_image_item_id_item"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_pending_review_image"),
    )

    op.create_table(
        "listing",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("seller_id", sa.Integer(), nullable=False),
        sa.Column("price", _MONEY, nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("listed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["item.id"], name="fk_listing_item_id_item"),
        sa.PrimaryKeyConstraint("id", name="pk_listing"),
    )

    for table in _REFERENCE_TABLES:
        op.create_index(f"ix_{table}_item_id", table, ["item_id"])

    op.create_table(
        "migration_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("initiator", sa.String(), nullable=False),
        sa.Column("source_container_id", sa.Integer(), nullable=False),
        sa.Column("destination_container_id", sa.Integer(), nullable=False),
        sa.Column("moved_item_count", sa.Integer(), nullable=False),
        sa.Column("conflict_count", sa.Integer(), nullable=False),
        sa.Column("source_archived", sa.Boolean(), nullable=False),
        sa.Column("insert_forced", sa.Boolean(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", _STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rolled_back_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["source_container_id"],
            ["container.id"],
            name="fk_migration_log_source_container_id_container",
        ),
        sa.ForeignKeyConstraint(
            ["destination_container_id"],
            ["container.id"],
            name="fk_migration_log_destination_container_id_container",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_migration_log"),
    )

    op.create_table(
        "migration_log_item",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("migration_log_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("old_container_id", sa.Integer(), nullable=False),
        sa.Column("new_container_id", sa.Integer(), nullable=False),
        sa.Column("old_flag", sa.Boolean(), nullable=False),
        sa.Column("new_flag", sa.Boolean(), nullable=False),
        sa.Column("conflicted", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["migration_log_id"],
            ["migration_log.id"],
            name="fk_migration_log_item_migration_log_id_migration_log",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_migration_log_item"),
    )
    op.create_index(
        "ix_migration_log_item_migration_log_id", "migration_log_item", ["migration_log_id"]
    )

    op.create_table(
        "dedup_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("initiator", sa.String(), nullable=False),
        sa.Column("container_id", sa.Integer(), nullable=True),
        sa.Column("group_count", sa.Integer(), nullable=False),
        sa.Column("deleted_count", sa.Integer(), nullable=False),
        sa.Column("moved_count", sa.Integer(), nullable=False),
        sa.Column("merged_count", sa.Integer(), nullable=False),
        sa.Column("status", _STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["container_id"], ["container.id"], name="fk_dedup_log_container_id_container"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dedup_log"),
    )

    op.create_table(
        "dedup_log_entry",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("dedup_log_id", sa.Integer(), nullable=False),
        sa.Column("survivor_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("action", _STATUS, nullable=False),
        sa.Column("reference_kind", _STATUS, nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["dedup_log_id"],
            ["dedup_log.id"],
            name="fk_dedup_log_entry_dedup_log_id_dedup_log",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_dedup_log_entry"),
    )
    op.create_index("ix_dedup_log_entry_dedup_log_id", "dedup_log_entry", ["dedup_log_id"])


def downgrade() -> None:
    op.drop_index("ix_dedup_log_entry_dedup_log_id", table_name="dedup_log_entry")
    op.drop_table("dedup_log_entry")
    op.drop_table("dedup_log")
    op.drop_index("ix_migration_log_item_migration_log_id", table_name="migration_log_item")
    op.drop_table("migration_log_item")
    op.drop_table("migration_log")
    for table in reversed(_REFERENCE_TABLES):
        op.drop_index(f"ix_{table}_item_id", table_name=table)
        op.drop_table(table)
    op.drop_index("ix_item_identity", table_name="item")
    op.drop_table("item")
    op.drop_table("container")
