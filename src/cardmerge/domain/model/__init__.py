"""Public domain model surface."""

from __future__ import annotations

from cardmerge.domain.model.audit import DedupLog, DedupLogEntry, MigrationLog, MigrationLogItem
from cardmerge.domain.model.base import Entity
from cardmerge.domain.model.catalog import DEFAULT_CATEGORY, Container, IdentityKey, Item
from cardmerge.domain.model.enums import DedupAction, LogStatus, OperationKind, ReferenceKind
from cardmerge.domain.model.references import (
    REFERENCE_CLASSES,
    DependentReference,
    Listing,
    Ownership,
    PendingReviewImage,
    PriceCacheEntry,
    WishlistEntry,
)

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    # catalog
    "DEFAULT_CATEGORY",
    "Container",
    "IdentityKey",
    "Item",
    # references
    "REFERENCE_CLASSES",
    "DependentReference",
    "Listing",
    "Ownership",
    "PendingReviewImage",
    "PriceCacheEntry",
    "WishlistEntry",
    # audit
    "DedupLog",
    "DedupLogEntry",
    "MigrationLog",
    "MigrationLogItem",
    # enums
    "DedupAction",
    "LogStatus",
    "OperationKind",
    "ReferenceKind",
]
