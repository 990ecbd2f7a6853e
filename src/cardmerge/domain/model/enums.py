"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ReferenceKind(StrEnum):
    """Dependent tables holding a foreign key to an item."""

    OWNERSHIP = "ownership"
    WISHLIST = "wishlist"
    PRICE_CACHE = "price_cache"
    PENDING_IMAGE = "pending_image"
    LISTING = "listing"


class OperationKind(StrEnum):
    DEDUPLICATE = "deduplicate"
    CONTAINER_MOVE = "container_move"


class LogStatus(StrEnum):
    """Lifecycle of an audit log header.

    ``applying`` is written by the first batch and replaced by a terminal value
    in the last batch (or by ``failed`` after a halted run). ``rolled_back`` is
    only reachable from a container-move log and is final.
    """

    APPLYING = "applying"
    COMPLETED = "completed"
    COMPLETED_WITH_CONFLICTS = "completed_with_conflicts"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class DedupAction(StrEnum):
    DELETED = "deleted"
    MOVED = "moved"
    MERGED = "merged"
    QUALITY_MERGED = "quality_merged"
