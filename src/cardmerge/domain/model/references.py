"""User- and process-owned rows pointing at catalog items."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

from cardmerge.domain.model.base import Entity
from cardmerge.domain.model.enums import ReferenceKind

if TYPE_CHECKING:
    from decimal import Decimal


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class DependentReference(Entity):
    """Any row holding a foreign key to an item.

    The relationship itself is what must survive consolidation: a reference is
    either repointed at the survivor or folded into an equivalent survivor row.
    """

    KIND: ClassVar[ReferenceKind]

    item_id: int

    @property
    def kind(self) -> ReferenceKind:
        return self.KIND


@dataclass(eq=False, kw_only=True)
class Ownership(DependentReference):
    KIND: ClassVar[ReferenceKind] = ReferenceKind.OWNERSHIP

    user_id: int
    condition: str | None = None
    quantity: int = 1
    is_for_sale: bool = False
    is_favorite: bool = False
    personal_value: Decimal | None = None
    sale_price: Decimal | None = None
    serial_number: str | None = None
    notes: str | None = None
    acquired_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class WishlistEntry(DependentReference):
    KIND: ClassVar[ReferenceKind] = ReferenceKind.WISHLIST

    user_id: int
    priority: int = 1
    max_price: Decimal | None = None
    added_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class PriceCacheEntry(DependentReference):
    """Cached market price, owned by the price process rather than a user."""

    KIND: ClassVar[ReferenceKind] = ReferenceKind.PRICE_CACHE

    average_price: Decimal | None = None
    sales_count: int = 0
    last_fetched_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class PendingReviewImage(DependentReference):
    KIND: ClassVar[ReferenceKind] = ReferenceKind.PENDING_IMAGE

    user_id: int
    front_image: str
    back_image: str | None = None
    status: str = "pending"
    submitted_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class Listing(DependentReference):
    KIND: ClassVar[ReferenceKind] = ReferenceKind.LISTING

    seller_id: int
    price: Decimal | None = None
    quantity: int = 1
    description: str | None = None
    status: str = "active"
    listed_at: datetime = field(default_factory=_utcnow)


REFERENCE_CLASSES: dict[ReferenceKind, type[DependentReference]] = {
    ReferenceKind.OWNERSHIP: Ownership,
    ReferenceKind.WISHLIST: WishlistEntry,
    ReferenceKind.PRICE_CACHE: PriceCacheEntry,
    ReferenceKind.PENDING_IMAGE: PendingReviewImage,
    ReferenceKind.LISTING: Listing,
}
