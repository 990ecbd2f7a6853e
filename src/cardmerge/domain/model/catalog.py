"""Shared catalog entities: containers and the items grouped in them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from cardmerge.domain.model.base import Entity

if TYPE_CHECKING:
    from decimal import Decimal

DEFAULT_CATEGORY: Final[str] = "Common"

type IdentityKey = tuple[int, str, str, str | None]
"""(container_id, position_key, display_name, variant), compared exactly."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class Container(Entity):
    """Edition-like folder an item belongs to.

    ``item_count`` is a cached figure; it is recomputed after every move and
    rollback rather than maintained incrementally.
    """

    name: str
    year: int | None = None
    is_active: bool = True
    is_canonical: bool = False
    is_protected: bool = False
    is_insert_subset: bool = False
    item_count: int = 0

    @property
    def can_auto_archive(self) -> bool:
        return self.is_active and not self.is_canonical and not self.is_protected


@dataclass(eq=False, kw_only=True)
class Item(Entity):
    """The deduplicable unit of the catalog."""

    container_id: int
    position_key: str
    display_name: str
    variant: str | None = None
    is_insert: bool = False

    # quality fields
    primary_image: str | None = None
    secondary_image: str | None = None
    category: str = DEFAULT_CATEGORY
    value_estimate: Decimal | None = None
    note: str | None = None

    created_at: datetime = field(default_factory=_utcnow)

    @property
    def identity_key(self) -> IdentityKey:
        return (self.container_id, self.position_key, self.display_name, self.variant)

    @property
    def has_primary_image(self) -> bool:
        return bool(self.primary_image and self.primary_image.strip())

    @property
    def quality_field_count(self) -> int:
        """Populated secondary quality fields; the primary image is scored separately."""

        populated = (
            bool(self.secondary_image and self.secondary_image.strip()),
            bool(self.category) and self.category != DEFAULT_CATEGORY,
            self.value_estimate is not None,
            bool(self.note and self.note.strip()),
        )
        return sum(populated)
