"""Merge rules for dependent references and item quality fields.

The table below is the single place where a reference kind declares who owns
a row and how two rows of the same owner fold into one. A kind missing from
``REFERENCE_RULES`` falls back to ``DEFAULT_RULE``: one row per item, the
survivor's row wins and the loser's is discarded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

from cardmerge.domain.model import (
    DEFAULT_CATEGORY,
    Listing,
    Ownership,
    PendingReviewImage,
    ReferenceKind,
    WishlistEntry,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from cardmerge.domain.model import DependentReference, Item

type OwnerKey = tuple[object, ...]
type OwnerKeyFn = Callable[[DependentReference], OwnerKey]
type MergeFn = Callable[[DependentReference, DependentReference], list[str]]


def concat_text(kept: str | None, incoming: str | None) -> str | None:
    """Append ``incoming`` unless it is empty or already contained in ``kept``."""

    if not incoming or not incoming.strip():
        return kept
    if not kept or not kept.strip():
        return incoming
    if incoming.strip() in kept:
        return kept
    return f"{kept}\n{incoming}"


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _sum_field(survivor: object, loser: object, name: str, changed: list[str]) -> None:
    setattr(survivor, name, getattr(survivor, name) + getattr(loser, name))
    changed.append(name)


def _or_field(survivor: object, loser: object, name: str, changed: list[str]) -> None:
    if getattr(loser, name) and not getattr(survivor, name):
        setattr(survivor, name, True)
        changed.append(name)


def _fill_field(survivor: object, loser: object, name: str, changed: list[str]) -> None:
    if getattr(survivor, name) is None and getattr(loser, name) is not None:
        setattr(survivor, name, getattr(loser, name))
        changed.append(name)


def _concat_field(survivor: object, loser: object, name: str, changed: list[str]) -> None:
    before = getattr(survivor, name)
    after = concat_text(before, getattr(loser, name))
    if after != before:
        setattr(survivor, name, after)
        changed.append(name)


def keep_survivor(survivor: DependentReference, loser: DependentReference) -> list[str]:
    _ = (survivor, loser)
    return []


def merge_ownership(survivor: DependentReference, loser: DependentReference) -> list[str]:
    kept, dropped = cast(Ownership, survivor), cast(Ownership, loser)
    changed: list[str] = []
    _sum_field(kept, dropped, "quantity", changed)
    for name in ("is_for_sale", "is_favorite"):
        _or_field(kept, dropped, name, changed)
    for name in ("condition", "personal_value", "sale_price", "serial_number"):
        _fill_field(kept, dropped, name, changed)
    _concat_field(kept, dropped, "notes", changed)
    return changed


def merge_wishlist(survivor: DependentReference, loser: DependentReference) -> list[str]:
    kept, dropped = cast(WishlistEntry, survivor), cast(WishlistEntry, loser)
    changed: list[str] = []
    _fill_field(kept, dropped, "max_price", changed)
    return changed


def merge_pending_image(survivor: DependentReference, loser: DependentReference) -> list[str]:
    kept, dropped = cast(PendingReviewImage, survivor), cast(PendingReviewImage, loser)
    changed: list[str] = []
    _fill_field(kept, dropped, "back_image", changed)
    return changed


def merge_listing(survivor: DependentReference, loser: DependentReference) -> list[str]:
    kept, dropped = cast(Listing, survivor), cast(Listing, loser)
    changed: list[str] = []
    _sum_field(kept, dropped, "quantity", changed)
    _fill_field(kept, dropped, "price", changed)
    _concat_field(kept, dropped, "description", changed)
    return changed


def _by_user(reference: DependentReference) -> OwnerKey:
    return (cast(Ownership | WishlistEntry | PendingReviewImage, reference).user_id,)


def _by_seller(reference: DependentReference) -> OwnerKey:
    return (cast(Listing, reference).seller_id,)


def _single_owner(reference: DependentReference) -> OwnerKey:
    _ = reference
    return ()


@dataclass(frozen=True, slots=True)
class ReferenceRule:
    owner_key: OwnerKeyFn
    merge: MergeFn


DEFAULT_RULE = ReferenceRule(owner_key=_single_owner, merge=keep_survivor)

REFERENCE_RULES: dict[ReferenceKind, ReferenceRule] = {
    ReferenceKind.OWNERSHIP: ReferenceRule(owner_key=_by_user, merge=merge_ownership),
    ReferenceKind.WISHLIST: ReferenceRule(owner_key=_by_user, merge=merge_wishlist),
    ReferenceKind.PRICE_CACHE: DEFAULT_RULE,
    ReferenceKind.PENDING_IMAGE: ReferenceRule(owner_key=_by_user, merge=merge_pending_image),
    ReferenceKind.LISTING: ReferenceRule(owner_key=_by_seller, merge=merge_listing),
}


def rule_for(kind: ReferenceKind) -> ReferenceRule:
    return REFERENCE_RULES.get(kind, DEFAULT_RULE)


def merge_item_quality(survivor: Item, loser: Item) -> list[str]:
    """Fold the loser's quality fields into the survivor before the loser is deleted."""

    changed: list[str] = []
    for name in ("primary_image", "secondary_image", "value_estimate"):
        if _is_blank(getattr(survivor, name)) and not _is_blank(getattr(loser, name)):
            setattr(survivor, name, getattr(loser, name))
            changed.append(name)
    if (_is_blank(survivor.category) or survivor.category == DEFAULT_CATEGORY) and not (
        _is_blank(loser.category) or loser.category == DEFAULT_CATEGORY
    ):
        survivor.category = loser.category
        changed.append("category")
    _concat_field(survivor, loser, "note", changed)
    return changed
