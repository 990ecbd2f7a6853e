"""Deterministic survivor selection for one duplicate group."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from cardmerge.domain.model import Item


@dataclass(frozen=True, slots=True)
class SurvivorChoice:
    survivor_id: int
    loser_ids: tuple[int, ...]


def survivor_rank(item: Item, *, referenced: bool) -> tuple[int, int, int, int]:
    """Sort key where the smallest value wins.

    Referenced beats unreferenced, then a primary image, then the number of
    populated quality fields, then the lowest id.
    """

    return (
        0 if referenced else 1,
        0 if item.has_primary_image else 1,
        -item.quality_field_count,
        item.require_id(),
    )


def select_survivor(
    members: Sequence[Item],
    *,
    referenced_ids: Collection[int],
) -> SurvivorChoice:
    if len(members) < 2:
        raise ValueError("A duplicate group needs at least two members")
    ranked = sorted(
        members,
        key=lambda member: survivor_rank(member, referenced=member.require_id() in referenced_ids),
    )
    survivor = ranked[0]
    losers = tuple(sorted(member.require_id() for member in ranked[1:]))
    return SurvivorChoice(survivor_id=survivor.require_id(), loser_ids=losers)
