"""Group catalog items by exact identity key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cardmerge.domain.model import IdentityKey, Item


@dataclass(frozen=True, slots=True)
class IdentityGroup:
    identity_key: IdentityKey
    members: tuple[Item, ...]

    @property
    def member_ids(self) -> tuple[int, ...]:
        return tuple(member.require_id() for member in self.members)


def group_by_identity(items: Iterable[Item]) -> list[IdentityGroup]:
    """Partition ``items`` into groups of two or more sharing an identity key.

    Members are ordered by id and groups by their lowest member id, so the same
    input always yields the same groups in the same order.
    """

    buckets: dict[IdentityKey, list[Item]] = {}
    for item in items:
        buckets.setdefault(item.identity_key, []).append(item)

    groups: list[IdentityGroup] = []
    for key, members in buckets.items():
        if len(members) < 2:
            continue
        ordered = tuple(sorted(members, key=lambda member: member.require_id()))
        groups.append(IdentityGroup(identity_key=key, members=ordered))
    groups.sort(key=lambda group: group.member_ids[0])
    return groups
