"""Rewrite or fold every reference of a duplicate group onto its survivor."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from cardmerge.domain.model import DedupAction, ReferenceKind

from .errors import DanglingReferenceError
from .rules import merge_item_quality, rule_for

if TYPE_CHECKING:
    from cardmerge.domain.model import DependentReference
    from cardmerge.domain.ports import CatalogUnitOfWork, ReferenceRepository

    from .rules import OwnerKey
    from .survivor import SurvivorChoice

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReferenceDecision:
    kind: ReferenceKind
    reference_id: int
    loser_id: int
    action: DedupAction
    merged_into: int | None = None
    changed_fields: tuple[str, ...] = ()


@dataclass(slots=True)
class GroupOutcome:
    survivor_id: int
    deleted_ids: list[int] = field(default_factory=list[int])
    decisions: list[ReferenceDecision] = field(default_factory=list[ReferenceDecision])
    quality_changes: dict[int, tuple[str, ...]] = field(
        default_factory=dict[int, tuple[str, ...]]
    )

    @property
    def moved_count(self) -> int:
        return sum(1 for decision in self.decisions if decision.action == DedupAction.MOVED)

    @property
    def merged_count(self) -> int:
        return sum(1 for decision in self.decisions if decision.action == DedupAction.MERGED)


def consolidate_group(uow: CatalogUnitOfWork, choice: SurvivorChoice) -> GroupOutcome:
    """Move every loser reference to the survivor, merge qualities, delete the losers.

    Must run inside an open unit of work; the caller owns commit/rollback.
    """

    repositories = uow.repositories
    survivor = repositories.items.get(choice.survivor_id)
    if survivor is None:
        raise LookupError(f"Survivor item {choice.survivor_id} no longer exists")
    losers = repositories.items.get_many(choice.loser_ids)

    outcome = GroupOutcome(survivor_id=choice.survivor_id)
    loser_ids = [loser.require_id() for loser in losers]
    for kind in ReferenceKind:
        _migrate_kind(repositories.references, kind, choice.survivor_id, loser_ids, outcome)
    uow.flush()

    remaining = repositories.references.count_for_items(loser_ids)
    if remaining:
        raise DanglingReferenceError(item_ids=loser_ids, remaining=remaining)

    for loser in losers:
        changed = merge_item_quality(survivor, loser)
        if changed:
            outcome.quality_changes[loser.require_id()] = tuple(changed)
        repositories.items.remove(loser)
        outcome.deleted_ids.append(loser.require_id())
    uow.flush()

    log.debug(
        "Consolidated group into item %s: deleted=%s, moved=%s, merged=%s",
        choice.survivor_id,
        outcome.deleted_ids,
        outcome.moved_count,
        outcome.merged_count,
    )
    return outcome


def _migrate_kind(
    references: ReferenceRepository,
    kind: ReferenceKind,
    survivor_id: int,
    loser_ids: list[int],
    outcome: GroupOutcome,
) -> None:
    rule = rule_for(kind)
    kept_by_owner: dict[OwnerKey, DependentReference] = {}
    for reference in references.for_item(kind, survivor_id):
        kept_by_owner.setdefault(rule.owner_key(reference), reference)

    for loser_id in loser_ids:
        for reference in references.for_item(kind, loser_id):
            owner = rule.owner_key(reference)
            kept = kept_by_owner.get(owner)
            if kept is None:
                reference.item_id = survivor_id
                kept_by_owner[owner] = reference
                outcome.decisions.append(
                    ReferenceDecision(
                        kind=kind,
                        reference_id=reference.require_id(),
                        loser_id=loser_id,
                        action=DedupAction.MOVED,
                    )
                )
                continue

            changed = rule.merge(kept, reference)
            outcome.decisions.append(
                ReferenceDecision(
                    kind=kind,
                    reference_id=reference.require_id(),
                    loser_id=loser_id,
                    action=DedupAction.MERGED,
                    merged_into=kept.require_id(),
                    changed_fields=tuple(changed),
                )
            )
            references.remove(reference)
