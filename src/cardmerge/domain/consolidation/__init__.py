"""Catalog consolidation: deduplication and container moves.

Flow for a deduplication run:
1) bulk-fetch duplicate candidates and group them by identity key
2) pick one survivor per group
3) per batch, re-plan each group and fold loser references onto the survivor
4) record every decision on the run's deduplication log

Container moves follow preview -> confirm -> apply, and their logs can be
replayed in reverse.
"""

from __future__ import annotations

from .audit import LogEntryView, LogFilter, LogSummary, get_log_entries, get_logs
from .containers import (
    INSERT_KEYWORDS,
    ConflictPair,
    MovePreview,
    apply_container_move,
    archive_container,
    build_move_preview,
    preview_container_move,
    rollback_container_move,
    suggests_insert_subset,
    unarchive_container,
)
from .context import MoveOptions, RunContext
from .deduplication import (
    DedupPlan,
    DuplicateGroup,
    apply_deduplication,
    plan_deduplication,
    preview_deduplication,
)
from .errors import (
    ConflictError,
    ConsolidationError,
    DanglingReferenceError,
    RollbackStateError,
    ScaleGuardError,
    TransactionFailure,
    ValidationError,
)
from .grouping import IdentityGroup, group_by_identity
from .migrator import GroupOutcome, ReferenceDecision, consolidate_group
from .results import ApplyResult, ArchiveResult, FailureDetail, RollbackResult
from .rules import REFERENCE_RULES, ReferenceRule, concat_text, merge_item_quality, rule_for
from .runner import BatchProgress, BatchRunner, UnitOfWorkFactory, chunked
from .survivor import SurvivorChoice, select_survivor, survivor_rank

__all__ = [
    "INSERT_KEYWORDS",
    "REFERENCE_RULES",
    "ApplyResult",
    "ArchiveResult",
    "BatchProgress",
    "BatchRunner",
    "ConflictError",
    "ConflictPair",
    "ConsolidationError",
    "DanglingReferenceError",
    "DedupPlan",
    "DuplicateGroup",
    "FailureDetail",
    "GroupOutcome",
    "IdentityGroup",
    "LogEntryView",
    "LogFilter",
    "LogSummary",
    "MoveOptions",
    "MovePreview",
    "ReferenceDecision",
    "ReferenceRule",
    "RollbackResult",
    "RollbackStateError",
    "RunContext",
    "ScaleGuardError",
    "SurvivorChoice",
    "TransactionFailure",
    "UnitOfWorkFactory",
    "ValidationError",
    "apply_container_move",
    "apply_deduplication",
    "archive_container",
    "build_move_preview",
    "chunked",
    "concat_text",
    "consolidate_group",
    "get_log_entries",
    "get_logs",
    "group_by_identity",
    "merge_item_quality",
    "plan_deduplication",
    "preview_container_move",
    "preview_deduplication",
    "rollback_container_move",
    "rule_for",
    "select_survivor",
    "suggests_insert_subset",
    "survivor_rank",
    "unarchive_container",
]
