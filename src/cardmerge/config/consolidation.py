"""Defaults and guard rails for consolidation runs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .env import positive_int_env, require_env_vars

DEFAULT_BATCH_SIZE: Final[int] = 1000
DEFAULT_MAX_UNSCOPED_GROUPS: Final[int] = 5000

CONFLICT_CONFIRM_PHRASE: Final[str] = "MIGRATE WITH CONFLICTS"
UNSCOPED_CONFIRM_PHRASE: Final[str] = "DEDUPLICATE ENTIRE CATALOG"
ARCHIVE_CONFIRM_PHRASE: Final[str] = "ARCHIVE WITH CARDS"


@dataclass(frozen=True, slots=True)
class ConsolidationConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    max_unscoped_groups: int = DEFAULT_MAX_UNSCOPED_GROUPS
    conflict_phrase: str = CONFLICT_CONFIRM_PHRASE
    unscoped_phrase: str = UNSCOPED_CONFIRM_PHRASE
    archive_phrase: str = ARCHIVE_CONFIRM_PHRASE


def get_consolidation_config() -> ConsolidationConfig:
    return ConsolidationConfig(
        batch_size=positive_int_env("CARDMERGE_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        max_unscoped_groups=positive_int_env(
            "CARDMERGE_MAX_UNSCOPED_GROUPS", DEFAULT_MAX_UNSCOPED_GROUPS
        ),
    )


def get_initiator(explicit: str | None = None) -> str:
    """Resolve the operator identity recorded on audit logs."""

    if explicit is not None and explicit.strip():
        return explicit.strip()
    return require_env_vars(("CARDMERGE_INITIATOR",))["CARDMERGE_INITIATOR"]
