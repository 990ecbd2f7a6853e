"""Base building block: database-assigned integer identity."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(eq=False, kw_only=True)
class Entity:
    """Row identity is assigned by the database on first flush.

    Ids grow with creation order, which is what survivor tie-breaking and
    group member ordering rely on.
    """

    id: int | None = None

    def require_id(self) -> int:
        if self.id is None:
            raise ValueError(f"{type(self).__name__} has not been persisted yet")
        return self.id
