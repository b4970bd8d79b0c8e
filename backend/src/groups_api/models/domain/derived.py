"""Derived group domain models."""

from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class DerivedRuleType(StrEnum):
    """Rule kinds for derived groups.

    Only UNION and PARENT_CHILD contribute members; ROLE_BASED and
    CONDITIONAL are stored but not evaluated.
    """

    PARENT_CHILD = "parent_child"
    ROLE_BASED = "role_based"
    UNION = "union"
    CONDITIONAL = "conditional"


class DerivedRule(BaseModel):
    """Derived group rule domain model."""

    id: UUID
    derived_group_id: UUID
    rule_type: DerivedRuleType
    source_group_ids: list[UUID] | None = None
    condition_rules: dict[str, Any] | None = None
    priority: int = 0
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class DerivedSyncResult(BaseModel):
    """Outcome of one derived group reconciliation."""

    derived_group_id: UUID
    rules_evaluated: int = 0
    added: list[str] = []
    removed: list[str] = []
    skipped: list[str] = []

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed)
