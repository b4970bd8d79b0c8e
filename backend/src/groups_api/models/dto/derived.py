"""Derived group DTOs."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from groups_api.models.domain.derived import DerivedRuleType


class DerivedRuleCreate(BaseModel):
    """Create derived group rule request."""

    derived_group_id: UUID
    rule_type: DerivedRuleType
    source_group_ids: list[UUID] | None = Field(default=None, max_length=100)
    condition_rules: dict[str, Any] | None = None
    priority: int = 0
