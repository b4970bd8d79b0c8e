"""Derived group rule repository."""

from uuid import UUID

from sqlalchemy import select

from groups_api.models.orm.derived_rule import DerivedGroupRuleORM
from groups_api.repositories.base import BaseRepository


class DerivedRuleRepository(BaseRepository[DerivedGroupRuleORM]):
    """Repository for derived group rules."""

    model = DerivedGroupRuleORM

    async def list_for_group(self, derived_group_id: UUID, active_only: bool = False) -> list[DerivedGroupRuleORM]:
        """Get the rules of a derived group, highest priority first.

        Args:
            derived_group_id: Derived group UUID
            active_only: Only return active rules

        Returns:
            List of DerivedGroupRuleORM
        """
        query = select(DerivedGroupRuleORM).where(
            DerivedGroupRuleORM.derived_group_id == derived_group_id
        )
        if active_only:
            query = query.where(DerivedGroupRuleORM.is_active.is_(True))
        result = await self.session.execute(
            query.order_by(DerivedGroupRuleORM.priority.desc(), DerivedGroupRuleORM.created_at)
        )
        return list(result.scalars().all())
