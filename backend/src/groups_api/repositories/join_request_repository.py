"""Join request repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from groups_api.models.orm.join_request import GroupJoinRequestORM
from groups_api.repositories.base import BaseRepository


class JoinRequestRepository(BaseRepository[GroupJoinRequestORM]):
    """Repository for join requests."""

    model = GroupJoinRequestORM

    async def get_pending(self, group_id: UUID, user_id: str) -> GroupJoinRequestORM | None:
        """Get the pending request of a user for a group, if any."""
        result = await self.session.execute(
            select(GroupJoinRequestORM).where(
                GroupJoinRequestORM.group_id == group_id,
                GroupJoinRequestORM.user_id == user_id,
                GroupJoinRequestORM.status == "pending",
            )
        )
        return result.scalars().first()

    async def list_pending(self, group_id: UUID) -> list[GroupJoinRequestORM]:
        """Get the pending requests of a group, oldest first."""
        result = await self.session.execute(
            select(GroupJoinRequestORM)
            .where(
                GroupJoinRequestORM.group_id == group_id,
                GroupJoinRequestORM.status == "pending",
            )
            .order_by(GroupJoinRequestORM.created_at)
        )
        return list(result.scalars().all())

    async def cancel_pending(
        self,
        group_id: UUID,
        user_id: str,
        now: datetime,
    ) -> int:
        """Cancel a user's pending requests for a group.

        Args:
            group_id: Group UUID
            user_id: Requesting user ID
            now: Time recorded as the response time

        Returns:
            Number of requests cancelled
        """
        return await self.update_where(
            GroupJoinRequestORM.group_id == group_id,
            GroupJoinRequestORM.user_id == user_id,
            GroupJoinRequestORM.status == "pending",
            status="cancelled",
            responded_at=now,
        )
