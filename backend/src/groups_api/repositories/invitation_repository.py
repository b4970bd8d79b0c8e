"""Group invitation repository."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from groups_api.models.orm.invitation import GroupInvitationORM
from groups_api.repositories.base import BaseRepository


class InvitationRepository(BaseRepository[GroupInvitationORM]):
    """Repository for group invitations."""

    model = GroupInvitationORM

    async def get_pending(self, group_id: UUID, invitee_user_id: str) -> GroupInvitationORM | None:
        """Get the pending invitation for a user in a group, if any."""
        result = await self.session.execute(
            select(GroupInvitationORM).where(
                GroupInvitationORM.group_id == group_id,
                GroupInvitationORM.invitee_user_id == invitee_user_id,
                GroupInvitationORM.status == "pending",
            )
        )
        return result.scalar_one_or_none()

    async def list_pending_for_user(self, user_id: str, now: datetime) -> list[GroupInvitationORM]:
        """Get a user's pending, unexpired invitations, newest first.

        Args:
            user_id: Invitee user ID
            now: Reference time for expiry

        Returns:
            List of GroupInvitationORM
        """
        result = await self.session.execute(
            select(GroupInvitationORM)
            .where(
                GroupInvitationORM.invitee_user_id == user_id,
                GroupInvitationORM.status == "pending",
                GroupInvitationORM.expires_at > now,
            )
            .order_by(GroupInvitationORM.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_group(self, group_id: UUID) -> list[GroupInvitationORM]:
        """Get all invitations of a group, newest first."""
        result = await self.session.execute(
            select(GroupInvitationORM)
            .where(GroupInvitationORM.group_id == group_id)
            .order_by(GroupInvitationORM.created_at.desc())
        )
        return list(result.scalars().all())

    async def expire_overdue(self, now: datetime) -> int:
        """Flip every overdue pending invitation to expired.

        Args:
            now: Reference time for expiry

        Returns:
            Number of invitations expired
        """
        return await self.update_where(
            GroupInvitationORM.status == "pending",
            GroupInvitationORM.expires_at <= now,
            status="expired",
        )
