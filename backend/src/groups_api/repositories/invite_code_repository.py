"""Invite code and redemption repositories."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update

from groups_api.models.orm.invite_code import GroupInviteCodeORM, GroupInviteCodeRedemptionORM
from groups_api.repositories.base import BaseRepository


class InviteCodeRepository(BaseRepository[GroupInviteCodeORM]):
    """Repository for invite codes."""

    model = GroupInviteCodeORM

    async def get_by_code(self, code: str) -> GroupInviteCodeORM | None:
        """Get invite code by its code string.

        Args:
            code: Normalized invite code

        Returns:
            GroupInviteCodeORM or None if not found
        """
        result = await self.session.execute(
            select(GroupInviteCodeORM).where(GroupInviteCodeORM.code == code)
        )
        return result.scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        """Check whether a code string is already taken."""
        result = await self.session.execute(
            select(GroupInviteCodeORM.id).where(GroupInviteCodeORM.code == code)
        )
        return result.first() is not None

    async def list_active(self, group_id: UUID) -> list[GroupInviteCodeORM]:
        """Get the non-revoked codes of a group, newest first."""
        result = await self.session.execute(
            select(GroupInviteCodeORM)
            .where(
                GroupInviteCodeORM.group_id == group_id,
                GroupInviteCodeORM.revoked_at.is_(None),
            )
            .order_by(GroupInviteCodeORM.created_at.desc())
        )
        return list(result.scalars().all())

    async def try_consume(self, code_id: UUID, now: datetime) -> bool:
        """Atomically count one use of a code if it is still usable.

        The usage check and the increment happen in a single UPDATE, so
        two concurrent redemptions cannot both take the last use.

        Args:
            code_id: Invite code UUID
            now: Reference time for expiry

        Returns:
            True if a use was counted, False if the code is revoked,
            expired or exhausted
        """
        result = await self.session.execute(
            update(GroupInviteCodeORM)
            .where(
                GroupInviteCodeORM.id == code_id,
                GroupInviteCodeORM.revoked_at.is_(None),
                GroupInviteCodeORM.expires_at > now,
                or_(
                    GroupInviteCodeORM.max_uses.is_(None),
                    GroupInviteCodeORM.current_uses < GroupInviteCodeORM.max_uses,
                ),
            )
            .values(current_uses=GroupInviteCodeORM.current_uses + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class RedemptionRepository(BaseRepository[GroupInviteCodeRedemptionORM]):
    """Repository for invite code redemptions."""

    model = GroupInviteCodeRedemptionORM

    async def has_redeemed(self, invite_code_id: UUID, user_id: str) -> bool:
        """Check whether a user already redeemed a code."""
        result = await self.session.execute(
            select(GroupInviteCodeRedemptionORM.id).where(
                GroupInviteCodeRedemptionORM.invite_code_id == invite_code_id,
                GroupInviteCodeRedemptionORM.user_id == user_id,
            )
        )
        return result.first() is not None

    async def list_by_code(self, invite_code_id: UUID) -> list[GroupInviteCodeRedemptionORM]:
        """Get all redemptions of a code in redemption order."""
        result = await self.session.execute(
            select(GroupInviteCodeRedemptionORM)
            .where(GroupInviteCodeRedemptionORM.invite_code_id == invite_code_id)
            .order_by(GroupInviteCodeRedemptionORM.redeemed_at)
        )
        return list(result.scalars().all())
