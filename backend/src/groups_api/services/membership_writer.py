"""Membership writes shared by every join and leave path."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.exceptions import AlreadyMemberError, ConflictError
from groups_api.models.domain.group import AssignmentType
from groups_api.models.orm.base import utcnow
from groups_api.models.orm.membership import GroupMemberORM
from groups_api.repositories.join_request_repository import JoinRequestRepository
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.services.cache_service import GroupCache
from groups_api.utils.secure_logging import mask_id

logger = logging.getLogger(__name__)


class MembershipWriter:
    """Inserts and removes membership rows with their side effects.

    Open join, invitation accept, code redemption and join-request approval
    all land here so that each of them leaves no pending join request behind.
    """

    def __init__(self, session: AsyncSession, cache: GroupCache) -> None:
        """Initialize writer with database session and cache."""
        self.session = session
        self.cache = cache
        self.member_repo = GroupMemberRepository(session)
        self.admin_repo = GroupAdminRepository(session)
        self.join_request_repo = JoinRequestRepository(session)

    async def add(
        self,
        group_id: UUID,
        user_id: str,
        assignment_type: AssignmentType = AssignmentType.MANUAL,
    ) -> GroupMemberORM:
        """Insert a membership and cancel the user's pending join requests.

        Args:
            group_id: Group UUID
            user_id: Joining user ID
            assignment_type: Path the membership came from

        Returns:
            Created GroupMemberORM

        Raises:
            AlreadyMemberError: If the user is already a member
        """
        try:
            member = await self.member_repo.create(
                group_id=group_id,
                user_id=user_id,
                assignment_type=assignment_type.value,
            )
        except ConflictError as e:
            raise AlreadyMemberError(group_id) from e

        cancelled = await self.join_request_repo.cancel_pending(group_id, user_id, utcnow())
        if cancelled:
            logger.info(
                "Cancelled %d pending join request(s) for user %s after joining",
                cancelled,
                mask_id(user_id),
            )
        return member

    async def remove(self, group_id: UUID, user_id: str) -> bool:
        """Remove a user's admin designation, then their membership.

        Returns:
            True if a membership was removed
        """
        await self.admin_repo.remove(group_id, user_id)
        return await self.member_repo.remove(group_id, user_id)

    async def invalidate(self, group_id: UUID, *user_ids: str) -> None:
        """Drop the group's member list and the given users' permissions."""
        await self.cache.invalidate_member_ids(group_id)
        if user_ids:
            await self.cache.invalidate_users_permissions(set(user_ids))
