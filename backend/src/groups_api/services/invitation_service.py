"""Direct invitation service."""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.config import Settings, get_settings
from groups_api.exceptions import (
    AlreadyMemberError,
    ConflictError,
    DuplicateError,
    GoneError,
    GroupNotFoundError,
    InvalidStateError,
    InvitationNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
)
from groups_api.models.domain.group import AssignmentType, Group
from groups_api.models.domain.recruitment import Invitation, InvitationStatus
from groups_api.models.dto.recruitment import (
    InvitationCreate,
    InvitationGroupSummary,
    InvitationWithDetails,
)
from groups_api.models.orm.base import utcnow
from groups_api.models.orm.invitation import GroupInvitationORM
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.invitation_repository import InvitationRepository
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.services.access_policy import can_moderate_group
from groups_api.services.cache_service import GroupCache
from groups_api.services.character_lookup import CharacterLookup, resolve_display_names
from groups_api.services.membership_writer import MembershipWriter
from groups_api.utils.secure_logging import mask_id
from groups_api.utils.validation import require_text

logger = logging.getLogger(__name__)


class InvitationService:
    """Service for invitations sent by group owners and admins.

    Invitees are addressed by their main character's display name, which is
    resolved to a user through the character lookup.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: GroupCache,
        character_lookup: CharacterLookup,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with database session and collaborators."""
        self.session = session
        self.cache = cache
        self.character_lookup = character_lookup
        self.settings = settings or get_settings()
        self.invitation_repo = InvitationRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)
        self.admin_repo = GroupAdminRepository(session)
        self.memberships = MembershipWriter(session, cache)

    async def create_invitation(
        self,
        data: InvitationCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> Invitation:
        """Invite a user to a group by display name.

        Args:
            data: Target group and invitee display name
            requester_id: Requesting owner or admin
            is_system_admin: Requester is a system admin

        Returns:
            Created pending invitation

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not owner/admin
            UserNotFoundError: If no user has that display name
            AlreadyMemberError: If the invitee is already a member
            DuplicateError: If a pending invitation already exists
        """
        display_name = require_text(data.display_name, "display_name")

        group = await self.group_repo.get_by_id(data.group_id)
        if group is None:
            raise GroupNotFoundError(data.group_id)
        is_admin = await self.admin_repo.is_admin(group.id, requester_id)
        if not (is_system_admin or can_moderate_group(group, requester_id, is_admin)):
            raise PermissionDeniedError("Only the owner or an admin can invite users")

        match = await self.character_lookup.find_user_by_display_name(display_name)
        if match is None:
            raise UserNotFoundError(message=f"No user found with character name '{display_name}'")

        if await self.member_repo.is_member(group.id, match.user_id):
            raise AlreadyMemberError(group.id)
        if await self.invitation_repo.get_pending(group.id, match.user_id) is not None:
            raise DuplicateError("User already has a pending invitation to this group")

        try:
            invitation = await self.invitation_repo.create(
                group_id=group.id,
                inviter_id=requester_id,
                invitee_user_id=match.user_id,
                invitee_external_id=match.external_id,
                status=InvitationStatus.PENDING.value,
                expires_at=utcnow() + timedelta(days=self.settings.invitation_ttl_days),
            )
        except ConflictError as e:
            raise DuplicateError("User already has a pending invitation to this group") from e

        await self.session.commit()

        logger.info(
            "User %s invited to group %s by %s",
            mask_id(match.user_id),
            group.id,
            mask_id(requester_id),
        )
        return Invitation.model_validate(invitation)

    async def list_pending_invitations(self, user_id: str) -> list[InvitationWithDetails]:
        """List a user's pending, unexpired invitations.

        Args:
            user_id: Invitee user ID

        Returns:
            List of InvitationWithDetails, newest first
        """
        invitations = await self.invitation_repo.list_pending_for_user(user_id, utcnow())
        return await self._enrich(invitations)

    async def get_group_invitations(
        self,
        group_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> list[InvitationWithDetails]:
        """List a group's pending invitations.

        Args:
            group_id: Group UUID
            requester_id: Requesting owner or admin
            is_system_admin: Requester is a system admin

        Returns:
            List of InvitationWithDetails, newest first

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not owner/admin
        """
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        is_admin = await self.admin_repo.is_admin(group_id, requester_id)
        if not (is_system_admin or can_moderate_group(group, requester_id, is_admin)):
            raise PermissionDeniedError("Only the owner or an admin can view invitations")

        invitations = [
            inv
            for inv in await self.invitation_repo.list_by_group(group_id)
            if inv.status == InvitationStatus.PENDING
        ]
        return await self._enrich(invitations)

    async def _enrich(self, invitations: list[GroupInvitationORM]) -> list[InvitationWithDetails]:
        if not invitations:
            return []

        groups = await self.group_repo.get_many(list({inv.group_id for inv in invitations}))
        names = await resolve_display_names(
            self.character_lookup,
            [inv.inviter_id for inv in invitations] + [inv.invitee_user_id for inv in invitations],
            self.settings.fanout_concurrency,
        )

        result = []
        for invitation in invitations:
            group = groups.get(invitation.group_id)
            inviter = names.get(invitation.inviter_id)
            invitee = names.get(invitation.invitee_user_id)
            result.append(
                InvitationWithDetails(
                    **Invitation.model_validate(invitation).model_dump(),
                    group=InvitationGroupSummary(
                        id=group.id,
                        name=group.name,
                        description=group.description,
                        visibility=group.visibility,
                    )
                    if group
                    else None,
                    inviter_name=inviter.name if inviter else None,
                    invitee_name=invitee.name if invitee else None,
                )
            )
        return result

    async def _get_addressed_pending(self, invitation_id: UUID, user_id: str) -> GroupInvitationORM:
        invitation = await self.invitation_repo.get_by_id(invitation_id)
        if invitation is None:
            raise InvitationNotFoundError(invitation_id)
        if invitation.invitee_user_id != user_id:
            raise PermissionDeniedError("This invitation is not addressed to you")
        if invitation.status != InvitationStatus.PENDING:
            raise InvalidStateError(f"Invitation has already been {invitation.status}")
        return invitation

    async def accept_invitation(self, invitation_id: UUID, user_id: str) -> Group:
        """Accept an invitation and join the group.

        An overdue invitation is marked expired before the error is raised.

        Args:
            invitation_id: Invitation UUID
            user_id: Accepting user ID

        Returns:
            The joined group

        Raises:
            InvitationNotFoundError: If the invitation does not exist
            PermissionDeniedError: If the invitation is addressed to someone else
            InvalidStateError: If the invitation is no longer pending
            GoneError: If the invitation has expired
            AlreadyMemberError: If the user is already a member
        """
        invitation = await self._get_addressed_pending(invitation_id, user_id)

        now = utcnow()
        if invitation.expires_at <= now:
            await self.invitation_repo.update(invitation.id, status=InvitationStatus.EXPIRED.value)
            await self.session.commit()
            raise GoneError("Invitation has expired")

        group = await self.group_repo.get_by_id(invitation.group_id)
        if group is None:
            raise GroupNotFoundError(invitation.group_id)
        if await self.member_repo.is_member(group.id, user_id):
            raise AlreadyMemberError(group.id)

        await self.memberships.add(group.id, user_id, AssignmentType.INVITED)
        await self.invitation_repo.update(
            invitation.id,
            status=InvitationStatus.ACCEPTED.value,
            responded_at=now,
        )
        await self.session.commit()
        await self.memberships.invalidate(group.id, user_id)

        logger.info("User %s accepted invitation to group %s", mask_id(user_id), group.id)
        return Group.model_validate(group)

    async def decline_invitation(self, invitation_id: UUID, user_id: str) -> None:
        """Decline an invitation.

        Args:
            invitation_id: Invitation UUID
            user_id: Declining user ID

        Raises:
            InvitationNotFoundError: If the invitation does not exist
            PermissionDeniedError: If the invitation is addressed to someone else
            InvalidStateError: If the invitation is no longer pending
        """
        invitation = await self._get_addressed_pending(invitation_id, user_id)

        await self.invitation_repo.update(
            invitation.id,
            status=InvitationStatus.DECLINED.value,
            responded_at=utcnow(),
        )
        await self.session.commit()

        logger.info("User %s declined invitation %s", mask_id(user_id), invitation.id)

    async def expire_stale_invitations(self) -> int:
        """Mark every overdue pending invitation as expired.

        Returns:
            Number of invitations expired
        """
        expired = await self.invitation_repo.expire_overdue(utcnow())
        await self.session.commit()
        if expired:
            logger.info("Expired %d stale invitation(s)", expired)
        return expired
