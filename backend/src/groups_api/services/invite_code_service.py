"""Reusable invite code service."""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.config import Settings, get_settings
from groups_api.exceptions import (
    AlreadyMemberError,
    ConflictError,
    DuplicateError,
    GroupNotFoundError,
    InvalidStateError,
    InviteCodeNotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from groups_api.models.domain.category import Category
from groups_api.models.domain.group import AssignmentType, Group
from groups_api.models.domain.recruitment import InviteCode, InviteCodeRedemption
from groups_api.models.dto.group import GroupWithDetails
from groups_api.models.dto.recruitment import (
    GroupByInviteCode,
    InviteCodeCreate,
    InviteCodeStatus,
    RedeemInviteCodeResult,
)
from groups_api.models.orm.base import utcnow
from groups_api.models.orm.invite_code import GroupInviteCodeORM
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.invite_code_repository import (
    InviteCodeRepository,
    RedemptionRepository,
)
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.services.access_policy import can_manage_group, can_moderate_group
from groups_api.services.cache_service import GroupCache
from groups_api.services.membership_writer import MembershipWriter
from groups_api.utils.codes import (
    generate_invite_code,
    is_valid_invite_code_format,
    normalize_invite_code,
)
from groups_api.utils.secure_logging import mask_id

logger = logging.getLogger(__name__)


def _code_status(code: GroupInviteCodeORM) -> InviteCodeStatus:
    """Compute the validity flags of a code at the current time."""
    is_revoked = code.revoked_at is not None
    is_expired = code.expires_at <= utcnow()
    has_remaining_uses = code.max_uses is None or code.current_uses < code.max_uses
    return InviteCodeStatus(
        is_valid=not is_revoked and not is_expired and has_remaining_uses,
        is_expired=is_expired,
        is_revoked=is_revoked,
        has_remaining_uses=has_remaining_uses,
        expires_at=code.expires_at,
    )


class InviteCodeService:
    """Service for owner-issued, usage-limited invite codes."""

    def __init__(
        self,
        session: AsyncSession,
        cache: GroupCache,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with database session and cache."""
        self.session = session
        self.cache = cache
        self.settings = settings or get_settings()
        self.code_repo = InviteCodeRepository(session)
        self.redemption_repo = RedemptionRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)
        self.admin_repo = GroupAdminRepository(session)
        self.memberships = MembershipWriter(session, cache)

    async def create_invite_code(
        self,
        data: InviteCodeCreate,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> InviteCode:
        """Issue a new invite code for a group.

        Args:
            data: Group, optional usage limit and lifetime in days
            requester_id: Requesting owner
            is_system_admin: Requester is a system admin

        Returns:
            Created invite code

        Raises:
            ValidationError: If the lifetime is outside the allowed range
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not the owner
            ConflictError: If no unused code could be generated
        """
        min_days = self.settings.invite_code_min_days
        max_days = self.settings.invite_code_max_days
        if not min_days <= data.expires_in_days <= max_days:
            raise ValidationError(f"Expiration must be between {min_days} and {max_days} days")

        group = await self.group_repo.get_by_id(data.group_id)
        if group is None:
            raise GroupNotFoundError(data.group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can create invite codes")

        expires_at = utcnow() + timedelta(days=data.expires_in_days)
        invite_code = None
        for _ in range(self.settings.invite_code_generation_attempts):
            candidate = generate_invite_code()
            if await self.code_repo.code_exists(candidate):
                continue
            try:
                invite_code = await self.code_repo.create(
                    group_id=group.id,
                    code=candidate,
                    created_by=requester_id,
                    max_uses=data.max_uses,
                    current_uses=0,
                    expires_at=expires_at,
                )
                break
            except ConflictError:
                continue

        if invite_code is None:
            raise ConflictError("Failed to generate a unique invite code")

        await self.session.commit()

        logger.info("Invite code created for group %s by %s", group.id, mask_id(requester_id))
        return InviteCode.model_validate(invite_code)

    async def list_invite_codes(
        self,
        group_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> list[InviteCode]:
        """List a group's non-revoked invite codes.

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not owner/admin
        """
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        is_admin = await self.admin_repo.is_admin(group_id, requester_id)
        if not (is_system_admin or can_moderate_group(group, requester_id, is_admin)):
            raise PermissionDeniedError("Only the owner or an admin can view invite codes")

        return [InviteCode.model_validate(c) for c in await self.code_repo.list_active(group_id)]

    async def list_redemptions(
        self,
        code_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> list[InviteCodeRedemption]:
        """List who redeemed an invite code.

        Raises:
            InviteCodeNotFoundError: If the code does not exist
            PermissionDeniedError: If the requester is not owner/admin
        """
        code = await self.code_repo.get_by_id(code_id)
        if code is None:
            raise InviteCodeNotFoundError(code_id)
        group = await self.group_repo.get_by_id(code.group_id)
        is_admin = await self.admin_repo.is_admin(code.group_id, requester_id)
        if not (is_system_admin or can_moderate_group(group, requester_id, is_admin)):
            raise PermissionDeniedError("Only the owner or an admin can view redemptions")

        return [
            InviteCodeRedemption.model_validate(r)
            for r in await self.redemption_repo.list_by_code(code_id)
        ]

    async def revoke_invite_code(
        self,
        code_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> InviteCode:
        """Revoke an invite code. Revoking twice keeps the first revocation time.

        Raises:
            InviteCodeNotFoundError: If the code does not exist
            PermissionDeniedError: If the requester is not the owner
        """
        code = await self.code_repo.get_by_id(code_id)
        if code is None:
            raise InviteCodeNotFoundError(code_id)
        group = await self.group_repo.get_by_id(code.group_id)
        if not (is_system_admin or can_manage_group(group, requester_id)):
            raise PermissionDeniedError("Only the group owner can revoke invite codes")

        if code.revoked_at is None:
            code = await self.code_repo.update(code_id, revoked_at=utcnow())
            await self.session.commit()
            logger.info("Invite code %s revoked by %s", code_id, mask_id(requester_id))

        return InviteCode.model_validate(code)

    async def _get_code_or_raise(self, code: str) -> GroupInviteCodeORM:
        if not is_valid_invite_code_format(code):
            raise ValidationError("Invalid invite code format")
        invite_code = await self.code_repo.get_by_code(normalize_invite_code(code))
        if invite_code is None:
            raise InviteCodeNotFoundError(message="Invalid invite code")
        return invite_code

    async def redeem_invite_code(self, code: str, user_id: str) -> RedeemInviteCodeResult:
        """Join a group with an invite code.

        The usage counter is taken with a single conditional UPDATE before
        any other write, so concurrent redemptions cannot exceed the limit.

        Args:
            code: Invite code as typed by the user
            user_id: Redeeming user ID

        Returns:
            RedeemInviteCodeResult with the joined group

        Raises:
            ValidationError: If the code is malformed
            InviteCodeNotFoundError: If the code does not exist
            InvalidStateError: If the code is revoked, expired or used up
            DuplicateError: If the user already redeemed this code
            AlreadyMemberError: If the user is already a member
        """
        invite_code = await self._get_code_or_raise(code)

        group = await self.group_repo.get_by_id(invite_code.group_id)
        if group is None:
            raise GroupNotFoundError(invite_code.group_id)

        now = utcnow()
        if invite_code.revoked_at is not None:
            raise InvalidStateError("Invite code has been revoked")
        if invite_code.expires_at <= now:
            raise InvalidStateError("Invite code has expired")
        if invite_code.max_uses is not None and invite_code.current_uses >= invite_code.max_uses:
            raise InvalidStateError("Invite code has reached its usage limit")

        if await self.redemption_repo.has_redeemed(invite_code.id, user_id):
            raise DuplicateError("You have already redeemed this invite code")
        if await self.member_repo.is_member(group.id, user_id):
            raise AlreadyMemberError(group.id)

        # A failure after the counted use undoes the use as well
        async with self.session.begin_nested():
            if not await self.code_repo.try_consume(invite_code.id, now):
                raise InvalidStateError("Invite code has reached its usage limit")

            await self.memberships.add(group.id, user_id, AssignmentType.INVITED)
            try:
                await self.redemption_repo.create(invite_code_id=invite_code.id, user_id=user_id)
            except ConflictError as e:
                raise DuplicateError("You have already redeemed this invite code") from e

        await self.session.refresh(invite_code)
        await self.session.commit()
        await self.memberships.invalidate(group.id, user_id)

        logger.info(
            "User %s redeemed invite code for group %s (%d use(s))",
            mask_id(user_id),
            group.id,
            invite_code.current_uses,
        )
        return RedeemInviteCodeResult(
            success=True,
            group=Group.model_validate(group),
            message=f"Joined {group.name}",
        )

    async def get_group_by_invite_code(self, code: str, user_id: str | None) -> GroupByInviteCode:
        """Preview the group behind an invite code.

        Args:
            code: Invite code as typed by the user
            user_id: Requesting user ID

        Returns:
            GroupByInviteCode with validity flags and whether the user can join

        Raises:
            ValidationError: If the code is malformed
            InviteCodeNotFoundError: If the code does not exist
        """
        invite_code = await self._get_code_or_raise(code)

        group = await self.group_repo.get_with_category(invite_code.group_id)
        if group is None:
            raise GroupNotFoundError(invite_code.group_id)

        status = _code_status(invite_code)
        is_member = bool(user_id) and await self.member_repo.is_member(group.id, user_id)
        member_counts = await self.member_repo.count_by_groups([group.id])

        error_message = None
        if status.is_revoked:
            error_message = "This invite code has been revoked"
        elif status.is_expired:
            error_message = "This invite code has expired"
        elif not status.has_remaining_uses:
            error_message = "This invite code has reached its usage limit"
        elif is_member:
            error_message = "You are already a member of this group"

        details = GroupWithDetails(
            **Group.model_validate(group).model_dump(),
            category=Category.model_validate(group.category) if group.category else None,
            member_count=member_counts.get(group.id, 0),
            is_owner=bool(user_id) and group.owner_id == user_id,
            is_member=is_member,
        )
        return GroupByInviteCode(
            group=details,
            invite_code=status,
            can_join=status.is_valid and not is_member,
            error_message=error_message,
        )
