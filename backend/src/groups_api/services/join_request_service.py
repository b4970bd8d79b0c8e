"""Join request service for approval-mode groups."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from groups_api.config import Settings, get_settings
from groups_api.exceptions import (
    AlreadyMemberError,
    ConflictError,
    DuplicateError,
    GroupNotFoundError,
    InvalidStateError,
    JoinRequestNotFoundError,
    PermissionDeniedError,
)
from groups_api.models.domain.group import AssignmentType, JoinMode
from groups_api.models.domain.recruitment import JoinRequest, JoinRequestStatus
from groups_api.models.dto.recruitment import JoinRequestCreate, JoinRequestWithDetails
from groups_api.models.orm.base import utcnow
from groups_api.models.orm.group import GroupORM
from groups_api.models.orm.join_request import GroupJoinRequestORM
from groups_api.repositories.group_repository import GroupRepository
from groups_api.repositories.join_request_repository import JoinRequestRepository
from groups_api.repositories.membership_repository import (
    GroupAdminRepository,
    GroupMemberRepository,
)
from groups_api.services.access_policy import can_moderate_group
from groups_api.services.cache_service import GroupCache
from groups_api.services.character_lookup import CharacterLookup, resolve_display_names
from groups_api.services.membership_writer import MembershipWriter
from groups_api.utils.secure_logging import mask_id

logger = logging.getLogger(__name__)


class JoinRequestService:
    """Service for join requests.

    A request moves from pending to approved, rejected or cancelled exactly
    once. Approving a request adds the member and cancels any other pending
    request the same user has for the group.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: GroupCache,
        character_lookup: CharacterLookup | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize service with database session and collaborators."""
        self.session = session
        self.cache = cache
        self.character_lookup = character_lookup
        self.settings = settings or get_settings()
        self.request_repo = JoinRequestRepository(session)
        self.group_repo = GroupRepository(session)
        self.member_repo = GroupMemberRepository(session)
        self.admin_repo = GroupAdminRepository(session)
        self.memberships = MembershipWriter(session, cache)

    async def create_join_request(self, data: JoinRequestCreate, user_id: str) -> JoinRequest:
        """Ask to join an approval-mode group.

        Args:
            data: Target group and optional reason
            user_id: Requesting user ID

        Returns:
            Created pending request

        Raises:
            GroupNotFoundError: If the group does not exist
            InvalidStateError: If the group does not take join requests
            AlreadyMemberError: If the user is already a member
            DuplicateError: If the user already has a pending request
        """
        group = await self.group_repo.get_by_id(data.group_id)
        if group is None:
            raise GroupNotFoundError(data.group_id)
        if group.join_mode != JoinMode.APPROVAL:
            raise InvalidStateError("This group does not accept join requests")
        if await self.member_repo.is_member(group.id, user_id):
            raise AlreadyMemberError(group.id)
        if await self.request_repo.get_pending(group.id, user_id) is not None:
            raise DuplicateError("You already have a pending request for this group")

        reason = data.reason.strip() if data.reason else None
        try:
            request = await self.request_repo.create(
                group_id=group.id,
                user_id=user_id,
                reason=reason or None,
                status=JoinRequestStatus.PENDING.value,
            )
        except ConflictError as e:
            raise DuplicateError("You already have a pending request for this group") from e

        await self.session.commit()

        logger.info("User %s requested to join group %s", mask_id(user_id), group.id)
        return JoinRequest.model_validate(request)

    async def list_join_requests(
        self,
        group_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> list[JoinRequestWithDetails]:
        """List a group's pending requests with requester display names.

        Raises:
            GroupNotFoundError: If the group does not exist
            PermissionDeniedError: If the requester is not owner/admin
        """
        group = await self.group_repo.get_by_id(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        await self._require_moderator(group, requester_id, is_system_admin)

        requests = await self.request_repo.list_pending(group_id)
        names = await resolve_display_names(
            self.character_lookup,
            [r.user_id for r in requests],
            self.settings.fanout_concurrency,
        )
        return [
            JoinRequestWithDetails(
                **JoinRequest.model_validate(r).model_dump(),
                user_display_name=names[r.user_id].name if r.user_id in names else None,
            )
            for r in requests
        ]

    async def _require_moderator(self, group: GroupORM, requester_id: str, is_system_admin: bool) -> None:
        if is_system_admin:
            return
        is_admin = await self.admin_repo.is_admin(group.id, requester_id)
        if not can_moderate_group(group, requester_id, is_admin):
            raise PermissionDeniedError("Only the owner or an admin can review join requests")

    async def _get_pending_for_review(
        self,
        request_id: UUID,
        requester_id: str,
        is_system_admin: bool,
    ) -> tuple[GroupJoinRequestORM, GroupORM]:
        request = await self.request_repo.get_by_id(request_id)
        if request is None:
            raise JoinRequestNotFoundError(request_id)
        group = await self.group_repo.get_by_id(request.group_id)
        if group is None:
            raise GroupNotFoundError(request.group_id)
        await self._require_moderator(group, requester_id, is_system_admin)
        if request.status != JoinRequestStatus.PENDING:
            raise InvalidStateError(f"Join request has already been {request.status}")
        return request, group

    async def approve_join_request(
        self,
        request_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> JoinRequest:
        """Approve a pending request and add the requester to the group.

        Args:
            request_id: Join request UUID
            requester_id: Reviewing owner or admin
            is_system_admin: Requester is a system admin

        Returns:
            Approved request

        Raises:
            JoinRequestNotFoundError: If the request does not exist
            PermissionDeniedError: If the requester is not owner/admin
            InvalidStateError: If the request is not pending
            AlreadyMemberError: If the requester has meanwhile joined
        """
        request, group = await self._get_pending_for_review(request_id, requester_id, is_system_admin)
        if await self.member_repo.is_member(group.id, request.user_id):
            raise AlreadyMemberError(group.id)

        # Approve first so the membership cleanup only cancels the others.
        # A failed insert leaves the request pending.
        async with self.session.begin_nested():
            request = await self.request_repo.update(
                request.id,
                status=JoinRequestStatus.APPROVED.value,
                responded_at=utcnow(),
                responded_by=requester_id,
            )
            await self.memberships.add(group.id, request.user_id, AssignmentType.MANUAL)
        await self.session.commit()
        await self.memberships.invalidate(group.id, request.user_id)

        logger.info(
            "Join request %s approved by %s",
            request.id,
            mask_id(requester_id),
        )
        return JoinRequest.model_validate(request)

    async def reject_join_request(
        self,
        request_id: UUID,
        requester_id: str,
        is_system_admin: bool = False,
    ) -> JoinRequest:
        """Reject a pending request.

        Raises:
            JoinRequestNotFoundError: If the request does not exist
            PermissionDeniedError: If the requester is not owner/admin
            InvalidStateError: If the request is not pending
        """
        request, _ = await self._get_pending_for_review(request_id, requester_id, is_system_admin)

        request = await self.request_repo.update(
            request.id,
            status=JoinRequestStatus.REJECTED.value,
            responded_at=utcnow(),
            responded_by=requester_id,
        )
        await self.session.commit()

        logger.info("Join request %s rejected by %s", request.id, mask_id(requester_id))
        return JoinRequest.model_validate(request)

    async def cancel_join_request(self, request_id: UUID, user_id: str) -> JoinRequest:
        """Withdraw one's own pending request.

        Raises:
            JoinRequestNotFoundError: If the request does not exist
            PermissionDeniedError: If the request belongs to someone else
            InvalidStateError: If the request is not pending
        """
        request = await self.request_repo.get_by_id(request_id)
        if request is None:
            raise JoinRequestNotFoundError(request_id)
        if request.user_id != user_id:
            raise PermissionDeniedError("You can only cancel your own join requests")
        if request.status != JoinRequestStatus.PENDING:
            raise InvalidStateError(f"Join request has already been {request.status}")

        request = await self.request_repo.update(
            request.id,
            status=JoinRequestStatus.CANCELLED.value,
            responded_at=utcnow(),
        )
        await self.session.commit()

        logger.info("Join request %s cancelled by requester", request.id)
        return JoinRequest.model_validate(request)
