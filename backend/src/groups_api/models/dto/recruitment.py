"""Recruitment DTOs."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from groups_api.models.domain.category import Visibility
from groups_api.models.domain.group import Group
from groups_api.models.domain.recruitment import Invitation, InviteCode, JoinRequest
from groups_api.models.dto.group import GroupWithDetails


class InvitationCreate(BaseModel):
    """Invite a user to a group by display name."""

    group_id: UUID
    display_name: str = Field(min_length=1, max_length=255)


class InvitationGroupSummary(BaseModel):
    """Group fields shown alongside an invitation."""

    id: UUID
    name: str
    description: str | None = None
    visibility: Visibility


class InvitationWithDetails(Invitation):
    """Invitation enriched with group and display names."""

    group: InvitationGroupSummary | None = None
    inviter_name: str | None = None
    invitee_name: str | None = None


class InviteCodeCreate(BaseModel):
    """Create invite code request.

    The expiry range is checked against configuration by the service.
    """

    group_id: UUID
    max_uses: int | None = Field(default=None, ge=1)
    expires_in_days: int


class InviteCodeCreated(BaseModel):
    """Create invite code response."""

    code: InviteCode


class RedeemInviteCodeResult(BaseModel):
    """Redeem invite code response."""

    success: bool
    group: Group
    message: str | None = None


class InviteCodeStatus(BaseModel):
    """Validity flags of an invite code."""

    is_valid: bool
    is_expired: bool
    is_revoked: bool
    has_remaining_uses: bool
    expires_at: datetime


class GroupByInviteCode(BaseModel):
    """Preview of the group behind an invite code."""

    group: GroupWithDetails
    invite_code: InviteCodeStatus
    can_join: bool
    error_message: str | None = None


class JoinRequestCreate(BaseModel):
    """Create join request."""

    group_id: UUID
    reason: str | None = Field(default=None, max_length=2000)


class JoinRequestWithDetails(JoinRequest):
    """Join request enriched with the requester's display name."""

    user_display_name: str | None = None
