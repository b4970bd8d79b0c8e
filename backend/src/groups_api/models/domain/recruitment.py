"""Recruitment domain models: invitations, invite codes and join requests."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel


class InvitationStatus(StrEnum):
    """Invitation lifecycle state."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class JoinRequestStatus(StrEnum):
    """Join request lifecycle state."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Invitation(BaseModel):
    """Invitation domain model."""

    id: UUID
    group_id: UUID
    inviter_id: str
    invitee_user_id: str
    invitee_external_id: str | None = None
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime
    responded_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class InviteCode(BaseModel):
    """Invite code domain model."""

    id: UUID
    group_id: UUID
    code: str
    created_by: str
    max_uses: int | None = None
    current_uses: int = 0
    expires_at: datetime
    created_at: datetime
    revoked_at: datetime | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True


class InviteCodeRedemption(BaseModel):
    """Invite code redemption domain model."""

    id: UUID
    invite_code_id: UUID
    user_id: str
    redeemed_at: datetime

    class Config:
        """Pydantic config."""

        from_attributes = True


class JoinRequest(BaseModel):
    """Join request domain model."""

    id: UUID
    group_id: UUID
    user_id: str
    reason: str | None = None
    status: JoinRequestStatus
    created_at: datetime
    responded_at: datetime | None = None
    responded_by: str | None = None

    class Config:
        """Pydantic config."""

        from_attributes = True
