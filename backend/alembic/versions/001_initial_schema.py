"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create categories table
    op.create_table(
        "categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", sa.String(20), server_default="public", nullable=False),
        sa.Column("allow_group_creation", sa.String(20), server_default="anyone", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_categories_visibility", "categories", ["visibility"])

    # Create groups table
    op.create_table(
        "groups",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("visibility", sa.String(20), server_default="public", nullable=False),
        sa.Column("join_mode", sa.String(20), server_default="open", nullable=False),
        sa.Column("group_type", sa.String(20), server_default="standard", nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("category_id", "name", name="uq_group_name_per_category"),
    )
    op.create_index("ix_groups_category_id", "groups", ["category_id"])
    op.create_index("ix_groups_visibility", "groups", ["visibility"])
    op.create_index("ix_groups_owner_id", "groups", ["owner_id"])

    # Create group_members table
    op.create_table(
        "group_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("assignment_type", sa.String(20), server_default="manual", nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("idx_group_members_user_group", "group_members", ["user_id", "group_id"])

    # Create group_admins table (owner never stored here)
    op.create_table(
        "group_admins",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("designated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_admin"),
    )
    op.create_index("ix_group_admins_group_id", "group_admins", ["group_id"])
    op.create_index("idx_group_admins_user_group", "group_admins", ["user_id", "group_id"])

    # Create group_invitations table
    op.create_table(
        "group_invitations",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("inviter_id", sa.String(255), nullable=False),
        sa.Column("invitee_user_id", sa.String(255), nullable=False),
        sa.Column("invitee_external_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_group_invitations_group_id", "group_invitations", ["group_id"])
    op.create_index("ix_group_invitations_invitee_user_id", "group_invitations", ["invitee_user_id"])
    op.create_index("ix_group_invitations_status", "group_invitations", ["status"])
    op.create_index("ix_group_invitations_expires_at", "group_invitations", ["expires_at"])
    op.create_index(
        "uq_group_invitation_pending",
        "group_invitations",
        ["group_id", "invitee_user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # Create group_invite_codes table
    op.create_table(
        "group_invite_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("current_uses", sa.Integer(), server_default="0", nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_group_invite_codes_group_id", "group_invite_codes", ["group_id"])
    op.create_index("ix_group_invite_codes_expires_at", "group_invite_codes", ["expires_at"])

    # Create group_invite_code_redemptions table
    op.create_table(
        "group_invite_code_redemptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("invite_code_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invite_code_id"], ["group_invite_codes.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("invite_code_id", "user_id", name="uq_invite_code_redemption"),
    )
    op.create_index(
        "ix_group_invite_code_redemptions_invite_code_id",
        "group_invite_code_redemptions",
        ["invite_code_id"],
    )
    op.create_index(
        "ix_group_invite_code_redemptions_user_id",
        "group_invite_code_redemptions",
        ["user_id"],
    )

    # Create group_join_requests table
    op.create_table(
        "group_join_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), server_default="pending", nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("responded_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_group_join_requests_group_id", "group_join_requests", ["group_id"])
    op.create_index("ix_group_join_requests_user_id", "group_join_requests", ["user_id"])
    op.create_index("ix_group_join_requests_status", "group_join_requests", ["status"])
    op.create_index(
        "uq_group_join_request_pending",
        "group_join_requests",
        ["group_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # Create permission_categories table
    op.create_table(
        "permission_categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    # Create permissions table
    op.create_table(
        "permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("urn", sa.String(500), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["category_id"], ["permission_categories.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("urn"),
    )
    op.create_index("ix_permissions_category_id", "permissions", ["category_id"])

    # Create group_permissions table (global reference XOR group-scoped custom fields)
    op.create_table(
        "group_permissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("permission_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("custom_urn", sa.String(500), nullable=True),
        sa.Column("custom_name", sa.String(255), nullable=True),
        sa.Column("custom_description", sa.Text(), nullable=True),
        sa.Column("target_type", sa.String(30), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["permission_id"], ["permissions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "permission_id", name="uq_group_permission"),
        sa.UniqueConstraint("group_id", "custom_urn", name="uq_group_permission_custom_urn"),
        sa.CheckConstraint(
            "(permission_id IS NOT NULL AND custom_urn IS NULL AND custom_name IS NULL)"
            " OR (permission_id IS NULL AND custom_urn IS NOT NULL AND custom_name IS NOT NULL)",
            name="ck_group_permission_form",
        ),
    )
    op.create_index("ix_group_permissions_group_id", "group_permissions", ["group_id"])
    op.create_index("ix_group_permissions_permission_id", "group_permissions", ["permission_id"])

    # Create derived_group_rules table
    op.create_table(
        "derived_group_rules",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("derived_group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("rule_type", sa.String(30), nullable=False),
        sa.Column("source_group_ids", postgresql.JSONB(), nullable=True),
        sa.Column("condition_rules", postgresql.JSONB(), nullable=True),
        sa.Column("priority", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["derived_group_id"], ["groups.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_derived_group_rules_derived_group_id", "derived_group_rules", ["derived_group_id"])

    # Create group_discord_servers table
    op.create_table(
        "group_discord_servers",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("discord_server_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("auto_invite", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("auto_assign_roles", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("group_id", "discord_server_id", name="uq_group_discord_server"),
    )
    op.create_index("ix_group_discord_servers_group_id", "group_discord_servers", ["group_id"])
    op.create_index("ix_group_discord_servers_discord_server_id", "group_discord_servers", ["discord_server_id"])
    op.create_index("ix_group_discord_servers_auto_invite", "group_discord_servers", ["auto_invite"])

    # Create group_discord_server_roles table
    op.create_table(
        "group_discord_server_roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_discord_server_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("discord_role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role_name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["group_discord_server_id"], ["group_discord_servers.id"], ondelete="CASCADE"
        ),
        sa.UniqueConstraint(
            "group_discord_server_id", "discord_role_id", name="uq_group_discord_server_role"
        ),
    )
    op.create_index(
        "ix_group_discord_server_roles_group_discord_server_id",
        "group_discord_server_roles",
        ["group_discord_server_id"],
    )

    # Create group_discord_invites audit table
    op.create_table(
        "group_discord_invites",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_discord_server_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("discord_user_id", sa.String(255), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("assigned_role_ids", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["group_discord_server_id"], ["group_discord_servers.id"], ondelete="CASCADE"
        ),
    )
    op.create_index("ix_group_discord_invites_group_id", "group_discord_invites", ["group_id"])
    op.create_index(
        "ix_group_discord_invites_group_discord_server_id",
        "group_discord_invites",
        ["group_discord_server_id"],
    )
    op.create_index("ix_group_discord_invites_user_id", "group_discord_invites", ["user_id"])


def downgrade() -> None:
    op.drop_table("group_discord_invites")
    op.drop_table("group_discord_server_roles")
    op.drop_table("group_discord_servers")
    op.drop_table("derived_group_rules")
    op.drop_table("group_permissions")
    op.drop_table("permissions")
    op.drop_table("permission_categories")
    op.drop_index("uq_group_join_request_pending", table_name="group_join_requests")
    op.drop_table("group_join_requests")
    op.drop_table("group_invite_code_redemptions")
    op.drop_table("group_invite_codes")
    op.drop_index("uq_group_invitation_pending", table_name="group_invitations")
    op.drop_table("group_invitations")
    op.drop_table("group_admins")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("categories")
