"""create teams, members, roles, activity and invites tables

Revision ID: 3c1f0a7d2b91
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "3c1f0a7d2b91"
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_teams_id", "teams", ["id"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    roles = op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=True),
    )
    op.create_index("ix_roles_id", "roles", ["id"])
    op.create_index("ix_roles_team_id", "roles", ["team_id"])

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, server_default=NOW),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_members_id", "members", ["id"])
    op.create_index("ix_members_team_id", "members", ["team_id"])
    op.create_index("ix_members_user_id", "members", ["user_id"])
    op.create_index("ix_members_team_user", "members", ["team_id", "user_id"])

    op.create_table(
        "member_roles",
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "member_activity",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_member_activity_id", "member_activity", ["id"])
    op.create_index("ix_member_activity_member_id", "member_activity", ["member_id"])

    op.create_table(
        "user_activity",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("resource", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
    )
    op.create_index("ix_user_activity_id", "user_activity", ["id"])
    op.create_index("ix_user_activity_user_id", "user_activity", ["user_id"])
    op.create_index("ix_user_activity_lookup", "user_activity", ["resource", "key", "value"])

    op.create_table(
        "invites",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("invited_email", sa.String(length=255), nullable=False),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("team_name", sa.String(length=255), nullable=True),
        sa.Column("inviter_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("invited_roles", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW),
        sa.UniqueConstraint("team_id", "invited_email", name="uq_invites_team_email"),
    )
    op.create_index("ix_invites_invited_email", "invites", ["invited_email"])
    op.create_index("ix_invites_team_id", "invites", ["team_id"])

    op.bulk_insert(
        roles,
        [
            {"id": 1, "name": "owner", "team_id": None},
            {"id": 2, "name": "collaborator", "team_id": None},
            {"id": 3, "name": "admin", "team_id": None},
        ],
    )


def downgrade() -> None:
    op.drop_index("ix_invites_team_id", table_name="invites")
    op.drop_index("ix_invites_invited_email", table_name="invites")
    op.drop_table("invites")

    op.drop_index("ix_user_activity_lookup", table_name="user_activity")
    op.drop_index("ix_user_activity_user_id", table_name="user_activity")
    op.drop_index("ix_user_activity_id", table_name="user_activity")
    op.drop_table("user_activity")

    op.drop_index("ix_member_activity_member_id", table_name="member_activity")
    op.drop_index("ix_member_activity_id", table_name="member_activity")
    op.drop_table("member_activity")

    op.drop_table("member_roles")

    op.drop_index("ix_members_team_user", table_name="members")
    op.drop_index("ix_members_user_id", table_name="members")
    op.drop_index("ix_members_team_id", table_name="members")
    op.drop_index("ix_members_id", table_name="members")
    op.drop_table("members")

    op.drop_index("ix_roles_team_id", table_name="roles")
    op.drop_index("ix_roles_id", table_name="roles")
    op.drop_table("roles")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_index("ix_teams_id", table_name="teams")
    op.drop_table("teams")
