# backend/teamhub/models.py
import uuid

import sqlalchemy as sa
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Index,
    DateTime,
    Boolean,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
from teamhub.db.base import Base

# Cross-DB timestamp default (SQLite + Postgres)
DB_NOW = text("CURRENT_TIMESTAMP")

MEMBER_ACTIONS = ("add_member", "remove_member")


def _uuid_str() -> str:
    return str(uuid.uuid4())


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    members = relationship("Member", back_populates="team", cascade="all, delete-orphan")
    invites = relationship("Invite", back_populates="team", cascade="all, delete-orphan")
    roles = relationship("Role", back_populates="team")


class User(Base):
    """
    User profile. Identity lives with the auth provider; this row carries
    what the members listing shows.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    memberships = relationship("Member", back_populates="user")


class Role(Base):
    """
    Team role. team_id NULL means a global role available to every team.
    """
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)

    team = relationship("Team", back_populates="roles")


class MemberRole(Base):
    __tablename__ = "member_roles"

    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)

    role = relationship("Role")


class Member(Base):
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    admin = Column(Boolean, nullable=False, default=False, server_default=sa.false())
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    team = relationship("Team", back_populates="members")
    user = relationship("User", back_populates="memberships")
    member_roles = relationship("MemberRole", cascade="all, delete-orphan")

    # Append-only; rows are only ever inserted
    activity = relationship(
        "MemberActivity",
        order_by="MemberActivity.id",
        cascade="all, delete-orphan",
        back_populates="member",
    )

    __table_args__ = (
        Index("ix_members_team_user", "team_id", "user_id"),
    )

    @property
    def roles(self) -> list["Role"]:
        return [mr.role for mr in self.member_roles if mr.role is not None]


class MemberActivity(Base):
    __tablename__ = "member_activity"

    id = Column(Integer, primary_key=True, index=True)
    member_id = Column(Integer, ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(32), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)

    member = relationship("Member", back_populates="activity")


class UserActivity(Base):
    """
    Generic activity feed: "user X touched resource R where key == value".
    The members listing aggregates the latest entry per user for a team.
    """
    __tablename__ = "user_activity"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    resource = Column(String(64), nullable=False)
    key = Column(String(64), nullable=False)
    value = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    __table_args__ = (
        Index("ix_user_activity_lookup", "resource", "key", "value"),
    )


class Invite(Base):
    """
    Pending invitation for an email to join a team.

    One row per (team_id, invited_email); the constraint closes the
    check-then-insert window between concurrent invite requests.
    """
    __tablename__ = "invites"

    id = Column(String(36), primary_key=True, default=_uuid_str)
    invited_email = Column(String(255), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False, index=True)
    team_name = Column(String(255), nullable=True)
    inviter_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    invited_roles = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=DB_NOW, nullable=False)

    team = relationship("Team", back_populates="invites")
    inviter = relationship("User")

    __table_args__ = (
        UniqueConstraint("team_id", "invited_email", name="uq_invites_team_email"),
    )
