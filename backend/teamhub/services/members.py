# backend/teamhub/services/members.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, joinedload, selectinload

from teamhub.core.errors import NotFoundError, UserInputError, log_exception_with_context
from teamhub.models import MEMBER_ACTIONS, Invite, Member, MemberActivity, MemberRole, UserActivity
from teamhub.schemas import ActivityEntry, InviteOut, MemberOut, ProfileOut, RoleRef
from teamhub.services.teams import filter_team_roles

logger = logging.getLogger("teamhub.members")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _member_out(member: Member, team_id: int) -> MemberOut:
    user = member.user
    roles = filter_team_roles(member.roles, team_id)
    return MemberOut(
        id=member.id,
        user_id=member.user_id or "",
        admin=bool(member.admin),
        created_at=member.created_at,
        profiles=ProfileOut(
            id=user.id,
            name=user.name,
            email=user.email,
            metadata=user.meta,
        ),
        roles=[RoleRef(id=r.id, name=r.name) for r in roles],
    )


def list_members(db: Session, team_id: int) -> List[MemberOut]:
    """Non-deleted members with profile and roles. Query errors propagate."""
    rows = (
        db.query(Member)
        .join(Member.user)
        .options(
            contains_eager(Member.user),
            selectinload(Member.member_roles).joinedload(MemberRole.role),
        )
        .filter(Member.team_id == team_id, Member.deleted_at.is_(None))
        .order_by(Member.id.asc())
        .all()
    )
    return [_member_out(m, team_id) for m in rows]


def list_invites(db: Session, team_id: int) -> List[InviteOut]:
    """Open invites for the team; a failed query yields an empty list."""
    try:
        rows = (
            db.query(Invite)
            .filter(Invite.team_id == team_id)
            .order_by(Invite.created_at.asc())
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        log_exception_with_context("Invite query failed", extra={"team_id": team_id})
        return []

    return [
        InviteOut(
            id=inv.id,
            email=inv.invited_email,
            roles=[RoleRef.model_validate(r) for r in (inv.invited_roles or [])],
        )
        for inv in rows
    ]


def latest_activity_by_user(db: Session, team_id: int) -> Dict[str, datetime]:
    """
    Latest activity timestamp per user for a team.
    A failed aggregation yields an empty mapping.
    """
    try:
        rows = (
            db.query(UserActivity.user_id, func.max(UserActivity.created_at))
            .filter(
                UserActivity.resource == "team",
                UserActivity.key == "id",
                UserActivity.value == str(team_id),
            )
            .group_by(UserActivity.user_id)
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        log_exception_with_context("Latest activity query failed", extra={"team_id": team_id})
        return {}

    return {user_id: ts for user_id, ts in rows}


def get_team_members(db: Session, team_id: int, *, with_activity: bool = False) -> dict:
    """Members carry a lastActivity key only when with_activity is set."""
    members = [m.model_dump(exclude={"lastActivity"}) for m in list_members(db, team_id)]
    invites = [i.model_dump() for i in list_invites(db, team_id)]

    if with_activity:
        activity = latest_activity_by_user(db, team_id)
        for m in members:
            m["lastActivity"] = activity.get(m["user_id"])

    return {"members": members, "invites": invites}


def update_activity_log(
    db: Session,
    *,
    team_id: int,
    user_id: str,
    action: str,
) -> List[ActivityEntry]:
    """
    Append one entry to a member's activity log and return the full log.

    The append is a single INSERT, so concurrent updates to the same member
    never overwrite each other's entries.
    """
    if action not in MEMBER_ACTIONS:
        raise UserInputError(
            f"Unknown activity action {action!r}",
            extra={"allowed": list(MEMBER_ACTIONS)},
        )

    row = (
        db.query(Member.id)
        .filter(Member.team_id == team_id, Member.user_id == user_id)
        .order_by(Member.id.asc())
        .first()
    )
    if row is None:
        raise NotFoundError(f"Member {user_id} not found in team {team_id}")
    member_id = row[0]

    db.add(MemberActivity(member_id=member_id, action=action, timestamp=_now_utc()))
    db.commit()

    logger.info("activity appended team_id=%s user_id=%s action=%s", team_id, user_id, action)

    rows = (
        db.query(MemberActivity)
        .filter(MemberActivity.member_id == member_id)
        .order_by(MemberActivity.id.asc())
        .all()
    )
    return [ActivityEntry(action=r.action, timestamp=r.timestamp) for r in rows]
