# backend/teamhub/services/teams.py
"""
Team lookups and access checks shared by the member and invite handlers.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from teamhub.core.errors import ForbiddenError, NotFoundError
from teamhub.core.security import Principal
from teamhub.models import Member, Role, Team

logger = logging.getLogger("teamhub.teams")


def get_team_by_id(db: Session, team_id: int) -> Team:
    team = db.query(Team).filter(Team.id == team_id).first()
    if not team:
        raise NotFoundError(f"Team {team_id} not found")
    return team


def user_belongs_to_team(db: Session, team: Team, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return (
        db.query(Member.id)
        .filter(
            Member.team_id == team.id,
            Member.user_id == user_id,
            Member.deleted_at.is_(None),
        )
        .first()
        is not None
    )


def assert_team_resource_access(
    tool_name: str,
    team_id: int,
    db: Session,
    principal: Principal,
) -> None:
    """
    Caller must be an active member of the team. Service principals pass
    when the team id is listed in their token's `teams` claim.
    """
    if principal.auth_type == "service":
        if team_id in principal.team_ids:
            return
    elif principal.user is not None:
        is_member = (
            db.query(Member.id)
            .filter(
                Member.team_id == team_id,
                Member.user_id == principal.user.id,
                Member.deleted_at.is_(None),
            )
            .first()
            is not None
        )
        if is_member:
            return

    logger.info(
        "team access denied tool=%s team_id=%s subject=%s",
        tool_name,
        team_id,
        principal.subject,
    )
    raise ForbiddenError(f"No access to team {team_id}")


def filter_team_roles(roles: Iterable[Role], team_id: int) -> List[Role]:
    """Global roles plus the roles owned by this team; duplicates dropped."""
    seen: set[int] = set()
    out: List[Role] = []
    for role in roles:
        if role is None or role.id in seen:
            continue
        if role.team_id is not None and role.team_id != team_id:
            continue
        seen.add(role.id)
        out.append(role)
    return out
