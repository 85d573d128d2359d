# backend/teamhub/services/invites.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from teamhub.core.config import Settings
from teamhub.core.email import send_invite_email
from teamhub.core.errors import ForbiddenError, InternalServerError, UserInputError
from teamhub.core.security import Principal, assert_principal_is_user
from teamhub.models import Invite, Member, User
from teamhub.schemas import Invitee, RoleRef
from teamhub.services.teams import assert_team_resource_access, get_team_by_id, user_belongs_to_team

logger = logging.getLogger("teamhub.invites")

TOOL_NAME = "TEAM_MEMBERS_INVITE"

DEFAULT_ROLE = RoleRef(id=2, name="collaborator")

ALREADY_INVITED_MESSAGE = "All users already invited or members"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def parse_team_id(raw: object) -> Optional[int]:
    """Team ids arrive as strings on the invite tool; non-integers are rejected."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


def apply_default_roles(invitees: Sequence[Invitee]) -> List[Invitee]:
    return [
        inv if inv.roles else inv.model_copy(update={"roles": [DEFAULT_ROLE]})
        for inv in invitees
    ]


def get_invite_ids_by_email_and_team(db: Session, *, email: str, team_id: int) -> List[str]:
    rows = (
        db.query(Invite.id)
        .filter(Invite.team_id == team_id, Invite.invited_email == normalize_email(email))
        .all()
    )
    return [r[0] for r in rows]


def email_belongs_to_team_member(db: Session, *, email: str, team_id: int) -> bool:
    return (
        db.query(Member.id)
        .join(User, User.id == Member.user_id)
        .filter(
            Member.team_id == team_id,
            Member.deleted_at.is_(None),
            User.email == normalize_email(email),
        )
        .first()
        is not None
    )


def filter_new_invitees(db: Session, invitees: Sequence[Invitee], team_id: int) -> List[Invitee]:
    """
    Drop invitees that already have a pending invite or are already members.
    Repeated emails within one batch collapse to the first occurrence.
    """
    kept: List[Invitee] = []
    seen: set[str] = set()
    for inv in invitees:
        email = normalize_email(inv.email)
        if email in seen:
            continue
        seen.add(email)

        pending = get_invite_ids_by_email_and_team(db, email=email, team_id=team_id)
        is_member = email_belongs_to_team_member(db, email=email, team_id=team_id)
        if pending or is_member:
            logger.info(
                "invite ignored team_id=%s email=%s pending=%s member=%s",
                team_id,
                email,
                bool(pending),
                is_member,
            )
            continue
        kept.append(inv)
    return kept


def insert_invites(db: Session, invites: List[Invite]) -> List[Invite]:
    """
    Insert all invite rows in one transaction. Any database error (including
    the (team, email) unique constraint firing) rolls the whole batch back.
    """
    try:
        db.add_all(invites)
        db.commit()
        for inv in invites:
            db.refresh(inv)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("invite insert failed count=%s", len(invites))
        raise InternalServerError("Failed to create invites")
    return invites


InviteEmailSender = Callable[..., None]


@dataclass
class InviteService:
    """
    Creates invites and notifies invitees.

    self_host_mode is injected from Settings; when set, invites are created
    without sending any email.
    """
    self_host_mode: bool = False
    login_url: str = "https://deco.chat"
    max_email_workers: int = 8
    send_email: InviteEmailSender = send_invite_email

    @classmethod
    def from_settings(cls, settings: Settings) -> "InviteService":
        return cls(
            self_host_mode=settings.self_host_mode,
            login_url=settings.app_login_url,
            max_email_workers=settings.invite_email_workers,
        )

    @property
    def success_message(self) -> str:
        return f"Invite created. Users can log in at {self.login_url}"

    def invite_team_members(
        self,
        db: Session,
        principal: Principal,
        *,
        team_id: object,
        invitees: Optional[Sequence[Invitee]],
    ) -> dict:
        user = assert_principal_is_user(principal)

        team_id_num = parse_team_id(team_id)
        if invitees is None or team_id_num is None:
            raise UserInputError("Invalid inputs")

        assert_team_resource_access(TOOL_NAME, team_id_num, db, principal)

        processed = apply_default_roles(invitees)
        to_invite = filter_new_invitees(db, processed, team_id_num)
        if not to_invite:
            return {"message": ALREADY_INVITED_MESSAGE}

        team = get_team_by_id(db, team_id_num)
        if not user_belongs_to_team(db, team, user.id):
            raise ForbiddenError(f"No access to team {team_id_num}")

        rows = [
            Invite(
                invited_email=normalize_email(inv.email),
                team_id=team_id_num,
                team_name=team.name,
                inviter_id=user.id,
                invited_roles=[r.model_dump() for r in inv.roles],
            )
            for inv in to_invite
        ]
        created = insert_invites(db, rows)
        if not created:
            raise InternalServerError("Failed to create invites")

        # Plain dicts: ORM rows must not be touched from worker threads
        notices = [
            {
                "to_email": inv.invited_email,
                "team_name": inv.team_name or "",
                "roles": [r.get("name", "") for r in (inv.invited_roles or [])],
            }
            for inv in created
        ]

        if self.self_host_mode:
            logger.info(
                "self-host mode: invites created without email team_id=%s invites=%s",
                team_id_num,
                [(inv.id, inv.invited_email) for inv in created],
            )
        else:
            inviter = user.name or user.email or "Unknown"
            self._send_all(notices, inviter=inviter)

        return {"message": self.success_message}

    def _send_all(self, notices: List[dict], *, inviter: str) -> None:
        workers = max(1, min(len(notices), self.max_email_workers))

        def _send(notice: dict) -> None:
            self.send_email(inviter=inviter, login_url=self.login_url, **notice)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="invite-email") as pool:
            list(pool.map(_send, notices))
