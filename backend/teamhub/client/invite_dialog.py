"""
Invite-members dialog controller.

Holds the dialog's open state and form fields, decides which entered emails
are valid, and submits them to the team invite endpoint:

    dialog = InviteDialog(team_id=7, base_url="https://app.example.com", notifier=toaster)
    dialog.bind_trigger(button)          # button.on_click() now opens the dialog
    dialog.set_emails(["a@x.com", "nope"])
    dialog.set_role_ids(["2"])
    if dialog.can_submit:
        dialog.submit()

Rendering is up to the caller; `notifier` only needs `success(msg)` and
`error(msg)`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests
from pydantic import EmailStr, TypeAdapter, ValidationError
from requests import RequestException

logger = logging.getLogger("teamhub.client.invite_dialog")

HTTP_TIMEOUT_SECONDS = 30.0

_email_adapter = TypeAdapter(EmailStr)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


@dataclass(frozen=True)
class RoleOption:
    id: int
    name: str
    label: str


DEFAULT_ROLE_OPTIONS: tuple[RoleOption, ...] = (
    RoleOption(id=2, name="collaborator", label="Collaborator"),
    RoleOption(id=3, name="admin", label="Admin"),
)


def is_valid_email(value: str) -> bool:
    try:
        _email_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


class InviteDialog:
    def __init__(
        self,
        team_id: int,
        *,
        base_url: str,
        notifier: Notifier,
        session: Optional[requests.Session] = None,
        role_options: Sequence[RoleOption] = DEFAULT_ROLE_OPTIONS,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        trigger: Any = None,
    ) -> None:
        self.team_id = team_id
        self.base_url = base_url.rstrip("/")
        self.notifier = notifier
        self.session = session or requests.Session()
        self.role_options = list(role_options)
        self.headers = dict(headers or {})
        self.timeout = timeout

        self.is_open = False
        self.emails: List[str] = []
        self.role_ids: List[str] = []

        if trigger is not None:
            self.bind_trigger(trigger)

    # ---------- visibility ----------

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    def on_open_change(self, is_open: bool) -> None:
        self.is_open = bool(is_open)

    def bind_trigger(self, trigger: Any) -> Any:
        """Install an on_click on the caller's trigger that opens the dialog."""
        setattr(trigger, "on_click", lambda *_args, **_kwargs: self.open())
        return trigger

    # ---------- form fields ----------

    def set_emails(self, emails: Sequence[str]) -> None:
        self.emails = [e.strip() for e in emails if e and e.strip()]

    def add_email(self, email: str) -> None:
        self.set_emails([*self.emails, email])

    def set_role_ids(self, role_ids: Sequence[Any]) -> None:
        self.role_ids = [str(r) for r in role_ids]

    def reset(self) -> None:
        self.emails = []
        self.role_ids = []

    @property
    def valid_emails(self) -> List[str]:
        return [e for e in self.emails if is_valid_email(e)]

    @property
    def can_submit(self) -> bool:
        return len(self.valid_emails) > 0

    @property
    def submit_label(self) -> str:
        count = len(self.valid_emails)
        return f"Invite {count}" if count else "Invite"

    def validate(self) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        if any(not is_valid_email(e) for e in self.emails):
            errors["emails"] = "Invalid email"
        known = {str(o.id) for o in self.role_options}
        if not self.role_ids or any(r not in known for r in self.role_ids):
            errors["roleId"] = "Select at least one role"
        return errors

    # ---------- submission ----------

    @property
    def invite_url(self) -> str:
        return f"{self.base_url}/api/teams/{self.team_id}/invite"

    def selected_roles(self) -> List[Dict[str, Any]]:
        by_id = {str(o.id): o for o in self.role_options}
        roles: List[Dict[str, Any]] = []
        for role_id in self.role_ids:
            option = by_id.get(role_id)
            if option is None:
                logger.warning("Unknown role id %s ignored", role_id)
                continue
            roles.append({"id": option.id, "name": option.name})
        return roles

    def build_payload(self) -> Dict[str, Any]:
        roles = self.selected_roles()
        return {
            "invitees": [
                {"email": email, "roles": [dict(r) for r in roles]}
                for email in self.valid_emails
            ]
        }

    def submit(self) -> bool:
        """
        One POST per call, no retry. Returns True when the invites were accepted.
        On failure the dialog stays open and the entered data is kept.
        """
        if not self.can_submit:
            return False

        errors = self.validate()
        if errors:
            logger.info("Invite form invalid: %s", errors)
            return False

        count = len(self.valid_emails)
        payload = self.build_payload()

        try:
            resp = self.session.post(
                self.invite_url,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
            if not resp.ok:
                raise RequestException(f"Request failed status={resp.status_code}")
        except Exception as e:
            logger.error("Invite request failed team_id=%s error=%s", self.team_id, e)
            self.notifier.error("Failed to send invites")
            return False

        self.notifier.success(f"Invited {count} members!")
        self.close()
        self.reset()
        return True
