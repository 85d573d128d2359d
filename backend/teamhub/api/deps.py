# backend/teamhub/api/deps.py
"""
Shared API dependencies.

Overridable via app.dependency_overrides in tests:

    app.dependency_overrides[get_invite_service] = lambda: InviteService(self_host_mode=True)
"""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from teamhub.core.config import Settings, get_settings
from teamhub.core.security import Principal, get_principal
from teamhub.db.session import get_db
from teamhub.services.invites import InviteService
from teamhub.tools import ToolContext


def get_invite_service(settings: Settings = Depends(get_settings)) -> InviteService:
    return InviteService.from_settings(settings)


def get_tool_context(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    invite_service: InviteService = Depends(get_invite_service),
) -> ToolContext:
    return ToolContext(db=db, principal=principal, invite_service=invite_service)
