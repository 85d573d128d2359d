# backend/teamhub/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StrictInt, StrictStr


class RoleRef(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(extra="ignore")


class Invitee(BaseModel):
    email: EmailStr
    roles: List[RoleRef] = Field(default_factory=list)


# ---------- Tool inputs ----------

class TeamMembersGetIn(BaseModel):
    teamId: StrictInt
    withActivity: Optional[bool] = None


class TeamMembersInviteIn(BaseModel):
    # string on the wire; parsed (and rejected) by the handler.
    teamId: Union[StrictStr, StrictInt]
    invitees: Optional[List[Invitee]] = None


class InviteRequestIn(BaseModel):
    """Body of POST /api/teams/{team_id}/invite (team id comes from the path)."""
    invitees: Optional[List[Invitee]] = None


# ---------- Outputs ----------

class ProfileOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    metadata: Optional[dict[str, Any]] = None


class MemberOut(BaseModel):
    id: int
    user_id: str
    admin: bool = False
    created_at: Optional[datetime] = None
    profiles: ProfileOut
    roles: List[RoleRef] = Field(default_factory=list)
    lastActivity: Optional[datetime] = None


class InviteOut(BaseModel):
    id: str
    email: str
    roles: List[RoleRef] = Field(default_factory=list)


class TeamMembersOut(BaseModel):
    members: List[MemberOut]
    invites: List[InviteOut]


class MessageOut(BaseModel):
    message: str


class ActivityEntry(BaseModel):
    action: str
    timestamp: datetime
