from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from teamhub.api.deps import get_tool_context
from teamhub.schemas import (
    InviteRequestIn,
    MessageOut,
    TeamMembersGetIn,
    TeamMembersInviteIn,
    TeamMembersOut,
)
from teamhub.services.members import get_team_members as fetch_team_members
from teamhub.services.teams import assert_team_resource_access
from teamhub.tools import ToolContext, create_tool_group

router = APIRouter(prefix="/teams", tags=["team-members"])


# ----------------------------
# Tools
# ----------------------------

create_tool = create_tool_group(
    "Team",
    name="Team & User Management",
    description="Manage workspace access and roles.",
    icon="https://assets.decocache.com/mcp/de7e81f6-bf2b-4bf5-a96c-867682f7d2ca/Team--User-Management.png",
)


@create_tool(
    name="TEAM_MEMBERS_GET",
    description="Get all members of a team",
    input_model=TeamMembersGetIn,
)
def get_team_members(props: TeamMembersGetIn, ctx: ToolContext) -> dict:
    assert_team_resource_access(ctx.tool_name, props.teamId, ctx.db, ctx.principal)
    return fetch_team_members(ctx.db, props.teamId, with_activity=bool(props.withActivity))


@create_tool(
    name="TEAM_MEMBERS_INVITE",
    description="Invite users to join a team via email",
    input_model=TeamMembersInviteIn,
)
def invite_team_members(props: TeamMembersInviteIn, ctx: ToolContext) -> dict:
    return ctx.invite_service.invite_team_members(
        ctx.db,
        ctx.principal,
        team_id=props.teamId,
        invitees=props.invitees,
    )


# ----------------------------
# Routes
# ----------------------------

@router.get(
    "/{team_id}/members",
    response_model=TeamMembersOut,
    response_model_exclude_unset=True,
    status_code=status.HTTP_200_OK,
)
def list_team_members(
    team_id: int,
    with_activity: Optional[bool] = Query(default=None, alias="withActivity"),
    ctx: ToolContext = Depends(get_tool_context),
):
    """Members (with profile and roles) plus open invites for a team."""
    props = TeamMembersGetIn(teamId=team_id, withActivity=with_activity)
    return get_team_members(props, ctx)


@router.post("/{team_id}/invite", response_model=MessageOut, status_code=status.HTTP_200_OK)
def create_team_invites(
    team_id: str,
    payload: InviteRequestIn,
    ctx: ToolContext = Depends(get_tool_context),
):
    """
    Invite emails to a team.

    Invitees that are already members or already invited are skipped; when
    nobody is left the response says so and nothing is written.
    """
    props = TeamMembersInviteIn(teamId=team_id, invitees=payload.invitees)
    return invite_team_members(props, ctx)
