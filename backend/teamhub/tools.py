# backend/teamhub/tools.py
"""
Tool-style RPC registry.

A tool is a named handler with a pydantic input model. Tools are grouped
(for listing) and dispatched by name from POST /api/tools/{name}:

    create_tool = create_tool_group("Team", name="Team & User Management", ...)

    @create_tool(name="TEAM_MEMBERS_GET", description="...", input_model=TeamMembersGetIn)
    def get_team_members(props, ctx):
        ...
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel
from sqlalchemy.orm import Session

from teamhub.core.security import Principal
from teamhub.services.invites import InviteService


@dataclass
class ToolContext:
    db: Session
    principal: Principal
    invite_service: InviteService
    tool_name: str = ""


ToolHandler = Callable[[Any, ToolContext], Any]


@dataclass(frozen=True)
class ToolGroup:
    key: str
    name: str
    description: str = ""
    icon: Optional[str] = None
    workspace: bool = False


@dataclass
class Tool:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: ToolHandler
    group: ToolGroup

    def __call__(self, props: BaseModel, ctx: ToolContext) -> Any:
        ctx.tool_name = self.name
        return self.handler(props, ctx)


@dataclass
class ToolRegistry:
    tools: Dict[str, Tool] = field(default_factory=dict)

    def register(self, tool: Tool) -> Tool:
        if tool.name in self.tools:
            raise ValueError(f"Tool {tool.name} is already registered")
        self.tools[tool.name] = tool
        return tool

    def get(self, name: str) -> Optional[Tool]:
        return self.tools.get(name)

    def describe(self) -> List[dict]:
        return [
            {
                "name": t.name,
                "description": t.description,
                "group": t.group.name,
                "inputSchema": t.input_model.model_json_schema(),
            }
            for t in self.tools.values()
        ]


registry = ToolRegistry()


def create_tool_group(
    key: str,
    *,
    name: str,
    description: str = "",
    icon: Optional[str] = None,
    workspace: bool = False,
    target: Optional[ToolRegistry] = None,
):
    group = ToolGroup(key=key, name=name, description=description, icon=icon, workspace=workspace)
    reg = target or registry

    def create_tool(*, name: str, description: str, input_model: Type[BaseModel]):
        def decorator(fn: ToolHandler) -> Tool:
            return reg.register(
                Tool(
                    name=name,
                    description=description,
                    input_model=input_model,
                    handler=fn,
                    group=group,
                )
            )

        return decorator

    return create_tool
