from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from teamhub.api.deps import get_tool_context
from teamhub.core.errors import NotFoundError
from teamhub.tools import ToolContext, registry

logger = logging.getLogger("teamhub.tools")

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("")
def list_tools():
    return {"tools": registry.describe()}


@router.post("/{tool_name}")
def call_tool(
    tool_name: str,
    payload: Optional[dict[str, Any]] = Body(default=None),
    ctx: ToolContext = Depends(get_tool_context),
):
    tool = registry.get(tool_name)
    if tool is None:
        raise NotFoundError(f"Unknown tool {tool_name}")

    try:
        props = tool.input_model.model_validate(payload or {})
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    logger.info("tool call name=%s subject=%s", tool.name, ctx.principal.subject)
    return jsonable_encoder(tool(props, ctx))
