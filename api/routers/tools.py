from fastapi import APIRouter, Body, Depends, HTTPException, status
from dependency_injector.wiring import inject, Provide
from typing import Any, Dict, Optional

from app.containers import AppContainer
from core.logging import get_api_logger_safe
from core.utils.exceptions import UnknownToolError
from services.gateway.tools import ToolRegistry

router = APIRouter(tags=["Tools"])

api_logger = get_api_logger_safe("tools_api")


@router.get("/tools")
@inject
def list_tools(
    registry: ToolRegistry = Depends(Provide[AppContainer.tool_registry]),
):
    """List every tool with its JSON argument schema."""
    return {"tools": registry.list_tools()}


@router.post("/tools/{name}")
@inject
def invoke_tool(
    name: str,
    arguments: Optional[Dict[str, Any]] = Body(default=None),
    registry: ToolRegistry = Depends(Provide[AppContainer.tool_registry]),
):
    """
    Invoke a tool by name. The body is the tool's argument object.

    Command failures are returned with HTTP 200 and `status: failed`; only an
    unknown tool name is an HTTP error.
    """
    try:
        result = registry.invoke(name, arguments)
    except UnknownToolError as e:
        api_logger.warning("Unknown tool requested", tool=name)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return {"tool": name, "result": result}
