"""Provider abstraction

Every legal data source plugs into the MCP server as a Provider that owns
a tool-name prefix (``beck:``, ``ris:``).
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

import mcp.types as types
from pydantic import BaseModel


def text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    """Wrap text in the MCP result envelope"""
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


def error_result(message: str) -> types.CallToolResult:
    return text_result(message, is_error=True)


def json_result(payload: Any) -> types.CallToolResult:
    """Serialize models/lists/dicts as pretty JSON text"""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    elif isinstance(payload, list):
        payload = [p.model_dump() if isinstance(p, BaseModel) else p for p in payload]
    return text_result(json.dumps(payload, ensure_ascii=False, indent=2))


def result_text(result: types.CallToolResult) -> str:
    return "".join(c.text for c in result.content if isinstance(c, types.TextContent))


class Provider(ABC):
    """Legal data source integration"""

    name: str = ""

    @property
    def prefix(self) -> str:
        return f"{self.name}:"

    @abstractmethod
    def get_tools(self) -> list[types.Tool]:
        """Tool definitions; empty when the provider is not configured"""
        pass

    @abstractmethod
    async def handle_tool_call(
        self, tool_name: str, arguments: dict[str, Any]
    ) -> types.CallToolResult:
        """Handle a call; ``tool_name`` includes the provider prefix"""
        pass

    async def initialize(self) -> None:
        """Called once on registration"""
        return None

    @abstractmethod
    async def shutdown(self) -> None:
        """Release browsers, connections, ..."""
        pass
