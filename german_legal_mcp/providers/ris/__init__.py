"""RIS (Rechtsprechung im Internet) provider.

Placeholder for the free public federal court decision database. It is
registered so the ``ris:`` prefix routes, but exposes no tools yet.
"""

from __future__ import annotations

from typing import Any

import mcp.types as types

from german_legal_mcp.providers.base import Provider, error_result


class RisProvider(Provider):
    name = "ris"

    def get_tools(self) -> list[types.Tool]:
        return []

    async def handle_tool_call(self, tool_name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        return error_result(f"RIS provider not implemented: {tool_name}")

    async def shutdown(self) -> None:
        return None


__all__ = ["RisProvider"]
