"""Provider registry

Aggregates provider tools and routes ``<prefix>:<tool>`` calls to the
owning provider.
"""

from __future__ import annotations

from typing import Any

import mcp.types as types

from german_legal_mcp.providers.base import Provider, error_result
from german_legal_mcp.utils.logger import get_logger

logger = get_logger(__name__)


class ProviderRegistry:
    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._shut_down = False

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers.values())

    async def register(self, provider: Provider) -> None:
        self._providers[provider.name] = provider
        await provider.initialize()
        logger.info(f"Registered provider '{provider.name}' ({len(provider.get_tools())} tools)")

    def list_tools(self) -> list[types.Tool]:
        tools: list[types.Tool] = []
        for provider in self._providers.values():
            tools.extend(provider.get_tools())
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        prefix, sep, _ = name.partition(":")
        provider = self._providers.get(prefix) if sep else None
        if provider is None:
            return error_result(f"Unknown tool: {name}")

        try:
            return await provider.handle_tool_call(name, arguments or {})
        except Exception as e:
            logger.exception(f"Provider '{prefix}' failed on {name}")
            return error_result(f"Error: {e}")

    async def shutdown(self) -> None:
        """Shut every provider down once; later calls are no-ops"""
        if self._shut_down:
            return
        self._shut_down = True

        for provider in self._providers.values():
            try:
                await provider.shutdown()
            except Exception as e:
                logger.error(f"Error shutting down provider '{provider.name}': {e}")
