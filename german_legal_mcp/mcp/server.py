"""german_legal_mcp.mcp.server

MCP (Model Context Protocol) server for German legal-document sources.

Current implementation:
- stdio transport
- Providers:
  - beck (beck-online, needs BECK_USERNAME / BECK_PASSWORD)
  - ris (registered, no tools yet)

Tool names are namespaced by provider (``beck:search``); the registry
routes calls on the prefix. The shared browser is closed exactly once, on
SIGINT/SIGTERM or when the client closes stdin.
"""

from __future__ import annotations

import signal
import time
from typing import Optional

import anyio
import mcp.types as types
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.stdio import stdio_server

from german_legal_mcp.config.settings import Settings, settings
from german_legal_mcp.providers.beck import BeckProvider
from german_legal_mcp.providers.registry import ProviderRegistry
from german_legal_mcp.providers.ris import RisProvider
from german_legal_mcp.utils.logger import get_logger

logger = get_logger(__name__)


SERVER_NAME = "german-legal-mcp"


async def build_registry(config: Optional[Settings] = None) -> ProviderRegistry:
    config = config or settings
    if not config.beck_configured:
        logger.warning("BECK_USERNAME/BECK_PASSWORD not set; beck:* tools are disabled")

    registry = ProviderRegistry()
    await registry.register(BeckProvider(config))
    await registry.register(RisProvider())
    return registry


def create_server(registry: ProviderRegistry) -> Server:
    server = Server(
        SERVER_NAME,
        version=settings.service_version,
        instructions=(
            "German legal research tools. "
            "Use beck:search or beck:resolve_citation to find a document vpath, "
            "then beck:get_document, beck:get_context or beck:get_referenced_documents."
        ),
    )

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return registry.list_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict | None) -> types.CallToolResult:
        started = time.perf_counter()
        result = await registry.call_tool(name, arguments)
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(f"{name} finished in {elapsed_ms:.0f} ms (error={bool(result.isError)})")
        return result

    return server


async def _watch_signals(scope: anyio.CancelScope) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
            scope.cancel()
            return


async def _serve(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(
                notification_options=NotificationOptions(
                    prompts_changed=False,
                    resources_changed=False,
                    tools_changed=False,
                ),
                experimental_capabilities={},
            ),
        )


async def _run() -> None:
    registry = await build_registry()
    server = create_server(registry)
    logger.info("Server connected and ready.")

    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_watch_signals, tg.cancel_scope)
            await _serve(server)
            # stdin closed: the client went away
            tg.cancel_scope.cancel()
    finally:
        logger.info("Shutting down and cleaning up browser...")
        with anyio.CancelScope(shield=True):
            await registry.shutdown()


def main() -> None:
    anyio.run(_run)


if __name__ == "__main__":
    main()
