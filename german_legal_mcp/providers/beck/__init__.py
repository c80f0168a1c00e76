"""beck-online provider.

Access to German legal documents (statutes, decisions, commentaries) from
the subscription portal beck-online. Requires BECK_USERNAME and
BECK_PASSWORD; without them the provider exposes no tools.
"""

from __future__ import annotations

from typing import Any, Optional

import mcp.types as types

from german_legal_mcp.config.settings import Settings, settings as default_settings
from german_legal_mcp.core.browser import BeckBrowser
from german_legal_mcp.core.session_store import FileSessionStore
from german_legal_mcp.pipeline.converter import BeckConverter
from german_legal_mcp.providers.base import Provider, error_result
from german_legal_mcp.providers.beck.tools import BECK_TOOLS, handle_beck_tool_call

DISABLED_MESSAGE = (
    "Beck Online tools are disabled. Set BECK_USERNAME and BECK_PASSWORD environment variables."
)


class BeckProvider(Provider):
    name = "beck"

    def __init__(
        self,
        config: Optional[Settings] = None,
        browser: Optional[BeckBrowser] = None,
        converter: Optional[BeckConverter] = None,
    ):
        self.config = config or default_settings
        self.browser = browser or BeckBrowser(
            self.config, FileSessionStore(self.config.beck_cookie_path)
        )
        self.converter = converter or BeckConverter(self.config.beck_base_url)

    def is_configured(self) -> bool:
        return self.config.beck_configured

    def get_tools(self) -> list[types.Tool]:
        return list(BECK_TOOLS) if self.is_configured() else []

    async def handle_tool_call(self, tool_name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        if not self.is_configured():
            return error_result(DISABLED_MESSAGE)
        return await handle_beck_tool_call(tool_name, arguments, self.browser, self.converter)

    async def shutdown(self) -> None:
        await self.browser.close()


__all__ = ["BeckProvider", "DISABLED_MESSAGE"]
