"""German Legal MCP: MCP tools for German legal-document sources."""

__version__ = "1.0.0"
