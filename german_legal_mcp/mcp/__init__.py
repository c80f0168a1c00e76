"""MCP server package for german-legal-mcp.

Exposes the provider tools (beck:*, ris:*) to LLM agents.

Transport:
- stdio
"""
