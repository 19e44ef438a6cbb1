"""FastMCP middleware for the Playwright Session MCP Server."""

from .mcp_logging import MCPLoggingMiddleware

__all__ = ["MCPLoggingMiddleware"]
