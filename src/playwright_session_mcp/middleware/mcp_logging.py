"""
MCP request/response logging middleware

Logs every client MCP request and response with a "CLIENT_MCP" prefix so the
client side of a session can be filtered out of the log file:

    CLIENT_MCP → Tool call: browser_click
    CLIENT_MCP   Tool 'browser_click' arguments: {...}
    CLIENT_MCP ← Tool result: browser_click (42.1ms)
    CLIENT_MCP ✗ Tool error: browser_click (3.0ms) - StaleRefError: ...
"""

import json
import logging
import time
from typing import Any

from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext

logger = logging.getLogger(__name__)


class MCPLoggingMiddleware(Middleware):
    """Logs MCP protocol traffic between the client and this server."""

    def __init__(
        self,
        log_request_params: bool = True,
        log_response_data: bool = False,
        max_log_length: int = 5000,
    ):
        """
        Args:
            log_request_params: Log tool/prompt arguments
            log_response_data: Log tool/resource results
            max_log_length: Truncate logged payloads beyond this many characters
        """
        self.log_request_params = log_request_params
        self.log_response_data = log_response_data
        self.max_log_length = max_log_length

    # -------------------------------------------------------------------------
    # Formatting helpers
    # -------------------------------------------------------------------------

    def _truncate_data(self, data: Any, max_length: int | None = None) -> str:
        """Serialize data for logging, truncating long payloads."""
        limit = max_length if max_length is not None else self.max_log_length
        try:
            text = json.dumps(data, indent=2, default=str)
        except (TypeError, ValueError):
            text = str(data)

        if len(text) <= limit:
            return text
        return f"{text[:limit]}... ({len(text)} chars total)"

    def _log_arguments(self, tool_name: str, arguments: dict[str, Any] | None) -> None:
        if not arguments:
            logger.info(f"CLIENT_MCP   Tool '{tool_name}' arguments: (none)")
            return
        logger.info(f"CLIENT_MCP   Tool '{tool_name}' arguments: {self._truncate_data(arguments)}")

    def _log_result(self, tool_name: str, result: Any) -> None:
        logger.info(f"CLIENT_MCP   Tool '{tool_name}' result: {self._truncate_data(result)}")

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    async def on_initialize(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        params = getattr(context.message, "params", None)
        client_info = getattr(params, "clientInfo", None) if params is not None else None
        client_name = getattr(client_info, "name", None) or "unknown"
        client_version = getattr(client_info, "version", None) or "unknown"
        protocol = (getattr(params, "protocolVersion", None) if params is not None else None) or "unknown"

        logger.info(
            f"CLIENT_MCP → Initialize: {client_name} v{client_version} (protocol: {protocol})"
        )
        started = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception as e:
            logger.error(
                f"CLIENT_MCP ✗ Initialize error: ({self._elapsed_ms(started):.1f}ms) - "
                f"{type(e).__name__}: {e}"
            )
            raise
        logger.info(f"CLIENT_MCP ← Initialize complete ({self._elapsed_ms(started):.1f}ms)")
        return result

    async def on_call_tool(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        tool_name = getattr(context.message, "name", "unknown")
        logger.info(f"CLIENT_MCP → Tool call: {tool_name}")
        if self.log_request_params:
            self._log_arguments(tool_name, getattr(context.message, "arguments", None))

        started = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception as e:
            logger.error(
                f"CLIENT_MCP ✗ Tool error: {tool_name} ({self._elapsed_ms(started):.1f}ms) - "
                f"{type(e).__name__}: {e}"
            )
            raise

        logger.info(f"CLIENT_MCP ← Tool result: {tool_name} ({self._elapsed_ms(started):.1f}ms)")
        if self.log_response_data:
            self._log_result(tool_name, result)
        return result

    async def on_read_resource(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        uri = getattr(context.message, "uri", "unknown")
        logger.info(f"CLIENT_MCP → Resource read: {uri}")

        started = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception as e:
            logger.error(
                f"CLIENT_MCP ✗ Resource error: {uri} ({self._elapsed_ms(started):.1f}ms) - "
                f"{type(e).__name__}: {e}"
            )
            raise

        logger.info(f"CLIENT_MCP ← Resource result: {uri} ({self._elapsed_ms(started):.1f}ms)")
        if self.log_response_data:
            logger.info(f"CLIENT_MCP   Resource '{uri}' result: {self._truncate_data(result)}")
        return result

    async def on_get_prompt(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        name = getattr(context.message, "name", "unknown")
        logger.info(f"CLIENT_MCP → Prompt request: {name}")
        arguments = getattr(context.message, "arguments", None)
        if self.log_request_params and arguments is not None:
            logger.info(f"CLIENT_MCP   Prompt arguments: {self._truncate_data(arguments)}")

        started = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception as e:
            logger.error(
                f"CLIENT_MCP ✗ Prompt error: {name} ({self._elapsed_ms(started):.1f}ms) - "
                f"{type(e).__name__}: {e}"
            )
            raise

        logger.info(f"CLIENT_MCP ← Prompt result: {name} ({self._elapsed_ms(started):.1f}ms)")
        return result

    async def _log_listing(
        self, label: str, noun: str, context: MiddlewareContext, call_next: CallNext
    ) -> Any:
        logger.info(f"CLIENT_MCP → {label}")
        started = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception as e:
            logger.error(f"CLIENT_MCP ✗ {label} error: {type(e).__name__}: {e}")
            raise

        count = len(result) if result else 0
        logger.info(
            f"CLIENT_MCP ← {label} result: {count} {noun} ({self._elapsed_ms(started):.1f}ms)"
        )
        return result

    async def on_list_tools(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        return await self._log_listing("List tools", "tools", context, call_next)

    async def on_list_resources(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        return await self._log_listing("List resources", "resources", context, call_next)

    async def on_list_prompts(self, context: MiddlewareContext, call_next: CallNext) -> Any:
        return await self._log_listing("List prompts", "prompts", context, call_next)
