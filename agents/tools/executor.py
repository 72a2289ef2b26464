# server/agents/tools/executor.py
"""
Concurrent tool execution with per-call isolation
"""
import asyncio
import inspect
import logging
from typing import Any, List, Optional, Sequence

from agents.tools.models import ToolCall, ToolDefinition, ToolResult
from agents.tools.registry import ToolRegistry, default_registry
from core.exceptions import ToolError

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT_SECONDS = 10.0

class ToolExecutor:
    """Runs tool calls concurrently.

    Each call owns its timeout. Errors and timeouts become failed ToolResults,
    so the batch always returns one result per call, in call order.
    """

    def __init__(self, registry: Optional[ToolRegistry] = None, timeout_seconds: float = DEFAULT_TOOL_TIMEOUT_SECONDS):
        self.registry = registry or default_registry
        self.timeout_seconds = timeout_seconds

    async def execute_all(self, calls: Sequence[ToolCall]) -> List[ToolResult]:
        if not calls:
            return []
        logger.info(f"Executing {len(calls)} tool call(s) in parallel")
        results = await asyncio.gather(*(self.execute(call) for call in calls))
        failed = sum(1 for r in results if r.failed)
        if failed:
            logger.warning(f"{failed}/{len(results)} tool call(s) failed")
        return list(results)

    async def execute(self, call: ToolCall) -> ToolResult:
        parameters = dict(call.parameters or {})
        try:
            tool = self._resolve(call.tool_name, parameters)
            output = await asyncio.wait_for(self._invoke(tool, parameters), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            message = f"Tool {call.tool_name} timed out after {self.timeout_seconds}s"
            logger.warning(message)
            return self._failure(call.tool_name, parameters, message)
        except Exception as e:
            logger.warning(f"Tool {call.tool_name} failed: {e}")
            return self._failure(call.tool_name, parameters, str(e) or e.__class__.__name__)

        return ToolResult(
            tool_name=call.tool_name,
            input=parameters,
            output=output,
            confidence=self._confidence(tool, output),
        )

    def _resolve(self, name: str, parameters: dict) -> ToolDefinition:
        tool = self.registry.get(name)
        if tool is None:
            raise ToolError(f"Unknown tool: {name}")
        missing = [p for p in tool.required_parameters if parameters.get(p) is None]
        if missing:
            raise ToolError(f"Missing required parameter(s) for {name}: {', '.join(missing)}")
        return tool

    async def _invoke(self, tool: ToolDefinition, parameters: dict) -> Any:
        if inspect.iscoroutinefunction(tool.handler):
            return await tool.handler(parameters)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, tool.handler, parameters)

    @staticmethod
    def _confidence(tool: ToolDefinition, output: Any) -> float:
        if isinstance(output, dict):
            value = output.get("confidence")
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(max(0, min(100, value)))
        return tool.default_confidence

    @staticmethod
    def _failure(tool_name: str, parameters: dict, message: str) -> ToolResult:
        return ToolResult(
            tool_name=tool_name,
            input=parameters,
            output={"error": message},
            confidence=0,
            error=message,
        )
