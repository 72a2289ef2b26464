# server/agents/tools/__init__.py
"""
Lookup tool catalog and executor
"""

from .models import ToolCall, ToolCallPlan, ToolDefinition, ToolResult
from .registry import ToolRegistry, default_registry
from .executor import ToolExecutor

__all__ = [
    "ToolCall",
    "ToolCallPlan",
    "ToolDefinition",
    "ToolResult",
    "ToolRegistry",
    "default_registry",
    "ToolExecutor",
]
