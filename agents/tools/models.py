# server/agents/tools/models.py
"""
Pydantic models for tool lookups
"""
import time
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

class ToolCall(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tool_name: str = Field(..., description="Registered tool name")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Tool parameters")

class ToolCallPlan(ToolCall):
    reasoning: str = Field("", description="Why the model wants this lookup")

class ToolResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tool_name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    timestamp: float = Field(default_factory=lambda: time.time() * 1000, description="Epoch milliseconds")
    confidence: Optional[float] = Field(None, ge=0, le=100)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

class ToolDefinition(BaseModel):
    """Catalog entry. The handler is a pure function of its parameters."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        arbitrary_types_allowed=True,
    )

    name: str
    description: str
    parameter_schema: Dict[str, Any]
    handler: Callable[..., Any] = Field(..., exclude=True)
    default_confidence: float = Field(90, ge=0, le=100)

    @property
    def required_parameters(self):
        return list(self.parameter_schema.get("required", []))
