# server/agents/tools/registry.py
"""
Read-only catalog of lookup tools
"""
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from agents.tools import service
from agents.tools.models import ToolDefinition

WEATHER_TOOL = ToolDefinition(
    name="get_weather_forecast",
    description=(
        "Get a 7-day weather forecast for a location to optimize treatment timing. "
        "Returns temperature, humidity, precipitation and wind data."
    ),
    parameter_schema={
        "type": "object",
        "properties": {
            "location": {"type": "string", "description": "Location name (city, region) or coordinates (lat,lng)"},
            "days": {"type": "number", "description": "Number of days to forecast (1-7)", "default": 7},
        },
        "required": ["location"],
    },
    handler=service.get_weather_forecast,
    default_confidence=90,
)

CROP_DATABASE_TOOL = ToolDefinition(
    name="query_crop_database",
    description="Query the crop database for disease susceptibility, treatments, varieties and growth-stage risks.",
    parameter_schema={
        "type": "object",
        "properties": {
            "cropType": {"type": "string", "description": "Crop species (e.g. Tomato, Wheat, Rice)"},
            "query": {
                "type": "string",
                "description": "One of: " + ", ".join(service.CROP_QUERIES),
            },
            "variety": {"type": "string", "description": "Optional variety name"},
        },
        "required": ["cropType", "query"],
    },
    handler=service.query_crop_database,
    default_confidence=95,
)

DISEASE_RESEARCH_TOOL = ToolDefinition(
    name="search_disease_research",
    description="Search agricultural research for disease patterns, treatment efficacy and emerging solutions.",
    parameter_schema={
        "type": "object",
        "properties": {
            "disease": {"type": "string", "description": "Disease name (e.g. Early Blight)"},
            "treatment": {"type": "string", "description": "Optional treatment to research"},
            "region": {"type": "string", "description": "Optional region for localized data"},
        },
        "required": ["disease"],
    },
    handler=service.search_disease_research,
    default_confidence=92,
)

SOIL_TOOL = ToolDefinition(
    name="analyze_soil_requirements",
    description="Soil requirements and nutrient recommendations for plant health and disease resistance.",
    parameter_schema={
        "type": "object",
        "properties": {
            "cropType": {"type": "string", "description": "Crop species"},
            "diseasePresent": {"type": "string", "description": "Disease currently affecting the crop"},
            "soilType": {"type": "string", "description": "Optional soil type (clay, loam, sandy)"},
        },
        "required": ["cropType"],
    },
    handler=service.analyze_soil_requirements,
    default_confidence=88,
)

DEFAULT_TOOLS = (WEATHER_TOOL, CROP_DATABASE_TOOL, DISEASE_RESEARCH_TOOL, SOIL_TOOL)

class ToolRegistry:
    """Immutable name -> ToolDefinition catalog, safe to share across runs"""

    def __init__(self, tools: Optional[Iterable[ToolDefinition]] = None):
        entries: Dict[str, ToolDefinition] = {}
        for tool in (DEFAULT_TOOLS if tools is None else tools):
            if tool.name in entries:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            entries[tool.name] = tool
        self._tools: Mapping[str, ToolDefinition] = MappingProxyType(entries)

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def describe(self) -> List[Dict[str, Any]]:
        """Catalog entries without handlers, for prompts and the API"""
        return [tool.model_dump(by_alias=True) for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

default_registry = ToolRegistry()
