# server/agents/monitoring/__init__.py
"""
Crop monitoring agent package
"""

from .agent import MonitoringAgent
from .engine import MonitoringEngine, next_status
from .models import MonitoringCheckpoint, MonitoringPlan, MonitoringResponse

__all__ = [
    "MonitoringAgent",
    "MonitoringEngine",
    "next_status",
    "MonitoringCheckpoint",
    "MonitoringPlan",
    "MonitoringResponse",
]
