# server/agents/diagnosis/__init__.py
"""
Plant diagnosis agent package
"""

from .agent import DiagnosisAgent
from .models import AnalysisRequest, AnalysisResult, DiagnosisResponse, NormalizedDiagnosis
from .orchestrator import AnalysisOrchestrator

__all__ = [
    "DiagnosisAgent",
    "AnalysisOrchestrator",
    "AnalysisRequest",
    "AnalysisResult",
    "DiagnosisResponse",
    "NormalizedDiagnosis",
]
