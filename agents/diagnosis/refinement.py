# server/agents/diagnosis/refinement.py
"""
Decides whether tool evidence warrants a second completion call
"""
from typing import Sequence

from agents.diagnosis.models import NormalizedDiagnosis
from agents.tools.models import ToolResult

DEFAULT_REFINEMENT_THRESHOLD = 85.0

class RefinementGate:
    """Refine only when tools ran and the model wasn't already confident"""

    def __init__(self, threshold: float = DEFAULT_REFINEMENT_THRESHOLD):
        self.threshold = threshold

    def should_refine(self, diagnosis: NormalizedDiagnosis, tool_results: Sequence[ToolResult]) -> bool:
        return len(tool_results) > 0 and diagnosis.primary_confidence <= self.threshold

    @staticmethod
    def audit_note(tool_results: Sequence[ToolResult]) -> str:
        names = ", ".join(r.tool_name for r in tool_results)
        return f"Verified with external tools: {names}."
