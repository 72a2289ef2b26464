# server/agents/diagnosis/agent.py
"""
Plant diagnosis agent: wraps the analysis pipeline for the API
"""

from typing import Any, Dict, List, Optional

from agents.base import BaseAgent
from agents.diagnosis.fallback import FallbackReason, build_fallback_diagnosis
from agents.diagnosis.models import (
    AnalysisRequest, AnalysisResult, DiagnosisResponse, StageStatus
)
from agents.diagnosis.orchestrator import AnalysisOrchestrator
from agents.diagnosis.refinement import DEFAULT_REFINEMENT_THRESHOLD, RefinementGate
from agents.tools.executor import DEFAULT_TOOL_TIMEOUT_SECONDS, ToolExecutor
from agents.tools.models import ToolCall
from agents.tools.registry import default_registry
from core.completion import GeminiCompletionClient
from core.exceptions import AgentConfigError

class DiagnosisAgent(BaseAgent[AnalysisRequest, DiagnosisResponse]):
    """
    Plant diagnosis agent using Google Generative AI

    Features:
    - Vision analysis with concurrent lesion preprocessing
    - Model-planned lookups against the tool catalog
    - Refinement pass when tool evidence meets low confidence
    - Demo-mode fallback when the completion service is unavailable
    """

    response_class = DiagnosisResponse

    def __init__(self, orchestrator: Optional[AnalysisOrchestrator] = None, cache_enabled: Optional[bool] = None):
        super().__init__("diagnosis", cache_enabled=cache_enabled)
        self.orchestrator = orchestrator or self._build_orchestrator()
        self.logger.info("Diagnosis agent initialized")

    def _build_orchestrator(self) -> AnalysisOrchestrator:
        tools_config = self.settings.get_agent_config("tools")
        client = GeminiCompletionClient(
            api_key=self.settings.google_api_key,
            model=self.settings.gemini_model,
            temperature=self.settings.gemini_temperature,
            max_output_tokens=self.settings.gemini_max_output_tokens,
        )
        return AnalysisOrchestrator(
            completion_client=client,
            executor=ToolExecutor(
                default_registry,
                timeout_seconds=tools_config.get("timeout_seconds", DEFAULT_TOOL_TIMEOUT_SECONDS),
            ),
            gate=RefinementGate(
                self.config.get("refinement_confidence_threshold", DEFAULT_REFINEMENT_THRESHOLD)
            ),
            registry=default_registry,
        )

    def _validate_config(self) -> None:
        """Validate diagnosis agent configuration"""
        threshold = self.config.get("refinement_confidence_threshold", DEFAULT_REFINEMENT_THRESHOLD)
        if not 0 <= threshold <= 100:
            raise AgentConfigError(f"refinement_confidence_threshold must be within 0-100, got {threshold}")

        if not self.settings.google_api_key:
            self.logger.warning("GOOGLE_API_KEY not found - add to .env file for full functionality")

    async def process_request(self, request: AnalysisRequest) -> DiagnosisResponse:
        """Process diagnosis request"""
        result = await self.orchestrator.run(request)
        diagnosis = result.diagnosis

        self.logger.info(
            f"Diagnosis completed. Crop: {diagnosis.crop_type}, "
            f"primary confidence: {diagnosis.primary_confidence:.0f}, demo mode: {diagnosis.demo_mode}"
        )

        return DiagnosisResponse(
            success=True,
            data=result,
            message=self._generate_response_message(result),
            metadata={
                "demoMode": diagnosis.demo_mode,
                "fastPath": result.fast_path,
                "toolsUsed": result.tools_used,
                "analysisMethod": "google_generative_ai",
                "language": request.language,
            }
        )

    def should_cache_response(self, response: DiagnosisResponse) -> bool:
        if not response.success or response.data is None:
            return False
        return not response.data.diagnosis.demo_mode

    def _generate_response_message(self, result: AnalysisResult) -> str:
        """Generate response message based on analysis results"""
        diagnosis = result.diagnosis
        if diagnosis.demo_mode:
            return diagnosis.demo_reason or "Demo mode: showing general guidance."

        primary = diagnosis.primary_disease
        if primary is None:
            return f"No disease detected on {diagnosis.crop_type}. Continue regular care."

        confidence_level = "high" if primary.confidence >= 80 else "medium" if primary.confidence >= 60 else "low"
        if diagnosis.severity == "high":
            urgency = "Immediate action required!"
        elif diagnosis.severity == "medium":
            urgency = "Treatment recommended soon."
        else:
            urgency = "Monitor and apply preventive measures."

        return (
            f"Detected {primary.name} on {diagnosis.crop_type} with {confidence_level} confidence "
            f"({primary.confidence:.0f}%). Severity: {diagnosis.severity}. {urgency}"
        )

    def get_fallback_response(self, request: AnalysisRequest, error: Exception) -> DiagnosisResponse:
        """Get fallback response when agent fails"""
        return DiagnosisResponse(
            success=False,
            data=AnalysisResult(
                diagnosis=build_fallback_diagnosis(FallbackReason.UNEXPECTED),
                stage_status=StageStatus(visual_analysis="failed"),
            ),
            message=f"Diagnosis failed: {error}. General recommendations provided.",
            metadata={"fallback": True, "demoMode": False, "error": str(error)}
        )

    def list_tools(self) -> List[Dict[str, Any]]:
        """Tool catalog the model may plan calls against"""
        return self.orchestrator.registry.describe()

    async def get_common_diseases(self, crop_type: str) -> Dict[str, Any]:
        """Common diseases for a crop, served from the crop database tool"""
        result = await self.orchestrator.executor.execute(
            ToolCall(tool_name="query_crop_database", parameters={"cropType": crop_type, "query": "common_diseases"})
        )
        return result.model_dump(by_alias=True)
