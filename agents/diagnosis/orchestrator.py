# server/agents/diagnosis/orchestrator.py
"""
Diagnosis pipeline: preprocessing and visual analysis run side by side, then
tool calls, then an optional refinement pass.
"""
import asyncio
import logging
from typing import List, Optional

from agents.diagnosis.fallback import FallbackReason, build_fallback_diagnosis
from agents.diagnosis.models import (
    AnalysisRequest, AnalysisResult, NormalizedDiagnosis, PreprocessingResult,
    PreprocessingSummary, StageStatus
)
from agents.diagnosis.normalizer import ResponseNormalizer
from agents.diagnosis.preprocessing import PreprocessingService
from agents.diagnosis.prompts import diagnosis_prompt, refinement_prompt
from agents.diagnosis.refinement import RefinementGate
from agents.tools.executor import ToolExecutor
from agents.tools.models import ToolResult
from agents.tools.registry import ToolRegistry, default_registry
from core.completion import CompletionClient
from core.exceptions import (
    AuthQuotaError, CompletionError, InputError, ParseError, RefinementParseError
)

logger = logging.getLogger(__name__)

RESPONSE_SHAPE = "diagnosis"

class AnalysisOrchestrator:
    """Runs one analysis request end to end"""

    def __init__(
        self,
        completion_client: CompletionClient,
        preprocessing: Optional[PreprocessingService] = None,
        executor: Optional[ToolExecutor] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        gate: Optional[RefinementGate] = None,
        registry: Optional[ToolRegistry] = None,
    ):
        self.client = completion_client
        self.registry = registry or default_registry
        self.preprocessing = preprocessing or PreprocessingService()
        self.executor = executor or ToolExecutor(self.registry)
        self.normalizer = normalizer or ResponseNormalizer()
        self.gate = gate or RefinementGate()

    async def run(self, request: AnalysisRequest) -> AnalysisResult:
        if not request.image or not request.image.strip():
            raise InputError("An image is required for analysis")

        status = StageStatus()
        preprocessing_task = None
        if request.enable_preprocessing:
            preprocessing_task = asyncio.create_task(self._preprocess(request.image))

        try:
            # Visual analysis
            try:
                raw_text = await self.client.complete(
                    diagnosis_prompt(request, self.registry.describe()),
                    image=request.image,
                    response_shape_hint=RESPONSE_SHAPE,
                )
            except AuthQuotaError as e:
                logger.warning(f"Completion unavailable, returning demo diagnosis: {e}")
                if preprocessing_task:
                    preprocessing_task.cancel()
                return AnalysisResult(
                    diagnosis=build_fallback_diagnosis(FallbackReason.AUTH_QUOTA, demo_mode=True),
                    stage_status=StageStatus(preprocessing="skipped", visual_analysis="failed"),
                )
            except CompletionError as e:
                logger.error(f"Visual analysis failed: {e}")
                status.visual_analysis = "failed"
                diagnosis = build_fallback_diagnosis(FallbackReason.COMPLETION_FAILURE)
                tool_results: List[ToolResult] = []
            else:
                diagnosis = self._parse_primary(raw_text, status)
                tool_results = await self._run_tools(request, diagnosis, status)
                diagnosis = await self._refine_or_annotate(request, diagnosis, tool_results, preprocessing_task, status)

            preprocessing = await preprocessing_task if preprocessing_task else None
        finally:
            if preprocessing_task and not preprocessing_task.done():
                preprocessing_task.cancel()

        if preprocessing_task:
            status.preprocessing = "completed" if preprocessing else "failed"

        return AnalysisResult(
            diagnosis=diagnosis,
            preprocessing=PreprocessingSummary.from_result(preprocessing) if preprocessing else None,
            tool_results=tool_results,
            stage_status=status,
            fast_path=status.refinement == "skipped",
            tools_used=[r.tool_name for r in tool_results],
        )

    async def _preprocess(self, image: str) -> Optional[PreprocessingResult]:
        try:
            return await self.preprocessing.analyze_async(image)
        except Exception as e:
            logger.warning(f"Preprocessing failed: {e}")
            return None

    def _parse_primary(self, raw_text: str, status: StageStatus) -> NormalizedDiagnosis:
        try:
            diagnosis = self.normalizer.parse(raw_text)
        except ParseError as e:
            logger.warning(f"Falling back to general diagnosis: {e}")
            status.visual_analysis = "failed"
            return build_fallback_diagnosis(FallbackReason.PARSE_FAILURE)

        status.visual_analysis = "completed"
        return diagnosis

    async def _run_tools(
        self, request: AnalysisRequest, diagnosis: NormalizedDiagnosis, status: StageStatus
    ) -> List[ToolResult]:
        if not request.enable_tools or not diagnosis.tool_calls_plan:
            return []

        results = await self.executor.execute_all(diagnosis.tool_calls_plan)
        status.tool_calling = "failed" if all(r.failed for r in results) else "completed"
        return results

    async def _refine_or_annotate(
        self,
        request: AnalysisRequest,
        diagnosis: NormalizedDiagnosis,
        tool_results: List[ToolResult],
        preprocessing_task: Optional["asyncio.Task"],
        status: StageStatus,
    ) -> NormalizedDiagnosis:
        if not self.gate.should_refine(diagnosis, tool_results):
            if tool_results:
                note = self.gate.audit_note(tool_results)
                logger.info("Skipping refinement - fast path")
                return diagnosis.model_copy(update={"agentic_reasoning": f"{diagnosis.agentic_reasoning}\n\n{note}"})
            return diagnosis

        # Use CV findings only if they are already in; never wait for them here
        preprocessing = None
        if preprocessing_task and preprocessing_task.done() and not preprocessing_task.cancelled():
            preprocessing = preprocessing_task.result()

        try:
            refined = await self._refine(request, diagnosis, tool_results, preprocessing)
        except (RefinementParseError, CompletionError) as e:
            logger.warning(f"Refinement failed, keeping initial diagnosis: {e}")
            status.refinement = "failed"
            return diagnosis

        status.refinement = "completed"
        return refined

    async def _refine(
        self,
        request: AnalysisRequest,
        diagnosis: NormalizedDiagnosis,
        tool_results: List[ToolResult],
        preprocessing: Optional[PreprocessingResult],
    ) -> NormalizedDiagnosis:
        logger.info(f"Refining diagnosis with {len(tool_results)} tool result(s)")
        raw_text = await self.client.complete(
            refinement_prompt(diagnosis, tool_results, request.language, preprocessing),
            response_shape_hint=RESPONSE_SHAPE,
        )
        try:
            return self.normalizer.parse(raw_text)
        except ParseError as e:
            raise RefinementParseError(str(e)) from e
