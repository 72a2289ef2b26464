# server/agents/monitoring/agent.py
"""
Crop monitoring agent: follows a diagnosed crop across scheduled checkpoints
"""

from typing import Optional, Union

from agents.base import BaseAgent
from agents.monitoring.engine import (
    DEFAULT_CHECKPOINT_DAYS, DEFAULT_DURATION_DAYS, FALLBACK_CHECKPOINT_GAP_DAYS, MonitoringEngine
)
from agents.monitoring.models import (
    CheckpointOutcome, CheckpointRequest, DecisionRequest, MonitoringPlan, MonitoringResponse,
    StartMonitoringRequest, TreatmentPlanRequest, TreatmentPlanResponse
)
from agents.tools.executor import DEFAULT_TOOL_TIMEOUT_SECONDS, ToolExecutor
from agents.tools.registry import default_registry
from core.completion import GeminiCompletionClient
from core.exceptions import AgentConfigError

MonitoringRequest = Union[StartMonitoringRequest, CheckpointRequest, DecisionRequest]

class MonitoringAgent(BaseAgent[MonitoringRequest, MonitoringResponse]):
    """
    Crop monitoring agent using Google Generative AI

    Features:
    - Checkpoint schedule planned from the initial diagnosis
    - Follow-up image assessment against the full plan history
    - Autonomous continue / adjust / escalate / success decisions
    - Tool-backed follow-up decisions over recorded checkpoints
    - Treatment timeline generation from a diagnosis
    """

    response_class = MonitoringResponse

    def __init__(self, engine: Optional[MonitoringEngine] = None):
        # Plans change on every call, nothing to cache
        super().__init__("monitoring", cache_enabled=False)
        self.engine = engine or self._build_engine()
        self.logger.info("Monitoring agent initialized")

    def _build_engine(self) -> MonitoringEngine:
        client = GeminiCompletionClient(
            api_key=self.settings.google_api_key,
            model=self.settings.gemini_model,
            temperature=self.config.get("temperature", self.settings.gemini_temperature),
            max_output_tokens=self.settings.gemini_max_output_tokens,
        )
        return MonitoringEngine(
            client,
            default_checkpoint_days=self.config.get("default_checkpoint_days", DEFAULT_CHECKPOINT_DAYS),
            default_duration_days=self.config.get("default_duration_days", DEFAULT_DURATION_DAYS),
            checkpoint_gap_days=self.config.get("default_checkpoint_interval_days", FALLBACK_CHECKPOINT_GAP_DAYS),
            tool_executor=ToolExecutor(
                default_registry,
                timeout_seconds=self.settings.get_agent_config("tools").get("timeout_seconds", DEFAULT_TOOL_TIMEOUT_SECONDS),
            ),
        )

    def _validate_config(self) -> None:
        """Validate monitoring agent configuration"""
        days = self.config.get("default_checkpoint_days", DEFAULT_CHECKPOINT_DAYS)
        if not days or any(not isinstance(d, int) or d < 1 for d in days):
            raise AgentConfigError(f"default_checkpoint_days must be positive integers, got {days}")

    async def process_request(self, request: MonitoringRequest) -> MonitoringResponse:
        """Process a start, checkpoint or decision request"""
        if isinstance(request, StartMonitoringRequest):
            plan = await self.engine.create_plan(request.diagnosis, request.treatment_plan, request.duration_days)
            return MonitoringResponse(
                success=True,
                data=plan,
                message=f"Monitoring activated! Next checkpoint: Day {plan.next_checkpoint_day}",
                metadata={"planId": plan.id, "checkpointDays": plan.strategy.checkpoint_days if plan.strategy else []},
            )

        if isinstance(request, DecisionRequest):
            location = request.location.describe() if request.location else None
            report = await self.engine.decide(request.plan, request.checkpoint_day, location, request.enable_tools)
            decision = report.autonomous_decision
            self.logger.info(f"Plan {report.plan_id} day {report.checkpoint_day} decision: {decision.action}")
            return MonitoringResponse(
                success=True,
                data=report,
                message=f"Agent decision for day {report.checkpoint_day}: {decision.action} ({decision.urgency} urgency)",
                metadata={
                    "planId": report.plan_id,
                    "toolsUsed": report.tools_used,
                    "autonomousMode": True,
                    "fallback": report.fallback,
                },
            )

        checkpoint, plan = await self.engine.submit_checkpoint(
            request.plan,
            request.day,
            request.image,
            user_notes=request.user_notes,
            weather_conditions=request.weather_conditions,
        )
        self.logger.info(f"Plan {plan.id} day {checkpoint.day}: {checkpoint.decision.action}, status {plan.current_status}")
        return MonitoringResponse(
            success=True,
            data=CheckpointOutcome(checkpoint=checkpoint, plan=plan),
            message=f"Day {checkpoint.day} analysis complete. Status: {checkpoint.analysis.overall_progress}",
            metadata={"planId": plan.id, "decision": checkpoint.decision.action, "planStatus": plan.current_status},
        )

    def get_fallback_response(self, request: MonitoringRequest, error: Exception) -> MonitoringResponse:
        """Get fallback response when agent fails"""
        return MonitoringResponse(
            success=False,
            message=f"Monitoring request failed: {error}",
            metadata={"fallback": True, "error": str(error)},
        )

    async def generate_treatment_plan(self, request: TreatmentPlanRequest) -> TreatmentPlanResponse:
        plan, fallback = await self.engine.generate_treatment_plan(
            request.diagnosis, request.preferences, request.language
        )
        return TreatmentPlanResponse(
            success=True,
            data=plan,
            message=f"Treatment plan with {len(plan.timeline)} step(s) for {request.diagnosis.crop_type}",
            metadata={"fallback": fallback, "language": request.language},
        )

    def pause_plan(self, plan: MonitoringPlan) -> MonitoringResponse:
        paused = self.engine.pause(plan)
        self.logger.info(f"Paused monitoring plan {plan.id}")
        return MonitoringResponse(success=True, data=paused, message="Monitoring paused")

    def resume_plan(self, plan: MonitoringPlan) -> MonitoringResponse:
        resumed = self.engine.resume(plan)
        self.logger.info(f"Resumed monitoring plan {plan.id}")
        return MonitoringResponse(
            success=True,
            data=resumed,
            message=f"Monitoring resumed. Next checkpoint: Day {resumed.next_checkpoint_day}",
        )
