# server/agents/monitoring/engine.py
"""
Multi-day monitoring state machine.

Plans are immutable from the engine's point of view: every operation that
changes a plan returns a new one. The engine holds no locks, so callers must
serialize submissions for the same plan.
"""
import logging
import uuid
from typing import List, Optional, Sequence, Tuple

from agents.diagnosis.models import NormalizedDiagnosis
from agents.monitoring.models import (
    AgentDecision, CheckpointAssessment, DecisionAssessment, DecisionReport, EconomicAnalysis,
    MonitoringCheckpoint, MonitoringPlan, MonitoringStrategy, NextAction, ProgressAnalysis,
    ResearchInsights, ScheduledCheckpoint, SuccessCriteria, TreatmentPlan, TreatmentPreferences,
    TreatmentStep, WeatherAdaptation, WeatherAdaptations, YieldOptimization
)
from agents.monitoring.normalizer import MonitoringNormalizer
from agents.monitoring.prompts import (
    checkpoint_prompt, decision_prompt, strategy_prompt, treatment_plan_prompt
)
from agents.tools.executor import ToolExecutor
from agents.tools.models import ToolCall
from core.completion import CompletionClient
from core.exceptions import CompletionError, InputError, ParseError, PlanStateError

logger = logging.getLogger(__name__)

DEFAULT_DURATION_DAYS = 14
DEFAULT_CHECKPOINT_DAYS = (3, 7, 14)
FALLBACK_CHECKPOINT_GAP_DAYS = 3

DEFAULT_SCHEDULE_DETAILS = {
    3: ("Early treatment response", ["Initial symptom changes"], ["Symptom spread", "New lesions"]),
    7: ("Mid-treatment assessment", ["Visible improvement or stabilization"], ["Symptom severity", "Leaf health"]),
    14: ("Final evaluation", ["Significant recovery or plan adjustment needed"], ["Overall plant health", "Yield potential"]),
}

def next_status(current: str, decision: AgentDecision) -> str:
    """Plan status after a checkpoint decision"""
    if current in ("completed", "paused"):
        return current
    if decision.action == "declare_success":
        return "completed"
    if decision.urgency == "critical":
        return "critical"
    if current == "critical":
        return "active" if decision.action == "continue_plan" else "critical"
    return "active"

def default_strategy(duration_days: int, checkpoint_days: Sequence[int] = DEFAULT_CHECKPOINT_DAYS) -> MonitoringStrategy:
    days = [d for d in sorted(set(checkpoint_days)) if 1 <= d <= duration_days] or [duration_days]
    schedule = []
    for day in days:
        purpose, expected, indicators = DEFAULT_SCHEDULE_DETAILS.get(
            day, ("Progress assessment", ["Treatment response"], ["Symptom spread", "Leaf health"])
        )
        schedule.append(ScheduledCheckpoint(day=day, purpose=purpose, expected_changes=expected, key_indicators=indicators))

    return MonitoringStrategy(
        checkpoint_schedule=schedule,
        success_criteria=SuccessCriteria(
            symptom_reduction="50-70% reduction in visible symptoms",
            timeframe=f"{min(7, duration_days)}-{duration_days} days",
            visual_markers=["New healthy growth", "Reduced lesion spread", "Improved leaf color"],
        ),
        warning_signs=["Rapid symptom spread", "New disease types", "Plant wilting", "Fruit/flower drop"],
        adaptive_strategy=(
            "Monitor progress at each checkpoint and adjust treatment intensity, frequency, "
            "or method based on observed changes"
        ),
    )

def neutral_assessment(weather_conditions: str = "") -> CheckpointAssessment:
    """Used when the follow-up analysis can't be obtained or read"""
    return CheckpointAssessment(
        analysis=ProgressAnalysis(
            overall_progress="stable",
            symptom_changes=["Unable to obtain detailed analysis"],
            severity_change=0,
            yield_impact_change="Requires manual review",
            confidence=50,
        ),
        agent_reasoning="Checkpoint recorded but detailed reasoning unavailable. Manual review recommended.",
        plan_adjustments=["Continue current treatment plan"],
        next_steps=["Monitor closely", "Upload next checkpoint image as scheduled"],
        decision=AgentDecision(
            action="continue_plan",
            reasoning="Insufficient data for major changes",
            confidence=50,
            suggested_actions=["Continue current treatment"],
            urgency="medium",
        ),
        weather_impact=weather_conditions or None,
    )

def fallback_decision() -> DecisionAssessment:
    """Used when the autonomous decision can't be obtained or read"""
    return DecisionAssessment(
        autonomous_decision=AgentDecision(
            action="continue_plan",
            reasoning="Analysis completed with tool support. Continuing current strategy.",
            confidence=75,
            urgency="medium",
        ),
        weather_adaptation=WeatherAdaptation(
            impact="neutral", adjustments=["Monitor weather closely"], timing="Continue as scheduled"
        ),
        research_insights=ResearchInsights(
            on_track=True, expected_vs_actual="Progress aligns with typical patterns"
        ),
        yield_optimization=YieldOptimization(
            projected_impact="Stable trajectory",
            economic_value="Current plan is cost-effective",
            recommendation="Continue current approach",
        ),
        next_actions=[
            NextAction(
                action="Continue current treatment",
                timing="As scheduled",
                reason="Progress is satisfactory",
                priority="medium",
            )
        ],
        tool_call_summary="Tool results support continuing current plan",
    )

def fallback_treatment_plan(
    diagnosis: NormalizedDiagnosis, preferences: Optional[TreatmentPreferences] = None
) -> TreatmentPlan:
    """Fixed 14-day timeline, first treatment picked by the farmer's preference"""
    preference = preferences.resource_preference if preferences else "balanced"
    if preference == "chemical":
        product = diagnosis.chemical_treatments[0] if diagnosis.chemical_treatments else "the recommended fungicide"
        first_treatment = f"Apply {product} according to label instructions."
    else:
        product = diagnosis.organic_treatments[0] if diagnosis.organic_treatments else "neem oil spray"
        first_treatment = f"Apply {product} in the early morning or late evening."

    return TreatmentPlan(
        timeline=[
            TreatmentStep(day=1, action="Initial Assessment",
                          details="Inspect all affected plants and remove severely damaged leaves.",
                          cost="Free", weather_note="Can be done in any weather"),
            TreatmentStep(day=2, action="Apply First Treatment", details=first_treatment,
                          cost="$10-20", weather_note="Avoid if rain expected within 24 hours"),
            TreatmentStep(day=5, action="Monitor Progress",
                          details="Check for new symptoms or spread. Document any changes.", cost="Free"),
            TreatmentStep(day=7, action="Second Treatment",
                          details="Repeat treatment if symptoms persist. Adjust approach if needed.",
                          cost="$10-20", weather_note="Delay if heavy rain forecast"),
            TreatmentStep(day=10, action="Preventive Measures",
                          details="Improve drainage, spacing or ventilation to prevent recurrence.", cost="$5-15"),
            TreatmentStep(day=14, action="Final Assessment",
                          details="Evaluate overall improvement. Plan long-term prevention strategy.", cost="Free"),
        ],
        alternatives=[
            "If organic methods are insufficient, consider targeted chemical treatment",
            "For budget constraints, try homemade remedies like garlic or baking soda spray",
            "Consult local agricultural extension for region-specific advice",
        ],
        economic_analysis=EconomicAnalysis(
            total_estimated_cost="$25-55",
            potential_savings="Prevents $150-300 in crop loss",
            roi="3-6x return on investment",
        ),
        weather_adaptations=WeatherAdaptations(
            rain="Delay sprays, improve drainage, increase monitoring",
            drought="Adjust watering schedule, mulch to retain moisture",
            heatwave="Apply treatments in early morning or evening, provide shade if possible",
        ),
    )

def decision_tool_calls(plan: MonitoringPlan, location: Optional[str] = None) -> List[ToolCall]:
    """Weather (when the location is known), disease research and crop treatment lookups"""
    calls = []
    if location:
        calls.append(ToolCall(tool_name="get_weather_forecast", parameters={"location": location, "days": 7}))
    primary = plan.initial_diagnosis.primary_disease
    if primary:
        calls.append(ToolCall(tool_name="search_disease_research", parameters={"disease": primary.name}))
    calls.append(ToolCall(
        tool_name="query_crop_database",
        parameters={"cropType": plan.crop_type, "query": "treatment_options"},
    ))
    return calls

class MonitoringEngine:
    """Creates monitoring plans and advances them one checkpoint at a time"""

    def __init__(
        self,
        completion_client: CompletionClient,
        normalizer: Optional[MonitoringNormalizer] = None,
        default_checkpoint_days: Sequence[int] = DEFAULT_CHECKPOINT_DAYS,
        default_duration_days: int = DEFAULT_DURATION_DAYS,
        checkpoint_gap_days: int = FALLBACK_CHECKPOINT_GAP_DAYS,
        tool_executor: Optional[ToolExecutor] = None,
    ):
        self.client = completion_client
        self.normalizer = normalizer or MonitoringNormalizer()
        self.default_checkpoint_days = tuple(default_checkpoint_days)
        self.default_duration_days = default_duration_days
        self.checkpoint_gap_days = checkpoint_gap_days
        self.tool_executor = tool_executor or ToolExecutor()

    async def create_plan(
        self,
        diagnosis: NormalizedDiagnosis,
        treatment_plan: Optional[TreatmentPlan] = None,
        duration_days: Optional[int] = None,
    ) -> MonitoringPlan:
        if duration_days is None:
            duration_days = self.default_duration_days
        if duration_days < 1:
            raise InputError("Monitoring duration must be at least one day")
        if treatment_plan is None or not treatment_plan.timeline:
            treatment_plan = fallback_treatment_plan(diagnosis)

        try:
            raw_text = await self.client.complete(
                strategy_prompt(diagnosis, treatment_plan, duration_days),
                response_shape_hint="monitoring strategy",
            )
            strategy = self._within_duration(self.normalizer.parse_strategy(raw_text), duration_days)
        except (ParseError, CompletionError) as e:
            logger.warning(f"Using default monitoring strategy: {e}")
            strategy = default_strategy(duration_days, self.default_checkpoint_days)

        primary = diagnosis.primary_disease
        disease_name = primary.name if primary else "no detected disease"

        plan = MonitoringPlan(
            id=f"mon_{uuid.uuid4().hex[:12]}",
            crop_type=diagnosis.crop_type,
            initial_diagnosis=diagnosis,
            initial_treatment_plan=treatment_plan,
            current_status="active",
            total_duration_days=duration_days,
            next_checkpoint_day=strategy.checkpoint_days[0],
            adaptive_insights=[
                f"Monitoring plan initiated for {diagnosis.crop_type} with {disease_name}",
                f"Strategy: {strategy.adaptive_strategy or 'Adjust treatment based on observed progress'}",
            ],
            continuity_token=strategy.continuity_token or self._generate_token(diagnosis),
            strategy=strategy,
        )
        logger.info(f"Created monitoring plan {plan.id}, first checkpoint on day {plan.next_checkpoint_day}")
        return plan

    async def submit_checkpoint(
        self,
        plan: MonitoringPlan,
        day: int,
        image_ref: str,
        user_notes: str = "",
        weather_conditions: str = "",
    ) -> Tuple[MonitoringCheckpoint, MonitoringPlan]:
        if plan.current_status == "completed":
            raise PlanStateError(f"Monitoring plan {plan.id} is completed and accepts no more checkpoints")
        if day <= plan.last_checkpoint_day:
            raise InputError(
                f"Checkpoint day {day} must be after the last checkpoint (day {plan.last_checkpoint_day})"
            )
        if not image_ref or not image_ref.strip():
            raise InputError("A follow-up image is required for a checkpoint")

        try:
            raw_text = await self.client.complete(
                checkpoint_prompt(plan, day, user_notes, weather_conditions),
                image=image_ref,
                continuity_token=plan.continuity_token,
                response_shape_hint="checkpoint assessment",
            )
            assessment = self.normalizer.parse_checkpoint(raw_text)
        except (ParseError, CompletionError) as e:
            logger.warning(f"Checkpoint day {day} of plan {plan.id} fell back to neutral assessment: {e}")
            assessment = neutral_assessment(weather_conditions)

        checkpoint = MonitoringCheckpoint(
            id=f"cp_{uuid.uuid4().hex[:12]}",
            day=day,
            image_ref=image_ref,
            user_notes=user_notes,
            analysis=assessment.analysis,
            agent_reasoning=assessment.agent_reasoning,
            plan_adjustments=assessment.plan_adjustments,
            next_steps=assessment.next_steps,
            weather_context=assessment.weather_impact or weather_conditions or None,
            decision=assessment.decision,
        )

        status = next_status(plan.current_status, assessment.decision)
        reasoning = assessment.decision.reasoning or assessment.agent_reasoning
        insight = f"Day {day}: {assessment.analysis.overall_progress.upper()} - {reasoning}"

        updated = plan.model_copy(update={
            "checkpoints": [*plan.checkpoints, checkpoint],
            "current_status": status,
            "next_checkpoint_day": self._next_checkpoint_day(plan, day, assessment),
            "adaptive_insights": [*plan.adaptive_insights, insight],
            "continuity_token": assessment.continuity_token or plan.continuity_token,
        })

        if status != plan.current_status:
            logger.info(f"Plan {plan.id} moved {plan.current_status} -> {status} on day {day}")
        return checkpoint, updated

    async def decide(
        self,
        plan: MonitoringPlan,
        checkpoint_day: Optional[int] = None,
        location: Optional[str] = None,
        enable_tools: bool = True,
    ) -> DecisionReport:
        """
        Autonomous decision over a recorded checkpoint, backed by tool lookups.

        Read-only: the plan is not advanced. Lookups that fail are reported
        in tool_results but left out of tools_used.
        """
        checkpoint = self._checkpoint(plan, checkpoint_day)
        tool_results = await self.tool_executor.execute_all(
            decision_tool_calls(plan, location) if enable_tools else []
        )

        fallback = False
        try:
            raw_text = await self.client.complete(
                decision_prompt(plan, checkpoint, tool_results),
                continuity_token=plan.continuity_token,
                response_shape_hint="autonomous decision",
            )
            assessment = self.normalizer.parse_decision(raw_text)
        except (ParseError, CompletionError) as e:
            logger.warning(f"Decision for day {checkpoint.day} of plan {plan.id} fell back to continue_plan: {e}")
            assessment = fallback_decision()
            fallback = True

        return DecisionReport(
            **assessment.model_dump(),
            plan_id=plan.id,
            checkpoint_day=checkpoint.day,
            tools_used=[r.tool_name for r in tool_results if not r.failed],
            tool_results=tool_results,
            fallback=fallback,
        )

    async def generate_treatment_plan(
        self,
        diagnosis: NormalizedDiagnosis,
        preferences: Optional[TreatmentPreferences] = None,
        language: str = "en",
    ) -> Tuple[TreatmentPlan, bool]:
        """Returns the plan and whether it is the fixed fallback timeline"""
        preferences = preferences or TreatmentPreferences()
        try:
            raw_text = await self.client.complete(
                treatment_plan_prompt(diagnosis, preferences, language),
                response_shape_hint="treatment plan",
            )
            return self.normalizer.parse_treatment_plan(raw_text), False
        except (ParseError, CompletionError) as e:
            logger.warning(f"Using fallback treatment plan for {diagnosis.crop_type}: {e}")
            return fallback_treatment_plan(diagnosis, preferences), True

    def pause(self, plan: MonitoringPlan) -> MonitoringPlan:
        if plan.current_status not in ("active", "critical"):
            raise PlanStateError(f"Cannot pause a {plan.current_status} plan")
        return plan.model_copy(update={"current_status": "paused"})

    def resume(self, plan: MonitoringPlan) -> MonitoringPlan:
        if plan.current_status != "paused":
            raise PlanStateError(f"Cannot resume a {plan.current_status} plan")
        return plan.model_copy(update={"current_status": "active"})

    @staticmethod
    def _checkpoint(plan: MonitoringPlan, day: Optional[int]) -> MonitoringCheckpoint:
        if not plan.checkpoints:
            raise InputError(f"Monitoring plan {plan.id} has no checkpoints to decide on")
        if day is None:
            return plan.checkpoints[-1]
        for checkpoint in plan.checkpoints:
            if checkpoint.day == day:
                return checkpoint
        raise InputError(f"Monitoring plan {plan.id} has no checkpoint on day {day}")

    @staticmethod
    def _within_duration(strategy: MonitoringStrategy, duration_days: int) -> MonitoringStrategy:
        schedule = [c for c in strategy.checkpoint_schedule if c.day <= duration_days]
        if not schedule:
            raise ParseError(f"No checkpoint day falls within the {duration_days}-day duration")
        return strategy.model_copy(update={"checkpoint_schedule": schedule})

    def _next_checkpoint_day(self, plan: MonitoringPlan, day: int, assessment: CheckpointAssessment) -> int:
        if assessment.next_checkpoint_day and assessment.next_checkpoint_day > day:
            return assessment.next_checkpoint_day
        if plan.strategy:
            upcoming = [d for d in plan.strategy.checkpoint_days if d > day]
            if upcoming:
                return upcoming[0]
        return day + self.checkpoint_gap_days

    @staticmethod
    def _generate_token(diagnosis: NormalizedDiagnosis) -> str:
        primary = diagnosis.primary_disease
        disease = primary.name if primary else "none"
        return f"{diagnosis.crop_type}_{disease}_{diagnosis.severity}_{uuid.uuid4().hex[:8]}"
