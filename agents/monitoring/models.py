# server/agents/monitoring/models.py
"""
Pydantic models for the monitoring agent
"""
import time
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import Field, field_validator

from agents.diagnosis.models import CamelModel, GeoLocation, NormalizedDiagnosis
from agents.tools.models import ToolResult

PlanStatus = Literal["active", "paused", "critical", "completed"]
Progress = Literal["improving", "stable", "worsening", "new_issues"]
DecisionAction = Literal["continue_plan", "adjust_treatment", "escalate", "add_intervention", "declare_success"]
Urgency = Literal["low", "medium", "high", "critical"]
ResourcePreference = Literal["organic", "chemical", "balanced"]
WeatherImpact = Literal["positive", "neutral", "negative"]
Priority = Literal["low", "medium", "high"]

PROGRESS_VALUES: Tuple[str, ...] = ("improving", "stable", "worsening", "new_issues")
DECISION_ACTIONS: Tuple[str, ...] = ("continue_plan", "adjust_treatment", "escalate", "add_intervention", "declare_success")
URGENCY_LEVELS: Tuple[str, ...] = ("low", "medium", "high", "critical")
WEATHER_IMPACTS: Tuple[str, ...] = ("positive", "neutral", "negative")
PRIORITIES: Tuple[str, ...] = ("low", "medium", "high")

def _now_ms() -> float:
    return time.time() * 1000

# ---------- treatment plan & strategy ----------

class TreatmentPreferences(CamelModel):
    farm_size: Optional[str] = None
    budget: Optional[str] = None
    resource_preference: ResourcePreference = "balanced"

class TreatmentStep(CamelModel):
    day: int = Field(..., ge=0)
    action: str
    details: str = ""
    cost: Optional[str] = None
    weather_note: Optional[str] = None

class EconomicAnalysis(CamelModel):
    total_estimated_cost: str = ""
    potential_savings: str = ""
    roi: str = ""

class WeatherAdaptations(CamelModel):
    rain: str = ""
    drought: str = ""
    heatwave: str = ""

class TreatmentPlan(CamelModel):
    timeline: List[TreatmentStep] = Field(default_factory=list)
    alternatives: List[str] = Field(default_factory=list)
    economic_analysis: Optional[EconomicAnalysis] = None
    weather_adaptations: Optional[WeatherAdaptations] = None
    notes: Optional[str] = None

class ScheduledCheckpoint(CamelModel):
    day: int = Field(..., ge=1)
    purpose: str = ""
    expected_changes: List[str] = Field(default_factory=list)
    key_indicators: List[str] = Field(default_factory=list)

class SuccessCriteria(CamelModel):
    symptom_reduction: str = ""
    timeframe: str = ""
    visual_markers: List[str] = Field(default_factory=list)

class MonitoringStrategy(CamelModel):
    checkpoint_schedule: List[ScheduledCheckpoint] = Field(..., min_length=1)
    success_criteria: SuccessCriteria = Field(default_factory=SuccessCriteria)
    warning_signs: List[str] = Field(default_factory=list)
    adaptive_strategy: str = ""
    continuity_token: Optional[str] = None

    @property
    def checkpoint_days(self) -> List[int]:
        return sorted({c.day for c in self.checkpoint_schedule})

    def expectations_for(self, day: int) -> Optional[ScheduledCheckpoint]:
        return next((c for c in self.checkpoint_schedule if c.day == day), None)

# ---------- checkpoint assessment ----------

class ProgressAnalysis(CamelModel):
    overall_progress: Progress = "stable"
    symptom_changes: List[str] = Field(default_factory=list)
    new_symptoms: List[str] = Field(default_factory=list)
    resolved_symptoms: List[str] = Field(default_factory=list)
    severity_change: int = Field(0, ge=-2, le=2)
    yield_impact_change: str = ""
    confidence: float = Field(0, ge=0, le=100)

class AgentDecision(CamelModel):
    action: DecisionAction = "continue_plan"
    reasoning: str = ""
    confidence: float = Field(0, ge=0, le=100)
    suggested_actions: List[str] = Field(default_factory=list)
    urgency: Urgency = "medium"

class CheckpointAssessment(CamelModel):
    analysis: ProgressAnalysis = Field(default_factory=ProgressAnalysis)
    agent_reasoning: str = ""
    plan_adjustments: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    decision: AgentDecision = Field(default_factory=AgentDecision)
    weather_impact: Optional[str] = None
    next_checkpoint_day: Optional[int] = None
    continuity_token: Optional[str] = None

class MonitoringCheckpoint(CamelModel):
    id: str
    day: int = Field(..., ge=1)
    timestamp: float = Field(default_factory=_now_ms, description="Epoch milliseconds")
    image_ref: str
    user_notes: str = ""
    analysis: ProgressAnalysis
    agent_reasoning: str = ""
    plan_adjustments: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    weather_context: Optional[str] = None
    decision: AgentDecision

# ---------- autonomous decision ----------

class WeatherAdaptation(CamelModel):
    impact: WeatherImpact = "neutral"
    adjustments: List[str] = Field(default_factory=list)
    timing: str = ""

class ResearchInsights(CamelModel):
    on_track: bool = True
    expected_vs_actual: str = ""
    corrections: List[str] = Field(default_factory=list)

class YieldOptimization(CamelModel):
    projected_impact: str = ""
    economic_value: str = ""
    recommendation: str = ""

class NextAction(CamelModel):
    action: str
    timing: str = ""
    reason: str = ""
    priority: Priority = "medium"

class DecisionAssessment(CamelModel):
    autonomous_decision: AgentDecision = Field(default_factory=AgentDecision)
    weather_adaptation: WeatherAdaptation = Field(default_factory=WeatherAdaptation)
    research_insights: ResearchInsights = Field(default_factory=ResearchInsights)
    yield_optimization: YieldOptimization = Field(default_factory=YieldOptimization)
    next_actions: List[NextAction] = Field(default_factory=list)
    tool_call_summary: str = ""

class DecisionReport(DecisionAssessment):
    """A decision over one recorded checkpoint. The plan itself is not changed."""
    plan_id: str
    checkpoint_day: int = Field(..., ge=1)
    tools_used: List[str] = Field(default_factory=list)
    tool_results: List[ToolResult] = Field(default_factory=list)
    fallback: bool = False

# ---------- plan ----------

class MonitoringPlan(CamelModel):
    id: str
    start_date: float = Field(default_factory=_now_ms, description="Epoch milliseconds")
    crop_type: str
    initial_diagnosis: NormalizedDiagnosis
    initial_treatment_plan: TreatmentPlan = Field(default_factory=TreatmentPlan)
    checkpoints: List[MonitoringCheckpoint] = Field(default_factory=list)
    current_status: PlanStatus = "active"
    total_duration_days: int = Field(14, ge=1)
    next_checkpoint_day: int = Field(3, ge=1)
    adaptive_insights: List[str] = Field(default_factory=list)
    continuity_token: str
    strategy: Optional[MonitoringStrategy] = None

    @field_validator("checkpoints")
    @classmethod
    def _days_ascending(cls, checkpoints: List[MonitoringCheckpoint]) -> List[MonitoringCheckpoint]:
        days = [c.day for c in checkpoints]
        if any(a >= b for a, b in zip(days, days[1:])):
            raise ValueError("checkpoints must be strictly ordered by day")
        return checkpoints

    @property
    def last_checkpoint_day(self) -> int:
        return self.checkpoints[-1].day if self.checkpoints else 0

# ---------- API envelopes ----------

class StartMonitoringRequest(CamelModel):
    diagnosis: NormalizedDiagnosis
    treatment_plan: TreatmentPlan = Field(default_factory=TreatmentPlan)
    duration_days: Optional[int] = Field(None, ge=1, le=365, description="Defaults to the configured monitoring duration")

class CheckpointRequest(CamelModel):
    plan: MonitoringPlan
    day: int = Field(..., ge=1)
    image: str = Field(..., description="Base64 encoded follow-up image or storage reference")
    user_notes: str = ""
    weather_conditions: str = ""

class PlanRequest(CamelModel):
    plan: MonitoringPlan

class DecisionRequest(CamelModel):
    plan: MonitoringPlan
    checkpoint_day: Optional[int] = Field(None, ge=1, description="Defaults to the latest checkpoint")
    location: Optional[GeoLocation] = Field(None, description="Where the crop is grown, for the weather lookup")
    enable_tools: bool = Field(True, description="Run weather, research and crop lookups before deciding")

class TreatmentPlanRequest(CamelModel):
    diagnosis: NormalizedDiagnosis
    preferences: TreatmentPreferences = Field(default_factory=TreatmentPreferences)
    language: str = Field("en", description="Language for generated text values")

class CheckpointOutcome(CamelModel):
    checkpoint: MonitoringCheckpoint
    plan: MonitoringPlan

class MonitoringResponse(CamelModel):
    success: bool
    data: Optional[Union[CheckpointOutcome, DecisionReport, MonitoringPlan]] = None
    message: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    metadata: Optional[Dict[str, Any]] = None

class TreatmentPlanResponse(CamelModel):
    success: bool
    data: Optional[TreatmentPlan] = None
    message: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    metadata: Optional[Dict[str, Any]] = None
