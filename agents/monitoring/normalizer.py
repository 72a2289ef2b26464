# server/agents/monitoring/normalizer.py
"""
Monitoring-shaped variants of the response normalizer: strategy, checkpoint,
autonomous decision and treatment plan
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from agents.diagnosis.normalizer import (
    ResponseNormalizer, as_list, as_number, as_string_list, as_text, extract_json_object,
    normalize_confidence, pick
)
from agents.monitoring.models import (
    DECISION_ACTIONS, PRIORITIES, PROGRESS_VALUES, URGENCY_LEVELS, WEATHER_IMPACTS,
    CheckpointAssessment, DecisionAssessment, MonitoringStrategy, TreatmentPlan
)
from core.exceptions import ParseError

logger = logging.getLogger(__name__)

def _enum_value(value: Any, allowed: Sequence[str], default: str) -> str:
    text = as_text(value).lower().replace("-", "_").replace(" ", "_")
    return text if text in allowed else default

def _token(data: Dict[str, Any]) -> Optional[str]:
    token = pick(data, "continuityToken", "continuity_token", "thoughtSignature", "thought_signature")
    return token if isinstance(token, str) and token else None

def _flag(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = as_text(value).lower()
    if text in ("true", "yes"):
        return True
    if text in ("false", "no"):
        return False
    return default

def _section(data: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    value = pick(data, *keys)
    return value if isinstance(value, dict) else {}

class MonitoringNormalizer(ResponseNormalizer):
    """Adds the monitoring record shapes to the diagnosis normalizer"""

    def parse_checkpoint(self, raw_text: str) -> CheckpointAssessment:
        data = extract_json_object(raw_text)
        analysis = data.get("analysis")
        decision = data.get("decision")
        if not isinstance(analysis, dict) and not isinstance(decision, dict):
            raise ParseError("Checkpoint response carried neither an analysis nor a decision")
        analysis = analysis if isinstance(analysis, dict) else {}
        decision = decision if isinstance(decision, dict) else {}

        severity_change = round(as_number(pick(analysis, "severityChange", "severity_change"), 0))
        next_day = round(as_number(pick(data, "nextCheckpointDay", "next_checkpoint_day"), 0))

        document = {
            "analysis": {
                "overallProgress": _enum_value(pick(analysis, "overallProgress", "overall_progress"), PROGRESS_VALUES, "stable"),
                "symptomChanges": as_string_list(pick(analysis, "symptomChanges", "symptom_changes")),
                "newSymptoms": as_string_list(pick(analysis, "newSymptoms", "new_symptoms")),
                "resolvedSymptoms": as_string_list(pick(analysis, "resolvedSymptoms", "resolved_symptoms")),
                "severityChange": max(-2, min(2, severity_change)),
                "yieldImpactChange": as_text(pick(analysis, "yieldImpactChange", "yield_impact_change")),
                "confidence": normalize_confidence(analysis.get("confidence")),
            },
            "agentReasoning": as_text(pick(data, "agentReasoning", "agent_reasoning")),
            "planAdjustments": as_string_list(pick(data, "planAdjustments", "plan_adjustments")),
            "nextSteps": as_string_list(pick(data, "nextSteps", "next_steps")),
            "decision": self._decision(decision),
            "weatherImpact": as_text(pick(data, "weatherImpact", "weather_impact")) or None,
            "nextCheckpointDay": next_day if next_day >= 1 else None,
            "continuityToken": _token(data),
        }

        try:
            return CheckpointAssessment.model_validate(document)
        except ValidationError as e:
            logger.error(f"Checkpoint assessment failed validation: {e}")
            raise ParseError(f"Checkpoint did not match the expected shape: {e}") from e

    def parse_strategy(self, raw_text: str) -> MonitoringStrategy:
        data = extract_json_object(raw_text)

        schedule = self._schedule(pick(data, "checkpointSchedule", "checkpoint_schedule"))
        if not schedule:
            raise ParseError("Monitoring strategy has no checkpoint days")

        criteria = pick(data, "successCriteria", "success_criteria", default={})
        criteria = criteria if isinstance(criteria, dict) else {}

        document = {
            "checkpointSchedule": schedule,
            "successCriteria": {
                "symptomReduction": as_text(pick(criteria, "symptomReduction", "symptom_reduction")),
                "timeframe": as_text(criteria.get("timeframe")),
                "visualMarkers": as_string_list(pick(criteria, "visualMarkers", "visual_markers")),
            },
            "warningSigns": as_string_list(pick(data, "warningSigns", "warning_signs")),
            "adaptiveStrategy": as_text(pick(data, "adaptiveStrategy", "adaptive_strategy")),
            "continuityToken": _token(data),
        }

        try:
            return MonitoringStrategy.model_validate(document)
        except ValidationError as e:
            logger.error(f"Monitoring strategy failed validation: {e}")
            raise ParseError(f"Strategy did not match the expected shape: {e}") from e

    @staticmethod
    def _schedule(value: Any) -> List[Dict[str, Any]]:
        entries: Dict[int, Dict[str, Any]] = {}
        for item in value if isinstance(value, list) else []:
            if not isinstance(item, dict):
                continue
            day = round(as_number(item.get("day"), 0))
            if day < 1 or day in entries:
                continue
            entries[day] = {
                "day": day,
                "purpose": as_text(item.get("purpose")),
                "expectedChanges": as_string_list(pick(item, "expectedChanges", "expected_changes")),
                "keyIndicators": as_string_list(pick(item, "keyIndicators", "key_indicators")),
            }
        return [entries[day] for day in sorted(entries)]

    def parse_decision(self, raw_text: str) -> DecisionAssessment:
        data = extract_json_object(raw_text)
        decision = pick(data, "autonomousDecision", "autonomous_decision", "decision")
        if not isinstance(decision, dict):
            raise ParseError("Decision response carried no autonomous decision")

        weather = _section(data, "weatherAdaptation", "weather_adaptation")
        research = _section(data, "researchInsights", "research_insights")
        yield_section = _section(data, "yieldOptimization", "yield_optimization")
        actions = pick(data, "nextActions", "next_actions", default=[])

        document = {
            "autonomousDecision": self._decision(decision),
            "weatherAdaptation": {
                "impact": _enum_value(weather.get("impact"), WEATHER_IMPACTS, "neutral"),
                "adjustments": as_string_list(weather.get("adjustments")),
                "timing": as_text(weather.get("timing")),
            },
            "researchInsights": {
                "onTrack": _flag(pick(research, "onTrack", "on_track"), True),
                "expectedVsActual": as_text(pick(research, "expectedVsActual", "expected_vs_actual")),
                "corrections": as_string_list(research.get("corrections")),
            },
            "yieldOptimization": {
                "projectedImpact": as_text(pick(yield_section, "projectedImpact", "projected_impact")),
                "economicValue": as_text(pick(yield_section, "economicValue", "economic_value")),
                "recommendation": as_text(yield_section.get("recommendation")),
            },
            "nextActions": [a for a in (self._next_action(item) for item in as_list(actions)) if a],
            "toolCallSummary": as_text(pick(data, "toolCallSummary", "tool_call_summary")),
        }

        try:
            return DecisionAssessment.model_validate(document)
        except ValidationError as e:
            logger.error(f"Autonomous decision failed validation: {e}")
            raise ParseError(f"Decision did not match the expected shape: {e}") from e

    def parse_treatment_plan(self, raw_text: str) -> TreatmentPlan:
        data = extract_json_object(raw_text)

        steps = []
        for item in as_list(data.get("timeline")):
            if not isinstance(item, dict):
                continue
            day = round(as_number(item.get("day"), -1))
            action = as_text(pick(item, "action", "title"))
            if day < 0 or not action:
                continue
            steps.append({
                "day": day,
                "action": action,
                "details": as_text(pick(item, "details", "description")),
                "cost": as_text(item.get("cost")) or None,
                "weatherNote": as_text(pick(item, "weatherNote", "weather_note")) or None,
            })
        if not steps:
            raise ParseError("Treatment plan has no timeline steps")

        economics = _section(data, "economicAnalysis", "economic_analysis")
        weather = _section(data, "weatherAdaptations", "weather_adaptations")

        document = {
            "timeline": sorted(steps, key=lambda step: step["day"]),
            "alternatives": as_string_list(data.get("alternatives")),
            "economicAnalysis": {
                "totalEstimatedCost": as_text(pick(economics, "totalEstimatedCost", "total_estimated_cost")),
                "potentialSavings": as_text(pick(economics, "potentialSavings", "potential_savings")),
                "roi": as_text(economics.get("roi")),
            } if economics else None,
            "weatherAdaptations": {
                "rain": as_text(weather.get("rain")),
                "drought": as_text(weather.get("drought")),
                "heatwave": as_text(weather.get("heatwave")),
            } if weather else None,
            "notes": as_text(data.get("notes")) or None,
        }

        try:
            return TreatmentPlan.model_validate(document)
        except ValidationError as e:
            logger.error(f"Treatment plan failed validation: {e}")
            raise ParseError(f"Treatment plan did not match the expected shape: {e}") from e

    @staticmethod
    def _decision(decision: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "action": _enum_value(decision.get("action"), DECISION_ACTIONS, "continue_plan"),
            "reasoning": as_text(decision.get("reasoning")),
            "confidence": normalize_confidence(decision.get("confidence")),
            "suggestedActions": as_string_list(pick(decision, "suggestedActions", "suggested_actions")),
            "urgency": _enum_value(decision.get("urgency"), URGENCY_LEVELS, "medium"),
        }

    @staticmethod
    def _next_action(item: Any) -> Optional[Dict[str, Any]]:
        if isinstance(item, str):
            return {"action": item.strip()} if item.strip() else None
        if not isinstance(item, dict):
            return None
        action = as_text(item.get("action"))
        if not action:
            return None
        return {
            "action": action,
            "timing": as_text(item.get("timing")),
            "reason": as_text(item.get("reason")),
            "priority": _enum_value(item.get("priority"), PRIORITIES, "medium"),
        }
