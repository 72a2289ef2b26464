# server/agents/monitoring/prompts.py
"""
Prompt builders for the monitoring agent
"""
import json
from typing import Sequence

from agents.diagnosis.models import NormalizedDiagnosis
from agents.diagnosis.prompts import TOOL_OUTPUT_PREVIEW_CHARS, language_instruction
from agents.monitoring.models import MonitoringCheckpoint, MonitoringPlan, TreatmentPlan, TreatmentPreferences
from agents.tools.models import ToolResult

def _diagnosis_summary(diagnosis: NormalizedDiagnosis) -> str:
    primary = diagnosis.primary_disease
    disease = f"{primary.name} ({primary.confidence:.0f}% confidence)" if primary else "None detected"
    symptoms = ", ".join(diagnosis.symptoms) or "None recorded"
    areas = ", ".join(f"{a.label} ({a.severity})" for a in diagnosis.highlighted_areas) or "Not specified"
    return f"""- Crop: {diagnosis.crop_type}
- Primary Disease: {disease}
- Severity: {diagnosis.severity}
- Symptoms: {symptoms}
- Symptom Locations: {areas}
- Estimated Yield Impact: {diagnosis.estimated_yield_impact or 'Unknown'}
- Sustainability Score: {diagnosis.sustainability_score:.0f}/100"""

def _timeline(treatment_plan: TreatmentPlan) -> str:
    if not treatment_plan.timeline:
        return "No treatment timeline provided"
    return "\n".join(
        f"Day {step.day}: {step.action} (Cost: {step.cost or 'N/A'})" for step in treatment_plan.timeline
    )

def strategy_prompt(diagnosis: NormalizedDiagnosis, treatment_plan: TreatmentPlan, duration_days: int) -> str:
    return f"""You are an autonomous crop monitoring agent. Create a monitoring strategy for ongoing crop health management.

**INITIAL DIAGNOSIS**:
{_diagnosis_summary(diagnosis)}

**TREATMENT PLAN**:
{_timeline(treatment_plan)}

**MONITORING DURATION**: {duration_days} days

**YOUR TASK**: Create a monitoring strategy with:
1. Recommended checkpoint days (when the farmer should upload follow-up images), all within the duration
2. Key indicators to track at each checkpoint
3. Success criteria (what improvement looks like)
4. Warning signs (when to escalate or adjust the plan)
5. How you will adapt based on progress

**REQUIRED JSON OUTPUT**:
{{
  "checkpointSchedule": [
    {{"day": number, "purpose": "string", "expectedChanges": ["string"], "keyIndicators": ["string"]}}
  ],
  "successCriteria": {{"symptomReduction": "string", "timeframe": "string", "visualMarkers": ["string"]}},
  "warningSigns": ["string"],
  "adaptiveStrategy": "string",
  "continuityToken": "string - context handle for later sessions"
}}"""

def checkpoint_prompt(plan: MonitoringPlan, day: int, user_notes: str, weather_conditions: str) -> str:
    """Follow-up assessment prompt carrying the whole plan history"""
    if plan.checkpoints:
        history = "\n".join(
            f"""Day {cp.day}:
- Progress: {cp.analysis.overall_progress}
- Severity Change: {cp.analysis.severity_change:+d}
- Changes: {', '.join(cp.analysis.symptom_changes) or 'None'}
- Agent Reasoning: {cp.agent_reasoning}
- Adjustments Made: {', '.join(cp.plan_adjustments) or 'None'}"""
            for cp in plan.checkpoints
        )
    else:
        history = "No previous checkpoints"

    expected = plan.strategy.expectations_for(day) if plan.strategy else None
    expected_changes = ", ".join(expected.expected_changes) if expected and expected.expected_changes else "General progress assessment"

    return f"""You are a crop monitoring agent. You keep continuity across sessions and self-correct based on observed progress.

**INITIAL STATE (Day 0)**:
{_diagnosis_summary(plan.initial_diagnosis)}

**TREATMENT PLAN APPLIED**:
{_timeline(plan.initial_treatment_plan)}

**MONITORING HISTORY**:
{history}

**CURRENT CHECKPOINT: Day {day}**
- User Notes: {user_notes or 'None provided'}
- Weather Conditions: {weather_conditions or 'Unknown'}
- Expected Changes: {expected_changes}

**YOUR TASK**:
1. Compare the attached image to the Day 0 baseline: improvements, stability, worsening or new issues.
2. Evaluate treatment effectiveness against the success criteria.
3. Factor in weather, treatment timing and disease lifecycle.
4. If progress is off track, explain why and adjust the plan.
5. Decide: continue the plan, adjust treatment, add an intervention, escalate, or declare success.

**REQUIRED JSON OUTPUT**:
{{
  "analysis": {{
    "overallProgress": "improving|stable|worsening|new_issues",
    "symptomChanges": ["string"],
    "newSymptoms": ["string"],
    "resolvedSymptoms": ["string"],
    "severityChange": number (-2 to +2, negative = improvement),
    "yieldImpactChange": "string",
    "confidence": number (0-100)
  }},
  "agentReasoning": "string",
  "planAdjustments": ["string"],
  "nextSteps": ["string"],
  "decision": {{
    "action": "continue_plan|adjust_treatment|escalate|add_intervention|declare_success",
    "reasoning": "string",
    "confidence": number (0-100),
    "suggestedActions": ["string"],
    "urgency": "low|medium|high|critical"
  }},
  "weatherImpact": "string",
  "nextCheckpointDay": number,
  "continuityToken": "string - updated context handle"
}}"""

def decision_prompt(plan: MonitoringPlan, checkpoint: MonitoringCheckpoint, tool_results: Sequence[ToolResult]) -> str:
    primary = plan.initial_diagnosis.primary_disease
    analysis = checkpoint.analysis
    if tool_results:
        tools = "\n".join(
            f"- {r.tool_name}: "
            + (f"FAILED ({r.error})" if r.failed else json.dumps(r.output, default=str)[:TOOL_OUTPUT_PREVIEW_CHARS])
            for r in tool_results
        )
    else:
        tools = "No lookups were run. Rely on your own agronomic knowledge."

    return f"""You are an autonomous crop monitoring agent. You have run research lookups and must now make an informed decision without waiting for the farmer.

**MONITORING CONTEXT**:
- Crop: {plan.crop_type}
- Initial Disease: {primary.name if primary else 'None detected'}
- Current Day: {checkpoint.day} of {plan.total_duration_days}
- Plan Status: {plan.current_status}
- Progress: {analysis.overall_progress}
- Severity Change: {analysis.severity_change:+d}

**TOOL RESULTS**:
{tools}

**CHECKPOINT ANALYSIS**:
- Symptom Changes: {', '.join(analysis.symptom_changes) or 'None'}
- New Symptoms: {', '.join(analysis.new_symptoms) or 'None'}
- Resolved Symptoms: {', '.join(analysis.resolved_symptoms) or 'None'}
- Agent Reasoning: {checkpoint.agent_reasoning or 'None recorded'}
- Checkpoint Decision: {checkpoint.decision.action} ({checkpoint.decision.urgency} urgency)

**YOUR TASK**:
1. Will the upcoming weather help or hinder treatment?
2. Is progress matching the expected disease pattern? If not, why, and what should change?
3. Is the plan minimizing economic loss?
4. Decide the next steps.

**REQUIRED JSON OUTPUT**:
{{
  "autonomousDecision": {{
    "action": "continue_plan|adjust_treatment|escalate|add_intervention|declare_success",
    "reasoning": "string",
    "confidence": number (0-100),
    "urgency": "low|medium|high|critical"
  }},
  "weatherAdaptation": {{"impact": "positive|neutral|negative", "adjustments": ["string"], "timing": "string"}},
  "researchInsights": {{"onTrack": boolean, "expectedVsActual": "string", "corrections": ["string"]}},
  "yieldOptimization": {{"projectedImpact": "string", "economicValue": "string", "recommendation": "string"}},
  "nextActions": [{{"action": "string", "timing": "string", "reason": "string", "priority": "high|medium|low"}}],
  "toolCallSummary": "string - how the tool results shaped the decision"
}}"""

def treatment_plan_prompt(diagnosis: NormalizedDiagnosis, preferences: TreatmentPreferences, language: str) -> str:
    budget = (
        f"Stay within a {preferences.budget} budget and prioritize cost-effective methods."
        if preferences.budget else "Give a cost estimate for every step."
    )
    return f"""You are an expert agricultural consultant. Create a personalized, evidence-based treatment plan.

{language_instruction(language)}

**DIAGNOSIS SUMMARY**:
{_diagnosis_summary(diagnosis)}

**AVAILABLE TREATMENTS**:
Organic: {', '.join(diagnosis.organic_treatments) or 'None listed'}
Chemical: {', '.join(diagnosis.chemical_treatments) or 'None listed'}

**FARMER CONSTRAINTS**:
- Farm Size: {preferences.farm_size or 'Not specified'}
- Budget: {preferences.budget or 'Not specified'}
- Treatment Preference: {preferences.resource_preference}

**PLANNING INSTRUCTIONS**:
1. Day 1-2: remove infected material and apply the first treatment, preferring {preferences.resource_preference} options.
2. Day 3-5: document symptom changes and check for spread.
3. Day 6-10: second application if needed, preventive measures, soil and water management.
4. Day 11-14: final assessment and long-term prevention.
5. {budget}
6. Estimate total cost, prevented crop loss and return on investment.
7. Add contingencies for heavy rain, drought and extreme heat.

**REQUIRED JSON OUTPUT**:
{{
  "timeline": [
    {{"day": number (1-14), "action": "string", "details": "string", "cost": "string", "weatherNote": "string"}}
  ],
  "alternatives": ["string"],
  "economicAnalysis": {{"totalEstimatedCost": "string", "potentialSavings": "string", "roi": "string"}},
  "weatherAdaptations": {{"rain": "string", "drought": "string", "heatwave": "string"}}
}}

Return ONLY the JSON object."""
