# server/agents/diagnosis/prompts.py
"""
Prompt builders for the diagnosis pipeline
"""
import json
from typing import Any, Dict, List, Optional, Sequence

from agents.diagnosis.models import AnalysisRequest, NormalizedDiagnosis, PreprocessingResult
from agents.tools.models import ToolResult

LANGUAGE_NAMES = {
    "en": "English",
    "fr": "French",
    "ar": "Arabic",
    "hi": "Hindi",
    "es": "Spanish",
}

TOOL_OUTPUT_PREVIEW_CHARS = 500

def language_instruction(language: str) -> str:
    name = LANGUAGE_NAMES.get((language or "en").lower(), "English")
    instruction = f"""**LANGUAGE INSTRUCTION**:
The user's preferred language is "{name}".
You MUST output all content strings (descriptions, tips, advice, names, reasoning) in this language.
However, the JSON KEYS must remain in ENGLISH. Only the VALUES should be translated."""
    if name == "Arabic":
        instruction += "\nEnsure technical terms are accurately translated to standard Arabic."
    return instruction

def preprocessing_summary(result: PreprocessingResult) -> str:
    lines = [
        f"**CV PRE-PROCESSING RESULTS** (Method: {result.method.replace('_', ' ')}):",
        f"- Detected {len(result.lesions)} lesion(s)",
        f"- Overall leaf health score: {result.overall_health}/100",
    ]
    for lesion in result.lesions:
        box = lesion.bbox
        lines.append(
            f"  - {lesion.id.upper()}: at ({box.x:.2f}, {box.y:.2f}) size {box.width:.2f}x{box.height:.2f}, "
            f"severity {lesion.severity.upper()} (confidence {lesion.confidence * 100:.1f}%)"
        )
    return "\n".join(lines)

def diagnosis_prompt(request: AnalysisRequest, tool_catalog: List[Dict[str, Any]]) -> str:
    """Primary visual analysis prompt"""
    location = request.location.describe() if request.location else "Unknown"
    tools = json.dumps(tool_catalog, indent=2)

    return f"""You are an expert plant pathologist and agricultural advisor.

{language_instruction(request.language)}

**CONTEXT**: User location: {location}. Consider the local climate but DO NOT assume the crop type.

**STAGE 1: BOTANICAL IDENTIFICATION**
Examine leaf shape, margin, texture, vein pattern and color BEFORE any diagnosis.
Never assume tomato. If uncertain, use a broader family or "Unknown Plant".

**STAGE 2: DIAGNOSIS**
- Diagnose diseases specific to the identified plant.
- Mark only truly affected areas; ignore shadows, dirt and healthy tissue.
- Give each lesion as a small dot: center_x, center_y in 0.0-1.0 and radius 0.02-0.05.

**TOOLS**: If external data would confirm the diagnosis or sharpen the treatment,
plan calls to these tools in "toolCallsPlan" (leave it empty otherwise):
{tools}

**REQUIRED JSON OUTPUT**:
{{
  "plant_id": {{"type": "string", "confidence": 0-100}},
  "cropType": "string",
  "diseases": [{{"name": "string", "confidence": 0-100, "description": "string", "evidenceFromCV": "string"}}],
  "highlightedAreas": [{{
    "label": "string", "description": "string", "severity": "mild|moderate|severe",
    "center_x": 0.0-1.0, "center_y": 0.0-1.0, "radius": 0.01-0.05, "visualCues": ["string"]
  }}],
  "symptoms": ["string"],
  "causes": ["string"],
  "organicTreatments": ["string"],
  "chemicalTreatments": ["string"],
  "preventionTips": ["string"],
  "severity": "low|medium|high",
  "sustainabilityScore": 0-100,
  "agenticReasoning": "string",
  "toolCallsPlan": [{{"toolName": "string", "parameters": {{}}, "reasoning": "string"}}],
  "estimatedYieldImpact": "string"
}}

Return ONLY the JSON object."""

def refinement_prompt(
    diagnosis: NormalizedDiagnosis,
    tool_results: Sequence[ToolResult],
    language: str,
    preprocessing: Optional[PreprocessingResult] = None,
) -> str:
    """Second pass that folds tool outputs (and CV findings, if ready) into the diagnosis"""
    external = "\n".join(
        f"{r.tool_name}: {json.dumps(r.output, default=str)[:TOOL_OUTPUT_PREVIEW_CHARS]}"
        for r in tool_results
    )
    previous = json.dumps(diagnosis.model_dump(by_alias=True), default=str)
    cv_context = f"\n{preprocessing_summary(preprocessing)}\n" if preprocessing else ""

    return f"""{language_instruction(language)}

**NEW EXTERNAL DATA**:
{external}
{cv_context}
**PREVIOUS DIAGNOSIS**:
{previous}

**TASK**: Update the diagnosis with this new data. Focus on treatment specifics and confirmation.
Return the same JSON structure."""
