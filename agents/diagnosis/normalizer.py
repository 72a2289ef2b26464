# server/agents/diagnosis/normalizer.py
"""
Turns raw completion text into a NormalizedDiagnosis.

Extraction tries, in order: the whole text as JSON, the interior of a fenced
block, and the span from the first '{' to the last '}'. The decoded object is
then repaired into the canonical camelCase shape and validated. Parsing an
already normalized document returns an equal record.
"""
import json
import logging
import math
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from agents.diagnosis.models import NormalizedDiagnosis
from core.exceptions import ParseError

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```[ \t]*[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)

PLANT_ID_CONFIDENCE_OVERRIDE = 70
EDGE_MARGIN = 0.1
MAX_RADIUS = 0.3
MAX_BOX_SHARE = 0.5
DEFAULT_RADIUS = 0.05
LEGACY_BOX_SCALE = 1000.0

SEVERITY_MAP = {
    "low": "low", "mild": "low", "minor": "low", "none": "low",
    "medium": "medium", "moderate": "medium",
    "high": "high", "severe": "high", "critical": "high",
}

AREA_SEVERITY_MAP = {
    "mild": "mild", "low": "mild", "minor": "mild",
    "moderate": "moderate", "medium": "moderate",
    "severe": "severe", "high": "severe", "critical": "severe",
}

# ---------- shared helpers (also used by the monitoring normalizer) ----------

def _candidates(text: str) -> Iterator[Tuple[str, str]]:
    yield "direct", text.strip()

    for match in FENCE_RE.finditer(text):
        yield "fenced", match.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        yield "braces", text[start:end + 1]

def extract_json_object(raw_text: Any) -> Dict[str, Any]:
    """Run the fallback chain and return the first candidate that decodes to an object"""
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise ParseError("Completion text was empty")

    for strategy, candidate in _candidates(raw_text):
        if not candidate:
            continue
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(value, dict):
            if strategy != "direct":
                logger.debug(f"Recovered JSON object using '{strategy}' strategy")
            return value

    logger.error(f"Failed to extract a JSON object from completion text: {raw_text[:500]}...")
    raise ParseError("Completion text did not contain a JSON object")

def pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default

def is_number(value: Any) -> bool:
    """Finite int or float; json.loads lets Infinity and NaN through"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)

def as_number(value: Any, default: float = 0) -> float:
    if is_number(value):
        return value
    if isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return default
        return number if math.isfinite(number) else default
    return default

def as_text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return " ".join(as_text(v) for v in value if v is not None).strip()
    return str(value)

def as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [as_text(v) for v in value if v is not None and as_text(v)]
    return [as_text(value)]

def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]

def normalize_confidence(value: Any) -> float:
    """Percent in [0, 100]; fractions in (0, 1) become rounded percentages"""
    number = as_number(value, 0)
    if 0 < number < 1:
        return round(number * 100)
    return max(0, min(100, number))

# ---------- diagnosis normalizer ----------

class ResponseNormalizer:
    """Parse and repair completion text into a NormalizedDiagnosis"""

    def parse(self, raw_text: str) -> NormalizedDiagnosis:
        data = extract_json_object(raw_text)
        document = self.repair(data)
        try:
            return NormalizedDiagnosis.model_validate(document)
        except ValidationError as e:
            logger.error(f"Normalized diagnosis failed validation: {e}")
            raise ParseError(f"Diagnosis did not match the expected shape: {e}") from e

    def repair(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Map a loosely shaped diagnosis object onto the canonical document"""
        crop_type = as_text(pick(data, "cropType", "crop_type"), "Unknown") or "Unknown"

        identity = self._plant_identity(data)
        if identity and identity["confidence"] > PLANT_ID_CONFIDENCE_OVERRIDE:
            crop_type = identity["name"]

        return {
            "cropType": crop_type,
            "plantIdentity": identity,
            "diseases": [d for d in (self._disease(item) for item in as_list(data.get("diseases"))) if d],
            "highlightedAreas": self._highlighted_areas(pick(data, "highlightedAreas", "highlighted_areas")),
            "symptoms": as_string_list(data.get("symptoms")),
            "causes": as_string_list(data.get("causes")),
            "organicTreatments": as_string_list(pick(data, "organicTreatments", "organic_treatments")),
            "chemicalTreatments": as_string_list(pick(data, "chemicalTreatments", "chemical_treatments")),
            "preventionTips": as_string_list(pick(data, "preventionTips", "prevention_tips")),
            "severity": self._severity(data.get("severity")),
            "sustainabilityScore": max(0, min(100, as_number(pick(data, "sustainabilityScore", "sustainability_score"), 0))),
            "agenticReasoning": as_text(pick(data, "agenticReasoning", "agentic_reasoning")),
            "toolCallsPlan": [c for c in (self._tool_call(item) for item in as_list(pick(data, "toolCallsPlan", "tool_calls_plan"))) if c],
            "additionalInfo": as_text(pick(data, "additionalInfo", "additional_info")),
            "estimatedYieldImpact": as_text(pick(data, "estimatedYieldImpact", "estimated_yield_impact")) or None,
            "demoMode": bool(pick(data, "demoMode", "demo_mode", default=False)),
            "demoReason": as_text(pick(data, "demoReason", "demo_reason")) or None,
        }

    # Plant identity sub-record, hoisted to the top level
    def _plant_identity(self, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        raw = pick(data, "plantIdentity", "plant_identity", "plant_id", "plantId")
        if not isinstance(raw, dict):
            return None
        name = as_text(pick(raw, "name", "type"), "Unknown") or "Unknown"
        return {"name": name, "confidence": normalize_confidence(raw.get("confidence"))}

    def _disease(self, item: Any) -> Optional[Dict[str, Any]]:
        if isinstance(item, str):
            return {"name": item.strip(), "confidence": 0, "description": ""} if item.strip() else None
        if not isinstance(item, dict):
            return None
        name = as_text(pick(item, "name", "diseaseName", "disease_name"))
        if not name:
            return None
        return {
            "name": name,
            "confidence": normalize_confidence(item.get("confidence")),
            "description": as_text(item.get("description")),
            "evidenceFromCv": as_text(pick(item, "evidenceFromCv", "evidenceFromCV", "evidence_from_cv")) or None,
        }

    def _tool_call(self, item: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(item, dict):
            return None
        name = as_text(pick(item, "toolName", "tool_name", "tool", "name"))
        if not name:
            return None
        parameters = pick(item, "parameters", "params", "args", default={})
        return {
            "toolName": name,
            "parameters": parameters if isinstance(parameters, dict) else {},
            "reasoning": as_text(item.get("reasoning")),
        }

    @staticmethod
    def _severity(value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "low"
        return SEVERITY_MAP.get(as_text(value).lower(), "medium")

    # ---------- highlighted-area geometry ----------

    def _highlighted_areas(self, value: Any) -> List[Dict[str, Any]]:
        areas = []
        for item in as_list(value):
            if not isinstance(item, dict):
                continue
            area = self._highlighted_area(item)
            if area is None:
                logger.debug(f"Dropped highlighted area {item.get('label')!r}: geometry rejected")
                continue
            areas.append(area)
        return areas

    def _highlighted_area(self, item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        center = self._center(item)
        radius = item.get("radius")
        if isinstance(radius, float) and not math.isfinite(radius):
            return None

        box = self._legacy_box(item.get("bbox"))
        if box is not None:
            x, y, width, height = box
            if x < 0 or y < 0 or x + width > 1 or y + height > 1:
                return None
            if width <= 0 or height <= 0 or width > MAX_BOX_SHARE or height > MAX_BOX_SHARE:
                return None
            if center is None:
                center = (x + width / 2, y + height / 2)
            if not is_number(radius):
                radius = max(width, height) / 2
        elif item.get("bbox") is not None and center is None:
            return None

        if center is None:
            return None
        if not is_number(radius):
            radius = DEFAULT_RADIUS

        cx, cy = center
        if not (EDGE_MARGIN <= cx <= 1 - EDGE_MARGIN and EDGE_MARGIN <= cy <= 1 - EDGE_MARGIN):
            return None
        if radius <= 0 or radius > MAX_RADIUS:
            return None

        description = item.get("description")
        return {
            "label": as_text(item.get("label")),
            "severity": AREA_SEVERITY_MAP.get(as_text(item.get("severity")).lower(), "moderate"),
            "center": {"x": cx, "y": cy},
            "radius": radius,
            "visualCues": as_string_list(pick(item, "visualCues", "visual_cues")),
            "description": as_text(description) if description is not None else None,
        }

    @staticmethod
    def _center(item: Dict[str, Any]) -> Optional[Tuple[float, float]]:
        center = item.get("center")
        if isinstance(center, dict) and is_number(center.get("x")) and is_number(center.get("y")):
            return center["x"], center["y"]
        if isinstance(center, (list, tuple)) and len(center) == 2 and all(is_number(v) for v in center):
            return center[0], center[1]
        cx, cy = pick(item, "center_x", "centerX"), pick(item, "center_y", "centerY")
        if is_number(cx) and is_number(cy):
            return cx, cy
        return None

    @staticmethod
    def _legacy_box(bbox: Any) -> Optional[Tuple[float, float, float, float]]:
        """Return (x, y, width, height) on a 0-1 scale"""
        if isinstance(bbox, (list, tuple)) and len(bbox) == 4 and all(is_number(v) for v in bbox):
            # quad order is [y1, x1, y2, x2] on a 0-1000 scale
            y1, x1, y2, x2 = (v / LEGACY_BOX_SCALE for v in bbox)
            return x1, y1, x2 - x1, y2 - y1
        if isinstance(bbox, dict):
            values = [bbox.get(k) for k in ("x", "y", "width", "height")]
            if all(is_number(v) for v in values):
                return tuple(values)
        return None
