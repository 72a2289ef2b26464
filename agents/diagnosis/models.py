# server/agents/diagnosis/models.py
"""
Pydantic models for the diagnosis agent
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agents.tools.models import ToolCallPlan, ToolResult

Severity = Literal["low", "medium", "high"]
AreaSeverity = Literal["mild", "moderate", "severe"]
StageState = Literal["completed", "skipped", "failed"]

class CamelModel(BaseModel):
    """Snake_case attributes, camelCase documents"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class GeoLocation(CamelModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    city: Optional[str] = None
    region: Optional[str] = None

    def describe(self) -> str:
        parts = [p for p in (self.city, self.region) if p]
        if self.latitude is not None and self.longitude is not None:
            parts.append(f"({self.latitude:.4f}, {self.longitude:.4f})")
        return ", ".join(parts) or "Unknown"

class AnalysisRequest(CamelModel):
    image: Optional[str] = Field(None, description="Base64 encoded plant image or data URL")
    location: Optional[GeoLocation] = Field(None, description="Where the plant is grown")
    language: str = Field("en", description="Language for generated text values")
    enable_preprocessing: bool = Field(True, description="Run the lesion preprocessing pass")
    enable_tools: bool = Field(True, description="Execute the tool calls planned by the model")

class Point(CamelModel):
    x: float
    y: float

class HighlightedArea(CamelModel):
    label: str = ""
    severity: AreaSeverity = "moderate"
    center: Point
    radius: float = Field(..., gt=0, le=0.3)
    visual_cues: List[str] = Field(default_factory=list)
    description: Optional[str] = None

class Disease(CamelModel):
    name: str
    confidence: float = Field(0, ge=0, le=100)
    description: str = ""
    evidence_from_cv: Optional[str] = None

class PlantIdentity(CamelModel):
    name: str = "Unknown"
    confidence: float = Field(0, ge=0, le=100)

class NormalizedDiagnosis(CamelModel):
    crop_type: str = "Unknown"
    plant_identity: Optional[PlantIdentity] = None
    diseases: List[Disease] = Field(default_factory=list)
    highlighted_areas: List[HighlightedArea] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    causes: List[str] = Field(default_factory=list)
    organic_treatments: List[str] = Field(default_factory=list)
    chemical_treatments: List[str] = Field(default_factory=list)
    prevention_tips: List[str] = Field(default_factory=list)
    severity: Severity = "low"
    sustainability_score: float = 0
    agentic_reasoning: str = ""
    tool_calls_plan: List[ToolCallPlan] = Field(default_factory=list)
    additional_info: str = ""
    estimated_yield_impact: Optional[str] = None
    demo_mode: bool = False
    demo_reason: Optional[str] = None

    @property
    def primary_disease(self) -> Optional[Disease]:
        return self.diseases[0] if self.diseases else None

    @property
    def primary_confidence(self) -> float:
        return self.diseases[0].confidence if self.diseases else 0.0

class LesionBox(CamelModel):
    x: float
    y: float
    width: float
    height: float

class Lesion(CamelModel):
    id: str
    bbox: LesionBox
    confidence: float = Field(..., ge=0, le=1)
    severity: AreaSeverity
    area: float = Field(..., description="Share of the analyzed image covered by the lesion (0-1)")

class PreprocessingResult(CamelModel):
    lesions: List[Lesion] = Field(default_factory=list)
    overall_health: int = Field(..., ge=0, le=100)
    method: str = "color_segmentation"
    processing_time_ms: float = 0

class PreprocessingSummary(CamelModel):
    lesions_detected: int
    overall_health: int
    method: str
    processing_time_ms: float

    @classmethod
    def from_result(cls, result: PreprocessingResult) -> "PreprocessingSummary":
        return cls(
            lesions_detected=len(result.lesions),
            overall_health=result.overall_health,
            method=result.method,
            processing_time_ms=result.processing_time_ms,
        )

class StageStatus(CamelModel):
    preprocessing: StageState = "skipped"
    visual_analysis: StageState = "skipped"
    tool_calling: StageState = "skipped"
    refinement: StageState = "skipped"

class AnalysisResult(CamelModel):
    diagnosis: NormalizedDiagnosis
    preprocessing: Optional[PreprocessingSummary] = None
    tool_results: List[ToolResult] = Field(default_factory=list)
    stage_status: StageStatus = Field(default_factory=StageStatus)
    fast_path: bool = True
    tools_used: List[str] = Field(default_factory=list)

class DiagnosisResponse(CamelModel):
    success: bool
    data: Optional[AnalysisResult] = None
    message: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    metadata: Optional[Dict[str, Any]] = None
