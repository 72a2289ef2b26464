"""
Shared fakes and fixtures
"""
import asyncio
import base64
import io
import json
from typing import Any, Dict, List, Optional, Union

import pytest
from PIL import Image, ImageDraw

from agents.diagnosis.models import PreprocessingResult
from core.completion import CompletionClient

class FakeCompletionClient(CompletionClient):
    """Replays queued texts (or raises queued exceptions) and records every call"""

    def __init__(self, *responses: Union[str, BaseException]):
        self.responses: List[Union[str, BaseException]] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, prompt, image=None, continuity_token=None, response_shape_hint=None):
        self.calls.append({
            "prompt": prompt,
            "image": image,
            "continuity_token": continuity_token,
            "response_shape_hint": response_shape_hint,
        })
        if not self.responses:
            raise AssertionError("Unexpected completion call")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

class FakePreprocessingService:
    def __init__(self, result: Optional[PreprocessingResult] = None, delay: float = 0, error: Optional[Exception] = None):
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = 0
        self.cancelled = False

    async def analyze_async(self, image_ref: str) -> Optional[PreprocessingResult]:
        self.calls += 1
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        return self.result

def diagnosis_document(confidence: float = 80, tool_calls: Optional[List[Dict[str, Any]]] = None, **overrides) -> Dict[str, Any]:
    document = {
        "plant_id": {"type": "Tomato", "confidence": 90},
        "cropType": "Tomato",
        "diseases": [{
            "name": "Early Blight",
            "confidence": confidence,
            "description": "Concentric ring lesions on lower leaves",
            "evidenceFromCV": "Brown target spots",
        }],
        "highlightedAreas": [{
            "label": "Lesion 1",
            "description": "Target spot",
            "severity": "moderate",
            "center_x": 0.4,
            "center_y": 0.5,
            "radius": 0.04,
            "visualCues": ["concentric rings"],
        }],
        "symptoms": ["Brown spots", "Yellowing"],
        "causes": ["Alternaria solani"],
        "organicTreatments": ["Copper spray"],
        "chemicalTreatments": ["Chlorothalonil"],
        "preventionTips": ["Mulch", "Rotate crops"],
        "severity": "medium",
        "sustainabilityScore": 70,
        "agenticReasoning": "Target-shaped lesions point to Early Blight.",
        "toolCallsPlan": tool_calls or [],
    }
    document.update(overrides)
    return document

def diagnosis_text(**kwargs) -> str:
    return json.dumps(diagnosis_document(**kwargs))

@pytest.fixture
def leaf_image() -> str:
    """200x200 green leaf with one brown spot in the middle"""
    image = Image.new("RGB", (200, 200), (30, 140, 40))
    ImageDraw.Draw(image).ellipse((80, 80, 120, 120), fill=(120, 70, 20))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")

@pytest.fixture
def preprocessing_result() -> PreprocessingResult:
    return PreprocessingResult.model_validate({
        "lesions": [{
            "id": "lesion_1",
            "bbox": {"x": 0.4, "y": 0.4, "width": 0.2, "height": 0.2},
            "confidence": 0.8,
            "severity": "moderate",
            "area": 0.04,
        }],
        "overallHealth": 92,
        "method": "color_segmentation",
        "processingTimeMs": 3.2,
    })
