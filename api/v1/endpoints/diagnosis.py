# server/api/v1/endpoints/diagnosis.py
from fastapi import APIRouter, HTTPException, UploadFile, File, Form
from typing import Optional
import base64

from agents.base import agent_registry
from agents.diagnosis.models import AnalysisRequest, DiagnosisResponse, GeoLocation
from core.config import get_settings
from core.exceptions import InputError

router = APIRouter()

def _get_agent():
    diagnosis_agent = agent_registry.get("diagnosis")
    if not diagnosis_agent:
        raise HTTPException(status_code=500, detail="Diagnosis agent not available")
    return diagnosis_agent

@router.post("/analyze", response_model=DiagnosisResponse)
async def analyze(request: AnalysisRequest):
    """
    Full diagnosis pipeline on a base64 encoded image

    Runs lesion preprocessing alongside the visual analysis, executes the
    lookups the model asks for and refines the diagnosis when the model
    was not confident enough.
    """
    try:
        return await _get_agent().execute(request)
    except HTTPException:
        raise
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error analyzing plant image: {str(e)}")

@router.post("/analyze-image", response_model=DiagnosisResponse)
async def analyze_image(
    image: UploadFile = File(..., description="Plant image (JPEG/PNG/WEBP)"),
    city: Optional[str] = Form(None, description="City where the plant is grown"),
    region: Optional[str] = Form(None, description="Region or country"),
    language: str = Form("en", description="Language for generated text values"),
    enable_preprocessing: bool = Form(True),
    enable_tools: bool = Form(True)
):
    """
    Smart plant diagnosis - just upload an image!

    The AI identifies the crop, detects diseases and suggests treatments.
    """
    try:
        diagnosis_agent = _get_agent()
        config = get_settings().get_agent_config("diagnosis")

        # Validate file type
        supported_formats = config.get("supported_formats", ["image/jpeg", "image/png", "image/webp"])
        if image.content_type not in supported_formats:
            raise HTTPException(
                status_code=400,
                detail="Invalid image format. Supported formats: JPEG, PNG, WEBP"
            )

        # Check file size
        max_size_mb = config.get("max_image_size_mb", 5)
        content = await image.read()
        if len(content) > max_size_mb * 1024 * 1024:
            raise HTTPException(status_code=400, detail=f"Image file too large. Maximum size: {max_size_mb}MB")

        location = GeoLocation(city=city.strip(), region=region) if city and city.strip() else None
        request = AnalysisRequest(
            image=base64.b64encode(content).decode('utf-8'),
            location=location,
            language=language,
            enable_preprocessing=enable_preprocessing,
            enable_tools=enable_tools
        )

        return await diagnosis_agent.execute(request)

    except HTTPException:
        raise
    except InputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error analyzing plant image: {str(e)}")

@router.get("/tools")
async def list_tools():
    """Lookup tools the model can plan calls against"""
    tools = _get_agent().list_tools()
    return {
        "success": True,
        "tools": tools,
        "count": len(tools)
    }

@router.get("/diseases/{crop_type}")
async def get_common_diseases(crop_type: str):
    """Get common diseases for a specific crop type"""
    try:
        result = await _get_agent().get_common_diseases(crop_type)
        return {
            "success": result.get("error") is None,
            **result
        }

    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting diseases for {crop_type}: {str(e)}")

@router.get("/health")
async def diagnosis_health():
    """Check diagnosis agent health"""
    try:
        diagnosis_agent = agent_registry.get("diagnosis")
        if not diagnosis_agent:
            return {"status": "unhealthy", "error": "Diagnosis agent not available"}

        health = await diagnosis_agent.health_check()

        google_api_available = bool(get_settings().google_api_key)
        health["google_api_configured"] = google_api_available
        if not google_api_available:
            health["warnings"] = ["GOOGLE_API_KEY not configured - analysis runs in demo mode"]

        return health

    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
