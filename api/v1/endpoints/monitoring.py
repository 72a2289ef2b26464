# server/api/v1/endpoints/monitoring.py
from fastapi import APIRouter, HTTPException

from agents.base import agent_registry
from agents.monitoring.models import (
    CheckpointRequest, DecisionRequest, MonitoringResponse, PlanRequest, StartMonitoringRequest,
    TreatmentPlanRequest, TreatmentPlanResponse
)
from core.exceptions import InputError, PlanStateError

router = APIRouter()

def _get_agent():
    monitoring_agent = agent_registry.get("monitoring")
    if not monitoring_agent:
        raise HTTPException(status_code=500, detail="Monitoring agent not available")
    return monitoring_agent

def _http_error(e: Exception, action: str) -> HTTPException:
    if isinstance(e, PlanStateError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InputError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")

@router.post("/start", response_model=MonitoringResponse)
async def start_monitoring(request: StartMonitoringRequest):
    """
    Start monitoring a diagnosed crop

    Plans a checkpoint schedule from the diagnosis and treatment timeline.
    The returned plan is owned by the caller and sent back with every
    later request.
    """
    try:
        return await _get_agent().execute(request)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "starting monitoring")

@router.post("/checkpoint", response_model=MonitoringResponse)
async def submit_checkpoint(request: CheckpointRequest):
    """Assess a follow-up image and advance the monitoring plan"""
    try:
        return await _get_agent().execute(request)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "processing checkpoint")

@router.post("/decision", response_model=MonitoringResponse)
async def agent_decision(request: DecisionRequest):
    """
    Tool-backed autonomous decision over a recorded checkpoint

    Looks up weather, disease research and crop treatments, then decides
    the next actions. The plan is returned unchanged to the caller.
    """
    try:
        return await _get_agent().execute(request)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "making agent decision")

@router.post("/treatment-plan", response_model=TreatmentPlanResponse)
async def generate_treatment_plan(request: TreatmentPlanRequest):
    """Generate a day-by-day treatment timeline from a diagnosis"""
    try:
        return await _get_agent().generate_treatment_plan(request)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "generating treatment plan")

@router.post("/pause", response_model=MonitoringResponse)
async def pause_monitoring(request: PlanRequest):
    """Pause an active or critical plan"""
    try:
        return _get_agent().pause_plan(request.plan)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "pausing monitoring")

@router.post("/resume", response_model=MonitoringResponse)
async def resume_monitoring(request: PlanRequest):
    """Resume a paused plan"""
    try:
        return _get_agent().resume_plan(request.plan)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e, "resuming monitoring")

@router.get("/health")
async def monitoring_health():
    """Check monitoring agent health"""
    monitoring_agent = agent_registry.get("monitoring")
    if not monitoring_agent:
        return {"status": "unhealthy", "error": "Monitoring agent not available"}
    return await monitoring_agent.health_check()
