# server/api/v1/endpoints/health.py
from fastapi import APIRouter
from datetime import datetime

from agents.base import agent_registry
from core.config import get_settings

router = APIRouter()

@router.get("/")
async def health_check():
    """Basic health check endpoint"""
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": settings.api_title,
        "demo_mode": not settings.google_api_key,
        "agents": agent_registry.list_agents()
    }

@router.get("/agents")
async def agents_health():
    """Health of every registered agent"""
    return await agent_registry.health_check_all()

@router.get("/agents/info")
async def agents_info():
    """Name, version and configuration of every registered agent"""
    return agent_registry.get_agents_info()
