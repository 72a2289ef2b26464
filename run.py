# server/run.py
"""
Main entry point for LeafScan Agent Backend
"""

import logging
from contextlib import asynccontextmanager

import uvicorn

from api.app import create_app
from core.config import get_settings, validate_api_keys
from core.logging import setup_logging
from agents.base import agent_registry
from agents.diagnosis.agent import DiagnosisAgent
from agents.monitoring.agent import MonitoringAgent

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app):
    """Application lifespan management"""

    # Startup
    logger.info("🚀 Starting LeafScan Agent Backend")
    validate_api_keys(get_settings())

    # Initialize and register agents
    logger.info("Initializing agents...")
    try:
        diagnosis_agent = DiagnosisAgent()
        agent_registry.register(diagnosis_agent)
        logger.info("✅ Diagnosis agent registered")

        monitoring_agent = MonitoringAgent()
        agent_registry.register(monitoring_agent)
        logger.info("✅ Monitoring agent registered")

        # Test agent health
        health_results = await agent_registry.health_check_all()
        for agent_name, health in health_results.items():
            status = "✅" if health["status"] == "healthy" else "❌"
            logger.info(f"{status} {agent_name}: {health['status']}")

        logger.info("🎯 All agents initialized successfully")

    except Exception as e:
        logger.error(f"❌ Failed to initialize agents: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down LeafScan Agent Backend")

def create_application():
    """Create FastAPI application with all configurations"""
    return create_app(lifespan=lifespan)

def main():
    """Main entry point"""
    settings = get_settings()

    logger.info(f"Starting server on {settings.api_host}:{settings.api_port}")
    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"Debug mode: {settings.debug}")

    if settings.debug:
        # Import string so reload works
        uvicorn.run(
            "run:create_application",
            factory=True,
            host=settings.api_host,
            port=settings.api_port,
            reload=True,
            log_level=settings.log_level.value.lower(),
            access_log=True
        )
    else:
        app = create_application()
        uvicorn.run(
            app,
            host=settings.api_host,
            port=settings.api_port,
            reload=False,
            log_level=settings.log_level.value.lower(),
            access_log=True
        )

if __name__ == "__main__":
    main()
