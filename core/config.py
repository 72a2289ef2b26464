# server/core/config.py
"""
Configuration management for backend services
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = logging.getLogger(__name__)

class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True

    # API Configuration
    api_title: str = "LeafScan Agent Backend"
    api_version: str = "1.0.0"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:4173"
    ]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Completion service. GEMINI_API_KEY is accepted for older .env files.
    google_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("google_api_key", "gemini_api_key"),
    )
    gemini_model: str = "gemini-1.5-flash"
    gemini_temperature: float = 0.2
    gemini_max_output_tokens: int = 8192

    # Cache Configuration
    cache_enabled: bool = True
    cache_default_ttl: int = 900  # 15 minutes
    cache_max_size: int = 1000

    # Agent Configurations
    diagnosis_config: Dict[str, Any] = {
        "refinement_confidence_threshold": 85.0,
        "max_image_size_mb": 5,
        "supported_formats": ["image/jpeg", "image/png", "image/webp"]
    }

    tools_config: Dict[str, Any] = {
        "timeout_seconds": 10.0
    }

    monitoring_config: Dict[str, Any] = {
        "default_duration_days": 14,
        "default_checkpoint_interval_days": 3,
        "default_checkpoint_days": [3, 7, 14],
        "temperature": 0.6
    }

    def get_agent_config(self, agent_name: str) -> Dict[str, Any]:
        """Get configuration for specific agent"""
        config_map = {
            "diagnosis": self.diagnosis_config,
            "tools": self.tools_config,
            "monitoring": self.monitoring_config
        }
        return config_map.get(agent_name, {})

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

# Validation functions
def validate_api_keys(settings: Settings) -> None:
    """Validate required API keys based on environment"""
    if settings.google_api_key:
        logger.info("GOOGLE_API_KEY is configured")
        return

    if settings.is_production:
        raise ValueError("Missing required API keys in production: GOOGLE_API_KEY")

    logger.warning("GOOGLE_API_KEY not set - diagnosis runs in demo mode with fallback data")

settings = get_settings()
