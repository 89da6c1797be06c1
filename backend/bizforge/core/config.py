from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Any
import json


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "BizForge"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # Empty disables the rotating file handler

    # ==========================================
    # Orchestration defaults
    # ==========================================
    ORCHESTRATION_PARALLEL: bool = True
    ORCHESTRATION_MAX_CONCURRENCY: int = 3
    ORCHESTRATION_RETRY_ON_FAILURE: bool = True
    ORCHESTRATION_MAX_RETRIES: int = 2
    ORCHESTRATION_RETRY_DELAY_SECONDS: float = 1.0  # fixed, not exponential
    COLLABORATOR_TIMEOUT_SECONDS: float = 300.0  # 5 minutes per collaborator call

    # Job manager
    MAX_CONCURRENT_JOBS: int = 3
    JOB_RETENTION_SECONDS: int = 3600  # 1 hour

    # ==========================================
    # Push channel
    # ==========================================
    WS_HEARTBEAT_INTERVAL_SECONDS: int = 30
    WS_SUBSCRIBER_QUEUE_SIZE: int = 256

    # ==========================================
    # Workspace / Deployment
    # ==========================================
    WORKSPACE_ROOT: str = "./generated"
    DEPLOYMENT_BASE_URL: str = "http://localhost:8000/apps"

    # ==========================================
    # Claude AI (optional generator backend)
    # ==========================================
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_BASE_URL: str = ""  # Empty means use default Anthropic URL
    USE_AI_GENERATORS: bool = False
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    CLAUDE_MAX_TOKENS: int = 8192
    CLAUDE_TEMPERATURE: float = 0.2
    CLAUDE_REQUEST_TIMEOUT: int = 300  # seconds
    CLAUDE_CONNECT_TIMEOUT: int = 60  # seconds

    @property
    def ai_generators_enabled(self) -> bool:
        """AI collaborators need both the switch and a key"""
        return self.USE_AI_GENERATORS and bool(self.ANTHROPIC_API_KEY.strip())


settings = Settings()
