"""
Configuration settings for the Inference Gateway.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from inference_gateway import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Inference Gateway"
    APP_VERSION: str = __version__
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Backends ===
    BACKEND_TIMEOUT: float = 60.0  # seconds, per network call
    MODEL_LIST_REFRESH_SECONDS: float = 60.0  # adapter-side catalog cache
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: Optional[str] = None
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com"
    DEEPSEEK_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_API_KEY: Optional[str] = None
    QWEN_BASE_URL: str = "https://dashscope.aliyuncs.com/api/v1"
    QWEN_API_KEY: Optional[str] = None

    # === Retry ===
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_INITIAL_DELAY: float = 1.0  # seconds
    RETRY_MAX_DELAY: float = 10.0  # seconds
    RETRY_BACKOFF_MULTIPLIER: float = 2.0

    # === Selection ===
    SELECTION_LOG_SIZE: int = 1000
    SCENARIO_STRATEGY_OVERRIDES: dict[str, str] = {}  # e.g. {"resume-parsing": "quality"}

    # === Gateway ===
    CATALOG_REFRESH_INTERVAL: float = 300.0  # seconds
    AUDIT_CONTENT_MAX_CHARS: int = 500
    AUDIT_LOG_SIZE: int = 10000
    PROMPT_TEMPLATES_DIR: str = "config/prompts"

    # === Workflow ===
    WORKFLOW_CACHE_TTL: int = 3600  # seconds
    WORKFLOW_CACHE_MAX_ENTRIES: int = 10000  # in-memory cache only
    WORKFLOW_DEFAULT_TEMPERATURE: float = 0.7
    WORKFLOW_DEFAULT_MAX_TOKENS: int = 1000
    WORKFLOW_RAG_TOP_K: int = 5
    WORKFLOW_COMPRESSION_MAX_TOKENS: int = 500

    # === Alerting ===
    ALERT_FAILURE_RATE_WARNING: float = 0.1
    ALERT_FAILURE_RATE_CRITICAL: float = 0.2
    ALERT_LATENCY_WARNING_MS: float = 30000.0
    ALERT_LATENCY_CRITICAL_MS: float = 60000.0

    # === Redis ===
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    TELEMETRY_STORE: str = "memory"  # "memory" or "redis"
    USAGE_RECORD_TTL_SECONDS: int = 90 * 86400  # 90 days
    USAGE_MEMORY_MAX_RECORDS: int = 100000  # TELEMETRY_STORE=memory only

    # === Security ===
    ENCRYPTION_KEYS: list[str] = []  # Fernet keys, newest first
    ACCESS_CONTROL_ENABLED: bool = False  # enforce per-user model grants on every call


# Global settings instance
settings = Settings()
