"""
Application Configuration
Centralized configuration management using environment variables
"""
import os
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Application settings loaded from environment variables"""

    # Inference Configuration
    # "ollama" talks to /api/generate, "openai" to any OpenAI-compatible chat endpoint
    INFERENCE_PROVIDER: str = os.getenv("INFERENCE_PROVIDER", "ollama").lower()
    INFERENCE_TIMEOUT: float = float(os.getenv("INFERENCE_TIMEOUT", "120"))

    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "llama3.1:8b")

    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

    # Redis Configuration (cache + work queue)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: Optional[str] = os.getenv("REDIS_PASSWORD") or None
    REDIS_MAX_CONNECTIONS: int = int(os.getenv("REDIS_MAX_CONNECTIONS", "100"))

    # Cache TTLs (seconds)
    CONVERSATION_TTL: int = 30 * 24 * 3600
    CHAT_HISTORY_TTL: int = 30 * 24 * 3600
    APP_METADATA_TTL: int = 365 * 24 * 3600
    HISTORY_APPEND_RETRIES: int = int(os.getenv("HISTORY_APPEND_RETRIES", "5"))

    # Queue / Worker Configuration
    QUEUE_KEY: str = os.getenv("QUEUE_KEY", "datasense:ollama:requests")
    QUEUE_POLL_TIMEOUT: float = float(os.getenv("QUEUE_POLL_TIMEOUT", "5"))
    WORKER_ENABLED: bool = _env_bool("WORKER_ENABLED", "true")
    WORKER_CONCURRENCY: int = int(os.getenv("WORKER_CONCURRENCY", "8"))
    WORKER_SHUTDOWN_GRACE: float = float(os.getenv("WORKER_SHUTDOWN_GRACE", "30"))
    HISTORY_CONTEXT_MESSAGES: int = int(os.getenv("HISTORY_CONTEXT_MESSAGES", "10"))

    # Supabase Configuration (durable conversation log)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_JSON: bool = _env_bool("LOG_JSON", "0")

    # CORS Configuration
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    @property
    def is_openai(self) -> bool:
        """Check if the OpenAI-compatible backend is selected"""
        return self.INFERENCE_PROVIDER == "openai"

    @property
    def is_supabase_configured(self) -> bool:
        """Check if Supabase configuration is present"""
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_KEY)


# Global settings instance
settings = Settings()
