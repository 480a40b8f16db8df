"""
CEO Desk Configuration

Environment-based configuration for the delegation engine and its HTTP surface.
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """
    CEO Desk configuration settings.
    All settings can be overridden via environment variables with CEODESK_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CEODESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8000, description="Server port")
    debug: bool = Field(default=False, description="Enable debug logging")
    reload: bool = Field(default=False, description="Enable hot reload (dev only)")

    # Instance identification
    instance_id: str = Field(
        default="ceodesk-1",
        description="Instance identifier for this deployment"
    )

    # Language-model backend
    llm_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of an OpenAI-compatible chat completions API"
    )
    llm_api_key: str = Field(
        default="",
        description="API key for the language-model backend"
    )
    llm_model: str = Field(default="gpt-4o-mini", description="Model used by every persona")
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=1000, ge=1)
    llm_history_window: int = Field(
        default=5,
        ge=1,
        description="Trailing conversation messages sent with each call"
    )
    llm_request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for a single backend request"
    )

    # Dispatch
    max_plan_steps: int = Field(
        default=2,
        ge=1,
        le=8,
        description="Maximum delegation steps per plan"
    )
    step_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for one responder call"
    )
    pending_wait_seconds: float = Field(
        default=1.0,
        ge=0,
        description="How long a duplicate request waits on an in-flight call"
    )

    # Throttle cache
    throttle_enabled: bool = Field(default=True, description="Deduplicate rapid identical requests")
    throttle_window_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Freshness window for replaying a completed result"
    )
    throttle_max_entries: int = Field(
        default=50,
        ge=1,
        description="Entries retained before oldest-first eviction"
    )
    throttle_key_chars: int = Field(
        default=100,
        ge=1,
        description="Characters of request content used in the dedup key"
    )

    # Streaming
    stream_chunk_chars: int = Field(
        default=80,
        ge=1,
        description="Characters per SSE message chunk"
    )

    # CORS configuration
    cors_allowed_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )
    cors_allow_credentials: bool = Field(
        default=False,
        description="Allow credentials in CORS requests"
    )
    cors_allowed_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        description="Allowed HTTP methods"
    )
    cors_allowed_headers: list[str] = Field(
        default=["Content-Type", "Authorization", "Accept", "X-Requested-With"],
        description="Allowed request headers"
    )

    # Validators
    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port number range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @field_validator("llm_base_url")
    @classmethod
    def validate_llm_base_url(cls, v: str) -> str:
        """Validate backend URL is HTTP(S) and strip the trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got {v}")
        return v.rstrip("/")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
