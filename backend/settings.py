"""
Centralized settings configuration using Pydantic BaseSettings.

All environment variables are defined here with types, defaults, and validation.
Use get_settings() for dependency injection compatibility in FastAPI.

Usage:
    from backend.settings import get_settings, Settings

    # In FastAPI endpoints (dependency injection)
    @app.get("/")
    def read_root(settings: Settings = Depends(get_settings)):
        return {"environment": settings.environment}

    # Direct access (module-level)
    settings = get_settings()
    print(settings.oracle_provider)
"""

import json
from functools import lru_cache
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Core Environment
    # -------------------------------------------------------------------------
    environment: str = Field(
        default="development",
        description="Runtime environment: development, staging, production, test",
    )

    # -------------------------------------------------------------------------
    # Generation Oracle
    # -------------------------------------------------------------------------
    oracle_provider: Literal["openai", "anthropic"] = Field(
        default="openai",
        description="Which model service drafts programs",
    )
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key (required when ORACLE_PROVIDER=openai)",
    )
    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key (required when ORACLE_PROVIDER=anthropic)",
    )
    program_model: str = Field(
        default="gpt-4.1-mini",
        description="OpenAI model used for program generation",
    )
    anthropic_program_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Anthropic model used for program generation",
    )
    oracle_timeout_seconds: float = Field(
        default=45.0,
        gt=0,
        description="Per-call timeout for the model service",
    )
    oracle_max_output_tokens: int = Field(
        default=8192,
        ge=1024,
        description="Output token cap per generation call",
    )
    schema_enforcement: bool = Field(
        default=True,
        description="Ask the model service to enforce the ProgramSpec JSON Schema where supported",
    )

    # -------------------------------------------------------------------------
    # Repair Loop
    # -------------------------------------------------------------------------
    program_schema_mode: Literal["strict", "loose"] = Field(
        default="strict",
        description="strict rejects unknown keys in generated programs, loose drops them",
    )
    max_generation_attempts: int = Field(
        default=3,
        ge=1,
        le=5,
        description="Total oracle attempts per request (1 initial + corrective retries)",
    )
    generation_deadline_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Overall time budget for one request's repair loop",
    )
    min_attempt_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Skip a retry when less than this much of the budget remains",
    )

    # -------------------------------------------------------------------------
    # Authentication - shared secret
    # -------------------------------------------------------------------------
    program_builder_api_key: Optional[str] = Field(
        default=None,
        description="Optional shared secret; when set, POST requires X-API-Key or Bearer token",
    )

    # -------------------------------------------------------------------------
    # Helicone Observability
    # -------------------------------------------------------------------------
    helicone_api_key: Optional[str] = Field(
        default=None,
        description="Helicone API key for LLM observability",
    )
    helicone_enabled: bool = Field(
        default=False,
        description="Enable Helicone LLM request logging",
    )

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------
    # NoDecode: the validator below parses JSON or comma-separated values itself
    allowed_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins. Defaults to any origin.",
    )

    # -------------------------------------------------------------------------
    # Observability - Sentry
    # -------------------------------------------------------------------------
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )

    # -------------------------------------------------------------------------
    # Observability - OpenTelemetry
    # -------------------------------------------------------------------------
    otel_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing and metrics",
    )
    otel_service_name: str = Field(
        default="program-builder-api",
        description="Service name reported to the collector",
    )
    otel_exporter_otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP collector endpoint; console exporter when unset",
    )
    otel_exporter_otlp_protocol: Literal["grpc", "http"] = Field(
        default="http",
        description="OTLP transport protocol",
    )
    otel_traces_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Fraction of traces sampled",
    )
    otel_metrics_export_interval_ms: int = Field(
        default=60000,
        description="Metric export interval",
    )
    otel_log_correlation: bool = Field(
        default=True,
        description="Inject trace ids into log records",
    )

    # -------------------------------------------------------------------------
    # Deployment / Render
    # -------------------------------------------------------------------------
    render_git_commit: Optional[str] = Field(
        default=None,
        description="Git commit SHA provided by Render (RENDER_GIT_COMMIT)",
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Union[str, List[str], None]) -> List[str]:
        """Accept JSON array, comma-separated string, or list."""
        if v is None:
            return ["*"]
        if isinstance(v, list):
            return v
        v = v.strip()
        if not v:
            return ["*"]
        if v.startswith("["):
            return json.loads(v)
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is a valid value."""
        valid_environments = {"development", "staging", "production", "test"}
        if v.lower() not in valid_environments:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {valid_environments}"
            )
        return v.lower()

    # -------------------------------------------------------------------------
    # Helper Properties
    # -------------------------------------------------------------------------
    @property
    def oracle_api_key(self) -> Optional[str]:
        """API key for the configured oracle provider."""
        if self.oracle_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    @property
    def oracle_api_key_name(self) -> str:
        """Environment variable that must hold the oracle API key."""
        if self.oracle_provider == "anthropic":
            return "ANTHROPIC_API_KEY"
        return "OPENAI_API_KEY"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.environment == "test"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    For testing, you can clear the cache with get_settings.cache_clear().

    Returns:
        Settings: Application settings instance
    """
    return Settings()
