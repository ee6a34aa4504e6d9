"""
FastAPI Dependency Providers for the Program Builder API.

This module provides FastAPI dependency injection functions that return
interface types (Protocols) rather than concrete implementations.

Architecture:
- Settings and the oracle client handle are cached per-process (lru_cache)
- The repair loop use case is built per-request around the shared oracle
- The shared-secret check is a dependency so routes stay declarative
"""

import secrets
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from application.errors import AuthenticationError
from application.ports.generation_oracle import GenerationOracle
from application.use_cases.build_program import BuildProgramUseCase
from backend.ai.client_factory import AIClientFactory, AIRequestContext
from backend.services.generation_oracle import (
    AnthropicGenerationOracle,
    OpenAIGenerationOracle,
)
from backend.settings import Settings, get_settings as _get_settings


# =============================================================================
# Settings Provider
# =============================================================================


def get_settings() -> Settings:
    """
    Get application settings.

    Returns cached Settings instance from backend.settings.
    Use this as a FastAPI dependency for settings access.

    Returns:
        Settings: Application settings instance
    """
    return _get_settings()


# =============================================================================
# Generation Oracle Provider
# =============================================================================


@lru_cache
def get_generation_oracle() -> GenerationOracle:
    """
    Get the generation oracle for the configured provider (cached).

    The underlying SDK client is created once per process and shared by
    concurrent requests.

    Raises:
        ConfigurationError: the provider's API key is not set. Not cached,
            so setting the key and clearing settings takes effect.
    """
    settings = _get_settings()
    context = AIRequestContext(
        feature_name="program-builder",
        custom_properties={"oracle_provider": settings.oracle_provider},
    )

    if settings.oracle_provider == "anthropic":
        client = AIClientFactory.create_anthropic_client(settings, context=context)
        return AnthropicGenerationOracle(
            client,
            model=settings.anthropic_program_model,
            max_tokens=settings.oracle_max_output_tokens,
        )

    client = AIClientFactory.create_openai_client(settings, context=context)
    return OpenAIGenerationOracle(
        client,
        model=settings.program_model,
        schema_enforcement=settings.schema_enforcement,
        max_output_tokens=settings.oracle_max_output_tokens,
    )


# =============================================================================
# Use Case Providers
# =============================================================================


def get_build_program_use_case(
    settings: Settings = Depends(get_settings),
    oracle: GenerationOracle = Depends(get_generation_oracle),
) -> BuildProgramUseCase:
    """Get the repair loop wired to the shared oracle."""
    return BuildProgramUseCase(
        oracle,
        max_attempts=settings.max_generation_attempts,
        strict_schema=settings.program_schema_mode == "strict",
        deadline_seconds=settings.generation_deadline_seconds,
        min_attempt_seconds=settings.min_attempt_seconds,
    )


# =============================================================================
# Auth Providers
# =============================================================================


def verify_api_key(
    settings: Settings = Depends(get_settings),
    x_api_key: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
) -> None:
    """
    Enforce the shared secret when PROGRAM_BUILDER_API_KEY is set.

    Accepts either an X-API-Key header or an Authorization: Bearer token.

    Raises:
        AuthenticationError: secret configured and not presented correctly.
    """
    expected = settings.program_builder_api_key
    if not expected:
        return

    presented = x_api_key
    if not presented and authorization and authorization.lower().startswith("bearer "):
        presented = authorization[len("bearer "):].strip()

    if not presented or not secrets.compare_digest(presented, expected):
        raise AuthenticationError()
