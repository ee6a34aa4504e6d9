"""AI client factory with Helicone integration support.

Builds the async OpenAI / Anthropic client handles used by the generation
oracle. Uses dependency-injected Settings instead of a global config import;
the dependency layer caches one handle per process.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from application.errors import ConfigurationError
from backend.settings import Settings

logger = logging.getLogger(__name__)

# Helicone proxy URLs
_HELICONE_OPENAI_BASE_URL = "https://oai.helicone.ai/v1"
_HELICONE_ANTHROPIC_BASE_URL = "https://anthropic.helicone.ai"


@dataclass
class AIRequestContext:
    """Context for AI requests, used for tracking and observability."""

    feature_name: Optional[str] = "program-builder"
    request_id: Optional[str] = None
    custom_properties: dict[str, str] = field(default_factory=dict)

    def to_tracking_headers(self, environment: str = "development") -> dict[str, str]:
        """Convert context to Helicone tracking headers."""
        headers: dict[str, str] = {}

        if self.feature_name:
            headers["Helicone-Property-Feature"] = self.feature_name
        if self.request_id:
            headers["Helicone-Request-Id"] = self.request_id

        headers["Helicone-Property-Environment"] = environment

        for key, value in self.custom_properties.items():
            header_key = f"Helicone-Property-{key.replace('_', '-').title()}"
            headers[header_key] = str(value)

        return headers


def _client_kwargs(
    settings: Settings,
    api_key: str,
    helicone_base_url: str,
    context: Optional[AIRequestContext],
    timeout: float,
) -> dict:
    client_kwargs: dict = {
        "api_key": api_key,
        "timeout": timeout,
        # Retries belong to the repair loop, not the SDK
        "max_retries": 0,
    }

    if settings.helicone_enabled and settings.helicone_api_key:
        client_kwargs["base_url"] = helicone_base_url
        default_headers = {
            "Helicone-Auth": f"Bearer {settings.helicone_api_key}",
        }
        if context:
            default_headers.update(context.to_tracking_headers(settings.environment))
        client_kwargs["default_headers"] = default_headers
        logger.debug("Creating AI client with Helicone proxy at %s", helicone_base_url)
    elif settings.helicone_enabled:
        logger.warning("HELICONE_ENABLED=true but HELICONE_API_KEY not set. Using direct API.")

    return client_kwargs


class AIClientFactory:
    """Factory for creating AI clients with optional Helicone integration."""

    @staticmethod
    def create_openai_client(
        settings: Settings,
        context: Optional[AIRequestContext] = None,
        timeout: Optional[float] = None,
    ) -> AsyncOpenAI:
        """Create an async OpenAI client, optionally proxied through Helicone."""
        api_key = settings.openai_api_key
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not set")

        return AsyncOpenAI(
            **_client_kwargs(
                settings,
                api_key,
                _HELICONE_OPENAI_BASE_URL,
                context,
                timeout or settings.oracle_timeout_seconds,
            )
        )

    @staticmethod
    def create_anthropic_client(
        settings: Settings,
        context: Optional[AIRequestContext] = None,
        timeout: Optional[float] = None,
    ) -> AsyncAnthropic:
        """Create an async Anthropic client, optionally proxied through Helicone."""
        api_key = settings.anthropic_api_key
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not set")

        return AsyncAnthropic(
            **_client_kwargs(
                settings,
                api_key,
                _HELICONE_ANTHROPIC_BASE_URL,
                context,
                timeout or settings.oracle_timeout_seconds,
            )
        )
