"""Generation oracle adapters: one model call per attempt, raw text out.

Both adapters implement application.ports.generation_oracle.GenerationOracle.
They never parse or validate; that is the repair loop's job.
"""

import logging
import time
from typing import Any, Dict

import anthropic
import openai

from application.ports.generation_oracle import (
    OracleEmptyResponse,
    OracleUnavailable,
    PromptPayload,
)
from backend.observability.metrics import ProgramBuilderMetrics

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


class OpenAIGenerationOracle:
    """OpenAI Responses API, optionally in strict JSON-schema mode.

    Schema enforcement only guarantees syntax; the output contract still
    validates every response.
    """

    provider = "openai"

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str = DEFAULT_OPENAI_MODEL,
        schema_enforcement: bool = True,
        max_output_tokens: int = 8192,
    ) -> None:
        self._client = client
        self._model = model
        self._schema_enforcement = schema_enforcement
        self._max_output_tokens = max_output_tokens

    def _request_kwargs(self, prompt: PromptPayload) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self._model,
            "max_output_tokens": self._max_output_tokens,
            "input": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
        }
        if self._schema_enforcement and prompt.schema:
            kwargs["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": prompt.schema_name,
                    "schema": prompt.schema,
                    "strict": True,
                }
            }
        return kwargs

    async def generate(self, prompt: PromptPayload) -> str:
        start = time.monotonic()
        try:
            response = await self._client.responses.create(**self._request_kwargs(prompt))
        except openai.APIError as e:
            logger.error("OpenAI API error during program generation: %s", e)
            raise OracleUnavailable(f"OpenAI request failed: {e}") from e
        finally:
            ProgramBuilderMetrics.oracle_call_seconds().record(
                time.monotonic() - start, {"provider": self.provider}
            )

        text = (getattr(response, "output_text", None) or "").strip()
        if not text:
            raise OracleEmptyResponse("No output_text from model")
        return text


class AnthropicGenerationOracle:
    """Anthropic Messages API. The schema travels in the system prompt only."""

    provider = "anthropic"

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        max_tokens: int = 8192,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    async def generate(self, prompt: PromptPayload) -> str:
        start = time.monotonic()
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=prompt.system,
                messages=[{"role": "user", "content": prompt.user}],
            )
        except anthropic.APIError as e:
            logger.error("Anthropic API error during program generation: %s", e)
            raise OracleUnavailable(f"Anthropic request failed: {e}") from e
        finally:
            ProgramBuilderMetrics.oracle_call_seconds().record(
                time.monotonic() - start, {"provider": self.provider}
            )

        text = ""
        for block in response.content:
            if block.type == "text":
                text += block.text
        text = text.strip()
        if not text:
            raise OracleEmptyResponse("No text content from model")
        return text
