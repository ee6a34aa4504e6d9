"""Port interface for the generative model that drafts programs."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


class OracleUnavailable(Exception):
    """Network, timeout or service-side failure calling the model."""


class OracleEmptyResponse(Exception):
    """The call succeeded but the model returned no usable text."""


@dataclass(frozen=True)
class PromptPayload:
    """Everything sent to the model for one attempt."""

    system: str
    user: str
    schema_name: str = "ProgramSpec"
    schema: Optional[Dict[str, Any]] = field(default=None, compare=False)


class GenerationOracle(Protocol):
    """Turns a prompt into raw text that should be a single JSON value."""

    async def generate(self, prompt: PromptPayload) -> str:
        """Return the model's raw text output.

        Raises:
            OracleUnavailable: transport or service failure.
            OracleEmptyResponse: no text came back.
        """
        ...
