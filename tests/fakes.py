"""Test doubles and payload builders for the program builder."""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Union

from application.ports.generation_oracle import PromptPayload
from backend.settings import Settings

Scripted = Union[str, Dict[str, Any], BaseException]


def build_settings(**overrides: Any) -> Settings:
    """Test settings that ignore any .env file and ambient secrets."""
    values = {
        "environment": "test",
        "oracle_provider": "openai",
        "openai_api_key": "sk-test",
        "anthropic_api_key": None,
        "program_builder_api_key": None,
        "generation_deadline_seconds": None,
        "helicone_enabled": False,
        "sentry_dsn": None,
        "otel_enabled": False,
        "allowed_origins": ["*"],
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_request(**overrides: Any) -> Dict[str, Any]:
    """A valid ProgramRequest wire payload."""
    body = {
        "daysPerWeek": 3,
        "minutesPerSession": 60,
        "splitPreference": "FULL_BODY",
        "goal": "HYPERTROPHY",
        "experience": "INTERMEDIATE",
        "equipment": "GYM",
        "constraints": "",
    }
    body.update(overrides)
    return body


def make_exercise(**overrides: Any) -> Dict[str, Any]:
    exercise = {
        "name": "Back Squat",
        "sets": 3,
        "reps": "6-10",
        "rir": 2,
        "restSec": 120,
        "notes": "",
    }
    exercise.update(overrides)
    return exercise


def make_program(days_per_week: int = 3, **overrides: Any) -> Dict[str, Any]:
    """A valid ProgramSpec wire payload with one template per day."""
    templates = [
        {
            "dayName": f"Day {i + 1}",
            "focus": "Full body",
            "blocks": [
                {
                    "blockName": "Main",
                    "exercises": [make_exercise(), make_exercise(name="Bench Press", reps="8")],
                }
            ],
        }
        for i in range(days_per_week)
    ]
    program = {
        "planName": "Three Day Full Body",
        "daysPerWeek": days_per_week,
        "split": "Full Body",
        "progression": {
            "overview": "Double progression: add reps, then load.",
            "rules": ["Add a rep per set each week until the top of the range, then add 2.5kg."],
        },
        "templates": templates,
    }
    program.update(overrides)
    return program


class FakeGenerationOracle:
    """Scripted GenerationOracle.

    Each call consumes the next scripted item: a str is returned as-is, a dict
    is returned JSON-encoded, an exception is raised. The last item repeats
    once the script runs out.
    """

    provider = "fake"

    def __init__(
        self,
        *responses: Scripted,
        on_call: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._responses: List[Scripted] = list(responses) or [make_program()]
        self._on_call = on_call
        self.prompts: List[PromptPayload] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def script(self, *responses: Scripted) -> None:
        self._responses = list(responses)

    async def generate(self, prompt: PromptPayload) -> str:
        self.prompts.append(prompt)
        index = min(len(self.prompts), len(self._responses)) - 1
        item = self._responses[index]
        if self._on_call is not None:
            self._on_call(len(self.prompts))
        # Yield so background tasks such as the disconnect watcher get a turn
        await asyncio.sleep(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return json.dumps(item)
        return item
