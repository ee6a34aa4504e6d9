"""Build a validated training program from an unreliable generation oracle.

The repair loop is an explicit state machine:

    COMPOSE -> INVOKE -> PARSE -> VALIDATE -> SUCCESS
                  |         |         |
                  |         +---------+--> RETRY -> COMPOSE | EXHAUSTED
                  +--> OracleTransportError (fatal, never retried)

Each retry carries the previous attempt's FailureDiagnostic into the prompt,
so the model is told exactly what to fix instead of being resampled blindly.
Attempts are strictly sequential.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from opentelemetry import trace

from application.errors import (
    ContentParseError,
    ContentSchemaError,
    ContractViolation,
    GenerationCancelled,
    GenerationExhausted,
    OracleTransportError,
)
from application.models.diagnostic import DiagnosticKind, FailureDiagnostic
from application.models.program import ProgramRequest, ProgramSpec, validate_program
from application.ports.generation_oracle import (
    GenerationOracle,
    OracleEmptyResponse,
    OracleUnavailable,
    PromptPayload,
)
from backend.observability.metrics import ProgramBuilderMetrics
from backend.services.prompts.program_builder_prompt import compose_prompt

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_MAX_ATTEMPTS = 3

PromptComposer = Callable[[ProgramRequest, Optional[FailureDiagnostic], int], PromptPayload]


class LoopState(str, Enum):
    COMPOSE = "compose"
    INVOKE = "invoke"
    PARSE = "parse"
    VALIDATE = "validate"
    RETRY = "retry"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class AttemptRecord:
    """What happened on one oracle attempt."""

    attempt: int
    outcome: str  # success, not_json, schema_mismatch
    duration_ms: int
    diagnostic: Optional[FailureDiagnostic] = None


@dataclass
class ProgramBuildResult:
    """A validated program plus how many attempts it took."""

    program: ProgramSpec
    attempts: int
    history: List[AttemptRecord] = field(default_factory=list)


def parse_candidate(text: str) -> Any:
    """Parse oracle text as JSON, tolerating a surrounding markdown fence.

    Raises:
        json.JSONDecodeError: the text is not JSON, or nests too deeply to decode.
    """
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1 :]
        else:
            text = text[3:]
    if text.endswith("```"):
        text = text[: -len("```")]
    text = text.strip()
    try:
        return json.loads(text)
    except RecursionError:
        raise json.JSONDecodeError("JSON nested too deeply", text, 0) from None


class BuildProgramUseCase:
    """Drive compose / invoke / parse / validate until success or budget exhaustion.

    Args:
        oracle: GenerationOracle adapter.
        max_attempts: Total attempts, initial one included.
        strict_schema: Reject unknown keys in generated programs.
        deadline_seconds: Overall time budget; None means attempts are only
            bounded by the oracle's own per-call timeout.
        min_attempt_seconds: Don't start a retry with less budget than this.
        compose: Prompt composer (request, prior failure, attempt) -> prompt.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        oracle: GenerationOracle,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        strict_schema: bool = True,
        deadline_seconds: Optional[float] = None,
        min_attempt_seconds: float = 0.0,
        compose: PromptComposer = compose_prompt,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._oracle = oracle
        self._max_attempts = max_attempts
        self._strict_schema = strict_schema
        self._deadline_seconds = deadline_seconds
        self._min_attempt_seconds = min_attempt_seconds
        self._compose = compose
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _remaining(self, started: float) -> Optional[float]:
        if self._deadline_seconds is None:
            return None
        return self._deadline_seconds - (self._clock() - started)

    def _can_retry(self, attempt: int, started: float) -> bool:
        if attempt >= self._max_attempts:
            return False
        remaining = self._remaining(started)
        if remaining is not None and remaining < self._min_attempt_seconds:
            logger.warning(
                "Program generation stopping after %d/%d attempts: %.1fs of budget left",
                attempt,
                self._max_attempts,
                remaining,
            )
            return False
        return True

    async def _invoke(self, prompt: PromptPayload, attempt: int, started: float) -> str:
        remaining = self._remaining(started)
        try:
            if remaining is None:
                return await self._oracle.generate(prompt)
            return await asyncio.wait_for(self._oracle.generate(prompt), timeout=max(remaining, 0.0))
        except OracleUnavailable as e:
            ProgramBuilderMetrics.generation_attempts_total().add(1, {"outcome": "transport_error"})
            logger.error("Oracle call failed on attempt %d: %s", attempt, e)
            raise OracleTransportError(str(e)) from e
        except asyncio.TimeoutError as e:
            ProgramBuilderMetrics.generation_attempts_total().add(1, {"outcome": "transport_error"})
            logger.error("Oracle call on attempt %d ran past the generation deadline", attempt)
            raise OracleTransportError("Generation deadline exceeded while waiting for the model") from e

    def _record(
        self,
        history: List[AttemptRecord],
        attempt: int,
        attempt_started: float,
        diagnostic: Optional[FailureDiagnostic] = None,
    ) -> None:
        outcome = "success" if diagnostic is None else diagnostic.kind.value.lower()
        duration_ms = round((self._clock() - attempt_started) * 1000)
        history.append(AttemptRecord(attempt, outcome, duration_ms, diagnostic))
        ProgramBuilderMetrics.generation_attempts_total().add(1, {"outcome": outcome})
        if diagnostic is None:
            logger.info("Program generation attempt %d succeeded in %dms", attempt, duration_ms)
        else:
            logger.warning("Program generation attempt %d failed: %s", attempt, diagnostic.summary)

    @staticmethod
    def _exhausted(diagnostic: FailureDiagnostic, raw: Optional[str], attempts: int) -> GenerationExhausted:
        if diagnostic.kind is DiagnosticKind.NOT_JSON:
            return ContentParseError(diagnostic, raw, attempts)
        return ContentSchemaError(diagnostic, raw, attempts)

    # ------------------------------------------------------------------
    # Repair loop
    # ------------------------------------------------------------------

    async def execute(
        self,
        request: ProgramRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProgramBuildResult:
        """Run the repair loop for one request.

        Raises:
            OracleTransportError: the oracle call failed; not retried.
            ContentParseError: budget spent, last response was not JSON.
            ContentSchemaError: budget spent, last response failed the contract.
            GenerationCancelled: cancel_event was set before an oracle call.
        """
        started = self._clock()
        attempt_started = started
        attempt = 0
        state = LoopState.COMPOSE
        diagnostic: Optional[FailureDiagnostic] = None
        prompt: Optional[PromptPayload] = None
        raw: Optional[str] = None
        parsed: Any = None
        program: Optional[ProgramSpec] = None
        history: List[AttemptRecord] = []

        with tracer.start_as_current_span("program_builder.repair_loop") as span:
            span.set_attribute("program_builder.max_attempts", self._max_attempts)

            while True:
                if state is LoopState.COMPOSE:
                    attempt += 1
                    attempt_started = self._clock()
                    prompt = self._compose(request, diagnostic, attempt)
                    state = LoopState.INVOKE

                elif state is LoopState.INVOKE:
                    if cancel_event is not None and cancel_event.is_set():
                        logger.info("Program generation cancelled before attempt %d", attempt)
                        raise GenerationCancelled(f"Cancelled before attempt {attempt}")
                    try:
                        raw = await self._invoke(prompt, attempt, started)
                    except OracleEmptyResponse as e:
                        raw = ""
                        diagnostic = FailureDiagnostic.not_json(attempt, str(e) or "empty response")
                        self._record(history, attempt, attempt_started, diagnostic)
                        state = LoopState.RETRY
                    else:
                        state = LoopState.PARSE

                elif state is LoopState.PARSE:
                    try:
                        parsed = parse_candidate(raw)
                    except json.JSONDecodeError as e:
                        diagnostic = FailureDiagnostic.not_json(attempt, str(e))
                        self._record(history, attempt, attempt_started, diagnostic)
                        state = LoopState.RETRY
                    else:
                        state = LoopState.VALIDATE

                elif state is LoopState.VALIDATE:
                    try:
                        program = validate_program(parsed, request=request, strict=self._strict_schema)
                    except ContractViolation as e:
                        diagnostic = FailureDiagnostic.schema_mismatch(attempt, e.issues)
                        self._record(history, attempt, attempt_started, diagnostic)
                        state = LoopState.RETRY
                    else:
                        self._record(history, attempt, attempt_started)
                        state = LoopState.SUCCESS

                elif state is LoopState.RETRY:
                    state = LoopState.COMPOSE if self._can_retry(attempt, started) else LoopState.EXHAUSTED

                elif state is LoopState.SUCCESS:
                    span.set_attribute("program_builder.attempts", attempt)
                    span.set_attribute("program_builder.outcome", "success")
                    ProgramBuilderMetrics.generation_attempts_per_request().record(attempt, {"outcome": "success"})
                    return ProgramBuildResult(program=program, attempts=attempt, history=history)

                else:
                    span.set_attribute("program_builder.attempts", attempt)
                    span.set_attribute("program_builder.outcome", diagnostic.kind.value)
                    ProgramBuilderMetrics.generation_attempts_per_request().record(attempt, {"outcome": "exhausted"})
                    logger.error(
                        "Program generation exhausted after %d attempt(s): %s",
                        attempt,
                        diagnostic.summary,
                    )
                    raise self._exhausted(diagnostic, raw, attempt)
