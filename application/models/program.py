"""Data contracts for the program builder.

ProgramRequest is what callers send; ProgramSpec is what we guarantee back.
These pydantic models are the only definition of either shape: the JSON
Schema handed to the oracle is derived from ProgramSpec by
program_json_schema(), and validate_program() is the sole judge of whether a
generation attempt succeeded.

Wire names are camelCase, Python attributes snake_case.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from application.errors import ConfigurationError, ContractViolation, InputValidationError


MIN_DAYS_PER_WEEK = 1
MAX_DAYS_PER_WEEK = 7
MIN_SESSION_MINUTES = 20
MAX_SESSION_MINUTES = 180
MAX_CONSTRAINTS_LENGTH = 1000

# Identifiers must contain something other than whitespace
_NON_BLANK = r"\S"

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


RuleText = Annotated[
    str, StringConstraints(strict=True, min_length=1, max_length=300, pattern=_NON_BLANK)
]


def _text(max_length: int, description: Optional[str] = None) -> Any:
    """Required, non-blank, length-bounded string field."""
    return Field(
        strict=True,
        min_length=1,
        max_length=max_length,
        pattern=_NON_BLANK,
        description=description,
    )


# ---------------------------------------------------------------------------
# Field issues
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldIssue:
    """One violated constraint, addressed by a dotted wire path."""

    field: str
    message: str
    type: str = "value_error"

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "type": self.type}


def _issues_from(exc: ValidationError) -> List[FieldIssue]:
    return [
        FieldIssue(
            field=".".join(str(part) for part in err["loc"]),
            message=err["msg"],
            type=err["type"],
        )
        for err in exc.errors(include_url=False)
    ]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SplitPreference(str, Enum):
    FULL_BODY = "FULL_BODY"
    UPPER_LOWER = "UPPER_LOWER"
    PUSH_PULL_LEGS = "PUSH_PULL_LEGS"
    CUSTOM = "CUSTOM"


class TrainingGoal(str, Enum):
    HYPERTROPHY = "HYPERTROPHY"
    STRENGTH = "STRENGTH"
    RECOMPOSITION = "RECOMPOSITION"


class ExperienceLevel(str, Enum):
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


class EquipmentAccess(str, Enum):
    GYM = "GYM"
    HOME = "HOME"
    LIMITED = "LIMITED"


# ---------------------------------------------------------------------------
# Input contract
# ---------------------------------------------------------------------------


class ProgramRequest(BaseModel):
    """Caller preferences for one program. Lives for a single request."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    days_per_week: int = Field(strict=True, ge=MIN_DAYS_PER_WEEK, le=MAX_DAYS_PER_WEEK)
    minutes_per_session: int = Field(strict=True, ge=MIN_SESSION_MINUTES, le=MAX_SESSION_MINUTES)
    split_preference: SplitPreference
    goal: TrainingGoal
    experience: ExperienceLevel
    equipment: EquipmentAccess
    constraints: str = Field(default="", max_length=MAX_CONSTRAINTS_LENGTH)

    @field_validator("split_preference", "goal", "experience", "equipment", mode="before")
    @classmethod
    def normalize_choice(cls, v: Any) -> Any:
        """Accept 'upper/lower', 'push-pull-legs', 'full body', any case."""
        if isinstance(v, str):
            return re.sub(r"[\s/\-]+", "_", v.strip()).upper()
        return v

    @field_validator("constraints", mode="before")
    @classmethod
    def clean_constraints(cls, v: Any) -> Any:
        """Strip control characters so free text can't break the prompt."""
        if v is None:
            return ""
        if isinstance(v, str):
            return _CONTROL_CHARS.sub("", v).strip()
        return v


def validate_request(raw: Any) -> ProgramRequest:
    """Validate an untyped transport payload.

    Raises:
        InputValidationError: listing every violated field, not just the first.
    """
    try:
        return ProgramRequest.model_validate(raw)
    except ValidationError as exc:
        raise InputValidationError(_issues_from(exc)) from exc


# ---------------------------------------------------------------------------
# Output contract
# ---------------------------------------------------------------------------


class _ContractModel(BaseModel):
    """Closed by default; validation context {"loose": True} drops unknown keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="before")
    @classmethod
    def drop_unknown_keys(cls, data: Any, info: ValidationInfo) -> Any:
        if isinstance(data, dict) and info.context and info.context.get("loose"):
            known = set()
            for name, field in cls.model_fields.items():
                known.add(name)
                known.add(field.alias or name)
            return {key: value for key, value in data.items() if key in known}
        return data


class Exercise(_ContractModel):
    name: str = _text(100)
    sets: int = Field(strict=True, ge=1, le=10)
    reps: str = _text(20, "Rep target or range, e.g. '8' or '6-10'")
    rir: int = Field(strict=True, ge=0, le=5, description="Reps in reserve")
    rest_sec: int = Field(strict=True, ge=0, le=600, description="Rest between sets in seconds")
    notes: str = Field(
        strict=True,
        max_length=300,
        description="Coaching cue; empty string when there is nothing to add",
    )


class Block(_ContractModel):
    block_name: str = _text(60)
    exercises: List[Exercise] = Field(min_length=1, max_length=12)


class DayTemplate(_ContractModel):
    day_name: str = _text(60)
    focus: str = _text(120)
    blocks: List[Block] = Field(min_length=1, max_length=8)


class Progression(_ContractModel):
    overview: str = _text(1000)
    rules: List[RuleText] = Field(min_length=1, max_length=12)


class ProgramSpec(_ContractModel):
    """The validated training program returned to the caller."""

    plan_name: str = _text(120)
    days_per_week: int = Field(strict=True, ge=MIN_DAYS_PER_WEEK, le=MAX_DAYS_PER_WEEK)
    split: str = _text(60)
    progression: Progression
    templates: List[DayTemplate] = Field(
        min_length=1,
        max_length=MAX_DAYS_PER_WEEK,
        description="One template per training day; length equals daysPerWeek",
    )


def validate_program(
    raw: Any,
    request: Optional[ProgramRequest] = None,
    strict: bool = True,
) -> ProgramSpec:
    """Validate a candidate program parsed from oracle output.

    Args:
        raw: Parsed JSON value.
        request: When given, daysPerWeek must match the request.
        strict: Reject unknown keys (closed schema). False drops them instead.

    Raises:
        ContractViolation: with every field issue found.
    """
    try:
        program = ProgramSpec.model_validate(raw, context={"loose": not strict})
    except ValidationError as exc:
        raise ContractViolation(_issues_from(exc)) from exc

    issues: List[FieldIssue] = []
    if len(program.templates) != program.days_per_week:
        issues.append(
            FieldIssue(
                field="templates",
                message=(
                    f"Expected exactly {program.days_per_week} day templates "
                    f"(one per training day), got {len(program.templates)}"
                ),
                type="templates_length",
            )
        )
    if request is not None and program.days_per_week != request.days_per_week:
        issues.append(
            FieldIssue(
                field="daysPerWeek",
                message=(
                    f"Expected {request.days_per_week} to match the request, "
                    f"got {program.days_per_week}"
                ),
                type="request_mismatch",
            )
        )
    if issues:
        raise ContractViolation(issues)
    return program


# ---------------------------------------------------------------------------
# Oracle-facing JSON Schema (derived, never hand-written)
# ---------------------------------------------------------------------------

# Keywords structured-output strict mode accepts. Length limits and other
# constraints it rejects are left to validate_program.
STRICT_SCHEMA_KEYWORDS = frozenset(
    {
        "type",
        "properties",
        "required",
        "additionalProperties",
        "items",
        "enum",
        "const",
        "anyOf",
        "description",
        "pattern",
        "format",
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
        "minItems",
        "maxItems",
    }
)


def _close_schema(node: Any, defs: Dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [_close_schema(item, defs) for item in node]
    if not isinstance(node, dict):
        return node
    if "$ref" in node:
        name = node["$ref"].rsplit("/", 1)[-1]
        return _close_schema(defs[name], defs)

    out: Dict[str, Any] = {}
    for key, value in node.items():
        if key not in STRICT_SCHEMA_KEYWORDS:
            continue
        if key == "properties":
            out[key] = {prop: _close_schema(sub, defs) for prop, sub in value.items()}
        else:
            out[key] = _close_schema(value, defs)

    if out.get("type") == "object" and "properties" in out:
        # Structured-output strict mode wants closed objects with every key required
        out["additionalProperties"] = False
        out["required"] = list(out["properties"])
    return out


@lru_cache
def _derived_schema() -> Dict[str, Any]:
    schema = ProgramSpec.model_json_schema(by_alias=True, mode="validation")
    defs = schema.pop("$defs", {})
    closed = _close_schema(schema, defs)
    if not isinstance(closed, dict) or closed.get("type") != "object":
        raise ConfigurationError("ProgramSpec JSON schema root must be type: object")
    return closed


def program_json_schema() -> Dict[str, Any]:
    """JSON Schema for ProgramSpec, closed and fully required.

    Returns a fresh copy; callers may mutate it.
    """
    return copy.deepcopy(_derived_schema())
