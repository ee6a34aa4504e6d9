"""Prompt builder for ProgramSpec generation.

One function, compose_prompt(), produces both halves of the instruction for a
generation attempt. Retries pass the previous attempt's FailureDiagnostic so
the model gets told exactly what to fix.

Usage::

    from backend.services.prompts.program_builder_prompt import compose_prompt

    prompt = compose_prompt(request)
    prompt = compose_prompt(request, prior_failure=diagnostic, attempt=2)
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from application.models.diagnostic import DiagnosticKind, FailureDiagnostic
from application.models.program import (
    EquipmentAccess,
    ExperienceLevel,
    ProgramRequest,
    SplitPreference,
    TrainingGoal,
    program_json_schema,
)
from application.ports.generation_oracle import PromptPayload

# Issues quoted back to the model on a schema retry
MAX_ISSUES_IN_PROMPT = 25


# ---------------------------------------------------------------------------
# Domain defaults
# ---------------------------------------------------------------------------

# (upper bound in minutes, exercises per session)
_EXERCISE_COUNT_TIERS: List[Tuple[int, str]] = [
    (30, "3-4"),
    (45, "4-5"),
    (60, "5-6"),
    (90, "6-8"),
]
_EXERCISE_COUNT_LONG = "7-9"

_GOAL_DEFAULTS: Dict[TrainingGoal, Dict[str, str]] = {
    TrainingGoal.HYPERTROPHY: {
        "reps": "6-10 for compounds, 10-15 for isolation",
        "rir": "1-3 (0-1 allowed on the last set of isolation work)",
        "restSec": "90-150 for compounds, 60-90 for isolation",
        "emphasis": "10-20 hard sets per muscle per week",
    },
    TrainingGoal.STRENGTH: {
        "reps": "3-6 for main lifts, 6-10 for accessories",
        "rir": "1-3 on main lifts, never 0",
        "restSec": "150-300 for main lifts, 90-120 for accessories",
        "emphasis": "heavy compound practice, 2-3 exposures per main lift per week",
    },
    TrainingGoal.RECOMPOSITION: {
        "reps": "6-12",
        "rir": "1-3",
        "restSec": "60-120",
        "emphasis": "full-body coverage, moderate volume, keep sessions dense",
    },
}

_EQUIPMENT_RULES: Dict[EquipmentAccess, str] = {
    EquipmentAccess.GYM: (
        "Full commercial gym: barbells, dumbbells, cables, machines and racks are all available."
    ),
    EquipmentAccess.HOME: (
        "Home setup: dumbbells, adjustable bench, resistance bands, pull-up bar and bodyweight only. "
        "No machines, no cables, no barbell rack work."
    ),
    EquipmentAccess.LIMITED: (
        "Minimal equipment: one or two pairs of dumbbells or a kettlebell plus bodyweight. "
        "No barbells, machines, cables or benches."
    ),
}

_SPLIT_HINTS: Dict[SplitPreference, str] = {
    SplitPreference.FULL_BODY: "Every day trains the whole body; rotate the main movement patterns.",
    SplitPreference.UPPER_LOWER: "Alternate upper-body and lower-body days.",
    SplitPreference.PUSH_PULL_LEGS: "Rotate push, pull and legs days; repeat the rotation to fill the week.",
    SplitPreference.CUSTOM: "Choose the split that best fits the days, goal and constraints.",
}

_EXPERIENCE_HINTS: Dict[ExperienceLevel, str] = {
    ExperienceLevel.BEGINNER: "Favour stable, easy-to-learn movements and the low end of the volume range.",
    ExperienceLevel.INTERMEDIATE: "Moderate volume; mix compounds with targeted isolation work.",
    ExperienceLevel.ADVANCED: "Higher volume is fine; use exercise variation and intensity techniques sparingly.",
}


def exercise_count_for(minutes_per_session: int) -> str:
    """Exercises per session for a session length."""
    for upper, count in _EXERCISE_COUNT_TIERS:
        if minutes_per_session <= upper:
            return count
    return _EXERCISE_COUNT_LONG


# ---------------------------------------------------------------------------
# Instruction text
# ---------------------------------------------------------------------------

_SYSTEM_TEMPLATE = """You are an expert strength and hypertrophy coach who designs weekly training programs.

Return ONLY a single JSON object that matches the ProgramSpec JSON Schema below exactly.
No markdown. No code fences. No commentary before or after the JSON.

Hard rules:
- Use exactly the keys in the schema; do not add any other keys.
- "daysPerWeek" must equal the requested daysPerWeek.
- "templates" must contain exactly daysPerWeek entries, one per training day.
- "sets", "rir" and "restSec" are integers; "reps" is a string such as "8" or "6-10".
- Every exercise has a "notes" string; use "" when there is nothing to add.
- Respect the user's constraints exactly (e.g. "no barbell back squat" means never program it).

ProgramSpec JSON Schema:
{schema}"""


def _build_system(schema: Dict[str, Any]) -> str:
    return _SYSTEM_TEMPLATE.format(schema=json.dumps(schema, separators=(",", ":"), sort_keys=True))


def _domain_defaults(request: ProgramRequest) -> Dict[str, Any]:
    return {
        "exercisesPerSession": exercise_count_for(request.minutes_per_session),
        "goal": _GOAL_DEFAULTS[request.goal],
        "equipment": _EQUIPMENT_RULES[request.equipment],
        "split": _SPLIT_HINTS[request.split_preference],
        "experience": _EXPERIENCE_HINTS[request.experience],
    }


def _corrective_instruction(failure: FailureDiagnostic, attempt: int) -> str:
    """Tell the model what was wrong with its previous answer."""
    lines = [f"IMPORTANT (attempt {attempt}): your previous response (attempt {failure.attempt}) "]
    if failure.kind is DiagnosticKind.NOT_JSON:
        lines[0] += "was not valid JSON."
        if failure.detail:
            lines.append(f"Parser error: {failure.detail}")
        lines.append(
            "Return ONLY the JSON object for ProgramSpec, starting with '{' and ending with '}'."
        )
    else:
        lines[0] += "did not match the ProgramSpec schema."
        lines.append("Fix these fields:")
        for issue in failure.issues[:MAX_ISSUES_IN_PROMPT]:
            lines.append(f"- {issue.field or '<root>'}: {issue.message}")
        hidden = len(failure.issues) - MAX_ISSUES_IN_PROMPT
        if hidden > 0:
            lines.append(f"- ...and {hidden} more issue(s) of the same kind")
        lines.append("Fix the JSON to match ProgramSpec exactly. Return ONLY JSON.")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compose_prompt(
    request: ProgramRequest,
    prior_failure: Optional[FailureDiagnostic] = None,
    attempt: int = 1,
) -> PromptPayload:
    """Build the instruction payload for one generation attempt.

    Pure and deterministic: identical inputs give identical payloads.

    Args:
        request: Validated caller preferences.
        prior_failure: Diagnostic from the previous attempt, if any.
        attempt: 1-based number of the attempt being composed.
    """
    schema = program_json_schema()
    user_payload = {
        "task": "Generate a ProgramSpec JSON training program",
        "input": request.model_dump(mode="json", by_alias=True),
        "defaults": _domain_defaults(request),
        "constraintsReminder": "Respect constraints exactly (e.g., 'no barbell back squat').",
    }
    user = json.dumps(user_payload, sort_keys=True)
    if prior_failure is not None:
        user = f"{user}\n\n{_corrective_instruction(prior_failure, attempt)}"

    return PromptPayload(
        system=_build_system(schema),
        user=user,
        schema_name="ProgramSpec",
        schema=schema,
    )
