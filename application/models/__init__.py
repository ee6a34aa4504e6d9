"""Application domain models for the program builder."""

from .diagnostic import DiagnosticKind, FailureDiagnostic
from .program import (
    Block,
    DayTemplate,
    EquipmentAccess,
    Exercise,
    ExperienceLevel,
    FieldIssue,
    ProgramRequest,
    ProgramSpec,
    Progression,
    SplitPreference,
    TrainingGoal,
    program_json_schema,
    validate_program,
    validate_request,
)

__all__ = [
    "Block",
    "DayTemplate",
    "DiagnosticKind",
    "EquipmentAccess",
    "Exercise",
    "ExperienceLevel",
    "FailureDiagnostic",
    "FieldIssue",
    "ProgramRequest",
    "ProgramSpec",
    "Progression",
    "SplitPreference",
    "TrainingGoal",
    "program_json_schema",
    "validate_program",
    "validate_request",
]
