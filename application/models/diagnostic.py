"""Why a generation attempt failed, as data fed into the next prompt."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from application.models.program import FieldIssue


class DiagnosticKind(str, Enum):
    NOT_JSON = "NOT_JSON"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"


@dataclass(frozen=True)
class FailureDiagnostic:
    """A content defect found in one oracle response.

    Attributes:
        kind: Defect category.
        attempt: 1-based attempt that produced the defect.
        detail: Parser message for NOT_JSON, issue summary for SCHEMA_MISMATCH.
        issues: Field-level violations (SCHEMA_MISMATCH only).
    """

    kind: DiagnosticKind
    attempt: int
    detail: str = ""
    issues: List[FieldIssue] = field(default_factory=list)

    @property
    def summary(self) -> str:
        if self.kind is DiagnosticKind.NOT_JSON:
            return f"Attempt {self.attempt}: response was not valid JSON ({self.detail})"
        return (
            f"Attempt {self.attempt}: response did not match the ProgramSpec schema "
            f"({len(self.issues)} issue(s))"
        )

    @classmethod
    def not_json(cls, attempt: int, detail: str) -> "FailureDiagnostic":
        return cls(kind=DiagnosticKind.NOT_JSON, attempt=attempt, detail=detail)

    @classmethod
    def schema_mismatch(
        cls, attempt: int, issues: List[FieldIssue], detail: Optional[str] = None
    ) -> "FailureDiagnostic":
        return cls(
            kind=DiagnosticKind.SCHEMA_MISMATCH,
            attempt=attempt,
            detail=detail or "; ".join(f"{i.field}: {i.message}" for i in issues[:5]),
            issues=list(issues),
        )
