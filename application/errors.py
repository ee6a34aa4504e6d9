"""Error taxonomy for the program builder.

Every failure the request handler can surface derives from ProgramBuilderError.
Each error knows its HTTP status and how to render itself, so the API layer
maps them with a single exception handler and no detail is lost on the way
out.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from application.models.program import FieldIssue
    from application.models.diagnostic import FailureDiagnostic


class ProgramBuilderError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500
    error: str = "Server error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error)
        self.message = message or self.error

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ConfigurationError(ProgramBuilderError):
    """A required server-side setting (e.g. the oracle API key) is missing."""

    error = "Server misconfigured"


class AuthenticationError(ProgramBuilderError):
    """Shared secret missing or wrong."""

    status_code = 401
    error = "Unauthorized"

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.error}


class ContractViolation(ValueError):
    """A payload failed one of the data contracts.

    Not an HTTP error by itself: the input side wraps it in
    InputValidationError, the output side turns it into a diagnostic.
    """

    def __init__(self, issues: List["FieldIssue"]) -> None:
        self.issues = list(issues)
        summary = "; ".join(f"{i.field or '<root>'}: {i.message}" for i in self.issues[:5])
        super().__init__(f"{len(self.issues)} contract violation(s): {summary}")

    def details(self) -> List[Dict[str, str]]:
        return [issue.to_dict() for issue in self.issues]


class InputValidationError(ProgramBuilderError):
    """Caller payload failed the input contract."""

    status_code = 400
    error = "Invalid input"

    def __init__(self, issues: List["FieldIssue"]) -> None:
        super().__init__(f"{len(issues)} invalid field(s)")
        self.issues = list(issues)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "details": [issue.to_dict() for issue in self.issues],
        }


class OracleTransportError(ProgramBuilderError):
    """The oracle call itself failed. Never retried."""

    error = "Generation service unavailable"


class GenerationCancelled(ProgramBuilderError):
    """The caller went away; no further oracle calls were made."""

    status_code = 499
    error = "Client closed request"

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.error}


class GenerationExhausted(ProgramBuilderError):
    """Attempt budget spent without a valid program.

    Carries the last diagnostic and the last raw candidate text for debugging.
    """

    def __init__(
        self,
        diagnostic: "FailureDiagnostic",
        raw: Optional[str],
        attempts: int,
    ) -> None:
        super().__init__(diagnostic.summary)
        self.diagnostic = diagnostic
        self.raw = raw
        self.attempts = attempts


class ContentParseError(GenerationExhausted):
    """Last attempt produced text that is not JSON."""

    error = "Model returned non-JSON output"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "message": self.message,
            "attempts": self.attempts,
            "raw": self.raw,
        }


class ContentSchemaError(GenerationExhausted):
    """Last attempt produced JSON that fails the output contract."""

    error = "Schema validation failed"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.error,
            "details": [issue.to_dict() for issue in self.diagnostic.issues],
            "attempts": self.attempts,
            "raw": self.raw,
        }
