"""Validation findings shared by the normalizer, validator and repairer."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Whether a finding blocks the graph from being accepted."""
    ERROR = "error"
    WARNING = "warning"


class FindingCode(str, Enum):
    """Closed taxonomy of finding codes."""

    # Structural errors
    NO_TRIGGER = "NO_TRIGGER"
    MULTIPLE_TRIGGERS = "MULTIPLE_TRIGGERS"
    NO_SUCCESS_END = "NO_SUCCESS_END"
    INVALID_REF = "INVALID_REF"
    CONDITION_INCOMPLETE_SUCCESS = "CONDITION_INCOMPLETE_SUCCESS"
    CONDITION_INCOMPLETE_FAILURE = "CONDITION_INCOMPLETE_FAILURE"
    END_HAS_OUTGOING = "END_HAS_OUTGOING"
    END_NO_STATUS = "END_NO_STATUS"
    TRIGGER_NO_OUTPUT = "TRIGGER_NO_OUTPUT"
    CYCLE_DETECTED = "CYCLE_DETECTED"

    # Structural warnings
    NODE_NO_OUTPUT = "NODE_NO_OUTPUT"
    UNREACHABLE_NODE = "UNREACHABLE_NODE"

    # Resolution warnings
    UNRESOLVED_REF = "UNRESOLVED_REF"
    REF_FUZZY_MATCH = "REF_FUZZY_MATCH"
    ID_CANONICALIZED = "ID_CANONICALIZED"
    FAILURE_REF_DROPPED = "FAILURE_REF_DROPPED"


class ValidationFinding(BaseModel):
    """A single finding about the graph.

    `field`, `reference`, `path` and `candidates` are machine-readable
    detail used by the repairer and by callers rendering diagnostics.
    """

    model_config = ConfigDict(frozen=True)

    severity: Severity = Field(..., description="Error or warning")
    code: FindingCode = Field(..., description="Stable code for programmatic handling")
    message: str = Field(..., description="Human-readable description")
    affected_node_id: Optional[str] = Field(None, description="Node the finding is about")

    field: Optional[str] = Field(None, description="Reference field involved")
    reference: Optional[str] = Field(None, description="Reference value involved")
    path: list[str] = Field(default_factory=list, description="Cycle path, start node repeated at the end")
    candidates: list[str] = Field(default_factory=list, description="Fuzzy-match candidates")

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        location = f" [node={self.affected_node_id}]" if self.affected_node_id else ""
        return f"{self.severity.value.upper()} {self.code.value}{location}: {self.message}"


def error(code: FindingCode, message: str, node_id: Optional[str] = None, **detail) -> ValidationFinding:
    return ValidationFinding(
        severity=Severity.ERROR,
        code=code,
        message=message,
        affected_node_id=node_id,
        **detail,
    )


def warning(code: FindingCode, message: str, node_id: Optional[str] = None, **detail) -> ValidationFinding:
    return ValidationFinding(
        severity=Severity.WARNING,
        code=code,
        message=message,
        affected_node_id=node_id,
        **detail,
    )


class ValidationResult(BaseModel):
    """Outcome of one validator run. Warnings never block."""

    model_config = ConfigDict(frozen=True)

    errors: list[ValidationFinding] = Field(default_factory=list)
    warnings: list[ValidationFinding] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def codes(self) -> list[FindingCode]:
        """Error codes in report order."""
        return [finding.code for finding in self.errors]

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "errors": [f.model_dump(mode="json") for f in self.errors],
            "warnings": [f.model_dump(mode="json") for f in self.warnings],
        }
