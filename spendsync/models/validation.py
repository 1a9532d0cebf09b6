"""
Local Validation Models

Results of checking a write payload before it is sent to the server.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single problem with one field of a payload."""

    field: str = Field(..., description="Wire name of the field (camelCase)")
    issue_type: str = Field(
        ...,
        description="missing, invalid_value, too_long, invalid_format, suspicious_value"
    )
    message: str
    severity: Literal["error", "warning"] = "error"


class ValidationResult(BaseModel):
    """
    Outcome of validating one payload.

    Warnings never block a write; any error does.
    """

    schema_valid: bool = True
    semantic_valid: bool = True
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.schema_valid and self.semantic_valid

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]
