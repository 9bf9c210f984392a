"""Shared result models. Every check in ssh-buddy reports through these."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field, computed_field


class ValidationSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class IssueSeverity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ScanStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


class ValidationIssue(BaseModel):
    """A single problem found in a host entry."""

    severity: ValidationSeverity
    field: str | None = None
    message: str
    hint: str | None = None


class ValidationResult(BaseModel):
    """Outcome of validating one host or a whole config document."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_valid(self) -> bool:
        return not self.issues

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_blocking_errors(self) -> bool:
        """True when at least one issue is an error. Warnings never block a save."""
        return any(i.severity == ValidationSeverity.ERROR for i in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    def field_issues(self, field: str) -> list[ValidationIssue]:
        return [i for i in self.issues if i.field == field]

    def field_has_error(self, field: str) -> bool:
        return any(i.severity == ValidationSeverity.ERROR for i in self.field_issues(field))

    def field_has_warning(self, field: str) -> bool:
        return any(i.severity == ValidationSeverity.WARNING for i in self.field_issues(field))

    def summary(self) -> str:
        """Return a one-line human summary, e.g. "1 error, 2 warnings"."""
        error_count = len(self.errors)
        warning_count = len(self.warnings)

        if error_count == 0 and warning_count == 0:
            return "Configuration is valid"

        parts: list[str] = []
        if error_count:
            parts.append(f"{error_count} error{'s' if error_count > 1 else ''}")
        if warning_count:
            parts.append(f"{warning_count} warning{'s' if warning_count > 1 else ''}")
        return ", ".join(parts)


class IssueAction(BaseModel):
    """Follow-up offered to the user for a security issue."""

    label: str
    type: Literal["fix", "learn"]


class SecurityIssue(BaseModel):
    """A single security or health finding. Always data, never raised."""

    id: str
    severity: IssueSeverity
    title: str
    description: str
    affected_item: str | None = None
    suggestion: str | None = None
    action: IssueAction | None = None
