"""Compiled JSON Schema validators producing structured issue lists."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    location: str
    message: str


@dataclass(slots=True)
class ValidationVerdict:
    valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)

    def as_dicts(self) -> list[dict[str, str]]:
        return [asdict(issue) for issue in self.errors]


class SchemaValidator:
    """Callable validator bound to one compiled schema.

    Every violation is collected (not just the first) and the resulting issue
    list is sorted by location and message, so the same candidate always
    produces the same verdict.
    """

    def __init__(self, schema: dict[str, Any]) -> None:
        Draft202012Validator.check_schema(schema)
        self.schema = schema
        self._validator = Draft202012Validator(schema)

    def __call__(self, candidate: Any) -> ValidationVerdict:
        issues = [_to_issue(error) for error in self._validator.iter_errors(candidate)]
        issues.sort(key=lambda issue: (issue.location, issue.message))
        return ValidationVerdict(valid=not issues, errors=issues)


def compile_schema(schema: dict[str, Any]) -> SchemaValidator:
    """Check ``schema`` itself once and return a reusable validator."""

    return SchemaValidator(schema)


def _to_issue(error: ValidationError) -> ValidationIssue:
    path = "/".join(str(part) for part in error.absolute_path)
    return ValidationIssue(location=f"/{path}" if path else "(root)", message=error.message)
