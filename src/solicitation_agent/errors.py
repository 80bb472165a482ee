"""Error kinds raised by tools, the model gateway and the stores."""

from __future__ import annotations

from typing import Any


class ToolError(Exception):
    """Base class for errors a tool reports back to the caller.

    ``status`` is the HTTP status the orchestration endpoint answers with and
    ``details`` is any structured payload (validator issues, pydantic errors)
    returned alongside the message.
    """

    status: int = 500

    def __init__(self, message: str, *, details: Any = None, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if status is not None:
            self.status = status


class InvalidArguments(ToolError):
    status = 422


class MissingRequiredInput(ToolError):
    status = 400


class NotFound(ToolError):
    status = 404


class SchemaRepairExhausted(ToolError):
    """Model output still failed validation after the repair round."""

    status = 422

    def __init__(self, message: str, *, raw: str, errors: list[dict[str, str]]) -> None:
        super().__init__(message, details=errors)
        self.raw = raw
        self.errors = errors


class SummarizationFailed(ToolError):
    status = 500


class ModelBackendError(RuntimeError):
    """Any failure reported by the inference backend."""


class PersistenceError(RuntimeError):
    """Any failure reported by the record or document store."""
