"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

Role = Literal["user", "model", "tool"]


@dataclass(slots=True)
class TextPart:
    """Plain text segment of a conversation turn."""

    text: str


@dataclass(slots=True)
class InlineData:
    """Inline binary attachment, e.g. a fetched PDF."""

    data: bytes
    mime_type: str = "application/pdf"
    filename: str | None = None


@dataclass(slots=True)
class ToolInvocation:
    """A tool call requested by the model."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "args": self.args}


@dataclass(slots=True)
class ToolResponse:
    """The result of a tool call, fed back to the model."""

    name: str
    response: dict[str, Any]
    call_id: str | None = None


Part = Union[TextPart, InlineData, ToolInvocation, ToolResponse]


@dataclass(slots=True)
class Turn:
    """One ordered entry of the conversation history."""

    role: Role
    parts: list[Part]

    @classmethod
    def user(cls, *parts: Part | str) -> "Turn":
        return cls(role="user", parts=[_coerce(part) for part in parts])


@dataclass(slots=True)
class ModelReply:
    """Outcome of a single model round."""

    text: str
    tool_invocation: ToolInvocation | None = None


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float


def _coerce(part: Part | str) -> Part:
    if isinstance(part, str):
        return TextPart(part)
    return part
