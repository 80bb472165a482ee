"""Tool registry built on Pydantic v2 argument models."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from solicitation_agent.errors import InvalidArguments, ToolError
from solicitation_agent.llm.gateway import ModelGateway
from solicitation_agent.obs.logging import get_logger
from solicitation_agent.types import ToolInvocation, ToolTrace

logger = get_logger(__name__)


@dataclass(slots=True)
class ToolContext:
    """Per-request context handed to every handler."""

    gateway: ModelGateway
    idempotency_key: str | None = None


@dataclass(slots=True)
class ToolResult:
    name: str
    args: dict[str, Any]
    payload: dict[str, Any]
    trace: ToolTrace


ToolHandler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation.

    ``args_schema`` is the tool's own argument model; ``required`` names the
    parameters the model is told are mandatory in the declaration, which may
    be stricter than the argument model so the handler can report absent
    identifiers as missing input rather than as a shape error.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: ToolHandler
    required: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    async def invoke(self, payload: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        try:
            data = self.args_schema.model_validate(payload or {})
        except ValidationError as exc:
            raise InvalidArguments(
                f"Invalid {self.name} args: {_summarize(exc)}",
                details=json.loads(exc.json(include_url=False)),
            ) from exc
        return await self.handler(data, context)

    def declaration(self) -> dict[str, Any]:
        parameters = self.args_schema.model_json_schema(by_alias=True)
        parameters.pop("title", None)
        for prop in parameters.get("properties", {}).values():
            prop.pop("title", None)
        parameters["required"] = list(self.required)
        return {"name": self.name, "description": self.description, "parameters": parameters}


class ToolRegistry:
    """Maps tool names to specs and dispatches model tool calls."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def has(self, name: str) -> bool:
        return name in self._tools

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def declarations(self) -> list[dict[str, Any]]:
        return [spec.declaration() for spec in self._tools.values()]

    async def dispatch(self, invocation: ToolInvocation, context: ToolContext) -> ToolResult:
        spec = self._tools.get(invocation.name)
        if spec is None:
            raise KeyError(f"Unknown tool: {invocation.name}")

        start = perf_counter()
        try:
            payload = await spec.invoke(invocation.args, context)
        except ToolError as exc:
            logger.warning(
                "tool_failed",
                tool=spec.name,
                status=exc.status,
                error=exc.message,
                latency_ms=(perf_counter() - start) * 1000.0,
            )
            raise
        latency_ms = (perf_counter() - start) * 1000.0
        logger.info("tool_dispatched", tool=spec.name, latency_ms=latency_ms)

        trace = ToolTrace(
            name=spec.name,
            input_payload=invocation.args,
            output_preview=json.dumps(payload, ensure_ascii=False, default=str)[:320],
            latency_ms=latency_ms,
        )
        return ToolResult(name=spec.name, args=invocation.args, payload=payload, trace=trace)


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors(include_url=False):
        location = "/".join(str(item) for item in error.get("loc", ())) or "(root)"
        parts.append(f"{location} {error.get('msg', '')}".strip())
    return "; ".join(parts)
