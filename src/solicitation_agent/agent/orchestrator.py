"""Two-turn model -> tool -> model orchestration."""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any

from solicitation_agent.agent.prompts import ASSISTANT_SYSTEM_PROMPT
from solicitation_agent.agent.registry import ToolContext, ToolRegistry
from solicitation_agent.config import AgentConfig
from solicitation_agent.errors import ToolError
from solicitation_agent.llm.gateway import ModelGateway
from solicitation_agent.obs.logging import get_logger
from solicitation_agent.obs.tracing import AuditEntry, AuditLog, Timer
from solicitation_agent.types import ToolResponse, Turn

logger = get_logger(__name__)


class OrchestrationState(str, Enum):
    """Terminal state of one orchestration round."""

    RESPONDED = "responded"
    ERROR_RESPONDED = "error_responded"
    FAILED = "failed"


@dataclass(slots=True)
class OrchestrationOutcome:
    status_code: int
    body: dict[str, Any]
    state: OrchestrationState


class Orchestrator:
    """Drives one request through the two-turn tool protocol.

    The first model turn sees the user message, every tool declaration and the
    assistant system instruction. A registered tool request is dispatched; on
    success a second turn over ``[user, model tool call, tool result]`` phrases
    the answer, on failure the tool's status and details are returned without
    a second turn. Every terminal outcome is handed to the audit log.
    """

    def __init__(
        self,
        *,
        gateway: ModelGateway,
        registry: ToolRegistry,
        audit_log: AuditLog,
        config: AgentConfig | None = None,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.audit_log = audit_log
        self.config = config or AgentConfig()

    async def handle(self, message: str, *, idempotency_key: str | None = None) -> OrchestrationOutcome:
        with Timer() as timer:
            try:
                outcome, entry = await self._run(message, idempotency_key)
            except Exception as exc:  # noqa: BLE001
                logger.exception("orchestration_failed", idempotency_key=idempotency_key)
                outcome = OrchestrationOutcome(
                    status_code=500,
                    body={
                        "version": self.config.version,
                        "ok": False,
                        "error": str(exc),
                        "stack": traceback.format_exc(),
                    },
                    state=OrchestrationState.FAILED,
                )
                entry = AuditEntry(
                    message=message,
                    ok=False,
                    idempotency_key=idempotency_key,
                    error_text=str(exc),
                )
        entry.latency_ms = timer.elapsed_ms
        self.audit_log.record(entry)
        return outcome

    async def _run(
        self,
        message: str,
        idempotency_key: str | None,
    ) -> tuple[OrchestrationOutcome, AuditEntry]:
        declarations = self.registry.declarations()
        conversation = [Turn.user(message)]

        first = await self.gateway.generate(
            conversation,
            tools=declarations,
            system_instruction=ASSISTANT_SYSTEM_PROMPT,
        )
        invocation = first.tool_invocation
        if invocation is None or not self.registry.has(invocation.name):
            if invocation is not None:
                logger.info("unknown_tool_requested", tool=invocation.name)
            return (
                OrchestrationOutcome(
                    status_code=200,
                    body=self._body(idempotency_key, text=first.text),
                    state=OrchestrationState.RESPONDED,
                ),
                AuditEntry(
                    message=message,
                    ok=True,
                    idempotency_key=idempotency_key,
                    response_text=first.text,
                ),
            )

        tool_call = invocation.as_dict()
        context = ToolContext(gateway=self.gateway, idempotency_key=idempotency_key)
        try:
            result = await self.registry.dispatch(invocation, context)
        except ToolError as exc:
            body: dict[str, Any] = {
                "version": self.config.version,
                "ok": False,
                "toolCall": tool_call,
                "error": exc.message,
            }
            if exc.details is not None:
                body["details"] = exc.details
            return (
                OrchestrationOutcome(
                    status_code=exc.status,
                    body=body,
                    state=OrchestrationState.ERROR_RESPONDED,
                ),
                AuditEntry(
                    message=message,
                    ok=False,
                    idempotency_key=idempotency_key,
                    tool_called=invocation.name,
                    error_text=exc.message,
                    details=exc.details,
                    raw_tool=tool_call,
                ),
            )

        conversation.extend(
            [
                Turn(role="model", parts=[invocation]),
                Turn(
                    role="tool",
                    parts=[
                        ToolResponse(
                            name=invocation.name,
                            response=result.payload,
                            call_id=invocation.call_id,
                        )
                    ],
                ),
            ]
        )
        second = await self.gateway.generate(
            conversation,
            tools=declarations,
            system_instruction=ASSISTANT_SYSTEM_PROMPT,
        )
        return (
            OrchestrationOutcome(
                status_code=200,
                body=self._body(
                    idempotency_key,
                    text=second.text,
                    toolCall=tool_call,
                    toolResult=result.payload,
                ),
                state=OrchestrationState.RESPONDED,
            ),
            AuditEntry(
                message=message,
                ok=True,
                idempotency_key=idempotency_key,
                tool_called=invocation.name,
                response_text=second.text,
                raw_tool=tool_call,
                raw_result=result.payload,
            ),
        )

    def _body(self, idempotency_key: str | None, **fields: Any) -> dict[str, Any]:
        body: dict[str, Any] = {"version": self.config.version}
        if idempotency_key is not None:
            body["idempotencyKey"] = idempotency_key
        body.update(fields)
        return body
