"""Model gateway: one conversation in, one model round out."""

from __future__ import annotations

import base64
import json
import uuid
from abc import ABC, abstractmethod
from typing import Any

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from solicitation_agent.config import ModelConfig
from solicitation_agent.errors import ModelBackendError
from solicitation_agent.types import (
    InlineData,
    ModelReply,
    TextPart,
    ToolInvocation,
    ToolResponse,
    Turn,
)


class ModelGateway(ABC):
    """Gateway interface used by the orchestrator and by model-backed tools."""

    @abstractmethod
    async def generate(
        self,
        conversation: list[Turn],
        *,
        tools: list[dict[str, Any]] | None = None,
        system_instruction: str | None = None,
    ) -> ModelReply:
        """Run exactly one model round over ``conversation``."""

    async def generate_text(self, prompt: list[Any], *, system_instruction: str | None = None) -> str:
        reply = await self.generate([Turn.user(*prompt)], system_instruction=system_instruction)
        return reply.text


class LangChainGateway(ModelGateway):
    """Adapts a LangChain chat model to the gateway contract.

    The gateway never loops or retries: callers own turn sequencing. Any
    exception raised by the backend is surfaced as ``ModelBackendError`` with
    the backend's message unchanged.
    """

    def __init__(self, llm: Any) -> None:
        self.llm = llm

    async def generate(
        self,
        conversation: list[Turn],
        *,
        tools: list[dict[str, Any]] | None = None,
        system_instruction: str | None = None,
    ) -> ModelReply:
        messages = to_langchain_messages(conversation, system_instruction=system_instruction)
        try:
            runnable = self.llm.bind_tools(tools) if tools else self.llm
            result = await runnable.ainvoke(messages)
        except Exception as exc:
            raise ModelBackendError(str(exc)) from exc
        return _to_reply(result)


def create_chat_model(config: ModelConfig) -> Any:
    if not config.api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=config.model, temperature=config.temperature, api_key=config.api_key)


def to_langchain_messages(
    conversation: list[Turn],
    *,
    system_instruction: str | None = None,
) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    if system_instruction:
        messages.append(SystemMessage(content=system_instruction.strip()))

    # Tool results must reference the id of the call that produced them.
    pending_ids: dict[str, str] = {}
    for turn in conversation:
        if turn.role == "user":
            messages.append(HumanMessage(content=[_content_block(part) for part in turn.parts]))
        elif turn.role == "model":
            text = " ".join(part.text for part in turn.parts if isinstance(part, TextPart))
            tool_calls = []
            for part in turn.parts:
                if not isinstance(part, ToolInvocation):
                    continue
                call_id = part.call_id or f"call_{uuid.uuid4().hex[:12]}"
                pending_ids[part.name] = call_id
                tool_calls.append({"name": part.name, "args": part.args, "id": call_id})
            messages.append(AIMessage(content=text, tool_calls=tool_calls))
        else:
            for part in turn.parts:
                if not isinstance(part, ToolResponse):
                    continue
                call_id = part.call_id or pending_ids.get(part.name) or part.name
                messages.append(
                    ToolMessage(
                        content=json.dumps(part.response, ensure_ascii=False, default=str),
                        tool_call_id=call_id,
                        name=part.name,
                    )
                )
    return messages


def _content_block(part: Any) -> dict[str, Any]:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, InlineData):
        block = {
            "type": "file",
            "source_type": "base64",
            "data": base64.b64encode(part.data).decode("ascii"),
            "mime_type": part.mime_type,
        }
        if part.filename:
            block["filename"] = part.filename
        return block
    raise TypeError(f"Unsupported user content part: {type(part).__name__}")


def _to_reply(message: Any) -> ModelReply:
    text = extract_text(getattr(message, "content", message))
    tool_calls = getattr(message, "tool_calls", None) or []
    if not tool_calls:
        return ModelReply(text=text)
    call = tool_calls[0]
    return ModelReply(
        text=text,
        tool_invocation=ToolInvocation(
            name=str(call.get("name", "")),
            args=dict(call.get("args") or {}),
            call_id=call.get("id"),
        ),
    )


def extract_text(content: Any) -> str:
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type", "text") == "text" and "text" in item:
                    parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content or "")
