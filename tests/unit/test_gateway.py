import asyncio
import base64
import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from solicitation_agent.config import ModelConfig
from solicitation_agent.errors import ModelBackendError
from solicitation_agent.llm.gateway import LangChainGateway, create_chat_model, to_langchain_messages
from solicitation_agent.types import InlineData, ToolInvocation, ToolResponse, Turn


class _FakeChatModel:
    """Duck-typed chat model: records bound tools and returns canned messages."""

    def __init__(self, response: object) -> None:
        self.response = response
        self.bound_tools: list[dict[str, object]] | None = None
        self.received: list[object] = []

    def bind_tools(self, tools: list[dict[str, object]]) -> "_FakeChatModel":
        self.bound_tools = tools
        return self

    async def ainvoke(self, messages: list[object]) -> object:
        self.received = messages
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_tool_call_reply_is_surfaced() -> None:
    llm = _FakeChatModel(
        AIMessage(
            content="",
            tool_calls=[{"name": "listContractDocs", "args": {"noticeId": "N1"}, "id": "call_1"}],
        )
    )
    tools = [{"name": "listContractDocs", "description": "d", "parameters": {"type": "object"}}]

    reply = asyncio.run(
        LangChainGateway(llm).generate([Turn.user("docs for N1")], tools=tools, system_instruction="sys")
    )

    assert reply.tool_invocation == ToolInvocation("listContractDocs", {"noticeId": "N1"}, "call_1")
    assert llm.bound_tools == tools
    assert isinstance(llm.received[0], SystemMessage)
    assert isinstance(llm.received[1], HumanMessage)


def test_text_reply_flattens_content_blocks() -> None:
    llm = _FakeChatModel(AIMessage(content=[{"type": "text", "text": "Hello"}, {"type": "text", "text": "there"}]))

    reply = asyncio.run(LangChainGateway(llm).generate([Turn.user("hi")]))

    assert reply.text == "Hello there"
    assert reply.tool_invocation is None
    assert llm.bound_tools is None


def test_backend_errors_are_wrapped_verbatim() -> None:
    llm = _FakeChatModel(RuntimeError("429 Resource has been exhausted"))

    with pytest.raises(ModelBackendError, match="429 Resource has been exhausted"):
        asyncio.run(LangChainGateway(llm).generate([Turn.user("hi")]))


def test_history_maps_to_langchain_messages() -> None:
    conversation = [
        Turn.user("summarize", InlineData(b"%PDF", filename="bid-form.pdf")),
        Turn(role="model", parts=[ToolInvocation("summarizeDocs", {"noticeId": "N1"})]),
        Turn(role="tool", parts=[ToolResponse("summarizeDocs", {"analysisId": "a-1"})]),
    ]

    messages = to_langchain_messages(conversation)

    human, ai, tool = messages
    assert human.content[0] == {"type": "text", "text": "summarize"}
    assert human.content[1]["type"] == "file"
    assert base64.b64decode(human.content[1]["data"]) == b"%PDF"
    assert human.content[1]["filename"] == "bid-form.pdf"
    assert ai.tool_calls[0]["name"] == "summarizeDocs"
    assert isinstance(tool, ToolMessage)
    assert tool.tool_call_id == ai.tool_calls[0]["id"]
    assert json.loads(tool.content) == {"analysisId": "a-1"}


def test_no_credential_means_no_chat_model() -> None:
    assert create_chat_model(ModelConfig(api_key=None)) is None
