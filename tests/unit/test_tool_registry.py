import asyncio

import pytest
from pydantic import BaseModel, Field

from solicitation_agent.agent.registry import ToolContext, ToolRegistry, ToolSpec
from solicitation_agent.errors import InvalidArguments
from solicitation_agent.types import ToolInvocation


class EchoInput(BaseModel):
    value: int = Field(ge=1)


async def _echo(data: EchoInput, ctx: ToolContext) -> dict[str, object]:
    return {"value": data.value, "key": ctx.idempotency_key}


def _echo_spec() -> ToolSpec:
    return ToolSpec(
        name="echo",
        description="echo positive int",
        args_schema=EchoInput,
        handler=_echo,
        required=["value"],
    )


def test_dispatch_validates_and_traces(scripted_gateway) -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())
    context = ToolContext(gateway=scripted_gateway([]), idempotency_key="k-1")

    result = asyncio.run(registry.dispatch(ToolInvocation("echo", {"value": 3}), context))

    assert result.payload == {"value": 3, "key": "k-1"}
    assert result.trace.name == "echo"
    assert result.trace.input_payload == {"value": 3}
    assert result.trace.latency_ms >= 0.0


def test_invalid_arguments_map_to_422(scripted_gateway) -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())
    context = ToolContext(gateway=scripted_gateway([]))

    with pytest.raises(InvalidArguments) as exc_info:
        asyncio.run(registry.dispatch(ToolInvocation("echo", {"value": 0}), context))

    assert exc_info.value.status == 422
    assert exc_info.value.details[0]["loc"] == ["value"]


def test_unknown_tool_is_a_caller_error(scripted_gateway) -> None:
    registry = ToolRegistry()
    context = ToolContext(gateway=scripted_gateway([]))

    assert not registry.has("missing")
    with pytest.raises(KeyError):
        asyncio.run(registry.dispatch(ToolInvocation("missing", {}), context))


def test_duplicate_tool_registration_rejected() -> None:
    registry = ToolRegistry()
    registry.register(_echo_spec())

    with pytest.raises(ValueError):
        registry.register(_echo_spec())


def test_builtin_declarations_use_wire_names(registry) -> None:
    declarations = {item["name"]: item for item in registry.declarations()}

    assert set(declarations) == {
        "searchContracts",
        "extractSolicitation",
        "listContractDocs",
        "summarizeDocs",
        "judgeBundle",
    }
    summarize = declarations["summarizeDocs"]["parameters"]
    assert summarize["required"] == ["noticeId", "selected"]
    assert set(summarize["properties"]) == {"noticeId", "selected", "contractDescription"}
    assert summarize["properties"]["selected"]["type"] == "array"
