import pytest
from pydantic import BaseModel, Field

from knowledge_agent.agent.registry import Tool, ToolRegistry
from knowledge_agent.errors import MalformedInputError
from knowledge_agent.types import ToolExecutionResult


class EchoInput(BaseModel):
    value: int = Field(ge=1)


class EchoTool(Tool):
    name = "echo"
    description = "echo positive int"
    capabilities = ("echo", "single-page")
    args_schema = EchoInput

    async def execute(self, payload: dict) -> ToolExecutionResult:
        return ToolExecutionResult.ok({"content": str(payload["value"])})


class FreeformTool(Tool):
    name = "freeform"
    capabilities = ("multi-page",)

    async def execute(self, payload: dict) -> ToolExecutionResult:
        return ToolExecutionResult.ok({"content": ""})


def test_tool_input_validation() -> None:
    tool = EchoTool()

    tool.validate_input({"value": 3})

    with pytest.raises(MalformedInputError, match="echo"):
        tool.validate_input({"value": 0})


def test_tool_without_schema_accepts_any_payload() -> None:
    FreeformTool().validate_input({"anything": object()})


def test_duplicate_tool_registration_rejected() -> None:
    registry = ToolRegistry()
    registry.register(EchoTool())

    with pytest.raises(ValueError):
        registry.register(EchoTool())


def test_registry_lookup_and_removal() -> None:
    echo = EchoTool()
    registry = ToolRegistry([echo, FreeformTool()])

    assert registry.get("echo") is echo
    assert registry.get("missing") is None
    assert registry.has("freeform")
    assert registry.names() == ["echo", "freeform"]

    registry.unregister("echo")
    registry.unregister("echo")

    assert not registry.has("echo")
    assert registry.names() == ["freeform"]


def test_find_by_capability() -> None:
    registry = ToolRegistry([EchoTool(), FreeformTool()])

    assert [tool.name for tool in registry.find_by_capability("single-page")] == ["echo"]
    assert [tool.name for tool in registry.find_by_capability("multi-page")] == ["freeform"]
    assert registry.find_by_capability("video") == []
