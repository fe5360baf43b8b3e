"""Tool interface and registry built on Pydantic v2 input schemas."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel, ValidationError

from knowledge_agent.errors import MalformedInputError
from knowledge_agent.types import ToolExecutionResult


class Tool(ABC):
    """Polymorphic fetch tool contract.

    Concrete tools are interchangeable through the registry, which keys them by
    `name`. When `args_schema` is set, payloads are validated against it before
    the dispatcher calls `execute`.
    """

    name: ClassVar[str]
    description: ClassVar[str] = ""
    capabilities: ClassVar[tuple[str, ...]] = ()
    args_schema: ClassVar[type[BaseModel] | None] = None

    @abstractmethod
    async def execute(self, payload: dict[str, Any]) -> ToolExecutionResult:
        """Run the tool against a raw input mapping."""

    def validate_input(self, payload: dict[str, Any]) -> None:
        if self.args_schema is None:
            return
        try:
            self.args_schema.model_validate(payload)
        except ValidationError as exc:
            raise MalformedInputError(
                f"Input validation failed for tool {self.name}: {exc.error_count()} error(s)"
            ) from exc


class ToolRegistry:
    """Stores tools by name."""

    def __init__(self, tools: list[Tool] | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def find_by_capability(self, capability: str) -> list[Tool]:
        return [tool for tool in self._tools.values() if capability in tool.capabilities]
