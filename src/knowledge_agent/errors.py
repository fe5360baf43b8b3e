"""Typed error family for the agent pipeline.

Each error maps onto a `ToolErrorKind` so the dispatcher can turn raised
errors into normalized failure results without string matching.
"""

from __future__ import annotations

from knowledge_agent.types import ToolErrorKind


class KnowledgeAgentError(Exception):
    """Base class for agent errors."""

    kind: ToolErrorKind = ToolErrorKind.EXECUTION_FAILURE


class ConfigurationError(KnowledgeAgentError):
    """A required collaborator was not configured."""

    kind = ToolErrorKind.CONFIGURATION


class NoRegistryError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("No tool registry configured")


class NoKnowledgeStoreError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("No knowledge store configured")


class ToolNotFoundError(KnowledgeAgentError, KeyError):
    kind = ToolErrorKind.TOOL_NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class ExecutionTimeoutError(KnowledgeAgentError):
    kind = ToolErrorKind.TIMEOUT

    def __init__(self, name: str, timeout_ms: float) -> None:
        super().__init__(f"Tool execution timeout after {timeout_ms:g}ms: {name}")
        self.name = name
        self.timeout_ms = timeout_ms


class ExecutionFailureError(KnowledgeAgentError):
    """Raised or wrapped when a tool fails internally."""

    kind = ToolErrorKind.EXECUTION_FAILURE


class MalformedInputError(KnowledgeAgentError, ValueError):
    """Input could not be parsed or validated."""

    kind = ToolErrorKind.MALFORMED_INPUT
