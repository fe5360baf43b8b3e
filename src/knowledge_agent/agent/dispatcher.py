"""Tool dispatch with timeout racing and error normalization."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from knowledge_agent.agent.freshness import FreshnessCache
from knowledge_agent.agent.registry import Tool, ToolRegistry
from knowledge_agent.errors import (
    ExecutionTimeoutError,
    KnowledgeAgentError,
    NoRegistryError,
    ToolNotFoundError,
)
from knowledge_agent.obs.tracing import Timer
from knowledge_agent.types import ToolErrorKind, ToolExecutionResult

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Executes registered tools and never raises.

    Every outcome, including a missing registry, an unknown tool, a schema
    rejection, a timeout and any exception raised by the tool, is returned as a
    `ToolExecutionResult` whose `error_kind` says which of these happened.

    Timeouts abandon interest in the tool call; the underlying task is not
    cancelled and may still complete in the background. Its result is dropped,
    so a timed-out fetch never refreshes the freshness cache.
    """

    def __init__(self, registry: ToolRegistry | None, cache: FreshnessCache) -> None:
        self.registry = registry
        self.cache = cache
        self._abandoned: set[asyncio.Future[ToolExecutionResult]] = set()

    async def dispatch(
        self,
        tool_name: str,
        payload: dict[str, Any],
        *,
        timeout_ms: float | None = None,
    ) -> ToolExecutionResult:
        with Timer() as timer:
            result = await self._dispatch(tool_name, payload, timeout_ms)

        if result.success:
            logger.debug("Tool %s succeeded in %.1fms", tool_name, timer.elapsed_ms)
            url = payload.get("url")
            if isinstance(url, str) and url:
                self.cache.mark_fetched(url)
        else:
            logger.warning(
                "Tool %s failed (%s): %s",
                tool_name,
                result.error_kind.value if result.error_kind else "unknown",
                result.error,
            )
        return result

    async def _dispatch(
        self, tool_name: str, payload: dict[str, Any], timeout_ms: float | None
    ) -> ToolExecutionResult:
        try:
            tool = self._resolve(tool_name)
            tool.validate_input(payload)
        except KnowledgeAgentError as exc:
            return ToolExecutionResult.failure(str(exc), exc.kind, toolName=tool_name)
        except Exception as exc:  # non-ValueError raised by schema validators
            return ToolExecutionResult.failure(
                f"{type(exc).__name__}: {exc}",
                ToolErrorKind.MALFORMED_INPUT,
                toolName=tool_name,
            )

        task = asyncio.ensure_future(self._invoke(tool, payload))
        if timeout_ms is None:
            return await task

        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000.0)
        if task in done:
            return task.result()

        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)
        timeout = ExecutionTimeoutError(tool_name, timeout_ms)
        return ToolExecutionResult.failure(
            str(timeout), timeout.kind, toolName=tool_name, timeoutMs=timeout_ms
        )

    def _resolve(self, tool_name: str) -> Tool:
        if self.registry is None:
            raise NoRegistryError()
        tool = self.registry.get(tool_name)
        if tool is None:
            raise ToolNotFoundError(tool_name)
        return tool

    @staticmethod
    async def _invoke(tool: Tool, payload: dict[str, Any]) -> ToolExecutionResult:
        try:
            result = await tool.execute(payload)
        except Exception as exc:  # tool-internal errors become failure results
            return ToolExecutionResult.failure(
                f"{type(exc).__name__}: {exc}",
                ToolErrorKind.EXECUTION_FAILURE,
                toolName=tool.name,
            )
        if not isinstance(result, ToolExecutionResult):
            return ToolExecutionResult.failure(
                f"Tool {tool.name} returned {type(result).__name__}, expected ToolExecutionResult",
                ToolErrorKind.EXECUTION_FAILURE,
                toolName=tool.name,
            )
        return result
