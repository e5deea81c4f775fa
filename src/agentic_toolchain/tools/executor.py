"""
Parallel tool execution engine.

This module provides the ParallelToolExecutor class which runs a batch of
model-proposed tool calls concurrently against a ToolBackend. A batch first
goes through the backend's single round-trip batch entry point; if that
entry point fails as a whole, every call is retried individually and
concurrently. In both paths one call's failure never affects its siblings.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .base import ToolBackend, ToolCall, ToolResult, elapsed_ms
from .errors import ErrorCategorizer
from .exceptions import BackendProtocolError
from .validator import ToolCallValidator


LEGACY_FAILURE_PREFIX = "Legacy parallel execution failed"
TASK_FAILURE_PREFIX = "Promise execution failed"


@dataclass
class BatchOutcome:
    """
    Result of one attempt at executing a batch.

    Exactly one of ``results`` and ``error`` is set.

    Attributes:
        results: Per-call results in call order
        error: The systemic failure that prevented the batch from running
    """
    results: Optional[List[ToolResult]] = None
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        """Check whether the attempt failed as a whole."""
        return self.error is not None


@dataclass
class ExecutionStats:
    """Counters for executed batches and calls."""
    batches: int = 0
    calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    fallbacks: int = 0
    validation_warnings: int = 0

    def record(self, results: List[ToolResult]) -> None:
        """Record the results of one batch."""
        self.batches += 1
        self.calls += len(results)
        for result in results:
            if result.success:
                self.successful_calls += 1
            else:
                self.failed_calls += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert the counters to a dictionary."""
        return {
            "batches": self.batches,
            "calls": self.calls,
            "successful_calls": self.successful_calls,
            "failed_calls": self.failed_calls,
            "fallbacks": self.fallbacks,
            "validation_warnings": self.validation_warnings
        }


def serialize_result(value: Any) -> str:
    """Serialize a raw tool result to a JSON string."""
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return json.dumps(str(value), ensure_ascii=False)


def _milliseconds(value: Any) -> float:
    """Read a reported execution time, 0.0 when missing or not numeric."""
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class ParallelToolExecutor:
    """
    Executes batches of tool calls concurrently against a tool backend.

    The executor provides:
    - A single round-trip optimized path through ``call_tools_optimized``
    - A per-call concurrent legacy path used when the optimized path fails
    - Per-call failure isolation and categorized error messages
    - Provider validation that warns but never blocks execution
    """

    def __init__(
        self,
        backend: ToolBackend,
        validator: Optional[ToolCallValidator] = None,
        categorizer: Optional[ErrorCategorizer] = None
    ):
        """
        Initialize the executor.

        Args:
            backend: Tool backend that runs the calls
            validator: Provider validator (a default one is created if omitted)
            categorizer: Error categorizer (a default one is created if omitted)
        """
        self.backend = backend
        self.validator = validator or ToolCallValidator()
        self.categorizer = categorizer or ErrorCategorizer()
        self.stats = ExecutionStats()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def execute_multiple_tools_parallel(
        self,
        calls: List[ToolCall],
        provider_id: Optional[str] = None
    ) -> List[ToolResult]:
        """
        Execute a batch of tool calls concurrently.

        Args:
            calls: Tool calls to execute
            provider_id: Provider whose conventions the calls should follow

        Returns:
            List[ToolResult]: One result per call, in call order
        """
        if not calls:
            return []

        if provider_id:
            validation = self.validator.validate_tool_calls_for_provider(calls, provider_id)
            if not validation.valid:
                self.stats.validation_warnings += len(validation.errors)
                for error in validation.errors:
                    self.logger.warning(f"Tool call validation ({provider_id}): {error}")
                self.logger.warning("Executing tool calls despite validation warnings")

        self.logger.info(f"Executing {len(calls)} tool(s) in parallel")
        start_time = time.perf_counter()

        outcome = await self._execute_optimized(calls)
        if outcome.failed:
            self.stats.fallbacks += 1
            self.logger.warning(
                f"Optimized execution failed, falling back to legacy parallel execution: {outcome.error}"
            )
            results = await self._execute_legacy(calls)
        else:
            results = outcome.results

        self.stats.record(results)
        success_count = sum(1 for result in results if result.success)
        self.logger.info(
            f"Tool execution completed in {elapsed_ms(start_time):.0f}ms: "
            f"{success_count}/{len(results)} successful"
        )
        return results

    async def _execute_optimized(self, calls: List[ToolCall]) -> BatchOutcome:
        """
        Run the batch through the backend's batch entry point.

        Returns:
            BatchOutcome: results on success, the systemic error otherwise
        """
        payload = [call.to_backend_payload() for call in calls]
        try:
            raw_results = await self.backend.call_tools_optimized(payload)
            if not isinstance(raw_results, list) or len(raw_results) != len(calls):
                received = len(raw_results) if isinstance(raw_results, list) else type(raw_results).__name__
                raise BackendProtocolError(
                    "Batch reply does not match the submitted calls",
                    expected=f"list of {len(calls)} results",
                    received=str(received)
                )
            results = [
                self._convert_backend_result(call, raw)
                for call, raw in zip(calls, raw_results)
            ]
        except Exception as e:
            return BatchOutcome(error=e)
        return BatchOutcome(results=results)

    def _convert_backend_result(self, call: ToolCall, raw: Dict[str, Any]) -> ToolResult:
        """Convert one batch-entry-point result into a ToolResult."""
        if not isinstance(raw, dict):
            raise BackendProtocolError(
                f"Unexpected batch result entry for {call.name}",
                tool_name=call.name,
                expected="dict",
                received=type(raw).__name__
            )

        execution_time = _milliseconds(raw.get("executionTime", raw.get("execution_time")))
        if raw.get("success"):
            result_text = serialize_result(raw.get("result"))
            success = True
        else:
            raw_error = raw.get("error") or raw.get("result") or "Unknown error"
            result_text = self.categorizer.categorize_error(call.name, raw_error, call.argument_map())
            success = False
            self.logger.error(f"Tool {call.name} failed: {raw_error}")

        return ToolResult(
            name=call.name,
            result=result_text,
            success=success,
            execution_time=execution_time,
            id=call.id if call.id is not None else raw.get("id"),
            chained_from=call.chained_from
        )

    async def _execute_legacy(self, calls: List[ToolCall]) -> List[ToolResult]:
        """
        Run every call independently and concurrently.

        All calls are in flight together and are awaited jointly, so a
        failure in one never cancels or hides the others.
        """
        settled = await asyncio.gather(
            *(self.execute_single(call) for call in calls),
            return_exceptions=True
        )

        results = []
        for call, outcome in zip(calls, settled):
            if isinstance(outcome, BaseException):
                self.logger.error(f"Task for tool {call.name} failed: {outcome!r}")
                outcome = ToolResult(
                    name=call.name,
                    result=f"{TASK_FAILURE_PREFIX}: {str(outcome) or outcome.__class__.__name__}",
                    success=False,
                    execution_time=0.0,
                    id=call.id,
                    chained_from=call.chained_from
                )
            results.append(outcome)
        return results

    async def execute_single(self, call: ToolCall) -> ToolResult:
        """
        Execute one tool call through the backend's per-call entry point.

        Args:
            call: The tool call

        Returns:
            ToolResult: The call's result; failures are returned, not raised
        """
        args = call.argument_map()
        start_time = time.perf_counter()
        try:
            value = await self.backend.call_tool(call.name, args)
        except Exception as e:
            message = self.categorizer.categorize_error(call.name, e, args)
            self.logger.error(f"Tool {call.name} failed: {e}")
            return ToolResult(
                name=call.name,
                result=f"{LEGACY_FAILURE_PREFIX}: {message}",
                success=False,
                execution_time=elapsed_ms(start_time),
                id=call.id,
                chained_from=call.chained_from
            )

        return ToolResult(
            name=call.name,
            result=serialize_result(value),
            success=True,
            execution_time=elapsed_ms(start_time),
            id=call.id,
            chained_from=call.chained_from
        )

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get execution metrics.

        Returns:
            Dict containing execution statistics
        """
        return self.stats.to_dict()
