"""
Agentic workflow orchestration.

This module provides the AgenticWorkflowOrchestrator, a LangGraph state
machine that alternates between executing a round of tool calls and
analyzing its results for chained follow-ups, and the ToolWorkflowEngine
facade that builds every component of the toolchain from a SystemConfig.
"""

import asyncio
import logging
import time
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, TypedDict, Union

from langgraph.graph import StateGraph, END

from .config import ConfigurationLoader, ConfigurationError
from .models import SystemConfig
from .tools.base import (
    IterationRecord,
    ToolBackend,
    ToolCall,
    ToolDescriptor,
    ToolResult,
    WorkflowTrace,
    available_tool_names,
    elapsed_ms
)
from .tools.backends import create_backend
from .tools.chaining import ToolChainAnalyzer
from .tools.errors import ErrorCategorizer
from .tools.executor import ParallelToolExecutor
from .tools.formatter import ResultFormatter
from .tools.validator import ToolCallValidator


class WorkflowPhase(Enum):
    """Phases of an agentic workflow."""
    EXECUTING = "executing"
    ANALYZING = "analyzing"
    DONE = "done"


class WorkflowError(Exception):
    """
    Exception raised when a workflow cannot be started or built.

    Attributes:
        message: Error message
        original_error: Original exception that caused this error
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "timestamp": datetime.now().isoformat(),
            "original_error": str(self.original_error) if self.original_error else None
        }


class WorkflowGraphState(TypedDict):
    """State carried between the nodes of the workflow graph."""
    phase: WorkflowPhase
    pending_calls: List[ToolCall]
    available_tools: List[Any]
    tool_names: List[str]
    max_iterations: int
    iteration: int
    provider_id: Optional[str]
    records: List[IterationRecord]


class AgenticWorkflowOrchestrator:
    """
    Runs rounds of tool calls until nothing is left to chain.

    Each round executes its calls through the ParallelToolExecutor and asks
    the ToolChainAnalyzer for follow-ups. A new round starts only when
    there is at least one follow-up for a known tool and the iteration
    limit has not been reached, so the loop always terminates.
    """

    def __init__(
        self,
        executor: ParallelToolExecutor,
        analyzer: ToolChainAnalyzer,
        formatter: ResultFormatter,
        recover_failures: bool = False
    ):
        """
        Initialize the orchestrator.

        Args:
            executor: Executor used for every round
            analyzer: Chain analyzer that proposes follow-up calls
            formatter: Formatter used for the workflow summary
            recover_failures: Retry failed calls against alternative tools in each round
        """
        self.executor = executor
        self.analyzer = analyzer
        self.formatter = formatter
        self.recover_failures = recover_failures
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        self.graph = self._build_graph()
        self.compiled_graph = self.graph.compile()

    def _build_graph(self) -> StateGraph:
        """
        Build the LangGraph state machine for the workflow.

        Returns:
            StateGraph: execute -> analyze -> (execute | END)
        """
        workflow = StateGraph(WorkflowGraphState)

        workflow.add_node("execute", self._execute_node)
        workflow.add_node("analyze", self._analyze_node)

        workflow.set_entry_point("execute")
        workflow.add_edge("execute", "analyze")
        workflow.add_conditional_edges(
            "analyze",
            self._route_after_analysis,
            {
                "continue": "execute",
                "done": END
            }
        )

        return workflow

    async def execute_agentic_workflow(
        self,
        initial_calls: List[ToolCall],
        available_tools: List[Any],
        max_iterations: int = 3,
        provider_id: Optional[str] = None
    ) -> WorkflowTrace:
        """
        Run an agentic workflow.

        Args:
            initial_calls: Calls of the first round
            available_tools: Tools that may be called (descriptors, definitions or names)
            max_iterations: Maximum number of rounds (values below 1 run one round)
            provider_id: Provider whose conventions the calls follow

        Returns:
            WorkflowTrace: Per-round records, flattened results and summary
        """
        max_iterations = max(int(max_iterations), 1)
        self.logger.info(
            f"Starting agentic workflow with {len(initial_calls)} initial call(s), "
            f"max {max_iterations} iteration(s)"
        )

        initial_state: WorkflowGraphState = {
            "phase": WorkflowPhase.EXECUTING,
            "pending_calls": list(initial_calls),
            "available_tools": list(available_tools or []),
            "tool_names": available_tool_names(available_tools),
            "max_iterations": max_iterations,
            "iteration": 0,
            "provider_id": provider_id,
            "records": []
        }

        final_state = await self.compiled_graph.ainvoke(
            initial_state,
            config={"recursion_limit": 2 * max_iterations + 4}
        )

        records = final_state["records"]
        results = [result for record in records for result in record.results]
        trace = WorkflowTrace(
            workflow=records,
            results=results,
            summary=self.build_workflow_summary(records, results)
        )

        self.logger.info(
            f"Agentic workflow finished after {len(records)} iteration(s) with {len(results)} result(s)"
        )
        return trace

    async def _execute_node(self, state: WorkflowGraphState) -> Dict[str, Any]:
        iteration = state["iteration"] + 1
        calls = state["pending_calls"]
        self.logger.debug(f"Iteration {iteration}: executing {len(calls)} call(s)")

        start_time = time.perf_counter()
        if self.recover_failures:
            results = await self.execute_tools_with_recovery(
                calls, state["available_tools"], state["provider_id"]
            )
        else:
            results = await self.executor.execute_multiple_tools_parallel(calls, state["provider_id"])

        record = IterationRecord(
            iteration=iteration,
            tool_calls=list(calls),
            results=results,
            duration_ms=elapsed_ms(start_time)
        )
        return {
            "iteration": iteration,
            "phase": WorkflowPhase.ANALYZING,
            "pending_calls": [],
            "records": state["records"] + [record]
        }

    async def _analyze_node(self, state: WorkflowGraphState) -> Dict[str, Any]:
        record = state["records"][-1]
        proposals = self.analyzer.analyze_for_tool_chaining(record.results, state["available_tools"])

        known_names = set(state["tool_names"])
        chained = []
        for call in proposals:
            if call.name in known_names:
                chained.append(call)
            else:
                self.logger.warning(f"Dropping chained call to unknown tool: {call.name}")
        record.chained_tools = chained

        if chained and state["iteration"] < state["max_iterations"]:
            self.logger.info(f"Iteration {state['iteration']}: chaining {len(chained)} follow-up call(s)")
            return {"phase": WorkflowPhase.EXECUTING, "pending_calls": chained}

        if chained:
            self.logger.info(
                f"Iteration limit {state['max_iterations']} reached, "
                f"{len(chained)} chained call(s) not executed"
            )
        return {"phase": WorkflowPhase.DONE, "pending_calls": []}

    def _route_after_analysis(self, state: WorkflowGraphState) -> str:
        if state["phase"] == WorkflowPhase.EXECUTING:
            return "continue"
        return "done"

    async def execute_tools_with_recovery(
        self,
        calls: List[ToolCall],
        available_tools: List[Any],
        provider_id: Optional[str] = None
    ) -> List[ToolResult]:
        """
        Execute a batch and retry failed calls against alternative tools.

        Each failed call is retried with the same arguments against the
        alternatives of the same kind, in order, until one succeeds. Calls
        without a working alternative keep their original failed result.

        Args:
            calls: Tool calls to execute
            available_tools: Tools that may be used as alternatives
            provider_id: Provider whose conventions the calls follow

        Returns:
            List[ToolResult]: One result per call, in call order
        """
        results = await self.executor.execute_multiple_tools_parallel(calls, provider_id)

        async def recover(call: ToolCall, failed: ToolResult) -> ToolResult:
            for alternative in self.analyzer.find_alternative_tools(call.name, available_tools):
                self.logger.info(f"Retrying failed tool {call.name} with alternative {alternative}")
                retry = ToolCall(
                    name=alternative,
                    arguments=call.arguments,
                    id=call.id,
                    chained_from=call.chained_from
                )
                retried = await self.executor.execute_multiple_tools_parallel([retry], provider_id)
                if retried and retried[0].success:
                    return retried[0]
            return failed

        failed_indexes = [i for i, result in enumerate(results) if not result.success]
        if not failed_indexes:
            return results

        recovered = await asyncio.gather(
            *(recover(calls[i], results[i]) for i in failed_indexes)
        )
        results = list(results)
        for i, result in zip(failed_indexes, recovered):
            results[i] = result

        recovered_count = sum(1 for result in recovered if result.success)
        self.logger.info(f"Recovered {recovered_count}/{len(failed_indexes)} failed call(s)")
        return results

    def build_workflow_summary(self, records: List[IterationRecord], results: List[ToolResult]) -> str:
        """Build the summary text of a finished workflow."""
        successful = sum(1 for result in results if result.success)
        chained = sum(len(record.tool_calls) for record in records[1:])

        lines = [
            "Agentic Workflow Summary",
            f"Iterations: {len(records)} | Tools executed: {len(results)} | "
            f"Successful: {successful} | Chained calls executed: {chained}",
            ""
        ]
        for record in records:
            names = ", ".join(call.name for call in record.tool_calls) or "none"
            line = f"Iteration {record.iteration}: {names} ({record.duration_ms:.0f}ms)"
            if record.chained_tools:
                line += " -> " + ", ".join(call.name for call in record.chained_tools)
            lines.append(line)

        lines.append("")
        lines.append(self.formatter.summarize_tool_results_for_model(results))
        return "\n".join(lines)


class ToolWorkflowEngine:
    """
    Builds and owns every component of the toolchain.

    The engine wires a tool backend, validator, error categorizer,
    executor, chain analyzer, formatter and orchestrator from a
    SystemConfig. Components can be injected for testing.
    """

    def __init__(
        self,
        config: Optional[SystemConfig] = None,
        config_path: Optional[Union[str, Path]] = None,
        backend: Optional[ToolBackend] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Pre-loaded system configuration
            config_path: Path to a configuration file (used when config is omitted)
            backend: Tool backend to use instead of the configured one

        Raises:
            WorkflowError: If the configuration cannot be loaded or the backend cannot be built
        """
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        if config is not None:
            self.config = config
        elif config_path is not None:
            try:
                self.config = ConfigurationLoader().load_from_file(config_path)
            except ConfigurationError as e:
                raise WorkflowError(f"Failed to load configuration: {e}", original_error=e)
        else:
            self.config = SystemConfig()

        if backend is None:
            try:
                backend = create_backend(self.config.backend)
            except ValueError as e:
                raise WorkflowError(f"Failed to create tool backend: {e}", original_error=e)
        self.backend = backend

        workflow_config = self.config.workflow
        self.validator = ToolCallValidator()
        self.categorizer = ErrorCategorizer()
        self.executor = ParallelToolExecutor(self.backend, self.validator, self.categorizer)
        self.analyzer = ToolChainAnalyzer(
            max_suggestions=workflow_config.max_chain_suggestions,
            max_alternatives=workflow_config.max_alternatives
        )
        self.formatter = ResultFormatter(self.config.formatter)
        self.orchestrator = AgenticWorkflowOrchestrator(
            self.executor,
            self.analyzer,
            self.formatter,
            recover_failures=workflow_config.recover_failures
        )

        self.logger.info(f"Initialized ToolWorkflowEngine with {self.backend.__class__.__name__}")

    async def list_tools(self) -> List[ToolDescriptor]:
        """Get the tools the backend exposes."""
        return await self.backend.list_tools()

    async def execute(self, calls: List[ToolCall], provider_id: Optional[str] = None) -> List[ToolResult]:
        """Execute one batch of tool calls."""
        return await self.executor.execute_multiple_tools_parallel(calls, provider_id)

    async def run_workflow(
        self,
        calls: List[ToolCall],
        available_tools: Optional[List[Any]] = None,
        max_iterations: Optional[int] = None,
        provider_id: Optional[str] = None
    ) -> WorkflowTrace:
        """
        Run an agentic workflow.

        Args:
            calls: Initial tool calls
            available_tools: Allowed tools (defaults to the backend's tool list)
            max_iterations: Maximum rounds (defaults to the configured limit)
            provider_id: Provider whose conventions the calls follow
        """
        if available_tools is None:
            available_tools = await self.list_tools()
        if max_iterations is None:
            max_iterations = self.config.workflow.max_iterations
        return await self.orchestrator.execute_agentic_workflow(
            calls, available_tools, max_iterations, provider_id
        )

    def summarize(self, results: List[ToolResult]) -> str:
        """Render results for a model's context."""
        return self.formatter.summarize_tool_results_for_model(results)

    def aggregate(self, results: List[ToolResult]) -> str:
        """Render results for human display."""
        return self.formatter.aggregate_tool_results(results)

    def get_engine_info(self) -> Dict[str, Any]:
        """Get information about the engine and its metrics."""
        return {
            "backend": self.backend.__class__.__name__,
            "config": self.config.to_dict(),
            "metrics": self.executor.get_metrics()
        }

    async def shutdown(self) -> None:
        """Release backend resources."""
        await self.backend.close()
        self.logger.info("Tool workflow engine shutdown complete")

    async def __aenter__(self) -> "ToolWorkflowEngine":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()


def create_engine_from_config(config: SystemConfig, backend: Optional[ToolBackend] = None) -> ToolWorkflowEngine:
    """
    Factory function to create an engine from a SystemConfig object.

    Args:
        config: System configuration
        backend: Optional tool backend overriding the configured one

    Returns:
        ToolWorkflowEngine: Configured engine
    """
    return ToolWorkflowEngine(config=config, backend=backend)


def create_engine_from_file(config_path: Union[str, Path]) -> ToolWorkflowEngine:
    """
    Factory function to create an engine from a configuration file.

    Args:
        config_path: Path to configuration file

    Returns:
        ToolWorkflowEngine: Configured engine
    """
    return ToolWorkflowEngine(config_path=config_path)
