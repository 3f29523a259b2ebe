"""In-memory store for flow runs started through the API."""
import threading
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from flowgraph.config import get_settings
from flowgraph.context import RunContext
from flowgraph.executor import FlowExecutor, RunResult, RunState
from flowgraph.graph import FlowGraph
from flowgraph.observability import get_logger, with_run_context
from flowgraph.problems import Problem

logger = get_logger(__name__)


class RunRecord(BaseModel):
    """Poll view of a run."""

    run_id: str = Field(..., description="Run ID")
    graph_name: str = Field(..., description="Name of the graph being run")
    state: RunState = Field(..., description="Run state")
    current_node_id: int | None = Field(
        default=None,
        description="Node presently executing",
    )
    log: list[dict[str, Any]] = Field(default_factory=list, description="Run log entries")
    problems: list[Problem] = Field(
        default_factory=list,
        description="Problems that aborted the run",
    )
    action_outputs: dict[int, str] = Field(default_factory=dict)
    node_errors: dict[int, dict[str, Any]] = Field(default_factory=dict)
    order: list[int] = Field(default_factory=list)
    created_at: str = Field(..., description="ISO timestamp when the run was requested")
    finished_at: str | None = Field(default=None, description="ISO timestamp when the run ended")


class RunStore:
    """
    Archive of runs for one executor.

    Live runs are read from their RunContext; finished runs from their
    RunResult. Nothing is persisted. Once more than max_runs runs are
    held, the oldest finished ones are dropped; the active run is kept.
    """

    def __init__(self, executor: FlowExecutor, max_runs: int | None = None):
        """
        Initialize run store.

        Args:
            executor: Executor that performs the runs
            max_runs: Runs kept before the oldest finished are dropped
                (settings default)
        """
        if max_runs is None:
            max_runs = get_settings().run_history_limit
        if max_runs < 1:
            raise ValueError("max_runs must be at least 1")

        self.executor = executor
        self.max_runs = max_runs
        self._lock = threading.Lock()
        self._graphs: dict[str, str] = {}
        self._contexts: dict[str, RunContext] = {}
        self._results: dict[str, RunResult] = {}
        self._created: dict[str, str] = {}
        self._finished: dict[str, str] = {}

    def start(self, graph: FlowGraph) -> RunRecord:
        """
        Start a run of a graph.

        Raises:
            ConcurrentRunRejected: If a run is already active
        """
        created_at = _now()
        context = self.executor.submit(graph, on_finish=self._on_finish)

        with self._lock:
            self._graphs[context.run_id] = graph.name
            self._contexts[context.run_id] = context
            self._created[context.run_id] = created_at
            self._prune()

        logger.info(
            "Run requested via API",
            extra=with_run_context(run_id=context.run_id, graph_name=graph.name),
        )
        return self.get(context.run_id)

    def get(self, run_id: str) -> RunRecord | None:
        with self._lock:
            context = self._contexts.get(run_id)
            if context is None:
                return None
            result = self._results.get(run_id)
            graph_name = self._graphs.get(run_id, "")
            created_at = self._created[run_id]
            finished_at = self._finished.get(run_id)

        if result is not None:
            return RunRecord(
                run_id=run_id,
                graph_name=graph_name,
                state=result.state,
                log=[entry.to_dict() for entry in result.log],
                problems=result.problems,
                action_outputs=result.action_outputs,
                node_errors=result.node_errors,
                order=result.order,
                created_at=created_at,
                finished_at=finished_at,
            )

        snapshot = context.snapshot()
        return RunRecord(
            run_id=run_id,
            graph_name=graph_name,
            state=RunState.RUNNING,
            current_node_id=snapshot.current_node_id,
            log=[entry.to_dict() for entry in snapshot.log],
            action_outputs=snapshot.action_outputs,
            node_errors=snapshot.node_errors,
            created_at=created_at,
        )

    def list_runs(self) -> list[RunRecord]:
        with self._lock:
            run_ids = list(self._contexts)
        return [record for record in map(self.get, run_ids) if record is not None]

    def cancel(self, run_id: str) -> bool:
        """Request cancellation if run_id is the active run."""
        active = self.executor.context
        if active is None or active.run_id != run_id:
            return False
        return self.executor.cancel()

    def _on_finish(self, result: RunResult) -> None:
        # May run before start() has registered the context
        with self._lock:
            self._results[result.run_id] = result
            self._finished[result.run_id] = _now()
            self._prune()

    def _prune(self) -> None:
        # Caller holds _lock; runs are ordered oldest first
        excess = len(self._contexts) - self.max_runs
        if excess <= 0:
            return
        dropped = [run_id for run_id in self._contexts if run_id in self._results][:excess]
        for run_id in dropped:
            for runs in (self._graphs, self._contexts, self._results, self._created, self._finished):
                runs.pop(run_id, None)
        if dropped:
            logger.debug(f"Dropped {len(dropped)} finished run(s) from history")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
