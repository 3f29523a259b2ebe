"""
Flow Executor - Runs a validated flow graph to completion.

Walks the scheduler's order one node at a time, dispatching Action
nodes through a connector invoker and recording results in a fresh
RunContext. A failing node is logged and skipped over; only validation
failures and cancellation abort a run.

States: IDLE -> RUNNING -> COMPLETED | ABORTED. One run at a time;
a second request while a run is active raises ConcurrentRunRejected.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .config import get_settings
from .connectors import ConnectorInvoker, format_output, log_prefix
from .context import LogEntry, LogLevel, RunContext, Subscriber
from .graph import FlowGraph
from .models import Node
from .observability import get_logger, with_run_context
from .problems import (
    ConcurrentRunRejected,
    Problem,
    RunCancelled,
    UpstreamError,
)
from .validation import ValidationResult, Validator, find_connector


logger = get_logger(__name__)


class RunState(str, Enum):
    """Executor run state."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class RunResult:
    """
    Result of one run.
    """
    run_id: str
    state: RunState
    problems: List[Problem] = field(default_factory=list)
    log: List[LogEntry] = field(default_factory=list)
    action_outputs: Dict[int, str] = field(default_factory=dict)
    node_errors: Dict[int, dict] = field(default_factory=dict)
    order: List[int] = field(default_factory=list)
    duration_ms: float = 0

    @property
    def is_completed(self) -> bool:
        return self.state == RunState.COMPLETED

    @property
    def is_aborted(self) -> bool:
        return self.state == RunState.ABORTED

    @property
    def messages(self) -> List[str]:
        return [entry.message for entry in self.log]


class FlowExecutor:
    """
    Sequential flow executor.

    Nodes run strictly one after another, never concurrently, with a
    fixed pacing delay between two nodes. cancel() lets the current
    invocation finish and stops before the next node.

    Usage:
        executor = FlowExecutor(invoker=HttpConnectorInvoker())
        result = executor.run(graph)
    """

    def __init__(
        self,
        invoker: ConnectorInvoker,
        pacing_delay: Optional[float] = None,
        validator: Optional[Validator] = None,
        default_message: Optional[str] = None,
    ):
        """
        Initialize executor.

        Args:
            invoker: Connector invocation boundary
            pacing_delay: Seconds between two nodes (settings default, may be 0)
            validator: Pre-run validator
            default_message: Chat payload used when no upstream output exists
        """
        settings = get_settings()
        if pacing_delay is None:
            pacing_delay = settings.pacing_delay_s
        if pacing_delay < 0:
            raise ValueError("pacing_delay must not be negative")

        self._invoker = invoker
        self._pacing_delay = pacing_delay
        self._validator = validator or Validator()
        self._default_message = default_message or settings.default_chat_message

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._cancel = threading.Event()
        self._state = RunState.IDLE
        self._context: Optional[RunContext] = None

    @property
    def state(self) -> RunState:
        with self._state_lock:
            return self._state

    @property
    def context(self) -> Optional[RunContext]:
        """Context of the active run, or of the last run."""
        with self._state_lock:
            return self._context

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    def run(
        self,
        graph: FlowGraph,
        run_id: Optional[str] = None,
        on_event: Optional[Subscriber] = None,
    ) -> RunResult:
        """
        Run a graph in the calling thread.

        on_event is subscribed to the new context before anything happens,
        so it sees every log entry and current-node change.

        Raises:
            ConcurrentRunRejected: If another run is active
        """
        context = self._begin(run_id, on_event)
        return self._execute(graph, context)

    def submit(
        self,
        graph: FlowGraph,
        run_id: Optional[str] = None,
        on_finish: Optional[Callable[[RunResult], None]] = None,
        on_event: Optional[Subscriber] = None,
    ) -> RunContext:
        """
        Start a run in a background thread.

        The concurrency check and validation happen before this returns:
        a rejected request never starts a thread, and an invalid graph
        is aborted (and on_finish called) in the calling thread.

        Returns:
            The new run's context, for polling and subscriptions

        Raises:
            ConcurrentRunRejected: If another run is active
        """
        context = self._begin(run_id, on_event)
        try:
            validation = self._validator.validate(graph)
        except BaseException:
            self._run_lock.release()
            raise

        if not validation.is_valid:
            result = self._execute(graph, context, validation)
            if on_finish is not None:
                on_finish(result)
            return context

        self._set_state(RunState.RUNNING)

        def target() -> None:
            start_time = time.perf_counter()
            try:
                result = self._execute(graph, context, validation)
            except Exception:
                logger.exception(
                    "Run failed unexpectedly",
                    extra=with_run_context(run_id=context.run_id),
                )
                result = self._finish(context, RunState.ABORTED, start_time)
            if on_finish is not None:
                on_finish(result)

        thread = threading.Thread(target=target, name=f"flow-run-{context.run_id}", daemon=True)
        thread.start()
        return context

    def cancel(self) -> bool:
        """
        Request cancellation of the active run.

        Returns:
            True if a run was active
        """
        with self._state_lock:
            if self._context is None or not self._run_lock.locked():
                return False
            self._cancel.set()
            run_id = self._context.run_id
        logger.info("Run cancellation requested", extra=with_run_context(run_id=run_id))
        return True

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def _begin(self, run_id: Optional[str], on_event: Optional[Subscriber] = None) -> RunContext:
        if not self._run_lock.acquire(blocking=False):
            active = self.context
            raise ConcurrentRunRejected(active.run_id if active else None)

        context = RunContext(run_id=run_id or str(uuid.uuid4()))
        if on_event is not None:
            context.subscribe(on_event)
        with self._state_lock:
            self._cancel.clear()
            self._context = context
        return context

    def _execute(
        self,
        graph: FlowGraph,
        context: RunContext,
        validation: Optional[ValidationResult] = None,
    ) -> RunResult:
        start_time = time.perf_counter()
        extra = with_run_context(run_id=context.run_id)
        try:
            if validation is None:
                validation = self._validator.validate(graph)
            if not validation.is_valid:
                for problem in validation.problems:
                    self._emit(context, str(problem), level=LogLevel.ERROR)
                logger.warning(
                    f"Run aborted: {len(validation.problems)} validation problem(s)",
                    extra=extra,
                )
                return self._finish(context, RunState.ABORTED, start_time, problems=validation.problems)

            order = validation.order or []
            self._set_state(RunState.RUNNING)
            logger.info(f"Run started over {len(order)} node(s)", extra=extra)

            problems: List[Problem] = []
            last_node: Optional[int] = None
            for index, node_id in enumerate(order):
                if index > 0:
                    # Pacing between nodes; returns early on cancel
                    self._cancel.wait(self._pacing_delay)
                if self._cancel.is_set():
                    break

                node = graph.node(node_id)
                context.set_current_node(node_id)
                if node is not None:
                    self._dispatch(graph, node, context)
                context.set_current_node(None)
                last_node = node_id

            if self._cancel.is_set():
                problems.append(RunCancelled(node_id=last_node))
                logger.info("Run cancelled", extra=extra)
                return self._finish(context, RunState.ABORTED, start_time, problems=problems, order=order)

            logger.info("Run completed", extra=extra)
            return self._finish(context, RunState.COMPLETED, start_time, order=order)
        except BaseException:
            self._set_state(RunState.ABORTED)
            raise
        finally:
            context.set_current_node(None)
            self._run_lock.release()

    def _finish(
        self,
        context: RunContext,
        state: RunState,
        start_time: float,
        problems: Optional[List[Problem]] = None,
        order: Optional[List[int]] = None,
    ) -> RunResult:
        self._set_state(state)
        snapshot = context.snapshot()
        return RunResult(
            run_id=context.run_id,
            state=state,
            problems=problems or [],
            log=snapshot.log,
            action_outputs=snapshot.action_outputs,
            node_errors=snapshot.node_errors,
            order=order or [],
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    def _set_state(self, state: RunState) -> None:
        with self._state_lock:
            self._state = state

    # ------------------------------------------------------------------
    # Node dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, graph: FlowGraph, node: Node, context: RunContext) -> None:
        """Execute a single node."""
        if node.is_connector:
            # A connector is configuration, not an operation
            self._emit(context, f"Executing Connector node: {node.connector_kind.value}", node.id)
            return

        action_kind = node.action_kind
        connector = find_connector(graph, node)
        if connector is None:
            self._emit(
                context,
                f"Action '{node.display_label}' requires a {action_kind.connector_kind.value} connector connection.",
                node.id,
                LogLevel.ERROR,
            )
            return

        message = None
        if action_kind.forwards_upstream_output:
            message = self._upstream_message(graph, connector, context)

        try:
            output = self._invoker.invoke(
                connector.connector_kind,
                connector.config,
                node.config,
                message,
            )
        except UpstreamError as e:
            self._fail(context, node, e)
            return
        except Exception as e:
            logger.error(
                f"Unexpected invoker failure for node {node.id}",
                extra=with_run_context(run_id=context.run_id, node_id=node.id),
                exc_info=True,
            )
            self._fail(context, node, UpstreamError(message=str(e) or type(e).__name__))
            return

        try:
            text = format_output(action_kind, output)
        except Exception as e:
            logger.error(
                f"Malformed connector output for node {node.id}",
                extra=with_run_context(run_id=context.run_id, node_id=node.id),
                exc_info=True,
            )
            self._fail(context, node, UpstreamError(message=f"Malformed connector output: {e}"))
            return

        context.record_output(node.id, text)
        self._emit(context, f"{log_prefix(action_kind)}: {text}", node.id)

    def _upstream_message(self, graph: FlowGraph, connector: Node, context: RunContext) -> str:
        """
        Get the payload for an action that forwards an earlier result.

        Looks at the first in-edge of the connector that comes from an
        Action node; if that action already produced output in this run,
        the output is the payload.
        """
        for edge in graph.in_edges(connector.id):
            source = graph.node(edge.source)
            if source is not None and source.is_action:
                output = context.output_of(source.id)
                if output is not None:
                    return output
                break
        return self._default_message

    def _fail(self, context: RunContext, node: Node, error: UpstreamError) -> None:
        context.record_error(node.id, error)
        self._emit(
            context,
            f"Error executing {node.display_label}: {error.message}",
            node.id,
            LogLevel.ERROR,
        )

    def _emit(
        self,
        context: RunContext,
        message: str,
        node_id: Optional[int] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        """Append to the run log and mirror the line to the process log."""
        context.append_log(message, node_id=node_id, level=level)
        extra = with_run_context(run_id=context.run_id, node_id=node_id)
        if level is LogLevel.ERROR:
            logger.warning(message, extra=extra)
        else:
            logger.info(message, extra=extra)


__all__ = ["FlowExecutor", "RunResult", "RunState"]
