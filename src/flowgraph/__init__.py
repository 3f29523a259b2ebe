"""
Flow Graph Engine - Validate, order and run connector/action flows.

This package provides:
- FlowGraph: Connector and Action nodes joined by directed edges
- Validator: Cycle, wiring and config checks before a run
- Scheduler: Deterministic topological order (Kahn's algorithm)
- FlowExecutor: Sequential run with a live log and current-node pointer
- Connector invokers: the boundary to the external services

Runs are synchronous and one at a time per executor.
"""

from .models import (
    ActionKind,
    ConnectorKind,
    Edge,
    GraphDefinition,
    Node,
    NodeKind,
    actions_for,
    parse_graph,
)
from .graph import FlowGraph
from .problems import (
    ConcurrentRunRejected,
    FlowGraphError,
    GraphCycleError,
    GraphHasCycle,
    IncompleteConfig,
    RunCancelled,
    UnwiredAction,
    UpstreamError,
)
from .scheduler import Scheduler
from .validation import ValidationResult, Validator
from .connectors import (
    ConnectorInvoker,
    HttpConnectorInvoker,
    StaticConnectorInvoker,
    WeatherReport,
)
from .context import LogEntry, RunContext, RunSnapshot
from .executor import FlowExecutor, RunResult, RunState

__version__ = "0.1.0"

__all__ = [
    # Models
    "ActionKind",
    "ConnectorKind",
    "Edge",
    "GraphDefinition",
    "Node",
    "NodeKind",
    "actions_for",
    "parse_graph",
    # Graph
    "FlowGraph",
    # Problems
    "ConcurrentRunRejected",
    "FlowGraphError",
    "GraphCycleError",
    "GraphHasCycle",
    "IncompleteConfig",
    "RunCancelled",
    "UnwiredAction",
    "UpstreamError",
    # Validation and scheduling
    "Scheduler",
    "ValidationResult",
    "Validator",
    # Connectors
    "ConnectorInvoker",
    "HttpConnectorInvoker",
    "StaticConnectorInvoker",
    "WeatherReport",
    # Execution
    "FlowExecutor",
    "LogEntry",
    "RunContext",
    "RunResult",
    "RunSnapshot",
    "RunState",
]
