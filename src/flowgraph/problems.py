"""
Structured problems and exceptions raised by the flow engine.

Problems are data: the validator collects them and an aborted run
carries them, so an authoring surface can highlight the exact nodes
involved. Exceptions wrap a problem where control flow needs one.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class UnwiredReason(str, Enum):
    """Why an Action node has no qualifying Connector."""
    NO_CONNECTOR = "no_connector"
    KIND_MISMATCH = "kind_mismatch"


class GraphHasCycle(BaseModel):
    """The graph contains at least one cycle; node_ids lists the nodes on cycles."""
    kind: Literal["graph_has_cycle"] = "graph_has_cycle"
    node_ids: List[int] = Field(default_factory=list)

    def __str__(self) -> str:
        ids = ", ".join(str(node_id) for node_id in self.node_ids)
        return f"Graph has a cycle involving nodes: {ids}"


class UnwiredAction(BaseModel):
    """An Action node is not wired to a Connector of the kind it needs."""
    kind: Literal["unwired_action"] = "unwired_action"
    node_id: int
    label: str
    reason: UnwiredReason = UnwiredReason.NO_CONNECTOR
    required_connector: Optional[str] = None

    def __str__(self) -> str:
        if self.reason is UnwiredReason.KIND_MISMATCH:
            return (
                f"Action '{self.label}' (node {self.node_id}) is connected to a connector "
                f"that is not of type {self.required_connector}"
            )
        return f"Action '{self.label}' (node {self.node_id}) needs a connector connection"


class IncompleteConfig(BaseModel):
    """A node selected for the run is missing required config fields."""
    kind: Literal["incomplete_config"] = "incomplete_config"
    node_id: int
    missing_fields: List[str] = Field(default_factory=list)

    def __str__(self) -> str:
        return f"Node {self.node_id} is missing: {', '.join(self.missing_fields)}"


class RunCancelled(BaseModel):
    """The run was cancelled; node_id is the last node that was dispatched."""
    kind: Literal["run_cancelled"] = "run_cancelled"
    node_id: Optional[int] = None

    def __str__(self) -> str:
        if self.node_id is None:
            return "Run cancelled before any node executed"
        return f"Run cancelled after node {self.node_id}"


Problem = Annotated[
    Union[GraphHasCycle, UnwiredAction, IncompleteConfig, RunCancelled],
    Field(discriminator="kind"),
]


class FlowGraphError(Exception):
    """Base exception for flow engine errors."""

    pass


class GraphCycleError(FlowGraphError):
    """Raised by the scheduler when no complete topological order exists."""

    def __init__(self, problem: GraphHasCycle):
        self.problem = problem
        super().__init__(str(problem))

    @property
    def node_ids(self) -> List[int]:
        return self.problem.node_ids


class ConcurrentRunRejected(FlowGraphError):
    """Raised when a run is requested while another run is active."""

    def __init__(self, active_run_id: Optional[str] = None):
        self.active_run_id = active_run_id
        message = "A run is already in progress"
        if active_run_id:
            message = f"{message}: {active_run_id}"
        super().__init__(message)


class UpstreamError(FlowGraphError):
    """
    Error returned by an external service behind a connector.

    Isolated to the node that raised it; the run continues.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.status = status
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "kind": "upstream_error",
            "status": self.status,
            "message": self.message,
            "detail": self.detail,
        }


__all__ = [
    "ConcurrentRunRejected",
    "FlowGraphError",
    "GraphCycleError",
    "GraphHasCycle",
    "IncompleteConfig",
    "Problem",
    "RunCancelled",
    "UnwiredAction",
    "UnwiredReason",
    "UpstreamError",
]
