"""
Validator - Decides whether a flow graph is runnable.

Checks, in order:
1. Acyclicity (via the scheduler's Kahn pass)
2. Action wiring: every Action has an inbound Connector of its kind
3. Config completeness for Actions and for Connectors that serve an Action

All problems are collected; nothing short-circuits, so the user can fix
everything in one pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .graph import FlowGraph
from .models import Node
from .problems import (
    GraphCycleError,
    IncompleteConfig,
    Problem,
    UnwiredAction,
    UnwiredReason,
)
from .scheduler import Scheduler


logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """
    Outcome of validating a graph.

    Valid when problems is empty. order holds the execution order
    computed during the acyclicity check, or None if there is a cycle.
    """
    problems: List[Problem] = field(default_factory=list)
    order: Optional[List[int]] = None

    @property
    def is_valid(self) -> bool:
        return not self.problems

    def __bool__(self) -> bool:
        return self.is_valid


def find_connector(graph: FlowGraph, action: Node) -> Optional[Node]:
    """
    Get the qualifying Connector for an Action node.

    This is the source of the first in-edge, in edge order, whose source is
    a Connector of the kind the action requires.
    """
    action_kind = action.action_kind
    if action_kind is None:
        return None
    for edge in graph.in_edges(action.id):
        source = graph.node(edge.source)
        if (
            source is not None
            and source.is_connector
            and source.connector_kind == action_kind.connector_kind
        ):
            return source
    return None


class Validator:
    """
    Validates flow graphs before a run.

    Usage:
        result = Validator().validate(graph)
        if not result.is_valid:
            for problem in result.problems:
                print(problem)
    """

    def __init__(self, scheduler: Optional[Scheduler] = None):
        self._scheduler = scheduler or Scheduler()

    def validate(self, graph: FlowGraph) -> ValidationResult:
        problems: List[Problem] = []
        order: Optional[List[int]] = None

        try:
            order = self._scheduler.order(graph)
        except GraphCycleError as e:
            problems.append(e.problem)

        problems.extend(self._check_wiring(graph))
        problems.extend(self._check_config(graph))

        if problems:
            logger.debug(f"Graph '{graph.name}' has {len(problems)} problem(s)")
        return ValidationResult(problems=problems, order=order)

    def _check_wiring(self, graph: FlowGraph) -> List[UnwiredAction]:
        problems = []
        for node in graph.nodes():
            if not node.is_action:
                continue
            if find_connector(graph, node) is not None:
                continue

            has_any_connector = any(
                source is not None and source.is_connector
                for source in (graph.node(edge.source) for edge in graph.in_edges(node.id))
            )
            problems.append(UnwiredAction(
                node_id=node.id,
                label=node.display_label,
                reason=(
                    UnwiredReason.KIND_MISMATCH if has_any_connector
                    else UnwiredReason.NO_CONNECTOR
                ),
                required_connector=node.action_kind.connector_kind.value,
            ))
        return problems

    def _check_config(self, graph: FlowGraph) -> List[IncompleteConfig]:
        # Connectors are selected for use by the actions they serve
        selected = set()
        for node in graph.nodes():
            if node.is_action:
                connector = find_connector(graph, node)
                if connector is not None:
                    selected.add(connector.id)

        problems = []
        for node in graph.nodes():
            if node.is_connector and node.id not in selected:
                continue
            missing = node.config.missing_fields()
            if missing:
                problems.append(IncompleteConfig(node_id=node.id, missing_fields=missing))
        return problems


__all__ = ["ValidationResult", "Validator", "find_connector"]
