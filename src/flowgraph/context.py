"""
Run Context - Mutable state of one execution.

Owned by exactly one executor run and discarded (or archived) when the
run ends. A UI may poll snapshot() or subscribe() from another thread
while the run thread appends, so every access goes through a lock.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from .problems import UpstreamError


logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class LogEntry:
    """One human-readable line of the run log."""
    sequence: int
    node_id: Optional[int]
    level: LogLevel
    message: str

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "node_id": self.node_id,
            "level": self.level.value,
            "message": self.message,
        }


class RunEventType(str, Enum):
    LOG = "log"
    CURRENT_NODE = "current_node"


@dataclass(frozen=True)
class RunEvent:
    """Notification sent to subscribers as the run progresses."""
    run_id: str
    type: RunEventType
    entry: Optional[LogEntry] = None
    current_node_id: Optional[int] = None


@dataclass(frozen=True)
class RunSnapshot:
    """Immutable poll view of a run context."""
    run_id: str
    current_node_id: Optional[int]
    log: List[LogEntry]
    action_outputs: Dict[int, str]
    node_errors: Dict[int, dict]

    @property
    def messages(self) -> List[str]:
        return [entry.message for entry in self.log]


Subscriber = Callable[[RunEvent], None]


@dataclass
class RunContext:
    """
    State of one execution attempt.

    action_outputs maps a node id to the formatted result the node
    produced, so a later node can forward it. current_node_id is for
    observability only and carries no correctness meaning.
    """
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    action_outputs: Dict[int, str] = field(default_factory=dict)
    log: List[LogEntry] = field(default_factory=list)
    current_node_id: Optional[int] = None
    node_errors: Dict[int, UpstreamError] = field(default_factory=dict)
    _subscribers: List[Subscriber] = field(default_factory=list, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for run events.

        Returns:
            Function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def append_log(
        self,
        message: str,
        node_id: Optional[int] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> LogEntry:
        with self._lock:
            entry = LogEntry(
                sequence=len(self.log),
                node_id=node_id,
                level=level,
                message=message,
            )
            self.log.append(entry)
        self._notify(RunEvent(run_id=self.run_id, type=RunEventType.LOG, entry=entry))
        return entry

    def set_current_node(self, node_id: Optional[int]) -> None:
        with self._lock:
            self.current_node_id = node_id
        self._notify(RunEvent(
            run_id=self.run_id,
            type=RunEventType.CURRENT_NODE,
            current_node_id=node_id,
        ))

    def record_output(self, node_id: int, output: str) -> None:
        with self._lock:
            self.action_outputs[node_id] = output

    def record_error(self, node_id: int, error: UpstreamError) -> None:
        with self._lock:
            self.node_errors[node_id] = error

    def output_of(self, node_id: int) -> Optional[str]:
        with self._lock:
            return self.action_outputs.get(node_id)

    def snapshot(self) -> RunSnapshot:
        with self._lock:
            return RunSnapshot(
                run_id=self.run_id,
                current_node_id=self.current_node_id,
                log=list(self.log),
                action_outputs=dict(self.action_outputs),
                node_errors={
                    node_id: error.to_dict() for node_id, error in self.node_errors.items()
                },
            )

    def _notify(self, event: RunEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                # A broken subscriber must not break the run
                logger.exception(f"Run event subscriber failed for run {self.run_id}")


__all__ = [
    "LogEntry",
    "LogLevel",
    "RunContext",
    "RunEvent",
    "RunEventType",
    "RunSnapshot",
    "Subscriber",
]
