"""Storage package."""
from flowgraph.storage.run_store import RunRecord, RunStore

__all__ = ["RunRecord", "RunStore"]
