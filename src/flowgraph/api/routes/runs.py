"""Run trigger and poll routes."""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from flowgraph.graph import FlowGraph
from flowgraph.models import GraphDefinition
from flowgraph.observability import get_logger
from flowgraph.problems import ConcurrentRunRejected, Problem
from flowgraph.storage import RunRecord, RunStore
from flowgraph.validation import Validator

logger = get_logger(__name__)
router = APIRouter()


class ValidateResponse(BaseModel):
    """Response model for graph validation."""

    valid: bool = Field(..., description="True if the graph can run")
    problems: list[Problem] = Field(default_factory=list)
    order: list[int] | None = Field(
        default=None,
        description="Execution order, absent when the graph has a cycle",
    )


class CancelResponse(BaseModel):
    run_id: str
    cancelled: bool


def get_run_store(request: Request) -> RunStore:
    return request.app.state.run_store


def build_graph(definition: GraphDefinition) -> FlowGraph:
    """
    Build a graph from a request body.

    Raises:
        HTTPException: 422 if a node config does not fit its kind
    """
    try:
        return FlowGraph.from_definition(definition)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.post("/validate", response_model=ValidateResponse)
def validate_graph(definition: GraphDefinition) -> ValidateResponse:
    """Validate a graph without running it."""
    result = Validator().validate(build_graph(definition))
    return ValidateResponse(valid=result.is_valid, problems=result.problems, order=result.order)


@router.post("/runs", response_model=RunRecord, status_code=202)
def create_run(
    definition: GraphDefinition,
    store: RunStore = Depends(get_run_store),
) -> RunRecord:
    """
    Start a run.

    An invalid graph yields an aborted run listing every problem. A
    request while another run is active is rejected with 409.
    """
    graph = build_graph(definition)
    try:
        return store.start(graph)
    except ConcurrentRunRejected as e:
        logger.info("Run rejected: another run is active")
        raise HTTPException(
            status_code=409,
            detail={"kind": "concurrent_run_rejected", "active_run_id": e.active_run_id},
        ) from e


@router.get("/runs", response_model=list[RunRecord])
def list_runs(store: RunStore = Depends(get_run_store)) -> list[RunRecord]:
    return store.list_runs()


@router.get("/runs/{run_id}", response_model=RunRecord)
def get_run(run_id: str, store: RunStore = Depends(get_run_store)) -> RunRecord:
    """
    Poll a run's state, current node and log.

    Raises:
        HTTPException: If run not found
    """
    record = store.get(run_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return record


@router.post("/runs/{run_id}/cancel", response_model=CancelResponse)
def cancel_run(run_id: str, store: RunStore = Depends(get_run_store)) -> CancelResponse:
    """Request cancellation of the active run."""
    if store.get(run_id) is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return CancelResponse(run_id=run_id, cancelled=store.cancel(run_id))
