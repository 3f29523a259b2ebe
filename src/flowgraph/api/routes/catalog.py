"""Connector and action catalog routes."""
from fastapi import APIRouter

from flowgraph.catalog import list_actions, list_connectors

router = APIRouter()


@router.get("/connectors")
def get_connectors() -> list[dict]:
    """List connector kinds with their credential fields and actions."""
    return list_connectors()


@router.get("/functions")
def get_functions() -> list[dict]:
    """List action kinds with their parameters and required connector."""
    return list_actions()
