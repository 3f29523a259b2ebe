"""Catalog of connector kinds and the actions available through them."""

from __future__ import annotations

from typing import Any, Dict, List

from .models import ACTION_CONFIGS, CONNECTOR_CONFIGS, ActionKind, ConnectorKind, actions_for


def _fields(config_class: type) -> Dict[str, List[str]]:
    names = [
        name for name in config_class.model_fields
        if name not in ("connector_kind", "action_kind")
    ]
    required = list(config_class.required_fields)
    return {
        "required_fields": required,
        "optional_fields": [name for name in names if name not in required],
    }


def list_connectors() -> List[Dict[str, Any]]:
    """Describe every connector kind, its credential fields and its actions."""
    return [
        {
            "kind": kind.value,
            "name": kind.value,
            **_fields(CONNECTOR_CONFIGS[kind]),
            "actions": [action.value for action in actions_for(kind)],
        }
        for kind in ConnectorKind
    ]


def list_actions() -> List[Dict[str, Any]]:
    """Describe every action kind, its parameters and the connector it needs."""
    return [
        {
            "kind": action.value,
            "name": action.display_name,
            "connector_kind": action.connector_kind.value,
            **_fields(ACTION_CONFIGS[action]),
        }
        for action in ActionKind
    ]


__all__ = ["list_actions", "list_connectors"]
