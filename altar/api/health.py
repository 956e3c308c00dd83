"""
Health check API endpoint.

Aggregates health status from all wpmcp Gates.
"""

from __future__ import annotations

import importlib
from typing import Any, Dict, Tuple

from fastapi import APIRouter, Response


# Gate registry: name -> (module_path, attribute_name)
GATE_REGISTRY: Dict[str, Tuple[str, str]] = {
    "FileSystemGate": ("wpmcp", "FileSystemGate"),
    "ToolGate": ("wpmcp", "ToolGate"),
}


def _get_gate_health(module_path: str, attribute_name: str) -> Dict[str, Any]:
    """Call get_health_status() on a gate module."""
    module = importlib.import_module(module_path)
    gate = getattr(module, attribute_name)

    if hasattr(gate, "get_health_status"):
        return gate.get_health_status()
    return {"healthy": False, "error": "No get_health_status method"}


def _collect_health_data() -> Tuple[bool, Dict[str, Any]]:
    """
    Collect health data from all gates.

    Returns:
        Tuple of (all_healthy, gates_dict)
    """
    gates = {}
    all_healthy = True

    for gate_name, (module_path, attribute_name) in GATE_REGISTRY.items():
        try:
            gates[gate_name] = _get_gate_health(module_path, attribute_name)
        except (ImportError, AttributeError, RuntimeError, OSError) as e:
            gates[gate_name] = {"healthy": False, "error": str(e)}
        if not gates[gate_name].get("healthy", False):
            all_healthy = False

    return all_healthy, gates


def create_router() -> APIRouter:
    router = APIRouter()

    @router.get("/api/health")
    async def api_health(response: Response) -> Dict[str, Any]:
        """
        Get aggregated health status from all Gates.

        Returns 200 when healthy, 503 when unhealthy.
        """
        all_healthy, gates = _collect_health_data()

        if not all_healthy:
            response.status_code = 503

        return {
            "healthy": all_healthy,
            "gates": gates,
        }

    @router.get("/api/health/gate/{gate_name}")
    async def api_health_gate(gate_name: str) -> Dict[str, Any]:
        """Get health status for a specific gate."""
        normalized = gate_name.lower()

        for name, (module_path, attribute_name) in GATE_REGISTRY.items():
            if name.lower() == normalized:
                try:
                    return _get_gate_health(module_path, attribute_name)
                except (ImportError, AttributeError, RuntimeError, OSError) as e:
                    return {"healthy": False, "error": str(e)}

        return {
            "error": f"Unknown gate: {gate_name}",
            "available": list(GATE_REGISTRY.keys()),
        }

    return router


__all__ = ["create_router", "GATE_REGISTRY"]
