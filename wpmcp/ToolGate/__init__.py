"""
ToolGate - Agent-callable catalog of the file operations.

## Usage

```python
from wpmcp import ToolGate
from wpmcp.ToolGate import ToolCall, PolicyClass

schemas = ToolGate.get_json_schemas()

result = ToolGate.execute(
    ToolCall(id="tc_1", tool="FileSystemGate.read_file", args={"path": "wp-content/themes/t/style.css"}),
    enabled_policies={PolicyClass.READ_ONLY},
)
```

Results come back as ToolResult objects:

```json
{"type": "tool_result", "id": "tc_1", "ok": true, "result": {...}}
```
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from wpmcp.shared.gate import GateLogger, build_health_status

from wpmcp.ToolGate.models import (
    ArgSchema,
    PolicyClass,
    ToolCall,
    ToolDefinition,
    ToolResult,
)
from wpmcp.ToolGate.registry import (
    FILESYSTEMGATE_TOOLS,
    ToolRegistry,
    validate_args,
)

_log = GateLogger.get("ToolGate")
_initialized = False


def initialize() -> bool:
    """Register all gate tools."""
    global _initialized

    if _initialized:
        return True

    ToolRegistry.initialize()
    _initialized = True
    _log.info("ToolGate initialized")
    return True


def is_initialized() -> bool:
    """Check if ToolGate is initialized."""
    return _initialized


def is_healthy() -> bool:
    """Check if ToolGate is operational."""
    return _initialized and len(ToolRegistry.list_tools()) > 0


def get_health_status() -> dict:
    """Get detailed health status."""
    tool_count = len(ToolRegistry.list_tools()) if _initialized else 0

    return build_health_status(
        gate_name="ToolGate",
        initialized=_initialized,
        dependencies=["FileSystemGate"],
        checks={
            "registry_loaded": _initialized,
            "tools_available": tool_count > 0,
        },
        details={"tool_count": tool_count},
    )


def reset() -> None:
    """Reset ToolGate state (for testing)."""
    global _initialized
    ToolRegistry.reset()
    _initialized = False


def list_tools(
    policy_filter: Optional[Set[PolicyClass]] = None,
    gate_filter: Optional[str] = None,
) -> List[ToolDefinition]:
    """List available tools."""
    initialize()
    return ToolRegistry.list_tools(policy_filter, gate_filter)


def list_tool_names(policy_filter: Optional[Set[PolicyClass]] = None) -> List[str]:
    """List available tool names."""
    initialize()
    return ToolRegistry.list_tool_names(policy_filter)


def get_tool(name: str) -> Optional[ToolDefinition]:
    """Get a tool definition by name."""
    initialize()
    return ToolRegistry.get_tool(name)


def get_json_schemas(policy_filter: Optional[Set[PolicyClass]] = None) -> List[Dict[str, Any]]:
    """Export tool definitions as name/description/JSON-Schema triples."""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "policy": tool.policy_class.value,
            "input_schema": tool.get_json_schema(),
        }
        for tool in sorted(list_tools(policy_filter), key=lambda t: t.name)
    ]


def _get_gate_module(gate_name: str):
    """Import and return a gate module."""
    if gate_name == "FileSystemGate":
        from wpmcp import FileSystemGate
        return FileSystemGate
    raise ValueError(f"Unknown gate: {gate_name}")


def _dispatch_tool(tool: ToolDefinition, args: Dict[str, Any]):
    """
    Call the gate method behind a tool.

    Optional arguments passed as null fall back to their schema default,
    so an explicit null never switches off a default like create_backup.
    """
    kwargs = {}
    for name, value in args.items():
        value = tool.args_schema[name].resolve(value)
        if value is not None:
            kwargs[name] = value

    gate = _get_gate_module(tool.gate)
    method = getattr(gate, tool.method)
    return method(**kwargs)


def execute(call: ToolCall, enabled_policies: Optional[Set[PolicyClass]] = None) -> ToolResult:
    """
    Execute a single tool call.

    Args:
        call: Tool call to execute
        enabled_policies: Policy classes allowed to run (None = all)

    Returns:
        ToolResult wrapping the gate's OperationResult
    """
    tool = get_tool(call.tool)
    if not tool:
        return ToolResult.failure(call.id, f"Unknown tool: {call.tool}")

    valid, error = validate_args(tool, call.args)
    if not valid:
        return ToolResult.failure(call.id, f"Invalid arguments: {error}")

    if enabled_policies is not None and tool.policy_class not in enabled_policies:
        return ToolResult.failure(
            call.id, f"Policy denied: {tool.policy_class.value} tools are not enabled"
        )

    try:
        result = _dispatch_tool(tool, call.args)
    except Exception as e:
        _log.error(f"Tool {call.tool} failed: {e}")
        return ToolResult.failure(call.id, str(e))

    if not result.success:
        _log.info(f"Tool {call.tool} failed: {result.error}")
        kind = result.error_kind.value if result.error_kind else "error"
        return ToolResult.failure(call.id, f"{kind}: {result.error}")

    _log.info(f"Tool {call.tool} executed successfully")
    return ToolResult.success(call.id, result.to_dict())


__all__ = [
    # Lifecycle
    "initialize",
    "is_initialized",
    "is_healthy",
    "get_health_status",
    "reset",
    # Discovery
    "list_tools",
    "list_tool_names",
    "get_tool",
    "get_json_schemas",
    # Execution
    "execute",
    "validate_args",
    # Models
    "ArgSchema",
    "PolicyClass",
    "ToolCall",
    "ToolDefinition",
    "ToolResult",
    "ToolRegistry",
    "FILESYSTEMGATE_TOOLS",
]
