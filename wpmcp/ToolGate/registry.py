"""
ToolGate Registry.

Catalog of the agent-callable file tools with their schemas and policy classes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

from wpmcp.shared.gate import GateLogger
from wpmcp.ToolGate.models import (
    ArgSchema,
    PolicyClass,
    ToolDefinition,
)

_log = GateLogger.get("ToolGate")


_PATH_DESCRIPTION = "Path relative to the WordPress root, e.g. wp-content/themes/mytheme/style.css"

# FileSystemGate tools
FILESYSTEMGATE_TOOLS: List[Dict[str, Any]] = [
    {
        "method": "read_file",
        "description": "Read the contents of a file in a theme, plugin or uploads directory",
        "policy": PolicyClass.READ_ONLY,
        "args": {
            "path": ArgSchema(type="string", description=_PATH_DESCRIPTION, required=True),
            "binary": ArgSchema(type="boolean", description="Return base64 content", required=False, default=False),
        },
    },
    {
        "method": "list_files",
        "description": "List files in a directory",
        "policy": PolicyClass.READ_ONLY,
        "args": {
            "path": ArgSchema(type="string", description="Directory path relative to the WordPress root", required=True),
            "recursive": ArgSchema(type="boolean", description="List files in subdirectories", required=False, default=False),
        },
    },
    {
        "method": "file_info",
        "description": "Get size, modification time, permissions and type of a file",
        "policy": PolicyClass.READ_ONLY,
        "args": {
            "path": ArgSchema(type="string", description=_PATH_DESCRIPTION, required=True),
        },
    },
    {
        "method": "write_file",
        "description": "Create or overwrite a file (existing content is backed up first)",
        "policy": PolicyClass.WRITE,
        "args": {
            "path": ArgSchema(type="string", description=_PATH_DESCRIPTION, required=True),
            "content": ArgSchema(type="string", description="Content to write", required=True),
            "create_backup": ArgSchema(type="boolean", description="Back up the existing file", required=False, default=True),
            "encoding": ArgSchema(
                type="string",
                description="utf-8 for text, base64 for binary content",
                required=False,
                default="utf-8",
                enum=["utf-8", "base64"],
            ),
        },
    },
    {
        "method": "delete_file",
        "description": "Delete a file (backed up first by default)",
        "policy": PolicyClass.DESTRUCTIVE,
        "args": {
            "path": ArgSchema(type="string", description=_PATH_DESCRIPTION, required=True),
            "create_backup": ArgSchema(type="boolean", description="Back up before deleting", required=False, default=True),
        },
    },
    {
        "method": "copy_file",
        "description": "Copy a file to a new location",
        "policy": PolicyClass.WRITE,
        "args": {
            "source": ArgSchema(type="string", description="Source path", required=True),
            "destination": ArgSchema(type="string", description="Destination path", required=True),
        },
    },
    {
        "method": "move_file",
        "description": "Move or rename a file",
        "policy": PolicyClass.DESTRUCTIVE,
        "args": {
            "source": ArgSchema(type="string", description="Source path", required=True),
            "destination": ArgSchema(type="string", description="Destination path", required=True),
        },
    },
]


class ToolRegistry:
    """Central registry of all available tools."""

    _tools: Dict[str, ToolDefinition] = {}
    _initialized: bool = False

    @classmethod
    def initialize(cls) -> None:
        """Initialize registry with all gate tools."""
        if cls._initialized:
            return

        cls._register_gate_tools("FileSystemGate", FILESYSTEMGATE_TOOLS)

        cls._initialized = True
        _log.info(f"Tool registry initialized with {len(cls._tools)} tools")

    @classmethod
    def _register_gate_tools(cls, gate_name: str, tools: List[Dict[str, Any]]) -> None:
        """Register tools for a gate."""
        for tool_config in tools:
            method_name = tool_config["method"]
            tool_name = f"{gate_name}.{method_name}"

            cls._tools[tool_name] = ToolDefinition(
                name=tool_name,
                description=tool_config["description"],
                gate=gate_name,
                method=method_name,
                policy_class=tool_config.get("policy", PolicyClass.READ_ONLY),
                args_schema=dict(tool_config.get("args", {})),
            )

    @classmethod
    def get_tool(cls, name: str) -> Optional[ToolDefinition]:
        """Get tool definition by name."""
        cls.initialize()
        return cls._tools.get(name)

    @classmethod
    def list_tools(
        cls,
        policy_filter: Optional[Set[PolicyClass]] = None,
        gate_filter: Optional[str] = None,
    ) -> List[ToolDefinition]:
        """List tools, optionally filtered."""
        cls.initialize()

        tools = list(cls._tools.values())

        if policy_filter:
            tools = [t for t in tools if t.policy_class in policy_filter]

        if gate_filter:
            tools = [t for t in tools if t.gate == gate_filter]

        return tools

    @classmethod
    def list_tool_names(cls, policy_filter: Optional[Set[PolicyClass]] = None) -> List[str]:
        """List tool names, optionally filtered."""
        return [t.name for t in cls.list_tools(policy_filter)]

    @classmethod
    def reset(cls) -> None:
        """Reset registry (for testing)."""
        cls._tools = {}
        cls._initialized = False


def validate_args(tool: ToolDefinition, args: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate arguments against a tool's schema.

    Returns:
        Tuple of (is_valid, error_message)
    """
    schema = tool.args_schema

    for arg_name, arg_schema in schema.items():
        if arg_schema.required and arg_name not in args:
            return False, f"Missing required argument: {arg_name}"

    for arg_name, value in args.items():
        if arg_name not in schema:
            return False, f"Unknown argument: {arg_name}"

        arg_schema = schema[arg_name]
        expected_type = arg_schema.type

        if value is None and not arg_schema.required:
            continue

        if expected_type == "string" and not isinstance(value, str):
            return False, f"Argument {arg_name} must be string, got {type(value).__name__}"
        elif expected_type == "boolean" and not isinstance(value, bool):
            return False, f"Argument {arg_name} must be boolean, got {type(value).__name__}"

        if arg_schema.enum and value not in arg_schema.enum:
            return False, f"Argument {arg_name} must be one of {arg_schema.enum}"

    return True, None


__all__ = [
    "ToolRegistry",
    "FILESYSTEMGATE_TOOLS",
    "validate_args",
]
