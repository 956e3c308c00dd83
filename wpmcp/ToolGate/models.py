"""
Shapes exchanged with an agent: the tool catalog entries, the calls an
agent makes against them and the results handed back.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PolicyClass(str, Enum):
    """How much a file tool can change the WordPress install."""

    READ_ONLY = "read_only"  # read, list, info
    WRITE = "write"  # write, copy
    DESTRUCTIVE = "destructive"  # delete, move


class ToolCall(BaseModel):
    """An agent's request to run one file tool."""

    type: Literal["tool_call"] = "tool_call"
    id: str = Field(description="Call id echoed back in the result, e.g. tc_1")
    tool: str = Field(description="Gate-qualified tool name, e.g. FileSystemGate.write_file")
    args: Dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"ToolCall({self.tool}, id={self.id})"


class ToolResult(BaseModel):
    """
    Outcome of a ToolCall.

    On success `result` holds the OperationResult dict; on failure `error`
    reads "<error_kind>: <message>" for gate failures, or a plain message
    when the call never reached the gate.
    """

    type: Literal["tool_result"] = "tool_result"
    id: str
    ok: bool
    result: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, call_id: str, result: Any) -> "ToolResult":
        return cls(id=call_id, ok=True, result=result)

    @classmethod
    def failure(cls, call_id: str, error: str) -> "ToolResult":
        return cls(id=call_id, ok=False, error=error)

    def to_compact(self) -> Dict[str, Any]:
        """The id, the flag and whichever of result/error applies."""
        payload = {"id": self.id, "ok": self.ok}
        if self.ok:
            payload["result"] = self.result
        else:
            payload["error"] = self.error
        return payload


class ArgSchema(BaseModel):
    """One argument of a file tool, e.g. path or create_backup."""

    type: str = "string"
    description: str = ""
    required: bool = True
    default: Optional[Any] = None
    enum: Optional[List[Any]] = None

    def to_property(self) -> Dict[str, Any]:
        """JSON Schema property for this argument."""
        prop: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            prop["enum"] = self.enum
        if self.default is not None:
            prop["default"] = self.default
        return prop

    def resolve(self, value: Any) -> Any:
        """The value to pass on; null becomes the default."""
        return self.default if value is None else value


class ToolDefinition(BaseModel):
    """A catalog entry mapping a tool name onto a gate method."""

    name: str = Field(description="e.g. FileSystemGate.copy_file")
    description: str = Field(description="Shown to the agent when choosing a tool")
    gate: str = Field(description="Gate that serves the tool, e.g. FileSystemGate")
    method: str = Field(description="Gate classmethod to call, e.g. copy_file")
    policy_class: PolicyClass = Field(default=PolicyClass.READ_ONLY)
    args_schema: Dict[str, ArgSchema] = Field(default_factory=dict)

    @property
    def required_args(self) -> List[str]:
        return [name for name, arg in self.args_schema.items() if arg.required]

    def get_json_schema(self) -> Dict[str, Any]:
        """Input schema advertised to agents."""
        return {
            "type": "object",
            "properties": {name: arg.to_property() for name, arg in self.args_schema.items()},
            "required": self.required_args,
        }


__all__ = [
    "PolicyClass",
    "ToolCall",
    "ToolResult",
    "ArgSchema",
    "ToolDefinition",
]
