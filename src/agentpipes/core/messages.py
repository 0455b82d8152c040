"""Immutable message records exchanged with pipes.

The wire shape follows the chat-completions convention the pipe service
accepts: ``{"role", "content"}`` plus ``tool_call_id`` / ``name`` on tool
results and ``tool_calls`` on assistant turns that request tools.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Tuple

import orjson

__all__ = ["Message", "ToolCall", "Role", ]

Role = Literal["system", "user", "assistant", "tool"]

_ROLES = frozenset({"system", "user", "assistant", "tool"})


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A function call requested by the model."""
    id: str
    name: str
    arguments: str = "{}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments", "{}")
        if isinstance(arguments, (dict, list)):
            arguments = orjson.dumps(arguments).decode("utf-8")
        return cls(id=data.get("id", ""), name=function.get("name", ""), arguments=arguments or "{}")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id,
                "type": "function",
                "function": {"name": self.name, "arguments": self.arguments}}

    def parse_arguments(self) -> Dict[str, Any]:
        """Decode the argument string. Raises ``orjson.JSONDecodeError`` on malformed JSON."""
        if not self.arguments:
            return {}
        args = orjson.loads(self.arguments)
        if not isinstance(args, dict):
            raise orjson.JSONDecodeError("tool arguments must be a JSON object", self.arguments, 0)
        return args


@dataclass(frozen=True, slots=True)
class Message:
    role: Role
    content: str | None = None
    tool_call_id: str | None = None
    name: str | None = None
    tool_calls: Tuple[ToolCall, ...] = field(default=())

    def __post_init__(self):
        if self.role not in _ROLES:
            raise ValueError(f"Unknown message role '{self.role}'. Expected one of {sorted(_ROLES)}.")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None = None, tool_calls: Tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(role=data["role"],
                   content=data.get("content"),
                   tool_call_id=data.get("tool_call_id"),
                   name=data.get("name"),
                   tool_calls=tuple(ToolCall.from_dict(c) for c in data.get("tool_calls") or ()))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        if self.tool_calls:
            data["tool_calls"] = [call.to_dict() for call in self.tool_calls]
        return data
